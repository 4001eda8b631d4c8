"""In-memory buffer of parsed records waiting to be flushed."""

from bulkload.types import Record


class BatchAccumulator:
    """Ordered buffer of records between flushes.

    Holds no threshold of its own; the importer decides when to drain.
    """

    def __init__(self) -> None:
        self._records: list[Record] = []

    def add(self, record: Record) -> None:
        self._records.append(record)

    @property
    def size(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def drain(self) -> list[Record]:
        """Hand over the buffered records and start a fresh buffer."""
        records, self._records = self._records, []
        return records
