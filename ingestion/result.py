"""Outcome of a CSV import run."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Iterator

from ingestion.errors import ImportConfigurationError
from ingestion.mapping import FieldError


class ImportAction(enum.Enum):
    """How the destination table is treated before loading."""

    APPEND = "append"  # add the imported rows to what is already there
    REPLACE = "replace"  # delete every existing row first

    @classmethod
    def parse(cls, value: str | ImportAction) -> ImportAction:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(a.value for a in cls)
            raise ImportConfigurationError(
                f"Unknown import action {value!r} (expected one of: {choices})"
            ) from None


class ErrorLedger:
    """Append-only, ordered list of human-readable error messages.

    Holds parse-time messages (one per rejected row) and persistence-time
    messages. Nothing is ever dropped or truncated; once sealed, further
    appends raise.
    """

    def __init__(self) -> None:
        self._messages: list[str] = []
        self._parse_errors = 0
        self._sealed = False

    def add(self, message: str) -> None:
        if self._sealed:
            raise RuntimeError("Error ledger is sealed")
        self._messages.append(message)

    def extend(self, messages: Iterable[str]) -> None:
        for message in messages:
            self.add(message)

    def add_field_error(self, error: FieldError) -> None:
        self.add(error.describe())
        self._parse_errors += 1

    def add_row_error(self, row_index: int, detail: str) -> None:
        """A row the CSV reader itself could not split into fields."""
        self.add(f"Row {row_index} could not be read. {detail}")
        self._parse_errors += 1

    @property
    def parse_errors(self) -> int:
        """Number of rows rejected while parsing."""
        return self._parse_errors

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        self._sealed = True

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._messages))

    def __bool__(self) -> bool:
        return bool(self._messages)


@dataclass
class ImportResult:
    """What happened during one import call.

    rows_read counts every non-blank data row pulled from the source;
    rows_imported is only set once the transaction commits.
    """

    table: str
    database: str
    source: str | None = None
    rows_read: int = 0
    rows_imported: int = 0
    errors: ErrorLedger = field(default_factory=ErrorLedger)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None

    @property
    def error_messages(self) -> tuple[str, ...]:
        return tuple(self.errors)

    @property
    def succeeded(self) -> bool:
        return self.end_time is not None and not self.errors

    @property
    def duration(self) -> timedelta | None:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def finish(self) -> ImportResult:
        """Stamp the end time and freeze the error messages."""
        self.end_time = datetime.now()
        self.errors.seal()
        return self

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "database": self.database,
            "table": self.table,
            "rows_read": self.rows_read,
            "rows_imported": self.rows_imported,
            "errors": list(self.error_messages),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }
