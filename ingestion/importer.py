"""Batched, transactional CSV import into a destination table.

One import runs inside a single transaction. Parsed records are buffered and
flushed to the database every ``commit_size`` rows; the transaction commits
once the whole source has been read. Any failed flush, an undecodable
source or a cancellation rolls back everything written by the run.

Rows that fail to parse are skipped and reported in the result; they never
stop the run.
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, Protocol

from bulkload.service import DatabaseService
from ingestion import progress as messages
from ingestion.batch import BatchAccumulator
from ingestion.errors import ImportCancelled, ImportConfigurationError, innermost_message
from ingestion.mapping import FieldError, MapperRegistry, RecordMapper, positional_mapper
from ingestion.progress import ProgressSink
from ingestion.result import ImportAction, ImportResult
from ingestion.sources import open_file, open_url
from ingestion.store import Destination, TableStore

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_SIZE = 50_000


class CancelSignal(Protocol):
    """Anything with is_set(), e.g. threading.Event."""

    def is_set(self) -> bool: ...


class _ImportAborted(Exception):
    """Internal: unwinds the transaction block with messages for the result."""

    def __init__(self, messages: list[str]):
        super().__init__("; ".join(messages))
        self.messages = messages


def _raise_if_cancelled(cancel: CancelSignal | None, rows_read: int) -> None:
    if cancel is not None and cancel.is_set():
        raise ImportCancelled(rows_read)


def _is_blank(row: list[str]) -> bool:
    return not row or all(cell.strip() == "" for cell in row)


def _no_progress(message: str) -> None:
    pass


class CsvImporter:
    """Imports CSV data into tables reachable through one DatabaseService."""

    def __init__(
        self,
        service: DatabaseService,
        *,
        commit_size: int = DEFAULT_COMMIT_SIZE,
        mappers: MapperRegistry | None = None,
    ):
        if commit_size < 1:
            raise ImportConfigurationError(f"commit_size must be positive, got {commit_size}")
        self._service = service
        self.commit_size = commit_size
        self.mappers = mappers or MapperRegistry()

    def import_file(
        self,
        file_path: str | Path,
        destination: Destination,
        action: ImportAction | str = ImportAction.APPEND,
        *,
        encoding: str = "utf-8",
        cancel: CancelSignal | None = None,
        **options,
    ) -> ImportResult:
        """Import a local CSV file. See import_stream for the options."""
        _raise_if_cancelled(cancel, 0)
        with open_file(file_path, encoding) as stream:
            return self.import_stream(
                stream,
                destination,
                action,
                encoding=encoding,
                cancel=cancel,
                source_name=options.pop("source_name", None) or str(file_path),
                **options,
            )

    def import_url(
        self,
        url: str,
        destination: Destination,
        action: ImportAction | str = ImportAction.APPEND,
        *,
        encoding: str = "utf-8",
        cancel: CancelSignal | None = None,
        max_retries: int = 3,
        **options,
    ) -> ImportResult:
        """Import a CSV document served over HTTP(S)."""
        _raise_if_cancelled(cancel, 0)
        with open_url(url, encoding, max_retries=max_retries) as stream:
            return self.import_stream(
                stream,
                destination,
                action,
                encoding=encoding,
                cancel=cancel,
                source_name=options.pop("source_name", None) or url,
                **options,
            )

    def import_stream(
        self,
        stream: Iterable[str],
        destination: Destination,
        action: ImportAction | str = ImportAction.APPEND,
        *,
        mapper: RecordMapper | None = None,
        has_header: bool = False,
        progress: ProgressSink | None = None,
        cancel: CancelSignal | None = None,
        source_name: str | None = None,
        encoding: str = "utf-8",
    ) -> ImportResult:
        """Import rows from an open text stream.

        Args:
            stream: Open text stream (or any iterable of lines) holding CSV data.
            destination: Target table and its columns.
            action: APPEND adds rows; REPLACE deletes existing rows first. The
                delete commits on its own before loading starts, so a load that
                later fails or is cancelled leaves the table empty.
            mapper: Row-to-record mapper. Defaults to the mapper registered for
                the table, then to a positional text mapping of its columns.
            has_header: Whether the first non-blank row is a header. The
                header is handed to the mapper's bind_header() if it has one, and
                the mapper it returns is used for the rest of this run.
            progress: Called with a status string after every row and at each
                lifecycle milestone.
            cancel: Checked before starting and after every row.
            source_name: Recorded in the result; defaults to the stream's name.
            encoding: Only used to describe decoding failures.

        Returns:
            The ImportResult. Parse and storage failures are reported through
            its error messages.

        Raises:
            ImportCancelled: The cancel signal was set. Nothing is committed.
            ImportConfigurationError: The action is unknown or the destination
                cannot be used.
        """
        _raise_if_cancelled(cancel, 0)
        action = ImportAction.parse(action)
        store = TableStore(self._service, destination)
        store.resolve()
        mapper = self._select_mapper(destination, mapper)
        report = progress or _no_progress

        result = ImportResult(
            table=destination.table,
            database=store.database,
            source=source_name or getattr(stream, "name", None),
        )
        logger.info(
            "Importing %s into %s (%s, commit size %d)",
            result.source or "<stream>",
            destination.table,
            action.value,
            self.commit_size,
        )

        if action is ImportAction.REPLACE:
            report(messages.clearing(destination.table, store.database))
            errors = store.clear()
            if errors:
                result.errors.extend(errors)
                logger.error("Could not clear %s; nothing imported", destination.table)
                return result.finish()
            report(messages.cleared(destination.table))

        report(messages.STARTING_READ)
        try:
            with store.transaction():
                committed = self._load(
                    stream, store, mapper, result, report, cancel, has_header, encoding
                )
                if committed:
                    report(messages.COMMITTING)
        except _ImportAborted as e:
            result.errors.extend(e.messages)
            logger.error(
                "Import into %s aborted after %d rows read; transaction rolled back",
                destination.table,
                result.rows_read,
            )
            return result.finish()
        except self._service.driver_errors as e:
            # commit itself failed, e.g. a deferred constraint
            result.errors.add(innermost_message(e))
            logger.error("Commit to %s failed: %s", destination.table, e)
            return result.finish()
        except ImportCancelled:
            logger.warning(
                "Import into %s cancelled after %d rows read; transaction rolled back",
                destination.table,
                result.rows_read,
            )
            raise

        if committed:
            result.rows_imported = committed
            report(messages.committed(committed))
        logger.info(
            "Import into %s complete: %d rows read, %d imported, %d errors",
            destination.table,
            result.rows_read,
            result.rows_imported,
            len(result.errors),
        )
        return result.finish()

    def _select_mapper(
        self, destination: Destination, mapper: RecordMapper | None
    ) -> RecordMapper:
        if mapper is None:
            if self.mappers.has_map(destination.table):
                mapper = self.mappers.get_map(destination.table)
            else:
                mapper = positional_mapper(destination.columns)
        names = getattr(mapper, "names", None)
        if names is not None and len(names) != len(destination.columns):
            raise ImportConfigurationError(
                f"Mapper produces {len(names)} values but {destination.table} "
                f"has {len(destination.columns)} columns"
            )
        return mapper

    def _load(
        self,
        stream: Iterable[str],
        store: TableStore,
        mapper: RecordMapper,
        result: ImportResult,
        report: ProgressSink,
        cancel: CancelSignal | None,
        has_header: bool,
        encoding: str,
    ) -> int:
        """Read, map and flush every row. Returns the number of rows written."""
        batch = BatchAccumulator()
        reader = csv.reader(stream)
        header_pending = has_header
        written = 0

        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                if header_pending:
                    header_pending = False
                    result.errors.add(f"Header row could not be read. {e}")
                    logger.warning("Unreadable header row; using column positions: %s", e)
                    continue
                result.rows_read += 1
                result.errors.add_row_error(result.rows_read, str(e))
                logger.warning("Skipping unreadable row %d: %s", result.rows_read, e)
            except UnicodeDecodeError as e:
                raise _ImportAborted([f"Source is not valid {encoding} text: {e}"]) from e
            else:
                if _is_blank(row):
                    continue
                if header_pending:
                    header_pending = False
                    bind_header = getattr(mapper, "bind_header", None)
                    if bind_header is not None:
                        mapper = bind_header(row)
                    continue

                result.rows_read += 1
                record = mapper.map(row, result.rows_read)
                if isinstance(record, FieldError):
                    result.errors.add_field_error(record)
                    logger.warning(
                        "Skipping malformed row %d: %s", result.rows_read, record.message
                    )
                else:
                    batch.add(record)

            report(messages.rows_progress(result.rows_read, result.errors.parse_errors))
            _raise_if_cancelled(cancel, result.rows_read)

            if len(batch) >= self.commit_size:
                written += self._flush(store, batch, written)

        if len(batch):
            written += self._flush(store, batch, written)
        return written

    def _flush(self, store: TableStore, batch: BatchAccumulator, written: int) -> int:
        rows = batch.drain()
        errors = store.persist(rows)
        if errors:
            raise _ImportAborted(errors)
        logger.info(
            "Flushed %d rows to %s (total: %d)",
            len(rows),
            store.destination.table,
            written + len(rows),
        )
        return len(rows)


def import_csv(
    service: DatabaseService,
    file_path: str | Path,
    destination: Destination,
    action: ImportAction | str = ImportAction.APPEND,
    *,
    commit_size: int = DEFAULT_COMMIT_SIZE,
    **options,
) -> ImportResult:
    """Import a CSV file into ``destination`` in one call.

    Keyword options are those of CsvImporter.import_file.
    """
    importer = CsvImporter(service, commit_size=commit_size)
    return importer.import_file(file_path, destination, action, **options)
