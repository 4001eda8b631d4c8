"""Destination table descriptor and the store the importer writes through."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from bulkload.service import DatabaseService
from bulkload.types import Record
from ingestion.errors import ImportConfigurationError, innermost_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Destination:
    """The table an import writes to.

    With conflict_columns set, rows are upserted on that key instead of
    inserted. ddl, when given, is run when the destination is resolved.
    """

    table: str
    columns: list[str]
    conflict_columns: list[str] = field(default_factory=list)
    ddl: str | None = None


class TableStore:
    """Binds a DatabaseService to one Destination.

    clear() and persist() report driver failures as a list of messages
    instead of raising; an empty list means success.
    """

    def __init__(self, service: DatabaseService, destination: Destination):
        self._service = service
        self.destination = destination

    @property
    def database(self) -> str:
        return self._service.backend

    def resolve(self) -> None:
        """Create the table if a DDL is attached, then check it can be read."""
        table = self.destination.table
        try:
            if self.destination.ddl:
                self._service.execute_ddl(self.destination.ddl)
            with self._service.transaction():
                self._service.probe_table(table)
        except self._service.driver_errors as e:
            raise ImportConfigurationError(
                f"Destination table {table!r} is not usable: {innermost_message(e)}"
            ) from e

    def clear(self) -> list[str]:
        """Delete every row of the destination in its own transaction."""
        try:
            with self._service.transaction():
                self._service.delete_all(self.destination.table)
        except self._service.driver_errors as e:
            logger.error("Clearing %s failed: %s", self.destination.table, e)
            return [innermost_message(e)]
        return []

    def persist(self, rows: list[Record]) -> list[str]:
        """Write rows inside the caller's open transaction."""
        dest = self.destination
        try:
            if dest.conflict_columns:
                self._service.upsert(dest.table, dest.columns, rows, dest.conflict_columns)
            else:
                self._service.batch_insert(dest.table, dest.columns, rows)
        except self._service.driver_errors as e:
            logger.error("Writing %d rows to %s failed: %s", len(rows), dest.table, e)
            return [innermost_message(e)]
        return []

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._service.transaction():
            yield
