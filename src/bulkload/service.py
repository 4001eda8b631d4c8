"""Abstract DatabaseService interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from bulkload.types import Params, ParamsList


class DatabaseService(ABC):
    """Database-agnostic interface for the operations the importer needs.

    - Thread-safe: each transaction() acquires its own connection
    - DB-agnostic: callers program against this ABC, never a concrete backend
    - driver_errors names the exceptions a backend's driver raises, so callers
      can catch storage failures without importing the driver
    """

    backend: str = "unknown"
    driver_errors: tuple[type[BaseException], ...] = ()

    @abstractmethod
    def connect(self) -> None:
        """Initialize the connection pool."""

    @abstractmethod
    def close(self) -> None:
        """Close all connections and release resources."""

    @abstractmethod
    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        """Execute a single SQL statement and return rows as dicts."""

    @abstractmethod
    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        """Execute a SQL statement for each parameter set."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager: acquires a connection, commits on success, rolls back on error."""

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute DDL statements (CREATE TABLE, CREATE INDEX, etc.)."""

    @abstractmethod
    def batch_insert(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        """Insert multiple rows into a table."""

    @abstractmethod
    def upsert(
        self,
        table: str,
        columns: list[str],
        rows: list[tuple],
        conflict_columns: list[str],
    ) -> None:
        """Insert rows, updating on conflict with the specified columns."""

    def delete_all(self, table: str) -> None:
        """Remove every row of a table inside the current transaction."""
        self.execute(f"DELETE FROM {table}")

    def probe_table(self, table: str) -> None:
        """Raise the driver's error if the table cannot be selected from."""
        self.execute(f"SELECT * FROM {table} WHERE 1 = 0")
