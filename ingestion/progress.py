"""Progress messages emitted during an import."""

import logging
import re
from typing import Callable

ProgressSink = Callable[[str], None]

STARTING_READ = "Starting to read file..."
COMMITTING = "Committing all changes to database..."

ROW_PROGRESS = re.compile(r"^\d+ rows? read, \d+ (has|have) error$")


def clearing(table: str, database: str) -> str:
    return f"Clearing table {table} in {database}..."


def cleared(table: str) -> str:
    return f"Table {table} has been cleared"


def rows_progress(rows_read: int, rows_in_error: int) -> str:
    """E.g. "1 row read, 0 have error" / "12 rows read, 1 has error"."""
    rows = "row" if rows_read == 1 else "rows"
    verb = "has" if rows_in_error == 1 else "have"
    return f"{rows_read} {rows} read, {rows_in_error} {verb} error"


def committed(rows_imported: int) -> str:
    return f"{rows_imported} rows written to database."


class LoggingProgress:
    """Progress sink that forwards to a logger, every ``every`` row updates.

    Milestone messages are always logged.
    """

    def __init__(self, logger: logging.Logger, every: int = 10000, level: int = logging.INFO):
        self._logger = logger
        self._every = max(1, every)
        self._level = level
        self._row_updates = 0

    def __call__(self, message: str) -> None:
        if ROW_PROGRESS.match(message):
            self._row_updates += 1
            if self._row_updates % self._every:
                return
        self._logger.log(self._level, "%s", message)
