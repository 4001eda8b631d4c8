"""CSV import pipeline: batched, transactional loads with per-row error capture."""

from ingestion.errors import ImportCancelled, ImportConfigurationError
from ingestion.importer import DEFAULT_COMMIT_SIZE, CsvImporter, import_csv
from ingestion.mapping import Column, ColumnMap, FieldError, MapperRegistry, positional_mapper
from ingestion.result import ImportAction, ImportResult
from ingestion.store import Destination, TableStore

__all__ = [
    "DEFAULT_COMMIT_SIZE",
    "Column",
    "ColumnMap",
    "CsvImporter",
    "Destination",
    "FieldError",
    "ImportAction",
    "ImportCancelled",
    "ImportConfigurationError",
    "ImportResult",
    "MapperRegistry",
    "TableStore",
    "import_csv",
    "positional_mapper",
]
