"""CLI entry point for CSV imports.

Usage:
    python -m scripts.import_csv --db-url sqlite:///data.db --file data.csv \
        --table usage_data --columns date bill_id currency name \
        [--action replace] [--header] [--encoding latin-1] [--commit-size 50000]

--db-url falls back to the BULKLOAD_DB_URL environment variable.
"""

import argparse
import logging
import os
import signal
import sys
import threading

from bulkload import create_service
from ingestion import (
    CsvImporter,
    Destination,
    ImportAction,
    ImportCancelled,
    ImportConfigurationError,
)
from ingestion.importer import DEFAULT_COMMIT_SIZE
from ingestion.progress import LoggingProgress

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

EXIT_ERRORS = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import a CSV file into a database table")
    parser.add_argument(
        "--db-url",
        default=os.environ.get("BULKLOAD_DB_URL"),
        help="Database URL (sqlite:/// or postgresql://); defaults to $BULKLOAD_DB_URL",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to CSV file")
    source.add_argument("--url", help="HTTP(S) URL of a CSV document")
    parser.add_argument("--table", required=True, help="Destination table")
    parser.add_argument(
        "--columns", nargs="+", required=True, help="Destination columns, in file order"
    )
    parser.add_argument(
        "--conflict-columns", nargs="+", default=[], help="Upsert on these key columns"
    )
    parser.add_argument(
        "--action",
        choices=[a.value for a in ImportAction],
        default=ImportAction.APPEND.value,
        help="append to the table, or replace its contents",
    )
    parser.add_argument("--header", action="store_true", help="First row is a header")
    parser.add_argument("--encoding", default="utf-8", help="Text encoding of the source")
    parser.add_argument(
        "--commit-size", type=int, default=DEFAULT_COMMIT_SIZE, help="Rows per flush"
    )
    parser.add_argument(
        "--progress-every", type=int, default=10000, help="Log progress every N rows"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.db_url:
        logger.error("No database URL. Pass --db-url or set BULKLOAD_DB_URL.")
        return EXIT_CONFIG

    cancel = threading.Event()
    signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())

    destination = Destination(args.table, args.columns, args.conflict_columns)
    options = dict(
        encoding=args.encoding,
        has_header=args.header,
        progress=LoggingProgress(logger, every=args.progress_every),
        cancel=cancel,
    )

    service = create_service(args.db_url)
    service.connect()
    try:
        importer = CsvImporter(service, commit_size=args.commit_size)
        if args.file:
            result = importer.import_file(args.file, destination, args.action, **options)
        else:
            result = importer.import_url(args.url, destination, args.action, **options)
    except ImportConfigurationError as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    except ImportCancelled as e:
        logger.warning("%s", e)
        return EXIT_CANCELLED
    finally:
        service.close()

    for message in result.error_messages:
        logger.warning("%s", message)
    logger.info(
        "Done in %s. %d rows read, %d imported, %d errors.",
        result.duration,
        result.rows_read,
        result.rows_imported,
        len(result.error_messages),
    )
    return EXIT_ERRORS if result.error_messages else 0


if __name__ == "__main__":
    sys.exit(main())
