"""Shared test fixtures."""

import csv
from pathlib import Path

import pytest

from bulkload import create_service
from ingestion import Column, ColumnMap, Destination
from ingestion.mapping import to_int

PEOPLE_DDL = """
CREATE TABLE IF NOT EXISTS people (
    id    INTEGER PRIMARY KEY,
    age   INTEGER NOT NULL,
    name  TEXT    NOT NULL
);
"""


@pytest.fixture
def db_service(tmp_path):
    """Provide a fresh SQLite DatabaseService for each test."""
    db_path = tmp_path / "test.db"
    service = create_service(f"sqlite:///{db_path}")
    service.connect()
    yield service
    service.close()


@pytest.fixture
def people():
    """Destination for the people table; created on first use."""
    return Destination("people", ["id", "age", "name"], ddl=PEOPLE_DDL)


@pytest.fixture
def people_mapper():
    return ColumnMap([Column("id", to_int), Column("age", to_int), Column("name")])


@pytest.fixture
def write_csv(tmp_path):
    """Write rows to a CSV file under tmp_path and return its path."""

    def write(rows: list[list[str]], name: str = "people.csv", encoding: str = "utf-8") -> Path:
        csv_file = tmp_path / name
        with open(csv_file, "w", newline="", encoding=encoding) as f:
            csv.writer(f).writerows(rows)
        return csv_file

    return write


@pytest.fixture
def people_rows(db_service):
    """Current contents of the people table, ordered by id."""

    def fetch() -> list[dict]:
        with db_service.transaction():
            return db_service.execute("SELECT id, age, name FROM people ORDER BY id")

    return fetch
