"""Mapping raw CSV rows onto destination records.

A mapper is anything with ``map(row, row_index) -> tuple | FieldError``.
Bad data never raises: the first field that fails conversion is reported
back as a FieldError value and the importer decides what to do with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Protocol, Sequence

logger = logging.getLogger(__name__)

Converter = Callable[[str], Any]

CONVERSION_ERRORS = (ValueError, TypeError, ArithmeticError)

TRUE_VALUES = {"1", "true", "t", "yes", "y"}
FALSE_VALUES = {"0", "false", "f", "no", "n"}


@dataclass(frozen=True)
class FieldError:
    """A row rejected by a mapper.

    row_index is 1-based; field_index is 0-based like the row list itself.
    """

    row_index: int
    field_index: int
    field_value: str
    message: str

    def describe(self) -> str:
        return (
            f"Row {self.row_index}, column {self.field_index + 1} "
            f"has invalid value {self.field_value}. {self.message}"
        )


class RecordMapper(Protocol):
    def map(self, row: list[str], row_index: int) -> tuple | FieldError: ...


# --- Converters --------------------------------------------------------------


def to_int(value: str) -> int:
    return int(value)


def to_float(value: str) -> float:
    return float(value)


def to_decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"invalid decimal literal: {value!r}") from None


def to_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean literal: {value!r}")


def to_date(fmt: str = "%Y-%m-%d") -> Converter:
    """Parse dates in the given strptime format, e.g. to_date("%d/%m/%Y")."""

    def convert(value: str) -> date:
        return datetime.strptime(value, fmt).date()

    return convert


def to_datetime(fmt: str = "%Y-%m-%d %H:%M:%S") -> Converter:
    def convert(value: str) -> datetime:
        return datetime.strptime(value, fmt)

    return convert


def nullable(convert: Converter) -> Converter:
    """Empty fields become None instead of going through ``convert``."""

    def wrapped(value: str) -> Any:
        if value == "":
            return None
        return convert(value)

    return wrapped


# --- Column maps -------------------------------------------------------------


@dataclass
class Column:
    """One destination column and where its value comes from.

    Without an explicit index the column takes the field at its own position
    in the map. When the file has a header row, ``header`` (or the column
    name) is looked up in it instead.
    """

    name: str
    convert: Converter = str
    index: int | None = None
    header: str | None = None
    strip: bool = True


class ColumnMap:
    """Positional or header-driven mapping from CSV fields to a record tuple."""

    def __init__(self, columns: Sequence[Column], positions: Sequence[int] | None = None):
        if not columns:
            raise ValueError("A column map needs at least one column")
        self.columns = list(columns)
        if positions is None:
            positions = [
                col.index if col.index is not None else i for i, col in enumerate(self.columns)
            ]
        self._positions = list(positions)

    @property
    def names(self) -> list[str]:
        return [col.name for col in self.columns]

    def bind_header(self, header: list[str]) -> "ColumnMap":
        """Return a copy whose field positions are resolved from a header row.

        The map itself is left untouched, so a registered map can serve
        imports with and without headers. Columns with an explicit index keep
        it. Columns whose header is not found fall back to their position.
        """
        lookup = {h.lstrip("\ufeff").strip().lower(): i for i, h in enumerate(header)}
        positions = [
            col.index if col.index is not None else i for i, col in enumerate(self.columns)
        ]
        for i, col in enumerate(self.columns):
            if col.index is not None:
                continue
            key = (col.header or col.name).strip().lower()
            if key in lookup:
                positions[i] = lookup[key]
            else:
                logger.warning(
                    "Header %r not found; using field %d", col.header or col.name, i + 1
                )
        return ColumnMap(self.columns, positions)

    def map(self, row: list[str], row_index: int) -> tuple | FieldError:
        values = []
        for col, pos in zip(self.columns, self._positions):
            if pos >= len(row):
                return FieldError(
                    row_index, pos, "", f"Field is missing (row has {len(row)} fields)."
                )
            raw = row[pos]
            text = raw.strip() if col.strip else raw
            try:
                values.append(col.convert(text))
            except CONVERSION_ERRORS as e:
                return FieldError(row_index, pos, raw, f"{col.name}: {e}")
        return tuple(values)


def positional_mapper(columns: Sequence[str]) -> ColumnMap:
    """Default mapping: column i takes field i as text."""
    return ColumnMap([Column(name) for name in columns])


class MapperRegistry:
    """Mappers registered per destination table."""

    def __init__(self) -> None:
        self._maps: dict[str, RecordMapper] = {}

    def register(self, table: str, mapper: RecordMapper) -> None:
        self._maps[table] = mapper

    def has_map(self, table: str) -> bool:
        return table in self._maps

    def get_map(self, table: str) -> RecordMapper:
        try:
            return self._maps[table]
        except KeyError:
            raise KeyError(f"No mapper registered for table {table!r}") from None
