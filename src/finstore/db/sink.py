"""Insertion sinks.

A sink accepts serialized records addressed at a destination name.  The
ingestion pipeline never builds SQL itself; it hands JSON text produced
by :func:`finstore.records.serialize` to a sink.

:class:`SqlSink` persists records with SQLAlchemy Core.  Destination
tables are created on first use from the keys of the first record
written to them, using column type hints derived from the record
models.  Existing tables are reflected.  On dialects without a native
decimal type, such as SQLite, decimals are stored as exact text.
Schema changes to existing tables are out of scope: a record with
columns unknown to its table is rejected.
"""

from __future__ import annotations

import abc
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import SinkError

logger = logging.getLogger(__name__)

_SQL_TYPES: Dict[type, Any] = {
    Decimal: sa.Numeric,
    bool: sa.Boolean,
    int: sa.BigInteger,
    float: sa.Float,
    str: sa.Text,
}

# Columns whose type does not depend on the record model.
_FIXED_COLUMN_TYPES: Dict[str, type] = {
    "inserted_at": datetime,
    "timestamp": int,
}


class DecimalText(sa.types.TypeDecorator):
    """Exact decimal stored as text.

    Used on dialects without a native decimal type, where SQLite for
    example would give a ``NUMERIC`` column REAL affinity.
    """

    impl = sa.String
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Optional[str]:
        return None if value is None else str(value)

    def process_result_value(self, value: Any, dialect: Any) -> Optional[Decimal]:
        return None if value is None else Decimal(value)


class Sink(abc.ABC):
    """Interface for insertion sinks."""

    @abc.abstractmethod
    def insert(self, destination: str, serialized: str) -> None:
        """Insert a single serialized record into ``destination``.

        Raises:
            SinkError: If the record could not be written.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def insert_many(self, destination: str, serialized: Sequence[str]) -> int:
        """Insert a group of serialized records into ``destination``.

        Returns:
            The number of records written.

        Raises:
            SinkError: If the group could not be written.
        """
        raise NotImplementedError


class SqlSink(Sink):
    """Sink writing records into relational tables via SQLAlchemy Core."""

    def __init__(
        self,
        engine: Engine,
        column_types: Optional[Mapping[str, type]] = None,
    ) -> None:
        """Initialize the sink.

        Args:
            engine: A SQLAlchemy engine connected to the target database.
            column_types: Mapping of column name to the Python type of its
                values (see :func:`finstore.records.column_python_types`).
                Columns without a hint are typed from the first value
                written to them.
        """
        self.engine = engine
        self.column_types: Dict[str, type] = dict(column_types or {})
        self.column_types.update(_FIXED_COLUMN_TYPES)
        self.metadata = sa.MetaData()
        self._tables: Dict[str, sa.Table] = {}

    def open(self) -> None:
        """Verify that the database can be reached.

        Raises:
            SinkError: If no connection can be established.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(sa.text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise SinkError(f"Could not open database {self.engine.url}: {exc}") from exc

    def insert(self, destination: str, serialized: str) -> None:
        self.insert_many(destination, [serialized])

    def insert_many(self, destination: str, serialized: Sequence[str]) -> int:
        if not serialized:
            return 0
        rows = [_decode(item) for item in serialized]
        try:
            table = self._table(destination, rows)
            prepared = [self._coerce(table, row) for row in rows]
        except (ValueError, ArithmeticError) as exc:
            raise SinkError(f"Record for {destination} has invalid values: {exc}") from exc
        except SQLAlchemyError as exc:
            raise SinkError(f"Cannot prepare table {destination}: {exc}") from exc
        try:
            # One transaction per group
            with self.engine.begin() as conn:
                conn.execute(table.insert(), prepared)
        except SQLAlchemyError as exc:
            raise SinkError(f"Insert into {destination} failed: {exc}") from exc
        logger.debug("Inserted %d row(s) into %s", len(prepared), destination)
        return len(prepared)

    def _table(self, destination: str, rows: Sequence[Mapping[str, Any]]) -> sa.Table:
        table = self._tables.get(destination)
        if table is None:
            if sa.inspect(self.engine).has_table(destination):
                table = sa.Table(destination, self.metadata, autoload_with=self.engine)
                for column in table.c:
                    if self._stores_decimal_as_text(column):
                        column.type = DecimalText()
            else:
                columns = [
                    sa.Column(name, self._sql_type(name, value))
                    for name, value in rows[0].items()
                ]
                table = sa.Table(destination, self.metadata, *columns)
                self.metadata.create_all(self.engine, tables=[table], checkfirst=True)
                logger.info("Created table %s with %d column(s)", destination, len(columns))
            self._tables[destination] = table
        unknown = sorted(set().union(*rows) - set(table.c.keys()))
        if unknown:
            raise SinkError(
                f"Table {destination} has no column(s) {', '.join(unknown)}"
            )
        return table

    def _sql_type(self, name: str, value: Any) -> Any:
        py_type = self.column_types.get(name)
        if py_type is None:
            py_type = type(value) if value is not None else str
        if py_type is datetime:
            return sa.DateTime(timezone=True)
        if py_type is Decimal and not self.engine.dialect.supports_native_decimal:
            return DecimalText()
        return _SQL_TYPES.get(py_type, sa.Text)()

    def _stores_decimal_as_text(self, column: sa.Column) -> bool:
        return (
            self.column_types.get(column.name) is Decimal
            and isinstance(column.type, sa.String)
            and not self.engine.dialect.supports_native_decimal
        )

    @staticmethod
    def _coerce(table: sa.Table, row: Mapping[str, Any]) -> Dict[str, Any]:
        # JSON carries decimals and datetimes as strings
        coerced: Dict[str, Any] = {}
        for name, value in row.items():
            column_type = table.c[name].type
            if value is not None:
                if isinstance(column_type, sa.DateTime) and isinstance(value, str):
                    value = _parse_datetime(value)
                elif isinstance(column_type, DecimalText):
                    value = Decimal(str(value))
                elif (
                    isinstance(column_type, sa.Numeric)
                    and not isinstance(column_type, sa.Float)
                    and not isinstance(value, Decimal)
                ):
                    value = Decimal(str(value))
            coerced[name] = value
        return coerced


class RecordingSink(Sink):
    """Sink that keeps serialized records in memory.

    Used for dry runs and tests.  Records are kept per destination in
    insertion order.
    """

    def __init__(self) -> None:
        self.records: List[Tuple[str, str]] = []

    def insert(self, destination: str, serialized: str) -> None:
        self.records.append((destination, serialized))

    def insert_many(self, destination: str, serialized: Sequence[str]) -> int:
        for item in serialized:
            self.records.append((destination, item))
        return len(serialized)

    def rows(self, destination: str) -> List[Dict[str, Any]]:
        """Return the decoded records written to ``destination``."""
        return [_decode(item) for dest, item in self.records if dest == destination]

    def counts(self) -> Dict[str, int]:
        """Return the number of records written per destination."""
        counts: Dict[str, int] = {}
        for dest, _ in self.records:
            counts[dest] = counts.get(dest, 0) + 1
        return counts


def _decode(serialized: str) -> Dict[str, Any]:
    try:
        row = json.loads(serialized, parse_float=Decimal)
    except ValueError as exc:
        raise SinkError(f"Record is not valid JSON: {exc}") from exc
    if not isinstance(row, dict):
        raise SinkError("Record must serialize to a JSON object")
    return row


def _parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, treating a trailing ``Z`` as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
