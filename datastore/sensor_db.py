"""SQLite-backed store for scalar sensor readings."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing, contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, Optional

from datastore.errors import StorageIOError
from datastore.schema import (
    COLUMN_RESOLUTION_TIER,
    COLUMN_TAG,
    COLUMN_TIMESTAMP,
    COLUMN_VALUE,
    TABLE_NAME,
    ensure_schema,
    transaction,
)
from datastore.selection import ANY_TIER, build_selection
from models.records import ScalarReading, ScalarReadingList, TimeRange
from settings import get_settings

logger = logging.getLogger(__name__)

_INSERT_SQL = (
    f"INSERT INTO {TABLE_NAME} "
    f"({COLUMN_TAG}, {COLUMN_TIMESTAMP}, {COLUMN_VALUE}, {COLUMN_RESOLUTION_TIER}) "
    "VALUES (?, ?, ?, ?)"
)

_FIRST_TAG_AFTER_SQL = (
    f"SELECT {COLUMN_TAG} FROM {TABLE_NAME} WHERE {COLUMN_TIMESTAMP} > ? "
    f"ORDER BY {COLUMN_TIMESTAMP} ASC, rowid ASC LIMIT 1"
)


class ScalarReadingStore:
    """Readings for many tags kept in one ``scalar_sensors`` table.

    Every public call opens its own connection, issues its statement and
    closes the connection before returning, so no cursor outlives a call and
    writers are serialized by SQLite's file locking. The schema is created or
    migrated when the store is constructed; a failure there raises
    :class:`~datastore.errors.SchemaMigrationError` and leaves no usable store.
    """

    def __init__(self, database_path: Path, busy_timeout: float = 5.0) -> None:
        self.database_path = database_path
        self.busy_timeout = busy_timeout
        try:
            database_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"Cannot create directory for {database_path}: {exc}") from exc
        with self._raw_connection() as connection:
            self.schema_version = ensure_schema(connection)
        logger.debug(
            "Opened scalar reading store",
            extra={"database_path": str(database_path), "to_version": self.schema_version},
        )

    def add_scalar_reading(
        self,
        tag: str,
        resolution_tier: int,
        timestamp_millis: int,
        value: float,
    ) -> None:
        with self._connection() as connection:
            connection.execute(_INSERT_SQL, (tag, timestamp_millis, value, resolution_tier))

    def add_scalar_readings(self, readings: Iterable[ScalarReading]) -> int:
        """Insert a batch of readings in one transaction and return the count."""
        rows = [
            (reading.tag, reading.timestamp_millis, reading.value, reading.resolution_tier)
            for reading in readings
        ]
        if not rows:
            return 0
        with self._connection() as connection, transaction(connection):
            connection.executemany(_INSERT_SQL, rows)
        logger.debug("Inserted reading batch", extra={"row_count": len(rows)})
        return len(rows)

    def get_scalar_readings(
        self,
        tag: str,
        time_range: TimeRange,
        resolution_tier: Optional[int] = 0,
        max_records: int = 0,
    ) -> ScalarReadingList:
        """Return readings for ``tag`` inside ``time_range``, fully materialized.

        ``max_records <= 0`` returns every matching row; a positive value is
        applied as a SQL ``LIMIT``. ``resolution_tier`` of ``None`` (or any
        negative value) matches all tiers.
        """
        selection = build_selection(tag, time_range, resolution_tier)
        direction = "DESC" if time_range.newest_first else "ASC"
        sql = (
            f"SELECT {COLUMN_TIMESTAMP}, {COLUMN_VALUE} FROM {TABLE_NAME} "
            f"WHERE {selection.clause} "
            f"ORDER BY {COLUMN_TIMESTAMP} {direction}, rowid {direction}"
        )
        params = selection.params
        if max_records > 0:
            sql += " LIMIT ?"
            params = params + (max_records,)

        with self._connection() as connection:
            with closing(connection.execute(sql, params)) as cursor:
                rows = cursor.fetchall()
        return ScalarReadingList.from_rows(rows)

    def get_first_tag_after(self, timestamp_millis: int) -> Optional[str]:
        """Tag of the earliest reading strictly after ``timestamp_millis``.

        Readings sharing that timestamp resolve to the one inserted first.
        """
        with self._connection() as connection:
            with closing(connection.execute(_FIRST_TAG_AFTER_SQL, (timestamp_millis,))) as cursor:
                row = cursor.fetchone()
        if row is None:
            return None
        return row[0]

    def delete_scalar_readings(self, tag: str, time_range: TimeRange) -> int:
        """Delete readings of every resolution tier for ``tag`` inside the range."""
        selection = build_selection(tag, time_range, ANY_TIER)
        sql = f"DELETE FROM {TABLE_NAME} WHERE {selection.clause}"
        with self._connection() as connection:
            with closing(connection.execute(sql, selection.params)) as cursor:
                deleted = cursor.rowcount
        logger.info("Deleted readings", extra={"tag": tag, "deleted": deleted})
        return deleted

    @contextmanager
    def _raw_connection(self) -> Iterator[sqlite3.Connection]:
        try:
            connection = sqlite3.connect(
                str(self.database_path),
                timeout=self.busy_timeout,
                isolation_level=None,
            )
        except sqlite3.Error as exc:
            raise StorageIOError(f"Cannot open database {self.database_path}: {exc}") from exc
        try:
            yield connection
        finally:
            connection.close()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        with self._raw_connection() as connection:
            try:
                yield connection
            except sqlite3.Error as exc:
                raise StorageIOError(
                    f"Database operation on {self.database_path} failed: {exc}"
                ) from exc


@lru_cache
def build_default_store(path: Optional[str] = None) -> ScalarReadingStore:
    settings = get_settings()
    database_path = settings.database_path if path is None else path
    return ScalarReadingStore(
        database_path=Path(database_path),
        busy_timeout=settings.busy_timeout,
    )
