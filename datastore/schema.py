"""Schema definition and version migrations for the scalar sensor table.

The schema version lives in SQLite's ``user_version`` header field. A fresh
file is created straight at :data:`CURRENT_VERSION`; older files are walked
forward one step at a time, each step committed together with its version
bump so an interrupted upgrade never reports a version it has not reached.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Tuple

from datastore.errors import SchemaMigrationError

logger = logging.getLogger(__name__)

TABLE_NAME = "scalar_sensors"
INDEX_NAME = "timestamp"

COLUMN_TAG = "tag"
COLUMN_TIMESTAMP = "timestampMillis"
COLUMN_VALUE = "value"
COLUMN_RESOLUTION_TIER = "resolutionTier"

V1_START = 1
V2_INDEX = 2
V3_TIER = 3
CURRENT_VERSION = V3_TIER

CREATE_TABLE_SQL = (
    f"CREATE TABLE {TABLE_NAME} ("
    f"{COLUMN_TAG} TEXT, "
    f"{COLUMN_TIMESTAMP} INTEGER, "
    f"{COLUMN_VALUE} REAL, "
    f"{COLUMN_RESOLUTION_TIER} INTEGER DEFAULT 0)"
)
CREATE_INDEX_SQL = f'CREATE INDEX "{INDEX_NAME}" ON {TABLE_NAME} ({COLUMN_TIMESTAMP})'
ADD_RESOLUTION_TIER_SQL = (
    f"ALTER TABLE {TABLE_NAME} ADD COLUMN {COLUMN_RESOLUTION_TIER} INTEGER DEFAULT 0"
)

MigrationStep = Callable[[sqlite3.Connection], None]


@contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block in an explicit write transaction.

    The connection must be in autocommit mode (``isolation_level=None``).
    """
    connection.execute("BEGIN IMMEDIATE")
    try:
        yield connection
    except BaseException:
        # SQLite may already have rolled back on its own (e.g. SQLITE_FULL).
        if connection.in_transaction:
            connection.execute("ROLLBACK")
        raise
    connection.execute("COMMIT")


def read_version(connection: sqlite3.Connection) -> int:
    row = connection.execute("PRAGMA user_version").fetchone()
    return int(row[0])


def _write_version(connection: sqlite3.Connection, version: int) -> None:
    # PRAGMA does not accept bound parameters.
    connection.execute(f"PRAGMA user_version = {int(version)}")


def _create_schema(connection: sqlite3.Connection) -> None:
    connection.execute(CREATE_TABLE_SQL)
    connection.execute(CREATE_INDEX_SQL)


def _add_timestamp_index(connection: sqlite3.Connection) -> None:
    connection.execute(CREATE_INDEX_SQL)


def _add_resolution_tier(connection: sqlite3.Connection) -> None:
    connection.execute(ADD_RESOLUTION_TIER_SQL)


MIGRATIONS: Dict[int, Tuple[int, MigrationStep]] = {
    V1_START: (V2_INDEX, _add_timestamp_index),
    V2_INDEX: (V3_TIER, _add_resolution_tier),
}


def _next_step(version: int) -> Tuple[int, MigrationStep]:
    if version == 0:
        return CURRENT_VERSION, _create_schema
    if version > CURRENT_VERSION:
        raise SchemaMigrationError(
            f"Database schema version {version} is newer than supported version "
            f"{CURRENT_VERSION}; refusing to downgrade.",
            version=version,
        )
    step = MIGRATIONS.get(version)
    if step is None:
        raise SchemaMigrationError(
            f"No migration registered for schema version {version}.", version=version
        )
    return step


def ensure_schema(connection: sqlite3.Connection) -> int:
    """Create or upgrade the schema and return the resulting version."""
    try:
        version = read_version(connection)
    except sqlite3.Error as exc:
        raise SchemaMigrationError(f"Unable to read schema version: {exc}") from exc

    while version != CURRENT_VERSION:
        next_version, step = _next_step(version)
        try:
            with transaction(connection):
                # Another process may have advanced the file since the last read.
                current = read_version(connection)
                if current != version:
                    version = current
                    continue
                step(connection)
                _write_version(connection, next_version)
        except sqlite3.Error as exc:
            raise SchemaMigrationError(
                f"Migration from schema version {version} to {next_version} failed: {exc}",
                version=version,
            ) from exc

        logger.info(
            "Applied schema step",
            extra={"from_version": version, "to_version": next_version},
        )
        version = next_version

    return version
