"""Exceptions raised by the scalar reading store."""

from __future__ import annotations


class ScalarStoreError(Exception):
    """Base class for storage failures."""


class SchemaMigrationError(ScalarStoreError):
    """The on-disk schema could not be brought to the current version."""

    def __init__(self, message: str, version: int | None = None) -> None:
        super().__init__(message)
        self.version = version


class StorageIOError(ScalarStoreError):
    """The SQLite engine failed to read or write the database file."""
