"""Typed failures raised by the storage layer."""

from __future__ import annotations


class StorageError(Exception):
    """Base class for storage failures."""


class StorageUnavailable(StorageError):
    """The data directory or file cannot be created or opened."""


class SchemaCreationFailed(StorageError):
    """A create/drop statement failed; the sequence was rolled back."""


class IntegrityAnomaly(StorageError):
    """An expected linkage (e.g. the FTS back-reference) could not be established."""


class InvalidQuery(StorageError):
    """A full-text query that SQLite's FTS5 parser rejects."""
