# database/__init__.py
from __future__ import annotations

from pathlib import Path

from ..config import resolve_db_path
from .connection import Database, is_lock_error
from .errors import (
    CreationFailed,
    DomainError,
    NotFound,
    NotInitializedError,
    ReferenceNotFound,
    TransientStorageError,
    UpdateFailed,
    ValidationError,
)


def open_database(path: str | Path | None = None, **options) -> Database:
    """
    Build and initialize the application's Database handle:
      - WAL mode, busy_timeout, foreign_keys ON
      - row_factory = sqlite3.Row
      - schema applied idempotently, schema_version recorded
    The caller owns the handle and must shutdown() it.
    """
    db = Database(str(resolve_db_path(path)), **options)
    db.initialize()
    return db


__all__ = [
    "Database",
    "open_database",
    "is_lock_error",
    "DomainError",
    "NotInitializedError",
    "TransientStorageError",
    "ValidationError",
    "NotFound",
    "ReferenceNotFound",
    "CreationFailed",
    "UpdateFailed",
]
