# database/repositories/base.py
from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Iterable, Optional, TypeVar

from ...utils.helpers import to_iso_date
from ...utils.notifier import ChangeNotifier
from ..connection import Database
from ..errors import (
    NotFound,
    ReferenceNotFound,
    TransientStorageError,
    ValidationError,
    _WrappedFailure,
)

_log = logging.getLogger(__name__)

T = TypeVar("T")

_PASS_THROUGH = (TransientStorageError, ValidationError, ReferenceNotFound, NotFound)


class _Unset:
    """Marks a keyword argument the caller did not pass (None is a real value)."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


class BaseRepo:
    entity = "record"
    table = ""

    def __init__(self, db: Database, notifier: Optional[ChangeNotifier] = None):
        self.db = db
        self.notifier = notifier

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip()

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> str:
        if value is None or str(value).strip() == "":
            raise ValidationError(f"{field_label} cannot be empty.")
        return str(value).strip()

    @staticmethod
    def _ensure_non_negative(value: float | None, field_label: str) -> float:
        try:
            v = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{field_label} must be a number.") from e
        if v < 0:
            raise ValidationError(f"{field_label} cannot be negative.")
        return v

    @staticmethod
    def _ensure_date(value, field_label: str) -> str:
        try:
            return to_iso_date(value)
        except ValueError as e:
            raise ValidationError(f"{field_label} must be a date (YYYY-MM-DD).") from e

    def _exists(self, table: str, row_id: object, conn: sqlite3.Connection | None = None) -> bool:
        sql = f"SELECT 1 FROM {table} WHERE id=? LIMIT 1"
        if conn is not None:
            return conn.execute(sql, (row_id,)).fetchone() is not None
        return self.db.select_one(sql, (row_id,)) is not None

    def _require_ref(
        self, table: str, entity: str, row_id: object, conn: sqlite3.Connection | None = None
    ) -> None:
        if row_id is None or not self._exists(table, row_id, conn):
            raise ReferenceNotFound(entity, row_id)

    def _run_composite(
        self,
        work: Callable[[sqlite3.Connection], T],
        failure: type[_WrappedFailure],
    ) -> T:
        """
        Run a multi-statement write as one retried transaction. Errors raised by
        our own checks pass through; anything else is wrapped in `failure` after
        rollback.
        """
        try:
            return self.db.execute_transaction(work)
        except _PASS_THROUGH:
            raise
        except Exception as e:
            _log.error("%s %s failed: %s", self.entity, failure.verb, e)
            raise failure(self.entity, e) from e

    def _notify(self, entity_id: object, action: str, groups: Iterable[str] = ()) -> None:
        if self.notifier is not None:
            self.notifier.notify(self.entity, entity_id, action, groups)
