# database/connection.py
"""
The single storage handle of the application.

`Database` owns exactly one sqlite3 connection. The entry point creates it,
calls initialize(), hands it to every repository and calls shutdown() on exit;
nothing in the package keeps a module-level connection.

Write policy
------------
- Single statements run in autocommit mode.
- Multi-statement writes go through transaction() / execute_transaction():
  BEGIN IMMEDIATE ... COMMIT, ROLLBACK on any exception.
- Lock/busy errors are retried with exponential backoff; everything else
  propagates unchanged.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

from ..constants import (
    BUSY_TIMEOUT_MS,
    CONNECT_ATTEMPTS,
    CONNECT_DELAY_SECONDS,
    HEALTH_DEGRADED_MS,
    RETRY_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
    SCHEMA_VERSION,
)
from . import schema as schema_module
from .errors import NotInitializedError, TransientStorageError
from .versioning import set_current_version

_log = logging.getLogger(__name__)

T = TypeVar("T")

_LOCK_MARKERS = ("locked", "busy", "sqlite_busy")


def is_lock_error(exc: BaseException) -> bool:
    """True when sqlite reports a lock/busy condition."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return any(m in message for m in _LOCK_MARKERS)


class Database:
    def __init__(
        self,
        path: str,
        *,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
        busy_timeout_ms: int = BUSY_TIMEOUT_MS,
        connect_attempts: int = CONNECT_ATTEMPTS,
        connect_delay: float = CONNECT_DELAY_SECONDS,
        apply_schema: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.path = str(path)
        self.retry_attempts = max(1, int(retry_attempts))
        self.retry_base_delay = float(retry_base_delay)
        self.busy_timeout_ms = int(busy_timeout_ms)
        self.connect_attempts = max(1, int(connect_attempts))
        self.connect_delay = float(connect_delay)
        self.apply_schema = apply_schema
        self._sleep = sleep

        self._conn: Optional[sqlite3.Connection] = None
        self._init_lock = threading.Lock()
        self._tx_depth = 0

    # ---------------------------- lifecycle ----------------------------

    def initialize(self) -> sqlite3.Connection:
        """
        Open the connection once. Callers arriving while another caller is
        connecting block on the same lock and get the connection it opened.
        """
        if self._conn is not None:
            return self._conn
        with self._init_lock:
            if self._conn is not None:
                return self._conn

            last_error: Optional[sqlite3.Error] = None
            for attempt in range(1, self.connect_attempts + 1):
                try:
                    self._conn = self._open()
                    _log.info("Database ready at %s", self.path)
                    return self._conn
                except sqlite3.Error as e:
                    last_error = e
                    _log.warning(
                        "Database open failed (attempt %d/%d): %s",
                        attempt, self.connect_attempts, e,
                    )
                    if attempt < self.connect_attempts:
                        self._sleep(self.connect_delay)
            assert last_error is not None
            raise last_error

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.path,
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,
            check_same_thread=False,
        )
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL;")
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms:d};")
            conn.execute("PRAGMA foreign_keys = ON;")
            if self.apply_schema:
                schema_module.apply_schema(conn)
                set_current_version(conn, SCHEMA_VERSION)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotInitializedError()
        return self._conn

    def get_connection(self) -> sqlite3.Connection:
        return self.connection

    def shutdown(self) -> None:
        """Best-effort optimize + close. A later initialize() reopens."""
        conn, self._conn = self._conn, None
        self._tx_depth = 0
        if conn is None:
            return
        try:
            conn.execute("PRAGMA optimize;")
        except sqlite3.Error as e:
            _log.debug("PRAGMA optimize skipped: %s", e)
        try:
            conn.close()
        except sqlite3.Error as e:
            _log.warning("Closing database failed: %s", e)
        _log.info("Database closed: %s", self.path)

    close = shutdown

    def __enter__(self) -> "Database":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ---------------------------- retry ----------------------------

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    def execute_with_retry(self, op: Callable[[sqlite3.Connection], T]) -> T:
        """
        Run op(conn). Lock/busy errors are retried up to `retry_attempts`
        times in total, sleeping base, 2*base, 4*base... between attempts.
        Inside an open transaction op runs once; the transaction owner retries.
        """
        conn = self.connection
        if self.in_transaction:
            return op(conn)

        for attempt in range(self.retry_attempts):
            try:
                return op(conn)
            except Exception as e:
                if not is_lock_error(e):
                    raise
                if attempt + 1 >= self.retry_attempts:
                    _log.error("Storage still busy after %d attempts: %s", attempt + 1, e)
                    raise TransientStorageError(attempts=attempt + 1) from e
                delay = self.retry_base_delay * (2 ** attempt)
                _log.warning(
                    "Storage busy (attempt %d/%d), retrying in %.2fs: %s",
                    attempt + 1, self.retry_attempts, delay, e,
                )
                self._sleep(delay)
        raise AssertionError("unreachable")

    # ---------------------------- transactions ----------------------------

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        BEGIN IMMEDIATE / COMMIT, ROLLBACK on any exit by exception.
        Nested use joins the outer transaction.
        """
        conn = self.connection
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield conn
            finally:
                self._tx_depth -= 1
            return

        conn.execute("BEGIN IMMEDIATE")
        self._tx_depth = 1
        try:
            yield conn
            conn.commit()
        except BaseException as e:
            try:
                conn.rollback()
            except sqlite3.Error as rb_err:
                _log.error("Rollback failed: %s", rb_err)
            _log.warning("Transaction rolled back: %s", e)
            raise
        finally:
            self._tx_depth = 0

    def execute_transaction(self, op: Callable[[sqlite3.Connection], T]) -> T:
        """Run op(conn) in one transaction; the whole transaction is lock-retried."""

        def run(conn: sqlite3.Connection) -> T:
            with self.transaction() as tx_conn:
                return op(tx_conn)

        return self.execute_with_retry(run)

    # ---------------------------- statements ----------------------------

    def select(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        _log.debug("select: %s %r", sql, params)
        return self.execute_with_retry(lambda c: c.execute(sql, tuple(params)).fetchall())

    def select_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        _log.debug("select_one: %s %r", sql, params)
        return self.execute_with_retry(lambda c: c.execute(sql, tuple(params)).fetchone())

    def scalar(self, sql: str, params: Sequence[Any] = (), default: Any = None) -> Any:
        row = self.select_one(sql, params)
        if row is None or row[0] is None:
            return default
        return row[0]

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        _log.debug("execute: %s %r", sql, params)
        return self.execute_with_retry(lambda c: c.execute(sql, tuple(params)))

    # ---------------------------- health ----------------------------

    def health_check(self) -> dict:
        """
        {'status': 'healthy'|'degraded'|'error', 'latency_ms': float, 'error'?: str}
        'degraded' means the round trip took HEALTH_DEGRADED_MS or longer.
        """
        started = time.perf_counter()
        try:
            self.initialize()
            self.select("SELECT 1 AS ok")
            self.execute_transaction(
                lambda c: c.execute("SELECT COUNT(*) FROM orders").fetchone()
            )
        except Exception as e:
            latency = (time.perf_counter() - started) * 1000.0
            _log.error("Health check failed: %s", e)
            return {"status": "error", "latency_ms": latency, "error": str(e)}
        latency = (time.perf_counter() - started) * 1000.0
        status = "healthy" if latency < HEALTH_DEGRADED_MS else "degraded"
        return {"status": status, "latency_ms": latency}


__all__ = ["Database", "is_lock_error"]
