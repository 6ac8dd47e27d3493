# tests/test_database.py
import sqlite3
import threading
import time

import pytest

from booker_ledger.constants import SCHEMA_VERSION
from booker_ledger.database import Database, open_database
from booker_ledger.database.errors import NotInitializedError, ReferenceNotFound, TransientStorageError
from booker_ledger.database.schema import TABLES
from booker_ledger.database.versioning import get_current_version


def _locked():
    return sqlite3.OperationalError("database is locked")


def _flaky(failures):
    """op that raises a lock error `failures` times, then returns 'ok'."""
    calls = {"n": 0}

    def op(conn):
        calls["n"] += 1
        if calls["n"] <= failures:
            raise _locked()
        return "ok"

    return op, calls


# ---------- lifecycle ----------

def test_initialize_applies_schema_and_pragmas(db):
    conn = db.connection
    names = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert set(TABLES) <= names
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    assert conn.execute("PRAGMA journal_mode").fetchone()[0].lower() == "wal"
    assert get_current_version(conn) == SCHEMA_VERSION


def test_initialize_is_idempotent(db):
    first = db.connection
    assert db.initialize() is first


def test_use_before_initialize_raises(tmp_path):
    handle = Database(str(tmp_path / "x.db"))
    assert not handle.is_initialized
    with pytest.raises(NotInitializedError):
        handle.select("SELECT 1")
    with pytest.raises(NotInitializedError):
        handle.get_connection()


def test_shutdown_then_reinitialize(tmp_path):
    handle = Database(str(tmp_path / "x.db"))
    handle.initialize()
    handle.execute(
        "INSERT INTO companies (id, name, created_at, updated_at) VALUES ('c1', 'A', 't', 't')"
    )
    handle.shutdown()
    assert not handle.is_initialized
    handle.shutdown()  # second call is a no-op

    handle.initialize()
    try:
        assert handle.scalar("SELECT name FROM companies WHERE id='c1'") == "A"
    finally:
        handle.shutdown()


def test_open_database_uses_explicit_path(tmp_path):
    target = tmp_path / "nested" / "ledger.db"
    handle = open_database(target)
    try:
        assert handle.is_initialized
        assert target.exists()
    finally:
        handle.shutdown()


def test_open_database_reads_env(tmp_path, monkeypatch):
    target = tmp_path / "env.db"
    monkeypatch.setenv("BOOKER_LEDGER_DB_PATH", str(target))
    handle = open_database()
    try:
        assert handle.path == str(target.resolve())
    finally:
        handle.shutdown()


def test_connection_setup_retries_with_fixed_delay(tmp_path, monkeypatch):
    delays = []
    handle = Database(str(tmp_path / "x.db"), sleep=delays.append)
    real_open = handle._open
    calls = {"n": 0}

    def flaky_open():
        calls["n"] += 1
        if calls["n"] < 3:
            raise sqlite3.OperationalError("unable to open database file")
        return real_open()

    monkeypatch.setattr(handle, "_open", flaky_open)
    try:
        handle.initialize()
        assert handle.is_initialized
        assert calls["n"] == 3
        assert delays == [1.0, 1.0]
    finally:
        handle.shutdown()


def test_connection_setup_gives_up_after_three_attempts(tmp_path, monkeypatch):
    delays = []
    handle = Database(str(tmp_path / "x.db"), sleep=delays.append)

    def broken_open():
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(handle, "_open", broken_open)
    with pytest.raises(sqlite3.OperationalError):
        handle.initialize()
    assert delays == [1.0, 1.0]
    assert not handle.is_initialized


def test_concurrent_initialize_opens_one_connection(tmp_path, monkeypatch):
    handle = Database(str(tmp_path / "x.db"))
    real_open = handle._open
    opened = []
    gate = threading.Event()

    def slow_open():
        opened.append(threading.get_ident())
        gate.wait(timeout=5)
        return real_open()

    monkeypatch.setattr(handle, "_open", slow_open)
    results = []
    threads = [threading.Thread(target=lambda: results.append(handle.initialize())) for _ in range(5)]
    try:
        for t in threads:
            t.start()
        time.sleep(0.1)
        gate.set()
        for t in threads:
            t.join(timeout=5)
        assert len(opened) == 1
        assert len(results) == 5
        assert all(conn is results[0] for conn in results)
    finally:
        gate.set()
        handle.shutdown()


# ---------- retry ----------

def test_lock_errors_are_retried_with_backoff(db, sleeps):
    op, calls = _flaky(2)
    assert db.execute_with_retry(op) == "ok"
    assert calls["n"] == 3
    assert sleeps == [1.0, 2.0]


def test_lock_errors_exhaust_into_transient_error(db, sleeps):
    op, calls = _flaky(10)
    with pytest.raises(TransientStorageError) as ei:
        db.execute_with_retry(op)
    assert ei.value.attempts == 3
    assert calls["n"] == 3
    assert sleeps == [1.0, 2.0]
    assert isinstance(ei.value.__cause__, sqlite3.OperationalError)


def test_busy_message_counts_as_lock_error(db, sleeps):
    calls = {"n": 0}

    def op(conn):
        calls["n"] += 1
        if calls["n"] == 1:
            raise sqlite3.OperationalError("SQLITE_BUSY: database is busy")
        return 1

    assert db.execute_with_retry(op) == 1
    assert sleeps == [1.0]


def test_other_errors_propagate_without_retry(db, sleeps):
    calls = {"n": 0}

    def op(conn):
        calls["n"] += 1
        raise sqlite3.IntegrityError("UNIQUE constraint failed")

    with pytest.raises(sqlite3.IntegrityError):
        db.execute_with_retry(op)
    assert calls["n"] == 1
    assert sleeps == []


def test_domain_errors_mentioning_a_lock_are_not_retried(db, sleeps):
    calls = {"n": 0}

    def op(conn):
        calls["n"] += 1
        raise ReferenceNotFound("product", "locked-sku")

    with pytest.raises(ReferenceNotFound):
        db.execute_with_retry(op)
    assert calls["n"] == 1
    assert sleeps == []


def test_unknown_product_id_with_lock_word_reaches_caller(orders, booker, sleeps):
    with pytest.raises(ReferenceNotFound):
        orders.create(booker.id, "2024-03-10", [{"product_id": "locked-sku", "quantity": 1}])
    assert sleeps == []


def test_no_retry_inside_open_transaction(db, sleeps):
    op, calls = _flaky(1)
    with pytest.raises(sqlite3.OperationalError):
        with db.transaction():
            db.execute_with_retry(op)
    assert calls["n"] == 1
    assert sleeps == []


# ---------- transactions ----------

def _company_count(db):
    return db.scalar("SELECT COUNT(*) FROM companies", default=0)


def test_transaction_commits(db):
    with db.transaction() as conn:
        conn.execute("INSERT INTO companies (id, name, created_at, updated_at) VALUES ('a', 'A', 't', 't')")
    assert _company_count(db) == 1
    assert not db.in_transaction


def test_transaction_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with db.transaction() as conn:
            conn.execute("INSERT INTO companies (id, name, created_at, updated_at) VALUES ('a', 'A', 't', 't')")
            raise RuntimeError("boom")
    assert _company_count(db) == 0
    assert not db.in_transaction


def test_nested_transaction_joins_outer(db):
    with pytest.raises(RuntimeError):
        with db.transaction() as outer:
            with db.transaction() as inner:
                assert inner is outer
                inner.execute(
                    "INSERT INTO companies (id, name, created_at, updated_at) VALUES ('a', 'A', 't', 't')"
                )
            assert db.in_transaction
            raise RuntimeError("outer fails")
    assert _company_count(db) == 0


def test_execute_transaction_returns_value(db):
    def work(conn):
        conn.execute("INSERT INTO companies (id, name, created_at, updated_at) VALUES ('a', 'A', 't', 't')")
        return conn.execute("SELECT COUNT(*) FROM companies").fetchone()[0]

    assert db.execute_transaction(work) == 1


def test_transaction_retried_when_another_writer_holds_the_lock(tmp_path):
    path = str(tmp_path / "contended.db")
    blocker = sqlite3.connect(path, isolation_level=None)
    released = []

    def release(delay):
        released.append(delay)
        if blocker.in_transaction:
            blocker.rollback()

    handle = Database(path, busy_timeout_ms=50, sleep=release)
    handle.initialize()
    try:
        blocker.execute("BEGIN IMMEDIATE")
        handle.execute_transaction(
            lambda conn: conn.execute(
                "INSERT INTO companies (id, name, created_at, updated_at) VALUES ('a', 'A', 't', 't')"
            )
        )
        assert released == [1.0]
        assert handle.scalar("SELECT COUNT(*) FROM companies") == 1
    finally:
        handle.shutdown()
        blocker.close()


def test_transaction_gives_up_when_lock_is_never_released(tmp_path):
    path = str(tmp_path / "contended.db")
    delays = []
    handle = Database(path, busy_timeout_ms=20, sleep=delays.append)
    handle.initialize()
    blocker = sqlite3.connect(path, isolation_level=None)
    try:
        blocker.execute("BEGIN IMMEDIATE")
        with pytest.raises(TransientStorageError):
            handle.execute_transaction(lambda conn: conn.execute("SELECT 1"))
        assert delays == [1.0, 2.0]
        assert not handle.in_transaction
    finally:
        blocker.rollback()
        blocker.close()
        handle.shutdown()


# ---------- health ----------

def test_health_check_ok(db):
    result = db.health_check()
    assert result["status"] in ("healthy", "degraded")
    assert result["latency_ms"] >= 0


def test_health_check_reports_error(tmp_path):
    # a directory cannot be opened as a database file
    handle = Database(str(tmp_path), connect_attempts=1)
    result = handle.health_check()
    assert result["status"] == "error"
    assert result["error"]


def test_two_creates_under_contention_both_land(tmp_path):
    from booker_ledger.database.repositories import (
        CompaniesRepo,
        OrderBookersRepo,
        OrdersRepo,
        ProductsRepo,
    )

    path = str(tmp_path / "contended.db")
    blocker = sqlite3.connect(path, isolation_level=None)

    def release(delay):
        if blocker.in_transaction:
            blocker.rollback()

    handle = Database(path, busy_timeout_ms=50, sleep=release)
    handle.initialize()
    try:
        company = CompaniesRepo(handle).create("Acme")
        product = ProductsRepo(handle).create(company.id, "P1", 100, 150, 24)
        booker = OrderBookersRepo(handle).create("Ahmed Ali")
        orders = OrdersRepo(handle)

        created = []
        for _ in range(2):
            blocker.execute("BEGIN IMMEDIATE")
            created.append(orders.create(booker.id, "2024-03-10", [{"product_id": product.id, "quantity": 24}]))

        assert len({o.id for o in created}) == 2
        assert handle.scalar("SELECT COUNT(*) FROM orders") == 2
        assert handle.scalar("SELECT COUNT(*) FROM order_items") == 2
    finally:
        handle.shutdown()
        blocker.close()


def test_init_schema_creates_tables_in_place(tmp_path):
    from booker_ledger.database.schema import init_schema

    target = tmp_path / "fresh" / "ledger.db"
    init_schema(target)
    init_schema(target)  # idempotent
    conn = sqlite3.connect(target)
    try:
        names = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    finally:
        conn.close()
    assert set(TABLES) <= names
