# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own temp-file SQLite DB (WAL needs a real file)
# - The Database handle never really sleeps in tests (retry delays are recorded)
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Small factory fixtures build the reference rows most tests need
# ---------------------------------------------------------------------

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from booker_ledger.database import Database
from booker_ledger.database.repositories import (
    CompaniesRepo,
    DailyEntriesRepo,
    MonthlyTargetsRepo,
    OrderBookersRepo,
    OrdersRepo,
    ProductsRepo,
    ReportingRepo,
)
from booker_ledger.utils.notifier import ChangeNotifier


# ---------- Storage ----------
@pytest.fixture()
def sleeps():
    """Delays the retry loop asked for, in order."""
    return []


@pytest.fixture()
def db(tmp_path, sleeps):
    handle = Database(str(tmp_path / "ledger.db"), sleep=sleeps.append)
    handle.initialize()
    try:
        yield handle
    finally:
        handle.shutdown()


# ---------- Qt ----------
@pytest.fixture()
def notifier(qapp):
    return ChangeNotifier()


# ---------- Repositories ----------
@pytest.fixture()
def companies(db):
    return CompaniesRepo(db)


@pytest.fixture()
def products(db):
    return ProductsRepo(db)


@pytest.fixture()
def bookers(db):
    return OrderBookersRepo(db)


@pytest.fixture()
def entries(db):
    return DailyEntriesRepo(db)


@pytest.fixture()
def orders(db):
    return OrdersRepo(db)


@pytest.fixture()
def targets(db):
    return MonthlyTargetsRepo(db)


@pytest.fixture()
def reporting(db):
    return ReportingRepo(db)


# ---------- Reference rows ----------
@pytest.fixture()
def company(companies):
    return companies.create("Acme Foods", address="Karachi", email="acme@example.com")


@pytest.fixture()
def product(products, company):
    """P1: 24 units per carton, cost 100, sell 150."""
    return products.create(company.id, "P1", cost_price=100, sell_price=150, unit_per_carton=24)


@pytest.fixture()
def loose_product(products, company):
    """Sold by the unit: one unit per carton."""
    return products.create(company.id, "Loose", cost_price=40, sell_price=50, unit_per_carton=1)


@pytest.fixture()
def booker(bookers):
    return bookers.create("Ahmed Ali", name_urdu="احمد علی", phone="+92-300-1234567", join_date="2024-01-15")
