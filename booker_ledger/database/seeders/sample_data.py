# booker_ledger/database/seeders/sample_data.py
"""
Demo data for a fresh ledger: two companies, a handful of products, five
order bookers with targets for the given month, a few daily entries and
orders. Does nothing when any company already exists.
"""
from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from ...utils.helpers import month_bounds
from ..connection import Database
from ..repositories import (
    CompaniesRepo,
    DailyEntriesRepo,
    MonthlyTargetsRepo,
    OrderBookersRepo,
    OrdersRepo,
    ProductsRepo,
)

_log = logging.getLogger(__name__)

COMPANIES = (
    ("Shan Foods", "Karachi", "sales@shanfoods.example", "+92-21-1111111"),
    ("National Foods", "Karachi", "orders@nfoods.example", "+92-21-2222222"),
)

# (company index, name, cost, sell, units per carton)
PRODUCTS = (
    (0, "Biryani Masala 50g", 95.0, 110.0, 144),
    (0, "Karahi Masala 50g", 90.0, 105.0, 144),
    (0, "Nihari Masala 60g", 100.0, 120.0, 72),
    (1, "Ketchup 800g", 320.0, 365.0, 12),
    (1, "Salt 800g", 55.0, 65.0, 24),
)

# (name, name in Urdu, phone, email, join date, monthly target)
ORDER_BOOKERS = (
    ("Ahmed Ali", "احمد علی", "+92-300-1234567", "ahmed.ali@email.com", "2024-01-15", 50000.0),
    ("Fatima Khan", "فاطمہ خان", "+92-301-2345678", "fatima.khan@email.com", "2024-02-01", 60000.0),
    ("Muhammad Hassan", "محمد حسن", "+92-302-3456789", "hassan@email.com", "2024-01-20", 45000.0),
    ("Sara Sheikh", "سارہ شیخ", "+92-303-4567890", "sara.sheikh@email.com", "2024-03-01", 55000.0),
    ("Ali Ahmed", "علی احمد", "+92-304-5678901", "ali.ahmed@email.com", "2024-02-15", 40000.0),
)


def seed(db: Database, year: int | None = None, month: int | None = None, days: int = 5, rng_seed: int = 7) -> bool:
    """Returns False when the database already had data."""
    if db.scalar("SELECT COUNT(*) FROM companies", default=0):
        _log.info("Sample data skipped: companies already present.")
        return False

    today = date.today()
    year = year or today.year
    month = month or today.month
    rng = random.Random(rng_seed)

    companies = CompaniesRepo(db)
    products = ProductsRepo(db)
    bookers = OrderBookersRepo(db)
    targets = MonthlyTargetsRepo(db)
    entries = DailyEntriesRepo(db)
    orders = OrdersRepo(db)

    company_ids = [companies.create(*c).id for c in COMPANIES]
    product_rows = [
        products.create(company_ids[ci], name, cost, sell, upc)
        for ci, name, cost, sell, upc in PRODUCTS
    ]
    booker_rows = [
        bookers.create(name, urdu, phone, email, join)
        for name, urdu, phone, email, join, _ in ORDER_BOOKERS
    ]
    targets.batch_create(
        {"order_booker_id": b.id, "year": year, "month": month, "target_amount": row[-1]}
        for b, row in zip(booker_rows, ORDER_BOOKERS)
    )

    start, end = month_bounds(year, month)
    first_day = date.fromisoformat(start)
    days = min(days, date.fromisoformat(end).day)
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        for b in booker_rows:
            picked = rng.sample(product_rows, k=3)
            items = []
            for p in picked:
                sold = rng.randint(1, 4) * p.unit_per_carton // 4 + rng.randint(0, 10)
                items.append({
                    "product_id": p.id,
                    "quantity_sold": sold,
                    "quantity_returned": rng.randint(0, sold // 10),
                })
            entries.create(b.id, day, items)

    for b in booker_rows[:3]:
        p1, p2 = rng.sample(product_rows, k=2)
        orders.create(
            b.id,
            first_day,
            [
                {"product_id": p1.id, "quantity": p1.unit_per_carton * rng.randint(1, 5)},
                {"product_id": p2.id, "quantity": p2.unit_per_carton * rng.randint(1, 5)},
            ],
            supply_date=first_day + timedelta(days=1),
            notes="Sample order",
        )

    _log.info(
        "Sample data seeded: %d companies, %d products, %d order bookers, %d days of entries.",
        len(company_ids), len(product_rows), len(booker_rows), days,
    )
    return True
