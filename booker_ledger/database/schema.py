from pathlib import Path
import logging
import sqlite3
import sys

_log = logging.getLogger(__name__)

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== REFERENCE TABLES ======================== */

/* -------- companies -------- */
CREATE TABLE IF NOT EXISTS companies (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL CHECK (length(trim(name)) > 0),
    address    TEXT,
    email      TEXT,
    phone      TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_companies_name ON companies(name);

/* -------- products -------- */
CREATE TABLE IF NOT EXISTS products (
    id              TEXT PRIMARY KEY,
    company_id      TEXT NOT NULL,
    name            TEXT NOT NULL CHECK (length(trim(name)) > 0),
    cost_price      REAL NOT NULL CHECK (cost_price >= 0),
    sell_price      REAL NOT NULL CHECK (sell_price >= 0),
    unit_per_carton INTEGER NOT NULL CHECK (unit_per_carton >= 1),
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    FOREIGN KEY (company_id) REFERENCES companies(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_products_company ON products(company_id);
CREATE INDEX IF NOT EXISTS idx_products_name ON products(name);

/* -------- order bookers -------- */
CREATE TABLE IF NOT EXISTS order_bookers (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL CHECK (length(trim(name)) > 0),
    name_urdu  TEXT NOT NULL DEFAULT '',
    phone      TEXT NOT NULL DEFAULT '',
    email      TEXT,
    is_active  INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    join_date  TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_order_bookers_active ON order_bookers(is_active);
CREATE INDEX IF NOT EXISTS idx_order_bookers_name ON order_bookers(name);

/* ======================== DAILY ENTRIES ======================== */

CREATE TABLE IF NOT EXISTS daily_entries (
    id                  TEXT PRIMARY KEY,
    order_booker_id     TEXT NOT NULL,
    date                TEXT NOT NULL,
    notes               TEXT,
    total_amount        REAL NOT NULL DEFAULT 0,
    total_return_amount REAL NOT NULL DEFAULT 0,
    net_amount          REAL NOT NULL DEFAULT 0,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    FOREIGN KEY (order_booker_id) REFERENCES order_bookers(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_daily_entries_order_booker ON daily_entries(order_booker_id);
CREATE INDEX IF NOT EXISTS idx_daily_entries_date ON daily_entries(date);
CREATE INDEX IF NOT EXISTS idx_daily_entries_order_booker_date ON daily_entries(order_booker_id, date);

CREATE TABLE IF NOT EXISTS daily_entry_items (
    id                  TEXT PRIMARY KEY,
    daily_entry_id      TEXT NOT NULL,
    product_id          TEXT NOT NULL,
    quantity_sold       INTEGER NOT NULL DEFAULT 0 CHECK (quantity_sold >= 0),
    quantity_returned   INTEGER NOT NULL DEFAULT 0 CHECK (quantity_returned >= 0),
    net_quantity        INTEGER NOT NULL DEFAULT 0,
    cost_price_override REAL,
    sell_price_override REAL,
    total_cost          REAL NOT NULL DEFAULT 0,
    total_revenue       REAL NOT NULL DEFAULT 0,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    FOREIGN KEY (daily_entry_id) REFERENCES daily_entries(id) ON DELETE CASCADE,
    FOREIGN KEY (product_id)     REFERENCES products(id)
);
CREATE INDEX IF NOT EXISTS idx_daily_entry_items_entry ON daily_entry_items(daily_entry_id);
CREATE INDEX IF NOT EXISTS idx_daily_entry_items_product ON daily_entry_items(product_id);

/* ======================== ORDERS ======================== */

CREATE TABLE IF NOT EXISTS orders (
    id              TEXT PRIMARY KEY,
    order_booker_id TEXT NOT NULL,
    order_date      TEXT NOT NULL,
    supply_date     TEXT,
    status          TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending','supplied','completed')),
    notes           TEXT,
    total_amount    REAL NOT NULL DEFAULT 0,
    total_cost      REAL NOT NULL DEFAULT 0,
    total_profit    REAL NOT NULL DEFAULT 0,
    total_cartons   REAL NOT NULL DEFAULT 0,
    return_cartons  REAL NOT NULL DEFAULT 0,
    return_amount   REAL NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    FOREIGN KEY (order_booker_id) REFERENCES order_bookers(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_orders_order_booker ON orders(order_booker_id);
CREATE INDEX IF NOT EXISTS idx_orders_date ON orders(order_date);
CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status);

/* quantity/return_quantity are raw units; cartons are quantity / unit_per_carton */
CREATE TABLE IF NOT EXISTS order_items (
    id              TEXT PRIMARY KEY,
    order_id        TEXT NOT NULL,
    product_id      TEXT NOT NULL,
    quantity        REAL NOT NULL CHECK (quantity >= 0),
    cost_price      REAL NOT NULL CHECK (cost_price >= 0),
    sell_price      REAL NOT NULL CHECK (sell_price >= 0),
    total_cost      REAL NOT NULL DEFAULT 0,
    total_amount    REAL NOT NULL DEFAULT 0,
    profit          REAL NOT NULL DEFAULT 0,
    cartons         REAL NOT NULL DEFAULT 0,
    return_quantity REAL NOT NULL DEFAULT 0 CHECK (return_quantity >= 0),
    return_amount   REAL NOT NULL DEFAULT 0,
    return_cartons  REAL NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    FOREIGN KEY (order_id)   REFERENCES orders(id) ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(id)
);
CREATE INDEX IF NOT EXISTS idx_order_items_order ON order_items(order_id);
CREATE INDEX IF NOT EXISTS idx_order_items_product ON order_items(product_id);

/* ======================== TARGETS ======================== */

CREATE TABLE IF NOT EXISTS monthly_targets (
    id                     TEXT PRIMARY KEY,
    order_booker_id        TEXT NOT NULL,
    year                   INTEGER NOT NULL,
    month                  INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
    target_amount          REAL NOT NULL DEFAULT 0 CHECK (target_amount >= 0),
    achieved_amount        REAL NOT NULL DEFAULT 0,
    remaining_amount       REAL NOT NULL DEFAULT 0,
    achievement_percentage REAL NOT NULL DEFAULT 0,
    days_in_month          INTEGER NOT NULL,
    working_days_in_month  INTEGER NOT NULL,
    daily_target_amount    REAL NOT NULL DEFAULT 0,
    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL,
    FOREIGN KEY (order_booker_id) REFERENCES order_bookers(id) ON DELETE CASCADE,
    UNIQUE (order_booker_id, year, month)
);
CREATE INDEX IF NOT EXISTS idx_monthly_targets_order_booker ON monthly_targets(order_booker_id);
CREATE INDEX IF NOT EXISTS idx_monthly_targets_year_month ON monthly_targets(year, month);
"""

TABLES = (
    "companies",
    "products",
    "order_bookers",
    "daily_entries",
    "daily_entry_items",
    "orders",
    "order_items",
    "monthly_targets",
)


def apply_schema(conn: sqlite3.Connection) -> None:
    """Idempotent: everything is CREATE ... IF NOT EXISTS."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str = "ledger.db") -> None:
    """Create/upgrade a database file in place without opening a Database handle."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()
    finally:
        conn.close()
    _log.info("Schema applied to %s", db_path)


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "ledger.db"
    init_schema(target)
