# booker_ledger/database/repositories/reporting_repo.py
from __future__ import annotations

import sqlite3
from typing import Iterable, Optional

from ..connection import Database
from .. import sql as q


class ReportingRepo:
    """
    Read-only queries for the report builders in modules/reports.

    Tables used: order_bookers, daily_entries, daily_entry_items, products,
    monthly_targets, orders, order_items.

    Date handling:
      • Callers pass ISO 'YYYY-MM-DD'; every range is inclusive on both ends.
      • ORDER BY sorts on the raw date column (no DATE() wrapper) so the
        date indexes stay usable.
      • Cartons in entry rows are quantity / unit_per_carton (fractional).
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # ----------------------------------------------------------------------
    # --------------------------- ORDER BOOKERS ----------------------------
    # ----------------------------------------------------------------------

    def order_bookers(
        self,
        order_booker_ids: Optional[Iterable[str]] = None,
        include_inactive: bool = False,
    ) -> list[sqlite3.Row]:
        w = q.Where().in_("id", order_booker_ids)
        if not include_inactive:
            w.eq("is_active", 1)
        return self.db.select(
            f"SELECT id, name, name_urdu, is_active FROM order_bookers{w.sql} ORDER BY name COLLATE NOCASE",
            w.params,
        )

    # ----------------------------------------------------------------------
    # --------------------------- DAILY ENTRIES ----------------------------
    # ----------------------------------------------------------------------

    def booker_sales(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> list[sqlite3.Row]:
        """
        One row per order booker with entries in [date_from, date_to]:
        sales, returns, net, cartons sold/returned, days worked, last sale date.
        """
        w = q.Where().date_range("de.date", date_from, date_to).in_("de.order_booker_id", order_booker_ids)
        sql = f"""
        WITH entry_cartons AS (
            SELECT
                i.daily_entry_id AS daily_entry_id,
                COALESCE(SUM(CAST(i.quantity_sold AS REAL) / p.unit_per_carton), 0.0)     AS cartons_sold,
                COALESCE(SUM(CAST(i.quantity_returned AS REAL) / p.unit_per_carton), 0.0) AS cartons_returned
            FROM daily_entry_items i
            JOIN products p ON p.id = i.product_id
            GROUP BY i.daily_entry_id
        )
        SELECT
            de.order_booker_id                         AS order_booker_id,
            COALESCE(SUM(de.total_amount), 0.0)        AS total_sales,
            COALESCE(SUM(de.total_return_amount), 0.0) AS total_returns,
            COALESCE(SUM(de.net_amount), 0.0)          AS net_sales,
            COALESCE(SUM(ec.cartons_sold), 0.0)        AS total_cartons,
            COALESCE(SUM(ec.cartons_returned), 0.0)    AS return_cartons,
            COUNT(DISTINCT de.date)                    AS days_worked,
            MAX(de.date)                               AS last_sale_date
        FROM daily_entries de
        LEFT JOIN entry_cartons ec ON ec.daily_entry_id = de.id
        {w.sql}
        GROUP BY de.order_booker_id
        """
        return self.db.select(sql, w.params)

    def daily_booker_sales(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> list[sqlite3.Row]:
        """Per (date, order booker) sums, oldest day first."""
        w = q.Where().date_range("de.date", date_from, date_to).in_("de.order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            de.date                                    AS date,
            de.order_booker_id                         AS order_booker_id,
            ob.name                                    AS order_booker_name,
            COALESCE(SUM(de.total_amount), 0.0)        AS total_sales,
            COALESCE(SUM(de.total_return_amount), 0.0) AS total_returns,
            COALESCE(SUM(de.net_amount), 0.0)          AS net_sales
        FROM daily_entries de
        JOIN order_bookers ob ON ob.id = de.order_booker_id
        {w.sql}
        GROUP BY de.date, de.order_booker_id, ob.name
        ORDER BY de.date, ob.name COLLATE NOCASE
        """
        return self.db.select(sql, w.params)

    def daily_cartons(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> list[sqlite3.Row]:
        """Per (date, order booker) cartons sold/returned."""
        w = q.Where().date_range("de.date", date_from, date_to).in_("de.order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            de.date            AS date,
            de.order_booker_id AS order_booker_id,
            COALESCE(SUM(CAST(i.quantity_sold AS REAL) / p.unit_per_carton), 0.0)     AS cartons_sold,
            COALESCE(SUM(CAST(i.quantity_returned AS REAL) / p.unit_per_carton), 0.0) AS cartons_returned
        FROM daily_entries de
        JOIN daily_entry_items i ON i.daily_entry_id = de.id
        JOIN products p ON p.id = i.product_id
        {w.sql}
        GROUP BY de.date, de.order_booker_id
        ORDER BY de.date
        """
        return self.db.select(sql, w.params)

    # ----------------------------------------------------------------------
    # ------------------------------ TARGETS -------------------------------
    # ----------------------------------------------------------------------

    def targets_between(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> list[sqlite3.Row]:
        """
        Targets of every calendar month touched by [date_from, date_to].
        Month keys compare as 'YYYY-MM' strings.
        """
        w = q.Where()
        w.add(
            "printf('%04d-%02d', mt.year, mt.month) BETWEEN ? AND ?",
            date_from[:7],
            date_to[:7],
        )
        w.in_("mt.order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            mt.order_booker_id AS order_booker_id,
            mt.year            AS year,
            mt.month           AS month,
            COALESCE(mt.target_amount, 0.0)   AS target_amount,
            COALESCE(mt.achieved_amount, 0.0) AS achieved_amount
        FROM monthly_targets mt
        {w.sql}
        ORDER BY mt.year, mt.month
        """
        return self.db.select(sql, w.params)

    # ----------------------------------------------------------------------
    # ------------------------- DAILY SALES REPORT -------------------------
    # ----------------------------------------------------------------------

    def product_sales(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> list[sqlite3.Row]:
        """
        One row per (product, item sell price, item cost price) for orders dated
        in the window. Quantities are units; cartons are the stored item ratios.
        """
        w = q.Where().date_range("o.order_date", date_from, date_to).in_("o.order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            p.id                                        AS product_id,
            p.name                                      AS product_name,
            c.name                                      AS company_name,
            p.unit_per_carton                           AS unit_per_carton,
            i.cost_price                                AS cost_price,
            i.sell_price                                AS sell_price,
            COALESCE(SUM(i.quantity), 0.0)              AS total_quantity,
            COALESCE(SUM(i.return_quantity), 0.0)       AS return_quantity,
            COALESCE(SUM(i.cartons), 0.0)               AS total_cartons,
            COALESCE(SUM(i.return_cartons), 0.0)        AS return_cartons,
            COALESCE(SUM(i.total_amount), 0.0)          AS total_amount,
            COALESCE(SUM(i.return_amount), 0.0)         AS return_amount,
            COALESCE(SUM(i.total_cost), 0.0)            AS total_cost,
            COALESCE(SUM(i.return_quantity * i.cost_price), 0.0) AS return_cost,
            COUNT(DISTINCT i.order_id)                  AS order_count
        FROM order_items i
        JOIN orders o    ON o.id = i.order_id
        JOIN products p  ON p.id = i.product_id
        LEFT JOIN companies c ON c.id = p.company_id
        {w.sql}
        GROUP BY p.id, p.name, c.name, p.unit_per_carton, i.sell_price, i.cost_price
        ORDER BY p.name COLLATE NOCASE, i.sell_price
        """
        return self.db.select(sql, w.params)

    # ----------------------------------------------------------------------
    # ------------------------------ DASHBOARD -----------------------------
    # ----------------------------------------------------------------------

    def order_totals(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> sqlite3.Row:
        """Header sums over orders dated in the window (always one row)."""
        w = q.Where().date_range("order_date", date_from, date_to).in_("order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            COALESCE(SUM(total_amount), 0.0)   AS revenue,
            COALESCE(SUM(total_cost), 0.0)     AS cost,
            COALESCE(SUM(total_profit), 0.0)   AS profit,
            COALESCE(SUM(total_cartons), 0.0)  AS cartons,
            COALESCE(SUM(return_cartons), 0.0) AS return_cartons,
            COUNT(id)                          AS order_count
        FROM orders
        {w.sql}
        """
        return self.db.select_one(sql, w.params)

    def daily_order_sales(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> list[sqlite3.Row]:
        """Order revenue and order count per day, oldest first."""
        w = q.Where().date_range("order_date", date_from, date_to).in_("order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            order_date                       AS date,
            COALESCE(SUM(total_amount), 0.0) AS sales,
            COUNT(id)                        AS orders
        FROM orders
        {w.sql}
        GROUP BY order_date
        ORDER BY order_date
        """
        return self.db.select(sql, w.params)

    def booker_order_sales(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> list[sqlite3.Row]:
        """Order revenue and order count per order booker with orders in the window."""
        w = q.Where().date_range("order_date", date_from, date_to).in_("order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            order_booker_id                  AS order_booker_id,
            COALESCE(SUM(total_amount), 0.0) AS revenue,
            COUNT(id)                        AS orders_count
        FROM orders
        {w.sql}
        GROUP BY order_booker_id
        """
        return self.db.select(sql, w.params)

    def product_returns(
        self,
        date_from: str,
        date_to: str,
        order_booker_ids: Optional[Iterable[str]] = None,
        limit: int = 5,
    ) -> list[sqlite3.Row]:
        """Products with returned order units in the window, highest return share first."""
        w = q.Where().date_range("o.order_date", date_from, date_to).in_("o.order_booker_id", order_booker_ids)
        sql = f"""
        SELECT
            p.id                                  AS product_id,
            p.name                                AS product_name,
            COALESCE(SUM(i.quantity), 0.0)        AS quantity,
            COALESCE(SUM(i.return_quantity), 0.0) AS return_quantity,
            COALESCE(SUM(i.cartons), 0.0)         AS cartons,
            COALESCE(SUM(i.return_cartons), 0.0)  AS return_cartons
        FROM order_items i
        JOIN orders o   ON o.id = i.order_id
        JOIN products p ON p.id = i.product_id
        {w.sql}
        GROUP BY p.id, p.name
        HAVING SUM(i.return_quantity) > 0
        ORDER BY SUM(i.return_quantity) / SUM(i.quantity) DESC, p.name COLLATE NOCASE
        LIMIT ?
        """
        return self.db.select(sql, [*w.params, int(limit)])
