# booker_ledger/database/repositories/daily_entries_repo.py
"""
Daily sales/returns sheets: one header per (order booker, day) plus one
item per product.

Totals are never inputs. Item figures come from the ledger calculations
(net-quantity basis) and the header is always re-derived from its items in
the same transaction that wrote them. Every write also refreshes the
booker's monthly target for the affected month(s).

Effective prices: the override when one was given (0 counts), otherwise
the product's current price at the time the item is (re)computed.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date as _date
from typing import Any, Iterable, Mapping, Optional
import sqlite3

from ...modules.ledger.calculations import (
    CartonBreakdown,
    MonthlyAnalytics,
    aggregate_monthly,
    cartons_from_units,
    daily_entry_item_totals,
    daily_entry_totals,
    resolve_price,
)
from ...utils.helpers import month_bounds, new_id, now_ts, year_month
from ...utils.notifier import fk_group, month_group
from .. import sql as q
from ..errors import CreationFailed, NotFound, ReferenceNotFound, UpdateFailed, ValidationError
from .base import BaseRepo, UNSET
from .monthly_targets_repo import refresh_achievement


@dataclass
class DailyEntryItem:
    id: str
    daily_entry_id: str
    product_id: str
    quantity_sold: int
    quantity_returned: int
    net_quantity: int
    cost_price_override: Optional[float]
    sell_price_override: Optional[float]
    total_cost: float
    total_revenue: float
    created_at: str
    updated_at: str
    product_name: str | None = None
    company_id: str | None = None
    unit_per_carton: int = 1
    cost_price: float = 0.0
    sell_price: float = 0.0

    @property
    def effective_cost_price(self) -> float:
        return resolve_price(self.cost_price_override, self.cost_price)

    @property
    def effective_sell_price(self) -> float:
        return resolve_price(self.sell_price_override, self.sell_price)

    @property
    def carton_breakdown(self) -> CartonBreakdown:
        """Net units kept by the shop as whole cartons plus loose units."""
        return cartons_from_units(self.net_quantity, self.unit_per_carton)


@dataclass
class DailyEntry:
    id: str
    order_booker_id: str
    date: str
    notes: str | None
    total_amount: float
    total_return_amount: float
    net_amount: float
    created_at: str
    updated_at: str
    order_booker_name: str | None = None
    items: list[DailyEntryItem] = field(default_factory=list)


@dataclass
class ReturnableItem:
    item_id: str
    daily_entry_id: str
    date: str
    product_id: str
    product_name: str
    quantity_sold: int
    quantity_returned: int
    returnable_quantity: int


_ENTRY_SELECT = """
    SELECT de.id, de.order_booker_id, de.date, de.notes, de.total_amount,
           de.total_return_amount, de.net_amount, de.created_at, de.updated_at,
           ob.name AS order_booker_name
    FROM daily_entries de
    LEFT JOIN order_bookers ob ON ob.id = de.order_booker_id
"""

_ITEM_SELECT = """
    SELECT i.id, i.daily_entry_id, i.product_id, i.quantity_sold, i.quantity_returned,
           i.net_quantity, i.cost_price_override, i.sell_price_override,
           i.total_cost, i.total_revenue, i.created_at, i.updated_at,
           p.name AS product_name, p.company_id, p.unit_per_carton,
           p.cost_price, p.sell_price
    FROM daily_entry_items i
    JOIN products p ON p.id = i.product_id
"""


class DailyEntriesRepo(BaseRepo):
    entity = "daily_entry"
    table = "daily_entries"

    # ---------------------------- validation ----------------------------

    @staticmethod
    def _ensure_quantity(value: Any, field_label: str) -> int:
        try:
            v = int(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{field_label} must be a whole number.") from e
        if v != float(value):
            raise ValidationError(f"{field_label} must be a whole number.")
        if v < 0:
            raise ValidationError(f"{field_label} cannot be negative.")
        return v

    def _ensure_override(self, value: Any, field_label: str) -> Optional[float]:
        if value is None:
            return None
        return self._ensure_non_negative(value, field_label)

    def _normalize_items(self, items: Iterable[Mapping]) -> list[dict]:
        out = []
        for raw in items or ():
            sold = self._ensure_quantity(raw.get("quantity_sold", 0), "Quantity sold")
            returned = self._ensure_quantity(raw.get("quantity_returned", 0) or 0, "Quantity returned")
            if returned > sold:
                raise ValidationError(
                    f"Quantity returned ({returned}) cannot exceed quantity sold ({sold})."
                )
            product_id = raw.get("product_id")
            if not product_id:
                raise ValidationError("Each item needs a product.")
            out.append({
                "product_id": product_id,
                "quantity_sold": sold,
                "quantity_returned": returned,
                "cost_price_override": self._ensure_override(raw.get("cost_price_override"), "Cost price"),
                "sell_price_override": self._ensure_override(raw.get("sell_price_override"), "Sell price"),
            })
        if not out:
            raise ValidationError("A daily entry needs at least one item.")
        return out

    # ---------------------------- write helpers (inside a transaction) ----------------------------

    def _product_prices(self, conn: sqlite3.Connection, product_id: str) -> sqlite3.Row:
        row = conn.execute(
            "SELECT cost_price, sell_price FROM products WHERE id=?", (product_id,)
        ).fetchone()
        if row is None:
            raise ReferenceNotFound("product", product_id)
        return row

    def _insert_items(self, conn: sqlite3.Connection, entry_id: str, items: list[dict]) -> None:
        now = now_ts()
        for it in items:
            prices = self._product_prices(conn, it["product_id"])
            t = daily_entry_item_totals(
                it["quantity_sold"],
                it["quantity_returned"],
                resolve_price(it["cost_price_override"], prices["cost_price"]),
                resolve_price(it["sell_price_override"], prices["sell_price"]),
            )
            sql, params = q.insert("daily_entry_items", {
                "id": new_id(),
                "daily_entry_id": entry_id,
                **it,
                "net_quantity": t.net_quantity,
                "total_cost": t.total_cost,
                "total_revenue": t.total_revenue,
                "created_at": now,
                "updated_at": now,
            })
            conn.execute(sql, params)

    def _recompute(self, conn: sqlite3.Connection, entry_id: str) -> None:
        """Re-derive every item and the header of one entry from stored quantities."""
        rows = conn.execute(
            """
            SELECT i.id, i.quantity_sold, i.quantity_returned,
                   i.cost_price_override, i.sell_price_override,
                   p.cost_price, p.sell_price
            FROM daily_entry_items i
            JOIN products p ON p.id = i.product_id
            WHERE i.daily_entry_id = ?
            """,
            (entry_id,),
        ).fetchall()
        now = now_ts()
        item_totals = []
        for r in rows:
            t = daily_entry_item_totals(
                r["quantity_sold"],
                r["quantity_returned"],
                resolve_price(r["cost_price_override"], r["cost_price"]),
                resolve_price(r["sell_price_override"], r["sell_price"]),
            )
            item_totals.append(t)
            conn.execute(
                "UPDATE daily_entry_items SET net_quantity=?, total_cost=?, total_revenue=?, updated_at=? "
                "WHERE id=?",
                (t.net_quantity, t.total_cost, t.total_revenue, now, r["id"]),
            )
        h = daily_entry_totals(item_totals)
        conn.execute(
            "UPDATE daily_entries SET total_amount=?, total_return_amount=?, net_amount=?, updated_at=? "
            "WHERE id=?",
            (h.total_amount, h.total_return_amount, h.net_amount, now, entry_id),
        )

    @staticmethod
    def _refresh_targets(conn: sqlite3.Connection, order_booker_id: str, *dates: str) -> None:
        for ym in {year_month(d) for d in dates}:
            refresh_achievement(conn, order_booker_id, *ym)

    def _notify_entry(self, entry_id: str, action: str, order_booker_id: str, *dates: str) -> None:
        groups = [month_group(d) for d in dates]
        groups.append(fk_group("order_booker", order_booker_id))
        self._notify(entry_id, action, groups)

    # ---------------------------- queries ----------------------------

    def _where(
        self,
        order_booker_ids: Iterable[str] | None = None,
        date_from: str | _date | None = None,
        date_to: str | _date | None = None,
        year: int | None = None,
        month: int | None = None,
    ) -> q.Where:
        w = q.Where().in_("de.order_booker_id", order_booker_ids)
        w.date_range(
            "de.date",
            self._ensure_date(date_from, "Start date") if date_from else None,
            self._ensure_date(date_to, "End date") if date_to else None,
        )
        if year is not None and month is not None:
            w.date_range("de.date", *month_bounds(year, month))
        elif year is not None:
            w.date_range("de.date", f"{int(year):04d}-01-01", f"{int(year):04d}-12-31")
        return w

    def list(
        self,
        order_booker_ids: Iterable[str] | None = None,
        date_from: str | _date | None = None,
        date_to: str | _date | None = None,
        year: int | None = None,
        month: int | None = None,
    ) -> list[DailyEntry]:
        """Most recent day first."""
        w = self._where(order_booker_ids, date_from, date_to, year, month)
        rows = self.db.select(_ENTRY_SELECT + w.sql + " ORDER BY de.date DESC, de.created_at DESC", w.params)
        return [DailyEntry(**r) for r in rows]

    def list_with_items(self, **filters) -> list[DailyEntry]:
        entries = self.list(**filters)
        if not entries:
            return entries
        by_id = {e.id: e for e in entries}
        w = q.Where().in_("i.daily_entry_id", by_id.keys())
        for r in self.db.select(_ITEM_SELECT + w.sql + " ORDER BY p.name COLLATE NOCASE", w.params):
            by_id[r["daily_entry_id"]].items.append(DailyEntryItem(**r))
        return entries

    def list_by_month(self, year: int, month: int) -> list[DailyEntry]:
        return self.list(year=year, month=month)

    def list_by_order_booker(
        self,
        order_booker_id: str,
        date_from: str | _date | None = None,
        date_to: str | _date | None = None,
    ) -> list[DailyEntry]:
        return self.list(order_booker_ids=[order_booker_id], date_from=date_from, date_to=date_to)

    def get(self, entry_id: str) -> DailyEntry | None:
        r = self.db.select_one(_ENTRY_SELECT + " WHERE de.id=?", (entry_id,))
        return DailyEntry(**r) if r else None

    def list_items(self, entry_id: str) -> list[DailyEntryItem]:
        rows = self.db.select(
            _ITEM_SELECT + " WHERE i.daily_entry_id=? ORDER BY p.name COLLATE NOCASE", (entry_id,)
        )
        return [DailyEntryItem(**r) for r in rows]

    def get_item(self, item_id: str) -> DailyEntryItem | None:
        r = self.db.select_one(_ITEM_SELECT + " WHERE i.id=?", (item_id,))
        return DailyEntryItem(**r) if r else None

    def get_with_items(self, entry_id: str) -> DailyEntry | None:
        entry = self.get(entry_id)
        if entry is not None:
            entry.items = self.list_items(entry_id)
        return entry

    def monthly_analytics(
        self,
        year: int,
        month: int,
        order_booker_ids: Iterable[str] | None = None,
    ) -> MonthlyAnalytics:
        """Month roll-up; a month without entries gives all zeros."""
        w = self._where(order_booker_ids, year=year, month=month)
        entries = self.db.select(
            f"SELECT de.total_amount, de.total_return_amount, de.net_amount FROM daily_entries de{w.sql}",
            w.params,
        )
        items = self.db.select(
            f"""
            SELECT i.quantity_sold, i.quantity_returned, i.net_quantity
            FROM daily_entry_items i
            JOIN daily_entries de ON de.id = i.daily_entry_id
            {w.sql}
            """,
            w.params,
        )
        return aggregate_monthly(entries, items)

    def returnable_items(
        self,
        order_booker_id: str,
        date_from: str | _date | None = None,
    ) -> list[ReturnableItem]:
        """Items the booker sold on or after `date_from` that still have units left to return."""
        w = q.Where().eq("de.order_booker_id", order_booker_id)
        w.gte("de.date", self._ensure_date(date_from, "Start date") if date_from else None)
        w.add("i.quantity_sold > i.quantity_returned")
        rows = self.db.select(
            f"""
            SELECT i.id AS item_id, i.daily_entry_id, de.date, i.product_id,
                   p.name AS product_name, i.quantity_sold, i.quantity_returned,
                   i.quantity_sold - i.quantity_returned AS returnable_quantity
            FROM daily_entry_items i
            JOIN daily_entries de ON de.id = i.daily_entry_id
            JOIN products p ON p.id = i.product_id
            {w.sql}
            ORDER BY de.date DESC, p.name COLLATE NOCASE
            """,
            w.params,
        )
        return [ReturnableItem(**r) for r in rows]

    # ---------------------------- mutations ----------------------------

    def create(
        self,
        order_booker_id: str,
        date: str | _date,
        items: Iterable[Mapping],
        notes: str | None = None,
    ) -> DailyEntry:
        """
        Header with zero totals -> items -> header totals -> target refresh,
        all in one transaction.
        """
        day = self._ensure_date(date, "Entry date")
        clean = self._normalize_items(items)
        entry_id = new_id()

        def work(conn: sqlite3.Connection) -> None:
            self._require_ref("order_bookers", "order booker", order_booker_id, conn)
            now = now_ts()
            sql, params = q.insert("daily_entries", {
                "id": entry_id,
                "order_booker_id": order_booker_id,
                "date": day,
                "notes": self._normalize_text(notes),
                "total_amount": 0.0,
                "total_return_amount": 0.0,
                "net_amount": 0.0,
                "created_at": now,
                "updated_at": now,
            })
            conn.execute(sql, params)
            self._insert_items(conn, entry_id, clean)
            self._recompute(conn, entry_id)
            self._refresh_targets(conn, order_booker_id, day)

        self._run_composite(work, CreationFailed)
        self._notify_entry(entry_id, "created", order_booker_id, day)
        return self.get_with_items(entry_id)  # type: ignore[return-value]

    def update(
        self,
        entry_id: str,
        *,
        notes=UNSET,
        date=UNSET,
        items: Iterable[Mapping] | None = None,
    ) -> DailyEntry:
        """
        `items` replaces every item of the entry. A notes-only update touches
        nothing but the notes column.
        """
        clean = self._normalize_items(items) if items is not None else None
        new_day = self._ensure_date(date, "Entry date") if date is not UNSET else None

        def work(conn: sqlite3.Connection) -> tuple[str, str]:
            row = conn.execute(
                "SELECT order_booker_id, date FROM daily_entries WHERE id=?", (entry_id,)
            ).fetchone()
            if row is None:
                raise NotFound(self.entity, entry_id)
            a = q.Assignments()
            if notes is not UNSET:
                a.set("notes", self._normalize_text(notes))
            if new_day is not None:
                a.set("date", new_day)
            if a:
                a.set("updated_at", now_ts())
                sql, params = q.update("daily_entries", a, "id", entry_id)
                conn.execute(sql, params)
            if clean is not None:
                conn.execute("DELETE FROM daily_entry_items WHERE daily_entry_id=?", (entry_id,))
                self._insert_items(conn, entry_id, clean)
                self._recompute(conn, entry_id)
            if clean is not None or new_day is not None:
                self._refresh_targets(conn, row["order_booker_id"], row["date"], new_day or row["date"])
            return row["order_booker_id"], row["date"]

        order_booker_id, old_day = self._run_composite(work, UpdateFailed)
        self._notify_entry(entry_id, "updated", order_booker_id, old_day, new_day or old_day)
        return self.get_with_items(entry_id)  # type: ignore[return-value]

    def update_item_return(self, item_id: str, quantity_returned: int) -> DailyEntryItem:
        """Record returns for one item; item and header totals are re-derived."""
        returned = self._ensure_quantity(quantity_returned, "Quantity returned")

        def work(conn: sqlite3.Connection) -> sqlite3.Row:
            row = conn.execute(
                """
                SELECT i.daily_entry_id, i.quantity_sold, de.order_booker_id, de.date
                FROM daily_entry_items i
                JOIN daily_entries de ON de.id = i.daily_entry_id
                WHERE i.id = ?
                """,
                (item_id,),
            ).fetchone()
            if row is None:
                raise NotFound("daily_entry_item", item_id)
            if returned > row["quantity_sold"]:
                raise ValidationError(
                    f"Quantity returned ({returned}) cannot exceed quantity sold ({row['quantity_sold']})."
                )
            conn.execute(
                "UPDATE daily_entry_items SET quantity_returned=? WHERE id=?", (returned, item_id)
            )
            self._recompute(conn, row["daily_entry_id"])
            self._refresh_targets(conn, row["order_booker_id"], row["date"])
            return row

        row = self._run_composite(work, UpdateFailed)
        self._notify_entry(row["daily_entry_id"], "updated", row["order_booker_id"], row["date"])
        return self.get_item(item_id)  # type: ignore[return-value]

    def delete(self, entry_id: str) -> None:
        def work(conn: sqlite3.Connection) -> sqlite3.Row:
            row = conn.execute(
                "SELECT order_booker_id, date FROM daily_entries WHERE id=?", (entry_id,)
            ).fetchone()
            if row is None:
                raise NotFound(self.entity, entry_id)
            conn.execute("DELETE FROM daily_entries WHERE id=?", (entry_id,))
            self._refresh_targets(conn, row["order_booker_id"], row["date"])
            return row

        row = self.db.execute_transaction(work)
        self._notify_entry(entry_id, "deleted", row["order_booker_id"], row["date"])
