# booker_ledger/database/repositories/orders_repo.py
"""
Orders booked by an order booker, with one item per product.

Quantities are raw units (an item may be given in cartons instead). Cartons are
quantity / unit_per_carton (fractional).
Item prices are stored on the item (they default to the product's prices at
booking time), so later product price changes never move an existing order.

Header totals are only written here, always re-derived from order_items in
the same transaction as the item change.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date as _date
from typing import Any, Iterable, Mapping, Optional
import sqlite3

from ...constants import ORDER_STATUSES
from ...modules.ledger.calculations import (
    CartonBreakdown,
    cartons_from_units,
    order_item_totals,
    order_totals,
    resolve_price,
    units_from_cartons,
)
from ...utils.helpers import new_id, now_ts
from ...utils.notifier import fk_group, month_group
from .. import sql as q
from ..errors import CreationFailed, NotFound, ReferenceNotFound, UpdateFailed, ValidationError
from .base import BaseRepo, UNSET


@dataclass
class OrderItem:
    id: str
    order_id: str
    product_id: str
    quantity: float
    cost_price: float
    sell_price: float
    total_cost: float
    total_amount: float
    profit: float
    cartons: float
    return_quantity: float
    return_amount: float
    return_cartons: float
    created_at: str
    updated_at: str
    product_name: str | None = None
    unit_per_carton: int = 1

    @property
    def carton_breakdown(self) -> CartonBreakdown:
        return cartons_from_units(self.quantity, self.unit_per_carton)


@dataclass
class Order:
    id: str
    order_booker_id: str
    order_date: str
    supply_date: str | None
    status: str
    notes: str | None
    total_amount: float
    total_cost: float
    total_profit: float
    total_cartons: float
    return_cartons: float
    return_amount: float
    created_at: str
    updated_at: str
    order_booker_name: str | None = None
    items: list[OrderItem] = field(default_factory=list)


@dataclass
class OrderSummary:
    total_orders: int = 0
    pending_orders: int = 0
    supplied_orders: int = 0
    completed_orders: int = 0
    total_amount: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    total_cartons: float = 0.0
    return_cartons: float = 0.0
    return_amount: float = 0.0


_ORDER_SELECT = """
    SELECT o.id, o.order_booker_id, o.order_date, o.supply_date, o.status, o.notes,
           o.total_amount, o.total_cost, o.total_profit, o.total_cartons,
           o.return_cartons, o.return_amount, o.created_at, o.updated_at,
           ob.name AS order_booker_name
    FROM orders o
    LEFT JOIN order_bookers ob ON ob.id = o.order_booker_id
"""

_ITEM_SELECT = """
    SELECT i.id, i.order_id, i.product_id, i.quantity, i.cost_price, i.sell_price,
           i.total_cost, i.total_amount, i.profit, i.cartons, i.return_quantity,
           i.return_amount, i.return_cartons, i.created_at, i.updated_at,
           p.name AS product_name, p.unit_per_carton
    FROM order_items i
    JOIN products p ON p.id = i.product_id
"""

_SORT_COLUMNS = {
    "order_date": "o.order_date",
    "supply_date": "o.supply_date",
    "total_amount": "o.total_amount",
    "total_cost": "o.total_cost",
    "total_profit": "o.total_profit",
    "total_cartons": "o.total_cartons",
    "status": "o.status",
    "created_at": "o.created_at",
    "updated_at": "o.updated_at",
}

_SCALAR_FIELDS = ("order_booker_id", "order_date", "supply_date", "status", "notes")


class OrdersRepo(BaseRepo):
    entity = "order"
    table = "orders"

    # ---------------------------- validation ----------------------------

    @staticmethod
    def _ensure_status(status: str) -> str:
        if status not in ORDER_STATUSES:
            raise ValidationError(
                f"Unknown order status {status!r}; expected one of {', '.join(ORDER_STATUSES)}."
            )
        return status

    def _ensure_quantity(self, value: Any, field_label: str, *, positive: bool = False) -> float:
        v = self._ensure_non_negative(value, field_label)
        if positive and v == 0:
            raise ValidationError(f"{field_label} must be greater than zero.")
        return v

    def _ensure_return(self, return_quantity: float, quantity: float) -> float:
        rq = self._ensure_quantity(return_quantity or 0, "Return quantity")
        if rq > quantity:
            raise ValidationError(
                f"Return quantity ({rq:g}) cannot exceed ordered quantity ({quantity:g})."
            )
        return rq

    def _normalize_item(self, raw: Mapping) -> dict:
        """An item gives either `quantity` in units or `cartons` of the product."""
        if not raw.get("product_id"):
            raise ValidationError("Each item needs a product.")
        quantity = raw.get("quantity")
        if quantity is None and raw.get("cartons") is not None:
            cartons = self._ensure_non_negative(raw["cartons"], "Cartons")
            quantity = units_from_cartons(cartons, self._unit_per_carton(raw["product_id"]))
        quantity = self._ensure_quantity(quantity, "Quantity", positive=True)
        return {
            "product_id": raw["product_id"],
            "quantity": quantity,
            "cost_price": (
                None if raw.get("cost_price") is None
                else self._ensure_non_negative(raw["cost_price"], "Cost price")
            ),
            "sell_price": (
                None if raw.get("sell_price") is None
                else self._ensure_non_negative(raw["sell_price"], "Sell price")
            ),
            "return_quantity": self._ensure_return(raw.get("return_quantity", 0), quantity),
        }

    def _unit_per_carton(self, product_id: str) -> int:
        row = self.db.select_one("SELECT unit_per_carton FROM products WHERE id=?", (product_id,))
        if row is None:
            raise ReferenceNotFound("product", product_id)
        return row["unit_per_carton"]

    # ---------------------------- write helpers (inside a transaction) ----------------------------

    def _product(self, conn: sqlite3.Connection, product_id: str) -> sqlite3.Row:
        row = conn.execute(
            "SELECT cost_price, sell_price, unit_per_carton FROM products WHERE id=?", (product_id,)
        ).fetchone()
        if row is None:
            raise ReferenceNotFound("product", product_id)
        return row

    def _insert_item(self, conn: sqlite3.Connection, order_id: str, item: dict) -> str:
        product = self._product(conn, item["product_id"])
        cost = resolve_price(item["cost_price"], product["cost_price"])
        sell = resolve_price(item["sell_price"], product["sell_price"])
        t = order_item_totals(
            item["quantity"], cost, sell, product["unit_per_carton"], item["return_quantity"]
        )
        now = now_ts()
        item_id = new_id()
        sql, params = q.insert("order_items", {
            "id": item_id,
            "order_id": order_id,
            "product_id": item["product_id"],
            "quantity": item["quantity"],
            "cost_price": cost,
            "sell_price": sell,
            "total_cost": t.total_cost,
            "total_amount": t.total_amount,
            "profit": t.profit,
            "cartons": t.cartons,
            "return_quantity": item["return_quantity"],
            "return_amount": t.return_amount,
            "return_cartons": t.return_cartons,
            "created_at": now,
            "updated_at": now,
        })
        conn.execute(sql, params)
        return item_id

    @staticmethod
    def _refresh_totals(conn: sqlite3.Connection, order_id: str) -> None:
        items = conn.execute(
            "SELECT total_amount, total_cost, cartons, return_cartons, return_amount "
            "FROM order_items WHERE order_id=?",
            (order_id,),
        ).fetchall()
        t = order_totals(items)
        conn.execute(
            """
            UPDATE orders
               SET total_amount=?, total_cost=?, total_profit=?, total_cartons=?,
                   return_cartons=?, return_amount=?, updated_at=?
             WHERE id=?
            """,
            (t.total_amount, t.total_cost, t.total_profit, t.total_cartons,
             t.return_cartons, t.return_amount, now_ts(), order_id),
        )

    def _order_keys(self, conn: sqlite3.Connection, order_id: str) -> sqlite3.Row:
        row = conn.execute(
            "SELECT order_booker_id, order_date FROM orders WHERE id=?", (order_id,)
        ).fetchone()
        if row is None:
            raise NotFound(self.entity, order_id)
        return row

    def _item_keys(self, conn: sqlite3.Connection, item_id: str) -> sqlite3.Row:
        row = conn.execute(
            """
            SELECT i.order_id, i.quantity, i.cost_price, i.sell_price, i.return_quantity,
                   p.unit_per_carton, o.order_booker_id, o.order_date
            FROM order_items i
            JOIN products p ON p.id = i.product_id
            JOIN orders o ON o.id = i.order_id
            WHERE i.id = ?
            """,
            (item_id,),
        ).fetchone()
        if row is None:
            raise NotFound("order_item", item_id)
        return row

    def _notify_order(self, order_id: str, action: str, order_booker_id: str, *dates: str) -> None:
        groups = [month_group(d) for d in dates]
        groups.append(fk_group("order_booker", order_booker_id))
        groups.append(fk_group("order", order_id))
        self._notify(order_id, action, groups)

    # ---------------------------- queries ----------------------------

    def _where(
        self,
        order_booker_id: str | None = None,
        order_booker_ids: Iterable[str] | None = None,
        status: str | None = None,
        date_from: str | _date | None = None,
        date_to: str | _date | None = None,
        search: str | None = None,
    ) -> q.Where:
        w = q.Where().eq("o.order_booker_id", order_booker_id).in_("o.order_booker_id", order_booker_ids)
        if status is not None:
            w.eq("o.status", self._ensure_status(status))
        w.date_range(
            "o.order_date",
            self._ensure_date(date_from, "Start date") if date_from else None,
            self._ensure_date(date_to, "End date") if date_to else None,
        )
        w.like_any(("o.notes", "ob.name"), search)
        return w

    def list(
        self,
        order_booker_id: str | None = None,
        order_booker_ids: Iterable[str] | None = None,
        status: str | None = None,
        date_from: str | _date | None = None,
        date_to: str | _date | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        descending: bool = True,
    ) -> list[Order]:
        w = self._where(order_booker_id, order_booker_ids, status, date_from, date_to, search)
        order = q.order_by(sort_by, _SORT_COLUMNS, "o.order_date DESC, o.created_at DESC", descending)
        rows = self.db.select(_ORDER_SELECT + w.sql + order, w.params)
        return [Order(**r) for r in rows]

    def get(self, order_id: str) -> Order | None:
        r = self.db.select_one(_ORDER_SELECT + " WHERE o.id=?", (order_id,))
        return Order(**r) if r else None

    def list_items(self, order_id: str) -> list[OrderItem]:
        rows = self.db.select(_ITEM_SELECT + " WHERE i.order_id=? ORDER BY i.created_at, p.name", (order_id,))
        return [OrderItem(**r) for r in rows]

    def get_item(self, item_id: str) -> OrderItem | None:
        r = self.db.select_one(_ITEM_SELECT + " WHERE i.id=?", (item_id,))
        return OrderItem(**r) if r else None

    def get_with_items(self, order_id: str) -> Order | None:
        order = self.get(order_id)
        if order is not None:
            order.items = self.list_items(order_id)
        return order

    def summary(
        self,
        order_booker_id: str | None = None,
        order_booker_ids: Iterable[str] | None = None,
        status: str | None = None,
        date_from: str | _date | None = None,
        date_to: str | _date | None = None,
        search: str | None = None,
    ) -> OrderSummary:
        """Counts per status and summed header totals over the filtered orders."""
        w = self._where(order_booker_id, order_booker_ids, status, date_from, date_to, search)
        r = self.db.select_one(
            f"""
            SELECT COUNT(*)                                              AS total_orders,
                   COALESCE(SUM(CASE WHEN o.status='pending'   THEN 1 ELSE 0 END), 0) AS pending_orders,
                   COALESCE(SUM(CASE WHEN o.status='supplied'  THEN 1 ELSE 0 END), 0) AS supplied_orders,
                   COALESCE(SUM(CASE WHEN o.status='completed' THEN 1 ELSE 0 END), 0) AS completed_orders,
                   COALESCE(SUM(o.total_amount), 0)   AS total_amount,
                   COALESCE(SUM(o.total_cost), 0)     AS total_cost,
                   COALESCE(SUM(o.total_profit), 0)   AS total_profit,
                   COALESCE(SUM(o.total_cartons), 0)  AS total_cartons,
                   COALESCE(SUM(o.return_cartons), 0) AS return_cartons,
                   COALESCE(SUM(o.return_amount), 0)  AS return_amount
            FROM orders o
            LEFT JOIN order_bookers ob ON ob.id = o.order_booker_id
            {w.sql}
            """,
            w.params,
        )
        return OrderSummary(**r) if r else OrderSummary()

    # ---------------------------- mutations ----------------------------

    def create(
        self,
        order_booker_id: str,
        order_date: str | _date,
        items: Iterable[Mapping] = (),
        supply_date: str | _date | None = None,
        notes: str | None = None,
        status: str = "pending",
    ) -> Order:
        """
        Header with zero totals -> items -> header totals, one transaction.
        A missing product anywhere in `items` leaves no order behind.
        """
        day = self._ensure_date(order_date, "Order date")
        supply = self._ensure_date(supply_date, "Supply date") if supply_date else None
        status = self._ensure_status(status)
        clean = [self._normalize_item(it) for it in items]
        order_id = new_id()

        def work(conn: sqlite3.Connection) -> None:
            self._require_ref("order_bookers", "order booker", order_booker_id, conn)
            now = now_ts()
            sql, params = q.insert("orders", {
                "id": order_id,
                "order_booker_id": order_booker_id,
                "order_date": day,
                "supply_date": supply,
                "status": status,
                "notes": self._normalize_text(notes),
                "created_at": now,
                "updated_at": now,
            })
            conn.execute(sql, params)
            for item in clean:
                self._insert_item(conn, order_id, item)
            self._refresh_totals(conn, order_id)

        self._run_composite(work, CreationFailed)
        self._notify_order(order_id, "created", order_booker_id, day)
        return self.get_with_items(order_id)  # type: ignore[return-value]

    def update(self, order_id: str, *, items: Iterable[Mapping] | None = None, **patch) -> Order:
        """
        Scalar columns: order_booker_id, order_date, supply_date, status, notes.
        `items` replaces every item of the order.
        """
        unknown = set(patch) - set(_SCALAR_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update order field(s): {', '.join(sorted(unknown))}.")
        a = q.Assignments()
        if "order_date" in patch:
            a.set("order_date", self._ensure_date(patch["order_date"], "Order date"))
        if "supply_date" in patch:
            a.set("supply_date", self._ensure_date(patch["supply_date"], "Supply date") if patch["supply_date"] else None)
        if "status" in patch:
            a.set("status", self._ensure_status(patch["status"]))
        if "notes" in patch:
            a.set("notes", self._normalize_text(patch["notes"]))
        if "order_booker_id" in patch:
            a.set("order_booker_id", patch["order_booker_id"])
        if a:
            a.set("updated_at", now_ts())
        clean = [self._normalize_item(it) for it in items] if items is not None else None

        def work(conn: sqlite3.Connection) -> sqlite3.Row:
            before = self._order_keys(conn, order_id)
            if "order_booker_id" in patch:
                self._require_ref("order_bookers", "order booker", patch["order_booker_id"], conn)
            if a:
                sql, params = q.update("orders", a, "id", order_id)
                conn.execute(sql, params)
            if clean is not None:
                conn.execute("DELETE FROM order_items WHERE order_id=?", (order_id,))
                for item in clean:
                    self._insert_item(conn, order_id, item)
                self._refresh_totals(conn, order_id)
            return before

        before = self._run_composite(work, UpdateFailed)
        after = self.get_with_items(order_id)
        self._notify_order(order_id, "updated", before["order_booker_id"], before["order_date"], after.order_date)
        if after.order_booker_id != before["order_booker_id"]:
            self._notify_order(order_id, "updated", after.order_booker_id)
        return after  # type: ignore[return-value]

    def add_item(
        self,
        order_id: str,
        product_id: str,
        quantity: float,
        cost_price: Optional[float] = None,
        sell_price: Optional[float] = None,
        return_quantity: float = 0,
    ) -> OrderItem:
        item = self._normalize_item({
            "product_id": product_id,
            "quantity": quantity,
            "cost_price": cost_price,
            "sell_price": sell_price,
            "return_quantity": return_quantity,
        })

        def work(conn: sqlite3.Connection) -> tuple[str, sqlite3.Row]:
            keys = self._order_keys(conn, order_id)
            item_id = self._insert_item(conn, order_id, item)
            self._refresh_totals(conn, order_id)
            return item_id, keys

        item_id, keys = self._run_composite(work, UpdateFailed)
        self._notify_order(order_id, "updated", keys["order_booker_id"], keys["order_date"])
        return self.get_item(item_id)  # type: ignore[return-value]

    def update_item(
        self,
        item_id: str,
        *,
        quantity=UNSET,
        cost_price=UNSET,
        sell_price=UNSET,
        return_quantity=UNSET,
    ) -> OrderItem:
        """
        Change one item; only that item and the order header are rewritten.
        Omitted fields keep their stored value.
        """
        def work(conn: sqlite3.Connection) -> sqlite3.Row:
            cur = self._item_keys(conn, item_id)
            qty = cur["quantity"] if quantity is UNSET else self._ensure_quantity(quantity, "Quantity", positive=True)
            cost = cur["cost_price"] if cost_price is UNSET else self._ensure_non_negative(cost_price, "Cost price")
            sell = cur["sell_price"] if sell_price is UNSET else self._ensure_non_negative(sell_price, "Sell price")
            rq = self._ensure_return(
                cur["return_quantity"] if return_quantity is UNSET else return_quantity, qty
            )
            t = order_item_totals(qty, cost, sell, cur["unit_per_carton"], rq)
            conn.execute(
                """
                UPDATE order_items
                   SET quantity=?, cost_price=?, sell_price=?, total_cost=?, total_amount=?,
                       profit=?, cartons=?, return_quantity=?, return_amount=?, return_cartons=?,
                       updated_at=?
                 WHERE id=?
                """,
                (qty, cost, sell, t.total_cost, t.total_amount, t.profit, t.cartons,
                 rq, t.return_amount, t.return_cartons, now_ts(), item_id),
            )
            self._refresh_totals(conn, cur["order_id"])
            return cur

        cur = self._run_composite(work, UpdateFailed)
        self._notify_order(cur["order_id"], "updated", cur["order_booker_id"], cur["order_date"])
        return self.get_item(item_id)  # type: ignore[return-value]

    def remove_item(self, item_id: str) -> None:
        def work(conn: sqlite3.Connection) -> sqlite3.Row:
            cur = self._item_keys(conn, item_id)
            conn.execute("DELETE FROM order_items WHERE id=?", (item_id,))
            self._refresh_totals(conn, cur["order_id"])
            return cur

        cur = self._run_composite(work, UpdateFailed)
        self._notify_order(cur["order_id"], "updated", cur["order_booker_id"], cur["order_date"])

    def delete(self, order_id: str) -> None:
        """Items cascade."""
        def work(conn: sqlite3.Connection) -> sqlite3.Row:
            keys = self._order_keys(conn, order_id)
            conn.execute("DELETE FROM orders WHERE id=?", (order_id,))
            return keys

        keys = self.db.execute_transaction(work)
        self._notify_order(order_id, "deleted", keys["order_booker_id"], keys["order_date"])
