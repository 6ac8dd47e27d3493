# booker_ledger/database/repositories/products_repo.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable
import sqlite3

from ...utils.helpers import new_id, now_ts
from ...utils.notifier import fk_group
from .. import sql as q
from ..errors import DomainError, NotFound, ValidationError
from .base import BaseRepo, UNSET


@dataclass
class Product:
    id: str
    company_id: str
    name: str
    cost_price: float
    sell_price: float
    unit_per_carton: int
    created_at: str
    updated_at: str
    company_name: str | None = None


_SELECT = """
    SELECT p.id, p.company_id, p.name, p.cost_price, p.sell_price, p.unit_per_carton,
           p.created_at, p.updated_at, c.name AS company_name
    FROM products p
    LEFT JOIN companies c ON c.id = p.company_id
"""

_SORT_COLUMNS = {
    "name": "p.name",
    "cost_price": "p.cost_price",
    "sell_price": "p.sell_price",
    "unit_per_carton": "p.unit_per_carton",
    "created_at": "p.created_at",
}


class ProductsRepo(BaseRepo):
    entity = "product"
    table = "products"

    @staticmethod
    def _ensure_upc(value) -> int:
        try:
            upc = int(value)
        except (TypeError, ValueError) as e:
            raise ValidationError("Units per carton must be a whole number.") from e
        if upc < 1 or upc != float(value):
            raise ValidationError("Units per carton must be a whole number of at least 1.")
        return upc

    # ---------------------------- Products ----------------------------

    def list(
        self,
        company_id: str | None = None,
        company_ids: Iterable[str] | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        descending: bool = False,
    ) -> list[Product]:
        w = q.Where().eq("p.company_id", company_id).in_("p.company_id", company_ids)
        w.like_any(("p.name", "c.name"), search)
        order = q.order_by(sort_by, _SORT_COLUMNS, "p.name COLLATE NOCASE ASC", descending)
        rows = self.db.select(_SELECT + w.sql + order, w.params)
        return [Product(**r) for r in rows]

    def list_by_company(self, company_id: str) -> list[Product]:
        return self.list(company_id=company_id)

    def get(self, product_id: str) -> Product | None:
        r = self.db.select_one(_SELECT + " WHERE p.id=?", (product_id,))
        return Product(**r) if r else None

    def create(
        self,
        company_id: str,
        name: str,
        cost_price: float,
        sell_price: float,
        unit_per_carton: int,
    ) -> Product:
        values = {
            "id": new_id(),
            "company_id": company_id,
            "name": self._ensure_non_empty(name, "Product name"),
            "cost_price": self._ensure_non_negative(cost_price, "Cost price"),
            "sell_price": self._ensure_non_negative(sell_price, "Sell price"),
            "unit_per_carton": self._ensure_upc(unit_per_carton),
            "created_at": now_ts(),
        }
        values["updated_at"] = values["created_at"]

        def work(conn: sqlite3.Connection) -> None:
            self._require_ref("companies", "company", company_id, conn)
            sql, params = q.insert("products", values)
            conn.execute(sql, params)

        self.db.execute_transaction(work)
        self._notify(values["id"], "created", [fk_group("company", company_id)])
        return self.get(values["id"])  # type: ignore[return-value]

    def update(
        self,
        product_id: str,
        *,
        company_id=UNSET,
        name=UNSET,
        cost_price=UNSET,
        sell_price=UNSET,
        unit_per_carton=UNSET,
    ) -> Product:
        a = q.Assignments()
        if name is not UNSET:
            a.set("name", self._ensure_non_empty(name, "Product name"))
        if cost_price is not UNSET:
            a.set("cost_price", self._ensure_non_negative(cost_price, "Cost price"))
        if sell_price is not UNSET:
            a.set("sell_price", self._ensure_non_negative(sell_price, "Sell price"))
        if unit_per_carton is not UNSET:
            a.set("unit_per_carton", self._ensure_upc(unit_per_carton))
        if company_id is not UNSET:
            a.set("company_id", company_id)
        a.set("updated_at", now_ts())

        def work(conn: sqlite3.Connection) -> str:
            row = conn.execute("SELECT company_id FROM products WHERE id=?", (product_id,)).fetchone()
            if row is None:
                raise NotFound(self.entity, product_id)
            if company_id is not UNSET:
                self._require_ref("companies", "company", company_id, conn)
            sql, params = q.update("products", a, "id", product_id)
            conn.execute(sql, params)
            return row["company_id"]

        old_company = self.db.execute_transaction(work)
        groups = [fk_group("company", old_company)]
        if company_id is not UNSET:
            groups.append(fk_group("company", company_id))
        self._notify(product_id, "updated", groups)
        return self.get(product_id)  # type: ignore[return-value]

    def _product_is_referenced(self, conn: sqlite3.Connection, product_id: str) -> bool:
        """Entry and order items keep their product; they do not cascade."""
        for sql in (
            "SELECT 1 FROM daily_entry_items WHERE product_id=? LIMIT 1",
            "SELECT 1 FROM order_items       WHERE product_id=? LIMIT 1",
        ):
            if conn.execute(sql, (product_id,)).fetchone():
                return True
        return False

    def delete(self, product_id: str) -> None:
        def work(conn: sqlite3.Connection) -> str:
            row = conn.execute("SELECT company_id FROM products WHERE id=?", (product_id,)).fetchone()
            if row is None:
                raise NotFound(self.entity, product_id)
            if self._product_is_referenced(conn, product_id):
                raise DomainError(
                    "Cannot delete product: it is referenced by daily entries or orders."
                )
            conn.execute("DELETE FROM products WHERE id=?", (product_id,))
            return row["company_id"]

        company_id = self.db.execute_transaction(work)
        self._notify(product_id, "deleted", [fk_group("company", company_id)])
