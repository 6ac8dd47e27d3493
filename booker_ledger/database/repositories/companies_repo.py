from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...utils.helpers import new_id, now_ts
from .. import sql as q
from ..errors import DomainError, NotFound
from .base import BaseRepo, UNSET


@dataclass
class Company:
    id: str
    name: str
    address: str | None
    email: str | None
    phone: str | None
    created_at: str
    updated_at: str


_COLS = "id, name, address, email, phone, created_at, updated_at"


class CompaniesRepo(BaseRepo):
    entity = "company"
    table = "companies"

    # ---- Queries ----------------------------------------------------------

    def list(self, search: str | None = None) -> list[Company]:
        """Name-ascending; `search` matches name/address/email."""
        w = q.Where().like_any(("name", "address", "email"), search)
        rows = self.db.select(
            f"SELECT {_COLS} FROM companies{w.sql} ORDER BY name COLLATE NOCASE ASC",
            w.params,
        )
        return [Company(**r) for r in rows]

    def get(self, company_id: str) -> Company | None:
        r = self.db.select_one(f"SELECT {_COLS} FROM companies WHERE id=?", (company_id,))
        return Company(**r) if r else None

    # ---- Mutations --------------------------------------------------------

    def create(
        self,
        name: str,
        address: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Company:
        name_n = self._ensure_non_empty(name, "Company name")
        cid = new_id()
        now = now_ts()
        sql, params = q.insert("companies", {
            "id": cid,
            "name": name_n,
            "address": self._normalize_text(address),
            "email": self._normalize_text(email),
            "phone": self._normalize_text(phone),
            "created_at": now,
            "updated_at": now,
        })
        self.db.execute(sql, params)
        self._notify(cid, "created")
        return self.get(cid)  # type: ignore[return-value]

    def update(
        self,
        company_id: str,
        *,
        name=UNSET,
        address=UNSET,
        email=UNSET,
        phone=UNSET,
    ) -> Company:
        a = q.Assignments()
        if name is not UNSET:
            a.set("name", self._ensure_non_empty(name, "Company name"))
        for col, val in (("address", address), ("email", email), ("phone", phone)):
            if val is not UNSET:
                a.set(col, self._normalize_text(val))
        a.set("updated_at", now_ts())

        sql, params = q.update("companies", a, "id", company_id)
        if self.db.execute(sql, params).rowcount == 0:
            raise NotFound(self.entity, company_id)
        self._notify(company_id, "updated")
        return self.get(company_id)  # type: ignore[return-value]

    def delete(self, company_id: str) -> None:
        """Products cascade with the company; blocked if any of them was already sold/ordered."""
        def work(conn: sqlite3.Connection) -> None:
            if not self._exists("companies", company_id, conn):
                raise NotFound(self.entity, company_id)
            used = conn.execute(
                """
                SELECT 1 FROM products p
                WHERE p.company_id = ?
                  AND (EXISTS (SELECT 1 FROM daily_entry_items d WHERE d.product_id = p.id)
                       OR EXISTS (SELECT 1 FROM order_items o WHERE o.product_id = p.id))
                LIMIT 1
                """,
                (company_id,),
            ).fetchone()
            if used:
                raise DomainError(
                    "Cannot delete company: its products are referenced by entries or orders."
                )
            conn.execute("DELETE FROM companies WHERE id=?", (company_id,))

        self.db.execute_transaction(work)
        self._notify(company_id, "deleted")
