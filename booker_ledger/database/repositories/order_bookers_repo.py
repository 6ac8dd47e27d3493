from __future__ import annotations
from dataclasses import dataclass
from datetime import date
import sqlite3

from ...utils.helpers import new_id, now_ts, today_str
from .. import sql as q
from ..errors import NotFound
from .base import BaseRepo, UNSET


@dataclass
class OrderBooker:
    id: str
    name: str
    name_urdu: str
    phone: str
    email: str | None
    is_active: bool
    join_date: str
    created_at: str
    updated_at: str
    # Current-month target snapshot; only filled by list()
    current_month_target: float = 0.0
    current_month_achieved: float = 0.0
    current_month_remaining: float = 0.0
    current_month_percentage: float = 0.0
    current_month_daily_target: float = 0.0

    def __post_init__(self):
        self.is_active = bool(self.is_active)


_COLS = "ob.id, ob.name, ob.name_urdu, ob.phone, ob.email, ob.is_active, ob.join_date, ob.created_at, ob.updated_at"


class OrderBookersRepo(BaseRepo):
    entity = "order_booker"
    table = "order_bookers"

    # ---- Queries ----------------------------------------------------------

    def list(
        self,
        search: str | None = None,
        is_active: bool | None = None,
        join_date_from: str | None = None,
        join_date_to: str | None = None,
        as_of: date | None = None,
    ) -> list[OrderBooker]:
        """
        Name-ascending. Each row carries the target snapshot of the month of
        `as_of` (default: today); bookers without a target get zeros.
        """
        ref = as_of or date.today()
        w = q.Where()
        w.like_any(("ob.name", "ob.name_urdu", "ob.phone"), search)
        if is_active is not None:
            w.eq("ob.is_active", 1 if is_active else 0)
        w.date_range("ob.join_date", join_date_from, join_date_to)
        rows = self.db.select(
            f"""
            SELECT {_COLS},
                   COALESCE(mt.target_amount, 0)          AS current_month_target,
                   COALESCE(mt.achieved_amount, 0)        AS current_month_achieved,
                   COALESCE(mt.remaining_amount, 0)       AS current_month_remaining,
                   COALESCE(mt.achievement_percentage, 0) AS current_month_percentage,
                   COALESCE(mt.daily_target_amount, 0)    AS current_month_daily_target
            FROM order_bookers ob
            LEFT JOIN monthly_targets mt
                   ON mt.order_booker_id = ob.id AND mt.year = ? AND mt.month = ?
            {w.sql}
            ORDER BY ob.name COLLATE NOCASE ASC
            """,
            (ref.year, ref.month) + w.params,
        )
        return [OrderBooker(**r) for r in rows]

    def list_active(self) -> list[OrderBooker]:
        return self.list(is_active=True)

    def get(self, order_booker_id: str) -> OrderBooker | None:
        r = self.db.select_one(f"SELECT {_COLS} FROM order_bookers ob WHERE ob.id=?", (order_booker_id,))
        return OrderBooker(**r) if r else None

    # ---- Mutations --------------------------------------------------------

    def create(
        self,
        name: str,
        name_urdu: str = "",
        phone: str = "",
        email: str | None = None,
        join_date: str | date | None = None,
    ) -> OrderBooker:
        obid = new_id()
        now = now_ts()
        sql, params = q.insert("order_bookers", {
            "id": obid,
            "name": self._ensure_non_empty(name, "Order booker name"),
            "name_urdu": self._normalize_text(name_urdu) or "",
            "phone": self._normalize_text(phone) or "",
            "email": self._normalize_text(email) or None,
            "is_active": 1,
            "join_date": self._ensure_date(join_date, "Join date") if join_date else today_str(),
            "created_at": now,
            "updated_at": now,
        })
        self.db.execute(sql, params)
        self._notify(obid, "created")
        return self.get(obid)  # type: ignore[return-value]

    def update(
        self,
        order_booker_id: str,
        *,
        name=UNSET,
        name_urdu=UNSET,
        phone=UNSET,
        email=UNSET,
        join_date=UNSET,
        is_active=UNSET,
    ) -> OrderBooker:
        a = q.Assignments()
        if name is not UNSET:
            a.set("name", self._ensure_non_empty(name, "Order booker name"))
        if name_urdu is not UNSET:
            a.set("name_urdu", self._normalize_text(name_urdu) or "")
        if phone is not UNSET:
            a.set("phone", self._normalize_text(phone) or "")
        if email is not UNSET:
            a.set("email", self._normalize_text(email) or None)
        if join_date is not UNSET:
            a.set("join_date", self._ensure_date(join_date, "Join date"))
        if is_active is not UNSET:
            a.set("is_active", 1 if is_active else 0)
        a.set("updated_at", now_ts())

        sql, params = q.update("order_bookers", a, "id", order_booker_id)
        if self.db.execute(sql, params).rowcount == 0:
            raise NotFound(self.entity, order_booker_id)
        self._notify(order_booker_id, "updated")
        return self.get(order_booker_id)  # type: ignore[return-value]

    def activate(self, order_booker_id: str) -> OrderBooker:
        return self.update(order_booker_id, is_active=True)

    def deactivate(self, order_booker_id: str) -> OrderBooker:
        """Soft delete: history stays, the booker drops out of active lists."""
        return self.update(order_booker_id, is_active=False)

    def delete(self, order_booker_id: str) -> None:
        """Hard delete; entries, orders and targets cascade."""
        def work(conn: sqlite3.Connection) -> None:
            if conn.execute("DELETE FROM order_bookers WHERE id=?", (order_booker_id,)).rowcount == 0:
                raise NotFound(self.entity, order_booker_id)

        self.db.execute_transaction(work)
        self._notify(order_booker_id, "deleted")
