# booker_ledger/database/repositories/monthly_targets_repo.py
"""
Monthly sales targets per order booker.

achieved_amount is not an input: it is the sum of the booker's daily-entry
net_amount over the calendar month, re-derived by refresh_achievement()
whenever a target is written and whenever a daily entry in that month changes.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Mapping
import calendar
import sqlite3

from ...modules.ledger.calculations import (
    achievement_percentage,
    daily_target_amount,
    working_days_in_month,
)
from ...utils.helpers import month_bounds, new_id, now_ts, previous_month
from ...utils.notifier import fk_group
from .. import sql as q
from ..errors import NotFound, ValidationError
from .base import BaseRepo


@dataclass
class MonthlyTarget:
    id: str
    order_booker_id: str
    year: int
    month: int
    target_amount: float
    achieved_amount: float
    remaining_amount: float
    achievement_percentage: float
    days_in_month: int
    working_days_in_month: int
    daily_target_amount: float
    created_at: str
    updated_at: str
    order_booker_name: str | None = None


_SELECT = """
    SELECT mt.id, mt.order_booker_id, mt.year, mt.month, mt.target_amount,
           mt.achieved_amount, mt.remaining_amount, mt.achievement_percentage,
           mt.days_in_month, mt.working_days_in_month, mt.daily_target_amount,
           mt.created_at, mt.updated_at, ob.name AS order_booker_name
    FROM monthly_targets mt
    LEFT JOIN order_bookers ob ON ob.id = mt.order_booker_id
"""


def _month_group(year: int, month: int) -> str:
    return f"month:{int(year):04d}-{int(month):02d}"


def refresh_achievement(conn: sqlite3.Connection, order_booker_id: str, year: int, month: int) -> bool:
    """
    Recompute achieved/remaining/percentage of one target from daily_entries.
    Runs on the caller's connection so it joins the caller's transaction.
    Returns False when the booker has no target for that month.
    """
    row = conn.execute(
        "SELECT id, target_amount FROM monthly_targets WHERE order_booker_id=? AND year=? AND month=?",
        (order_booker_id, int(year), int(month)),
    ).fetchone()
    if row is None:
        return False
    start, end = month_bounds(year, month)
    achieved = conn.execute(
        "SELECT COALESCE(SUM(net_amount), 0) FROM daily_entries "
        "WHERE order_booker_id=? AND date BETWEEN ? AND ?",
        (order_booker_id, start, end),
    ).fetchone()[0]
    target = float(row["target_amount"])
    conn.execute(
        "UPDATE monthly_targets SET achieved_amount=?, remaining_amount=?, "
        "achievement_percentage=?, updated_at=? WHERE id=?",
        (achieved, target - achieved, achievement_percentage(achieved, target), now_ts(), row["id"]),
    )
    return True


class MonthlyTargetsRepo(BaseRepo):
    entity = "monthly_target"
    table = "monthly_targets"

    # ---------------------------- helpers ----------------------------

    @staticmethod
    def _ensure_period(year, month) -> tuple[int, int]:
        try:
            y, m = int(year), int(month)
        except (TypeError, ValueError) as e:
            raise ValidationError("Year and month must be numbers.") from e
        if not 1 <= m <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month!r}.")
        if y < 1:
            raise ValidationError(f"Invalid year: {year!r}.")
        return y, m

    def _insert(self, conn: sqlite3.Connection, order_booker_id: str, year: int, month: int, amount: float) -> str:
        self._require_ref("order_bookers", "order booker", order_booker_id, conn)
        if conn.execute(
            "SELECT 1 FROM monthly_targets WHERE order_booker_id=? AND year=? AND month=?",
            (order_booker_id, year, month),
        ).fetchone():
            raise ValidationError(
                f"A target already exists for this order booker in {year:04d}-{month:02d}."
            )
        days = calendar.monthrange(year, month)[1]
        working = working_days_in_month(year, month)
        now = now_ts()
        tid = new_id()
        sql, params = q.insert("monthly_targets", {
            "id": tid,
            "order_booker_id": order_booker_id,
            "year": year,
            "month": month,
            "target_amount": amount,
            "achieved_amount": 0.0,
            "remaining_amount": amount,
            "achievement_percentage": 0.0,
            "days_in_month": days,
            "working_days_in_month": working,
            "daily_target_amount": daily_target_amount(amount, working),
            "created_at": now,
            "updated_at": now,
        })
        conn.execute(sql, params)
        refresh_achievement(conn, order_booker_id, year, month)
        return tid

    def _set_amount(self, conn: sqlite3.Connection, target_id: str, amount: float) -> sqlite3.Row:
        row = conn.execute(
            "SELECT order_booker_id, year, month, working_days_in_month FROM monthly_targets WHERE id=?",
            (target_id,),
        ).fetchone()
        if row is None:
            raise NotFound(self.entity, target_id)
        conn.execute(
            "UPDATE monthly_targets SET target_amount=?, daily_target_amount=?, updated_at=? WHERE id=?",
            (amount, daily_target_amount(amount, row["working_days_in_month"]), now_ts(), target_id),
        )
        refresh_achievement(conn, row["order_booker_id"], row["year"], row["month"])
        return row

    def _normalize_batch(self, targets: Iterable[Mapping]) -> list[tuple[str, int, int, float]]:
        out = []
        for t in targets:
            y, m = self._ensure_period(t.get("year"), t.get("month"))
            amount = self._ensure_non_negative(t.get("target_amount"), "Target amount")
            out.append((t.get("order_booker_id"), y, m, amount))
        return out

    def _notify_targets(self, ids_and_keys: Iterable[tuple[str, str, int, int]], action: str) -> None:
        for tid, obid, y, m in ids_and_keys:
            self._notify(tid, action, [_month_group(y, m), fk_group("order_booker", obid)])

    # ---------------------------- queries ----------------------------

    def list(
        self,
        year: int | None = None,
        month: int | None = None,
        order_booker_ids: Iterable[str] | None = None,
    ) -> list[MonthlyTarget]:
        """Most recent month first, then booker name."""
        w = q.Where().eq("mt.year", year).eq("mt.month", month).in_("mt.order_booker_id", order_booker_ids)
        rows = self.db.select(
            _SELECT + w.sql + " ORDER BY mt.year DESC, mt.month DESC, ob.name COLLATE NOCASE ASC",
            w.params,
        )
        return [MonthlyTarget(**r) for r in rows]

    def list_by_month(self, year: int, month: int) -> list[MonthlyTarget]:
        return self.list(year=year, month=month)

    def list_by_order_booker(self, order_booker_id: str) -> list[MonthlyTarget]:
        return self.list(order_booker_ids=[order_booker_id])

    def get(self, target_id: str) -> MonthlyTarget | None:
        r = self.db.select_one(_SELECT + " WHERE mt.id=?", (target_id,))
        return MonthlyTarget(**r) if r else None

    def get_for(self, order_booker_id: str, year: int, month: int) -> MonthlyTarget | None:
        r = self.db.select_one(
            _SELECT + " WHERE mt.order_booker_id=? AND mt.year=? AND mt.month=?",
            (order_booker_id, int(year), int(month)),
        )
        return MonthlyTarget(**r) if r else None

    # ---------------------------- mutations ----------------------------

    def create(self, order_booker_id: str, year: int, month: int, target_amount: float) -> MonthlyTarget:
        y, m = self._ensure_period(year, month)
        amount = self._ensure_non_negative(target_amount, "Target amount")
        tid = self.db.execute_transaction(lambda conn: self._insert(conn, order_booker_id, y, m, amount))
        self._notify_targets([(tid, order_booker_id, y, m)], "created")
        return self.get(tid)  # type: ignore[return-value]

    def batch_create(self, targets: Iterable[Mapping]) -> list[MonthlyTarget]:
        """All-or-nothing: one duplicate or unknown booker rolls back the whole batch."""
        batch = self._normalize_batch(targets)

        def work(conn: sqlite3.Connection) -> list[str]:
            return [self._insert(conn, obid, y, m, amount) for obid, y, m, amount in batch]

        ids = self.db.execute_transaction(work)
        self._notify_targets(
            [(tid, obid, y, m) for tid, (obid, y, m, _) in zip(ids, batch)], "created"
        )
        return [self.get(tid) for tid in ids]  # type: ignore[misc]

    def batch_upsert(self, targets: Iterable[Mapping]) -> list[MonthlyTarget]:
        """Existing (booker, year, month) rows get the new amount; the rest are created."""
        batch = self._normalize_batch(targets)

        def work(conn: sqlite3.Connection) -> list[tuple[str, str]]:
            out = []
            for obid, y, m, amount in batch:
                row = conn.execute(
                    "SELECT id FROM monthly_targets WHERE order_booker_id=? AND year=? AND month=?",
                    (obid, y, m),
                ).fetchone()
                if row:
                    self._set_amount(conn, row["id"], amount)
                    out.append((row["id"], "updated"))
                else:
                    out.append((self._insert(conn, obid, y, m, amount), "created"))
            return out

        results = self.db.execute_transaction(work)
        for (tid, action), (obid, y, m, _) in zip(results, batch):
            self._notify_targets([(tid, obid, y, m)], action)
        return [self.get(tid) for tid, _ in results]  # type: ignore[misc]

    def update(self, target_id: str, *, target_amount: float) -> MonthlyTarget:
        amount = self._ensure_non_negative(target_amount, "Target amount")
        row = self.db.execute_transaction(lambda conn: self._set_amount(conn, target_id, amount))
        self._notify_targets([(target_id, row["order_booker_id"], row["year"], row["month"])], "updated")
        return self.get(target_id)  # type: ignore[return-value]

    def delete(self, target_id: str) -> None:
        def work(conn: sqlite3.Connection) -> sqlite3.Row:
            row = conn.execute(
                "SELECT order_booker_id, year, month FROM monthly_targets WHERE id=?", (target_id,)
            ).fetchone()
            if row is None:
                raise NotFound(self.entity, target_id)
            conn.execute("DELETE FROM monthly_targets WHERE id=?", (target_id,))
            return row

        row = self.db.execute_transaction(work)
        self._notify_targets([(target_id, row["order_booker_id"], row["year"], row["month"])], "deleted")

    def copy_from_previous_month(
        self,
        from_year: int | None = None,
        from_month: int | None = None,
        to_year: int | None = None,
        to_month: int | None = None,
        order_booker_ids: Iterable[str] | None = None,
    ) -> list[MonthlyTarget]:
        """
        Copy target amounts from one month into another. With only the
        destination given, the source is the month before it. Bookers that
        already have a destination target are skipped.
        """
        if to_year is None or to_month is None:
            raise ValidationError("Destination year and month are required.")
        ty, tm = self._ensure_period(to_year, to_month)
        if from_year is None or from_month is None:
            fy, fm = previous_month(ty, tm)
        else:
            fy, fm = self._ensure_period(from_year, from_month)

        w = q.Where().eq("year", fy).eq("month", fm).in_("order_booker_id", order_booker_ids)

        def work(conn: sqlite3.Connection) -> list[tuple[str, str]]:
            created = []
            for src in conn.execute(
                f"SELECT order_booker_id, target_amount FROM monthly_targets{w.sql}", w.params
            ).fetchall():
                exists = conn.execute(
                    "SELECT 1 FROM monthly_targets WHERE order_booker_id=? AND year=? AND month=?",
                    (src["order_booker_id"], ty, tm),
                ).fetchone()
                if exists:
                    continue
                tid = self._insert(conn, src["order_booker_id"], ty, tm, float(src["target_amount"]))
                created.append((tid, src["order_booker_id"]))
            return created

        created = self.db.execute_transaction(work)
        self._notify_targets([(tid, obid, ty, tm) for tid, obid in created], "created")
        return [self.get(tid) for tid, _ in created]  # type: ignore[misc]

    def refresh_achievement(self, order_booker_id: str, year: int, month: int) -> MonthlyTarget | None:
        y, m = self._ensure_period(year, month)
        changed = self.db.execute_transaction(lambda conn: refresh_achievement(conn, order_booker_id, y, m))
        if not changed:
            return None
        target = self.get_for(order_booker_id, y, m)
        if target is not None:
            self._notify_targets([(target.id, order_booker_id, y, m)], "updated")
        return target
