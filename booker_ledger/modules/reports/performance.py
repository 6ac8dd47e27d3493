# booker_ledger/modules/reports/performance.py
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from ...database.repositories.reporting_repo import ReportingRepo
from ...utils.helpers import to_iso_date
from ..ledger.calculations import (
    achievement_percentage,
    classify_performance,
    consistency_score,
    growth_rate,
    percent,
    safe_div,
)


# --------------------------- Period helpers ---------------------------

@dataclass(frozen=True)
class DateRange:
    date_from: str  # ISO yyyy-mm-dd
    date_to: str    # ISO yyyy-mm-dd

    @classmethod
    def of(cls, date_from, date_to) -> "DateRange":
        a, b = to_iso_date(date_from), to_iso_date(date_to)
        if a > b:
            raise ValueError(f"date_from {a} is after date_to {b}")
        return cls(a, b)

    @property
    def days(self) -> int:
        return (date.fromisoformat(self.date_to) - date.fromisoformat(self.date_from)).days + 1

    @property
    def midpoint(self) -> str:
        """First day of the second half; the first half gets the shorter share."""
        start = date.fromisoformat(self.date_from)
        return (start + timedelta(days=self.days // 2)).isoformat()


def split_growth(daily: Dict[str, float], window: DateRange) -> float:
    """Second-half vs first-half total of a date -> amount map, in percent."""
    mid = window.midpoint
    first = sum(v for d, v in daily.items() if d < mid)
    second = sum(v for d, v in daily.items() if d >= mid)
    return growth_rate(second, first)


# --------------------------- Rows ---------------------------

@dataclass
class PerformanceRow:
    order_booker_id: str
    name: str
    name_urdu: str
    is_active: bool
    total_sales: float = 0.0
    total_returns: float = 0.0
    net_sales: float = 0.0
    total_cartons: float = 0.0
    return_cartons: float = 0.0
    net_cartons: float = 0.0
    target_amount: float = 0.0
    achievement_percentage: float = 0.0
    status: str = "poor"
    rank: int = 0
    days_worked: int = 0
    days_inactive: int = 0
    last_sale_date: Optional[str] = None
    average_daily_sales: float = 0.0
    growth: float = 0.0
    consistency: float = 0.0
    efficiency: float = 0.0


@dataclass
class AnalyticsSummary:
    total_revenue: float = 0.0
    total_returns: float = 0.0
    net_revenue: float = 0.0
    total_cartons: float = 0.0
    return_cartons: float = 0.0
    net_cartons: float = 0.0
    order_booker_count: int = 0
    active_order_booker_count: int = 0
    avg_revenue_per_order_booker: float = 0.0
    avg_cartons_per_order_booker: float = 0.0
    top_performer_revenue: float = 0.0
    low_performer_revenue: float = 0.0
    consistency_score: float = 0.0
    growth_rate: float = 0.0
    return_rate: float = 0.0
    efficiency: float = 0.0


class PerformanceReports:
    """
    Per-booker performance over a date window.

    Usage:
        reports = PerformanceReports(ReportingRepo(db))
        rows = reports.performance("2024-03-01", "2024-03-31")
    """

    def __init__(self, repo: ReportingRepo) -> None:
        self.repo = repo

    def performance(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
        include_inactive: bool = False,
    ) -> List[PerformanceRow]:
        """Rows ranked by net sales, highest first; ties keep name order."""
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None

        bookers = self.repo.order_bookers(ids, include_inactive=include_inactive)
        sales = {r["order_booker_id"]: r for r in self.repo.booker_sales(window.date_from, window.date_to, ids)}

        daily: Dict[str, Dict[str, float]] = defaultdict(dict)
        for r in self.repo.daily_booker_sales(window.date_from, window.date_to, ids):
            daily[r["order_booker_id"]][r["date"]] = float(r["net_sales"])

        targets: Dict[str, float] = defaultdict(float)
        for r in self.repo.targets_between(window.date_from, window.date_to, ids):
            targets[r["order_booker_id"]] += float(r["target_amount"])

        rows: List[PerformanceRow] = []
        for b in bookers:
            row = PerformanceRow(
                order_booker_id=b["id"],
                name=b["name"],
                name_urdu=b["name_urdu"],
                is_active=bool(b["is_active"]),
            )
            s = sales.get(b["id"])
            if s is not None:
                row.total_sales = float(s["total_sales"])
                row.total_returns = float(s["total_returns"])
                row.net_sales = float(s["net_sales"])
                row.total_cartons = float(s["total_cartons"])
                row.return_cartons = float(s["return_cartons"])
                row.days_worked = int(s["days_worked"])
                row.last_sale_date = s["last_sale_date"]
            row.net_cartons = row.total_cartons - row.return_cartons
            row.target_amount = targets.get(b["id"], 0.0)
            row.achievement_percentage = achievement_percentage(row.net_sales, row.target_amount)
            row.status = classify_performance(row.achievement_percentage)
            row.days_inactive = max(0, window.days - row.days_worked)
            row.average_daily_sales = safe_div(row.net_sales, row.days_worked)
            row.efficiency = row.average_daily_sales
            per_day = daily.get(b["id"], {})
            row.growth = split_growth(per_day, window)
            row.consistency = consistency_score(list(per_day.values()))
            rows.append(row)

        rows.sort(key=lambda r: r.net_sales, reverse=True)
        for i, row in enumerate(rows, start=1):
            row.rank = i
        return rows

    def analytics(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> AnalyticsSummary:
        """Window-wide totals; an empty window gives all zeros."""
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        rows = self.performance(window.date_from, window.date_to, ids, include_inactive=True)
        out = AnalyticsSummary(order_booker_count=len(rows))
        active = [r for r in rows if r.days_worked > 0]
        out.active_order_booker_count = len(active)

        for r in rows:
            out.total_revenue += r.total_sales
            out.total_returns += r.total_returns
            out.net_revenue += r.net_sales
            out.total_cartons += r.total_cartons
            out.return_cartons += r.return_cartons
        out.net_cartons = out.total_cartons - out.return_cartons

        out.avg_revenue_per_order_booker = safe_div(out.net_revenue, len(active))
        out.avg_cartons_per_order_booker = safe_div(out.net_cartons, len(active))
        if active:
            out.top_performer_revenue = max(r.net_sales for r in active)
            out.low_performer_revenue = min(r.net_sales for r in active)
        out.consistency_score = consistency_score([r.net_sales for r in active])
        out.return_rate = percent(out.total_returns, out.total_revenue)
        out.efficiency = safe_div(out.net_revenue, sum(r.days_worked for r in active))

        totals_by_day: Dict[str, float] = defaultdict(float)
        for r in self.repo.daily_booker_sales(window.date_from, window.date_to, ids):
            totals_by_day[r["date"]] += float(r["net_sales"])
        out.growth_rate = split_growth(totals_by_day, window)
        return out
