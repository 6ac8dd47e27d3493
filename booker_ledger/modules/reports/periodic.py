# booker_ledger/modules/reports/periodic.py
"""
Day and month roll-ups across order bookers, plus the month-over-month
comparison. Pure reducers over ReportingRepo rows.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ...database.repositories.reporting_repo import ReportingRepo
from ...utils.helpers import fmt_money, month_bounds, previous_month
from ..ledger.calculations import (
    achievement_percentage,
    consistency_score,
    growth_rate,
    percent,
    safe_div,
    trend_direction,
)
from .performance import DateRange

TOP_PERFORMERS = 3


@dataclass
class DailyRollup:
    date: str
    total_sales: float = 0.0
    total_returns: float = 0.0
    net_sales: float = 0.0
    total_cartons: float = 0.0
    return_cartons: float = 0.0
    net_cartons: float = 0.0
    active_order_bookers: int = 0
    avg_sales_per_order_booker: float = 0.0
    top_performer: Optional[str] = None
    top_performer_sales: float = 0.0
    lowest_performer: Optional[str] = None
    lowest_performer_sales: float = 0.0


@dataclass
class MonthlyRollup:
    year: int
    month: int
    total_sales: float = 0.0
    total_returns: float = 0.0
    net_sales: float = 0.0
    total_cartons: float = 0.0
    return_cartons: float = 0.0
    net_cartons: float = 0.0
    total_target: float = 0.0
    achievement_percentage: float = 0.0
    active_order_bookers: int = 0
    avg_sales_per_order_booker: float = 0.0
    top_performers: List[Tuple[str, float]] = field(default_factory=list)
    growth_rate: float = 0.0
    consistency_score: float = 0.0

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass
class PeriodTotals:
    period: str
    sales: float = 0.0
    returns: float = 0.0
    net_sales: float = 0.0
    cartons: float = 0.0
    target: float = 0.0
    achievement_percentage: float = 0.0
    days_with_sales: int = 0


@dataclass
class ComparisonReport:
    current: PeriodTotals
    previous: PeriodTotals
    sales_growth: float = 0.0
    returns_growth: float = 0.0
    net_sales_growth: float = 0.0
    cartons_growth: float = 0.0
    achievement_change: float = 0.0
    direction: str = "stable"
    confidence: float = 0.0
    insights: List[str] = field(default_factory=list)


class PeriodicReports:
    def __init__(self, repo: ReportingRepo) -> None:
        self.repo = repo

    # ---------------------------- helpers ----------------------------

    def _cartons_by(self, window: DateRange, ids) -> Dict[Tuple[str, str], Tuple[float, float]]:
        return {
            (r["date"], r["order_booker_id"]): (float(r["cartons_sold"]), float(r["cartons_returned"]))
            for r in self.repo.daily_cartons(window.date_from, window.date_to, ids)
        }

    # ---------------------------- daily ----------------------------

    def daily_report(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> List[DailyRollup]:
        """One row per day that has entries, oldest first."""
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        cartons = self._cartons_by(window, ids)

        days: Dict[str, DailyRollup] = {}
        performers: Dict[str, List[Tuple[str, float]]] = defaultdict(list)
        for r in self.repo.daily_booker_sales(window.date_from, window.date_to, ids):
            d = days.setdefault(r["date"], DailyRollup(date=r["date"]))
            d.total_sales += float(r["total_sales"])
            d.total_returns += float(r["total_returns"])
            d.net_sales += float(r["net_sales"])
            sold, returned = cartons.get((r["date"], r["order_booker_id"]), (0.0, 0.0))
            d.total_cartons += sold
            d.return_cartons += returned
            performers[r["date"]].append((r["order_booker_name"], float(r["net_sales"])))

        out = []
        for day in sorted(days):
            d = days[day]
            d.net_cartons = d.total_cartons - d.return_cartons
            ranked = sorted(performers[day], key=lambda p: p[1], reverse=True)
            d.active_order_bookers = len(ranked)
            d.avg_sales_per_order_booker = safe_div(d.net_sales, len(ranked))
            d.top_performer, d.top_performer_sales = ranked[0]
            d.lowest_performer, d.lowest_performer_sales = ranked[-1]
            out.append(d)
        return out

    # ---------------------------- monthly ----------------------------

    def monthly_report(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> List[MonthlyRollup]:
        """
        One row per calendar month touched by the window, oldest first.
        Months without entries still appear when they have targets.
        """
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        cartons = self._cartons_by(window, ids)

        months: Dict[Tuple[int, int], MonthlyRollup] = {}
        booker_net: Dict[Tuple[int, int], Dict[str, float]] = defaultdict(lambda: defaultdict(float))
        names: Dict[str, str] = {}

        def month_of(key: Tuple[int, int]) -> MonthlyRollup:
            if key not in months:
                months[key] = MonthlyRollup(year=key[0], month=key[1])
            return months[key]

        for r in self.repo.daily_booker_sales(window.date_from, window.date_to, ids):
            key = (int(r["date"][:4]), int(r["date"][5:7]))
            m = month_of(key)
            m.total_sales += float(r["total_sales"])
            m.total_returns += float(r["total_returns"])
            m.net_sales += float(r["net_sales"])
            sold, returned = cartons.get((r["date"], r["order_booker_id"]), (0.0, 0.0))
            m.total_cartons += sold
            m.return_cartons += returned
            booker_net[key][r["order_booker_id"]] += float(r["net_sales"])
            names[r["order_booker_id"]] = r["order_booker_name"]

        for r in self.repo.targets_between(window.date_from, window.date_to, ids):
            month_of((int(r["year"]), int(r["month"]))).total_target += float(r["target_amount"])

        out: List[MonthlyRollup] = []
        prev: Optional[MonthlyRollup] = None
        for key in sorted(months):
            m = months[key]
            m.net_cartons = m.total_cartons - m.return_cartons
            m.achievement_percentage = achievement_percentage(m.net_sales, m.total_target)
            per_booker = booker_net.get(key, {})
            m.active_order_bookers = len(per_booker)
            m.avg_sales_per_order_booker = safe_div(m.net_sales, len(per_booker))
            ranked = sorted(per_booker.items(), key=lambda kv: kv[1], reverse=True)
            m.top_performers = [(names[obid], net) for obid, net in ranked[:TOP_PERFORMERS]]
            m.consistency_score = consistency_score(list(per_booker.values()))
            m.growth_rate = growth_rate(m.net_sales, prev.net_sales) if prev is not None else 0.0
            prev = m
            out.append(m)
        return out

    # ---------------------------- comparison ----------------------------

    def _period_totals(self, year: int, month: int, ids) -> PeriodTotals:
        start, end = month_bounds(year, month)
        totals = PeriodTotals(period=f"{year:04d}-{month:02d}")
        days = set()
        for r in self.repo.daily_booker_sales(start, end, ids):
            totals.sales += float(r["total_sales"])
            totals.returns += float(r["total_returns"])
            totals.net_sales += float(r["net_sales"])
            days.add(r["date"])
        for r in self.repo.daily_cartons(start, end, ids):
            totals.cartons += float(r["cartons_sold"]) - float(r["cartons_returned"])
        for r in self.repo.targets_between(start, end, ids):
            totals.target += float(r["target_amount"])
        totals.achievement_percentage = achievement_percentage(totals.net_sales, totals.target)
        totals.days_with_sales = len(days)
        return totals

    def comparison_report(
        self,
        year: int,
        month: int,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> ComparisonReport:
        """
        The given month against the one before it.

        confidence is the share (0-100) of calendar days across both months
        that have recorded sales.
        """
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        py, pm = previous_month(year, month)
        cur = self._period_totals(year, month, ids)
        prev = self._period_totals(py, pm, ids)

        report = ComparisonReport(current=cur, previous=prev)
        report.sales_growth = growth_rate(cur.sales, prev.sales)
        report.returns_growth = growth_rate(cur.returns, prev.returns)
        report.net_sales_growth = growth_rate(cur.net_sales, prev.net_sales)
        report.cartons_growth = growth_rate(cur.cartons, prev.cartons)
        report.achievement_change = cur.achievement_percentage - prev.achievement_percentage
        report.direction = trend_direction(report.net_sales_growth)

        calendar_days = DateRange(*month_bounds(year, month)).days + DateRange(*month_bounds(py, pm)).days
        report.confidence = percent(cur.days_with_sales + prev.days_with_sales, calendar_days)
        report.insights = self._insights(report)
        return report

    @staticmethod
    def _insights(report: ComparisonReport) -> List[str]:
        cur, prev = report.current, report.previous
        notes: List[str] = []
        if prev.net_sales == 0 and cur.net_sales == 0:
            return ["No sales recorded in either month."]
        if prev.net_sales == 0:
            notes.append(f"No sales recorded in {prev.period}; growth is not comparable.")
        elif report.direction == "up":
            notes.append(f"Net sales up {report.net_sales_growth:.1f}% on {prev.period}.")
        elif report.direction == "down":
            notes.append(f"Net sales down {abs(report.net_sales_growth):.1f}% on {prev.period}.")
        else:
            notes.append(f"Net sales stable against {prev.period} ({report.net_sales_growth:+.1f}%).")

        cur_rate = percent(cur.returns, cur.sales)
        prev_rate = percent(prev.returns, prev.sales)
        if cur.sales and prev.sales and abs(cur_rate - prev_rate) >= 1.0:
            word = "rose" if cur_rate > prev_rate else "fell"
            notes.append(f"Return rate {word} from {prev_rate:.1f}% to {cur_rate:.1f}%.")

        if cur.target > 0:
            notes.append(
                f"Target achievement {cur.achievement_percentage:.1f}% of {fmt_money(cur.target)}."
            )
        if report.confidence < 50.0:
            notes.append("Few trading days recorded; treat the trend with care.")
        return notes
