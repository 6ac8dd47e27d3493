# booker_ledger/modules/reports/dashboard.py
"""
Dashboard figures over booked orders: revenue against last month and target,
margins, top performers, return rates, target pace, sales trends and alerts.

Every figure is order based (orders.total_amount), unlike the performance and
periodic reports which read daily entries. Targets are those of the month
containing `date_from`.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from statistics import fmean
from typing import Dict, Iterable, List, Optional, Tuple

from ...constants import (
    MARGIN_HEALTHY_PCT,
    MARGIN_WARNING_PCT,
    RETURN_PRODUCTS_LIMIT,
    RETURN_RATE_CRITICAL_PCT,
    RETURN_RATE_WARNING_PCT,
    TARGET_CRITICAL_PCT,
    TARGET_MARGIN_PCT,
    TARGET_RISK_PCT,
    TOP_PERFORMERS_LIMIT,
)
from ...database.repositories.reporting_repo import ReportingRepo
from ..ledger.calculations import achievement_percentage, growth_rate, percent, safe_div
from .performance import DateRange


def month_earlier(iso_date: str) -> str:
    """Same day one month back, clamped to the last day of that month."""
    d = date.fromisoformat(iso_date)
    year, month = (d.year - 1, 12) if d.month == 1 else (d.year, d.month - 1)
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day).isoformat()


def moving_average(values: List[float], window: int) -> float:
    """Mean of the last `window` values; 0 until there are that many."""
    if window <= 0 or len(values) < window:
        return 0.0
    return fmean(values[-window:])


@dataclass
class RevenueMetrics:
    current_revenue: float = 0.0
    last_month_revenue: float = 0.0
    target_revenue: float = 0.0
    achievement_percentage: float = 0.0
    growth_percentage: float = 0.0
    order_count: int = 0
    trend: List[Tuple[str, float]] = field(default_factory=list)


@dataclass
class ProfitMargin:
    total_revenue: float
    total_cost: float
    total_profit: float
    margin_percentage: float
    target_margin_percentage: float
    variance: float
    trend: str    # up | down | stable, against the target margin
    status: str   # healthy | warning | critical


@dataclass
class TopPerformer:
    rank: int
    order_booker_id: str
    order_booker_name: str
    target_amount: float
    achieved_amount: float
    achievement_percentage: float
    orders_count: int


@dataclass
class ProductReturnRate:
    product_id: str
    product_name: str
    return_rate: float
    return_cartons: float
    total_cartons: float


@dataclass
class ReturnRates:
    overall_return_rate: float
    threshold: float
    status: str   # normal | warning | critical
    by_product: List[ProductReturnRate] = field(default_factory=list)


@dataclass
class TargetProgress:
    order_booker_id: str
    order_booker_name: str
    target_amount: float
    achieved_amount: float
    achievement_percentage: float
    days_remaining: int
    current_daily_average: float
    required_daily_average: float
    projected_achievement: float
    status: str   # ahead | on-track | at-risk | behind


@dataclass
class DailyOrderSales:
    date: str
    sales: float
    orders: int


@dataclass
class SalesTrends:
    daily_sales: List[DailyOrderSales] = field(default_factory=list)
    seven_day_average: float = 0.0
    thirty_day_average: float = 0.0
    seasonal_pattern: Optional[str] = None


@dataclass
class DashboardAlert:
    id: str
    type: str       # high-return-rate | target-miss-risk
    severity: str   # high | critical
    title: str
    description: str
    value: float
    threshold: float
    order_booker_id: Optional[str] = None


@dataclass
class AlertCenter:
    alerts: List[DashboardAlert] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return sum(1 for a in self.alerts if a.severity == "critical")

    @property
    def summary(self) -> Dict[str, int]:
        counts = {"high-return-rate": 0, "target-miss-risk": 0}
        for a in self.alerts:
            counts[a.type] = counts.get(a.type, 0) + 1
        return counts


def pace_status(achievement_pct: float, current_avg: float, required_avg: float) -> str:
    if achievement_pct >= 100 or current_avg >= required_avg * 1.1:
        return "ahead"
    if current_avg >= required_avg * 0.9:
        return "on-track"
    if current_avg >= required_avg * 0.7:
        return "at-risk"
    return "behind"


def margin_status(margin_pct: float) -> str:
    if margin_pct >= MARGIN_HEALTHY_PCT:
        return "healthy"
    if margin_pct >= MARGIN_WARNING_PCT:
        return "warning"
    return "critical"


def return_rate_status(rate_pct: float) -> str:
    if rate_pct > RETURN_RATE_CRITICAL_PCT:
        return "critical"
    if rate_pct > RETURN_RATE_WARNING_PCT:
        return "warning"
    return "normal"


class DashboardReports:
    def __init__(self, repo: ReportingRepo) -> None:
        self.repo = repo

    # ---------------------------- helpers ----------------------------

    def _targets(self, window: DateRange, ids) -> Dict[str, float]:
        """Target per order booker for the month of window.date_from."""
        out: Dict[str, float] = {}
        for r in self.repo.targets_between(window.date_from, window.date_from, ids):
            out[r["order_booker_id"]] = out.get(r["order_booker_id"], 0.0) + float(r["target_amount"])
        return out

    # ---------------------------- revenue ----------------------------

    def revenue_metrics(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> RevenueMetrics:
        """Order revenue of the window against the same window one month earlier."""
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None

        cur = self.repo.order_totals(window.date_from, window.date_to, ids)
        last = self.repo.order_totals(month_earlier(window.date_from), month_earlier(window.date_to), ids)

        m = RevenueMetrics(
            current_revenue=float(cur["revenue"]),
            last_month_revenue=float(last["revenue"]),
            target_revenue=sum(self._targets(window, ids).values()),
            order_count=int(cur["order_count"]),
        )
        m.achievement_percentage = achievement_percentage(m.current_revenue, m.target_revenue)
        m.growth_percentage = growth_rate(m.current_revenue, m.last_month_revenue)
        m.trend = [
            (r["date"], float(r["sales"]))
            for r in self.repo.daily_order_sales(window.date_from, window.date_to, ids)
        ]
        return m

    def profit_margins(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> ProfitMargin:
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        t = self.repo.order_totals(window.date_from, window.date_to, ids)

        revenue, profit = float(t["revenue"]), float(t["profit"])
        margin = percent(profit, revenue)
        variance = margin - TARGET_MARGIN_PCT
        return ProfitMargin(
            total_revenue=revenue,
            total_cost=float(t["cost"]),
            total_profit=profit,
            margin_percentage=margin,
            target_margin_percentage=TARGET_MARGIN_PCT,
            variance=variance,
            trend="up" if variance > 0 else "down" if variance < 0 else "stable",
            status=margin_status(margin),
        )

    # ---------------------------- order bookers ----------------------------

    def top_performers(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
        limit: int = TOP_PERFORMERS_LIMIT,
    ) -> List[TopPerformer]:
        """Active order bookers ranked by achievement, then order revenue."""
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        targets = self._targets(window, ids)
        sales = {
            r["order_booker_id"]: (float(r["revenue"]), int(r["orders_count"]))
            for r in self.repo.booker_order_sales(window.date_from, window.date_to, ids)
        }

        rows = []
        for ob in self.repo.order_bookers(ids):
            revenue, orders = sales.get(ob["id"], (0.0, 0))
            target = targets.get(ob["id"], 0.0)
            rows.append((ob, target, revenue, orders, achievement_percentage(revenue, target)))
        rows.sort(key=lambda r: (r[4], r[2]), reverse=True)

        return [
            TopPerformer(
                rank=i,
                order_booker_id=ob["id"],
                order_booker_name=ob["name"],
                target_amount=target,
                achieved_amount=revenue,
                achievement_percentage=pct,
                orders_count=orders,
            )
            for i, (ob, target, revenue, orders, pct) in enumerate(rows[:limit], start=1)
        ]

    def target_progress(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> List[TargetProgress]:
        """
        Pace of every order booker with a target for the month of `date_from`.

        date_to's day of month counts as the days elapsed; the projection
        extends the current daily average to the whole month.
        """
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        year, month = int(window.date_from[:4]), int(window.date_from[5:7])
        days_in_month = calendar.monthrange(year, month)[1]
        elapsed = int(window.date_to[8:10])
        days_remaining = max(0, days_in_month - elapsed)

        targets = self._targets(window, ids)
        names = {ob["id"]: ob["name"] for ob in self.repo.order_bookers(targets.keys(), include_inactive=True)}
        revenue = {
            r["order_booker_id"]: float(r["revenue"])
            for r in self.repo.booker_order_sales(window.date_from, window.date_to, ids)
        }

        out = []
        for obid, target in targets.items():
            achieved = revenue.get(obid, 0.0)
            pct = achievement_percentage(achieved, target)
            current_avg = safe_div(achieved, elapsed)
            required_avg = safe_div(target - achieved, days_remaining)
            projected = percent(current_avg * days_in_month, target) if current_avg > 0 else pct
            out.append(TargetProgress(
                order_booker_id=obid,
                order_booker_name=names.get(obid, obid),
                target_amount=target,
                achieved_amount=achieved,
                achievement_percentage=pct,
                days_remaining=days_remaining,
                current_daily_average=current_avg,
                required_daily_average=required_avg,
                projected_achievement=projected,
                status=pace_status(pct, current_avg, required_avg),
            ))
        out.sort(key=lambda p: p.achievement_percentage, reverse=True)
        return out

    # ---------------------------- returns ----------------------------

    def return_rates(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
        limit: int = RETURN_PRODUCTS_LIMIT,
    ) -> ReturnRates:
        """Returned cartons as a share of ordered cartons, overall and per product."""
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        t = self.repo.order_totals(window.date_from, window.date_to, ids)
        overall = percent(float(t["return_cartons"]), float(t["cartons"]))

        by_product = [
            ProductReturnRate(
                product_id=r["product_id"],
                product_name=r["product_name"],
                return_rate=percent(float(r["return_quantity"]), float(r["quantity"])),
                return_cartons=float(r["return_cartons"]),
                total_cartons=float(r["cartons"]),
            )
            for r in self.repo.product_returns(window.date_from, window.date_to, ids, limit)
        ]
        return ReturnRates(
            overall_return_rate=overall,
            threshold=RETURN_RATE_WARNING_PCT,
            status=return_rate_status(overall),
            by_product=by_product,
        )

    # ---------------------------- trends ----------------------------

    def sales_trends(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> SalesTrends:
        """
        Daily order sales with 7/30 day moving averages. With a week or more of
        days, weekday sales averaging over 1.2x weekend sales mark 'weekend-low'.
        """
        window = DateRange.of(date_from, date_to)
        ids = list(order_booker_ids) if order_booker_ids is not None else None
        daily = [
            DailyOrderSales(date=r["date"], sales=float(r["sales"]), orders=int(r["orders"]))
            for r in self.repo.daily_order_sales(window.date_from, window.date_to, ids)
        ]
        values = [d.sales for d in daily]
        trends = SalesTrends(
            daily_sales=daily,
            seven_day_average=moving_average(values, 7),
            thirty_day_average=moving_average(values, 30),
        )

        if len(daily) >= 7:
            weekend = [d.sales for d in daily if date.fromisoformat(d.date).weekday() >= 5]
            weekday = [d.sales for d in daily if date.fromisoformat(d.date).weekday() < 5]
            if sum(weekend) > 0 and sum(weekday) > 0 and fmean(weekday) > fmean(weekend) * 1.2:
                trends.seasonal_pattern = "weekend-low"
        return trends

    # ---------------------------- alerts ----------------------------

    def alerts(
        self,
        date_from,
        date_to,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> AlertCenter:
        """
        high-return-rate when the overall return rate passes 5% (critical past 10%);
        target-miss-risk for each top performer under 70% of target (critical under 50%).
        """
        center = AlertCenter()

        rates = self.return_rates(date_from, date_to, order_booker_ids)
        if rates.overall_return_rate > RETURN_RATE_WARNING_PCT:
            center.alerts.append(DashboardAlert(
                id="high-return-rate-overall",
                type="high-return-rate",
                severity="critical" if rates.overall_return_rate > RETURN_RATE_CRITICAL_PCT else "high",
                title="High Return Rate Detected",
                description=f"Overall return rate is {rates.overall_return_rate:.1f}%",
                value=rates.overall_return_rate,
                threshold=RETURN_RATE_WARNING_PCT,
            ))

        for p in self.top_performers(date_from, date_to, order_booker_ids):
            if p.achievement_percentage < TARGET_RISK_PCT:
                center.alerts.append(DashboardAlert(
                    id=f"target-risk-{p.order_booker_id}",
                    type="target-miss-risk",
                    severity="critical" if p.achievement_percentage < TARGET_CRITICAL_PCT else "high",
                    title="Target Achievement Risk",
                    description=f"{p.order_booker_name} is at {p.achievement_percentage:.1f}% of target",
                    value=p.achievement_percentage,
                    threshold=TARGET_RISK_PCT,
                    order_booker_id=p.order_booker_id,
                ))
        return center
