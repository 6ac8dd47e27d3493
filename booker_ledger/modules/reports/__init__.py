# booker_ledger/modules/reports/__init__.py

from .daily_sales import DailySalesItem, DailySalesReport, DailySalesSummary
from .dashboard import (
    AlertCenter,
    DashboardAlert,
    DashboardReports,
    ProfitMargin,
    ReturnRates,
    RevenueMetrics,
    SalesTrends,
    TargetProgress,
    TopPerformer,
)
from .performance import AnalyticsSummary, DateRange, PerformanceReports, PerformanceRow
from .periodic import (
    ComparisonReport,
    DailyRollup,
    MonthlyRollup,
    PeriodicReports,
    PeriodTotals,
)

__all__ = [
    # daily_sales
    "DailySalesReport",
    "DailySalesItem",
    "DailySalesSummary",
    # dashboard
    "DashboardReports",
    "RevenueMetrics",
    "ProfitMargin",
    "TopPerformer",
    "ReturnRates",
    "TargetProgress",
    "SalesTrends",
    "DashboardAlert",
    "AlertCenter",
    # performance
    "PerformanceReports",
    "PerformanceRow",
    "AnalyticsSummary",
    "DateRange",
    # periodic
    "PeriodicReports",
    "DailyRollup",
    "MonthlyRollup",
    "PeriodTotals",
    "ComparisonReport",
]
