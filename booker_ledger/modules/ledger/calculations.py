"""
ledger/calculations.py

Pure arithmetic for the ledger: carton/unit conversion, order-item and
daily-entry line totals, header roll-ups, monthly analytics and the small
statistics used by the reports.

Do not import repos or open DB connections here.
Every ratio goes through safe_div(): a zero (or missing) denominator yields
0.0, never an exception, NaN or Infinity.
"""
from __future__ import annotations

import calendar
import math
from dataclasses import dataclass
from statistics import fmean, pstdev
from typing import Any, Iterable, Optional, Sequence

from ...constants import PERFORMANCE_FLOOR, PERFORMANCE_TIERS, TREND_THRESHOLD_PCT

__all__ = [
    "safe_div",
    "percent",
    "resolve_price",
    "units_from_cartons",
    "cartons_from_units",
    "carton_ratio",
    "CartonBreakdown",
    "OrderItemTotals",
    "OrderTotals",
    "order_item_totals",
    "order_totals",
    "DailyEntryItemTotals",
    "DailyEntryTotals",
    "daily_entry_item_totals",
    "daily_entry_totals",
    "MonthlyAnalytics",
    "aggregate_monthly",
    "working_days_in_month",
    "daily_target_amount",
    "achievement_percentage",
    "classify_performance",
    "growth_rate",
    "trend_direction",
    "coefficient_of_variation",
    "consistency_score",
]


# -----------------------------
# Core utilities
# -----------------------------

def safe_div(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    result = float(numerator) / float(denominator)
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def percent(part: float, whole: float) -> float:
    return safe_div(part, whole) * 100.0


def resolve_price(override: Optional[float], default: Optional[float]) -> float:
    """An override of 0 is a real price; only None falls back."""
    if override is not None:
        return float(override)
    return float(default or 0.0)


def _field(obj: Any, name: str) -> float:
    """Read a numeric field from a dict, sqlite3.Row or dataclass."""
    try:
        value = obj[name]
    except (TypeError, KeyError, IndexError):
        value = getattr(obj, name, 0.0)
    return float(value or 0.0)


# -----------------------------
# Cartons <-> units
# -----------------------------

@dataclass(frozen=True)
class CartonBreakdown:
    cartons: int
    remainder: float


def units_from_cartons(cartons: float, unit_per_carton: int) -> float:
    return cartons * unit_per_carton


def cartons_from_units(units: float, unit_per_carton: int) -> CartonBreakdown:
    """Whole cartons (floor) plus loose units. unit_per_carton must be >= 1."""
    if unit_per_carton is None or unit_per_carton < 1:
        raise ValueError(f"unit_per_carton must be >= 1, got {unit_per_carton!r}")
    whole = math.floor(units / unit_per_carton)
    remainder = units - whole * unit_per_carton
    if float(remainder).is_integer():
        remainder = int(remainder)
    return CartonBreakdown(cartons=int(whole), remainder=remainder)


def carton_ratio(quantity: float, unit_per_carton: int) -> float:
    """Fractional cartons (quantity / unit_per_carton); 0 when upc is not positive."""
    if not unit_per_carton or unit_per_carton <= 0:
        return 0.0
    return safe_div(quantity, unit_per_carton)


# -----------------------------
# Orders
# -----------------------------

@dataclass(frozen=True)
class OrderItemTotals:
    total_cost: float
    total_amount: float
    profit: float
    cartons: float
    return_amount: float
    return_cartons: float


@dataclass(frozen=True)
class OrderTotals:
    total_amount: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    total_cartons: float = 0.0
    return_cartons: float = 0.0
    return_amount: float = 0.0


def order_item_totals(
    quantity: float,
    cost_price: float,
    sell_price: float,
    unit_per_carton: int,
    return_quantity: float = 0.0,
) -> OrderItemTotals:
    """
    total_cost   = quantity * cost_price
    total_amount = quantity * sell_price
    profit       = total_amount - total_cost
    cartons      = quantity / unit_per_carton          (fractional)
    return_amount  = return_quantity * sell_price
    return_cartons = return_quantity / unit_per_carton (fractional)
    """
    total_cost = quantity * cost_price
    total_amount = quantity * sell_price
    return_quantity = return_quantity or 0.0
    return OrderItemTotals(
        total_cost=total_cost,
        total_amount=total_amount,
        profit=total_amount - total_cost,
        cartons=carton_ratio(quantity, unit_per_carton),
        return_amount=return_quantity * sell_price,
        return_cartons=carton_ratio(return_quantity, unit_per_carton),
    )


def order_totals(items: Iterable[Any]) -> OrderTotals:
    """Header roll-up; profit is re-derived rather than summed."""
    amount = cost = cartons = ret_cartons = ret_amount = 0.0
    for it in items:
        amount += _field(it, "total_amount")
        cost += _field(it, "total_cost")
        cartons += _field(it, "cartons")
        ret_cartons += _field(it, "return_cartons")
        ret_amount += _field(it, "return_amount")
    return OrderTotals(
        total_amount=amount,
        total_cost=cost,
        total_profit=amount - cost,
        total_cartons=cartons,
        return_cartons=ret_cartons,
        return_amount=ret_amount,
    )


# -----------------------------
# Daily entries
# -----------------------------

@dataclass(frozen=True)
class DailyEntryItemTotals:
    net_quantity: float
    total_cost: float
    total_revenue: float
    gross_amount: float
    return_amount: float


@dataclass(frozen=True)
class DailyEntryTotals:
    total_amount: float = 0.0
    total_return_amount: float = 0.0
    net_amount: float = 0.0


def daily_entry_item_totals(
    quantity_sold: float,
    quantity_returned: float,
    cost_price: float,
    sell_price: float,
) -> DailyEntryItemTotals:
    """
    Net-quantity basis for both cost and revenue:
      net_quantity  = sold - returned
      total_cost    = net_quantity * cost_price
      total_revenue = net_quantity * sell_price
    gross_amount/return_amount feed the entry header.
    """
    quantity_returned = quantity_returned or 0
    net = quantity_sold - quantity_returned
    return DailyEntryItemTotals(
        net_quantity=net,
        total_cost=net * cost_price,
        total_revenue=net * sell_price,
        gross_amount=quantity_sold * sell_price,
        return_amount=quantity_returned * sell_price,
    )


def daily_entry_totals(items: Iterable[DailyEntryItemTotals]) -> DailyEntryTotals:
    gross = 0.0
    returns = 0.0
    for it in items:
        gross += it.gross_amount
        returns += it.return_amount
    return DailyEntryTotals(
        total_amount=gross,
        total_return_amount=returns,
        net_amount=gross - returns,
    )


# -----------------------------
# Monthly analytics
# -----------------------------

@dataclass(frozen=True)
class MonthlyAnalytics:
    total_amount: float = 0.0
    total_return_amount: float = 0.0
    net_amount: float = 0.0
    total_quantity_sold: float = 0.0
    total_quantity_returned: float = 0.0
    net_quantity: float = 0.0
    entries_count: int = 0
    items_count: int = 0
    average_daily_amount: float = 0.0
    return_rate: float = 0.0
    quantity_return_rate: float = 0.0


def aggregate_monthly(entries: Iterable[Any], items: Iterable[Any] = ()) -> MonthlyAnalytics:
    """
    entries: rows with total_amount, total_return_amount, net_amount
    items:   rows with quantity_sold, quantity_returned, net_quantity
    """
    total = returns = net = 0.0
    entries_count = 0
    for e in entries:
        total += _field(e, "total_amount")
        returns += _field(e, "total_return_amount")
        net += _field(e, "net_amount")
        entries_count += 1

    sold = returned = net_qty = 0.0
    items_count = 0
    for it in items:
        sold += _field(it, "quantity_sold")
        returned += _field(it, "quantity_returned")
        net_qty += _field(it, "net_quantity")
        items_count += 1

    return MonthlyAnalytics(
        total_amount=total,
        total_return_amount=returns,
        net_amount=net,
        total_quantity_sold=sold,
        total_quantity_returned=returned,
        net_quantity=net_qty,
        entries_count=entries_count,
        items_count=items_count,
        average_daily_amount=safe_div(net, entries_count),
        return_rate=percent(returns, total),
        quantity_return_rate=percent(returned, sold),
    )


# -----------------------------
# Targets
# -----------------------------

def working_days_in_month(year: int, month: int) -> int:
    """Five working days per week, rounded down."""
    days = calendar.monthrange(year, month)[1]
    return (days * 5) // 7


def daily_target_amount(target_amount: float, working_days: int) -> float:
    return safe_div(target_amount, working_days)


def achievement_percentage(achieved_amount: float, target_amount: float) -> float:
    if not target_amount or target_amount <= 0:
        return 0.0
    return percent(achieved_amount, target_amount)


# -----------------------------
# Report statistics
# -----------------------------

def classify_performance(achievement_pct: float) -> str:
    for minimum, label in PERFORMANCE_TIERS:
        if achievement_pct >= minimum:
            return label
    return PERFORMANCE_FLOOR


def growth_rate(current: float, previous: float) -> float:
    """(current - previous) / previous * 100; 0 when there is no previous value."""
    return percent(current - previous, previous)


def trend_direction(net_growth_pct: float, threshold: float = TREND_THRESHOLD_PCT) -> str:
    if net_growth_pct > threshold:
        return "up"
    if net_growth_pct < -threshold:
        return "down"
    return "stable"


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population std-dev / mean."""
    vals = [float(v) for v in values]
    if not vals:
        return 0.0
    mean = fmean(vals)
    if mean == 0:
        return 0.0
    return safe_div(pstdev(vals), mean)


def consistency_score(values: Sequence[float]) -> float:
    """100 for perfectly even values, falling with spread; 0 for empty/all-zero input."""
    vals = [float(v) for v in values]
    if not vals or fmean(vals) == 0:
        return 0.0
    return max(0.0, 100.0 - coefficient_of_variation(vals) * 100.0)
