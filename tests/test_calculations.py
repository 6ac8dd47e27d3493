# tests/test_calculations.py
import math

import pytest

from booker_ledger.modules.ledger import calculations as calc


def test_units_and_cartons_round_trip():
    for cartons in (0, 1, 7, 250):
        for upc in (1, 12, 24, 144):
            units = calc.units_from_cartons(cartons, upc)
            assert calc.cartons_from_units(units, upc).cartons == cartons


def test_cartons_from_units_splits_floor_and_remainder():
    b = calc.cartons_from_units(50, 24)
    assert b.cartons == 2
    assert b.remainder == 2
    assert calc.cartons_from_units(23, 24) == calc.CartonBreakdown(0, 23)


@pytest.mark.parametrize("upc", [0, -3, None])
def test_cartons_from_units_rejects_bad_unit_per_carton(upc):
    with pytest.raises(ValueError):
        calc.cartons_from_units(10, upc)


def test_carton_ratio_is_fractional_and_safe():
    assert calc.carton_ratio(36, 24) == 1.5
    assert calc.carton_ratio(36, 0) == 0.0


def test_order_item_totals_scenario():
    t = calc.order_item_totals(240, 100, 150, 24, return_quantity=24)
    assert t.cartons == 10.0
    assert t.total_cost == 24000
    assert t.total_amount == 36000
    assert t.profit == 12000
    assert t.return_cartons == 1.0
    assert t.return_amount == 3600


def test_order_totals_rederives_profit():
    a = calc.order_item_totals(10, 5, 8, 10)
    b = calc.order_item_totals(4, 20, 15, 2, return_quantity=1)
    t = calc.order_totals([a, b])
    assert t.total_amount == 80 + 60
    assert t.total_cost == 50 + 80
    assert t.total_profit == t.total_amount - t.total_cost
    assert t.total_cartons == 1 + 2
    assert t.return_cartons == 0.5
    assert t.return_amount == 15


def test_order_totals_reads_mappings():
    rows = [{"total_amount": 10, "total_cost": 4, "cartons": 1, "return_cartons": 0, "return_amount": 0}]
    assert calc.order_totals(rows).total_profit == 6


def test_daily_entry_item_is_on_net_basis():
    t = calc.daily_entry_item_totals(120, 20, 100, 150)
    assert t.net_quantity == 100
    assert t.total_cost == 10000
    assert t.total_revenue == 15000
    assert t.gross_amount == 18000
    assert t.return_amount == 3000


def test_daily_entry_header_net_equals_gross_minus_returns():
    items = [
        calc.daily_entry_item_totals(120, 20, 100, 150),
        calc.daily_entry_item_totals(10, 0, 5, 9),
    ]
    h = calc.daily_entry_totals(items)
    assert h.total_amount == 18000 + 90
    assert h.total_return_amount == 3000
    assert h.net_amount == h.total_amount - h.total_return_amount
    assert h.net_amount == sum(i.total_revenue for i in items)


def test_resolve_price_honours_zero_override():
    assert calc.resolve_price(0, 150) == 0.0
    assert calc.resolve_price(None, 150) == 150.0


def test_aggregate_monthly_empty_is_all_zero():
    a = calc.aggregate_monthly([], [])
    assert a == calc.MonthlyAnalytics()
    for value in vars(a).values():
        assert value == 0
        assert not math.isnan(value)


def test_aggregate_monthly_rates():
    entries = [
        {"total_amount": 1000, "total_return_amount": 100, "net_amount": 900},
        {"total_amount": 500, "total_return_amount": 50, "net_amount": 450},
    ]
    items = [
        {"quantity_sold": 80, "quantity_returned": 8, "net_quantity": 72},
        {"quantity_sold": 20, "quantity_returned": 2, "net_quantity": 18},
    ]
    a = calc.aggregate_monthly(entries, items)
    assert a.entries_count == 2
    assert a.items_count == 2
    assert a.net_amount == 1350
    assert a.average_daily_amount == 675
    assert a.return_rate == pytest.approx(10.0)
    assert a.quantity_return_rate == pytest.approx(10.0)


def test_target_helpers():
    # February 2024 has 29 days -> 20 working days
    assert calc.working_days_in_month(2024, 2) == 20
    assert calc.working_days_in_month(2024, 3) == 22
    assert calc.daily_target_amount(44000, 22) == 2000
    assert calc.daily_target_amount(44000, 0) == 0.0
    assert calc.achievement_percentage(500, 1000) == 50.0
    assert calc.achievement_percentage(500, 0) == 0.0


@pytest.mark.parametrize(
    "pct, label",
    [(150, "excellent"), (100, "excellent"), (80, "good"), (79.9, "average"),
     (60, "average"), (40, "below-average"), (39.99, "poor"), (0, "poor")],
)
def test_classify_performance_tiers(pct, label):
    assert calc.classify_performance(pct) == label


def test_growth_and_trend():
    assert calc.growth_rate(110, 100) == pytest.approx(10.0)
    assert calc.growth_rate(50, 0) == 0.0
    assert calc.trend_direction(5.1) == "up"
    assert calc.trend_direction(5.0) == "stable"
    assert calc.trend_direction(-5.1) == "down"


def test_consistency_score():
    assert calc.consistency_score([100, 100, 100]) == 100.0
    assert calc.consistency_score([]) == 0.0
    assert calc.consistency_score([0, 0, 0]) == 0.0
    # mean 100, population std 100 -> CV 1 -> score 0
    assert calc.consistency_score([0, 200]) == 0.0
    assert 0 < calc.consistency_score([90, 110]) < 100


def test_safe_div_never_returns_nan_or_inf():
    assert calc.safe_div(1, 0) == 0.0
    assert calc.safe_div(0, 0) == 0.0
    assert calc.percent(1, None) == 0.0
