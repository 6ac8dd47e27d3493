# tests/test_daily_entries.py
import sqlite3

import pytest

from booker_ledger.database.errors import CreationFailed, NotFound, ReferenceNotFound, ValidationError
from booker_ledger.modules.ledger.calculations import CartonBreakdown


def _entry(entries, booker, product, sold=120, returned=20, day="2024-03-05", **extra):
    item = {"product_id": product.id, "quantity_sold": sold, "quantity_returned": returned, **extra}
    return entries.create(booker.id, day, [item])


def test_create_computes_item_and_header_totals(entries, booker, product):
    e = _entry(entries, booker, product)
    assert len(e.items) == 1
    it = e.items[0]
    assert it.net_quantity == 100
    assert it.total_cost == 10000
    assert it.total_revenue == 15000
    assert it.product_name == "P1"

    assert e.total_amount == 18000
    assert e.total_return_amount == 3000
    assert e.net_amount == 15000
    assert e.net_amount == e.total_amount - e.total_return_amount
    assert e.order_booker_name == "Ahmed Ali"


def test_price_overrides_including_zero(entries, booker, product):
    e = _entry(entries, booker, product, sold=10, returned=0, sell_price_override=0, cost_price_override=80)
    it = e.items[0]
    assert it.effective_sell_price == 0
    assert it.effective_cost_price == 80
    assert it.total_revenue == 0
    assert it.total_cost == 800
    assert e.net_amount == 0


@pytest.mark.parametrize(
    "item",
    [
        {"quantity_sold": 5, "quantity_returned": 6},
        {"quantity_sold": -1},
        {"quantity_sold": 2.5},
        {"quantity_sold": 5, "quantity_returned": -1},
    ],
)
def test_invalid_quantities_rejected(entries, booker, product, item):
    with pytest.raises(ValidationError):
        entries.create(booker.id, "2024-03-05", [{"product_id": product.id, **item}])
    assert entries.list() == []


@pytest.mark.parametrize("day", ["2024-13-01", "yesterday", ""])
def test_invalid_entry_date_rejected(entries, booker, product, day):
    with pytest.raises(ValidationError):
        _entry(entries, booker, product, day=day)
    assert entries.list() == []


def test_item_carton_breakdown_uses_net_units(entries, booker, product):
    it = _entry(entries, booker, product, sold=120, returned=20).items[0]
    assert it.carton_breakdown == CartonBreakdown(cartons=4, remainder=4)


def test_entry_needs_items(entries, booker):
    with pytest.raises(ValidationError):
        entries.create(booker.id, "2024-03-05", [])


def test_unknown_product_leaves_nothing_behind(entries, booker, product, db):
    items = [
        {"product_id": product.id, "quantity_sold": 10},
        {"product_id": "missing", "quantity_sold": 10},
    ]
    with pytest.raises(ReferenceNotFound):
        entries.create(booker.id, "2024-03-05", items)
    assert db.scalar("SELECT COUNT(*) FROM daily_entries") == 0
    assert db.scalar("SELECT COUNT(*) FROM daily_entry_items") == 0


def test_unknown_order_booker(entries, product):
    with pytest.raises(ReferenceNotFound):
        entries.create("missing", "2024-03-05", [{"product_id": product.id, "quantity_sold": 1}])


def test_update_item_return_rederives_totals(entries, booker, product):
    e = _entry(entries, booker, product, sold=120, returned=0)
    assert e.net_amount == 18000

    it = entries.update_item_return(e.items[0].id, 20)
    assert it.quantity_returned == 20
    assert it.net_quantity == 100
    assert it.total_revenue == 15000

    header = entries.get(e.id)
    assert header.total_amount == 18000
    assert header.total_return_amount == 3000
    assert header.net_amount == 15000


def test_update_item_return_cannot_exceed_sold(entries, booker, product):
    e = _entry(entries, booker, product, sold=10, returned=0)
    with pytest.raises(ValidationError):
        entries.update_item_return(e.items[0].id, 11)
    assert entries.get_item(e.items[0].id).quantity_returned == 0


def test_update_item_return_missing_item(entries):
    with pytest.raises(NotFound):
        entries.update_item_return("nope", 1)


def test_update_replaces_items(entries, booker, product, loose_product):
    e = _entry(entries, booker, product)
    updated = entries.update(
        e.id,
        items=[{"product_id": loose_product.id, "quantity_sold": 10, "quantity_returned": 2}],
    )
    assert [i.product_id for i in updated.items] == [loose_product.id]
    assert updated.total_amount == 500
    assert updated.total_return_amount == 100
    assert updated.net_amount == 400


def test_notes_only_update_keeps_totals(entries, booker, product):
    e = _entry(entries, booker, product)
    updated = entries.update(e.id, notes="rainy day")
    assert updated.notes == "rainy day"
    assert updated.net_amount == e.net_amount
    assert [i.id for i in updated.items] == [i.id for i in e.items]


def test_update_missing_entry(entries):
    with pytest.raises(NotFound):
        entries.update("nope", notes="x")


def test_recompute_follows_current_product_price(entries, products, booker, product):
    e = _entry(entries, booker, product, sold=10, returned=0)
    assert e.net_amount == 1500
    products.update(product.id, sell_price=200)
    # stored totals do not move on their own
    assert entries.get(e.id).net_amount == 1500
    entries.update_item_return(e.items[0].id, 0)
    assert entries.get(e.id).net_amount == 2000


def test_list_filters_and_order(entries, bookers, booker, product):
    other = bookers.create("Fatima Khan")
    _entry(entries, booker, product, day="2024-03-01")
    _entry(entries, booker, product, day="2024-03-31")
    _entry(entries, other, product, day="2024-04-01")
    _entry(entries, other, product, day="2023-12-31")

    assert [e.date for e in entries.list()] == ["2024-04-01", "2024-03-31", "2024-03-01", "2023-12-31"]
    assert [e.date for e in entries.list_by_month(2024, 3)] == ["2024-03-31", "2024-03-01"]
    assert [e.date for e in entries.list(year=2024)] == ["2024-04-01", "2024-03-31", "2024-03-01"]
    assert [e.date for e in entries.list_by_order_booker(other.id)] == ["2024-04-01", "2023-12-31"]
    assert [e.date for e in entries.list(date_from="2024-03-15", date_to="2024-04-01")] == [
        "2024-04-01",
        "2024-03-31",
    ]
    with_items = entries.list_with_items(order_booker_ids=[booker.id])
    assert all(len(e.items) == 1 for e in with_items)


def test_monthly_analytics(entries, bookers, booker, product):
    _entry(entries, booker, product, sold=120, returned=20, day="2024-03-01")
    _entry(entries, booker, product, sold=40, returned=0, day="2024-03-02")
    _entry(entries, booker, product, sold=1000, returned=0, day="2024-04-01")

    a = entries.monthly_analytics(2024, 3)
    assert a.entries_count == 2
    assert a.items_count == 2
    assert a.total_amount == 18000 + 6000
    assert a.total_return_amount == 3000
    assert a.net_amount == 21000
    assert a.average_daily_amount == 10500
    assert a.total_quantity_sold == 160
    assert a.total_quantity_returned == 20
    assert a.quantity_return_rate == pytest.approx(12.5)
    assert a.return_rate == pytest.approx(12.5)

    other = bookers.create("Nobody")
    assert entries.monthly_analytics(2024, 3, order_booker_ids=[other.id]).entries_count == 0


def test_returnable_items(entries, booker, product, loose_product):
    entries.create(booker.id, "2024-03-01", [
        {"product_id": product.id, "quantity_sold": 10, "quantity_returned": 10},
        {"product_id": loose_product.id, "quantity_sold": 8, "quantity_returned": 3},
    ])
    entries.create(booker.id, "2024-02-20", [{"product_id": product.id, "quantity_sold": 5}])

    rows = entries.returnable_items(booker.id, date_from="2024-03-01")
    assert [(r.product_name, r.returnable_quantity) for r in rows] == [("Loose", 5)]
    assert len(entries.returnable_items(booker.id)) == 2


def test_targets_follow_entries(entries, targets, booker, product):
    t = targets.create(booker.id, 2024, 3, 30000)
    e = _entry(entries, booker, product, day="2024-03-05")  # net 15000
    t = targets.get(t.id)
    assert t.achieved_amount == 15000
    assert t.remaining_amount == 15000
    assert t.achievement_percentage == 50

    entries.update(e.id, date="2024-04-02")
    assert targets.get(t.id).achieved_amount == 0

    entries.update(e.id, date="2024-03-06")
    assert targets.get(t.id).achieved_amount == 15000

    entries.delete(e.id)
    assert targets.get(t.id).achieved_amount == 0
    assert targets.get(t.id).remaining_amount == 30000


def test_delete_removes_items(entries, booker, product, db):
    e = _entry(entries, booker, product)
    entries.delete(e.id)
    assert entries.get(e.id) is None
    assert db.scalar("SELECT COUNT(*) FROM daily_entry_items") == 0
    with pytest.raises(NotFound):
        entries.delete(e.id)


def test_unexpected_failure_is_wrapped_and_rolled_back(entries, booker, product, db, monkeypatch):
    def broken(conn, order_booker_id, *dates):
        raise sqlite3.IntegrityError("simulated")

    monkeypatch.setattr(entries, "_refresh_targets", broken)
    with pytest.raises(CreationFailed) as ei:
        _entry(entries, booker, product)
    assert isinstance(ei.value.cause, sqlite3.IntegrityError)
    assert ei.value.__cause__ is ei.value.cause
    assert db.scalar("SELECT COUNT(*) FROM daily_entries") == 0
