# tests/test_order_bookers.py
from datetime import date

import pytest

from booker_ledger.database.errors import NotFound, ValidationError


def test_create_defaults(bookers):
    b = bookers.create("Sara Sheikh")
    assert b.is_active is True
    assert b.name_urdu == ""
    assert b.phone == ""
    assert b.email is None
    assert b.join_date == date.today().isoformat()


def test_create_keeps_urdu_name(booker):
    assert booker.name_urdu == "احمد علی"
    assert booker.join_date == "2024-01-15"


def test_name_required(bookers):
    with pytest.raises(ValidationError):
        bookers.create("")


def test_invalid_join_date_rejected(bookers, booker):
    with pytest.raises(ValidationError):
        bookers.create("Ahmed", join_date="2024-02-30")
    with pytest.raises(ValidationError):
        bookers.update(booker.id, join_date="not a date")


def test_list_filters(bookers):
    a = bookers.create("Ahmed", phone="0300", join_date="2024-01-10")
    f = bookers.create("Fatima", phone="0301", join_date="2024-02-01")
    bookers.create("Hassan", phone="0302", join_date="2024-03-05")
    bookers.deactivate(f.id)

    assert [b.name for b in bookers.list()] == ["Ahmed", "Fatima", "Hassan"]
    assert [b.name for b in bookers.list_active()] == ["Ahmed", "Hassan"]
    assert [b.name for b in bookers.list(is_active=False)] == ["Fatima"]
    assert [b.name for b in bookers.list(search="0302")] == ["Hassan"]
    assert [b.name for b in bookers.list(join_date_from="2024-02-01", join_date_to="2024-02-29")] == ["Fatima"]
    assert bookers.get(a.id).is_active is True


def test_list_carries_current_month_target(bookers, targets, booker):
    targets.create(booker.id, 2024, 3, 44000)
    row = bookers.list(as_of=date(2024, 3, 15))[0]
    assert row.current_month_target == 44000
    assert row.current_month_remaining == 44000
    assert row.current_month_daily_target == 2000

    other_month = bookers.list(as_of=date(2024, 4, 1))[0]
    assert other_month.current_month_target == 0
    assert other_month.current_month_percentage == 0


def test_update_and_toggle_active(bookers, booker):
    b = bookers.update(booker.id, phone="+92-333-0000000", email="  ahmed@example.com ")
    assert b.phone == "+92-333-0000000"
    assert b.email == "ahmed@example.com"
    assert b.name == "Ahmed Ali"
    assert bookers.deactivate(booker.id).is_active is False
    assert bookers.activate(booker.id).is_active is True


def test_update_missing_raises(bookers):
    with pytest.raises(NotFound):
        bookers.update("nope", name="X")


def test_delete_cascades_history(bookers, entries, orders, targets, booker, product, db):
    entries.create(booker.id, "2024-03-01", [{"product_id": product.id, "quantity_sold": 10}])
    orders.create(booker.id, "2024-03-01", [{"product_id": product.id, "quantity": 24}])
    targets.create(booker.id, 2024, 3, 1000)

    bookers.delete(booker.id)

    assert bookers.get(booker.id) is None
    for table in ("daily_entries", "daily_entry_items", "orders", "order_items", "monthly_targets"):
        assert db.scalar(f"SELECT COUNT(*) FROM {table}") == 0
    with pytest.raises(NotFound):
        bookers.delete(booker.id)
