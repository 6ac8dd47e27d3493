# tests/test_monthly_targets.py
import pytest

from booker_ledger.database.errors import NotFound, ReferenceNotFound, ValidationError


def test_create_derives_calendar_fields(targets, booker):
    t = targets.create(booker.id, 2024, 2, 40000)
    assert t.days_in_month == 29
    assert t.working_days_in_month == 20
    assert t.daily_target_amount == 2000
    assert t.achieved_amount == 0
    assert t.remaining_amount == 40000
    assert t.achievement_percentage == 0
    assert t.order_booker_name == "Ahmed Ali"


def test_create_picks_up_existing_sales(targets, entries, booker, product):
    entries.create(booker.id, "2024-03-31", [{"product_id": product.id, "quantity_sold": 100}])
    t = targets.create(booker.id, 2024, 3, 30000)
    assert t.achieved_amount == 15000
    assert t.achievement_percentage == 50


def test_duplicate_month_rejected(targets, booker):
    targets.create(booker.id, 2024, 3, 1000)
    with pytest.raises(ValidationError):
        targets.create(booker.id, 2024, 3, 2000)


@pytest.mark.parametrize("year, month, amount", [(2024, 13, 1), (2024, 0, 1), (2024, 3, -5), ("x", 3, 1)])
def test_invalid_input(targets, booker, year, month, amount):
    with pytest.raises(ValidationError):
        targets.create(booker.id, year, month, amount)


def test_unknown_booker(targets):
    with pytest.raises(ReferenceNotFound):
        targets.create("missing", 2024, 3, 1000)


def test_update_amount_recomputes(targets, entries, booker, product):
    entries.create(booker.id, "2024-03-01", [{"product_id": product.id, "quantity_sold": 100}])
    t = targets.create(booker.id, 2024, 3, 30000)
    t = targets.update(t.id, target_amount=15000)
    assert t.target_amount == 15000
    assert t.daily_target_amount == pytest.approx(15000 / 22)
    assert t.remaining_amount == 0
    assert t.achievement_percentage == 100


def test_update_and_delete_missing(targets):
    with pytest.raises(NotFound):
        targets.update("nope", target_amount=1)
    with pytest.raises(NotFound):
        targets.delete("nope")


def test_batch_create_is_all_or_nothing(targets, bookers, booker):
    other = bookers.create("Fatima Khan")
    targets.create(other.id, 2024, 3, 500)
    with pytest.raises(ValidationError):
        targets.batch_create([
            {"order_booker_id": booker.id, "year": 2024, "month": 3, "target_amount": 1000},
            {"order_booker_id": other.id, "year": 2024, "month": 3, "target_amount": 2000},
        ])
    assert targets.get_for(booker.id, 2024, 3) is None
    assert len(targets.list()) == 1


def test_batch_upsert(targets, bookers, booker):
    other = bookers.create("Fatima Khan")
    existing = targets.create(other.id, 2024, 3, 500)
    out = targets.batch_upsert([
        {"order_booker_id": booker.id, "year": 2024, "month": 3, "target_amount": 1000},
        {"order_booker_id": other.id, "year": 2024, "month": 3, "target_amount": 2000},
    ])
    assert [t.target_amount for t in out] == [1000, 2000]
    assert out[1].id == existing.id
    assert len(targets.list_by_month(2024, 3)) == 2


def test_list_order_and_filters(targets, bookers, booker):
    other = bookers.create("Bilal")
    targets.create(booker.id, 2024, 2, 1)
    targets.create(booker.id, 2024, 3, 1)
    targets.create(other.id, 2024, 3, 1)
    rows = targets.list()
    assert [(t.month, t.order_booker_name) for t in rows] == [(3, "Ahmed Ali"), (3, "Bilal"), (2, "Ahmed Ali")]
    assert len(targets.list_by_order_booker(booker.id)) == 2
    assert len(targets.list(year=2024, month=2)) == 1


def test_copy_from_previous_month(targets, bookers, booker):
    other = bookers.create("Fatima Khan")
    targets.create(booker.id, 2023, 12, 1000)
    targets.create(other.id, 2023, 12, 2000)
    targets.create(other.id, 2024, 1, 9999)

    copied = targets.copy_from_previous_month(to_year=2024, to_month=1)
    assert [(t.order_booker_id, t.target_amount) for t in copied] == [(booker.id, 1000)]
    assert targets.get_for(other.id, 2024, 1).target_amount == 9999
    assert targets.get_for(booker.id, 2024, 1).days_in_month == 31


def test_copy_between_explicit_months(targets, booker):
    targets.create(booker.id, 2024, 1, 700)
    copied = targets.copy_from_previous_month(2024, 1, 2024, 5)
    assert [t.month for t in copied] == [5]
    with pytest.raises(ValidationError):
        targets.copy_from_previous_month(2024, 1)


def test_refresh_achievement(targets, entries, booker, product, db):
    t = targets.create(booker.id, 2024, 3, 30000)
    entries.create(booker.id, "2024-03-02", [{"product_id": product.id, "quantity_sold": 100}])
    db.execute("UPDATE monthly_targets SET achieved_amount=0 WHERE id=?", (t.id,))

    refreshed = targets.refresh_achievement(booker.id, 2024, 3)
    assert refreshed.achieved_amount == 15000
    assert targets.refresh_achievement(booker.id, 2024, 4) is None
