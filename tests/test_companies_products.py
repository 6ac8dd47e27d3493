# tests/test_companies_products.py
import pytest

from booker_ledger.database.errors import DomainError, NotFound, ReferenceNotFound, ValidationError


# ---------- companies ----------

def test_company_create_and_get(companies):
    c = companies.create("  Shan Foods ", address="Karachi", email="sales@shan.example", phone="021")
    assert c.name == "Shan Foods"
    got = companies.get(c.id)
    assert got == c
    assert got.created_at == got.updated_at


def test_company_name_required(companies):
    with pytest.raises(ValidationError):
        companies.create("   ")


def test_company_list_sorted_and_searchable(companies):
    companies.create("zeta")
    companies.create("Alpha", address="Lahore")
    companies.create("beta", email="hello@beta.example")
    assert [c.name for c in companies.list()] == ["Alpha", "beta", "zeta"]
    assert [c.name for c in companies.list(search="lahore")] == ["Alpha"]
    assert [c.name for c in companies.list(search="@beta")] == ["beta"]


def test_company_partial_update(companies):
    c = companies.create("Acme", address="Old", email="a@x.example")
    updated = companies.update(c.id, address="New")
    assert updated.address == "New"
    assert updated.email == "a@x.example"
    cleared = companies.update(c.id, email=None)
    assert cleared.email is None
    assert cleared.name == "Acme"


def test_company_update_missing_raises(companies):
    with pytest.raises(NotFound):
        companies.update("nope", name="X")


def test_company_delete_cascades_unused_products(companies, products, company, product):
    companies.delete(company.id)
    assert companies.get(company.id) is None
    assert products.get(product.id) is None


def test_company_delete_blocked_by_sold_product(companies, entries, company, product, booker):
    entries.create(booker.id, "2024-03-01", [{"product_id": product.id, "quantity_sold": 5}])
    with pytest.raises(DomainError):
        companies.delete(company.id)
    assert companies.get(company.id) is not None


def test_company_delete_missing_raises(companies):
    with pytest.raises(NotFound):
        companies.delete("nope")


# ---------- products ----------

def test_product_create_joins_company(product, company):
    assert product.company_id == company.id
    assert product.company_name == company.name
    assert product.unit_per_carton == 24
    assert product.cost_price == 100
    assert product.sell_price == 150


@pytest.mark.parametrize("upc", [0, -1, 2.5, "abc", None])
def test_product_rejects_bad_unit_per_carton(products, company, upc):
    with pytest.raises(ValidationError):
        products.create(company.id, "Bad", 1, 2, upc)


def test_product_rejects_negative_price(products, company):
    with pytest.raises(ValidationError):
        products.create(company.id, "Bad", -1, 2, 12)


def test_product_requires_existing_company(products):
    with pytest.raises(ReferenceNotFound):
        products.create("missing", "Orphan", 1, 2, 12)


def test_product_list_filters_and_sorts(products, companies, company):
    other = companies.create("Other Co")
    products.create(company.id, "Zinger", 10, 20, 12)
    products.create(company.id, "apple", 30, 35, 6)
    products.create(other.id, "Mango", 5, 9, 24)

    assert [p.name for p in products.list()] == ["apple", "Mango", "Zinger"]
    assert [p.name for p in products.list_by_company(company.id)] == ["apple", "Zinger"]
    assert [p.name for p in products.list(company_ids=[other.id])] == ["Mango"]
    assert [p.name for p in products.list(search="other")] == ["Mango"]
    by_price = products.list(sort_by="sell_price", descending=True)
    assert [p.sell_price for p in by_price] == [35, 20, 9]


def test_product_update_changes_only_given_fields(products, product):
    p = products.update(product.id, sell_price=175)
    assert p.sell_price == 175
    assert p.cost_price == 100
    assert p.unit_per_carton == 24


def test_product_move_to_unknown_company(products, product):
    with pytest.raises(ReferenceNotFound):
        products.update(product.id, company_id="missing")
    assert products.get(product.id).company_id == product.company_id


def test_product_update_missing_raises(products):
    with pytest.raises(NotFound):
        products.update("nope", name="X")


def test_product_delete(products, product):
    products.delete(product.id)
    assert products.get(product.id) is None
    with pytest.raises(NotFound):
        products.delete(product.id)


def test_product_delete_blocked_by_order(products, orders, product, booker):
    orders.create(booker.id, "2024-03-01", [{"product_id": product.id, "quantity": 24}])
    with pytest.raises(DomainError):
        products.delete(product.id)
