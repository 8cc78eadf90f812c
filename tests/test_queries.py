"""
Tests for gastos.queries.QueryService lookups.
"""

import json

import pytest

from gastos.errors import InvalidFilterError, NotFoundError
from gastos.models import Deputy, DeputyMandateInfo, Expense, Supplier
from gastos.queries import QueryService

FUEL = "COMBUSTÍVEIS E LUBRIFICANTES."
FLIGHTS = "PASSAGEM AÉREA - SIGEPA"


@pytest.fixture
def service(store, cache):
    store.upsert_deputy(Deputy(id=1, name="Maria Silva", party="PT", state="SP", legislature=57))
    store.upsert_deputy(Deputy(id=2, name="Ana Maria Souza", party="PL", state="RJ", legislature=57))
    store.upsert_mandate(DeputyMandateInfo(1, 56, "PT", "SP", "Suplente"))
    store.upsert_mandate(DeputyMandateInfo(1, 57, "PT", "SP", "Titular"))

    expenses = [
        (1, 1, 2023, 3, FUEL, 100.0, "12.345.678/0001-90"),
        (1, 2, 2023, 4, FUEL, 50.0, "12.345.678/0001-90"),
        (1, 3, 2023, 4, FLIGHTS, 700.0, None),
        (2, 4, 2023, 4, FUEL, 30.0, "98.765.432/0001-10"),
        (2, 5, 2023, 5, FUEL, 20.0, "12345678000190"),
    ]
    for dep, doc, year, month, kind, value, supplier in expenses:
        store.insert_expense(Expense(
            deputy_id=dep, document_id=doc, year=year, month=month,
            expense_type=kind, net_value=value, supplier_id=supplier,
        ))
    store.save_supplier(Supplier(
        cnpj="12345678000190", name="POSTO EXEMPLO LTDA",
        main_activity="Comércio varejista de combustíveis",
    ))
    return QueryService(store, cache)


# ---------------------------------------------------------------------------
# Deputy lookup
# ---------------------------------------------------------------------------

def test_find_by_id(service):
    assert service.find_deputy(1).name == "Maria Silva"
    assert service.find_deputy("2").name == "Ana Maria Souza"


def test_find_by_exact_slug_or_name(service):
    """Names are slugified before matching."""
    assert service.find_deputy("maria-silva").id == 1
    assert service.find_deputy("Maria Silva").id == 1


def test_substring_match_prefers_first_slug(service):
    """Without an exact match, the lexicographically first containing slug wins."""
    assert service.find_deputy("maria").slug == "ana-maria-souza"
    assert service.find_deputy("silva").id == 1


@pytest.mark.parametrize("key", ["999", "zezinho", "!!!", "", "²", "١٢"])
def test_unknown_deputy(service, key):
    with pytest.raises(NotFoundError):
        service.find_deputy(key)


def test_profile_lists_mandates(service):
    profile = json.loads(service.deputy_profile("maria-silva"))
    assert profile["slug"] == "maria-silva"
    assert [(m["legislature"], m["title"]) for m in profile["mandates"]] == [
        (56, "Suplente"),
        (57, "Titular"),
    ]


def test_deputies_listing_ordered_by_name(service):
    names = [d["name"] for d in json.loads(service.deputies())]
    assert names == ["Ana Maria Souza", "Maria Silva"]


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

def test_expense_types(service):
    types = [t["expense_type"] for t in json.loads(service.expense_types())]
    assert types == sorted([FUEL, FLIGHTS])


def test_deputy_expenses_filters_and_supplier_join(service):
    """Documents are newest first and carry registry data when resolved."""
    docs = json.loads(service.deputy_expenses("maria-silva", expense_type=FUEL))
    assert [d["document_id"] for d in docs] == [2, 1]
    assert docs[0]["supplier_registry_name"] == "POSTO EXEMPLO LTDA"

    april = json.loads(service.deputy_expenses(1, year=2023, month=4))
    assert {d["document_id"] for d in april} == {2, 3}


def test_deputy_expenses_are_cached_per_deputy(service, cache):
    first = json.loads(service.deputy_expenses(1))
    second = json.loads(service.deputy_expenses(2))
    assert {d["document_id"] for d in first} == {1, 2, 3}
    assert {d["document_id"] for d in second} == {4, 5}
    assert cache.size() == 2


@pytest.mark.parametrize("month", [0, 13, "jan"])
def test_invalid_month(service, month):
    with pytest.raises(InvalidFilterError):
        service.deputy_expenses(1, month=month)


def test_monthly_totals(service):
    months = json.loads(service.deputy_monthly_totals(1))
    assert [(m["year"], m["month"], m["total_spent"]) for m in months] == [
        (2023, 3, 100.0),
        (2023, 4, 750.0),
    ]


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------

def test_top_suppliers(service):
    """Spelling variants of one CNPJ are aggregated; names come from the registry."""
    rows = json.loads(service.top_suppliers())
    assert [r["cnpj"] for r in rows] == ["12345678000190", "98765432000110"]
    top = rows[0]
    assert top["name"] == "POSTO EXEMPLO LTDA"
    assert top["total_spent"] == pytest.approx(170.0)
    assert top["documents"] == 3
    assert top["deputies"] == 2


def test_top_suppliers_limit(service):
    assert len(json.loads(service.top_suppliers(limit=1))) == 1
    with pytest.raises(InvalidFilterError):
        service.top_suppliers(limit=0)
