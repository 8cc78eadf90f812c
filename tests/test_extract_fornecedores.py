"""
Tests for supplier CNPJ enrichment (gastos.extract_fornecedores) and the
BrasilAPI flatten helpers.
"""

import asyncio

from gastos.extract_fornecedores import SupplierWorker, pending_identifiers
from gastos.models import Expense
from gastos.transforms import flatten_empresa, format_address, format_cep

from fakes import FakeBrasilApi

EMPRESA = {
    "cnpj": "12345678000190",
    "razao_social": "POSTO EXEMPLO LTDA",
    "data_inicio_atividade": "2001-05-10",
    "cnae_fiscal_descricao": "Comércio varejista de combustíveis",
    "descricao_tipo_de_logradouro": "AVENIDA",
    "logradouro": "PAULISTA",
    "numero": "1000",
    "complemento": "",
    "bairro": "BELA VISTA",
    "municipio": "SAO PAULO",
    "uf": "SP",
    "cep": "01310100",
}


# ---------------------------------------------------------------------------
# Flatten helpers
# ---------------------------------------------------------------------------

def test_format_cep():
    assert format_cep("01310100") == "01310-100"
    assert format_cep("01310-100") == "01310-100"
    assert format_cep("  ") is None
    assert format_cep(None) is None


def test_format_address_skips_blank_parts():
    """Blank components are omitted; the CEP is hyphenated and placed last."""
    assert format_address(EMPRESA) == (
        "AVENIDA, PAULISTA, 1000, BELA VISTA, SAO PAULO, SP, 01310-100"
    )
    assert format_address({"logradouro": "  ", "uf": None}) is None


def test_flatten_empresa():
    supplier = flatten_empresa("12345678000190", EMPRESA)
    assert supplier.name == "POSTO EXEMPLO LTDA"
    assert supplier.founding_date == "2001-05-10"
    assert supplier.main_activity == "Comércio varejista de combustíveis"
    assert supplier.is_resolved


def test_flatten_empresa_unusable_payload():
    """Non-object or empty payloads cannot be flattened."""
    assert flatten_empresa("1", []) is None
    assert flatten_empresa("1", {}) is None
    assert flatten_empresa("1", "erro") is None


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------

def _seed(store, supplier_ids):
    for i, supplier_id in enumerate(supplier_ids, 1):
        store.insert_expense(Expense(
            deputy_id=1, document_id=i, year=2023, month=3,
            net_value=10.0, supplier_id=supplier_id,
        ))


def _run(store, api: FakeBrasilApi, batch_size: int = 2):
    async def go():
        async with api.client() as client:
            return await SupplierWorker(store, client, batch_size=batch_size, delay=0).run()

    return asyncio.run(go())


def test_pending_identifiers_normalizes_and_deduplicates(store):
    """Formatted and plain spellings of a CNPJ collapse to one candidate."""
    _seed(store, ["12.345.678/0001-90", "12345678000190", " - ", None, "98.765.432/0001-10"])
    assert pending_identifiers(store) == ["12345678000190", "98765432000110"]


def test_enrichment_outcomes(store):
    """Found → full row; 404 → bare row; 500 → nothing stored, batch continues."""
    _seed(store, ["11.111.111/0001-11", "12.345.678/0001-90", "98.765.432/0001-10"])
    api = FakeBrasilApi(companies={"12345678000190": EMPRESA}, broken={"11111111000111"})

    summary = _run(store, api)

    assert api.lookups == ["11111111000111", "12345678000190", "98765432000110"]
    assert (summary.resolved, summary.empty, summary.failed) == (1, 1, 1)

    found = store.get_supplier("12345678000190")
    assert found.address == "AVENIDA, PAULISTA, 1000, BELA VISTA, SAO PAULO, SP, 01310-100"
    bare = store.get_supplier("98765432000110")
    assert bare is not None and not bare.is_resolved
    assert store.get_supplier("11111111000111") is None, "transport failures are not persisted"


def test_second_pass_only_retries_transport_failures(store):
    """Resolved and not-found identifiers are never looked up again."""
    _seed(store, ["11.111.111/0001-11", "12.345.678/0001-90", "98.765.432/0001-10"])
    api = FakeBrasilApi(companies={"12345678000190": EMPRESA}, broken={"11111111000111"})
    _run(store, api)

    api.lookups.clear()
    api.broken.clear()
    summary = _run(store, api)

    assert api.lookups == ["11111111000111"]
    assert summary.candidates == 1
    assert store.get_supplier("11111111000111") is not None

    api.lookups.clear()
    _run(store, api)
    assert api.lookups == [], "a fully enriched warehouse needs no lookups"
