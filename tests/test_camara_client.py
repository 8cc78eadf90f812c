"""
Tests for gastos.camara_client pagination against an in-process API.
"""

import asyncio

import pytest

from gastos.camara_client import next_link
from gastos.errors import TransportError

from fakes import FakeCamara, despesa

DESPESAS = "/deputados/1/despesas"


def _collect(fake: FakeCamara, path: str, params: dict):
    async def go():
        pages = []
        async with fake.client() as client:
            try:
                async for page in client.iter_pages(path, params):
                    pages.append(page)
            except TransportError as e:
                return pages, e
        return pages, None

    return asyncio.run(go())


def test_next_link():
    """Only the rel == "next" link is followed."""
    data = {"links": [{"rel": "self", "href": "a"}, {"rel": "next", "href": "b"}]}
    assert next_link(data) == "b"
    assert next_link({"links": [{"rel": "last", "href": "c"}]}) is None
    assert next_link({}) is None


def test_iter_pages_follows_next_links():
    """Every page is fetched once, numbered from 1, until no next link."""
    fake = FakeCamara(expenses={1: [despesa(cod) for cod in range(5, 0, -1)]})
    pages, error = _collect(fake, DESPESAS, {"itens": 2})

    assert error is None
    assert [p.number for p in pages] == [1, 2, 3]
    assert [r["codDocumento"] for p in pages for r in p.records] == [5, 4, 3, 2, 1]
    assert pages[-1].next_url is None
    assert len(fake.requested(DESPESAS)) == 3


def test_iter_pages_starts_at_requested_page():
    """A ``pagina`` parameter resumes the listing at that page."""
    fake = FakeCamara(expenses={1: [despesa(cod) for cod in range(5, 0, -1)]})
    pages, _ = _collect(fake, DESPESAS, {"itens": 2, "pagina": 2})

    assert [p.number for p in pages] == [2, 3]
    assert fake.requested(DESPESAS)[0].params["pagina"] == "2"


def test_iter_pages_empty_listing():
    """An empty ``dados`` array yields nothing."""
    fake = FakeCamara()
    pages, error = _collect(fake, DESPESAS, {"itens": 2})
    assert pages == [] and error is None


def test_iter_pages_raises_after_partial_listing():
    """A failing page raises TransportError after the earlier pages were yielded."""
    fake = FakeCamara(expenses={1: [despesa(cod) for cod in range(5, 0, -1)]})
    fake.failures.add((DESPESAS, 2))
    pages, error = _collect(fake, DESPESAS, {"itens": 2})

    assert [p.number for p in pages] == [1]
    assert isinstance(error, TransportError)


def test_get_wraps_http_errors():
    """Non-2xx responses become TransportError."""
    fake = FakeCamara()

    async def go():
        async with fake.client() as client:
            await client.get("/nao-existe")

    with pytest.raises(TransportError):
        asyncio.run(go())


def test_get_all_combines_pages():
    fake = FakeCamara(expenses={1: [despesa(cod) for cod in range(3, 0, -1)]})

    async def go():
        async with fake.client() as client:
            return await client.get_all(DESPESAS, {"itens": 2})

    records = asyncio.run(go())
    assert [r["codDocumento"] for r in records] == [3, 2, 1]
