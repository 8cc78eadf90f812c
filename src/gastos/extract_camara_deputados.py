"""
Scrape deputies and their mandate history for one legislature.

Endpoints used:
  GET /deputados?idLegislatura={n}&itens=100&ordem=ASC&ordenarPor=nome
  GET /deputados/{id}/historico

Strategy:
  - Page through the legislature's deputy listing.
  - Upsert every deputy as soon as its page arrives (identity fields are
    refreshed, the slug is kept).
  - Fetch the mandate history of the page's deputies in concurrent batches
    and upsert each entry keyed by (deputy, legislature).

Called by the scrape coordinator (extract_camara_despesas.py); the listing
is not resumable on its own; re-running it is idempotent.
"""

from .camara_client import CamaraApiClient
from .config import CAMARA_PAGE_SIZE, EXPENSE_BATCH_SIZE
from .errors import DataIntegrityError, TransportError
from .store import Store
from .transforms import flatten_deputado, flatten_historico
from .utils import run_in_batches


async def scrape_mandates(store: Store, client: CamaraApiClient, deputado_id: int) -> int:
    """Fetch and upsert the mandate history of one deputy.

    Returns the number of history entries written.
    """
    try:
        data = await client.get(f"/deputados/{deputado_id}/historico")
    except TransportError as e:
        print(f"  deputy {deputado_id} historico ERROR: {e}")
        return 0

    written = 0
    for rec in data.get("dados") or []:
        try:
            store.upsert_mandate(flatten_historico(rec))
            written += 1
        except (KeyError, TypeError, ValueError, DataIntegrityError) as e:
            print(f"  deputy {deputado_id} historico entry skipped: {e!r}")
    return written


async def scrape_deputies(
    store: Store,
    client: CamaraApiClient,
    legislatura_id: int,
    *,
    batch_size: int = EXPENSE_BATCH_SIZE,
    page_size: int = CAMARA_PAGE_SIZE,
) -> list[int]:
    """Upsert every deputy (and mandate history) listed for one legislature.

    Returns
    -------
    list[int]
        IDs of the deputies seen, in listing order. A transport failure ends
        the listing early; deputies already persisted are kept.
    """
    params = {
        "idLegislatura": legislatura_id,
        "itens": page_size,
        "ordem": "ASC",
        "ordenarPor": "nome",
    }
    seen: list[int] = []
    print(f"  Fetching deputies of legislature {legislatura_id}...")
    try:
        async for page in client.iter_pages("/deputados", params):
            page_ids: list[int] = []
            for rec in page.records:
                if not rec:
                    continue
                try:
                    deputy = store.upsert_deputy(flatten_deputado(rec, legislatura_id))
                except (KeyError, TypeError, ValueError, DataIntegrityError) as e:
                    print(f"  deputy record skipped: {e!r}")
                    continue
                page_ids.append(deputy.id)

            await run_in_batches(
                page_ids,
                lambda did: scrape_mandates(store, client, did),
                batch_size,
                label="deputy",
            )
            seen.extend(page_ids)
            print(f"  ...page {page.number}: {len(page_ids)} deputies ({len(seen)} so far)")
    except TransportError as e:
        print(f"  legislature {legislatura_id} deputies listing ERROR: {e}")

    return seen
