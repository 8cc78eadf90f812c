"""
Enrich expense suppliers with company registry data (BrasilAPI CNPJ).

Endpoint used:
  GET https://brasilapi.com.br/api/cnpj/v1/{cnpj}

Strategy:
  - Collect distinct supplier identifiers from expenses, keep digits only,
    drop empties.
  - Skip every identifier already present in suppliers, whether its earlier
    lookup found a company or not.
  - Look identifiers up one at a time, in batches of ``batch_size``, sleeping
    ``delay`` seconds after every lookup to stay under the rate limit.
  - Found → store name, founding date, primary activity, formatted address.
  - Not found (404/400) or unusable payload → store a bare row so the
    identifier is never queried again.
  - Transport failures are logged and not stored; the identifier is retried
    on the next run. No per-identifier failure stops the batch.

Output: suppliers table.
"""

import asyncio
from dataclasses import dataclass

from .brasilapi_client import BrasilApiClient
from .config import SUPPLIER_BATCH_SIZE, SUPPLIER_REQUEST_DELAY, Settings, load_settings
from .errors import NotFoundError
from .models import Supplier
from .store import Store
from .transforms import flatten_empresa
from .utils import configure_utf8, normalize_identifier


@dataclass
class EnrichmentSummary:
    candidates: int = 0
    resolved: int = 0
    empty: int = 0
    failed: int = 0
    skipped: int = 0


def pending_identifiers(store: Store) -> list[str]:
    """Normalized identifiers referenced by expenses but absent from suppliers."""
    normalized = {normalize_identifier(raw) for raw in store.supplier_identifiers()}
    normalized.discard(None)
    return sorted(normalized - store.supplier_cnpjs())


class SupplierWorker:
    """
    Parameters
    ----------
    store : Store
        Migrated warehouse.
    client : BrasilApiClient
        Registry client (owned by the caller).
    batch_size : int
        Identifiers per progress batch.
    delay : float
        Seconds to sleep after each individual lookup.
    """

    def __init__(
        self,
        store: Store,
        client: BrasilApiClient,
        *,
        batch_size: int = SUPPLIER_BATCH_SIZE,
        delay: float = SUPPLIER_REQUEST_DELAY,
    ) -> None:
        self.store = store
        self.client = client
        self.batch_size = batch_size
        self.delay = delay

    async def run(self) -> EnrichmentSummary:
        cnpjs = pending_identifiers(self.store)
        summary = EnrichmentSummary(candidates=len(cnpjs))
        print(f"Found {len(cnpjs)} unique CNPJs to process")

        processed = 0
        for start in range(0, len(cnpjs), self.batch_size):
            batch = cnpjs[start:start + self.batch_size]
            print(f"Processing batch of {len(batch)} CNPJs...")
            await self.process_batch(batch, summary)
            processed += len(batch)
            print(f"Progress: {processed}/{len(cnpjs)} ({round(100 * processed / len(cnpjs))}%)")
        return summary

    async def process_batch(self, batch: list[str], summary: EnrichmentSummary) -> None:
        for cnpj in batch:
            # Another run may have stored it since the candidate list was built
            if self.store.supplier_exists(cnpj):
                summary.skipped += 1
                continue
            try:
                outcome = await self.enrich(cnpj)
            except Exception as e:
                summary.failed += 1
                print(f"  Error processing CNPJ {cnpj}: {e}")
            else:
                if outcome:
                    summary.resolved += 1
                else:
                    summary.empty += 1
            await asyncio.sleep(self.delay)

    async def enrich(self, cnpj: str) -> bool:
        """Look one CNPJ up and store the result.

        Returns True when company data was stored, False for a bare row.
        Transport and store errors propagate to the caller.
        """
        try:
            payload = await self.client.get_company(cnpj)
        except NotFoundError:
            print(f"  CNPJ not found: {cnpj}")
            payload = None

        supplier = flatten_empresa(cnpj, payload) if payload is not None else None
        if supplier is None:
            self.store.save_supplier(Supplier(cnpj=cnpj))
            print(f"  Added empty record for CNPJ {cnpj} (no data found)")
            return False

        self.store.save_supplier(supplier)
        print(f"  Added supplier data for CNPJ {cnpj} ({supplier.name or 'Unknown'})")
        return True


async def extract_all(settings: Settings | None = None) -> EnrichmentSummary:
    if settings is None:
        settings = load_settings()

    print("Starting CNPJ enrichment...")
    with Store.open(settings.db_path) as store:
        store.migrate()
        async with BrasilApiClient(base_url=settings.brasilapi_url) as client:
            worker = SupplierWorker(
                store,
                client,
                batch_size=settings.supplier_batch_size,
                delay=settings.supplier_delay,
            )
            summary = await worker.run()

    print(
        f"\nCNPJ enrichment complete: {summary.resolved} resolved, {summary.empty} empty,"
        f" {summary.failed} failed (will retry)"
    )
    return summary


if __name__ == "__main__":
    configure_utf8()
    asyncio.run(extract_all())
