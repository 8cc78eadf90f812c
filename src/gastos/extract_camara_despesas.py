"""
Resumable scrape of deputies and their CEAP expense documents.

Endpoints used:
  GET /deputados?idLegislatura={n}                         — see extract_camara_deputados.py
  GET /deputados/{id}/despesas?idLegislatura={n}&itens=100&ordem=DESC&ordenarPor=codDocumento

Strategy:
  - For each legislature: refresh deputies + mandate history, then fetch
    expenses for every deputy of that legislature in concurrent batches of
    ``batch_size`` deputies. A batch is a barrier: the next one starts only
    after every member finished or failed.
  - Expenses are paged in upstream order (document id descending). After
    each page is stored, process_log records (page, PROCESSED), so a crash
    loses at most one page of work.
  - Resume: a deputy with a PROCESSED cursor restarts at its last page.
  - Refresh: a deputy whose listing was COMPLETED restarts at page 1 and
    stops at the first page with no new document; everything after it is
    older and already stored.
  - Expenses are insert-if-absent; re-reading a page is harmless.
  - A transport error ends that deputy's listing only; a record violating a
    constraint is skipped.
  - Once every legislature is done the analytics cache is flushed.

Output: deputies, deputies_info, expenses, process_log tables.
"""

import argparse
import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field, replace

from .cache import AnalysisCache
from .camara_client import CamaraApiClient
from .config import (
    CAMARA_DEFAULT_LEGISLATURES,
    CAMARA_PAGE_SIZE,
    EXPENSE_BATCH_SIZE,
    Settings,
    load_settings,
)
from .errors import DataIntegrityError, TransportError
from .extract_camara_deputados import scrape_deputies
from .models import COMPLETED, PROCESSED, ScrapeProgress
from .store import Store
from .transforms import flatten_despesa_deputado
from .utils import configure_utf8, run_in_batches


@dataclass
class DeputyResult:
    deputy_id: int
    pages: int = 0
    inserted: int = 0
    duplicates: int = 0
    rejected: int = 0
    completed: bool = False
    error: str | None = None


@dataclass
class ScrapeSummary:
    legislatures: list[int]
    deputies: int = 0
    pages: int = 0
    inserted: int = 0
    duplicates: int = 0
    rejected: int = 0
    failed: list[int] = field(default_factory=list)
    cache_entries_flushed: int = 0

    def add(self, result: DeputyResult) -> None:
        self.deputies += 1
        self.pages += result.pages
        self.inserted += result.inserted
        self.duplicates += result.duplicates
        self.rejected += result.rejected
        if result.error is not None:
            self.failed.append(result.deputy_id)


class ScrapeCoordinator:
    """
    Drives deputy and expense ingestion across legislatures.

    Parameters
    ----------
    store : Store
        Migrated warehouse.
    cache : AnalysisCache
        Flushed once the run completes.
    client : CamaraApiClient
        Chamber API client (owned by the caller).
    legislatures : list[int]
        Legislatures to scrape, in order.
    batch_size : int
        Deputies whose expense listings are in flight at the same time.
    page_size : int
        ``itens`` per upstream page.
    """

    def __init__(
        self,
        store: Store,
        cache: AnalysisCache,
        client: CamaraApiClient,
        *,
        legislatures: list[int] | tuple[int, ...] = tuple(CAMARA_DEFAULT_LEGISLATURES),
        batch_size: int = EXPENSE_BATCH_SIZE,
        page_size: int = CAMARA_PAGE_SIZE,
    ) -> None:
        self.store = store
        self.cache = cache
        self.client = client
        self.legislatures = list(legislatures)
        self.batch_size = batch_size
        self.page_size = page_size

    async def run(self) -> ScrapeSummary:
        summary = ScrapeSummary(legislatures=list(self.legislatures))
        for leg in self.legislatures:
            print(f"\n{'=' * 60}")
            print(f"LEGISLATURE {leg}")
            print(f"{'=' * 60}")
            listed = await scrape_deputies(
                self.store,
                self.client,
                leg,
                batch_size=self.batch_size,
                page_size=self.page_size,
            )
            for result in await self.scrape_expenses(leg, listed):
                summary.add(result)

        print("\nData processing complete. Clearing analytics cache...")
        summary.cache_entries_flushed = self.cache.flush()
        print(f"  {summary.cache_entries_flushed} cache entries removed")
        return summary

    async def scrape_expenses(
        self,
        legislatura_id: int,
        listed: list[int] | None = None,
    ) -> list[DeputyResult]:
        """Fetch expenses for every deputy of one legislature.

        ``listed`` holds the IDs just returned by the deputies listing; deputies
        stored by earlier runs (or known only from mandate history) are added,
        so an interrupted listing still covers everyone seen before.
        """
        deputy_ids = sorted(
            set(listed or ()) | set(self.store.deputy_ids_for_legislature(legislatura_id))
        )
        print(
            f"\nFetching expenses: {len(deputy_ids)} deputies"
            f" in batches of {self.batch_size}"
        )
        outcomes = await run_in_batches(
            deputy_ids,
            lambda did: self.scrape_deputy_expenses(did, legislatura_id),
            self.batch_size,
            label="deputy",
        )
        results: list[DeputyResult] = []
        for did, outcome in zip(deputy_ids, outcomes):
            if isinstance(outcome, DeputyResult):
                results.append(outcome)
            else:
                results.append(DeputyResult(deputy_id=did, error=repr(outcome)))
        return results

    async def scrape_deputy_expenses(self, deputado_id: int, legislatura_id: int) -> DeputyResult:
        """Page through one deputy's expenses, resuming from process_log."""
        result = DeputyResult(deputy_id=deputado_id)
        label = f"deputy {deputado_id} (leg {legislatura_id})"

        progress = self.store.get_progress(deputado_id, legislatura_id)
        refresh = progress is not None and progress.status == COMPLETED
        start_page = 1
        if progress is not None and not refresh and progress.last_page > 0:
            start_page = progress.last_page

        params = {
            "idLegislatura": legislatura_id,
            "itens": self.page_size,
            "ordem": "DESC",
            "ordenarPor": "codDocumento",
        }
        if start_page > 1:
            params["pagina"] = start_page
            print(f"  {label} resuming at page {start_page}")

        last_page = progress.last_page if (progress is not None and not refresh) else 0
        current_page = start_page
        try:
            pages = self.client.iter_pages(f"/deputados/{deputado_id}/despesas", params)
            async with aclosing(pages):
                async for page in pages:
                    inserted = self._save_page(deputado_id, page.records, result)
                    self.store.save_progress(
                        ScrapeProgress(deputado_id, legislatura_id, page.number, PROCESSED)
                    )
                    last_page = page.number
                    current_page = page.number + 1
                    result.pages += 1
                    if refresh and inserted == 0:
                        print(f"  {label} up to date at page {page.number}")
                        break
        except TransportError as e:
            result.error = str(e)
            print(f"  {label} page {current_page} ERROR: {e}")
            return result

        self.store.save_progress(
            ScrapeProgress(deputado_id, legislatura_id, last_page, COMPLETED)
        )
        result.completed = True
        if result.inserted:
            print(f"  {label}: {result.inserted} new expenses over {result.pages} pages")
        return result

    def _save_page(self, deputado_id: int, records: list[dict], result: DeputyResult) -> int:
        inserted = 0
        for rec in records:
            if not rec:
                continue
            try:
                if self.store.insert_expense(flatten_despesa_deputado(deputado_id, rec)):
                    inserted += 1
                else:
                    result.duplicates += 1
            except DataIntegrityError as e:
                result.rejected += 1
                print(f"  deputy {deputado_id} document {rec.get('codDocumento')} skipped: {e}")
        result.inserted += inserted
        return inserted


async def extract_all(settings: Settings | None = None) -> ScrapeSummary:
    """Scrape every configured legislature into the warehouse."""
    if settings is None:
        settings = load_settings()

    with Store.open(settings.db_path) as store:
        store.migrate()
        cache = AnalysisCache(store)
        async with CamaraApiClient(
            base_url=settings.camara_base_url,
            delay=settings.request_delay,
        ) as client:
            coordinator = ScrapeCoordinator(
                store,
                cache,
                client,
                legislatures=settings.legislatures,
                batch_size=settings.batch_size,
                page_size=settings.page_size,
            )
            summary = await coordinator.run()

    print(
        f"\nSaved {summary.inserted} new expenses from {summary.pages} pages"
        f" ({summary.duplicates} already stored, {summary.rejected} rejected)"
    )
    if summary.failed:
        print(f"WARNING: {len(summary.failed)} deputy listings did not finish; re-run to resume")
    return summary


if __name__ == "__main__":
    configure_utf8()
    parser = argparse.ArgumentParser(
        description="Scrape Chamber deputies and CEAP expense records"
    )
    parser.add_argument(
        "--legislaturas",
        nargs="+",
        type=int,
        default=None,
        metavar="N",
        help=f"Legislature numbers to scrape (default: {CAMARA_DEFAULT_LEGISLATURES})",
    )
    args = parser.parse_args()
    settings = load_settings()
    if args.legislaturas:
        settings = replace(settings, legislatures=tuple(args.legislaturas))
    asyncio.run(extract_all(settings))
