"""
Chamber of Deputies (Câmara dos Deputados) Open Data API client.

Base URL: https://dadosabertos.camara.leg.br/api/v2

  - All responses are wrapped in {"dados": [...], "links": [...]}
  - Pagination via "next" link in the links array
  - No documented rate limit; uses a conservative 0.1 s delay per request
  - Async (httpx.AsyncClient) so the scrape coordinator can run several
    deputies' listings concurrently

Usage example:
    async with CamaraApiClient() as client:
        # One envelope
        data = await client.get("/deputados/204554/historico")
        records = data["dados"]

        # Lazy pagination, one round-trip per page
        async for page in client.iter_pages("/deputados", {"idLegislatura": 57}):
            print(page.number, len(page.records))
"""

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx

from .config import CAMARA_BASE_URL, CAMARA_REQUEST_DELAY
from .errors import TransportError


@dataclass(frozen=True)
class Page:
    """One page of a paginated listing."""

    number: int
    records: list[dict]
    next_url: str | None


def next_link(data: dict) -> str | None:
    """The ``rel == "next"`` href of an envelope, if any."""
    return next(
        (lnk.get("href") for lnk in (data.get("links") or []) if lnk.get("rel") == "next"),
        None,
    )


def _page_number(url: str | None, fallback: int) -> int:
    if not url:
        return fallback
    raw = httpx.URL(url).params.get("pagina")
    try:
        return int(raw) if raw else fallback
    except ValueError:
        return fallback


class CamaraApiClient:
    """
    Async HTTP client for the Chamber of Deputies open-data API v2.

    Parameters
    ----------
    base_url : str
        API root, without trailing slash.
    delay : float
        Seconds to sleep after each request (default 0.1 s, conservative
        for an undocumented rate limit).
    timeout : float
        HTTP request timeout in seconds.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = CAMARA_BASE_URL,
        delay: float = CAMARA_REQUEST_DELAY,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._delay = delay
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def url_for(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}{path}"

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict:
        """
        GET one envelope from the Chamber API.

        Returns the full envelope dict: {"dados": [...], "links": [...]}.
        Raises TransportError on network failure, non-2xx status or a body
        that is not JSON.
        """
        url = self.url_for(path)
        try:
            resp = await self._client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"GET {url} returned invalid JSON: {e}") from e
        finally:
            await asyncio.sleep(self._delay)
        return data

    async def iter_pages(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> AsyncIterator[Page]:
        """
        Yield pages of a paginated endpoint, following "next" links.

        Parameters
        ----------
        path : str
            Relative API path, e.g. "/deputados", or an absolute URL.
        params : dict, optional
            Initial query parameters. ``pagina`` sets the starting page
            (used to resume an interrupted listing).

        Notes
        -----
        Iteration stops when a response has no "next" link or an empty
        ``dados`` array. A failed request raises TransportError out of the
        generator; nothing is retried.
        """
        url: str | None = self.url_for(path)
        current_params: dict | None = dict(params or {})
        number = int(current_params.get("pagina") or 1)

        while url:
            data = await self.get(url, current_params)
            records = data.get("dados") or []
            if not records:
                return

            following = next_link(data)
            yield Page(number=number, records=records, next_url=following)

            # The "next" link already has all query params embedded
            url = following
            current_params = None
            number = _page_number(following, number + 1)

    async def get_all(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict]:
        """All ``dados`` records of a paginated endpoint, combined."""
        all_records: list[dict] = []
        async for page in self.iter_pages(path, params):
            all_records.extend(page.records)
        return all_records

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_):
        await self.aclose()
