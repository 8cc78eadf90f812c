"""
BrasilAPI company registry client.

Endpoint: GET https://brasilapi.com.br/api/cnpj/v1/{cnpj}

  - 200 → company JSON (razao_social, cnae_fiscal_descricao, address parts…)
  - 404 → CNPJ unknown to the registry
  - 400 → identifier is not a valid CNPJ (e.g. a supplier's CPF)

Both 404 and 400 raise NotFoundError: the answer will not change on a later
run. Every other failure raises TransportError.

The client does not throttle; the supplier worker owns the delay between
lookups.
"""

import httpx

from .config import BRASILAPI_CNPJ_URL
from .errors import NotFoundError, TransportError

_NOT_FOUND_STATUSES = (400, 404)


class BrasilApiClient:
    """
    Parameters
    ----------
    base_url : str
        CNPJ endpoint root, without trailing slash.
    timeout : float
        HTTP request timeout in seconds.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = BRASILAPI_CNPJ_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def get_company(self, cnpj: str) -> dict:
        """Registry payload for a digits-only CNPJ."""
        url = f"{self._base_url}/{cnpj}"
        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {e}") from e

        if resp.status_code in _NOT_FOUND_STATUSES:
            raise NotFoundError(f"CNPJ not found: {cnpj}")
        try:
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"GET {url} returned invalid JSON: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_):
        await self.aclose()
