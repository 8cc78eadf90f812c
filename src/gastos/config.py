import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .errors import ConfigurationError

# Resolve paths relative to this file so the pipeline works from any CWD
_REPO_ROOT = Path(__file__).resolve().parent.parent.parent

DB_PATH = _REPO_ROOT / "data" / "warehouse" / "deputies.duckdb"

# Chamber of Deputies (Câmara dos Deputados)
CAMARA_BASE_URL = "https://dadosabertos.camara.leg.br/api/v2"
# Legislatures to scrape: 56 = 2019-2023, 57 = 2023-2027 (current)
CAMARA_DEFAULT_LEGISLATURES = [56, 57]
# The API caps ``itens`` at 100 per page
CAMARA_PAGE_SIZE = 100
CAMARA_REQUEST_DELAY = 0.1
# Deputies whose expenses are fetched concurrently
EXPENSE_BATCH_SIZE = 10

# Company registry (BrasilAPI CNPJ lookup)
BRASILAPI_CNPJ_URL = "https://brasilapi.com.br/api/cnpj/v1"
SUPPLIER_BATCH_SIZE = 10
# Seconds between individual lookups; BrasilAPI throttles bursts
SUPPLIER_REQUEST_DELAY = 1.2

# Mandate year (first year of a 4-year term) → legislature number
MANDATE_YEAR_LEGISLATURES = {
    2019: 56,
    2023: 57,
}
TITULAR = "Titular"


@dataclass(frozen=True)
class Settings:
    db_path: Path = DB_PATH
    legislatures: tuple[int, ...] = tuple(CAMARA_DEFAULT_LEGISLATURES)
    batch_size: int = EXPENSE_BATCH_SIZE
    page_size: int = CAMARA_PAGE_SIZE
    request_delay: float = CAMARA_REQUEST_DELAY
    supplier_batch_size: int = SUPPLIER_BATCH_SIZE
    supplier_delay: float = SUPPLIER_REQUEST_DELAY
    camara_base_url: str = CAMARA_BASE_URL
    brasilapi_url: str = BRASILAPI_CNPJ_URL


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _non_negative_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value


def _legislatures(environ: Mapping[str, str]) -> tuple[int, ...]:
    raw = environ.get("GASTOS_LEGISLATURES")
    if raw is None:
        return tuple(CAMARA_DEFAULT_LEGISLATURES)
    try:
        values = tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ConfigurationError(
            f"GASTOS_LEGISLATURES must be comma-separated integers, got {raw!r}"
        ) from None
    if not values:
        raise ConfigurationError("GASTOS_LEGISLATURES is set but empty")
    return values


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from defaults plus ``GASTOS_*`` environment overrides.

    Raises ConfigurationError for malformed values; the pipeline treats that
    as fatal before any work starts.
    """
    if environ is None:
        environ = os.environ
    db_path = environ.get("GASTOS_DB_PATH") or str(DB_PATH)
    return Settings(
        db_path=Path(db_path),
        legislatures=_legislatures(environ),
        batch_size=_positive_int(environ, "GASTOS_BATCH_SIZE", EXPENSE_BATCH_SIZE),
        page_size=_positive_int(environ, "GASTOS_PAGE_SIZE", CAMARA_PAGE_SIZE),
        request_delay=_non_negative_float(environ, "GASTOS_REQUEST_DELAY", CAMARA_REQUEST_DELAY),
        supplier_batch_size=_positive_int(
            environ, "GASTOS_SUPPLIER_BATCH_SIZE", SUPPLIER_BATCH_SIZE
        ),
        supplier_delay=_non_negative_float(
            environ, "GASTOS_SUPPLIER_DELAY", SUPPLIER_REQUEST_DELAY
        ),
        camara_base_url=environ.get("GASTOS_CAMARA_URL") or CAMARA_BASE_URL,
        brasilapi_url=environ.get("GASTOS_BRASILAPI_URL") or BRASILAPI_CNPJ_URL,
    )
