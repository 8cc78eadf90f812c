import pytest

from gastos.cache import AnalysisCache
from gastos.store import Store


@pytest.fixture
def store():
    """Fresh, fully migrated in-memory warehouse."""
    s = Store.open(":memory:")
    s.migrate()
    yield s
    s.close()


@pytest.fixture
def cache(store):
    return AnalysisCache(store)
