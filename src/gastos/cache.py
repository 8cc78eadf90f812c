"""
Key-value cache for computed query payloads.

Entries live in the ``cache_entries`` table of the warehouse and never
expire: the scrape coordinator flushes everything once a full run completes,
since newly ingested expenses invalidate every aggregate.

Keys are deterministic: endpoint name plus the filter values sorted by
parameter name, with ``all`` standing for "no filter":

    AnalysisCache.key_for("expenses-analysis", expense_type=None, year=2019)
    # → "expenses-analysis:expense_type=all|year=2019"
"""

import json
from typing import Any, Callable

from .store import Store

NO_FILTER = "all"


class AnalysisCache:
    def __init__(self, store: Store) -> None:
        self._store = store

    @staticmethod
    def key_for(endpoint: str, **params: Any) -> str:
        parts = [
            f"{name}={NO_FILTER if value is None else value}"
            for name, value in sorted(params.items())
        ]
        return f"{endpoint}:{'|'.join(parts)}"

    def get(self, key: str) -> str | None:
        row = self._store.con.execute(
            "SELECT payload FROM cache_entries WHERE key = ?", [key]
        ).fetchone()
        return row[0] if row else None

    def set(self, key: str, payload: str) -> None:
        self._store.con.execute(
            """
            INSERT INTO cache_entries (key, payload) VALUES (?, ?)
            ON CONFLICT (key) DO UPDATE SET
                payload = excluded.payload,
                created_at = now()
            """,
            [key, payload],
        )

    def flush(self) -> int:
        """Drop every entry. Returns the number of entries removed."""
        row = self._store.con.execute("DELETE FROM cache_entries").fetchone()
        return int(row[0]) if row else 0

    def size(self) -> int:
        return int(self._store.con.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0])

    def memoize(self, endpoint: str, params: dict[str, Any], compute: Callable[[], Any]) -> str:
        """Return the cached JSON payload for (endpoint, params), computing it on a miss.

        A hit returns the stored text verbatim without calling ``compute``.
        """
        key = self.key_for(endpoint, **params)
        cached = self.get(key)
        if cached is not None:
            return cached
        payload = json.dumps(compute(), ensure_ascii=False)
        self.set(key, payload)
        return payload
