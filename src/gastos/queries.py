"""
Thin query layer for the consumer-facing API: lookups over deputies,
expenses and suppliers.

Every method returning data goes through the AnalysisCache, like the
analytics endpoints, and returns the JSON payload as text. Filters are bound
as parameters; unknown deputies raise NotFoundError and malformed filters
raise InvalidFilterError.
"""

from .analytics import expense_predicates, parse_expense_type, parse_mandate_year
from .cache import AnalysisCache
from .errors import InvalidFilterError, NotFoundError
from .models import Deputy
from .store import Store
from .utils import slugify

# Digits-only CNPJ of an expense, matching suppliers.cnpj
_EXPENSE_CNPJ = "regexp_replace(e.supplier_id, '[^0-9]', '', 'g')"


def _parse_month(month) -> int | None:
    if month is None or month == "":
        return None
    try:
        value = int(month)
    except (TypeError, ValueError):
        raise InvalidFilterError(f"month must be an integer, got {month!r}") from None
    if not 1 <= value <= 12:
        raise InvalidFilterError(f"month must be between 1 and 12, got {value}")
    return value


class QueryService:
    def __init__(self, store: Store, cache: AnalysisCache) -> None:
        self.store = store
        self.cache = cache

    # ── Deputies ───────────────────────────────────────────────────────────

    def find_deputy(self, id_or_slug) -> Deputy:
        """Resolve a deputy from a numeric id or a slug.

        Non-numeric input is slugified, then matched exactly; failing that,
        the lexicographically first slug containing it wins.
        """
        key = str(id_or_slug).strip()
        if key.isascii() and key.isdigit():
            deputy = self.store.get_deputy(int(key))
        else:
            slug = slugify(key)
            if not slug:
                raise NotFoundError(f"deputy not found: {id_or_slug!r}")
            deputy = self.store.get_deputy_by_slug(slug)
            if deputy is None:
                matches = self.store.search_deputies_by_slug(slug)
                deputy = matches[0] if matches else None
        if deputy is None:
            raise NotFoundError(f"deputy not found: {id_or_slug!r}")
        return deputy

    def deputies(self) -> str:
        """All deputies, ordered by name."""

        def build():
            rows = self.store.fetch_all("""
                SELECT id, name, slug, party, state
                FROM deputies
                ORDER BY name, id
            """)
            return [
                {"id": r[0], "name": r[1], "slug": r[2], "party": r[3], "state": r[4]}
                for r in rows
            ]

        return self.cache.memoize("deputies", {}, build)

    def deputy_profile(self, id_or_slug) -> str:
        """Identity fields plus mandate history."""
        deputy = self.find_deputy(id_or_slug)

        def build():
            return {
                "id": deputy.id,
                "name": deputy.name,
                "slug": deputy.slug,
                "party": deputy.party,
                "state": deputy.state,
                "legislature": deputy.legislature,
                "photo_url": deputy.photo_url,
                "email": deputy.email,
                "mandates": [
                    {
                        "legislature": m.legislature,
                        "party": m.party,
                        "state": m.state,
                        "title": m.title,
                    }
                    for m in self.store.get_mandates(deputy.id)
                ],
            }

        return self.cache.memoize("deputy", {"deputy": deputy.id}, build)

    # ── Expenses ───────────────────────────────────────────────────────────

    def expense_types(self) -> str:
        def build():
            rows = self.store.fetch_all("""
                SELECT DISTINCT expense_type
                FROM expenses
                WHERE expense_type IS NOT NULL
                ORDER BY expense_type
            """)
            return [{"expense_type": r[0]} for r in rows]

        return self.cache.memoize("expense-types", {}, build)

    def deputy_expenses(self, id_or_slug, expense_type=None, year=None, month=None) -> str:
        """Expense documents of one deputy, newest first, with supplier data."""
        deputy = self.find_deputy(id_or_slug)
        expense_type = parse_expense_type(expense_type)
        year = parse_mandate_year(year)
        month = _parse_month(month)

        def build():
            preds = expense_predicates(expense_type, year).add("e.deputy_id = ?", deputy.id)
            if month is not None:
                preds.add("e.month = ?", month)
            df = self.store.con.execute(
                f"""
                SELECT
                    e.document_id,
                    e.year,
                    e.month,
                    e.expense_type,
                    e.document_type,
                    e.document_date,
                    e.document_number,
                    e.document_value,
                    e.gloss_value,
                    e.net_value,
                    e.document_url,
                    e.supplier_name,
                    e.supplier_id,
                    s.name          AS supplier_registry_name,
                    s.main_activity AS supplier_activity,
                    s.address       AS supplier_address
                FROM expenses e
                LEFT JOIN suppliers s ON s.cnpj = {_EXPENSE_CNPJ}
                {preds.where()}
                ORDER BY e.year DESC, e.month DESC, e.document_id DESC
                """,
                preds.params,
            ).pl()
            return df.to_dicts()

        return self.cache.memoize(
            "deputy-expenses",
            {"deputy": deputy.id, "expense_type": expense_type, "year": year, "month": month},
            build,
        )

    def deputy_monthly_totals(self, id_or_slug, expense_type=None, year=None) -> str:
        """Net spending per (year, month) for one deputy."""
        deputy = self.find_deputy(id_or_slug)
        expense_type = parse_expense_type(expense_type)
        year = parse_mandate_year(year)

        def build():
            preds = expense_predicates(expense_type, year).add("e.deputy_id = ?", deputy.id)
            df = self.store.con.execute(
                f"""
                SELECT
                    e.year,
                    e.month,
                    COALESCE(SUM(e.net_value), 0) AS total_spent,
                    COUNT(*)                      AS documents
                FROM expenses e
                {preds.where()}
                GROUP BY e.year, e.month
                ORDER BY e.year, e.month
                """,
                preds.params,
            ).pl()
            return df.to_dicts()

        return self.cache.memoize(
            "deputy-monthly",
            {"deputy": deputy.id, "expense_type": expense_type, "year": year},
            build,
        )

    # ── Suppliers ──────────────────────────────────────────────────────────

    def top_suppliers(self, expense_type=None, year=None, limit: int = 20) -> str:
        """Suppliers ranked by net value received, enriched when resolved."""
        expense_type = parse_expense_type(expense_type)
        year = parse_mandate_year(year)
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise InvalidFilterError(f"limit must be an integer, got {limit!r}") from None
        if limit <= 0:
            raise InvalidFilterError(f"limit must be positive, got {limit}")

        def build():
            preds = expense_predicates(expense_type, year).add(f"{_EXPENSE_CNPJ} <> ''")
            df = self.store.con.execute(
                f"""
                SELECT
                    {_EXPENSE_CNPJ}                         AS cnpj,
                    COALESCE(MAX(s.name), MAX(e.supplier_name)) AS name,
                    MAX(s.main_activity)                    AS main_activity,
                    SUM(e.net_value)                        AS total_spent,
                    COUNT(*)                                AS documents,
                    COUNT(DISTINCT e.deputy_id)             AS deputies
                FROM expenses e
                LEFT JOIN suppliers s ON s.cnpj = {_EXPENSE_CNPJ}
                {preds.where()}
                GROUP BY 1
                ORDER BY total_spent DESC, cnpj
                LIMIT ?
                """,
                preds.params + [limit],
            ).pl()
            return df.to_dicts()

        return self.cache.memoize(
            "top-suppliers",
            {"expense_type": expense_type, "year": year, "limit": limit},
            build,
        )
