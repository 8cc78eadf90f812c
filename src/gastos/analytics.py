"""
Peer-relative spending statistics over the expenses warehouse.

Two orthogonal filters:
  expense_type  — exact CEAP category, or None for every category
  year          — mandate year (2019, 2023): the term running from February
                  of that year through January of year + 4. Only deputies
                  holding the seat as "Titular" in the matching legislature
                  are peers, with the party/state of that mandate.

Three grouping levels (per deputy, per party, per state), each returning
totals, monthly averages, deviation from the peer average (percentage and
absolute) and competition ranks (1, 1, 3).

Aggregation runs in DuckDB; statistics are computed with Polars. Every
payload is memoized in the AnalysisCache by endpoint + filter values.
"""

import polars as pl

from .cache import AnalysisCache
from .config import MANDATE_YEAR_LEGISLATURES, TITULAR
from .errors import InvalidFilterError
from .store import Store

MEMBER_FIELDS = ["id", "name", "slug", "total_spent", "months_with_expenses", "monthly_average"]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def legislature_for_mandate_year(year: int) -> int:
    """Legislature elected for the term starting in ``year``.

    Only years listed in MANDATE_YEAR_LEGISLATURES are valid.
    """
    try:
        return MANDATE_YEAR_LEGISLATURES[year]
    except KeyError:
        valid = ", ".join(str(y) for y in sorted(MANDATE_YEAR_LEGISLATURES))
        raise InvalidFilterError(f"unknown mandate year {year!r} (valid: {valid})") from None


def mandate_window(year: int) -> tuple[int, int]:
    """Inclusive (year * 100 + month) bounds of a mandate term.

        mandate_window(2019)  # → (201902, 202301)
    """
    return year * 100 + 2, (year + 4) * 100 + 1


def parse_mandate_year(year) -> int | None:
    """Normalize a year filter: None/"" → None, otherwise a known mandate year."""
    if year is None or year == "":
        return None
    try:
        value = int(year)
    except (TypeError, ValueError):
        raise InvalidFilterError(f"year must be an integer, got {year!r}") from None
    legislature_for_mandate_year(value)
    return value


def parse_expense_type(expense_type) -> str | None:
    if expense_type is None:
        return None
    text = str(expense_type).strip()
    return text or None


class Predicates:
    """Parameterized WHERE clause assembled from independent conditions.

        p = Predicates().add("e.expense_type = ?", "PASSAGEM AÉREA")
        con.execute(f"SELECT ... FROM expenses e {p.where()}", p.params)
    """

    def __init__(self) -> None:
        self.clauses: list[str] = []
        self.params: list = []

    def add(self, clause: str, *params) -> "Predicates":
        self.clauses.append(clause)
        self.params.extend(params)
        return self

    def where(self, keyword: str = "WHERE") -> str:
        if not self.clauses:
            return ""
        return f"{keyword} " + " AND ".join(self.clauses)


def expense_predicates(
    expense_type: str | None,
    year: int | None,
    *,
    alias: str = "e",
) -> Predicates:
    preds = Predicates()
    if expense_type is not None:
        preds.add(f"{alias}.expense_type = ?", expense_type)
    if year is not None:
        start, end = mandate_window(year)
        preds.add(f"({alias}.year * 100 + {alias}.month) BETWEEN ? AND ?", start, end)
    return preds


# ---------------------------------------------------------------------------
# Statistics (pure, Polars)
# ---------------------------------------------------------------------------


def _mean_nonzero(series: pl.Series) -> float:
    nonzero = series.filter(series != 0)
    return float(nonzero.mean()) if len(nonzero) else 0.0


def _deviation(column: str, average: float, pct_name: str, abs_name: str) -> list[pl.Expr]:
    # Zero spenders sit at -100% instead of an undefined ratio
    if average == 0:
        ratio = pl.lit(0.0)
    else:
        ratio = (pl.col(column) - average) / average * 100
    pct = pl.when(pl.col(column) == 0).then(pl.lit(-100.0)).otherwise(ratio)
    return [pct.alias(pct_name), (pl.col(column) - average).alias(abs_name)]


def _rank(column: str) -> pl.Expr:
    return pl.col(column).rank(method="min", descending=True).cast(pl.Int64)


def with_monthly_average(df: pl.DataFrame) -> pl.DataFrame:
    return df.with_columns(
        pl.when(pl.col("months_with_expenses") > 0)
        .then(pl.col("total_spent") / pl.col("months_with_expenses"))
        .otherwise(0.0)
        .alias("monthly_average")
    )


def deputy_statistics(df: pl.DataFrame) -> pl.DataFrame:
    """Per-deputy deviations and ranks.

    ``df`` needs id, name, total_spent and months_with_expenses. Averages
    only count peers that spent something (non-zero total / active months),
    but every peer gets a deviation and a rank.
    """
    df = with_monthly_average(df)
    average_total = _mean_nonzero(df["total_spent"])
    active = df.filter(pl.col("months_with_expenses") > 0)["monthly_average"]
    average_monthly = float(active.mean()) if len(active) else 0.0

    return df.with_columns(
        pl.lit(average_total).alias("average_total"),
        pl.lit(average_monthly).alias("average_monthly"),
        *_deviation("total_spent", average_total, "total_percentage_diff", "total_absolute_diff"),
        *_deviation(
            "monthly_average", average_monthly, "monthly_percentage_diff", "monthly_absolute_diff"
        ),
        _rank("total_spent").alias("total_rank"),
        _rank("monthly_average").alias("monthly_rank"),
    ).sort(["total_spent", "name"], descending=[True, False], nulls_last=True)


def group_statistics(df: pl.DataFrame, key: str) -> pl.DataFrame:
    """Party/state statistics built from the per-deputy frame.

    Each group is compared on spending per deputy (avg_per_deputy) and on
    the mean of its members' monthly averages. The ``deputies`` column lists
    every member, zero spenders included.
    """
    members = with_monthly_average(df).filter(pl.col(key).is_not_null())
    grouped = members.group_by(key).agg(
        pl.len().cast(pl.Int64).alias("deputy_count"),
        pl.col("total_spent").sum().alias("total_spent"),
        pl.col("monthly_average").mean().alias("monthly_average"),
        pl.struct(MEMBER_FIELDS)
        .sort_by("total_spent", descending=True)
        .alias("deputies"),
    ).with_columns(
        (pl.col("total_spent") / pl.col("deputy_count")).alias("avg_per_deputy")
    )

    overall_average = _mean_nonzero(grouped["avg_per_deputy"])
    overall_monthly = _mean_nonzero(grouped["monthly_average"])
    return grouped.with_columns(
        pl.lit(overall_average).alias("overall_average"),
        pl.lit(overall_monthly).alias("overall_monthly_average"),
        *_deviation("avg_per_deputy", overall_average, "percentage_diff", "absolute_diff"),
        *_deviation(
            "monthly_average", overall_monthly, "monthly_percentage_diff", "monthly_absolute_diff"
        ),
        _rank("avg_per_deputy").alias("rank"),
        _rank("monthly_average").alias("monthly_rank"),
    ).sort(["avg_per_deputy", key], descending=[True, False])


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class AnalyticsEngine:
    """
    Cached analysis endpoints.

    Every public method returns the JSON payload as text: a cache hit returns
    the stored text verbatim, a miss computes, stores and returns it.
    """

    def __init__(self, store: Store, cache: AnalysisCache) -> None:
        self.store = store
        self.cache = cache

    def deputy_frame(self, expense_type: str | None = None, year: int | None = None) -> pl.DataFrame:
        """Total spent and active months for every peer under the filters."""
        if year is None:
            peers = """
                SELECT d.id, d.name, d.slug, d.party, d.state
                FROM deputies d
            """
            peer_params: list = []
        else:
            peers = """
                SELECT
                    d.id,
                    d.name,
                    d.slug,
                    COALESCE(i.party, d.party) AS party,
                    COALESCE(i.state, d.state) AS state
                FROM deputies d
                JOIN deputies_info i ON i.deputy_id = d.id
                WHERE i.legislature = ? AND i.title = ?
            """
            peer_params = [legislature_for_mandate_year(year), TITULAR]

        preds = expense_predicates(expense_type, year)
        df = self.store.con.execute(
            f"""
            WITH peers AS ({peers}),
            matching AS (
                SELECT e.deputy_id, e.year, e.month, e.net_value
                FROM expenses e
                {preds.where()}
            )
            SELECT
                p.id,
                p.name,
                p.slug,
                p.party,
                p.state,
                COALESCE(SUM(m.net_value), 0)          AS total_spent,
                COUNT(DISTINCT m.year * 100 + m.month) AS months_with_expenses
            FROM peers p
            LEFT JOIN matching m ON m.deputy_id = p.id
            GROUP BY p.id, p.name, p.slug, p.party, p.state
            ORDER BY p.id
            """,
            peer_params + preds.params,
        ).pl()
        return df.with_columns(
            pl.col("total_spent").cast(pl.Float64),
            pl.col("months_with_expenses").cast(pl.Int64),
        )

    def _memoize(self, endpoint: str, expense_type, year, build) -> str:
        expense_type = parse_expense_type(expense_type)
        year = parse_mandate_year(year)
        return self.cache.memoize(
            endpoint,
            {"expense_type": expense_type, "year": year},
            lambda: build(self.deputy_frame(expense_type, year)).to_dicts(),
        )

    def expenses_analysis(self, expense_type: str | None = None, year: int | None = None) -> str:
        """Per-deputy totals, monthly averages, deviations and ranks."""
        return self._memoize("expenses-analysis", expense_type, year, deputy_statistics)

    def party_analysis(self, expense_type: str | None = None, year: int | None = None) -> str:
        return self._memoize(
            "party-analysis", expense_type, year, lambda df: group_statistics(df, "party")
        )

    def state_analysis(self, expense_type: str | None = None, year: int | None = None) -> str:
        return self._memoize(
            "state-analysis", expense_type, year, lambda df: group_statistics(df, "state")
        )
