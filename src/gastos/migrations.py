"""
Ordered, additive schema migrations for the DuckDB warehouse.

Every migration is a plain function taking an open connection. Applied
versions are recorded in ``schema_migrations`` so each step runs once per
database; the steps themselves are also idempotent (IF NOT EXISTS guards,
column-existence checks), so a crash between a step and its bookkeeping row
is safe to re-run.

Adding a migration:
    1. Write a ``_NNN_description(con)`` function below.
    2. Append it to MIGRATIONS with the next version number.
"""

from typing import Callable

import duckdb

from .utils import unique_slug


def _column_exists(con: duckdb.DuckDBPyConnection, table: str, column: str) -> bool:
    row = con.execute(
        """
        SELECT COUNT(*)
        FROM information_schema.columns
        WHERE table_name = ? AND column_name = ?
        """,
        [table, column],
    ).fetchone()
    return bool(row and row[0])


def _001_create_base_tables(con: duckdb.DuckDBPyConnection) -> None:
    con.execute("""
        CREATE TABLE IF NOT EXISTS deputies (
            id          BIGINT PRIMARY KEY,
            name        VARCHAR,
            party       VARCHAR,
            state       VARCHAR,
            legislature INTEGER,
            photo_url   VARCHAR,
            email       VARCHAR,
            created_at  TIMESTAMP DEFAULT current_timestamp,
            updated_at  TIMESTAMP DEFAULT current_timestamp
        )
    """)
    con.execute("""
        CREATE TABLE IF NOT EXISTS deputies_info (
            deputy_id   BIGINT NOT NULL,
            legislature INTEGER NOT NULL,
            party       VARCHAR,
            state       VARCHAR,
            title       VARCHAR,
            updated_at  TIMESTAMP DEFAULT current_timestamp,
            PRIMARY KEY (deputy_id, legislature)
        )
    """)
    con.execute("""
        CREATE TABLE IF NOT EXISTS expenses (
            deputy_id       BIGINT NOT NULL,
            document_id     BIGINT NOT NULL,
            year            INTEGER NOT NULL,
            month           INTEGER NOT NULL,
            expense_type    VARCHAR,
            document_type   VARCHAR,
            document_date   VARCHAR,
            document_number VARCHAR,
            document_value  DOUBLE,
            document_url    VARCHAR,
            supplier_name   VARCHAR,
            supplier_id     VARCHAR,
            net_value       DOUBLE,
            gloss_value     DOUBLE,
            refund_number   VARCHAR,
            batch_code      BIGINT,
            installment     INTEGER,
            created_at      TIMESTAMP DEFAULT current_timestamp,
            PRIMARY KEY (deputy_id, document_id)
        )
    """)
    con.execute("""
        CREATE TABLE IF NOT EXISTS process_log (
            deputy_id   BIGINT NOT NULL,
            legislature INTEGER NOT NULL,
            last_page   INTEGER NOT NULL,
            status      VARCHAR NOT NULL,
            updated_at  TIMESTAMP DEFAULT current_timestamp,
            PRIMARY KEY (deputy_id, legislature)
        )
    """)


def _002_add_slug_column(con: duckdb.DuckDBPyConnection) -> None:
    if _column_exists(con, "deputies", "slug"):
        print("  slug column already exists in deputies")
        return
    con.execute("ALTER TABLE deputies ADD COLUMN slug VARCHAR")
    print("  added slug column to deputies")


def _003_populate_slug_column(con: duckdb.DuckDBPyConnection) -> None:
    rows = con.execute("""
        SELECT id, name FROM deputies
        WHERE slug IS NULL OR slug = ''
        ORDER BY id
    """).fetchall()
    print(f"  found {len(rows)} deputies without slugs")
    taken = {
        r[0]
        for r in con.execute("SELECT slug FROM deputies WHERE slug IS NOT NULL AND slug <> ''").fetchall()
    }
    for i, (deputy_id, name) in enumerate(rows, 1):
        slug = unique_slug(name, deputy_id, taken.__contains__)
        con.execute("UPDATE deputies SET slug = ? WHERE id = ?", [slug, deputy_id])
        taken.add(slug)
        if i % 100 == 0:
            print(f"  ...{i}/{len(rows)} slugs assigned")


def _004_create_slug_index(con: duckdb.DuckDBPyConnection) -> None:
    con.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_deputies_slug ON deputies (slug)")


def _005_create_suppliers_table(con: duckdb.DuckDBPyConnection) -> None:
    con.execute("""
        CREATE TABLE IF NOT EXISTS suppliers (
            cnpj          VARCHAR PRIMARY KEY,
            name          VARCHAR,
            founding_date VARCHAR,
            main_activity VARCHAR,
            address       VARCHAR,
            created_at    TIMESTAMP DEFAULT current_timestamp,
            updated_at    TIMESTAMP DEFAULT current_timestamp
        )
    """)


def _006_create_cache_table(con: duckdb.DuckDBPyConnection) -> None:
    con.execute("""
        CREATE TABLE IF NOT EXISTS cache_entries (
            key        VARCHAR PRIMARY KEY,
            payload    VARCHAR NOT NULL,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """)


MIGRATIONS: list[tuple[int, str, Callable[[duckdb.DuckDBPyConnection], None]]] = [
    (1, "create base tables", _001_create_base_tables),
    (2, "add slug column", _002_add_slug_column),
    (3, "populate slug column", _003_populate_slug_column),
    (4, "create unique slug index", _004_create_slug_index),
    (5, "create suppliers table", _005_create_suppliers_table),
    (6, "create cache table", _006_create_cache_table),
]


def applied_versions(con: duckdb.DuckDBPyConnection) -> set[int]:
    con.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version    INTEGER PRIMARY KEY,
            name       VARCHAR NOT NULL,
            applied_at TIMESTAMP DEFAULT current_timestamp
        )
    """)
    return {r[0] for r in con.execute("SELECT version FROM schema_migrations").fetchall()}


def apply_migrations(con: duckdb.DuckDBPyConnection) -> list[str]:
    """Run every pending migration in version order.

    Returns
    -------
    list[str]
        Names of the migrations applied by this call (empty when up to date).
    """
    done = applied_versions(con)
    applied: list[str] = []
    for version, name, fn in MIGRATIONS:
        if version in done:
            continue
        print(f"Running migration {version:03d}: {name}")
        fn(con)
        con.execute(
            "INSERT INTO schema_migrations (version, name) VALUES (?, ?)",
            [version, name],
        )
        applied.append(name)
    if not applied:
        print("Schema up to date")
    return applied
