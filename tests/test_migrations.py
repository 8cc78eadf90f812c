"""
Tests for gastos.migrations against throwaway in-memory databases.
"""

import duckdb
import pytest

from gastos import migrations
from gastos.migrations import MIGRATIONS, apply_migrations


@pytest.fixture
def con():
    c = duckdb.connect(":memory:")
    yield c
    c.close()


def _tables(con) -> set[str]:
    return {r[0] for r in con.execute("SELECT table_name FROM information_schema.tables").fetchall()}


def test_fresh_database_gets_every_table(con):
    """A new database ends up with all tables and every version recorded."""
    applied = apply_migrations(con)

    assert applied == [name for _, name, _ in MIGRATIONS]
    assert {"deputies", "deputies_info", "expenses", "process_log", "suppliers",
            "cache_entries", "schema_migrations"} <= _tables(con)
    versions = [r[0] for r in con.execute("SELECT version FROM schema_migrations ORDER BY 1").fetchall()]
    assert versions == [v for v, _, _ in MIGRATIONS]


def test_rerun_is_a_noop(con):
    """Applying migrations twice changes nothing the second time."""
    apply_migrations(con)
    assert apply_migrations(con) == [], "second run should have nothing to apply"


def test_legacy_deputies_get_unique_slugs(con):
    """Rows that predate the slug column get non-empty, unique slugs."""
    migrations._001_create_base_tables(con)
    con.execute("""
        INSERT INTO deputies (id, name) VALUES
            (1, 'Maria Silva'),
            (2, 'Maria Silva'),
            (3, NULL),
            (4, 'José Antônio')
    """)

    apply_migrations(con)

    slugs = dict(con.execute("SELECT id, slug FROM deputies").fetchall())
    assert slugs == {
        1: "maria-silva",
        2: "maria-silva-2",
        3: "deputado-3",
        4: "jose-antonio",
    }


def test_slug_index_is_unique(con):
    """The slug index rejects a second deputy with the same slug."""
    apply_migrations(con)
    con.execute("INSERT INTO deputies (id, name, slug) VALUES (1, 'Maria Silva', 'maria-silva')")
    with pytest.raises(duckdb.ConstraintException):
        con.execute("INSERT INTO deputies (id, name, slug) VALUES (2, 'Maria Silva', 'maria-silva')")
