"""
DuckDB-backed store. Every write made by the pipeline goes through here.

A Store wraps one DuckDB connection and is passed explicitly to the scrape
coordinator, the supplier worker, the analytics engine and the query layer.
Mutations are single autocommit statements:

  deputies       insert-or-replace by id (slug assigned once, never rewritten)
  deputies_info  insert-or-replace by (deputy_id, legislature)
  expenses       insert-if-absent by (deputy_id, document_id)
  process_log    last-writer-wins by (deputy_id, legislature)
  suppliers      insert-if-absent by cnpj

Constraint and conversion failures are re-raised as DataIntegrityError so
callers can skip the offending record.

Usage example:
    with Store.open("data/warehouse/deputies.duckdb") as store:
        store.migrate()
        store.upsert_deputy(Deputy(id=204554, name="Fulano de Tal"))
"""

from pathlib import Path
from typing import Any, Sequence

import duckdb

from .config import DB_PATH
from .errors import DataIntegrityError
from .migrations import apply_migrations
from .models import Deputy, DeputyMandateInfo, Expense, ScrapeProgress, Supplier
from .utils import unique_slug

_DEPUTY_COLUMNS = "id, name, party, state, legislature, photo_url, email, slug"
_SUPPLIER_COLUMNS = "cnpj, name, founding_date, main_activity, address"


class Store:
    """
    Owner of the warehouse connection.

    Parameters
    ----------
    con : duckdb.DuckDBPyConnection
        An open connection. Use :meth:`open` to create one from a path.
    """

    def __init__(self, con: duckdb.DuckDBPyConnection) -> None:
        self.con = con

    @classmethod
    def open(cls, path: str | Path = DB_PATH, *, read_only: bool = False) -> "Store":
        """Connect to ``path`` (``":memory:"`` for a throwaway database)."""
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return cls(duckdb.connect(str(path), read_only=read_only))

    def migrate(self) -> list[str]:
        return apply_migrations(self.con)

    def close(self) -> None:
        self.con.close()

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write(self, sql: str, params: Sequence[Any]) -> int:
        """Execute one mutation and return the affected row count."""
        try:
            row = self.con.execute(sql, params).fetchone()
        except (duckdb.ConstraintException, duckdb.ConversionException) as e:
            raise DataIntegrityError(str(e)) from e
        return int(row[0]) if row and row[0] is not None else 0

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[tuple]:
        return self.con.execute(sql, params).fetchall()

    # ------------------------------------------------------------------
    # Deputies
    # ------------------------------------------------------------------

    def get_deputy(self, deputy_id: int) -> Deputy | None:
        row = self.con.execute(
            f"SELECT {_DEPUTY_COLUMNS} FROM deputies WHERE id = ?", [deputy_id]
        ).fetchone()
        return Deputy(*row) if row else None

    def get_deputy_by_slug(self, slug: str) -> Deputy | None:
        row = self.con.execute(
            f"SELECT {_DEPUTY_COLUMNS} FROM deputies WHERE slug = ?", [slug]
        ).fetchone()
        return Deputy(*row) if row else None

    def search_deputies_by_slug(self, fragment: str) -> list[Deputy]:
        """Deputies whose slug contains ``fragment``, ordered by slug."""
        rows = self.con.execute(
            f"""
            SELECT {_DEPUTY_COLUMNS} FROM deputies
            WHERE contains(slug, ?)
            ORDER BY slug
            """,
            [fragment],
        ).fetchall()
        return [Deputy(*r) for r in rows]

    def slug_taken(self, slug: str, deputy_id: int | None = None) -> bool:
        row = self.con.execute(
            "SELECT id FROM deputies WHERE slug = ?", [slug]
        ).fetchone()
        return row is not None and row[0] != deputy_id

    def upsert_deputy(self, deputy: Deputy) -> Deputy:
        """Insert a new deputy or refresh the identity fields of a known one.

        The slug is generated on first insert and kept on every later
        upsert, so external links stay valid when a deputy changes party.
        """
        existing = self.get_deputy(deputy.id)
        if existing is not None:
            self._write(
                """
                UPDATE deputies
                SET name = ?, party = ?, state = ?, legislature = ?,
                    photo_url = ?, email = ?, updated_at = now()
                WHERE id = ?
                """,
                [
                    deputy.name,
                    deputy.party,
                    deputy.state,
                    deputy.legislature,
                    deputy.photo_url,
                    deputy.email,
                    deputy.id,
                ],
            )
            slug = existing.slug
            if not slug:
                # Row predates the slug migrations
                slug = unique_slug(deputy.name, deputy.id, lambda s: self.slug_taken(s, deputy.id))
                self._write("UPDATE deputies SET slug = ? WHERE id = ?", [slug, deputy.id])
        else:
            slug = unique_slug(deputy.name, deputy.id, lambda s: self.slug_taken(s, deputy.id))
            self._write(
                f"""
                INSERT INTO deputies ({_DEPUTY_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    deputy.id,
                    deputy.name,
                    deputy.party,
                    deputy.state,
                    deputy.legislature,
                    deputy.photo_url,
                    deputy.email,
                    slug,
                ],
            )
        return Deputy(
            id=deputy.id,
            name=deputy.name,
            party=deputy.party,
            state=deputy.state,
            legislature=deputy.legislature,
            photo_url=deputy.photo_url,
            email=deputy.email,
            slug=slug,
        )

    def deputy_ids_for_legislature(self, legislature: int) -> list[int]:
        """IDs of stored deputies observed in ``legislature``."""
        rows = self.con.execute(
            """
            SELECT id FROM deputies WHERE legislature = ?
            UNION
            SELECT i.deputy_id
            FROM deputies_info i
            JOIN deputies d ON d.id = i.deputy_id
            WHERE i.legislature = ?
            ORDER BY 1
            """,
            [legislature, legislature],
        ).fetchall()
        return [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Mandate history
    # ------------------------------------------------------------------

    def upsert_mandate(self, info: DeputyMandateInfo) -> None:
        self._write(
            """
            INSERT INTO deputies_info (deputy_id, legislature, party, state, title)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (deputy_id, legislature) DO UPDATE SET
                party = excluded.party,
                state = excluded.state,
                title = excluded.title,
                updated_at = now()
            """,
            [info.deputy_id, info.legislature, info.party, info.state, info.title],
        )

    def get_mandates(self, deputy_id: int) -> list[DeputyMandateInfo]:
        rows = self.con.execute(
            """
            SELECT deputy_id, legislature, party, state, title
            FROM deputies_info
            WHERE deputy_id = ?
            ORDER BY legislature
            """,
            [deputy_id],
        ).fetchall()
        return [DeputyMandateInfo(*r) for r in rows]

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def insert_expense(self, expense: Expense) -> bool:
        """Insert-if-absent. Returns True when a new row was written."""
        n = self._write(
            """
            INSERT OR IGNORE INTO expenses (
                deputy_id, document_id, year, month, expense_type,
                document_type, document_date, document_number,
                document_value, document_url, supplier_name,
                supplier_id, net_value, gloss_value,
                refund_number, batch_code, installment
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                expense.deputy_id,
                expense.document_id,
                expense.year,
                expense.month,
                expense.expense_type,
                expense.document_type,
                expense.document_date,
                expense.document_number,
                expense.document_value,
                expense.document_url,
                expense.supplier_name,
                expense.supplier_id,
                expense.net_value,
                expense.gloss_value,
                expense.refund_number,
                expense.batch_code,
                expense.installment,
            ],
        )
        return n > 0

    def count_expenses(self, deputy_id: int | None = None) -> int:
        if deputy_id is None:
            row = self.con.execute("SELECT COUNT(*) FROM expenses").fetchone()
        else:
            row = self.con.execute(
                "SELECT COUNT(*) FROM expenses WHERE deputy_id = ?", [deputy_id]
            ).fetchone()
        return int(row[0])

    def supplier_identifiers(self) -> list[str]:
        """Distinct raw supplier identifiers referenced by expenses."""
        rows = self.con.execute("""
            SELECT DISTINCT supplier_id FROM expenses
            WHERE supplier_id IS NOT NULL AND supplier_id <> ''
        """).fetchall()
        return [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Scrape progress
    # ------------------------------------------------------------------

    def get_progress(self, deputy_id: int, legislature: int) -> ScrapeProgress | None:
        row = self.con.execute(
            """
            SELECT deputy_id, legislature, last_page, status
            FROM process_log
            WHERE deputy_id = ? AND legislature = ?
            """,
            [deputy_id, legislature],
        ).fetchone()
        return ScrapeProgress(*row) if row else None

    def save_progress(self, progress: ScrapeProgress) -> None:
        self._write(
            """
            INSERT INTO process_log (deputy_id, legislature, last_page, status)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (deputy_id, legislature) DO UPDATE SET
                last_page = excluded.last_page,
                status = excluded.status,
                updated_at = now()
            """,
            [progress.deputy_id, progress.legislature, progress.last_page, progress.status],
        )

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def supplier_cnpjs(self) -> set[str]:
        return {r[0] for r in self.con.execute("SELECT cnpj FROM suppliers").fetchall()}

    def supplier_exists(self, cnpj: str) -> bool:
        row = self.con.execute("SELECT 1 FROM suppliers WHERE cnpj = ?", [cnpj]).fetchone()
        return row is not None

    def get_supplier(self, cnpj: str) -> Supplier | None:
        row = self.con.execute(
            f"SELECT {_SUPPLIER_COLUMNS} FROM suppliers WHERE cnpj = ?", [cnpj]
        ).fetchone()
        return Supplier(*row) if row else None

    def save_supplier(self, supplier: Supplier) -> bool:
        """Insert-if-absent; a looked-up CNPJ is never queried again."""
        n = self._write(
            f"""
            INSERT OR IGNORE INTO suppliers ({_SUPPLIER_COLUMNS})
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                supplier.cnpj,
                supplier.name,
                supplier.founding_date,
                supplier.main_activity,
                supplier.address,
            ],
        )
        return n > 0
