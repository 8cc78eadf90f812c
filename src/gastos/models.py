"""Typed records persisted by the store.

Each dataclass mirrors one table. Required fields come first; optional
upstream fields default to None.
"""

from dataclasses import dataclass

PROCESSED = "PROCESSED"
COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class Deputy:
    id: int
    name: str | None
    party: str | None = None
    state: str | None = None
    legislature: int | None = None
    photo_url: str | None = None
    email: str | None = None
    # Assigned by the store on first insert
    slug: str | None = None


@dataclass(frozen=True)
class DeputyMandateInfo:
    deputy_id: int
    legislature: int
    party: str | None = None
    state: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class Expense:
    deputy_id: int
    document_id: int | None
    year: int | None
    month: int | None
    expense_type: str | None = None
    document_type: str | None = None
    document_date: str | None = None
    document_number: str | None = None
    document_value: float | None = None
    document_url: str | None = None
    supplier_name: str | None = None
    supplier_id: str | None = None
    net_value: float | None = None
    gloss_value: float | None = None
    refund_number: str | None = None
    batch_code: int | None = None
    installment: int | None = None


@dataclass(frozen=True)
class ScrapeProgress:
    deputy_id: int
    legislature: int
    last_page: int
    status: str


@dataclass(frozen=True)
class Supplier:
    cnpj: str
    name: str | None = None
    founding_date: str | None = None
    main_activity: str | None = None
    address: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.name is not None
