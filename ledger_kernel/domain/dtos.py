"""
DTOs -- Frozen data-transfer objects crossing the kernel boundary.

Responsibility:
    Immutable carriers between services, selectors and the pure domain
    code.  Domain functions (coa, tax, reporting builders) only ever see
    these, never ORM rows.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from ledger_kernel.models.account import AccountType, NormalBalance


@dataclass(frozen=True)
class LedgerScope:
    """The tenant/company pair every query and write is confined to."""

    tenant_id: UUID
    company_id: UUID
    company_code: str = "CO"


@dataclass(frozen=True)
class AccountInfo:
    """Read-only projection of a chart-of-accounts row."""

    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    currency: str
    parent_id: UUID | None = None
    level: int = 1
    is_active: bool = True
    category: str | None = None
    tags: tuple[str, ...] = ()

    @classmethod
    def from_model(cls, account) -> AccountInfo:
        return cls(
            account_id=account.id,
            code=account.code,
            name=account.name,
            account_type=AccountType(account.account_type),
            normal_balance=NormalBalance(account.normal_balance),
            currency=account.currency,
            parent_id=account.parent_id,
            level=account.level if account.level is not None else 1,
            is_active=account.is_active if account.is_active is not None else True,
            category=account.category,
            tags=tuple(account.tags or ()),
        )

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass(frozen=True)
class JournalLineSpec:
    """One line of a journal before it is persisted."""

    account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None
    reference: str | None = None
    tax_code: str | None = None

    def __post_init__(self) -> None:
        if self.debit < 0 or self.credit < 0:
            raise ValueError("Journal line amounts must not be negative")
        if (self.debit != 0) == (self.credit != 0):
            raise ValueError("Journal line must carry exactly one non-zero side")

    @property
    def is_debit(self) -> bool:
        return self.debit != 0

    @property
    def amount(self) -> Decimal:
        return self.debit if self.is_debit else self.credit

    def swapped(self) -> JournalLineSpec:
        return JournalLineSpec(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
            reference=self.reference,
            tax_code=self.tax_code,
        )


@dataclass(frozen=True)
class JournalDraft:
    """Everything JournalWriter needs to persist one journal."""

    journal_date: date
    currency: str
    lines: tuple[JournalLineSpec, ...]
    description: str | None = None
    reference: str | None = None
    idempotency_key: str | None = None
    source_type: str | None = None
    source_id: UUID | None = None
    document_currency: str | None = None
    exchange_rate: Decimal | None = None
    fx_rate_id: UUID | None = None
    requires_review: bool = False
    review_reason: str | None = None
    reversal_of_id: UUID | None = None

    @property
    def account_ids(self) -> list[UUID]:
        seen: dict[UUID, None] = {}
        for line in self.lines:
            seen.setdefault(line.account_id, None)
        return list(seen)

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class JournalLineInfo:
    line_number: int
    account_id: UUID
    debit: Decimal
    credit: Decimal
    description: str | None = None
    tax_code: str | None = None


@dataclass(frozen=True)
class JournalInfo:
    """Read-only projection of a persisted journal."""

    journal_id: UUID
    journal_number: str
    journal_date: date
    currency: str
    status: str
    lines: tuple[JournalLineInfo, ...] = field(default_factory=tuple)
    reference: str | None = None
    description: str | None = None
    requires_review: bool = False
    review_reason: str | None = None
    reversal_of_id: UUID | None = None
    posted_at: datetime | None = None
    posted_by_id: UUID | None = None
    created_by_id: UUID | None = None
    approved_by_id: UUID | None = None
    source_type: str | None = None
    source_id: UUID | None = None

    @classmethod
    def from_model(cls, journal) -> JournalInfo:
        return cls(
            journal_id=journal.id,
            journal_number=journal.journal_number,
            journal_date=journal.journal_date,
            currency=journal.currency,
            status=journal.status,
            lines=tuple(
                JournalLineInfo(
                    line_number=line.line_number,
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                    tax_code=line.tax_code,
                )
                for line in journal.lines
            ),
            reference=journal.reference,
            description=journal.description,
            requires_review=journal.requires_review,
            review_reason=journal.review_reason,
            reversal_of_id=journal.reversal_of_id,
            posted_at=journal.posted_at,
            posted_by_id=journal.posted_by_id,
            created_by_id=journal.created_by_id,
            approved_by_id=journal.approved_by_id,
            source_type=journal.source_type,
            source_id=journal.source_id,
        )

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class PeriodInfo:
    """Read-only projection of a fiscal period."""

    id: UUID
    code: str
    name: str
    start_date: date
    end_date: date
    status: str
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None
    close_reason: str | None = None
    locked_at: datetime | None = None
    reopened_at: datetime | None = None
    reopen_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date


@dataclass(frozen=True)
class FxRateInfo:
    id: UUID
    from_currency: str
    to_currency: str
    rate: Decimal
    source: str
    ingested_at: datetime
    valid_from: date
    valid_to: date | None = None

    @classmethod
    def from_model(cls, fx_rate) -> FxRateInfo:
        return cls(
            id=fx_rate.id,
            from_currency=fx_rate.from_currency,
            to_currency=fx_rate.to_currency,
            rate=fx_rate.rate,
            source=fx_rate.source,
            ingested_at=fx_rate.ingested_at,
            valid_from=fx_rate.valid_from,
            valid_to=fx_rate.valid_to,
        )

    def age_minutes(self, now: datetime) -> float:
        """Minutes elapsed between ingestion and ``now``."""
        ingested_at = self.ingested_at
        # SQLite hands back naive datetimes; stored values are UTC.
        if ingested_at.tzinfo is None:
            ingested_at = ingested_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return (now - ingested_at).total_seconds() / 60
