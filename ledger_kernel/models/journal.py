"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journals and their lines -- the atomic,
    balanced unit of the general ledger.
Architecture position: Kernel > Models.  May import from db/ and
    models/account.py.

Invariants enforced:
    - sum(debit) == sum(credit) at currency precision (checked by
      JournalWriter before insert; ``is_balanced`` re-derives it).
    - Each line carries exactly one non-zero side (debit XOR credit).
    - journal_number and idempotency_key are unique per tenant/company.
    - Lines are owned exclusively by their journal and never mutated after
      posting; corrections are reversing journals (reversal_of_id).

Failure modes:
    - IntegrityError on duplicate journal_number / idempotency_key in scope.

Audit relevance:
    Only journals with status ``posted`` feed the trial balance.  draft and
    pending_approval journals are visible to the close-readiness check and
    block period close.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import ScopedBase, UUIDString


class JournalStatus(str, Enum):
    """Contractual journal statuses; values must not be renamed."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    POSTED = "posted"


class Journal(ScopedBase):
    """
    A balanced set of debit/credit lines.

    Contract:
        Lines are ordered by line_number.  ``currency`` is the ledger
        currency of every line; ``document_currency`` and ``exchange_rate``
        record the source document's currency when it was converted.
    """

    __tablename__ = "journals"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "company_id", "journal_number", name="uq_journal_scope_number"
        ),
        UniqueConstraint(
            "tenant_id", "company_id", "idempotency_key", name="uq_journal_scope_idempotency"
        ),
        Index("idx_journal_scope_date", "tenant_id", "company_id", "journal_date"),
        Index("idx_journal_scope_status", "tenant_id", "company_id", "status"),
        Index("idx_journal_source", "source_type", "source_id"),
    )

    journal_number: Mapped[str] = mapped_column(String(50), nullable=False)

    journal_date: Mapped[date] = mapped_column(Date, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JournalStatus.DRAFT.value
    )

    idempotency_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    source_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    document_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    fx_rate_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("fx_rates.id"), nullable=True
    )

    requires_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    review_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journals.id"), nullable=True
    )

    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="journal",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_number",
        lazy="selectin",
    )

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit

    @property
    def is_posted(self) -> bool:
        return self.status == JournalStatus.POSTED.value

    def __repr__(self) -> str:
        return f"<Journal {self.journal_number} {self.status}>"


class JournalLine(ScopedBase):
    """
    A single debit or credit against one account.

    Contract:
        Exactly one of debit/credit is non-zero and neither is negative.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_line_non_negative"),
        Index("idx_journal_line_account", "account_id"),
        Index("idx_journal_line_journal", "journal_id", "line_number"),
    )

    journal_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journals.id"), nullable=False
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("chart_of_accounts.id"), nullable=False
    )

    debit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    credit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    tax_code: Mapped[str | None] = mapped_column(String(30), nullable=True)

    journal: Mapped[Journal] = relationship(back_populates="lines")

    @property
    def signed_amount(self) -> Decimal:
        """Positive for debits, negative for credits."""
        return self.debit - self.credit

    def __repr__(self) -> str:
        return f"<JournalLine {self.line_number} Dr {self.debit} Cr {self.credit}>"
