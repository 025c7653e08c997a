"""
Module: ledger_kernel.models.document
Responsibility: ORM persistence for sales invoices and purchase bills with
    their lines.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - subtotal, tax_total, total and amount_paid are derived snapshots.  They
      are written only by the posting engine from the lines and are never
      accepted from callers as truth.
    - outstanding = total - amount_paid, never negative.
    - Lifecycle: draft -> validated -> posted -> partially_paid/paid -> closed.

Audit relevance:
    journal_id links a posted document to the journal that recognised it.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import ScopedBase, UUIDString


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    VALIDATED = "validated"
    POSTED = "posted"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CLOSED = "closed"

    @property
    def accepts_payment(self) -> bool:
        return self in (DocumentStatus.POSTED, DocumentStatus.PARTIALLY_PAID)


class _DocumentHeaderMixin:
    """Columns shared by invoices and bills."""

    number: Mapped[str] = mapped_column(String(50), nullable=False)

    document_date: Mapped[date] = mapped_column(Date, nullable=False)

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.DRAFT.value
    )

    control_account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("chart_of_accounts.id"), nullable=False
    )

    subtotal: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    tax_total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    journal_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journals.id"), nullable=True
    )

    @property
    def outstanding(self) -> Decimal:
        return (self.total or Decimal("0")) - (self.amount_paid or Decimal("0"))

    @property
    def status_enum(self) -> DocumentStatus:
        return DocumentStatus(self.status)


class _DocumentLineMixin:
    """Columns shared by invoice and bill lines."""

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("chart_of_accounts.id"), nullable=False
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    tax_code: Mapped[str | None] = mapped_column(String(30), nullable=True)

    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    tax_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("chart_of_accounts.id"), nullable=True
    )

    line_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )


class Invoice(_DocumentHeaderMixin, ScopedBase):
    """Sales invoice; control account is Accounts Receivable."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "number", name="uq_invoice_scope_number"),
        Index("idx_invoice_scope_status", "tenant_id", "company_id", "status"),
    )

    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.number} {self.status} {self.total} {self.currency}>"


class InvoiceLine(_DocumentLineMixin, ScopedBase):
    __tablename__ = "invoice_lines"

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False, index=True
    )

    invoice: Mapped[Invoice] = relationship(back_populates="lines")


class Bill(_DocumentHeaderMixin, ScopedBase):
    """Purchase bill; control account is Accounts Payable."""

    __tablename__ = "bills"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "number", name="uq_bill_scope_number"),
        Index("idx_bill_scope_status", "tenant_id", "company_id", "status"),
    )

    supplier_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    supplier_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    lines: Mapped[list["BillLine"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Bill {self.number} {self.status} {self.total} {self.currency}>"


class BillLine(_DocumentLineMixin, ScopedBase):
    __tablename__ = "bill_lines"

    bill_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("bills.id"), nullable=False, index=True
    )

    bill: Mapped[Bill] = relationship(back_populates="lines")
