"""
Module: ledger_kernel.models.payment
Responsibility: ORM persistence for payments and their allocations against
    invoices (receipts) and bills (disbursements).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - payment_type is OUT (bill payment) or IN (invoice receipt).
    - sum(allocations.amount) <= amount (checked by the posting engine); the
      rest is booked as a customer advance or supplier prepayment.
    - Each allocation <= outstanding of its document at posting time.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import ScopedBase, UUIDString


class PaymentType(str, Enum):
    """Contractual payment directions; values must not be renamed."""

    OUT = "OUT"
    IN = "IN"

    @property
    def document_type(self) -> str:
        return "BILL" if self is PaymentType.OUT else "INVOICE"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CASH = "cash"
    CARD = "card"
    OTHER = "other"


class Payment(ScopedBase):
    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "number", name="uq_payment_scope_number"),
        Index("idx_payment_scope_date", "tenant_id", "company_id", "payment_date"),
    )

    number: Mapped[str] = mapped_column(String(50), nullable=False)

    payment_type: Mapped[str] = mapped_column(String(3), nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)

    method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethod.BANK_TRANSFER.value
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("chart_of_accounts.id"), nullable=False
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    bank_charges: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    withholding_tax: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    journal_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journals.id"), nullable=True
    )

    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Payment {self.number} {self.payment_type} {self.amount} {self.currency}>"


class PaymentAllocation(ScopedBase):
    __tablename__ = "payment_allocations"

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payments.id"), nullable=False, index=True
    )

    document_type: Mapped[str] = mapped_column(String(10), nullable=False)

    document_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    payment: Mapped[Payment] = relationship(back_populates="allocations")
