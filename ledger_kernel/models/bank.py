"""
Module: ledger_kernel.models.bank
Responsibility: Imported bank statement lines, read by the close-readiness
    check to warn about unreconciled activity.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import ScopedBase, UUIDString


class BankTransaction(ScopedBase):
    __tablename__ = "bank_transactions"

    __table_args__ = (
        Index("idx_bank_txn_scope_date", "tenant_id", "company_id", "transaction_date"),
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("chart_of_accounts.id"), nullable=False
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
