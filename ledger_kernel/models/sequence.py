"""
Module: ledger_kernel.models.sequence
Responsibility: Locked counter rows backing document and journal numbering.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per (tenant_id, company_id, name).
    - current_value only increases; SequenceService is the sole writer.
"""

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import ScopedBase


class DocumentSequence(ScopedBase):
    __tablename__ = "document_sequences"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "name", name="uq_sequence_scope_name"),
    )

    # e.g. "INV", "BILL", "PAY", "JE"
    name: Mapped[str] = mapped_column(String(30), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
