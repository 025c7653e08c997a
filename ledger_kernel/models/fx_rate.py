"""
Module: ledger_kernel.models.fx_rate
Responsibility: ORM persistence for ingested exchange rates.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - rate > 0, stored as Numeric(38, 18).
    - Several rates per pair may coexist; the applicable rate for a posting
      date is the most recent with valid_from <= date and (valid_to is null
      or valid_to >= date).  Resolved by FxRateService.

Audit relevance:
    ingested_at drives staleness classification; journals that used a rate
    reference it through fx_rate_id.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class FxRate(TrackedBase):
    """One quoted rate: 1 unit of from_currency = rate units of to_currency."""

    __tablename__ = "fx_rates"

    __table_args__ = (
        CheckConstraint("rate > 0", name="ck_fx_rate_positive"),
        Index("idx_fx_rate_pair_valid", "from_currency", "to_currency", "valid_from"),
    )

    from_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    to_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    source: Mapped[str] = mapped_column(String(50), nullable=False)

    ingested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    valid_from: Mapped[date] = mapped_column(Date, nullable=False)

    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<FxRate {self.from_currency}/{self.to_currency}={self.rate} ({self.source})>"
