"""
Module: ledger_kernel.models.period
Responsibility: ORM persistence for fiscal periods and their lifecycle state.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - status is one of open, closed, locked (contractual values).
    - Transitions are open -> closed -> locked; the only reverse move is an
      authorized reopen of a closed period.  locked is terminal.  Enforced by
      PeriodService; ``can_transition`` encodes the table.
    - Date ranges within a scope never overlap (PeriodService).

Audit relevance:
    closed_at / closed_by_id / close_reason and reopened_at / reopen_reason
    record who moved the period and why.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import ScopedBase, UUIDString


class PeriodStatus(str, Enum):
    """Contractual period statuses; values must not be renamed."""

    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


_ALLOWED_TRANSITIONS: dict[PeriodStatus, frozenset[PeriodStatus]] = {
    PeriodStatus.OPEN: frozenset({PeriodStatus.CLOSED}),
    PeriodStatus.CLOSED: frozenset({PeriodStatus.LOCKED, PeriodStatus.OPEN}),
    PeriodStatus.LOCKED: frozenset(),
}


def can_transition(from_status: PeriodStatus, to_status: PeriodStatus) -> bool:
    """True if the state machine allows ``from_status -> to_status``."""
    return to_status in _ALLOWED_TRANSITIONS[PeriodStatus(from_status)]


class Period(ScopedBase):
    """A fiscal period (inclusive date range) for one tenant/company."""

    __tablename__ = "periods"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "code", name="uq_period_scope_code"),
        Index("idx_period_scope_dates", "tenant_id", "company_id", "start_date", "end_date"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PeriodStatus.OPEN.value
    )

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    close_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    locked_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reopened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reopen_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN.value

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    def __repr__(self) -> str:
        return f"<Period {self.code} {self.status}>"
