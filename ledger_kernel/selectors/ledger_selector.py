"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only balance aggregation over posted journal lines:
    per-account opening and period activity for the trial balance, ledger
    totals, and cash-journal lines for the direct cash flow.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Only journals with status ``posted`` contribute.  draft and
      pending_approval journals are invisible to every balance.
    - Opening window: journal_date < period_start.  Period window:
      period_start <= journal_date <= as_of_date.
    - No stored balances; everything is summed at query time.

Failure modes:
    - Returns empty results (zero balances) when nothing is posted.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, case, false, func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import LedgerScope
from ledger_kernel.models.journal import Journal, JournalLine, JournalStatus
from ledger_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0")


@dataclass(frozen=True)
class AccountActivity:
    """Posted debit/credit totals for one account, split by window."""

    account_id: UUID
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    line_count: int
    first_date: date | None
    last_date: date | None

    @property
    def opening_net(self) -> Decimal:
        """Opening balance as debits minus credits."""
        return self.opening_debit - self.opening_credit

    @property
    def period_net(self) -> Decimal:
        return self.period_debit - self.period_credit


@dataclass(frozen=True)
class PostedLine:
    """One posted journal line, used for cash-flow classification."""

    journal_id: UUID
    journal_date: date
    account_id: UUID
    debit: Decimal
    credit: Decimal

    @property
    def signed_amount(self) -> Decimal:
        return self.debit - self.credit


class LedgerSelector(BaseSelector):
    """
    Balance queries for one tenant/company scope.

    Guarantees:
        - All returned amounts are Decimal, never float.
        - Accounts with no posted lines in range are simply absent.
    """

    def __init__(self, session: Session, scope: LedgerScope):
        super().__init__(session, scope)

    def _posted_lines(self, query):
        query = query.select_from(JournalLine).join(
            Journal, JournalLine.journal_id == Journal.id
        ).where(
            Journal.status == JournalStatus.POSTED.value
        )
        return self._scoped(query, Journal)

    def account_activity(
        self,
        as_of_date: date,
        period_start: date | None = None,
        currency: str | None = None,
    ) -> list[AccountActivity]:
        """
        Aggregate posted lines per account up to ``as_of_date``.

        With no ``period_start`` everything up to ``as_of_date`` counts as
        period activity and the opening columns are zero.
        """
        in_opening = false() if period_start is None else Journal.journal_date < period_start
        in_period = (
            Journal.journal_date <= as_of_date
            if period_start is None
            else and_(Journal.journal_date >= period_start, Journal.journal_date <= as_of_date)
        )

        def windowed_sum(window, column, label):
            return func.sum(case((window, column), else_=_ZERO)).label(label)

        query = select(
            JournalLine.account_id,
            windowed_sum(in_opening, JournalLine.debit, "opening_debit"),
            windowed_sum(in_opening, JournalLine.credit, "opening_credit"),
            windowed_sum(in_period, JournalLine.debit, "period_debit"),
            windowed_sum(in_period, JournalLine.credit, "period_credit"),
            func.count(JournalLine.id).label("line_count"),
            func.min(Journal.journal_date).label("first_date"),
            func.max(Journal.journal_date).label("last_date"),
        )
        query = self._posted_lines(query).where(Journal.journal_date <= as_of_date)
        if currency is not None:
            query = query.where(Journal.currency == currency)
        query = query.group_by(JournalLine.account_id)

        return [
            AccountActivity(
                account_id=row.account_id,
                opening_debit=row.opening_debit or _ZERO,
                opening_credit=row.opening_credit or _ZERO,
                period_debit=row.period_debit or _ZERO,
                period_credit=row.period_credit or _ZERO,
                line_count=row.line_count,
                first_date=row.first_date,
                last_date=row.last_date,
            )
            for row in self.session.execute(query).all()
        ]

    def total_debits_credits(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> tuple[Decimal, Decimal]:
        """Total posted debits and credits in an optional date range."""
        query = select(
            func.coalesce(func.sum(JournalLine.debit), _ZERO),
            func.coalesce(func.sum(JournalLine.credit), _ZERO),
        )
        query = self._posted_lines(query)
        if start_date is not None:
            query = query.where(Journal.journal_date >= start_date)
        if end_date is not None:
            query = query.where(Journal.journal_date <= end_date)
        debits, credits = self.session.execute(query).one()
        return Decimal(str(debits or _ZERO)), Decimal(str(credits or _ZERO))

    def lines_of_journals_touching(
        self,
        account_ids: list[UUID],
        start_date: date,
        end_date: date,
    ) -> list[PostedLine]:
        """All posted lines of journals in range that touch any of ``account_ids``."""
        if not account_ids:
            return []

        touching = self._posted_lines(
            select(JournalLine.journal_id).where(JournalLine.account_id.in_(account_ids))
        ).where(Journal.journal_date >= start_date, Journal.journal_date <= end_date)

        query = select(
            JournalLine.journal_id,
            Journal.journal_date,
            JournalLine.account_id,
            JournalLine.debit,
            JournalLine.credit,
        )
        query = (
            self._posted_lines(query)
            .where(JournalLine.journal_id.in_(touching))
            .order_by(Journal.journal_date, Journal.journal_number, JournalLine.line_number)
        )
        return [
            PostedLine(
                journal_id=row.journal_id,
                journal_date=row.journal_date,
                account_id=row.account_id,
                debit=row.debit,
                credit=row.credit,
            )
            for row in self.session.execute(query).all()
        ]
