"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only journal, document and bank queries used by
    posting idempotency and the period close-readiness check.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import JournalInfo, LedgerScope
from ledger_kernel.models.bank import BankTransaction
from ledger_kernel.models.journal import Journal, JournalLine, JournalStatus
from ledger_kernel.selectors.base import BaseSelector


class JournalSelector(BaseSelector):
    """Journal lookups confined to one tenant/company scope."""

    def __init__(self, session: Session, scope: LedgerScope):
        super().__init__(session, scope)

    def get(self, journal_id: UUID) -> JournalInfo | None:
        query = self._scoped(select(Journal).where(Journal.id == journal_id), Journal)
        journal = self.session.execute(query).scalar_one_or_none()
        return JournalInfo.from_model(journal) if journal is not None else None

    def find_by_idempotency_key(self, idempotency_key: str) -> JournalInfo | None:
        query = self._scoped(
            select(Journal).where(Journal.idempotency_key == idempotency_key), Journal
        )
        journal = self.session.execute(query).scalar_one_or_none()
        return JournalInfo.from_model(journal) if journal is not None else None

    def count_by_status(self, start_date: date, end_date: date) -> dict[str, int]:
        """Number of journals per status dated within the range."""
        query = self._scoped(
            select(Journal.status, func.count(Journal.id))
            .where(Journal.journal_date >= start_date, Journal.journal_date <= end_date)
            .group_by(Journal.status),
            Journal,
        )
        counts = {status.value: 0 for status in JournalStatus}
        for status, count in self.session.execute(query).all():
            counts[status] = count
        return counts

    def unposted_journal_numbers(self, start_date: date, end_date: date) -> list[str]:
        query = self._scoped(
            select(Journal.journal_number)
            .where(
                Journal.journal_date >= start_date,
                Journal.journal_date <= end_date,
                Journal.status != JournalStatus.POSTED.value,
            )
            .order_by(Journal.journal_number),
            Journal,
        )
        return list(self.session.execute(query).scalars().all())

    def posted_preparers(self, start_date: date, end_date: date) -> set[UUID]:
        """Distinct users who created the posted journals of the range."""
        query = self._scoped(
            select(Journal.created_by_id)
            .where(
                Journal.journal_date >= start_date,
                Journal.journal_date <= end_date,
                Journal.status == JournalStatus.POSTED.value,
            )
            .distinct(),
            Journal,
        )
        return set(self.session.execute(query).scalars().all())

    def posted_with_reference_marker(
        self,
        start_date: date,
        end_date: date,
        marker: str,
    ) -> list[JournalInfo]:
        """Posted journals in range whose reference contains ``marker``."""
        query = self._scoped(
            select(Journal)
            .where(
                Journal.journal_date >= start_date,
                Journal.journal_date <= end_date,
                Journal.status == JournalStatus.POSTED.value,
                Journal.reversal_of_id.is_(None),
                Journal.reference.like(f"%{marker}%"),
            )
            .order_by(Journal.journal_date, Journal.journal_number),
            Journal,
        )
        return [JournalInfo.from_model(j) for j in self.session.execute(query).scalars().all()]

    def reversal_exists(self, journal_id: UUID) -> bool:
        query = self._scoped(
            select(func.count(Journal.id)).where(Journal.reversal_of_id == journal_id),
            Journal,
        )
        return self.session.execute(query).scalar_one() > 0

    def posted_volume(self, start_date: date, end_date: date) -> Decimal:
        """Sum of posted debits in the range (journal turnover)."""
        query = self._scoped(
            select(func.coalesce(func.sum(JournalLine.debit), Decimal("0")))
            .select_from(JournalLine)
            .join(Journal, JournalLine.journal_id == Journal.id)
            .where(
                Journal.journal_date >= start_date,
                Journal.journal_date <= end_date,
                Journal.status == JournalStatus.POSTED.value,
            ),
            Journal,
        )
        return Decimal(str(self.session.execute(query).scalar_one()))

    def unreconciled_bank_transactions(self, start_date: date, end_date: date) -> int:
        query = self._scoped(
            select(func.count(BankTransaction.id)).where(
                BankTransaction.transaction_date >= start_date,
                BankTransaction.transaction_date <= end_date,
                BankTransaction.is_reconciled.is_(False),
            ),
            BankTransaction,
        )
        return self.session.execute(query).scalar_one()
