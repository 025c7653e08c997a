"""
JournalWriter -- atomic, validated persistence of balanced journals.

Responsibility:
    The only code path that inserts Journal and JournalLine rows.  Given a
    JournalDraft it checks balance at currency precision, runs the
    chart-of-accounts validator, allocates the journal number and writes
    header and lines inside one SAVEPOINT.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the document posting pipeline, JournalService (manual and
    reversing journals) and the period close orchestrator.

Invariants enforced:
    - Every line amount is a whole number of minor units
      (AmountPrecisionError), so stored lines never drift from the
      balance that was checked.
    - sum(debit) == sum(credit); otherwise UnbalancedJournalError and
      nothing is written.
    - No line targets a missing, inactive or control account.
    - An idempotency_key already used in the scope returns the existing
      journal instead of writing a second one, provided it was written for
      the same source; a key bound to another source raises
      IdempotencyConflictError.
    - All-or-nothing: header, lines and number allocation share a savepoint.

Failure modes:
    - AmountPrecisionError, UnbalancedJournalError, AccountNotFoundError,
      AccountInactiveError, ControlAccountPostingError,
      CurrencyMismatchError, IdempotencyConflictError (raised before any
      insert).
    - IntegrityError from a concurrent insert with the same idempotency key
      is resolved to the winner's journal.

Audit relevance:
    journal_written / journal_posted are logged with journal_number, status,
    totals and duration_ms.
"""

import time
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain import coa
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    AccountInfo,
    JournalDraft,
    JournalInfo,
    JournalLineSpec,
    LedgerScope,
)
from ledger_kernel.domain.values import Currency
from ledger_kernel.exceptions import (
    AmountPrecisionError,
    IdempotencyConflictError,
    InvalidJournalStateError,
    JournalNotFoundError,
    UnbalancedJournalError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import Journal, JournalLine, JournalStatus
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_writer")


@dataclass(frozen=True)
class JournalWriteResult:
    """Outcome of a successful write (failures raise)."""

    journal: JournalInfo
    warnings: tuple[coa.NormalBalanceWarning, ...] = ()
    already_existed: bool = False


def check_precision(draft: JournalDraft) -> None:
    """Raise AmountPrecisionError for a line finer than the currency's minor unit."""
    currency = Currency(draft.currency)
    for number, line in enumerate(draft.lines, start=1):
        if line.amount != line.amount.quantize(currency.minor_unit):
            raise AmountPrecisionError(
                f"line {number}", line.amount, currency.code, currency.decimal_places
            )


def check_balanced(draft: JournalDraft) -> None:
    """Raise UnbalancedJournalError unless debits equal credits exactly."""
    check_precision(draft)
    if not draft.lines or draft.total_debit != draft.total_credit:
        raise UnbalancedJournalError(draft.total_debit, draft.total_credit, draft.currency)


def _check_same_source(existing: Journal, draft: JournalDraft) -> None:
    if (existing.source_type, existing.source_id) != (draft.source_type, draft.source_id):
        raise IdempotencyConflictError(
            draft.idempotency_key,
            existing.journal_number,
            str(existing.source_id) if existing.source_id else None,
        )


class JournalWriter(BaseService):
    """
    Validates and persists journals.

    Contract:
        ``write()`` either returns a JournalWriteResult for a journal that
        now exists (new or idempotent hit) or raises a LedgerError with
        nothing written.
    """

    def __init__(
        self,
        session: Session,
        scope: LedgerScope,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session, scope, clock)
        self._sequences = sequences or SequenceService(session, scope, clock)

    def load_accounts(self) -> dict[UUID, AccountInfo]:
        return AccountSelector(self.session, self.scope).account_map()

    def validate(
        self,
        draft: JournalDraft,
        accounts: Mapping[UUID, AccountInfo] | None = None,
        fx_policy_applies: bool = False,
    ) -> list[coa.NormalBalanceWarning]:
        """Run every pre-write check; returns normal-balance warnings."""
        check_balanced(draft)
        if accounts is None:
            accounts = self.load_accounts()
        return coa.validate_journal_accounts(
            list(draft.lines), accounts, draft.currency, fx_policy_applies
        )

    def _existing(self, idempotency_key: str | None) -> Journal | None:
        if idempotency_key is None:
            return None
        return self.session.execute(
            self._scoped(
                select(Journal).where(Journal.idempotency_key == idempotency_key), Journal
            )
        ).scalar_one_or_none()

    def write(
        self,
        draft: JournalDraft,
        actor_id: UUID,
        status: JournalStatus = JournalStatus.POSTED,
        accounts: Mapping[UUID, AccountInfo] | None = None,
        fx_policy_applies: bool = False,
    ) -> JournalWriteResult:
        """
        Validate ``draft`` and insert it with the given status.

        Postconditions:
            - On success the journal and its lines are flushed; posted
              journals carry posted_at and posted_by_id.
            - On failure no row (and no sequence increment) remains.
        """
        t0 = time.monotonic()

        existing = self._existing(draft.idempotency_key)
        if existing is not None:
            _check_same_source(existing, draft)
            logger.info(
                "journal_write_idempotent",
                extra={
                    "journal_number": existing.journal_number,
                    "idempotency_key": draft.idempotency_key,
                },
            )
            return JournalWriteResult(JournalInfo.from_model(existing), already_existed=True)

        warnings = self.validate(draft, accounts, fx_policy_applies)

        try:
            with self.session.begin_nested():
                journal = self._insert(draft, actor_id, status)
        except IntegrityError:
            logger.warning(
                "concurrent_insert_conflict",
                extra={"idempotency_key": draft.idempotency_key},
            )
            existing = self._existing(draft.idempotency_key)
            if existing is None:
                raise
            _check_same_source(existing, draft)
            return JournalWriteResult(JournalInfo.from_model(existing), already_existed=True)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "journal_posted" if journal.is_posted else "journal_written",
            extra={
                "journal_id": str(journal.id),
                "journal_number": journal.journal_number,
                "status": journal.status,
                "total_debit": str(draft.total_debit),
                "line_count": len(draft.lines),
                "requires_review": draft.requires_review,
                "duration_ms": duration_ms,
            },
        )
        return JournalWriteResult(JournalInfo.from_model(journal), tuple(warnings))

    def _insert(self, draft: JournalDraft, actor_id: UUID, status: JournalStatus) -> Journal:
        journal_number = self._sequences.next_number(SequenceService.JOURNAL, actor_id)
        scope_columns = self._scope_columns()
        journal = Journal(
            journal_number=journal_number,
            journal_date=draft.journal_date,
            currency=draft.currency,
            status=JournalStatus(status).value,
            idempotency_key=draft.idempotency_key,
            description=draft.description,
            reference=draft.reference,
            source_type=draft.source_type,
            source_id=draft.source_id,
            document_currency=draft.document_currency,
            exchange_rate=draft.exchange_rate,
            fx_rate_id=draft.fx_rate_id,
            requires_review=draft.requires_review,
            review_reason=draft.review_reason,
            reversal_of_id=draft.reversal_of_id,
            created_by_id=actor_id,
            **scope_columns,
        )
        if journal.status == JournalStatus.POSTED.value:
            journal.posted_at = self._clock.now()
            journal.posted_by_id = actor_id

        for number, spec in enumerate(draft.lines, start=1):
            journal.lines.append(
                JournalLine(
                    line_number=number,
                    account_id=spec.account_id,
                    debit=spec.debit,
                    credit=spec.credit,
                    description=spec.description,
                    reference=spec.reference,
                    tax_code=spec.tax_code,
                    created_by_id=actor_id,
                    **scope_columns,
                )
            )

        self.session.add(journal)
        self.session.flush()
        return journal

    # =========================================================================
    # Status transitions on existing journals
    # =========================================================================

    def get_orm(self, journal_id: UUID, for_update: bool = False) -> Journal:
        query = self._scoped(select(Journal).where(Journal.id == journal_id), Journal)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        journal = self.session.execute(query).scalar_one_or_none()
        if journal is None:
            raise JournalNotFoundError(str(journal_id))
        return journal

    def set_status(
        self,
        journal_id: UUID,
        status: JournalStatus,
        actor_id: UUID,
        approved_by_id: UUID | None = None,
    ) -> JournalInfo:
        """
        Move an unposted journal to ``status``.

        Raises:
            InvalidJournalStateError: The journal is already posted.
        """
        journal = self.get_orm(journal_id, for_update=True)
        if journal.status == JournalStatus.POSTED.value:
            raise InvalidJournalStateError(journal.journal_number, journal.status, status.value)

        journal.status = status.value
        journal.updated_by_id = actor_id
        if approved_by_id is not None:
            journal.approved_by_id = approved_by_id
        if status == JournalStatus.POSTED:
            journal.posted_at = self._clock.now()
            journal.posted_by_id = actor_id
        self.session.flush()

        if status == JournalStatus.POSTED:
            logger.info(
                "journal_posted",
                extra={
                    "journal_id": str(journal.id),
                    "journal_number": journal.journal_number,
                    "approved_by_id": str(approved_by_id) if approved_by_id else None,
                },
            )
        return JournalInfo.from_model(journal)

    def draft_of(self, journal: Journal) -> JournalDraft:
        """Rebuild the draft of a persisted journal for re-validation."""
        return JournalDraft(
            journal_date=journal.journal_date,
            currency=journal.currency,
            lines=tuple(
                JournalLineSpec(
                    account_id=line.account_id,
                    debit=line.debit or Decimal("0"),
                    credit=line.credit or Decimal("0"),
                    description=line.description,
                    reference=line.reference,
                    tax_code=line.tax_code,
                )
                for line in journal.lines
            ),
            description=journal.description,
            reference=journal.reference,
        )
