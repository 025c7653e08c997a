"""
General Ledger Journal Service (``ledger_modules.gl.service``).

Responsibility
--------------
Manual journal lifecycle: create as draft, submit for approval, post,
approve and reverse.  Each step re-runs the kernel validations so a draft
saved yesterday cannot bypass today's period or account state.

Architecture position
---------------------
**Modules layer**.  Composes the kernel ``JournalWriter`` and
``PeriodService`` with the services-layer ``RbacAuthority``.

Invariants enforced
-------------------
* draft -> pending_approval -> posted, or draft -> posted.  Posted is
  final; corrections are reversals.
* A reversal is a new posted journal with every side swapped and
  ``reversal_of_id`` pointing at the original.  A journal is reversed at
  most once.
* Approver differs from preparer.
* Posting targets an open period unless ``force_post`` is combined with
  ``period:override``.

Failure modes
-------------
* Public methods catch ``LedgerError`` and return a ``REJECTED``
  ``JournalResult``; nothing is written.
* ``create_reversal`` raises; it is the building block shared with the
  period close.

Audit relevance
---------------
``journal_submitted``, ``journal_approved`` and ``journal_reversed`` are
logged alongside the writer's ``journal_posted``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfiguration
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import JournalDraft, JournalInfo, LedgerScope
from ledger_kernel.exceptions import InvalidJournalStateError, LedgerError, PeriodNotOpenError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import Journal, JournalStatus
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.period_service import PeriodService
from ledger_modules.gl.models import JournalOutcome, JournalResult, ManualJournalInput
from ledger_modules.posting.models import PostingError
from ledger_services.rbac_authority import (
    JOURNAL_APPROVE,
    JOURNAL_CREATE,
    JOURNAL_POST,
    JOURNAL_REVERSE,
    PERIOD_OVERRIDE,
    RbacAuthority,
)

logger = get_logger("modules.gl.service")

class JournalService:
    """
    Manual journal operations.

    Contract
    --------
    * Every public method returns ``JournalResult``; callers inspect
      ``result.is_success``.
    * Services flush; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        scope: LedgerScope,
        config: LedgerConfiguration,
        clock: Clock | None = None,
        rbac: RbacAuthority | None = None,
    ):
        self._session = session
        self._scope = scope
        self._clock = clock or SystemClock()
        self._rbac = rbac or RbacAuthority(config.governance)
        self._writer = JournalWriter(session, scope, self._clock)
        self._periods = PeriodService(session, scope, self._clock)
        self._journals = JournalSelector(session, scope)

    def _run(self, operation: str, actor_id: UUID, action: Callable[[], JournalResult]) -> JournalResult:
        t0 = time.monotonic()
        with LogContext.bind(
            tenant_id=self._scope.tenant_id,
            company_id=self._scope.company_id,
            actor_id=actor_id,
        ):
            try:
                with self._session.begin_nested():
                    result = action()
            except LedgerError as exc:
                logger.warning(
                    "journal_operation_rejected",
                    extra={
                        "operation": operation,
                        "exc_code": exc.code,
                        "error": exc.message,
                        "details": exc.details,
                    },
                )
                return JournalResult(
                    outcome=JournalOutcome.REJECTED,
                    error=PostingError.from_exception(exc),
                )
            logger.info(
                "journal_operation_completed",
                extra={
                    "operation": operation,
                    "outcome": result.outcome.value,
                    "journal_number": result.journal_number,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_journal(
        self,
        input: ManualJournalInput,
        user_id: UUID,
        user_role: str,
    ) -> JournalResult:
        """Store a balanced journal as ``draft``; no period check yet."""

        def action() -> JournalResult:
            self._rbac.require(user_role, JOURNAL_CREATE, user_id)
            written = self._writer.write(
                _draft_of_input(input), user_id, JournalStatus.DRAFT
            )
            if written.already_existed:
                return JournalResult(JournalOutcome.ALREADY_POSTED, written.journal)
            return JournalResult(
                JournalOutcome.DRAFT,
                written.journal,
                warnings=tuple(w.message for w in written.warnings),
            )

        return self._run("create_journal", user_id, action)

    def submit_for_approval(self, journal_id: UUID, user_id: UUID) -> JournalResult:
        def action() -> JournalResult:
            journal = self._writer.get_orm(journal_id, for_update=True)
            if journal.status != JournalStatus.DRAFT.value:
                raise InvalidJournalStateError(
                    journal.journal_number, journal.status, JournalStatus.PENDING_APPROVAL.value
                )
            self._writer.validate(self._writer.draft_of(journal))
            info = self._writer.set_status(journal.id, JournalStatus.PENDING_APPROVAL, user_id)
            logger.info("journal_submitted", extra={"journal_number": info.journal_number})
            return JournalResult(JournalOutcome.PENDING_APPROVAL, info)

        return self._run("submit_for_approval", user_id, action)

    def post_journal(
        self,
        journal_id: UUID,
        user_id: UUID,
        user_role: str,
        force_post: bool = False,
    ) -> JournalResult:
        """
        Post a draft, or hold it for approval when it exceeds the role's
        threshold.  A pending journal only moves on through ``approve_journal``.
        """

        def action() -> JournalResult:
            self._rbac.require(user_role, JOURNAL_POST, user_id)
            journal = self._writer.get_orm(journal_id, for_update=True)
            if journal.status == JournalStatus.POSTED.value:
                return JournalResult(JournalOutcome.ALREADY_POSTED, JournalInfo.from_model(journal))
            if journal.status == JournalStatus.PENDING_APPROVAL.value:
                raise InvalidJournalStateError(journal.journal_number, journal.status, "post")

            draft = self._writer.draft_of(journal)
            warnings = self._writer.validate(draft, None, journal.document_currency is not None)
            flags = self._check_period(journal, user_role, force_post)
            self._mark_review(journal, flags)

            if self._rbac.exceeds_threshold(user_role, draft.total_debit):
                info = self._writer.set_status(journal.id, JournalStatus.PENDING_APPROVAL, user_id)
                return JournalResult(JournalOutcome.PENDING_APPROVAL, info, review_flags=flags)

            info = self._writer.set_status(journal.id, JournalStatus.POSTED, user_id)
            return JournalResult(
                JournalOutcome.POSTED,
                info,
                review_flags=flags,
                warnings=tuple(w.message for w in warnings),
            )

        return self._run("post_journal", user_id, action)

    def approve_journal(
        self,
        journal_id: UUID,
        approver_id: UUID,
        approver_role: str,
    ) -> JournalResult:
        """pending_approval -> posted by someone other than the preparer."""

        def action() -> JournalResult:
            self._rbac.require(approver_role, JOURNAL_APPROVE, approver_id)
            journal = self._writer.get_orm(journal_id, for_update=True)
            if journal.status == JournalStatus.POSTED.value:
                return JournalResult(JournalOutcome.ALREADY_POSTED, JournalInfo.from_model(journal))
            if journal.status != JournalStatus.PENDING_APPROVAL.value:
                raise InvalidJournalStateError(journal.journal_number, journal.status, "approve")

            self._rbac.require_distinct_approver(journal.created_by_id, approver_id, "approve_journal")
            self._writer.validate(
                self._writer.draft_of(journal), None, journal.document_currency is not None
            )
            if "period_override" not in (journal.review_reason or ""):
                self._periods.validate_posting_date(journal.journal_date)
            info = self._writer.set_status(
                journal.id, JournalStatus.POSTED, approver_id, approved_by_id=approver_id
            )
            logger.info(
                "journal_approved",
                extra={"journal_number": info.journal_number, "approved_by_id": str(approver_id)},
            )
            return JournalResult(JournalOutcome.POSTED, info)

        return self._run("approve_journal", approver_id, action)

    def reverse_journal(
        self,
        journal_id: UUID,
        user_id: UUID,
        user_role: str,
        reversal_date: date | None = None,
        reason: str | None = None,
    ) -> JournalResult:
        def action() -> JournalResult:
            self._rbac.require(user_role, JOURNAL_REVERSE, user_id)
            return JournalResult(
                JournalOutcome.POSTED,
                self.create_reversal(journal_id, user_id, reversal_date, reason),
            )

        return self._run("reverse_journal", user_id, action)

    def create_reversal(
        self,
        journal_id: UUID,
        actor_id: UUID,
        reversal_date: date | None = None,
        reason: str | None = None,
    ) -> JournalInfo:
        """
        Post the mirror image of a posted journal.

        Raises:
            JournalNotFoundError: Unknown journal.
            InvalidJournalStateError: Not posted, or already reversed.
            PeriodNotFoundError / PeriodNotOpenError: Reversal date not open.
        """
        journal = self._writer.get_orm(journal_id, for_update=True)
        if journal.status != JournalStatus.POSTED.value:
            raise InvalidJournalStateError(journal.journal_number, journal.status, "reverse")
        if self._journals.reversal_exists(journal.id):
            raise InvalidJournalStateError(journal.journal_number, "reversed", "reverse")

        on = reversal_date or journal.journal_date
        self._periods.validate_posting_date(on)

        original = self._writer.draft_of(journal)
        draft = replace(
            original,
            journal_date=on,
            lines=tuple(line.swapped() for line in original.lines),
            description=reason or f"Reversal of {journal.journal_number}",
            reference=f"REV-{journal.journal_number}",
            source_type=journal.source_type,
            source_id=journal.source_id,
            document_currency=journal.document_currency,
            exchange_rate=journal.exchange_rate,
            fx_rate_id=journal.fx_rate_id,
            reversal_of_id=journal.id,
        )
        written = self._writer.write(
            draft, actor_id, JournalStatus.POSTED, None, journal.document_currency is not None
        )
        logger.info(
            "journal_reversed",
            extra={
                "journal_number": journal.journal_number,
                "reversal_number": written.journal.journal_number,
                "reversal_date": str(on),
            },
        )
        return written.journal

    def get_journal(self, journal_id: UUID) -> JournalInfo | None:
        return self._journals.get(journal_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_period(self, journal: Journal, user_role: str, force_post: bool) -> tuple[str, ...]:
        try:
            self._periods.validate_posting_date(journal.journal_date)
        except PeriodNotOpenError:
            if not (force_post and self._rbac.has_permission(user_role, PERIOD_OVERRIDE)):
                raise
            logger.warning(
                "period_override_used",
                extra={"journal_number": journal.journal_number, "role": user_role},
            )
            return ("period_override",)
        return ()

    def _mark_review(self, journal: Journal, flags: tuple[str, ...]) -> None:
        if not flags:
            return
        journal.requires_review = True
        reasons = [journal.review_reason] if journal.review_reason else []
        journal.review_reason = ", ".join(reasons + list(flags))
        self._session.flush()


def _draft_of_input(input: ManualJournalInput) -> JournalDraft:
    return JournalDraft(
        journal_date=input.journal_date,
        currency=input.currency.upper(),
        lines=tuple(input.lines),
        description=input.description,
        reference=input.reference,
        idempotency_key=input.idempotency_key,
        source_type="MANUAL",
    )
