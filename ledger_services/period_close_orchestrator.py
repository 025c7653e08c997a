"""
ledger_services.period_close_orchestrator -- Period close, lock and reopen.

Responsibility:
    Decide whether a period may close, then close it: readiness checks,
    authority, the open -> closed (or locked) transition, reversing
    entries for accruals, and opening the following period.  Lock and
    reopen are routed through here so every lifecycle move is authorized
    the same way.  All business logic lives in existing services; the
    orchestrator adds sequencing, guard evaluation and evidence.

Architecture position:
    Services -- stateful orchestration over modules + kernel.
    Composes PeriodService, JournalSelector, ReportingService,
    JournalService and RbacAuthority.  Consumes DTOs from _close_types.py.

Invariants enforced:
    - A period closes only when every readiness check passes, or when an
      actor holding ``period:force_close`` forces it.
    - An out-of-balance trial balance is an integrity failure
      (TrialBalanceUnbalancedError) and cannot be forced.
    - Closed and locked periods reject postings (PeriodService).
    - Reversing entries are dated the first day of the following period;
      an accrual is reversed at most once.
    - SELECT ... FOR UPDATE on the period row serializes concurrent
      close attempts.

Failure modes:
    - Every LedgerError raised inside close/lock/reopen is caught, logged
      at WARNING with ``exc_code`` and returned in the result; the
      savepoint rolls back, so a failed close leaves the period open.
    - check_close_readiness raises PeriodNotFoundError for an unknown id.

Audit relevance:
    period_close_started, period_close_validated, period_force_closed and
    period_close_completed are logged with the period code, the closer
    and the failing checks.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfiguration
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LedgerScope, PeriodInfo
from ledger_kernel.exceptions import (
    ApprovalRequiredError,
    InvalidInputError,
    LedgerError,
    PeriodAlreadyClosedError,
    PeriodCloseValidationError,
    TrialBalanceUnbalancedError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.period import PeriodStatus
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.period_service import PeriodService
from ledger_modules.gl.service import JournalService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import TrialBalanceInput
from ledger_modules.reporting.service import ReportingService
from ledger_services._close_types import (
    CHECK_ALL_JOURNALS_POSTED,
    CHECK_ALL_REQUIRED_ADJUSTMENTS,
    CHECK_APPROVAL_REQUIRED,
    CHECK_NO_UNRECONCILED_TRANSACTIONS,
    CHECK_SOD_COMPLIANCE,
    CHECK_TRIAL_BALANCE_BALANCED,
    PeriodCloseRequest,
    PeriodCloseResult,
    PeriodCloseValidation,
    PeriodReopenRequest,
    PeriodTransitionResult,
)
from ledger_services.rbac_authority import (
    PERIOD_APPROVE_REOPEN,
    PERIOD_CLOSE,
    PERIOD_FORCE_CLOSE,
    PERIOD_LOCK,
    PERIOD_REOPEN,
    RbacAuthority,
)

logger = get_logger("services.period_close")

R = TypeVar("R", PeriodCloseResult, PeriodTransitionResult)


class PeriodCloseOrchestrator:
    """
    Period lifecycle with readiness checks and authority control.

    Contract:
        Receives the session, scope and configuration; builds its
        collaborators from them.  ``clock`` and ``rbac`` may be injected.
    Guarantees:
        - ``check_close_readiness`` is non-destructive.
        - ``close_period``, ``lock_period`` and ``reopen_period`` return a
          result object; callers inspect ``result.success``.
        - Flush only; the caller commits.
    Non-goals:
        - Does not post closing entries to retained earnings; the balance
          sheet presents current earnings directly.
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
        self._config = config
        self._policy = config.governance
        self._clock = clock or SystemClock()
        self._rbac = rbac or RbacAuthority(config.governance)
        self._periods = PeriodService(session, scope, self._clock)
        self._journals = JournalSelector(session, scope)
        self._journal_service = JournalService(session, scope, config, self._clock, self._rbac)
        self._reporting = ReportingService(
            session,
            scope,
            ReportingConfig.from_policy(config.reporting, config.base_currency),
            self._clock,
        )

    def _run(
        self,
        operation: str,
        actor_id: UUID,
        action: Callable[[], R],
        rejected: Callable[[LedgerError], R],
    ) -> R:
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
                    "period_operation_rejected",
                    extra={
                        "operation": operation,
                        "exc_code": exc.code,
                        "error": exc.message,
                        "details": exc.details,
                    },
                )
                return rejected(exc)
            logger.info(
                "period_operation_completed",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

    # =========================================================================
    # Readiness
    # =========================================================================

    def check_close_readiness(self, period_id: UUID, closed_by: UUID) -> PeriodCloseValidation:
        """
        Evaluate every close check for the period without changing it.

        Blocking: unposted journals, an unbalanced trial balance, missing
        required adjustments, and the closer being the sole preparer when
        dual control is on.  Warning: unreconciled bank transactions.
        """
        period = self._periods.get_period(period_id)
        start, end = period.start_date, period.end_date
        errors: list[str] = []
        warnings: list[str] = []
        checks: dict[str, bool] = {}

        unposted = self._journals.unposted_journal_numbers(start, end)
        checks[CHECK_ALL_JOURNALS_POSTED] = not unposted
        if unposted:
            errors.append(
                f"{len(unposted)} unposted journal(s): {', '.join(unposted)}"
            )

        tb = self._reporting.trial_balance(TrialBalanceInput(end, start))
        checks[CHECK_TRIAL_BALANCE_BALANCED] = tb.is_balanced
        if not tb.is_balanced:
            errors.append(f"Trial balance is out by {tb.difference}")

        unreconciled = self._journals.unreconciled_bank_transactions(start, end)
        checks[CHECK_NO_UNRECONCILED_TRANSACTIONS] = unreconciled == 0
        if unreconciled:
            warnings.append(f"{unreconciled} unreconciled bank transaction(s)")

        missing = [
            marker
            for marker in self._policy.required_adjustments
            if not self._journals.posted_with_reference_marker(start, end, marker)
        ]
        checks[CHECK_ALL_REQUIRED_ADJUSTMENTS] = not missing
        if missing:
            errors.append(f"Missing required adjustment(s): {', '.join(missing)}")

        sod_ok = True
        if self._policy.dual_control_on_close:
            preparers = self._journals.posted_preparers(start, end)
            sod_ok = preparers != {closed_by}
        checks[CHECK_SOD_COMPLIANCE] = sod_ok
        if not sod_ok:
            errors.append("Closer prepared every posted journal of the period")

        threshold = self._policy.close_approval_threshold
        over_threshold = (
            threshold is not None and self._journals.posted_volume(start, end) > threshold
        )
        checks[CHECK_APPROVAL_REQUIRED] = over_threshold or bool(warnings)

        validation = PeriodCloseValidation(
            period_code=period.code,
            can_close=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            checks=checks,
        )
        logger.info(
            "period_close_validated",
            extra={
                "period_code": period.code,
                "can_close": validation.can_close,
                "failed_checks": sorted(
                    name for name, ok in checks.items()
                    if not ok and name != CHECK_APPROVAL_REQUIRED
                ),
                "approval_required": checks[CHECK_APPROVAL_REQUIRED],
            },
        )
        return validation

    # =========================================================================
    # Close
    # =========================================================================

    def close_period(self, request: PeriodCloseRequest) -> PeriodCloseResult:
        def action() -> PeriodCloseResult:
            today = self._clock.now().date()
            if request.close_date > today:
                raise InvalidInputError(
                    [f"close_date {request.close_date} is in the future (today is {today})"]
                )
            self._rbac.require(request.user_role, PERIOD_CLOSE, request.closed_by)

            period = self._periods.get_period(request.fiscal_period_id)
            if period.status != PeriodStatus.OPEN.value:
                raise PeriodAlreadyClosedError(period.code, period.status)

            logger.info(
                "period_close_started",
                extra={"period_code": period.code, "force_close": request.force_close},
            )
            validation = self.check_close_readiness(period.id, request.closed_by)
            if not validation.checks[CHECK_TRIAL_BALANCE_BALANCED]:
                tb = self._reporting.trial_balance(
                    TrialBalanceInput(period.end_date, period.start_date)
                )
                raise TrialBalanceUnbalancedError(tb.total_debits, tb.total_credits)

            forced = False
            if not validation.can_close:
                if not (
                    request.force_close
                    and self._rbac.has_permission(request.user_role, PERIOD_FORCE_CLOSE)
                ):
                    raise PeriodCloseValidationError(
                        period.code, list(validation.errors), validation.to_dict()
                    )
                forced = True
                logger.warning(
                    "period_force_closed",
                    extra={
                        "period_code": period.code,
                        "role": request.user_role,
                        "errors": list(validation.errors),
                    },
                )

            closed = self._periods.close(period.id, request.closed_by, request.close_reason)
            if self._policy.lock_on_close:
                closed = self._periods.lock(period.id, request.closed_by)

            if self._policy.auto_open_next_period:
                next_period = self._periods.auto_open_next(period.id, request.closed_by)
            else:
                next_period = self._periods.next_period(period.id)

            reversals: tuple[str, ...] = ()
            if request.generate_reversing_entries:
                reversals = self._reverse_accruals(closed, next_period, request.closed_by)

            logger.info(
                "period_close_completed",
                extra={
                    "period_code": closed.code,
                    "status": closed.status,
                    "forced": forced,
                    "reversing_entries": len(reversals),
                    "next_period_code": next_period.code if next_period else None,
                },
            )
            return PeriodCloseResult(
                success=True,
                period=closed,
                validation=validation,
                forced=forced,
                reversing_journal_numbers=reversals,
                next_period=next_period,
            )

        return self._run(
            "close_period",
            request.closed_by,
            action,
            lambda exc: PeriodCloseResult(success=False, error=exc.to_dict()),
        )

    def _reverse_accruals(
        self,
        period: PeriodInfo,
        next_period: PeriodInfo | None,
        actor_id: UUID,
    ) -> tuple[str, ...]:
        accruals = [
            journal
            for journal in self._journals.posted_with_reference_marker(
                period.start_date, period.end_date, self._policy.reversal_marker
            )
            if not self._journals.reversal_exists(journal.journal_id)
        ]
        if not accruals:
            return ()
        if next_period is None:
            logger.warning(
                "reversing_entries_skipped",
                extra={"period_code": period.code, "accrual_count": len(accruals)},
            )
            return ()

        numbers = []
        for journal in accruals:
            reversal = self._journal_service.create_reversal(
                journal.journal_id,
                actor_id,
                next_period.start_date,
                f"Auto-reversal of {journal.journal_number} on close of {period.code}",
            )
            numbers.append(reversal.journal_number)
        return tuple(numbers)

    # =========================================================================
    # Lock / reopen
    # =========================================================================

    def lock_period(self, period_id: UUID, locked_by: UUID, user_role: str) -> PeriodTransitionResult:
        def action() -> PeriodTransitionResult:
            self._rbac.require(user_role, PERIOD_LOCK, locked_by)
            return PeriodTransitionResult(True, self._periods.lock(period_id, locked_by))

        return self._run(
            "lock_period",
            locked_by,
            action,
            lambda exc: PeriodTransitionResult(False, error=exc.to_dict()),
        )

    def reopen_period(self, request: PeriodReopenRequest) -> PeriodTransitionResult:
        """
        closed -> open.  Locked periods stay locked.  When the policy
        requires it, a second user holding ``period:approve_reopen`` must
        approve.
        """

        def action() -> PeriodTransitionResult:
            if not (request.open_reason or "").strip():
                raise InvalidInputError(["open_reason is required to reopen a period"])
            self._rbac.require(request.user_role, PERIOD_REOPEN, request.reopened_by)

            if self._policy.reopen_requires_approval:
                if request.approved_by is None:
                    raise ApprovalRequiredError(
                        "reopen_period", "a second user must approve the reopen"
                    )
                self._rbac.require_distinct_approver(
                    request.reopened_by, request.approved_by, "reopen_period"
                )
                self._rbac.require(
                    request.approver_role or "", PERIOD_APPROVE_REOPEN, request.approved_by
                )

            period = self._periods.reopen(
                request.period_id, request.reopened_by, request.open_reason
            )
            return PeriodTransitionResult(True, period)

        return self._run(
            "reopen_period",
            request.reopened_by,
            action,
            lambda exc: PeriodTransitionResult(False, error=exc.to_dict()),
        )
