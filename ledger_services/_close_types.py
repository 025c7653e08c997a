"""
ledger_services._close_types -- Period close DTOs for the close orchestrator.

Responsibility:
    Frozen dataclasses for the period lifecycle requests and results:
    close and reopen requests, the close-readiness validation, and the
    results returned by close, lock and reopen.

Architecture position:
    Services -- these types live beside the orchestrator that produces
    and consumes them.  They depend only on kernel DTOs.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
    - A result carries either a period or an error, never a raised
      LedgerError.

Audit relevance:
    ``PeriodCloseValidation.to_dict()`` is the payload attached to a
    PERIOD_CLOSE_VALIDATION_FAILED error, so a rejected close records
    exactly which checks failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any
from uuid import UUID

from ledger_kernel.domain.dtos import PeriodInfo

# Names of the readiness checks, in evaluation order.
CHECK_ALL_JOURNALS_POSTED = "all_journals_posted"
CHECK_TRIAL_BALANCE_BALANCED = "trial_balance_balanced"
CHECK_NO_UNRECONCILED_TRANSACTIONS = "no_unreconciled_transactions"
CHECK_ALL_REQUIRED_ADJUSTMENTS = "all_required_adjustments"
CHECK_SOD_COMPLIANCE = "sod_compliance"
CHECK_APPROVAL_REQUIRED = "approval_required"


@dataclass(frozen=True)
class PeriodCloseRequest:
    fiscal_period_id: UUID
    close_date: date
    closed_by: UUID
    user_role: str
    close_reason: str | None = None
    force_close: bool = False
    generate_reversing_entries: bool = True


@dataclass(frozen=True)
class PeriodReopenRequest:
    period_id: UUID
    reopened_by: UUID
    user_role: str
    open_reason: str
    approved_by: UUID | None = None
    approver_role: str | None = None


@dataclass(frozen=True)
class PeriodCloseValidation:
    """
    Close-readiness diagnostic.

    ``errors`` block the close, ``warnings`` do not.  ``checks`` maps each
    check name to its outcome; ``approval_required`` is informational.
    """

    period_code: str
    can_close: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    checks: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_code": self.period_code,
            "can_close": self.can_close,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "checks": dict(self.checks),
        }


@dataclass(frozen=True)
class PeriodCloseResult:
    """Return type of ``close_period``."""

    success: bool
    period: PeriodInfo | None = None
    validation: PeriodCloseValidation | None = None
    forced: bool = False
    reversing_journal_numbers: tuple[str, ...] = ()
    next_period: PeriodInfo | None = None
    error: dict[str, Any] | None = None

    @property
    def error_code(self) -> str | None:
        return self.error["code"] if self.error else None


@dataclass(frozen=True)
class PeriodTransitionResult:
    """Return type of ``lock_period`` and ``reopen_period``."""

    success: bool
    period: PeriodInfo | None = None
    error: dict[str, Any] | None = None

    @property
    def error_code(self) -> str | None:
        return self.error["code"] if self.error else None
