"""
Period close orchestration: readiness checks, close, lock and reopen.

The clock stands at 2025-02-03, so January can be closed on 2025-02-01.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_kernel.models.bank import BankTransaction
from ledger_kernel.models.journal import JournalLine, JournalStatus
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_services._close_types import (
    CHECK_ALL_JOURNALS_POSTED,
    CHECK_ALL_REQUIRED_ADJUSTMENTS,
    CHECK_APPROVAL_REQUIRED,
    CHECK_NO_UNRECONCILED_TRANSACTIONS,
    CHECK_SOD_COMPLIANCE,
    CHECK_TRIAL_BALANCE_BALANCED,
    PeriodCloseRequest,
    PeriodReopenRequest,
)
from ledger_services.period_close_orchestrator import PeriodCloseOrchestrator
from tests.conftest import APPROVER_ID, CLOSER_ID, TEST_ACTOR_ID

CLOSE_DATE = date(2025, 2, 1)
CAPITAL = [("1010", 5000, 0), ("3000", 0, 5000)]


@pytest.fixture
def january(periods):
    return periods["2025-01"]


def _close_request(period, role="accountant", closed_by=CLOSER_ID, **overrides):
    fields = dict(
        fiscal_period_id=period.id,
        close_date=CLOSE_DATE,
        closed_by=closed_by,
        user_role=role,
    )
    fields.update(overrides)
    return PeriodCloseRequest(**fields)


class TestReadiness:
    def test_clean_period_passes_every_check(self, close_orchestrator, january, post_entry):
        post_entry(date(2025, 1, 10), CAPITAL)

        validation = close_orchestrator.check_close_readiness(january.id, CLOSER_ID)

        assert validation.can_close
        assert validation.errors == ()
        assert validation.checks == {
            CHECK_ALL_JOURNALS_POSTED: True,
            CHECK_TRIAL_BALANCE_BALANCED: True,
            CHECK_NO_UNRECONCILED_TRANSACTIONS: True,
            CHECK_ALL_REQUIRED_ADJUSTMENTS: True,
            CHECK_SOD_COMPLIANCE: True,
            CHECK_APPROVAL_REQUIRED: False,
        }

    def test_draft_journal_blocks(self, close_orchestrator, january, post_entry):
        draft = post_entry(date(2025, 1, 12), CAPITAL, status=JournalStatus.DRAFT)

        validation = close_orchestrator.check_close_readiness(january.id, CLOSER_ID)

        assert not validation.can_close
        assert not validation.checks[CHECK_ALL_JOURNALS_POSTED]
        assert draft.journal_number in validation.errors[0]

    def test_sole_preparer_cannot_close(self, close_orchestrator, january, post_entry):
        post_entry(date(2025, 1, 10), CAPITAL, actor_id=CLOSER_ID)

        validation = close_orchestrator.check_close_readiness(january.id, CLOSER_ID)

        assert not validation.checks[CHECK_SOD_COMPLIANCE]
        assert not validation.can_close

    def test_unreconciled_bank_lines_warn_only(
        self, session, scope, close_orchestrator, january, accounts, post_entry
    ):
        post_entry(date(2025, 1, 10), CAPITAL)
        session.add(
            BankTransaction(
                bank_account_id=accounts["1010"],
                transaction_date=date(2025, 1, 28),
                amount=Decimal("-12.50"),
                description="Card fee",
                is_reconciled=False,
                tenant_id=scope.tenant_id,
                company_id=scope.company_id,
                created_by_id=TEST_ACTOR_ID,
            )
        )
        session.flush()

        validation = close_orchestrator.check_close_readiness(january.id, CLOSER_ID)

        assert validation.can_close
        assert validation.warnings == ("1 unreconciled bank transaction(s)",)
        assert validation.checks[CHECK_APPROVAL_REQUIRED]

    def test_large_volume_flags_approval_without_blocking(self, close_orchestrator, january, post_entry):
        post_entry(date(2025, 1, 10), [("1010", 2_000_000, 0), ("3000", 0, 2_000_000)])

        validation = close_orchestrator.check_close_readiness(january.id, CLOSER_ID)

        assert validation.can_close
        assert validation.checks[CHECK_APPROVAL_REQUIRED]

    def test_missing_required_adjustment(
        self, session, scope, config, deterministic_clock, rbac, january, post_entry
    ):
        strict = replace(
            config,
            governance=replace(config.governance, required_adjustments=("DEPRECIATION",)),
        )
        orchestrator = PeriodCloseOrchestrator(session, scope, strict, deterministic_clock, rbac)
        post_entry(date(2025, 1, 10), CAPITAL)

        before = orchestrator.check_close_readiness(january.id, CLOSER_ID)
        post_entry(date(2025, 1, 31), [("5100", 100, 0), ("1510", 0, 100)], reference="DEPRECIATION-2025-01")
        after = orchestrator.check_close_readiness(january.id, CLOSER_ID)

        assert not before.checks[CHECK_ALL_REQUIRED_ADJUSTMENTS]
        assert "DEPRECIATION" in before.errors[0]
        assert after.can_close


class TestClose:
    def test_close_opens_next_period(self, close_orchestrator, january, post_entry, captured_logs):
        post_entry(date(2025, 1, 10), CAPITAL)

        result = close_orchestrator.close_period(_close_request(january, close_reason="month end"))

        assert result.success
        assert result.period.status == "closed"
        assert result.period.close_reason == "month end"
        assert result.next_period.code == "2025-02"
        assert not result.forced
        assert any(r["message"] == "period_close_completed" for r in captured_logs())

    def test_validation_failure_leaves_period_open(
        self, close_orchestrator, period_service, january, post_entry
    ):
        post_entry(date(2025, 1, 12), CAPITAL, status=JournalStatus.DRAFT)

        result = close_orchestrator.close_period(_close_request(january))

        assert not result.success
        assert result.error_code == "PERIOD_CLOSE_VALIDATION_FAILED"
        assert result.error["details"]["checks"][CHECK_ALL_JOURNALS_POSTED] is False
        assert period_service.get_period(january.id).status == "open"

    def test_force_close_needs_permission(self, close_orchestrator, january, post_entry):
        post_entry(date(2025, 1, 12), CAPITAL, status=JournalStatus.DRAFT)

        denied = close_orchestrator.close_period(_close_request(january, force_close=True))
        forced = close_orchestrator.close_period(
            _close_request(january, role="manager", force_close=True)
        )

        assert denied.error_code == "PERIOD_CLOSE_VALIDATION_FAILED"
        assert forced.success
        assert forced.forced

    def test_future_close_date_rejected(self, close_orchestrator, january):
        result = close_orchestrator.close_period(
            _close_request(january, close_date=date(2025, 3, 1))
        )

        assert result.error_code == "INVALID_INPUT"

    def test_clerk_cannot_close(self, close_orchestrator, january):
        result = close_orchestrator.close_period(_close_request(january, role="clerk"))

        assert result.error_code == "PERMISSION_DENIED"

    def test_closing_twice(self, close_orchestrator, january):
        close_orchestrator.close_period(_close_request(january))
        again = close_orchestrator.close_period(_close_request(january))

        assert again.error_code == "PERIOD_ALREADY_CLOSED"

    def test_last_period_gets_a_successor(self, close_orchestrator, periods):
        result = close_orchestrator.close_period(
            _close_request(periods["2025-02"], close_date=date(2025, 2, 3))
        )

        assert result.next_period.code == "2025-03"
        assert result.next_period.start_date == date(2025, 3, 1)
        assert result.next_period.end_date == date(2025, 3, 31)
        assert result.next_period.status == "open"

    def test_accruals_reversed_into_next_period(
        self, session, scope, close_orchestrator, january, post_entry
    ):
        post_entry(date(2025, 1, 10), CAPITAL)
        accrual = post_entry(
            date(2025, 1, 31), [("5000", 800, 0), ("2000", 0, 800)], reference="ACCRUAL-UTILITIES"
        )

        result = close_orchestrator.close_period(_close_request(january))

        assert result.success
        assert len(result.reversing_journal_numbers) == 1
        journals = JournalSelector(session, scope)
        assert journals.reversal_exists(accrual.journal_id)
        assert journals.posted_volume(date(2025, 2, 1), date(2025, 2, 1)) == Decimal("800")

    def test_out_of_balance_ledger_cannot_be_forced(
        self, session, close_orchestrator, period_service, january, post_entry
    ):
        journal = post_entry(date(2025, 1, 10), CAPITAL)
        line = session.execute(
            select(JournalLine).where(
                JournalLine.journal_id == journal.journal_id, JournalLine.debit > 0
            )
        ).scalar_one()
        line.debit = Decimal("5000.50")
        session.flush()

        result = close_orchestrator.close_period(
            _close_request(january, role="manager", force_close=True)
        )

        assert result.error_code == "TRIAL_BALANCE_UNBALANCED"
        assert Decimal(result.error["details"]["difference"]) == Decimal("0.5")
        assert period_service.get_period(january.id).status == "open"

    def test_reversals_can_be_skipped(self, session, scope, close_orchestrator, january, post_entry):
        accrual = post_entry(
            date(2025, 1, 31), [("5000", 800, 0), ("2000", 0, 800)], reference="ACCRUAL-RENT"
        )

        result = close_orchestrator.close_period(
            _close_request(january, generate_reversing_entries=False)
        )

        assert result.reversing_journal_numbers == ()
        assert not JournalSelector(session, scope).reversal_exists(accrual.journal_id)


class TestLock:
    def test_lock_closed_period(self, close_orchestrator, january):
        close_orchestrator.close_period(_close_request(january))

        result = close_orchestrator.lock_period(january.id, APPROVER_ID, "manager")

        assert result.success
        assert result.period.status == "locked"

    def test_lock_needs_permission(self, close_orchestrator, january):
        close_orchestrator.close_period(_close_request(january))

        result = close_orchestrator.lock_period(january.id, CLOSER_ID, "accountant")

        assert result.error_code == "PERMISSION_DENIED"

    def test_open_period_cannot_be_locked(self, close_orchestrator, january):
        result = close_orchestrator.lock_period(january.id, APPROVER_ID, "manager")

        assert result.error_code == "INVALID_PERIOD_TRANSITION"


class TestReopen:
    @pytest.fixture
    def closed(self, close_orchestrator, january):
        assert close_orchestrator.close_period(_close_request(january)).success
        return january

    def _reopen(self, period, **overrides):
        fields = dict(
            period_id=period.id,
            reopened_by=CLOSER_ID,
            user_role="manager",
            open_reason="Late supplier invoice",
        )
        fields.update(overrides)
        return PeriodReopenRequest(**fields)

    def test_needs_second_user(self, close_orchestrator, closed):
        result = close_orchestrator.reopen_period(self._reopen(closed))

        assert result.error_code == "APPROVAL_REQUIRED"

    def test_approver_must_differ(self, close_orchestrator, closed):
        result = close_orchestrator.reopen_period(
            self._reopen(closed, approved_by=CLOSER_ID, approver_role="manager")
        )

        assert result.error_code == "SOD_VIOLATION"

    def test_approver_needs_permission(self, close_orchestrator, closed):
        result = close_orchestrator.reopen_period(
            self._reopen(closed, approved_by=APPROVER_ID, approver_role="accountant")
        )

        assert result.error_code == "PERMISSION_DENIED"

    def test_approved_reopen(self, close_orchestrator, closed):
        result = close_orchestrator.reopen_period(
            self._reopen(closed, approved_by=APPROVER_ID, approver_role="manager")
        )

        assert result.success
        assert result.period.status == "open"
        assert result.period.reopen_reason == "Late supplier invoice"

    def test_reason_required(self, close_orchestrator, closed):
        result = close_orchestrator.reopen_period(
            self._reopen(closed, open_reason="  ", approved_by=APPROVER_ID, approver_role="manager")
        )

        assert result.error_code == "INVALID_INPUT"

    def test_locked_period_stays_locked(self, close_orchestrator, closed):
        close_orchestrator.lock_period(closed.id, APPROVER_ID, "manager")

        result = close_orchestrator.reopen_period(
            self._reopen(closed, approved_by=APPROVER_ID, approver_role="manager")
        )

        assert result.error_code == "PERIOD_LOCKED"

    def test_unknown_period(self, close_orchestrator, periods):
        result = close_orchestrator.reopen_period(
            PeriodReopenRequest(
                period_id=uuid4(),
                reopened_by=CLOSER_ID,
                user_role="manager",
                open_reason="typo",
                approved_by=APPROVER_ID,
                approver_role="manager",
            )
        )

        assert result.error_code == "PERIOD_NOT_FOUND"
