"""
Pytest fixtures for the ledger test suite.

Provides:
- A fresh in-memory SQLite database per test (``session``)
- A deterministic clock and a tenant/company scope
- A seeded MYR chart of accounts and two open monthly periods
- The bundled default configuration and an RbacAuthority over it
- Service fixtures for posting, journals, reporting and period close
- ``captured_logs`` for asserting on structured log events

Dates:
    The clock stands at 2025-02-03 09:00 UTC; postings go to January 2025
    so January can be closed without a future close date.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_config import get_active_config
from ledger_config.schema import LedgerConfiguration
from ledger_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import JournalDraft, JournalLineSpec, LedgerScope
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import JournalStatus
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.period_service import PeriodService
from ledger_modules.gl.service import JournalService
from ledger_modules.posting.service import DocumentPostingService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.service import ReportingService
from ledger_services.period_close_orchestrator import PeriodCloseOrchestrator
from ledger_services.rbac_authority import RbacAuthority

TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")
APPROVER_ID = UUID("00000000-0000-0000-0000-000000000002")
CLOSER_ID = UUID("00000000-0000-0000-0000-000000000003")

CLOCK_START = datetime(2025, 2, 3, 9, 0, 0, tzinfo=timezone.utc)

# (code, name, type, parent code, level, category, tags)
CHART_OF_ACCOUNTS = (
    ("1", "Assets", AccountType.ASSET, None, 0, None, None),
    ("1010", "Bank - Operating", AccountType.ASSET, "1", 1, "cash", None),
    ("1100", "Accounts Receivable", AccountType.ASSET, "1", 1, "current", None),
    ("1200", "Input Tax Receivable", AccountType.ASSET, "1", 1, "current", None),
    ("1300", "Supplier Prepayments", AccountType.ASSET, "1", 1, "current", None),
    ("1500", "Equipment", AccountType.ASSET, "1", 1, "non_current", None),
    ("1510", "Accumulated Depreciation", AccountType.ASSET, "1", 1, "non_current", ["depreciation"]),
    ("2", "Liabilities", AccountType.LIABILITY, None, 0, None, None),
    ("2000", "Accounts Payable", AccountType.LIABILITY, "2", 1, "current", None),
    ("2100", "Output Tax Payable", AccountType.LIABILITY, "2", 1, "current", None),
    ("2200", "Customer Advances", AccountType.LIABILITY, "2", 1, "current", None),
    ("2500", "Term Loan", AccountType.LIABILITY, "2", 1, "non_current", None),
    ("3", "Equity", AccountType.EQUITY, None, 0, None, None),
    ("3000", "Share Capital", AccountType.EQUITY, "3", 1, None, None),
    ("3100", "Retained Earnings", AccountType.EQUITY, "3", 1, "retained_earnings", None),
    ("4", "Revenue", AccountType.REVENUE, None, 0, None, None),
    ("4000", "Sales Revenue", AccountType.REVENUE, "4", 1, "operating", None),
    ("4900", "Realized FX Gain", AccountType.REVENUE, "4", 1, "non_operating", None),
    ("5", "Expenses", AccountType.EXPENSE, None, 0, None, None),
    ("5000", "Operating Expenses", AccountType.EXPENSE, "5", 1, "operating", None),
    ("5100", "Depreciation Expense", AccountType.EXPENSE, "5", 1, "operating", ["depreciation"]),
    ("5200", "Bank Charges", AccountType.EXPENSE, "5", 1, "operating", None),
    ("5900", "Realized FX Loss", AccountType.EXPENSE, "5", 1, "non_operating", None),
)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage:
        def test_something(captured_logs, posting_service):
            posting_service.post_invoice(...)
            logs = captured_logs()
            assert any(r["message"] == "document_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    handler.setLevel(logging.DEBUG)

    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """A session on a brand-new in-memory database."""
    init_engine_from_url("sqlite://")
    create_tables()
    db_session = get_session()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()
        reset_engine()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(CLOCK_START)


@pytest.fixture
def scope() -> LedgerScope:
    return LedgerScope(tenant_id=uuid4(), company_id=uuid4(), company_code="ACME")


@pytest.fixture
def config() -> LedgerConfiguration:
    return get_active_config()


@pytest.fixture
def rbac(config) -> RbacAuthority:
    return RbacAuthority(config.governance)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@pytest.fixture
def accounts(session, scope) -> dict[str, UUID]:
    """Seed the chart of accounts; returns account ids keyed by code."""
    ids: dict[str, UUID] = {}
    for code, name, account_type, parent, level, category, tags in CHART_OF_ACCOUNTS:
        account = Account(
            id=uuid4(),
            code=code,
            name=name,
            account_type=account_type,
            parent_id=ids[parent] if parent else None,
            level=level,
            currency="MYR",
            category=category,
            tags=tags,
            tenant_id=scope.tenant_id,
            company_id=scope.company_id,
            created_by_id=TEST_ACTOR_ID,
        )
        session.add(account)
        ids[code] = account.id
    session.flush()
    return ids


@pytest.fixture
def period_service(session, scope, deterministic_clock) -> PeriodService:
    return PeriodService(session, scope, deterministic_clock)


@pytest.fixture
def periods(period_service):
    """January and February 2025, both open."""
    january = period_service.create_period(
        "2025-01", "January 2025", date(2025, 1, 1), date(2025, 1, 31), TEST_ACTOR_ID
    )
    february = period_service.create_period(
        "2025-02", "February 2025", date(2025, 2, 1), date(2025, 2, 28), TEST_ACTOR_ID
    )
    return {"2025-01": january, "2025-02": february}


@pytest.fixture
def post_entry(session, scope, deterministic_clock, accounts):
    """
    Factory writing a posted journal straight through the JournalWriter.

    ``lines`` is a sequence of (account code, debit, credit).
    """
    writer = JournalWriter(session, scope, deterministic_clock)

    def _post(
        journal_date: date,
        lines,
        reference: str | None = None,
        actor_id: UUID = TEST_ACTOR_ID,
        status: JournalStatus = JournalStatus.POSTED,
    ):
        draft = JournalDraft(
            journal_date=journal_date,
            currency="MYR",
            lines=tuple(
                JournalLineSpec(
                    account_id=accounts[code],
                    debit=Decimal(str(debit)),
                    credit=Decimal(str(credit)),
                )
                for code, debit, credit in lines
            ),
            reference=reference,
            source_type="MANUAL",
        )
        return writer.write(draft, actor_id, status).journal

    return _post


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def posting_service(session, scope, config, deterministic_clock, rbac) -> DocumentPostingService:
    return DocumentPostingService(session, scope, config, deterministic_clock, rbac)


@pytest.fixture
def journal_service(session, scope, config, deterministic_clock, rbac) -> JournalService:
    return JournalService(session, scope, config, deterministic_clock, rbac)


@pytest.fixture
def reporting_config(config) -> ReportingConfig:
    return ReportingConfig.from_policy(config.reporting, config.base_currency)


@pytest.fixture
def reporting_service(session, scope, reporting_config, deterministic_clock) -> ReportingService:
    return ReportingService(session, scope, reporting_config, deterministic_clock)


@pytest.fixture
def close_orchestrator(session, scope, config, deterministic_clock, rbac) -> PeriodCloseOrchestrator:
    return PeriodCloseOrchestrator(session, scope, config, deterministic_clock, rbac)
