"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates financial statement generation -- trial balance, income
statement, balance sheet and cash flow statement -- by bridging the kernel
selectors (``LedgerSelector``, ``AccountSelector``) to the pure
transformation functions in ``statements.py``.  This is a **read-only**
service: nothing is posted.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``scope`` +
``config`` + ``clock``.

Invariants enforced
-------------------
* Read-only -- no mutations to the journal.
* Balances are aggregated from posted lines on every call; nothing is
  cached.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.
* One trial balance feeds every statement built in the same call, so the
  income statement's net income is exactly the balance sheet's retained
  earnings line and the indirect cash flow's starting point.

Failure modes
-------------
* End date before start date  -> ``ReportInputError`` before any query.
* Integrity problems (unbalanced trial balance, A != L + E, cash that
  does not reconcile) are reported in the result and logged at WARNING;
  they are never raised.

Audit relevance
---------------
Structured log events for every report generation carry report type,
window and balance flags.
"""

from __future__ import annotations

import time
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import AccountInfo, LedgerScope
from ledger_kernel.exceptions import ReportInputError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowMethod,
    CashFlowStatementReport,
    IncomeStatementReport,
    ReportMetadata,
    ReportType,
    TrialBalanceInput,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    build_balance_sheet,
    build_direct_cash_flow,
    build_income_statement,
    build_indirect_cash_flow,
    build_trial_balance,
    render_to_dict,
)

logger = get_logger("modules.reporting.service")


class ReportingService:
    """
    Financial statement generation service.

    Contract
    --------
    * Every public method returns a typed report DTO.
    * All methods are **read-only**.

    Non-goals
    ---------
    * Does NOT post closing entries; current-period earnings are shown
      as a retained-earnings line.
    * Does NOT enforce period status (read-only service).
    """

    def __init__(
        self,
        session: Session,
        scope: LedgerScope,
        config: ReportingConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._scope = scope
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session, scope)
        self._accounts = AccountSelector(session, scope)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _build_metadata(
        self,
        report_type: ReportType,
        as_of_date: date,
        currency: str | None = None,
        period_start: date | None = None,
    ) -> ReportMetadata:
        """Build report metadata with injected clock timestamp."""
        return ReportMetadata(
            report_type=report_type,
            entity_name=self._config.entity_name,
            currency=(currency or self._config.default_currency).upper(),
            as_of_date=as_of_date,
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
        )

    @staticmethod
    def _validate_range(start_date: date | None, end_date: date) -> None:
        if start_date is not None and end_date < start_date:
            raise ReportInputError(
                f"End date {end_date} is before start date {start_date}",
                {"start_date": str(start_date), "end_date": str(end_date)},
            )

    def _load(
        self,
        tb_input: TrialBalanceInput,
    ) -> tuple[dict[UUID, AccountInfo], TrialBalanceReport]:
        self._validate_range(tb_input.period_start, tb_input.as_of_date)
        accounts = self._accounts.account_map()
        activity = self._ledger.account_activity(
            tb_input.as_of_date,
            tb_input.period_start,
            tb_input.currency.upper() if tb_input.currency else None,
        )
        metadata = self._build_metadata(
            ReportType.TRIAL_BALANCE,
            tb_input.as_of_date,
            tb_input.currency,
            tb_input.period_start,
        )
        return accounts, build_trial_balance(accounts, activity, tb_input, self._config, metadata)

    # =========================================================================
    # Public API
    # =========================================================================

    def trial_balance(self, tb_input: TrialBalanceInput) -> TrialBalanceReport:
        t0 = time.monotonic()
        _, report = self._load(tb_input)

        logger.info(
            "trial_balance_generated",
            extra={
                "as_of_date": str(tb_input.as_of_date),
                "period_start": str(tb_input.period_start) if tb_input.period_start else None,
                "account_count": len(report.accounts),
                "total_debits": str(report.total_debits),
                "total_credits": str(report.total_credits),
                "is_balanced": report.is_balanced,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        if not report.is_balanced:
            logger.warning(
                "trial_balance_unbalanced",
                extra={
                    "as_of_date": str(tb_input.as_of_date),
                    "difference": str(report.difference),
                },
            )
        return report

    def income_statement(
        self,
        period_start: date,
        period_end: date,
        currency: str | None = None,
        comparative_start: date | None = None,
        comparative_end: date | None = None,
    ) -> IncomeStatementReport:
        """
        Multi-step income statement for ``period_start``..``period_end``.

        With ``comparative_start`` and ``comparative_end`` the prior window
        is attached as ``comparative`` with per-line variances.
        """
        if (comparative_start is None) != (comparative_end is None):
            raise ReportInputError(
                "Comparative window needs both a start and an end date",
                {
                    "comparative_start": str(comparative_start) if comparative_start else None,
                    "comparative_end": str(comparative_end) if comparative_end else None,
                },
            )
        accounts, tb = self._load(TrialBalanceInput(period_end, period_start, currency))

        comparative_tb = None
        comparative_metadata = None
        if comparative_start is not None:
            _, comparative_tb = self._load(
                TrialBalanceInput(comparative_end, comparative_start, currency)
            )
            comparative_metadata = self._build_metadata(
                ReportType.INCOME_STATEMENT, comparative_end, currency, comparative_start
            )

        report = build_income_statement(
            tb,
            accounts,
            self._config,
            self._build_metadata(ReportType.INCOME_STATEMENT, period_end, currency, period_start),
            comparative_tb,
            comparative_metadata,
        )
        logger.info(
            "income_statement_generated",
            extra={
                "period_start": str(period_start),
                "period_end": str(period_end),
                "gross_profit": str(report.gross_profit),
                "operating_income": str(report.operating_income),
                "net_income": str(report.net_income),
                "comparative": comparative_tb is not None,
            },
        )
        return report

    def balance_sheet(
        self,
        as_of_date: date,
        currency: str | None = None,
    ) -> BalanceSheetReport:
        """Closing balances at ``as_of_date``; earnings since inception sit in equity."""
        accounts, tb = self._load(TrialBalanceInput(as_of_date, None, currency))
        income = build_income_statement(
            tb,
            accounts,
            self._config,
            self._build_metadata(ReportType.INCOME_STATEMENT, as_of_date, currency),
        )
        report = build_balance_sheet(
            tb,
            income,
            accounts,
            self._config,
            self._build_metadata(ReportType.BALANCE_SHEET, as_of_date, currency),
        )
        check = report.balance_check
        logger.info(
            "balance_sheet_generated",
            extra={
                "as_of_date": str(as_of_date),
                "total_assets": str(check.total_assets),
                "total_liabilities_and_equity": str(check.total_liabilities_and_equity),
                "is_balanced": check.assets_equals_liabilities_plus_equity,
            },
        )
        if not check.assets_equals_liabilities_plus_equity:
            logger.warning(
                "balance_sheet_unbalanced",
                extra={"as_of_date": str(as_of_date), "difference": str(check.difference)},
            )
        return report

    def cash_flow_statement(
        self,
        period_start: date,
        period_end: date,
        method: CashFlowMethod = CashFlowMethod.INDIRECT,
        currency: str | None = None,
    ) -> CashFlowStatementReport:
        accounts, tb = self._load(TrialBalanceInput(period_end, period_start, currency))
        metadata = self._build_metadata(ReportType.CASH_FLOW, period_end, currency, period_start)

        if method == CashFlowMethod.INDIRECT:
            income = build_income_statement(
                tb,
                accounts,
                self._config,
                self._build_metadata(ReportType.INCOME_STATEMENT, period_end, currency, period_start),
            )
            report = build_indirect_cash_flow(tb, income, accounts, self._config, metadata)
        else:
            cash_ids = [
                account_id
                for account_id, account in accounts.items()
                if self._config.classification.is_cash(account)
            ]
            lines = self._ledger.lines_of_journals_touching(cash_ids, period_start, period_end)
            report = build_direct_cash_flow(tb, lines, accounts, self._config, metadata)

        logger.info(
            "cash_flow_generated",
            extra={
                "method": method.value,
                "period_start": str(period_start),
                "period_end": str(period_end),
                "net_change_in_cash": str(report.net_change_in_cash),
                "reconciles": report.cash_change_reconciles,
            },
        )
        if not report.cash_change_reconciles:
            logger.warning(
                "cash_flow_not_reconciled",
                extra={
                    "beginning_cash": str(report.beginning_cash),
                    "net_change_in_cash": str(report.net_change_in_cash),
                    "ending_cash": str(report.ending_cash),
                },
            )
        return report

    def to_dict(self, report: object) -> dict:
        """JSON-safe rendering of any report."""
        return render_to_dict(report)
