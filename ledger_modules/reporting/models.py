"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects representing financial statement outputs:
trial balance, balance sheet, income statement and cash flow statement.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``ReportingService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Statement sections are tagged by enum; there are no free-form maps.

Audit relevance
---------------
* ``ReportMetadata`` carries generation timestamp and parameters for
  report reproducibility.
* Integrity failures are part of the report (``is_balanced``,
  ``difference``, ``cash_change_reconciles``) and never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.models.account import AccountType, NormalBalance


# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    TRIAL_BALANCE = "trial_balance"
    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    CASH_FLOW = "cash_flow"


class BalanceSheetSectionKind(str, Enum):
    ASSETS = "assets"
    LIABILITIES = "liabilities"
    EQUITY = "equity"


class BalanceSheetGroupKind(str, Enum):
    CURRENT = "current"
    NON_CURRENT = "non_current"
    CONTRIBUTED = "contributed"
    RETAINED_EARNINGS = "retained_earnings"


class IncomeStatementSectionKind(str, Enum):
    REVENUE = "revenue"
    COST_OF_SALES = "cost_of_sales"
    OPERATING_EXPENSES = "operating_expenses"
    OTHER_INCOME = "other_income"
    OTHER_EXPENSES = "other_expenses"


class CashFlowMethod(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"


class CashFlowActivity(str, Enum):
    OPERATING = "operating"
    INVESTING = "investing"
    FINANCING = "financing"


# =========================================================================
# Report Metadata (common to all reports)
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    entity_name: str
    currency: str
    as_of_date: date
    generated_at: str  # ISO format timestamp from injected clock
    period_start: date | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceInput:
    """
    Trial balance request.

    Opening balances cover posted lines strictly before ``period_start``;
    period columns cover ``period_start`` through ``as_of_date``.  Without
    a ``period_start`` everything up to ``as_of_date`` is period activity.
    ``code_range`` is inclusive on both ends.
    """

    as_of_date: date
    period_start: date | None = None
    currency: str | None = None
    include_zero_balances: bool | None = None
    account_types: tuple[AccountType, ...] = ()
    account_ids: tuple[UUID, ...] = ()
    code_range: tuple[str, str] | None = None


@dataclass(frozen=True)
class TrialBalanceAccount:
    """
    One trial balance row.

    Balances are natural: positive on the account's normal side.
    ``closing_debit`` / ``closing_credit`` are the two-column presentation
    of the same closing balance.
    """

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    normal_balance: NormalBalance
    currency: str
    level: int
    is_header: bool
    parent_id: UUID | None
    opening_balance: Decimal
    period_debits: Decimal
    period_credits: Decimal
    closing_balance: Decimal
    closing_debit: Decimal
    closing_credit: Decimal

    @property
    def period_movement(self) -> Decimal:
        """Natural-signed movement of the period."""
        if self.normal_balance == NormalBalance.DEBIT:
            return self.period_debits - self.period_credits
        return self.period_credits - self.period_debits


@dataclass(frozen=True)
class AccountTypeTotal:
    account_type: AccountType
    total: Decimal


@dataclass(frozen=True)
class TrialBalanceActivity:
    accounts_with_activity: int
    oldest_transaction: date | None
    newest_transaction: date | None


@dataclass(frozen=True)
class TrialBalanceReport:
    """Complete trial balance; totals are over non-header rows only."""

    metadata: ReportMetadata
    accounts: tuple[TrialBalanceAccount, ...]
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal  # total_debits - total_credits
    is_balanced: bool  # |difference| within one minor unit
    totals_by_type: tuple[AccountTypeTotal, ...]
    net_income: Decimal
    activity: TrialBalanceActivity

    def account(self, code: str) -> TrialBalanceAccount | None:
        for row in self.accounts:
            if row.account_code == code:
                return row
        return None

    def total_for(self, account_type: AccountType) -> Decimal:
        for total in self.totals_by_type:
            if total.account_type == account_type:
                return total.total
        return Decimal("0")

    @property
    def leaf_accounts(self) -> tuple[TrialBalanceAccount, ...]:
        return tuple(row for row in self.accounts if not row.is_header)


# =========================================================================
# Statement lines and sections
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    account_id: UUID | None
    account_code: str | None
    description: str
    amount: Decimal


@dataclass(frozen=True)
class BalanceSheetGroup:
    kind: BalanceSheetGroupKind
    label: str
    lines: tuple[StatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheetSection:
    kind: BalanceSheetSectionKind
    groups: tuple[BalanceSheetGroup, ...]
    total: Decimal

    def group(self, kind: BalanceSheetGroupKind) -> BalanceSheetGroup | None:
        for group in self.groups:
            if group.kind == kind:
                return group
        return None


@dataclass(frozen=True)
class BalanceCheck:
    """A = L + E check; ``difference`` is never rounded away."""

    total_assets: Decimal
    total_liabilities_and_equity: Decimal
    difference: Decimal
    assets_equals_liabilities_plus_equity: bool


@dataclass(frozen=True)
class BalanceSheetReport:
    metadata: ReportMetadata
    assets: BalanceSheetSection
    liabilities: BalanceSheetSection
    equity: BalanceSheetSection
    retained_earnings: Decimal  # net income of the matching income statement
    balance_check: BalanceCheck
    trial_balance_balanced: bool

    @property
    def sections(self) -> tuple[BalanceSheetSection, ...]:
        return (self.assets, self.liabilities, self.equity)


@dataclass(frozen=True)
class IncomeStatementSection:
    kind: IncomeStatementSectionKind
    lines: tuple[StatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class IncomeStatementVariance:
    """Current against comparative figure for one line or subtotal."""

    description: str
    account_code: str | None
    current: Decimal
    comparative: Decimal
    change: Decimal
    change_pct: Decimal | None  # None when the comparative figure is zero


@dataclass(frozen=True)
class IncomeStatementReport:
    """
    Multi-step income statement.

        Revenue
        - Cost of Sales
        = Gross Profit
        - Operating Expenses
        = Operating Income
        + Other Income
        - Other Expenses
        = Net Income

    ``total_revenue`` includes other income and ``total_expenses`` every
    expense section, so ``net_income == total_revenue - total_expenses``.
    Margins are ratios to operating revenue, None when it is zero.
    """

    metadata: ReportMetadata
    revenue: IncomeStatementSection
    cost_of_sales: IncomeStatementSection
    operating_expenses: IncomeStatementSection
    other_income: IncomeStatementSection
    other_expenses: IncomeStatementSection
    total_revenue: Decimal
    total_expenses: Decimal
    gross_profit: Decimal
    operating_income: Decimal
    net_income: Decimal
    gross_margin: Decimal | None = None
    operating_margin: Decimal | None = None
    net_margin: Decimal | None = None

    # Comparative window (optional)
    comparative: IncomeStatementReport | None = None
    variances: tuple[IncomeStatementVariance, ...] = ()

    @property
    def sections(self) -> tuple[IncomeStatementSection, ...]:
        return (
            self.revenue,
            self.cost_of_sales,
            self.operating_expenses,
            self.other_income,
            self.other_expenses,
        )

    def section(self, kind: IncomeStatementSectionKind) -> IncomeStatementSection | None:
        for section in self.sections:
            if section.kind == kind:
                return section
        return None

    def variance(self, description: str) -> IncomeStatementVariance | None:
        for variance in self.variances:
            if variance.description == description or variance.account_code == description:
                return variance
        return None


# =========================================================================
# Cash Flow Statement
# =========================================================================


@dataclass(frozen=True)
class CashFlowSection:
    activity: CashFlowActivity
    lines: tuple[StatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class IndirectReconciliation:
    """Net income to operating cash, indirect method."""

    net_income: Decimal
    non_cash_adjustments: tuple[StatementLine, ...]
    working_capital_changes: tuple[StatementLine, ...]
    total_adjustments: Decimal
    net_cash_from_operations: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    """
    Statement of cash flows.

    ``beginning_cash + net_change_in_cash == ending_cash`` is checked and
    exposed as ``cash_change_reconciles``.
    """

    metadata: ReportMetadata
    method: CashFlowMethod
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection
    net_change_in_cash: Decimal
    beginning_cash: Decimal
    ending_cash: Decimal
    cash_change_reconciles: bool
    reconciliation: IndirectReconciliation | None = None

    @property
    def sections(self) -> tuple[CashFlowSection, ...]:
        return (self.operating, self.investing, self.financing)
