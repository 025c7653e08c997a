"""
Pure financial statement transformation functions.

These functions transform posted-line aggregates and account metadata
into structured financial statements. ZERO I/O. ZERO side effects.

All monetary values are Decimal. All inputs/outputs are frozen dataclasses.

Every statement is derived from one ``TrialBalanceReport``:

- the income statement takes the period movement of revenue and expense
  rows and splits it into multi-step sections;
- the balance sheet takes closing balances, with the income statement's
  net income as its retained-earnings line;
- the indirect cash flow starts from that same net income.
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain import coa
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.domain.values import Currency
from ledger_kernel.models.account import AccountCategory, AccountType, NormalBalance
from ledger_kernel.selectors.ledger_selector import AccountActivity, PostedLine
from ledger_modules.reporting.config import AccountClassification, ReportingConfig
from ledger_modules.reporting.models import (
    AccountTypeTotal,
    BalanceCheck,
    BalanceSheetGroup,
    BalanceSheetGroupKind,
    BalanceSheetReport,
    BalanceSheetSection,
    BalanceSheetSectionKind,
    CashFlowActivity,
    CashFlowMethod,
    CashFlowSection,
    CashFlowStatementReport,
    IncomeStatementReport,
    IncomeStatementSection,
    IncomeStatementSectionKind,
    IncomeStatementVariance,
    IndirectReconciliation,
    ReportMetadata,
    StatementLine,
    TrialBalanceAccount,
    TrialBalanceActivity,
    TrialBalanceInput,
    TrialBalanceReport,
)

_ZERO = Decimal("0")


# =========================================================================
# Helpers
# =========================================================================


def compute_natural_balance(
    debit_total: Decimal,
    credit_total: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    """
    Compute balance adjusted for normal balance side.

    DEBIT-normal (ASSET, EXPENSE): balance = debit_total - credit_total
    CREDIT-normal (LIABILITY, EQUITY, REVENUE): balance = credit_total - debit_total

    Result is positive when account has its expected normal direction.
    """
    if normal_balance == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


def _sum(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, _ZERO)


def _rolled_up_totals(
    accounts: Mapping[UUID, AccountInfo],
    activity: Sequence[AccountActivity],
) -> dict[UUID, tuple[Decimal, Decimal, Decimal, Decimal]]:
    """
    (opening debit, opening credit, period debit, period credit) per
    account, with every header carrying the sum of its descendants.
    """
    own = {
        row.account_id: (row.opening_debit, row.opening_credit, row.period_debit, row.period_credit)
        for row in activity
    }
    children: dict[UUID, list[UUID]] = defaultdict(list)
    for account in accounts.values():
        if account.parent_id is not None:
            children[account.parent_id].append(account.account_id)

    totals: dict[UUID, tuple[Decimal, Decimal, Decimal, Decimal]] = {}

    def total_of(account_id: UUID, path: frozenset[UUID]):
        if account_id in totals:
            return totals[account_id]
        current = list(own.get(account_id, (_ZERO, _ZERO, _ZERO, _ZERO)))
        for child_id in children.get(account_id, ()):
            if child_id in path:
                continue
            for i, value in enumerate(total_of(child_id, path | {child_id})):
                current[i] += value
        totals[account_id] = tuple(current)
        return totals[account_id]

    for account_id in accounts:
        total_of(account_id, frozenset({account_id}))
    return totals


def _is_selected(account: AccountInfo, tb_input: TrialBalanceInput) -> bool:
    if tb_input.account_types and account.account_type not in tb_input.account_types:
        return False
    if tb_input.account_ids and account.account_id not in tb_input.account_ids:
        return False
    if tb_input.code_range is not None:
        low, high = tb_input.code_range
        if not (low <= account.code <= high):
            return False
    return True


def _line(account: AccountInfo, amount: Decimal, description: str | None = None) -> StatementLine:
    return StatementLine(
        account_id=account.account_id,
        account_code=account.code,
        description=description or account.name,
        amount=amount,
    )


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance_row(
    account: AccountInfo,
    totals: tuple[Decimal, Decimal, Decimal, Decimal],
    is_header: bool,
) -> TrialBalanceAccount:
    opening_debit, opening_credit, period_debit, period_credit = totals
    closing_net = (opening_debit - opening_credit) + (period_debit - period_credit)
    return TrialBalanceAccount(
        account_id=account.account_id,
        account_code=account.code,
        account_name=account.name,
        account_type=account.account_type,
        normal_balance=account.normal_balance,
        currency=account.currency,
        level=account.level,
        is_header=is_header,
        parent_id=account.parent_id,
        opening_balance=compute_natural_balance(
            opening_debit, opening_credit, account.normal_balance
        ),
        period_debits=period_debit,
        period_credits=period_credit,
        closing_balance=closing_net if account.normal_balance == NormalBalance.DEBIT else -closing_net,
        closing_debit=closing_net if closing_net > 0 else _ZERO,
        closing_credit=-closing_net if closing_net < 0 else _ZERO,
    )


def build_trial_balance(
    accounts: Mapping[UUID, AccountInfo],
    activity: Sequence[AccountActivity],
    tb_input: TrialBalanceInput,
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> TrialBalanceReport:
    """
    Build the trial balance.

    Header accounts (level 0 or with children) roll up their descendants
    and are excluded from the totals, which would otherwise count the same
    lines twice.
    """
    include_zero = (
        config.include_zero_balances
        if tb_input.include_zero_balances is None
        else tb_input.include_zero_balances
    )
    totals = _rolled_up_totals(accounts, activity)

    rows: list[TrialBalanceAccount] = []
    for account in sorted(accounts.values(), key=lambda a: a.code):
        if not _is_selected(account, tb_input):
            continue
        account_totals = totals[account.account_id]
        if not include_zero and all(value == 0 for value in account_totals):
            continue
        is_header = coa.is_top_level(account) or coa.has_children(account.account_id, accounts)
        rows.append(build_trial_balance_row(account, account_totals, is_header))

    leaves = [row for row in rows if not row.is_header]
    total_debits = _sum(row.closing_debit for row in leaves)
    total_credits = _sum(row.closing_credit for row in leaves)
    difference = total_debits - total_credits

    totals_by_type = tuple(
        AccountTypeTotal(
            account_type=account_type,
            total=_sum(row.closing_balance for row in leaves if row.account_type == account_type),
        )
        for account_type in AccountType
    )
    by_type = {total.account_type: total.total for total in totals_by_type}

    leaf_ids = {row.account_id for row in leaves}
    touched = [row for row in activity if row.account_id in leaf_ids and row.line_count > 0]
    first_dates = [row.first_date for row in touched if row.first_date is not None]
    last_dates = [row.last_date for row in touched if row.last_date is not None]

    return TrialBalanceReport(
        metadata=metadata,
        accounts=tuple(rows),
        total_debits=total_debits,
        total_credits=total_credits,
        difference=difference,
        is_balanced=abs(difference) <= Currency(metadata.currency).minor_unit,
        totals_by_type=totals_by_type,
        net_income=by_type[AccountType.REVENUE] - by_type[AccountType.EXPENSE],
        activity=TrialBalanceActivity(
            accounts_with_activity=len(touched),
            oldest_transaction=min(first_dates) if first_dates else None,
            newest_transaction=max(last_dates) if last_dates else None,
        ),
    )


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


_SECTION_KINDS = (
    IncomeStatementSectionKind.REVENUE,
    IncomeStatementSectionKind.COST_OF_SALES,
    IncomeStatementSectionKind.OPERATING_EXPENSES,
    IncomeStatementSectionKind.OTHER_INCOME,
    IncomeStatementSectionKind.OTHER_EXPENSES,
)


def classify_for_income_statement(
    trial_balance: TrialBalanceReport,
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
) -> dict[IncomeStatementSectionKind, list[StatementLine]]:
    """Period movement of every revenue and expense leaf, by multi-step section."""
    clf = config.classification
    classified: dict[IncomeStatementSectionKind, list[StatementLine]] = {
        kind: [] for kind in _SECTION_KINDS
    }
    for row in trial_balance.leaf_accounts:
        account = accounts.get(row.account_id)
        if account is None or row.period_movement == 0:
            continue
        kind = clf.income_statement_kind(account)
        if kind is None:
            continue
        classified[kind].append(
            StatementLine(row.account_id, row.account_code, row.account_name, row.period_movement)
        )
    return classified


def _ratio(amount: Decimal, base: Decimal) -> Decimal | None:
    if base == 0:
        return None
    return (amount / base).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def _variance(
    description: str,
    account_code: str | None,
    current: Decimal,
    comparative: Decimal,
) -> IncomeStatementVariance:
    change = current - comparative
    return IncomeStatementVariance(
        description=description,
        account_code=account_code,
        current=current,
        comparative=comparative,
        change=change,
        change_pct=_ratio(change, abs(comparative)),
    )


def _income_statement_variances(
    current: IncomeStatementReport,
    comparative: IncomeStatementReport,
) -> tuple[IncomeStatementVariance, ...]:
    """One variance per account in either window, then one per subtotal."""
    variances: list[IncomeStatementVariance] = []
    for kind in _SECTION_KINDS:
        now = {line.account_code: line for line in current.section(kind).lines}
        before = {line.account_code: line for line in comparative.section(kind).lines}
        for code in sorted(set(now) | set(before)):
            line = now.get(code) or before[code]
            variances.append(
                _variance(
                    line.description,
                    code,
                    now[code].amount if code in now else _ZERO,
                    before[code].amount if code in before else _ZERO,
                )
            )
    for label, attribute in (
        ("Total revenue", "total_revenue"),
        ("Gross profit", "gross_profit"),
        ("Operating income", "operating_income"),
        ("Net income", "net_income"),
    ):
        variances.append(
            _variance(label, None, getattr(current, attribute), getattr(comparative, attribute))
        )
    return tuple(variances)


def build_income_statement(
    trial_balance: TrialBalanceReport,
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
    comparative_trial_balance: TrialBalanceReport | None = None,
    comparative_metadata: ReportMetadata | None = None,
) -> IncomeStatementReport:
    """
    Multi-step income statement over the trial balance window.

        Revenue - Cost of Sales = Gross Profit
        Gross Profit - Operating Expenses = Operating Income
        Operating Income + Other Income - Other Expenses = Net Income

    Net income equals the trial balance's revenue minus expense total.
    With a comparative trial balance the prior window is built the same
    way and attached together with per-line and subtotal variances.
    """
    classified = classify_for_income_statement(trial_balance, accounts, config)
    sections = {
        kind: IncomeStatementSection(kind, tuple(lines), _sum(line.amount for line in lines))
        for kind, lines in classified.items()
    }
    revenue = sections[IncomeStatementSectionKind.REVENUE]
    cost_of_sales = sections[IncomeStatementSectionKind.COST_OF_SALES]
    operating_expenses = sections[IncomeStatementSectionKind.OPERATING_EXPENSES]
    other_income = sections[IncomeStatementSectionKind.OTHER_INCOME]
    other_expenses = sections[IncomeStatementSectionKind.OTHER_EXPENSES]

    gross_profit = revenue.total - cost_of_sales.total
    operating_income = gross_profit - operating_expenses.total
    net_income = operating_income + other_income.total - other_expenses.total

    report = IncomeStatementReport(
        metadata=metadata,
        revenue=revenue,
        cost_of_sales=cost_of_sales,
        operating_expenses=operating_expenses,
        other_income=other_income,
        other_expenses=other_expenses,
        total_revenue=revenue.total + other_income.total,
        total_expenses=cost_of_sales.total + operating_expenses.total + other_expenses.total,
        gross_profit=gross_profit,
        operating_income=operating_income,
        net_income=net_income,
        gross_margin=_ratio(gross_profit, revenue.total),
        operating_margin=_ratio(operating_income, revenue.total),
        net_margin=_ratio(net_income, revenue.total),
    )
    if comparative_trial_balance is None:
        return report

    comparative = build_income_statement(
        comparative_trial_balance,
        accounts,
        config,
        comparative_metadata or comparative_trial_balance.metadata,
    )
    return dataclasses.replace(
        report,
        comparative=comparative,
        variances=_income_statement_variances(report, comparative),
    )


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def _group(kind: BalanceSheetGroupKind, label: str, lines: list[StatementLine]) -> BalanceSheetGroup:
    return BalanceSheetGroup(kind, label, tuple(lines), _sum(line.amount for line in lines))


def _section(kind: BalanceSheetSectionKind, groups: list[BalanceSheetGroup]) -> BalanceSheetSection:
    return BalanceSheetSection(kind, tuple(groups), _sum(group.total for group in groups))


def build_balance_sheet(
    trial_balance: TrialBalanceReport,
    income_statement: IncomeStatementReport,
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> BalanceSheetReport:
    """
    Classified balance sheet.

    1. Assets and liabilities split current / non-current (category first,
       then code prefix).
    2. Equity accounts, then retained earnings: accounts categorised as
       retained earnings plus the income statement's net income.
    3. A = L + E checked with the exact difference.
    """
    clf = config.classification
    current_assets: list[StatementLine] = []
    non_current_assets: list[StatementLine] = []
    current_liabilities: list[StatementLine] = []
    non_current_liabilities: list[StatementLine] = []
    contributed: list[StatementLine] = []
    retained: list[StatementLine] = []

    for row in trial_balance.leaf_accounts:
        account = accounts.get(row.account_id)
        if account is None or row.closing_balance == 0:
            continue
        line = _line(account, row.closing_balance)
        if account.account_type == AccountType.ASSET:
            (non_current_assets if clf.is_non_current(account) else current_assets).append(line)
        elif account.account_type == AccountType.LIABILITY:
            (non_current_liabilities if clf.is_non_current(account) else current_liabilities).append(line)
        elif account.account_type == AccountType.EQUITY:
            if account.category == AccountCategory.RETAINED_EARNINGS.value:
                retained.append(line)
            else:
                contributed.append(line)

    retained.append(
        StatementLine(None, None, "Current period earnings", income_statement.net_income)
    )

    assets = _section(
        BalanceSheetSectionKind.ASSETS,
        [
            _group(BalanceSheetGroupKind.CURRENT, "Current Assets", current_assets),
            _group(BalanceSheetGroupKind.NON_CURRENT, "Non-Current Assets", non_current_assets),
        ],
    )
    liabilities = _section(
        BalanceSheetSectionKind.LIABILITIES,
        [
            _group(BalanceSheetGroupKind.CURRENT, "Current Liabilities", current_liabilities),
            _group(
                BalanceSheetGroupKind.NON_CURRENT, "Non-Current Liabilities", non_current_liabilities
            ),
        ],
    )
    equity = _section(
        BalanceSheetSectionKind.EQUITY,
        [
            _group(BalanceSheetGroupKind.CONTRIBUTED, "Equity", contributed),
            _group(BalanceSheetGroupKind.RETAINED_EARNINGS, "Retained Earnings", retained),
        ],
    )

    total_l_and_e = liabilities.total + equity.total
    difference = assets.total - total_l_and_e
    return BalanceSheetReport(
        metadata=metadata,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        retained_earnings=income_statement.net_income,
        balance_check=BalanceCheck(
            total_assets=assets.total,
            total_liabilities_and_equity=total_l_and_e,
            difference=difference,
            assets_equals_liabilities_plus_equity=(difference == 0),
        ),
        trial_balance_balanced=trial_balance.is_balanced,
    )


# =========================================================================
# 4. CASH FLOW STATEMENT
# =========================================================================


def cash_flow_activity(account: AccountInfo, clf: AccountClassification) -> CashFlowActivity:
    """Activity a movement of ``account`` belongs to."""
    if account.account_type in (AccountType.REVENUE, AccountType.EXPENSE):
        return CashFlowActivity.OPERATING
    if clf.is_non_cash_charge(account):
        return CashFlowActivity.OPERATING
    if account.account_type == AccountType.EQUITY:
        return CashFlowActivity.FINANCING
    if not clf.is_non_current(account):
        return CashFlowActivity.OPERATING
    if account.account_type == AccountType.ASSET:
        return CashFlowActivity.INVESTING
    return CashFlowActivity.FINANCING


def _cash_effect(row: TrialBalanceAccount) -> Decimal:
    """Asset increases consume cash; liability and equity increases provide it."""
    if row.account_type == AccountType.ASSET:
        return -row.period_movement
    return row.period_movement


def _cash_balances(
    trial_balance: TrialBalanceReport,
    accounts: Mapping[UUID, AccountInfo],
    clf: AccountClassification,
) -> tuple[Decimal, Decimal]:
    beginning = _ZERO
    ending = _ZERO
    for row in trial_balance.leaf_accounts:
        account = accounts.get(row.account_id)
        if account is not None and clf.is_cash(account):
            beginning += row.opening_balance
            ending += row.closing_balance
    return beginning, ending


def _cash_flow_section(activity: CashFlowActivity, lines: list[StatementLine]) -> CashFlowSection:
    return CashFlowSection(activity, tuple(lines), _sum(line.amount for line in lines))


def build_indirect_cash_flow(
    trial_balance: TrialBalanceReport,
    income_statement: IncomeStatementReport,
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> CashFlowStatementReport:
    """
    Indirect method.

    1. Net income from the income statement of the same window
    2. Add back non-cash charges (balance-sheet accounts tagged as such)
    3. Working capital: current asset and liability movements
    4. Investing: non-current asset movements
    5. Financing: non-current liability and equity movements

    Every non-cash balance-sheet account lands in exactly one step, so on
    a balanced ledger the sections sum to the movement of cash.
    """
    clf = config.classification
    adjustments: list[StatementLine] = []
    working_capital: list[StatementLine] = []
    investing: list[StatementLine] = []
    financing: list[StatementLine] = []

    for row in trial_balance.leaf_accounts:
        account = accounts.get(row.account_id)
        if account is None or account.account_type in (AccountType.REVENUE, AccountType.EXPENSE):
            continue
        if clf.is_cash(account):
            continue
        effect = _cash_effect(row)
        if effect == 0:
            continue

        if clf.is_non_cash_charge(account):
            adjustments.append(_line(account, effect, f"Add back: {account.name}"))
            continue
        activity = cash_flow_activity(account, clf)
        if activity == CashFlowActivity.OPERATING:
            working_capital.append(_line(account, effect, f"Change in {account.name}"))
        elif activity == CashFlowActivity.INVESTING:
            investing.append(_line(account, effect, f"Change in {account.name}"))
        else:
            financing.append(_line(account, effect, f"Change in {account.name}"))

    net_income = income_statement.net_income
    total_adjustments = _sum(line.amount for line in adjustments) + _sum(
        line.amount for line in working_capital
    )
    net_cash_from_operations = net_income + total_adjustments

    operating_lines = [StatementLine(None, None, "Net income", net_income)]
    operating_lines.extend(adjustments)
    operating_lines.extend(working_capital)
    operating = _cash_flow_section(CashFlowActivity.OPERATING, operating_lines)

    return _cash_flow_report(
        trial_balance,
        accounts,
        config,
        metadata,
        CashFlowMethod.INDIRECT,
        operating,
        _cash_flow_section(CashFlowActivity.INVESTING, investing),
        _cash_flow_section(CashFlowActivity.FINANCING, financing),
        IndirectReconciliation(
            net_income=net_income,
            non_cash_adjustments=tuple(adjustments),
            working_capital_changes=tuple(working_capital),
            total_adjustments=total_adjustments,
            net_cash_from_operations=net_cash_from_operations,
        ),
    )


def build_direct_cash_flow(
    trial_balance: TrialBalanceReport,
    cash_journal_lines: Sequence[PostedLine],
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> CashFlowStatementReport:
    """
    Direct method.

    Each journal's net cash movement is attributed to its largest non-cash
    line, whose account decides the activity.  Movements are then summed
    per activity and counter-account.
    """
    clf = config.classification
    by_journal: dict[UUID, list[PostedLine]] = defaultdict(list)
    for line in cash_journal_lines:
        by_journal[line.journal_id].append(line)

    amounts: dict[tuple[CashFlowActivity, UUID | None], Decimal] = {}
    for lines in by_journal.values():
        cash_lines = []
        counter_lines = []
        for line in lines:
            account = accounts.get(line.account_id)
            if account is not None and clf.is_cash(account):
                cash_lines.append(line)
            else:
                counter_lines.append(line)

        movement = _sum(line.signed_amount for line in cash_lines)
        if movement == 0:
            continue

        counter_id = None
        activity = CashFlowActivity.OPERATING
        if counter_lines:
            dominant = max(counter_lines, key=lambda line: abs(line.signed_amount))
            counter_id = dominant.account_id
            counter = accounts.get(counter_id)
            if counter is not None:
                activity = cash_flow_activity(counter, clf)
        key = (activity, counter_id)
        amounts[key] = amounts.get(key, _ZERO) + movement

    sections: dict[CashFlowActivity, list[StatementLine]] = {a: [] for a in CashFlowActivity}
    for (activity, counter_id), amount in amounts.items():
        counter = accounts.get(counter_id) if counter_id is not None else None
        if counter is None:
            sections[activity].append(StatementLine(None, None, "Unclassified", amount))
        else:
            sections[activity].append(_line(counter, amount))
    for lines in sections.values():
        lines.sort(key=lambda line: line.account_code or "")

    return _cash_flow_report(
        trial_balance,
        accounts,
        config,
        metadata,
        CashFlowMethod.DIRECT,
        _cash_flow_section(CashFlowActivity.OPERATING, sections[CashFlowActivity.OPERATING]),
        _cash_flow_section(CashFlowActivity.INVESTING, sections[CashFlowActivity.INVESTING]),
        _cash_flow_section(CashFlowActivity.FINANCING, sections[CashFlowActivity.FINANCING]),
    )


def _cash_flow_report(
    trial_balance: TrialBalanceReport,
    accounts: Mapping[UUID, AccountInfo],
    config: ReportingConfig,
    metadata: ReportMetadata,
    method: CashFlowMethod,
    operating: CashFlowSection,
    investing: CashFlowSection,
    financing: CashFlowSection,
    reconciliation: IndirectReconciliation | None = None,
) -> CashFlowStatementReport:
    beginning_cash, ending_cash = _cash_balances(trial_balance, accounts, config.classification)
    net_change = operating.total + investing.total + financing.total
    return CashFlowStatementReport(
        metadata=metadata,
        method=method,
        operating=operating,
        investing=investing,
        financing=financing,
        net_change_in_cash=net_change,
        beginning_cash=beginning_cash,
        ending_cash=ending_cash,
        cash_change_reconciles=(beginning_cash + net_change == ending_cash),
        reconciliation=reconciliation,
    )


# =========================================================================
# 5. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Handles:
    - Decimal -> str (preserving precision)
    - UUID -> str
    - date -> ISO format string
    - Enum -> .value
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
