"""
Reporting Configuration Schema.

Defines classification rules and report formatting options.
An account's ``category`` wins when set; otherwise its code prefix
decides, consistent with the default COA structure (1xxx=assets,
2xxx=liabilities, etc.).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Self

from ledger_config.schema import ReportingPolicy
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountCategory, AccountType
from ledger_modules.reporting.models import IncomeStatementSectionKind

logger = get_logger("modules.reporting.config")


@dataclass
class AccountClassification:
    """
    Rules for classifying accounts into financial statement sections.

    Prefix matching: an account matches a section if its code starts with
    any of the configured prefixes.  Assets and liabilities that match no
    non-current prefix are current, so every balance-sheet account lands
    in exactly one group.
    """

    # Balance sheet -- assets
    current_asset_prefixes: tuple[str, ...] = ("10", "11", "12", "13", "14")
    non_current_asset_prefixes: tuple[str, ...] = ("15", "16", "17", "18", "19")

    # Balance sheet -- liabilities
    current_liability_prefixes: tuple[str, ...] = ("20", "21", "22", "23", "24")
    non_current_liability_prefixes: tuple[str, ...] = ("25", "26", "27", "28", "29")

    # Income statement -- multi-step breakdown; revenue and expense
    # accounts matching none of these are operating
    cost_of_sales_prefixes: tuple[str, ...] = ()
    other_income_prefixes: tuple[str, ...] = ("48", "49")
    other_expense_prefixes: tuple[str, ...] = ("58", "59")

    # Cash flow -- accounts treated as cash and cash equivalents
    cash_account_prefixes: tuple[str, ...] = ("1000", "1010", "1020", "1030", "1040")

    # Cash flow -- balance-sheet accounts whose movement is a non-cash charge
    non_cash_tags: tuple[str, ...] = ("depreciation", "amortization", "impairment")

    def matches_prefix(self, code: str, prefixes: tuple[str, ...]) -> bool:
        """Check if an account code matches any of the given prefixes."""
        return any(code.startswith(p) for p in prefixes)

    def is_cash(self, account: AccountInfo) -> bool:
        if account.account_type != AccountType.ASSET:
            return False
        if account.category == AccountCategory.CASH.value:
            return True
        if account.category is not None:
            return False
        return self.matches_prefix(account.code, self.cash_account_prefixes)

    def is_non_current(self, account: AccountInfo) -> bool:
        if account.category == AccountCategory.NON_CURRENT.value:
            return True
        if account.category in (AccountCategory.CURRENT.value, AccountCategory.CASH.value):
            return False
        if account.account_type == AccountType.ASSET:
            return self.matches_prefix(account.code, self.non_current_asset_prefixes)
        if account.account_type == AccountType.LIABILITY:
            return self.matches_prefix(account.code, self.non_current_liability_prefixes)
        return False

    def income_statement_kind(self, account: AccountInfo) -> IncomeStatementSectionKind | None:
        """
        Multi-step section of a revenue or expense account, None otherwise.

        Category first (cost_of_sales, non_operating, operating), then
        code prefix.
        """
        category = account.category
        if account.account_type == AccountType.REVENUE:
            if category == AccountCategory.NON_OPERATING.value:
                return IncomeStatementSectionKind.OTHER_INCOME
            if category is None and self.matches_prefix(account.code, self.other_income_prefixes):
                return IncomeStatementSectionKind.OTHER_INCOME
            return IncomeStatementSectionKind.REVENUE
        if account.account_type == AccountType.EXPENSE:
            if category == AccountCategory.COST_OF_SALES.value:
                return IncomeStatementSectionKind.COST_OF_SALES
            if category == AccountCategory.NON_OPERATING.value:
                return IncomeStatementSectionKind.OTHER_EXPENSES
            if category is None:
                if self.matches_prefix(account.code, self.cost_of_sales_prefixes):
                    return IncomeStatementSectionKind.COST_OF_SALES
                if self.matches_prefix(account.code, self.other_expense_prefixes):
                    return IncomeStatementSectionKind.OTHER_EXPENSES
            return IncomeStatementSectionKind.OPERATING_EXPENSES
        return None

    def is_non_cash_charge(self, account: AccountInfo) -> bool:
        return any(account.has_tag(tag) for tag in self.non_cash_tags)


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Controls account classification, formatting, and report generation.
    """

    classification: AccountClassification = field(
        default_factory=AccountClassification,
    )

    # Default currency for reports
    default_currency: str = "USD"

    # Entity name shown on reports
    entity_name: str = "Company"

    # Whether to include accounts with no balance and no activity
    include_zero_balances: bool = False

    def __post_init__(self):
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_policy(cls, policy: ReportingPolicy, base_currency: str) -> Self:
        """Build from the ``reporting`` section of the ledger configuration."""
        known = {f.name for f in fields(AccountClassification)}
        unknown = sorted(set(policy.classification) - known)
        if unknown:
            raise ValueError(f"Unknown classification keys: {unknown}")

        overrides = {key: tuple(value) for key, value in policy.classification.items()}
        overrides.setdefault("non_cash_tags", tuple(policy.non_cash_expense_tags))
        logger.info(
            "reporting_config_loaded_from_policy",
            extra={"overrides": sorted(policy.classification), "currency": base_currency},
        )
        return cls(
            classification=AccountClassification(**overrides),
            default_currency=base_currency.upper(),
            entity_name=policy.entity_name,
            include_zero_balances=policy.include_zero_balances,
        )
