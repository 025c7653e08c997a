"""
Reporting Module (``ledger_modules.reporting``).

Trial balance, balance sheet, income statement and cash flow statement
derived on demand from posted journal lines.
"""

from ledger_modules.reporting.config import AccountClassification, ReportingConfig
from ledger_modules.reporting.models import (
    BalanceCheck,
    BalanceSheetGroupKind,
    BalanceSheetReport,
    BalanceSheetSectionKind,
    CashFlowActivity,
    CashFlowMethod,
    CashFlowStatementReport,
    IncomeStatementReport,
    IncomeStatementSectionKind,
    IncomeStatementVariance,
    ReportType,
    TrialBalanceAccount,
    TrialBalanceInput,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    "AccountClassification",
    "BalanceCheck",
    "BalanceSheetGroupKind",
    "BalanceSheetReport",
    "BalanceSheetSectionKind",
    "CashFlowActivity",
    "CashFlowMethod",
    "CashFlowStatementReport",
    "IncomeStatementReport",
    "IncomeStatementSectionKind",
    "IncomeStatementVariance",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "TrialBalanceAccount",
    "TrialBalanceInput",
    "TrialBalanceReport",
    "render_to_dict",
]
