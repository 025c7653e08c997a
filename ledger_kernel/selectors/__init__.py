"""Read-only query selectors over posted ledger data."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import AccountActivity, LedgerSelector, PostedLine

__all__ = [
    "AccountActivity",
    "AccountSelector",
    "JournalSelector",
    "LedgerSelector",
    "PostedLine",
]
