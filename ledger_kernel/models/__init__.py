"""SQLAlchemy ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountCategory, AccountType, NormalBalance
from ledger_kernel.models.bank import BankTransaction
from ledger_kernel.models.document import Bill, BillLine, DocumentStatus, Invoice, InvoiceLine
from ledger_kernel.models.fx_rate import FxRate
from ledger_kernel.models.journal import Journal, JournalLine, JournalStatus
from ledger_kernel.models.payment import Payment, PaymentAllocation, PaymentMethod, PaymentType
from ledger_kernel.models.period import Period, PeriodStatus, can_transition
from ledger_kernel.models.sequence import DocumentSequence

__all__ = [
    "Account",
    "AccountCategory",
    "AccountType",
    "BankTransaction",
    "Bill",
    "BillLine",
    "DocumentSequence",
    "DocumentStatus",
    "FxRate",
    "Invoice",
    "InvoiceLine",
    "Journal",
    "JournalLine",
    "JournalStatus",
    "NormalBalance",
    "Payment",
    "PaymentAllocation",
    "PaymentMethod",
    "PaymentType",
    "Period",
    "PeriodStatus",
    "can_transition",
]
