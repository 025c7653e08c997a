"""Kernel services: flush-only writers over the ledger tables."""

from ledger_kernel.services.fx_rate_service import FxRateService
from ledger_kernel.services.journal_writer import JournalWriter, JournalWriteResult
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "FxRateService",
    "JournalWriteResult",
    "JournalWriter",
    "PeriodService",
    "SequenceService",
]
