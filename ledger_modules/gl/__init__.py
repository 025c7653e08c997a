"""
General Ledger Module (``ledger_modules.gl``).

Manual journals: draft, approval, posting and reversal.
"""

from ledger_modules.gl.models import JournalOutcome, JournalResult, ManualJournalInput
from ledger_modules.gl.service import JournalService

__all__ = [
    "JournalOutcome",
    "JournalResult",
    "JournalService",
    "ManualJournalInput",
]
