"""
General Ledger Models (``ledger_modules.gl.models``).

Responsibility
--------------
Frozen dataclass inputs and results of manual journal operations.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from ledger_kernel.domain.dtos import JournalInfo, JournalLineSpec
from ledger_modules.posting.models import PostingError


class JournalOutcome(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    POSTED = "POSTED"
    ALREADY_POSTED = "ALREADY_POSTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class ManualJournalInput:
    """A manual journal as entered by an accountant."""

    journal_date: date
    currency: str
    lines: tuple[JournalLineSpec, ...]
    description: str | None = None
    reference: str | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True)
class JournalResult:
    outcome: JournalOutcome
    journal: JournalInfo | None = None
    review_flags: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    error: PostingError | None = None

    @property
    def is_success(self) -> bool:
        return self.outcome != JournalOutcome.REJECTED

    @property
    def journal_number(self) -> str | None:
        return self.journal.journal_number if self.journal else None
