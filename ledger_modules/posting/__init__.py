"""
Document Posting Module (``ledger_modules.posting``).

Invoices, bills and payments posted as balanced journals through one
pipeline.
"""

from ledger_modules.posting.models import (
    AllocationInput,
    BillInput,
    DocumentInput,
    DocumentLineInput,
    DocumentSummary,
    DocumentType,
    InvoiceInput,
    PaymentInput,
    PostingError,
    PostingResult,
    PostingStatus,
)
from ledger_modules.posting.service import DocumentPostingService

__all__ = [
    "AllocationInput",
    "BillInput",
    "DocumentInput",
    "DocumentLineInput",
    "DocumentPostingService",
    "DocumentSummary",
    "DocumentType",
    "InvoiceInput",
    "PaymentInput",
    "PostingError",
    "PostingResult",
    "PostingStatus",
]
