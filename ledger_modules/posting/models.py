"""
Document Posting Models (``ledger_modules.posting.models``).

Responsibility
--------------
Frozen dataclass inputs and results of the document posting pipeline:
invoice, bill and payment inputs, the ``PostingResult`` returned to the
transport layer and its ``PostingError``.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Header totals on an input are claims to be checked, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from ledger_kernel.exceptions import LedgerError
from ledger_kernel.models.payment import PaymentMethod, PaymentType


class DocumentType(str, Enum):
    INVOICE = "INVOICE"
    BILL = "BILL"
    PAYMENT = "PAYMENT"


class PostingStatus(str, Enum):
    POSTED = "POSTED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ALREADY_POSTED = "ALREADY_POSTED"
    REJECTED = "REJECTED"


# =========================================================================
# Inputs
# =========================================================================


@dataclass(frozen=True)
class DocumentLineInput:
    """One invoice or bill line; amounts are computed, never supplied."""

    account_id: UUID
    quantity: Decimal
    unit_price: Decimal
    description: str | None = None
    tax_code: str | None = None
    tax_rate: Decimal | None = None
    tax_account_id: UUID | None = None
    tax_inclusive: bool = False


@dataclass(frozen=True)
class DocumentInput:
    """
    Header and lines shared by invoices and bills.

    ``subtotal``, ``tax_total`` and ``total`` are optional caller claims;
    when given they must agree with the line-derived totals within one
    minor unit.
    """

    document_date: date
    currency: str
    control_account_id: UUID
    lines: tuple[DocumentLineInput, ...]
    party_id: UUID | None = None
    number: str | None = None
    due_date: date | None = None
    exchange_rate: Decimal | None = None
    subtotal: Decimal | None = None
    tax_total: Decimal | None = None
    total: Decimal | None = None
    reference: str | None = None
    description: str | None = None
    idempotency_key: str | None = None
    force_post: bool = False


@dataclass(frozen=True)
class InvoiceInput(DocumentInput):
    """Sales invoice: control account is Accounts Receivable, party is the customer."""


@dataclass(frozen=True)
class BillInput(DocumentInput):
    """Purchase bill: control account is Accounts Payable, party is the supplier."""

    supplier_reference: str | None = None


@dataclass(frozen=True)
class AllocationInput:
    document_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class PaymentInput:
    """
    Receipt (IN, against invoices) or disbursement (OUT, against bills).

    ``amount`` is the gross settled amount.  Allocations may total less
    than it (or be empty); the excess is booked as a customer advance or
    supplier prepayment.  Bank charges and withholding tax adjust the
    bank line.
    """

    payment_type: PaymentType
    payment_date: date
    currency: str
    bank_account_id: UUID
    amount: Decimal
    allocations: tuple[AllocationInput, ...]
    number: str | None = None
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    exchange_rate: Decimal | None = None
    bank_charges: Decimal = Decimal("0")
    bank_charges_account_id: UUID | None = None
    withholding_tax: Decimal = Decimal("0")
    withholding_account_id: UUID | None = None
    reference: str | None = None
    idempotency_key: str | None = None
    force_post: bool = False


# =========================================================================
# Results
# =========================================================================


@dataclass(frozen=True)
class PostingError:
    """Stable, transport-safe rendering of a rejected posting."""

    code: str
    message: str
    details: dict[str, Any]

    @classmethod
    def from_exception(cls, exc: LedgerError) -> PostingError:
        return cls(code=exc.code, message=exc.message, details=dict(exc.details))


@dataclass(frozen=True)
class PostingResult:
    status: PostingStatus
    document_type: DocumentType | None = None
    journal_id: UUID | None = None
    journal_number: str | None = None
    document_id: UUID | None = None
    document_number: str | None = None
    review_flags: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    error: PostingError | None = None

    @property
    def is_success(self) -> bool:
        return self.status in (
            PostingStatus.POSTED,
            PostingStatus.PENDING_APPROVAL,
            PostingStatus.ALREADY_POSTED,
        )

    @property
    def requires_review(self) -> bool:
        return bool(self.review_flags)


@dataclass(frozen=True)
class DocumentSummary:
    """Read-only view of an invoice or bill after a lifecycle step."""

    document_type: DocumentType
    document_id: UUID
    number: str
    status: str
    currency: str
    subtotal: Decimal
    tax_total: Decimal
    total: Decimal
    amount_paid: Decimal
    journal_id: UUID | None = None

    @property
    def outstanding(self) -> Decimal:
        return self.total - self.amount_paid

    @classmethod
    def from_model(cls, document_type: DocumentType, document) -> DocumentSummary:
        return cls(
            document_type=document_type,
            document_id=document.id,
            number=document.number,
            status=document.status,
            currency=document.currency,
            subtotal=document.subtotal,
            tax_total=document.tax_total,
            total=document.total,
            amount_paid=document.amount_paid,
            journal_id=document.journal_id,
        )
