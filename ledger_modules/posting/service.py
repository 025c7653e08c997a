"""
Document Posting Service (``ledger_modules.posting.service``).

Responsibility
--------------
The single posting pipeline for invoices, bills and payments.  Turns a
business document into one balanced journal: recomputes totals from the
lines through the tax engine, applies the account type rules, resolves
the exchange rate, checks the period and persists document and journal
together.

Architecture position
---------------------
**Modules layer**.  Composes kernel ``JournalWriter`` (validation and
persistence), ``PeriodService``, ``SequenceService`` and ``FxRateService``,
the ``ledger_engines.tax`` calculator and the services-layer
``RbacAuthority``.

Invariants enforced
-------------------
* Totals are derived from lines.  Caller-supplied header totals that
  differ by more than one minor unit raise ``LineTotalMismatchError``.
* AR (or AP) equals revenue (or expense) plus tax.
* One control line, one line per distinct revenue/expense account and
  one grouped tax line per tax code.
* Foreign-currency documents are journaled in base currency.  Every line
  is converted and the control line is the sum of the converted lines.
* Payments relieve control accounts at the documents' booked rate.  The
  gap to the bank amount at the payment rate is a realized FX gain or
  loss, and an unallocated remainder is a customer advance or supplier
  prepayment (accounts from ``LedgerConfiguration.posting``).
* Amounts finer than the currency's minor unit raise
  ``AmountPrecisionError``; an idempotency key already bound to another
  document raises ``IdempotencyConflictError``.
* All-or-nothing: document, journal, numbering and payment application
  share one SAVEPOINT.

Failure modes
-------------
* Every ``LedgerError`` is caught, logged as ``posting_rejected`` and
  returned in a ``REJECTED`` result.  Nothing is written.
* Any other exception propagates after the savepoint rolls back.

Audit relevance
---------------
``document_posted``, ``document_pending_approval`` and
``posting_rejected`` carry document type and number, journal number,
review flags and duration.  Journals built from stale FX rates or posted
under a period override carry ``requires_review``.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfiguration
from ledger_engines.fx_staleness import requires_review
from ledger_engines.tax import (
    ZERO_RATED_CODE,
    LineTax,
    TaxableLine,
    TaxRate,
    TaxType,
    calculate_document,
    group_taxes_by_code,
)
from ledger_kernel.domain import coa
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountInfo,
    JournalDraft,
    JournalInfo,
    JournalLineSpec,
    LedgerScope,
)
from ledger_kernel.domain.values import Currency, Money
from ledger_kernel.exceptions import (
    AllocationExceedsOutstandingError,
    AmountPrecisionError,
    DocumentNotFoundError,
    DuplicateDocumentNumberError,
    IdempotencyConflictError,
    InvalidDocumentStateError,
    InvalidInputError,
    InvalidJournalStateError,
    LedgerError,
    LineTotalMismatchError,
    PeriodNotOpenError,
    UnbalancedJournalError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.document import Bill, BillLine, DocumentStatus, Invoice, InvoiceLine
from ledger_kernel.models.journal import JournalStatus
from ledger_kernel.models.payment import Payment, PaymentAllocation, PaymentType
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.fx_rate_service import FxRateService
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_modules.fx.config import staleness_config_from_policy
from ledger_modules.fx.service import staleness_of
from ledger_modules.posting.models import (
    DocumentInput,
    DocumentSummary,
    DocumentType,
    PaymentInput,
    PostingError,
    PostingResult,
    PostingStatus,
)
from ledger_services.rbac_authority import (
    BILL_POST,
    INVOICE_POST,
    PAYMENT_CREATE,
    PERIOD_OVERRIDE,
    JOURNAL_APPROVE,
    RbacAuthority,
)

logger = get_logger("modules.posting.service")

_DOCUMENT_MODELS = {
    DocumentType.INVOICE: (Invoice, InvoiceLine),
    DocumentType.BILL: (Bill, BillLine),
}

_NUMBERED_MODELS = {
    DocumentType.INVOICE: Invoice,
    DocumentType.BILL: Bill,
    DocumentType.PAYMENT: Payment,
}

_SEQUENCE_PREFIXES = {
    DocumentType.INVOICE: SequenceService.INVOICE,
    DocumentType.BILL: SequenceService.BILL,
    DocumentType.PAYMENT: SequenceService.PAYMENT,
}

_POST_PERMISSIONS = {
    DocumentType.INVOICE: INVOICE_POST,
    DocumentType.BILL: BILL_POST,
    DocumentType.PAYMENT: PAYMENT_CREATE,
}

# (role name, allowed account types) per document type.
_CONTROL_RULES = {
    DocumentType.INVOICE: ("ar_control", (AccountType.ASSET,)),
    DocumentType.BILL: ("ap_control", (AccountType.LIABILITY,)),
}
_LINE_RULES = {
    DocumentType.INVOICE: ("revenue", (AccountType.REVENUE,)),
    DocumentType.BILL: ("expense", (AccountType.EXPENSE, AccountType.ASSET)),
}
_TAX_RULES = {
    DocumentType.INVOICE: ("output_tax", (AccountType.LIABILITY,)),
    DocumentType.BILL: ("input_tax", (AccountType.ASSET,)),
}
_WITHHOLDING_RULES = {
    PaymentType.IN: ("withholding_receivable", (AccountType.ASSET,)),
    PaymentType.OUT: ("withholding_payable", (AccountType.LIABILITY,)),
}

_SETTLED_STATUSES = (
    DocumentStatus.POSTED,
    DocumentStatus.PARTIALLY_PAID,
    DocumentStatus.PAID,
    DocumentStatus.CLOSED,
)


@dataclass(frozen=True)
class _FxResolution:
    rate: Decimal
    foreign: bool
    fx_rate_id: UUID | None = None


class DocumentPostingService:
    """
    Posts invoices, bills and payments as balanced journals.

    Contract
    --------
    * ``post_invoice`` / ``post_bill`` / ``post_payment`` take
      ``(input, user_id, user_role, base_currency)`` and always return a
      ``PostingResult``; ledger errors come back as ``REJECTED`` results.
    * Lifecycle helpers (``save_draft``, ``validate_document``,
      ``close_document``) raise ``LedgerError`` subclasses.
    * Services flush; the caller commits.

    Non-goals
    ---------
    * Does NOT post manual journals (``ledger_modules.gl``).
    * Does NOT fetch exchange rates from outside; it reads stored rates.
    """

    def __init__(
        self,
        session: Session,
        scope: LedgerScope,
        config: LedgerConfiguration,
        clock: Clock | None = None,
        rbac: RbacAuthority | None = None,
    ):
        self._session = session
        self._scope = scope
        self._config = config
        self._clock = clock or SystemClock()
        self._rbac = rbac or RbacAuthority(config.governance)
        self._sequences = SequenceService(session, scope, self._clock)
        self._writer = JournalWriter(session, scope, self._clock, self._sequences)
        self._periods = PeriodService(session, scope, self._clock)
        self._fx_rates = FxRateService(session, scope, self._clock)
        self._journals = JournalSelector(session, scope)
        self._staleness = staleness_config_from_policy(config.fx)
        self._tax_rates = {
            tax_code.code: TaxRate(
                tax_code=tax_code.code,
                tax_name=tax_code.name,
                rate=tax_code.rate,
                tax_type=TaxType(tax_code.tax_type),
            )
            for tax_code in config.tax_codes
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def post_invoice(
        self,
        input: DocumentInput,
        user_id: UUID,
        user_role: str,
        base_currency: str | None = None,
    ) -> PostingResult:
        return self._run(
            DocumentType.INVOICE,
            user_id,
            lambda: self._post_new_document(
                DocumentType.INVOICE, input, user_id, user_role, base_currency
            ),
        )

    def post_bill(
        self,
        input: DocumentInput,
        user_id: UUID,
        user_role: str,
        base_currency: str | None = None,
    ) -> PostingResult:
        return self._run(
            DocumentType.BILL,
            user_id,
            lambda: self._post_new_document(
                DocumentType.BILL, input, user_id, user_role, base_currency
            ),
        )

    def post_payment(
        self,
        input: PaymentInput,
        user_id: UUID,
        user_role: str,
        base_currency: str | None = None,
    ) -> PostingResult:
        return self._run(
            DocumentType.PAYMENT,
            user_id,
            lambda: self._post_new_payment(input, user_id, user_role, base_currency),
        )

    def post_document(
        self,
        document_type: DocumentType,
        document_id: UUID,
        user_id: UUID,
        user_role: str,
        base_currency: str | None = None,
        force_post: bool = False,
        idempotency_key: str | None = None,
    ) -> PostingResult:
        """Post a saved draft or validated invoice/bill."""

        def action() -> PostingResult:
            self._rbac.require(user_role, _POST_PERMISSIONS[document_type], user_id)
            document = self._load_document(document_type, document_id, for_update=True)
            return self._post_existing(
                document_type,
                document,
                user_id,
                user_role,
                base_currency,
                force_post,
                idempotency_key,
            )

        return self._run(document_type, user_id, action)

    def approve_journal(
        self,
        journal_id: UUID,
        approver_id: UUID,
        approver_role: str,
    ) -> PostingResult:
        """
        Post a document journal held for approval.

        The approver needs ``journal:approve`` and must not be the user who
        prepared the journal.  The document moves to ``posted``; a payment
        is applied to its documents only now.
        """
        journal = self._journals.get(journal_id)
        document_type = _document_type_of(journal) if journal is not None else None
        return self._run(
            document_type,
            approver_id,
            lambda: self._approve(journal_id, approver_id, approver_role),
        )

    def save_draft(
        self,
        document_type: DocumentType,
        input: DocumentInput,
        user_id: UUID,
        user_role: str,
    ) -> DocumentSummary:
        """Store an invoice/bill in ``draft`` with line-derived totals."""
        self._rbac.require(user_role, _POST_PERMISSIONS[document_type], user_id)
        with self._session.begin_nested():
            document = self._create_document(document_type, input, user_id)
        logger.info(
            "document_draft_saved",
            extra={
                "document_type": document_type.value,
                "document_number": document.number,
                "total": str(document.total),
            },
        )
        return DocumentSummary.from_model(document_type, document)

    def validate_document(
        self,
        document_type: DocumentType,
        document_id: UUID,
        user_id: UUID,
    ) -> DocumentSummary:
        """Move a draft to ``validated`` after the account and balance checks."""
        document = self._load_document(document_type, document_id, for_update=True)
        if document.status_enum != DocumentStatus.DRAFT:
            raise InvalidDocumentStateError(document.number, document.status, "validate")

        accounts = self._writer.load_accounts()
        self._check_document_accounts(document_type, document, accounts)
        self._check_document_balanced(document)

        document.status = DocumentStatus.VALIDATED.value
        document.updated_by_id = user_id
        self._session.flush()
        logger.info(
            "document_validated",
            extra={"document_type": document_type.value, "document_number": document.number},
        )
        return DocumentSummary.from_model(document_type, document)

    def close_document(
        self,
        document_type: DocumentType,
        document_id: UUID,
        user_id: UUID,
    ) -> DocumentSummary:
        """paid -> closed."""
        document = self._load_document(document_type, document_id, for_update=True)
        if document.status_enum != DocumentStatus.PAID:
            raise InvalidDocumentStateError(document.number, document.status, "close")

        document.status = DocumentStatus.CLOSED.value
        document.updated_by_id = user_id
        self._session.flush()
        logger.info(
            "document_closed",
            extra={"document_type": document_type.value, "document_number": document.number},
        )
        return DocumentSummary.from_model(document_type, document)

    def get_document(self, document_type: DocumentType, document_id: UUID) -> DocumentSummary:
        return DocumentSummary.from_model(
            document_type, self._load_document(document_type, document_id)
        )

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _run(
        self,
        document_type: DocumentType | None,
        user_id: UUID,
        action: Callable[[], PostingResult],
    ) -> PostingResult:
        t0 = time.monotonic()
        with LogContext.bind(
            tenant_id=self._scope.tenant_id,
            company_id=self._scope.company_id,
            actor_id=user_id,
        ):
            try:
                with self._session.begin_nested():
                    result = action()
            except LedgerError as exc:
                logger.warning(
                    "posting_rejected",
                    extra={
                        "document_type": document_type.value if document_type else None,
                        "exc_code": exc.code,
                        "error": exc.message,
                        "details": exc.details,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return PostingResult(
                    status=PostingStatus.REJECTED,
                    document_type=document_type,
                    error=PostingError.from_exception(exc),
                )

            logger.info(
                _EVENT_BY_STATUS[result.status],
                extra={
                    "document_type": document_type.value if document_type else None,
                    "document_number": result.document_number,
                    "journal_number": result.journal_number,
                    "review_flags": list(result.review_flags),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

    def _post_new_document(
        self,
        document_type: DocumentType,
        input: DocumentInput,
        user_id: UUID,
        user_role: str,
        base_currency: str | None,
    ) -> PostingResult:
        self._rbac.require(user_role, _POST_PERMISSIONS[document_type], user_id)

        existing = self._find_idempotent(input.idempotency_key)
        if existing is not None:
            return self._already_posted(document_type, existing)

        document = self._create_document(document_type, input, user_id)
        return self._post_existing(
            document_type,
            document,
            user_id,
            user_role,
            base_currency,
            input.force_post,
            input.idempotency_key,
        )

    def _post_existing(
        self,
        document_type: DocumentType,
        document,
        user_id: UUID,
        user_role: str,
        base_currency: str | None,
        force_post: bool,
        idempotency_key: str | None,
    ) -> PostingResult:
        status = document.status_enum
        if status in _SETTLED_STATUSES or document.journal_id is not None:
            journal = self._journals.get(document.journal_id) if document.journal_id else None
            pending = journal is not None and journal.status == JournalStatus.PENDING_APPROVAL.value
            return PostingResult(
                status=PostingStatus.PENDING_APPROVAL if pending else PostingStatus.ALREADY_POSTED,
                document_type=document_type,
                journal_id=journal.journal_id if journal else None,
                journal_number=journal.journal_number if journal else None,
                document_id=document.id,
                document_number=document.number,
            )

        existing = self._find_idempotent(idempotency_key)
        if existing is not None:
            # the key would hand this document another document's journal
            raise IdempotencyConflictError(
                idempotency_key,
                existing.journal_number,
                str(existing.source_id) if existing.source_id else None,
            )

        base = (base_currency or self._config.base_currency).upper()
        accounts = self._writer.load_accounts()
        self._check_document_balanced(document)
        self._check_document_accounts(document_type, document, accounts)

        review_flags: list[str] = []
        fx = self._resolve_rate(
            document.currency, base, document.document_date, document.exchange_rate, review_flags
        )
        lines = self._document_journal_lines(document_type, document, fx.rate, base)
        draft = self._draft(
            document_type,
            document.id,
            document.number,
            document.document_date,
            document.currency,
            document.reference,
            base,
            fx,
            lines,
            idempotency_key,
            review_flags,
        )
        warnings = self._writer.validate(draft, accounts, fx.foreign)
        self._check_period(document.document_date, user_role, force_post, user_id, review_flags)
        draft = _with_review(draft, review_flags)

        journal_status = self._journal_status(user_role, draft.total_debit)
        written = self._writer.write(draft, user_id, journal_status, accounts, fx.foreign)

        document.journal_id = written.journal.journal_id
        if fx.foreign:
            document.exchange_rate = fx.rate
        document.status = (
            DocumentStatus.POSTED.value
            if journal_status == JournalStatus.POSTED
            else DocumentStatus.VALIDATED.value
        )
        document.updated_by_id = user_id
        self._session.flush()

        return PostingResult(
            status=(
                PostingStatus.POSTED
                if journal_status == JournalStatus.POSTED
                else PostingStatus.PENDING_APPROVAL
            ),
            document_type=document_type,
            journal_id=written.journal.journal_id,
            journal_number=written.journal.journal_number,
            document_id=document.id,
            document_number=document.number,
            review_flags=tuple(review_flags),
            warnings=tuple(w.message for w in warnings),
        )

    def _post_new_payment(
        self,
        input: PaymentInput,
        user_id: UUID,
        user_role: str,
        base_currency: str | None,
    ) -> PostingResult:
        self._rbac.require(user_role, PAYMENT_CREATE, user_id)

        existing = self._find_idempotent(input.idempotency_key)
        if existing is not None:
            return self._already_posted(DocumentType.PAYMENT, existing)

        self._check_payment_input(input)
        payment_type = PaymentType(input.payment_type)
        document_type = DocumentType(payment_type.document_type)
        currency = input.currency.upper()
        base = (base_currency or self._config.base_currency).upper()

        settled = self._load_allocated_documents(document_type, input, currency)

        accounts = self._writer.load_accounts()
        coa.validate_account_type(input.bank_account_id, accounts, (AccountType.ASSET,), "bank")
        role, types = _CONTROL_RULES[document_type]
        for document, _ in settled:
            coa.validate_account_type(document.control_account_id, accounts, types, role)
        if input.bank_charges:
            coa.validate_account_type(
                input.bank_charges_account_id, accounts, (AccountType.EXPENSE,), "bank_charges"
            )
        if input.withholding_tax:
            role, types = _WITHHOLDING_RULES[payment_type]
            coa.validate_account_type(input.withholding_account_id, accounts, types, role)

        review_flags: list[str] = []
        fx = self._resolve_rate(
            currency, base, input.payment_date, input.exchange_rate, review_flags
        )
        lines = self._payment_journal_lines(
            payment_type, input, settled, fx.rate, currency, base, accounts
        )

        payment_id = uuid4()
        number = self._allocate_number(DocumentType.PAYMENT, input.number, user_id)
        draft = self._draft(
            DocumentType.PAYMENT,
            payment_id,
            number,
            input.payment_date,
            currency,
            input.reference,
            base,
            fx,
            lines,
            input.idempotency_key,
            review_flags,
        )
        warnings = self._writer.validate(draft, accounts, fx.foreign)
        self._check_period(input.payment_date, user_role, input.force_post, user_id, review_flags)
        draft = _with_review(draft, review_flags)

        scope_columns = self._scope_columns()
        payment = Payment(
            id=payment_id,
            number=number,
            payment_type=payment_type.value,
            payment_date=input.payment_date,
            method=input.method.value,
            bank_account_id=input.bank_account_id,
            currency=currency,
            exchange_rate=fx.rate if fx.foreign else None,
            amount=input.amount,
            bank_charges=input.bank_charges,
            withholding_tax=input.withholding_tax,
            reference=input.reference,
            created_by_id=user_id,
            **scope_columns,
        )
        for allocation in input.allocations:
            payment.allocations.append(
                PaymentAllocation(
                    document_type=document_type.value,
                    document_id=allocation.document_id,
                    amount=allocation.amount,
                    created_by_id=user_id,
                    **scope_columns,
                )
            )
        self._session.add(payment)
        self._session.flush()

        journal_status = self._journal_status(user_role, draft.total_debit)
        written = self._writer.write(draft, user_id, journal_status, accounts, fx.foreign)
        payment.journal_id = written.journal.journal_id
        self._session.flush()

        if journal_status == JournalStatus.POSTED:
            self._apply_allocations(payment, user_id)

        return PostingResult(
            status=(
                PostingStatus.POSTED
                if journal_status == JournalStatus.POSTED
                else PostingStatus.PENDING_APPROVAL
            ),
            document_type=DocumentType.PAYMENT,
            journal_id=written.journal.journal_id,
            journal_number=written.journal.journal_number,
            document_id=payment.id,
            document_number=payment.number,
            review_flags=tuple(review_flags),
            warnings=tuple(w.message for w in warnings),
        )

    def _approve(self, journal_id: UUID, approver_id: UUID, approver_role: str) -> PostingResult:
        self._rbac.require(approver_role, JOURNAL_APPROVE, approver_id)
        journal = self._writer.get_orm(journal_id, for_update=True)
        info = JournalInfo.from_model(journal)
        document_type = _document_type_of(info)
        if document_type is None:
            raise InvalidJournalStateError(journal.journal_number, journal.status, "approve_document")
        if journal.status == JournalStatus.POSTED.value:
            return self._already_posted(document_type, info)
        if journal.status != JournalStatus.PENDING_APPROVAL.value:
            raise InvalidJournalStateError(journal.journal_number, journal.status, "approve")

        self._rbac.require_distinct_approver(journal.created_by_id, approver_id, "approve_journal")
        self._periods.validate_posting_date(journal.journal_date)
        posted = self._writer.set_status(
            journal.id, JournalStatus.POSTED, approver_id, approved_by_id=approver_id
        )

        if document_type == DocumentType.PAYMENT:
            payment = self._load_payment(journal.source_id)
            self._apply_allocations(payment, approver_id)
            number = payment.number
        else:
            document = self._load_document(document_type, journal.source_id, for_update=True)
            document.status = DocumentStatus.POSTED.value
            document.updated_by_id = approver_id
            self._session.flush()
            number = document.number

        return PostingResult(
            status=PostingStatus.POSTED,
            document_type=document_type,
            journal_id=posted.journal_id,
            journal_number=posted.journal_number,
            document_id=journal.source_id,
            document_number=number,
        )

    # =========================================================================
    # Documents
    # =========================================================================

    def _scope_columns(self) -> dict:
        return {"tenant_id": self._scope.tenant_id, "company_id": self._scope.company_id}

    def _scoped(self, query, model):
        return query.where(
            model.tenant_id == self._scope.tenant_id,
            model.company_id == self._scope.company_id,
        )

    def _load_document(self, document_type: DocumentType, document_id: UUID, for_update: bool = False):
        model, _ = _DOCUMENT_MODELS[document_type]
        query = self._scoped(select(model).where(model.id == document_id), model)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        document = self._session.execute(query).scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(document_type.value, str(document_id))
        return document

    def _load_payment(self, payment_id: UUID) -> Payment:
        payment = self._session.execute(
            self._scoped(select(Payment).where(Payment.id == payment_id), Payment)
        ).scalar_one_or_none()
        if payment is None:
            raise DocumentNotFoundError(DocumentType.PAYMENT.value, str(payment_id))
        return payment

    def _allocate_number(
        self,
        document_type: DocumentType,
        number: str | None,
        user_id: UUID,
    ) -> str:
        """Caller-supplied numbers skip the sequence; either way the number must be unused."""
        if number is None:
            number = self._sequences.next_number(_SEQUENCE_PREFIXES[document_type], user_id)
        model = _NUMBERED_MODELS[document_type]
        taken = self._session.execute(
            self._scoped(select(model.id).where(model.number == number), model)
        ).first()
        if taken is not None:
            raise DuplicateDocumentNumberError(document_type.value, number)
        return number

    def _create_document(
        self,
        document_type: DocumentType,
        input: DocumentInput,
        user_id: UUID,
    ):
        problems = _document_input_problems(input)
        if problems:
            raise InvalidInputError(problems)

        currency = input.currency.upper()
        computed = calculate_document(
            [
                TaxableLine(
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    tax_code=line.tax_code,
                    tax_rate=line.tax_rate,
                    tax_account_id=line.tax_account_id,
                    account_id=line.account_id,
                    tax_inclusive=line.tax_inclusive,
                )
                for line in input.lines
            ],
            currency,
            self._tax_rates,
        )

        for field_name, supplied, derived in (
            ("subtotal", input.subtotal, computed.subtotal),
            ("tax_total", input.tax_total, computed.tax_total),
            ("total", input.total, computed.total),
        ):
            if supplied is not None and not Money.of(supplied, currency).within_tolerance(derived):
                raise LineTotalMismatchError(field_name, supplied, derived.amount)

        missing_tax_accounts = [
            f"line {number}: tax account is required for tax code {line_tax.tax_code}"
            for number, line_tax in enumerate(computed.line_taxes, start=1)
            if not line_tax.tax_amount.is_zero and line_tax.tax_account_id is None
        ]
        if missing_tax_accounts:
            raise InvalidInputError(missing_tax_accounts)

        number = self._allocate_number(document_type, input.number, user_id)
        header_model, line_model = _DOCUMENT_MODELS[document_type]
        scope_columns = self._scope_columns()
        document = header_model(
            number=number,
            document_date=input.document_date,
            due_date=input.due_date,
            currency=currency,
            exchange_rate=input.exchange_rate,
            status=DocumentStatus.DRAFT.value,
            control_account_id=input.control_account_id,
            subtotal=computed.subtotal.amount,
            tax_total=computed.tax_total.amount,
            total=computed.total.amount,
            amount_paid=Decimal("0"),
            reference=input.reference,
            description=input.description,
            created_by_id=user_id,
            **scope_columns,
        )
        if document_type == DocumentType.INVOICE:
            document.customer_id = input.party_id
        else:
            document.supplier_id = input.party_id
            document.supplier_reference = getattr(input, "supplier_reference", None)

        for number, (line, line_tax) in enumerate(zip(input.lines, computed.line_taxes), start=1):
            document.lines.append(
                line_model(
                    line_number=number,
                    description=line.description,
                    account_id=line.account_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    tax_code=line_tax.tax_code,
                    tax_rate=line_tax.rate,
                    tax_account_id=line_tax.tax_account_id,
                    line_amount=line_tax.line_amount.amount,
                    tax_amount=line_tax.tax_amount.amount,
                    created_by_id=user_id,
                    **scope_columns,
                )
            )

        self._session.add(document)
        self._session.flush()
        return document

    def _check_document_balanced(self, document) -> None:
        """Control amount must equal revenue/expense plus tax."""
        net = sum((line.line_amount for line in document.lines), Decimal("0"))
        tax = sum((line.tax_amount for line in document.lines), Decimal("0"))
        if document.total != net + tax or document.subtotal != net or document.tax_total != tax:
            raise UnbalancedJournalError(document.total, net + tax, document.currency)

    def _check_document_accounts(
        self,
        document_type: DocumentType,
        document,
        accounts: Mapping[UUID, AccountInfo],
    ) -> None:
        role, types = _CONTROL_RULES[document_type]
        coa.validate_account_type(document.control_account_id, accounts, types, role)

        line_role, line_types = _LINE_RULES[document_type]
        tax_role, tax_types = _TAX_RULES[document_type]
        for line in document.lines:
            coa.validate_account_type(line.account_id, accounts, line_types, line_role)
            if line.tax_amount and line.tax_account_id is not None:
                coa.validate_account_type(line.tax_account_id, accounts, tax_types, tax_role)

    def _load_allocated_documents(
        self,
        document_type: DocumentType,
        input: PaymentInput,
        currency: str,
    ) -> list[tuple[Invoice | Bill, Decimal]]:
        """Lock every allocated document and check the allocation against it."""
        per_document: dict[UUID, Decimal] = {}
        for allocation in input.allocations:
            per_document[allocation.document_id] = (
                per_document.get(allocation.document_id, Decimal("0")) + allocation.amount
            )

        settled: list[tuple[Invoice | Bill, Decimal]] = []
        for document_id, amount in per_document.items():
            document = self._load_document(document_type, document_id, for_update=True)
            if not document.status_enum.accepts_payment:
                raise InvalidDocumentStateError(document.number, document.status, "allocate_payment")
            if document.currency != currency:
                raise InvalidInputError(
                    [f"{document.number} is in {document.currency}, payment is in {currency}"]
                )
            if amount > document.outstanding:
                raise AllocationExceedsOutstandingError(document.number, amount, document.outstanding)
            settled.append((document, amount))
        return settled

    def _apply_allocations(self, payment: Payment, user_id: UUID) -> None:
        document_type = DocumentType(PaymentType(payment.payment_type).document_type)
        for allocation in payment.allocations:
            document = self._load_document(document_type, allocation.document_id, for_update=True)
            if allocation.amount > document.outstanding:
                raise AllocationExceedsOutstandingError(
                    document.number, allocation.amount, document.outstanding
                )
            document.amount_paid = document.amount_paid + allocation.amount
            document.status = (
                DocumentStatus.PAID.value
                if document.outstanding <= 0
                else DocumentStatus.PARTIALLY_PAID.value
            )
            document.updated_by_id = user_id
            logger.info(
                "payment_applied",
                extra={
                    "payment_number": payment.number,
                    "document_number": document.number,
                    "amount": str(allocation.amount),
                    "outstanding": str(document.outstanding),
                    "status": document.status,
                },
            )
        self._session.flush()

    # =========================================================================
    # Journal construction
    # =========================================================================

    def _resolve_rate(
        self,
        currency: str,
        base: str,
        posting_date: date,
        supplied: Decimal | None,
        review_flags: list[str],
    ) -> _FxResolution:
        if currency == base:
            return _FxResolution(rate=Decimal("1"), foreign=False)
        if supplied is not None:
            return _FxResolution(rate=supplied, foreign=True)

        fx_rate = self._fx_rates.require_rate(currency, base, posting_date)

        level = staleness_of(fx_rate, self._clock.now(), self._staleness)
        if requires_review(level):
            review_flags.append("stale_fx_rate")
            logger.warning(
                "stale_fx_rate_used",
                extra={
                    "from_currency": currency,
                    "to_currency": base,
                    "fx_rate_id": str(fx_rate.id),
                    "staleness": level.value,
                },
            )
        return _FxResolution(rate=fx_rate.rate, foreign=True, fx_rate_id=fx_rate.id)

    def _document_journal_lines(
        self,
        document_type: DocumentType,
        document,
        rate: Decimal,
        base: str,
    ) -> list[JournalLineSpec]:
        """
        Control line first, then one line per revenue/expense account, then
        one line per tax group.  The control line is the sum of the others.
        """
        currency = document.currency
        per_account: dict[UUID, Decimal] = {}
        for line in document.lines:
            per_account[line.account_id] = (
                per_account.get(line.account_id, Decimal("0")) + line.line_amount
            )

        line_taxes = [
            LineTax(
                line_amount=Money.of(line.line_amount, currency),
                tax_amount=Money.of(line.tax_amount, currency),
                tax_code=line.tax_code or ZERO_RATED_CODE,
                rate=line.tax_rate or Decimal("0"),
                tax_account_id=line.tax_account_id,
                account_id=line.account_id,
            )
            for line in document.lines
        ]

        others: list[tuple[UUID, Decimal, str]] = []
        label = "Revenue" if document_type == DocumentType.INVOICE else "Expense"
        for account_id, amount in per_account.items():
            others.append((account_id, _convert(amount, currency, rate, base), label))
        for group in group_taxes_by_code(line_taxes):
            others.append(
                (
                    group.tax_account_id,
                    _convert(group.tax_amount.amount, currency, rate, base),
                    f"Tax {group.tax_code}",
                )
            )

        others = [item for item in others if item[1] != 0]
        control_amount = sum((amount for _, amount, _ in others), Decimal("0"))
        if control_amount == 0:
            return []

        description = f"{document_type.value} {document.number}"
        # Invoice: Dr AR / Cr revenue and output tax.  Bill: the mirror image.
        debit_control = document_type == DocumentType.INVOICE
        lines = [_line(document.control_account_id, control_amount, debit_control, description)]
        for account_id, amount, text in others:
            lines.append(
                _line(account_id, amount, not debit_control, f"{text} {document.number}")
            )
        return lines

    def _booked_relief(
        self,
        document_type: DocumentType,
        document: Invoice | Bill,
        amount: Decimal,
        base: str,
    ) -> Decimal:
        """
        Base amount by which paying ``amount`` relieves the control account.

        Relief is taken at the document's own rate, and the payment that
        settles the document relieves whatever the earlier ones left, so
        a fully paid document clears the control line it booked exactly.
        """
        if document.currency == base:
            return amount
        rate = document.exchange_rate or Decimal("1")
        lines = self._document_journal_lines(document_type, document, rate, base)
        booked = lines[0].amount if lines else Decimal("0")

        def carried(paid: Decimal) -> Decimal:
            if paid >= document.total:
                return booked
            return _convert(paid, document.currency, rate, base)

        return carried(document.amount_paid + amount) - carried(document.amount_paid)

    def _policy_account(
        self,
        code: str | None,
        role: str,
        types: tuple[AccountType, ...],
        accounts: Mapping[UUID, AccountInfo],
    ) -> UUID:
        if code is None:
            raise InvalidInputError([f"no {role} account is configured"])
        for account in accounts.values():
            if account.code == code:
                coa.validate_account_type(account.account_id, accounts, types, role)
                return account.account_id
        raise InvalidInputError([f"{role} account {code} is not in the chart of accounts"])

    def _payment_journal_lines(
        self,
        payment_type: PaymentType,
        input: PaymentInput,
        settled: Sequence[tuple[Invoice | Bill, Decimal]],
        rate: Decimal,
        currency: str,
        base: str,
        accounts: Mapping[UUID, AccountInfo],
    ) -> list[JournalLineSpec]:
        """
        IN:  Dr Bank (net), Dr bank charges, Dr withholding, Cr AR per
             account, Cr customer advance.
        OUT: Dr AP per account, Dr supplier prepayment, Dr bank charges,
             Cr Bank, Cr withholding.

        Control accounts are relieved at the documents' booked rate and the
        bank at the payment rate; the difference is a realized FX gain
        (credit) or loss (debit).  The unallocated part of the amount is an
        advance (IN) or prepayment (OUT).
        """
        document_type = DocumentType(payment_type.document_type)
        posting = self._config.posting
        incoming = payment_type == PaymentType.IN

        per_control: dict[UUID, Decimal] = {}
        allocated = Decimal("0")
        for document, amount in settled:
            allocated += amount
            per_control[document.control_account_id] = per_control.get(
                document.control_account_id, Decimal("0")
            ) + self._booked_relief(document_type, document, amount, base)

        gross = _convert(input.amount, currency, rate, base)
        unallocated = gross - _convert(allocated, currency, rate, base)
        charges = _convert(input.bank_charges, currency, rate, base)
        withholding = _convert(input.withholding_tax, currency, rate, base)

        if incoming:
            bank = gross - charges - withholding
        else:
            bank = gross - withholding + charges
        if bank <= 0:
            raise InvalidInputError(["bank charges and withholding exceed the payment amount"])

        description = f"Payment {payment_type.value}"
        lines: list[JournalLineSpec] = []
        if incoming:
            lines.append(_line(input.bank_account_id, bank, True, description))
        for account_id, amount in per_control.items():
            if amount:
                lines.append(_line(account_id, amount, not incoming, description))
        if unallocated:
            if incoming:
                advance_id = self._policy_account(
                    posting.customer_advance_account,
                    "customer_advance",
                    (AccountType.LIABILITY,),
                    accounts,
                )
                lines.append(_line(advance_id, unallocated, False, "Customer advance"))
            else:
                advance_id = self._policy_account(
                    posting.supplier_prepayment_account,
                    "supplier_prepayment",
                    (AccountType.ASSET,),
                    accounts,
                )
                lines.append(_line(advance_id, unallocated, True, "Supplier prepayment"))
        if charges:
            lines.append(_line(input.bank_charges_account_id, charges, True, "Bank charges"))
        if withholding:
            lines.append(
                _line(input.withholding_account_id, withholding, incoming, "Withholding tax")
            )
        if not incoming:
            lines.append(_line(input.bank_account_id, bank, False, description))

        difference = sum((line.debit for line in lines), Decimal("0")) - sum(
            (line.credit for line in lines), Decimal("0")
        )
        if difference > 0:
            gain_id = self._policy_account(
                posting.fx_gain_account, "fx_gain", (AccountType.REVENUE,), accounts
            )
            lines.append(_line(gain_id, difference, False, "Realized FX gain"))
        elif difference < 0:
            loss_id = self._policy_account(
                posting.fx_loss_account, "fx_loss", (AccountType.EXPENSE,), accounts
            )
            lines.append(_line(loss_id, -difference, True, "Realized FX loss"))
        return lines

    def _draft(
        self,
        document_type: DocumentType,
        source_id: UUID,
        number: str,
        journal_date: date,
        currency: str,
        reference: str | None,
        base: str,
        fx: _FxResolution,
        lines: list[JournalLineSpec],
        idempotency_key: str | None,
        review_flags: list[str],
    ) -> JournalDraft:
        return JournalDraft(
            journal_date=journal_date,
            currency=base,
            lines=tuple(lines),
            description=f"{document_type.value} {number}",
            reference=reference or number,
            idempotency_key=idempotency_key,
            source_type=document_type.value,
            source_id=source_id,
            document_currency=currency,
            exchange_rate=fx.rate if fx.foreign else None,
            fx_rate_id=fx.fx_rate_id,
            requires_review=bool(review_flags),
            review_reason=", ".join(review_flags) or None,
        )

    # =========================================================================
    # Policy
    # =========================================================================

    def _check_period(
        self,
        posting_date: date,
        user_role: str,
        force_post: bool,
        user_id: UUID,
        review_flags: list[str],
    ) -> None:
        """Open periods pass; closed/locked ones only with force_post and period:override."""
        try:
            self._periods.validate_posting_date(posting_date)
        except PeriodNotOpenError as exc:
            if not (force_post and self._rbac.has_permission(user_role, PERIOD_OVERRIDE)):
                raise
            review_flags.append("period_override")
            logger.warning(
                "period_override_used",
                extra={
                    "period_code": exc.period_code,
                    "period_status": exc.status,
                    "posting_date": str(posting_date),
                    "actor_id": str(user_id),
                    "role": user_role,
                },
            )

    def _journal_status(self, user_role: str, amount: Decimal) -> JournalStatus:
        if self._rbac.exceeds_threshold(user_role, amount):
            return JournalStatus.PENDING_APPROVAL
        return JournalStatus.POSTED

    def _find_idempotent(self, idempotency_key: str | None) -> JournalInfo | None:
        if idempotency_key is None:
            return None
        return self._journals.find_by_idempotency_key(idempotency_key)

    def _already_posted(self, document_type: DocumentType, journal: JournalInfo) -> PostingResult:
        number = None
        if journal.source_id is not None:
            model = _NUMBERED_MODELS.get(_document_type_of(journal) or document_type)
            number = self._session.execute(
                self._scoped(select(model.number).where(model.id == journal.source_id), model)
            ).scalar_one_or_none()
        return PostingResult(
            status=PostingStatus.ALREADY_POSTED,
            document_type=document_type,
            journal_id=journal.journal_id,
            journal_number=journal.journal_number,
            document_id=journal.source_id,
            document_number=number,
        )

    def _check_payment_input(self, input: PaymentInput) -> None:
        problems: list[str] = []
        try:
            currency = Currency(input.currency)
        except ValueError as exc:
            problems.append(str(exc))
            currency = None
        if input.amount <= 0:
            problems.append("payment amount must be positive")
        if any(allocation.amount <= 0 for allocation in input.allocations):
            problems.append("allocation amounts must be positive")
        allocated = sum((a.amount for a in input.allocations), Decimal("0"))
        if allocated > input.amount:
            problems.append(f"allocations total {allocated} but payment amount is {input.amount}")
        if input.bank_charges < 0 or input.withholding_tax < 0:
            problems.append("bank charges and withholding tax cannot be negative")
        if input.bank_charges and input.bank_charges_account_id is None:
            problems.append("bank charges require bank_charges_account_id")
        if input.withholding_tax and input.withholding_account_id is None:
            problems.append("withholding tax requires withholding_account_id")
        if input.exchange_rate is not None and input.exchange_rate <= 0:
            problems.append("exchange rate must be positive")
        if problems:
            raise InvalidInputError(problems)

        amounts = [("amount", input.amount)]
        amounts.extend(
            (f"allocation {number}", allocation.amount)
            for number, allocation in enumerate(input.allocations, start=1)
        )
        amounts.extend(
            [("bank_charges", input.bank_charges), ("withholding_tax", input.withholding_tax)]
        )
        for field_name, amount in amounts:
            if amount != amount.quantize(currency.minor_unit):
                raise AmountPrecisionError(
                    field_name, amount, currency.code, currency.decimal_places
                )


_EVENT_BY_STATUS = {
    PostingStatus.POSTED: "document_posted",
    PostingStatus.PENDING_APPROVAL: "document_pending_approval",
    PostingStatus.ALREADY_POSTED: "document_already_posted",
}


def _document_type_of(journal: JournalInfo) -> DocumentType | None:
    try:
        return DocumentType(journal.source_type)
    except ValueError:
        return None


def _convert(amount: Decimal, currency: str, rate: Decimal, base: str) -> Decimal:
    return Money.of(amount, currency).convert(rate, base).amount


def _line(account_id: UUID, amount: Decimal, is_debit: bool, description: str) -> JournalLineSpec:
    if is_debit:
        return JournalLineSpec(account_id=account_id, debit=amount, description=description)
    return JournalLineSpec(account_id=account_id, credit=amount, description=description)


def _with_review(draft: JournalDraft, review_flags: list[str]) -> JournalDraft:
    """Refresh the review flag after late checks (period override) appended to it."""
    reason = ", ".join(review_flags) or None
    if draft.requires_review == bool(review_flags) and draft.review_reason == reason:
        return draft
    return replace(draft, requires_review=bool(review_flags), review_reason=reason)


def _document_input_problems(input: DocumentInput) -> list[str]:
    problems: list[str] = []
    try:
        Currency(input.currency)
    except ValueError as exc:
        problems.append(str(exc))
    if not input.lines:
        problems.append("at least one line is required")
    for number, line in enumerate(input.lines, start=1):
        if line.quantity <= 0:
            problems.append(f"line {number}: quantity must be positive")
        if line.unit_price < 0:
            problems.append(f"line {number}: unit price cannot be negative")
    if input.exchange_rate is not None and input.exchange_rate <= 0:
        problems.append("exchange rate must be positive")
    if input.due_date is not None and input.due_date < input.document_date:
        problems.append("due date is before the document date")
    return problems
