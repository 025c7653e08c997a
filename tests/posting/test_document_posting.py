"""
Invoice, bill and payment posting through DocumentPostingService.

Every scenario posts into January 2025 on the seeded MYR chart.
"""

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_config import PostingPolicy
from ledger_kernel.exceptions import InvalidDocumentStateError
from ledger_kernel.models.payment import PaymentType
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.fx_rate_service import FxRateService
from ledger_modules.posting import (
    AllocationInput,
    BillInput,
    DocumentLineInput,
    DocumentPostingService,
    DocumentType,
    InvoiceInput,
    PaymentInput,
    PostingStatus,
)
from ledger_modules.reporting import TrialBalanceInput
from tests.conftest import APPROVER_ID, CLOCK_START, TEST_ACTOR_ID

JAN_15 = date(2025, 1, 15)


@pytest.fixture
def make_invoice(accounts):
    def _make(unit_price="1000", tax_code="SST10", quantity="1", **overrides):
        fields = dict(
            document_date=JAN_15,
            currency="MYR",
            control_account_id=accounts["1100"],
            lines=(
                DocumentLineInput(
                    account_id=accounts["4000"],
                    quantity=Decimal(quantity),
                    unit_price=Decimal(unit_price),
                    description="Consulting",
                    tax_code=tax_code,
                    tax_account_id=accounts["2100"] if tax_code else None,
                ),
            ),
        )
        fields.update(overrides)
        return InvoiceInput(**fields)

    return _make


@pytest.fixture
def journals(session, scope):
    return JournalSelector(session, scope)


def _lines(journal, accounts):
    codes = {account_id: code for code, account_id in accounts.items()}
    return [(codes[line.account_id], line.debit, line.credit) for line in journal.lines]


def _receipt(accounts, invoice_id, amount, **overrides):
    fields = dict(
        payment_type=PaymentType.IN,
        payment_date=date(2025, 1, 20),
        currency="MYR",
        bank_account_id=accounts["1010"],
        amount=Decimal(amount),
        allocations=(AllocationInput(invoice_id, Decimal(amount)),),
    )
    fields.update(overrides)
    return PaymentInput(**fields)


class TestInvoicePosting:
    def test_invoice_with_sales_tax(self, posting_service, periods, accounts, make_invoice, journals):
        result = posting_service.post_invoice(make_invoice(), TEST_ACTOR_ID, "accountant")

        assert result.status == PostingStatus.POSTED
        assert result.document_number == "ACME-INV-00001"
        assert result.journal_number.startswith("ACME-JE-")

        journal = journals.get(result.journal_id)
        assert journal.status == "posted"
        assert journal.source_type == "INVOICE"
        assert _lines(journal, accounts) == [
            ("1100", Decimal("1100"), Decimal("0")),
            ("4000", Decimal("0"), Decimal("1000")),
            ("2100", Decimal("0"), Decimal("100")),
        ]

        summary = posting_service.get_document(DocumentType.INVOICE, result.document_id)
        assert summary.status == "posted"
        assert summary.total == Decimal("1100")
        assert summary.outstanding == Decimal("1100")

    def test_zero_rated_invoice_has_no_tax_line(self, posting_service, periods, accounts, make_invoice, journals):
        result = posting_service.post_invoice(make_invoice(tax_code=None), TEST_ACTOR_ID, "accountant")

        assert [code for code, _, _ in _lines(journals.get(result.journal_id), accounts)] == [
            "1100",
            "4000",
        ]

    def test_tax_without_tax_account_rejected(self, posting_service, periods, accounts, make_invoice):
        line = DocumentLineInput(
            account_id=accounts["4000"],
            quantity=Decimal("1"),
            unit_price=Decimal("100"),
            tax_code="SST10",
        )
        result = posting_service.post_invoice(
            make_invoice(lines=(line,)), TEST_ACTOR_ID, "accountant"
        )

        assert result.status == PostingStatus.REJECTED
        assert result.error.code == "INVALID_INPUT"

    def test_header_total_mismatch(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(total=Decimal("1200")), TEST_ACTOR_ID, "accountant"
        )

        assert result.status == PostingStatus.REJECTED
        assert result.error.code == "LINE_TOTAL_MISMATCH"
        assert result.error.details["field"] == "total"

    def test_header_total_within_one_cent_accepted(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(total=Decimal("1100.01")), TEST_ACTOR_ID, "accountant"
        )

        assert result.status == PostingStatus.POSTED

    def test_control_account_cannot_be_posted(self, posting_service, periods, accounts, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(control_account_id=accounts["1"]), TEST_ACTOR_ID, "accountant"
        )

        assert result.status == PostingStatus.REJECTED
        assert result.error.code == "CONTROL_ACCOUNT_POSTING"

    def test_expense_account_on_invoice_line_rejected(self, posting_service, periods, accounts, make_invoice):
        line = DocumentLineInput(
            account_id=accounts["5000"], quantity=Decimal("1"), unit_price=Decimal("10")
        )
        result = posting_service.post_invoice(
            make_invoice(lines=(line,)), TEST_ACTOR_ID, "accountant"
        )

        assert result.error.code == "ACCOUNT_TYPE_MISMATCH"
        assert result.error.details["role"] == "revenue"

    def test_duplicate_number_rejected(self, posting_service, periods, make_invoice):
        first = posting_service.post_invoice(make_invoice(number="INV-7"), TEST_ACTOR_ID, "accountant")
        second = posting_service.post_invoice(make_invoice(number="INV-7"), TEST_ACTOR_ID, "accountant")

        assert first.status == PostingStatus.POSTED
        assert second.error.code == "DUPLICATE_DOCUMENT_NUMBER"

    def test_idempotency_key_returns_original_journal(self, posting_service, periods, make_invoice):
        first = posting_service.post_invoice(
            make_invoice(idempotency_key="inv-2025-001"), TEST_ACTOR_ID, "accountant"
        )
        again = posting_service.post_invoice(
            make_invoice(idempotency_key="inv-2025-001"), TEST_ACTOR_ID, "accountant"
        )

        assert again.status == PostingStatus.ALREADY_POSTED
        assert again.journal_id == first.journal_id
        assert again.document_number == first.document_number

    def test_role_without_permission_rejected(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(make_invoice(), TEST_ACTOR_ID, "viewer")

        assert result.error.code == "PERMISSION_DENIED"

    def test_posted_event_logged(self, posting_service, periods, make_invoice, captured_logs):
        posting_service.post_invoice(make_invoice(), TEST_ACTOR_ID, "accountant")

        posted = [r for r in captured_logs() if r["message"] == "document_posted"]
        assert posted and posted[0]["document_number"] == "ACME-INV-00001"


class TestPeriodControl:
    def test_closed_period_rejects(self, posting_service, period_service, periods, make_invoice):
        period_service.close(periods["2025-01"].id, TEST_ACTOR_ID)

        result = posting_service.post_invoice(make_invoice(), TEST_ACTOR_ID, "accountant")

        assert result.error.code == "PERIOD_NOT_OPEN"

    def test_force_post_needs_override_permission(self, posting_service, period_service, periods, make_invoice):
        period_service.close(periods["2025-01"].id, TEST_ACTOR_ID)

        denied = posting_service.post_invoice(
            make_invoice(force_post=True), TEST_ACTOR_ID, "accountant"
        )
        forced = posting_service.post_invoice(
            make_invoice(force_post=True), TEST_ACTOR_ID, "manager"
        )

        assert denied.error.code == "PERIOD_NOT_OPEN"
        assert forced.status == PostingStatus.POSTED
        assert forced.review_flags == ("period_override",)

    def test_no_period_for_date(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(document_date=date(2024, 6, 1)), TEST_ACTOR_ID, "accountant"
        )

        assert result.error.code == "PERIOD_NOT_FOUND"


class TestApproval:
    def test_over_threshold_waits_for_second_user(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(unit_price="15000", tax_code=None), TEST_ACTOR_ID, "clerk"
        )

        assert result.status == PostingStatus.PENDING_APPROVAL
        assert posting_service.get_document(DocumentType.INVOICE, result.document_id).status == "validated"

        self_approved = posting_service.approve_journal(result.journal_id, TEST_ACTOR_ID, "manager")
        assert self_approved.error.code == "SOD_VIOLATION"

        approved = posting_service.approve_journal(result.journal_id, APPROVER_ID, "manager")
        assert approved.status == PostingStatus.POSTED
        assert approved.document_number == result.document_number
        assert posting_service.get_document(DocumentType.INVOICE, result.document_id).status == "posted"

    def test_approver_needs_permission(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(unit_price="15000", tax_code=None), TEST_ACTOR_ID, "clerk"
        )

        denied = posting_service.approve_journal(result.journal_id, APPROVER_ID, "accountant")

        assert denied.error.code == "PERMISSION_DENIED"

    def test_under_threshold_posts_directly(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(unit_price="9000", tax_code=None), TEST_ACTOR_ID, "clerk"
        )

        assert result.status == PostingStatus.POSTED


class TestDocumentLifecycle:
    def test_draft_validate_post(self, posting_service, periods, make_invoice):
        draft = posting_service.save_draft(DocumentType.INVOICE, make_invoice(), TEST_ACTOR_ID, "clerk")
        assert draft.status == "draft"

        validated = posting_service.validate_document(DocumentType.INVOICE, draft.document_id, TEST_ACTOR_ID)
        assert validated.status == "validated"

        result = posting_service.post_document(
            DocumentType.INVOICE, draft.document_id, TEST_ACTOR_ID, "accountant"
        )
        assert result.status == PostingStatus.POSTED

        again = posting_service.post_document(
            DocumentType.INVOICE, draft.document_id, TEST_ACTOR_ID, "accountant"
        )
        assert again.status == PostingStatus.ALREADY_POSTED
        assert again.journal_id == result.journal_id

    def test_key_bound_to_another_document_conflicts(self, posting_service, periods, make_invoice):
        first = posting_service.post_invoice(
            make_invoice(idempotency_key="sync-7"), TEST_ACTOR_ID, "accountant"
        )
        draft = posting_service.save_draft(
            DocumentType.INVOICE, make_invoice(unit_price="250"), TEST_ACTOR_ID, "clerk"
        )

        result = posting_service.post_document(
            DocumentType.INVOICE,
            draft.document_id,
            TEST_ACTOR_ID,
            "accountant",
            idempotency_key="sync-7",
        )

        assert result.status == PostingStatus.REJECTED
        assert result.error.code == "IDEMPOTENCY_CONFLICT"
        assert result.error.details["journal_number"] == first.journal_number
        summary = posting_service.get_document(DocumentType.INVOICE, draft.document_id)
        assert summary.status == "draft"
        assert summary.journal_id is None

    def test_close_requires_paid(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(make_invoice(), TEST_ACTOR_ID, "accountant")

        with pytest.raises(InvalidDocumentStateError):
            posting_service.close_document(DocumentType.INVOICE, result.document_id, TEST_ACTOR_ID)


class TestBillPosting:
    def test_bill_with_service_tax(self, posting_service, periods, accounts, journals):
        bill = BillInput(
            document_date=JAN_15,
            currency="MYR",
            control_account_id=accounts["2000"],
            lines=(
                DocumentLineInput(
                    account_id=accounts["5000"],
                    quantity=Decimal("2"),
                    unit_price=Decimal("250"),
                    tax_code="SST6",
                    tax_account_id=accounts["1200"],
                ),
            ),
            supplier_reference="SUP-881",
        )

        result = posting_service.post_bill(bill, TEST_ACTOR_ID, "accountant")

        assert result.document_number == "ACME-BILL-00001"
        assert _lines(journals.get(result.journal_id), accounts) == [
            ("2000", Decimal("0"), Decimal("530")),
            ("5000", Decimal("500"), Decimal("0")),
            ("1200", Decimal("30"), Decimal("0")),
        ]

    def test_bill_control_must_be_liability(self, posting_service, periods, accounts):
        bill = BillInput(
            document_date=JAN_15,
            currency="MYR",
            control_account_id=accounts["1100"],
            lines=(
                DocumentLineInput(account_id=accounts["5000"], quantity=Decimal("1"), unit_price=Decimal("5")),
            ),
        )

        result = posting_service.post_bill(bill, TEST_ACTOR_ID, "accountant")

        assert result.error.code == "ACCOUNT_TYPE_MISMATCH"
        assert result.error.details["role"] == "ap_control"

    def test_header_control_account_rejected(self, posting_service, periods, accounts):
        bill = BillInput(
            document_date=JAN_15,
            currency="MYR",
            control_account_id=accounts["2"],
            lines=(
                DocumentLineInput(account_id=accounts["5000"], quantity=Decimal("1"), unit_price=Decimal("5")),
            ),
        )

        result = posting_service.post_bill(bill, TEST_ACTOR_ID, "accountant")

        assert result.error.code == "CONTROL_ACCOUNT_POSTING"

    def test_overpaid_bill_leaves_supplier_prepayment(self, posting_service, periods, accounts, journals):
        bill = posting_service.post_bill(
            BillInput(
                document_date=JAN_15,
                currency="MYR",
                control_account_id=accounts["2000"],
                lines=(
                    DocumentLineInput(
                        account_id=accounts["5000"], quantity=Decimal("1"), unit_price=Decimal("530")
                    ),
                ),
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        payment = posting_service.post_payment(
            _receipt(
                accounts,
                bill.document_id,
                "600",
                payment_type=PaymentType.OUT,
                allocations=(AllocationInput(bill.document_id, Decimal("530")),),
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert _lines(journals.get(payment.journal_id), accounts) == [
            ("2000", Decimal("530"), Decimal("0")),
            ("1300", Decimal("70"), Decimal("0")),
            ("1010", Decimal("0"), Decimal("600")),
        ]
        assert posting_service.get_document(DocumentType.BILL, bill.document_id).status == "paid"


class TestPayments:
    @pytest.fixture
    def invoice(self, posting_service, periods, make_invoice):
        return posting_service.post_invoice(make_invoice(), TEST_ACTOR_ID, "accountant")

    def test_partial_then_full_settlement(self, posting_service, accounts, invoice, journals):
        first = posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "500"), TEST_ACTOR_ID, "accountant"
        )

        assert first.status == PostingStatus.POSTED
        assert first.document_number == "ACME-PAY-00001"
        assert _lines(journals.get(first.journal_id), accounts) == [
            ("1010", Decimal("500"), Decimal("0")),
            ("1100", Decimal("0"), Decimal("500")),
        ]
        summary = posting_service.get_document(DocumentType.INVOICE, invoice.document_id)
        assert summary.status == "partially_paid"
        assert summary.outstanding == Decimal("600")

        posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "600"), TEST_ACTOR_ID, "accountant"
        )
        summary = posting_service.get_document(DocumentType.INVOICE, invoice.document_id)
        assert summary.status == "paid"
        assert summary.outstanding == Decimal("0")

        closed = posting_service.close_document(DocumentType.INVOICE, invoice.document_id, TEST_ACTOR_ID)
        assert closed.status == "closed"

    def test_over_allocation_rejected(self, posting_service, accounts, invoice):
        result = posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "1100.50"), TEST_ACTOR_ID, "accountant"
        )

        assert result.error.code == "ALLOCATION_EXCEEDS_OUTSTANDING"
        summary = posting_service.get_document(DocumentType.INVOICE, invoice.document_id)
        assert summary.amount_paid == Decimal("0")

    def test_overpayment_becomes_customer_advance(self, posting_service, accounts, invoice, journals):
        result = posting_service.post_payment(
            _receipt(
                accounts,
                invoice.document_id,
                "1500",
                allocations=(AllocationInput(invoice.document_id, Decimal("1100")),),
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert result.status == PostingStatus.POSTED
        assert _lines(journals.get(result.journal_id), accounts) == [
            ("1010", Decimal("1500"), Decimal("0")),
            ("1100", Decimal("0"), Decimal("1100")),
            ("2200", Decimal("0"), Decimal("400")),
        ]
        assert posting_service.get_document(DocumentType.INVOICE, invoice.document_id).status == "paid"

    def test_unallocated_receipt_is_all_advance(self, posting_service, periods, accounts, journals):
        result = posting_service.post_payment(
            _receipt(accounts, None, "300", allocations=()), TEST_ACTOR_ID, "accountant"
        )

        assert _lines(journals.get(result.journal_id), accounts) == [
            ("1010", Decimal("300"), Decimal("0")),
            ("2200", Decimal("0"), Decimal("300")),
        ]

    def test_allocations_cannot_exceed_amount(self, posting_service, accounts, invoice):
        result = posting_service.post_payment(
            _receipt(
                accounts,
                invoice.document_id,
                "400",
                allocations=(AllocationInput(invoice.document_id, Decimal("500")),),
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert result.error.code == "INVALID_INPUT"
        summary = posting_service.get_document(DocumentType.INVOICE, invoice.document_id)
        assert summary.amount_paid == Decimal("0")

    def test_advance_needs_configured_account(
        self, session, scope, config, deterministic_clock, rbac, accounts, invoice
    ):
        unconfigured = DocumentPostingService(
            session, scope, replace(config, posting=PostingPolicy()), deterministic_clock, rbac
        )

        result = unconfigured.post_payment(
            _receipt(
                accounts,
                invoice.document_id,
                "1500",
                allocations=(AllocationInput(invoice.document_id, Decimal("1100")),),
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert result.error.code == "INVALID_INPUT"
        assert "customer_advance" in result.error.details["problems"][0]

    def test_sub_cent_amount_rejected(self, posting_service, accounts, invoice, reporting_service):
        result = posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "100.005"), TEST_ACTOR_ID, "accountant"
        )

        assert result.error.code == "AMOUNT_PRECISION"
        assert result.error.details["field"] == "amount"
        tb = reporting_service.trial_balance(TrialBalanceInput(date(2025, 1, 31)))
        assert tb.account("1010") is None

    def test_header_bank_account_rejected(self, posting_service, accounts, invoice):
        result = posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "100", bank_account_id=accounts["1"]),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert result.error.code == "CONTROL_ACCOUNT_POSTING"

    def test_bank_must_be_an_asset(self, posting_service, accounts, invoice):
        result = posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "100", bank_account_id=accounts["4000"]),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert result.error.code == "ACCOUNT_TYPE_MISMATCH"
        assert result.error.details["role"] == "bank"

    def test_bank_charges_reduce_bank_line(self, posting_service, accounts, invoice, journals):
        result = posting_service.post_payment(
            _receipt(
                accounts,
                invoice.document_id,
                "1100",
                bank_charges=Decimal("5"),
                bank_charges_account_id=accounts["5200"],
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert _lines(journals.get(result.journal_id), accounts) == [
            ("1010", Decimal("1095"), Decimal("0")),
            ("1100", Decimal("0"), Decimal("1100")),
            ("5200", Decimal("5"), Decimal("0")),
        ]

    def test_outgoing_payment_cannot_settle_invoice(self, posting_service, accounts, invoice):
        result = posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "100", payment_type=PaymentType.OUT),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert result.error.code == "DOCUMENT_NOT_FOUND"

    def test_pending_payment_applies_on_approval(self, posting_service, accounts, periods, make_invoice):
        invoice = posting_service.post_invoice(
            make_invoice(unit_price="20000", tax_code=None), TEST_ACTOR_ID, "accountant"
        )
        payment = posting_service.post_payment(
            _receipt(accounts, invoice.document_id, "20000"), TEST_ACTOR_ID, "clerk"
        )

        assert payment.status == PostingStatus.PENDING_APPROVAL
        assert posting_service.get_document(DocumentType.INVOICE, invoice.document_id).amount_paid == 0

        posting_service.approve_journal(payment.journal_id, APPROVER_ID, "manager")

        assert posting_service.get_document(DocumentType.INVOICE, invoice.document_id).status == "paid"


class TestForeignCurrency:
    def test_supplied_rate_converts_to_base(self, posting_service, periods, accounts, make_invoice, journals):
        result = posting_service.post_invoice(
            make_invoice(currency="USD", unit_price="100", tax_code=None, exchange_rate=Decimal("4.5")),
            TEST_ACTOR_ID,
            "accountant",
        )

        journal = journals.get(result.journal_id)
        assert journal.currency == "MYR"
        assert _lines(journal, accounts) == [
            ("1100", Decimal("450"), Decimal("0")),
            ("4000", Decimal("0"), Decimal("450")),
        ]

    def test_missing_rate_rejected(self, posting_service, periods, make_invoice):
        result = posting_service.post_invoice(
            make_invoice(currency="USD", tax_code=None), TEST_ACTOR_ID, "accountant"
        )

        assert result.error.code == "EXCHANGE_RATE_REQUIRED"

    def test_stale_stored_rate_flags_review(
        self, session, scope, deterministic_clock, posting_service, periods, make_invoice, journals
    ):
        FxRateService(session, scope, deterministic_clock).record_rate(
            "USD",
            "MYR",
            Decimal("4.40"),
            source="central_bank",
            actor_id=TEST_ACTOR_ID,
            valid_from=date(2025, 1, 1),
            ingested_at=CLOCK_START - timedelta(days=3),
        )

        result = posting_service.post_invoice(
            make_invoice(currency="USD", unit_price="100", tax_code=None), TEST_ACTOR_ID, "accountant"
        )

        assert result.status == PostingStatus.POSTED
        assert result.review_flags == ("stale_fx_rate",)
        journal = journals.get(result.journal_id)
        assert journal.requires_review
        assert journal.review_reason == "stale_fx_rate"
        assert journal.total_debit == Decimal("440")


class TestRealizedFx:
    """USD 100 invoiced at 4.0 books 400 of receivable."""

    @pytest.fixture
    def usd_invoice(self, posting_service, periods, make_invoice):
        return posting_service.post_invoice(
            make_invoice(currency="USD", unit_price="100", tax_code=None, exchange_rate=Decimal("4.0")),
            TEST_ACTOR_ID,
            "accountant",
        )

    def _pay(self, posting_service, accounts, invoice_id, amount, rate):
        return posting_service.post_payment(
            _receipt(
                accounts, invoice_id, amount, currency="USD", exchange_rate=Decimal(rate)
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

    def test_stronger_currency_on_receipt_is_a_gain(self, posting_service, accounts, usd_invoice, journals):
        result = self._pay(posting_service, accounts, usd_invoice.document_id, "100", "4.2")

        assert _lines(journals.get(result.journal_id), accounts) == [
            ("1010", Decimal("420"), Decimal("0")),
            ("1100", Decimal("0"), Decimal("400")),
            ("4900", Decimal("0"), Decimal("20")),
        ]

    def test_weaker_currency_on_receipt_is_a_loss(self, posting_service, accounts, usd_invoice, journals):
        result = self._pay(posting_service, accounts, usd_invoice.document_id, "100", "3.9")

        assert _lines(journals.get(result.journal_id), accounts) == [
            ("1010", Decimal("390"), Decimal("0")),
            ("1100", Decimal("0"), Decimal("400")),
            ("5900", Decimal("10"), Decimal("0")),
        ]

    def test_same_rate_has_no_fx_line(self, posting_service, accounts, usd_invoice, journals):
        result = self._pay(posting_service, accounts, usd_invoice.document_id, "100", "4.0")

        assert [code for code, _, _ in _lines(journals.get(result.journal_id), accounts)] == [
            "1010",
            "1100",
        ]

    def test_instalments_clear_the_receivable(self, posting_service, reporting_service, accounts, usd_invoice):
        self._pay(posting_service, accounts, usd_invoice.document_id, "40", "4.2")
        self._pay(posting_service, accounts, usd_invoice.document_id, "60", "4.1")

        tb = reporting_service.trial_balance(TrialBalanceInput(date(2025, 1, 31)))
        assert tb.account("1100").closing_balance == Decimal("0")
        assert tb.account("4900").closing_balance == Decimal("14")
        assert tb.is_balanced
        summary = posting_service.get_document(DocumentType.INVOICE, usd_invoice.document_id)
        assert summary.status == "paid"

    def test_paying_a_bill_at_a_higher_rate_is_a_loss(self, posting_service, periods, accounts, journals):
        bill = posting_service.post_bill(
            BillInput(
                document_date=JAN_15,
                currency="USD",
                exchange_rate=Decimal("4.0"),
                control_account_id=accounts["2000"],
                lines=(
                    DocumentLineInput(
                        account_id=accounts["5000"], quantity=Decimal("1"), unit_price=Decimal("100")
                    ),
                ),
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        payment = posting_service.post_payment(
            _receipt(
                accounts,
                bill.document_id,
                "100",
                payment_type=PaymentType.OUT,
                currency="USD",
                exchange_rate=Decimal("4.2"),
            ),
            TEST_ACTOR_ID,
            "accountant",
        )

        assert _lines(journals.get(payment.journal_id), accounts) == [
            ("2000", Decimal("400"), Decimal("0")),
            ("1010", Decimal("0"), Decimal("420")),
            ("5900", Decimal("20"), Decimal("0")),
        ]
