"""
Tax engine tests: line tax, document totals and grouping by tax code.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ledger_engines.tax import (
    ZERO_RATED_CODE,
    TaxableLine,
    TaxCalculator,
    TaxRate,
    TaxType,
    calculate_document,
    calculate_line_tax,
    calculate_total_tax,
    group_taxes_by_code,
)
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import InvalidInputError

OUTPUT_TAX = uuid4()
RATES = {
    "SST10": TaxRate("SST10", "Sales tax 10%", Decimal("0.10"), TaxType.SALES, OUTPUT_TAX),
    "SST6": TaxRate("SST6", "Service tax 6%", Decimal("0.06"), TaxType.SERVICE),
}


class TestLineTax:
    def test_quantity_times_price_times_rate(self):
        line = TaxableLine(quantity=Decimal("10"), unit_price=Decimal("100"), tax_code="SST10")

        result = calculate_line_tax(line, "MYR", RATES)

        assert result.line_amount == Money.of("1000.00", "MYR")
        assert result.tax_amount == Money.of("100.00", "MYR")
        assert result.tax_code == "SST10"
        assert result.tax_account_id == OUTPUT_TAX

    def test_rounds_half_up_to_currency_precision(self):
        line = TaxableLine(quantity=Decimal("1"), unit_price=Decimal("0.25"), tax_code="SST10")

        result = calculate_line_tax(line, "MYR", RATES)

        # 0.025 rounds up
        assert result.tax_amount.amount == Decimal("0.03")

    def test_zero_decimal_currency(self):
        line = TaxableLine(quantity=Decimal("3"), unit_price=Decimal("333"), tax_code="SST6")

        result = calculate_line_tax(line, "JPY", RATES)

        assert result.tax_amount.amount == Decimal("60")

    def test_explicit_rate_overrides_table(self):
        line = TaxableLine(
            quantity=Decimal("1"),
            unit_price=Decimal("200"),
            tax_code="SST10",
            tax_rate=Decimal("0.08"),
        )

        result = calculate_line_tax(line, "MYR", RATES)

        assert result.tax_amount.amount == Decimal("16.00")
        assert result.rate == Decimal("0.08")

    def test_no_tax_code_is_zero_rated(self):
        line = TaxableLine(quantity=Decimal("2"), unit_price=Decimal("50"))

        result = calculate_line_tax(line, "MYR", RATES)

        assert result.tax_code == ZERO_RATED_CODE
        assert result.tax_amount.is_zero

    def test_unknown_code_without_rate_rejected(self):
        line = TaxableLine(quantity=Decimal("1"), unit_price=Decimal("10"), tax_code="GST99")

        with pytest.raises(InvalidInputError):
            calculate_line_tax(line, "MYR", RATES)

    def test_tax_inclusive_backs_out_tax(self):
        line = TaxableLine(
            quantity=Decimal("1"),
            unit_price=Decimal("110"),
            tax_code="SST10",
            tax_inclusive=True,
        )

        result = calculate_line_tax(line, "MYR", RATES)

        assert result.tax_amount.amount == Decimal("10.00")
        assert result.line_amount.amount == Decimal("100.00")


class TestDocumentTax:
    def test_totals_and_groups(self):
        revenue = uuid4()
        lines = [
            TaxableLine(Decimal("10"), Decimal("100"), "SST10", account_id=revenue),
            TaxableLine(Decimal("1"), Decimal("500"), "SST6", tax_account_id=OUTPUT_TAX),
            TaxableLine(Decimal("2"), Decimal("25"), "SST10", account_id=revenue),
        ]

        result = calculate_document(lines, "MYR", RATES)

        assert result.subtotal.amount == Decimal("1550.00")
        assert result.tax_total.amount == Decimal("135.00")
        assert result.total.amount == Decimal("1685.00")
        assert [(g.tax_code, g.tax_amount.amount) for g in result.groups] == [
            ("SST10", Decimal("105.00")),
            ("SST6", Decimal("30.00")),
        ]

    def test_zero_tax_groups_dropped(self):
        line_taxes = [
            calculate_line_tax(TaxableLine(Decimal("1"), Decimal("10")), "MYR", RATES),
        ]
        assert group_taxes_by_code(line_taxes) == []

    def test_total_tax_of_nothing_needs_currency(self):
        with pytest.raises(ValueError):
            calculate_total_tax([])
        assert calculate_total_tax([], "MYR").is_zero

    def test_calculator_binds_rate_table(self):
        calculator = TaxCalculator(RATES)
        result = calculator.calculate_document(
            [TaxableLine(Decimal("1"), Decimal("100"), "SST6")], "MYR"
        )
        assert result.tax_total.amount == Decimal("6.00")

    def test_calculator_single_line(self):
        line = TaxCalculator(RATES).calculate_line(
            TaxableLine(Decimal("3"), Decimal("10"), "SST10"), "MYR"
        )

        assert line.tax_amount.amount == Decimal("3.00")
        assert line.gross_amount.amount == Decimal("33.00")


class TestTaxProperties:
    @given(
        quantity=st.integers(min_value=1, max_value=1000),
        cents=st.integers(min_value=0, max_value=10_000_000),
    )
    def test_total_is_subtotal_plus_tax(self, quantity, cents):
        unit_price = Decimal(cents) / Decimal(100)
        result = calculate_document(
            [TaxableLine(Decimal(quantity), unit_price, "SST10")], "MYR", RATES
        )

        assert result.total == result.subtotal + result.tax_total
        assert result.tax_total.amount == result.tax_total.amount.quantize(Decimal("0.01"))
