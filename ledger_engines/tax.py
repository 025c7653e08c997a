"""
Tax Engine - Per-line and per-document tax computation and grouping.

Pure functions with no I/O.  Tax rates are provided as parameters.

Usage:
    from ledger_engines.tax import TaxCalculator, TaxRate, TaxableLine
    from decimal import Decimal

    rates = {
        "SST10": TaxRate(tax_code="SST10", tax_name="Sales tax 10%", rate=Decimal("0.10")),
    }

    calculator = TaxCalculator(rates)
    result = calculator.calculate_document(
        [TaxableLine(quantity=Decimal("1"), unit_price=Decimal("1000"), tax_code="SST10")],
        currency="MYR",
    )
    print(result.tax_total)  # Money: 100.00 MYR
    print(result.total)  # Money: 1100.00 MYR

Rounding:
    Line amount and line tax are each rounded ROUND_HALF_UP to the currency's
    minor unit.  Document totals are sums of rounded line values, so
    subtotal + tax_total == total exactly.

Tax code resolution:
    An explicit rate on the line wins.  Otherwise the rate table entry for
    the line's tax code is used.  A line with neither is zero-rated under
    code ``ZR``.  A code absent from the table with no explicit rate is an
    input error.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

ZERO_RATED_CODE = "ZR"


class TaxType(str, Enum):
    """Type of tax."""

    SALES = "sales"
    SERVICE = "service"
    GST = "gst"
    VAT = "vat"
    WITHHOLDING = "withholding"
    EXEMPT = "exempt"


@dataclass(frozen=True)
class TaxRate:
    """
    Tax rate definition.

    ``rate`` is a decimal fraction (0.10 for 10%).
    """

    tax_code: str
    tax_name: str
    rate: Decimal
    tax_type: TaxType = TaxType.SALES
    account_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.rate < Decimal("0"):
            raise ValueError("Tax rate cannot be negative")


@dataclass(frozen=True)
class TaxableLine:
    """One document line as seen by the tax engine."""

    quantity: Decimal
    unit_price: Decimal
    tax_code: str | None = None
    tax_rate: Decimal | None = None
    tax_account_id: UUID | None = None
    account_id: UUID | None = None
    tax_inclusive: bool = False


@dataclass(frozen=True)
class LineTax:
    """Computed net amount and tax of a single line."""

    line_amount: Money
    tax_amount: Money
    tax_code: str
    rate: Decimal
    tax_account_id: UUID | None = None
    account_id: UUID | None = None

    @property
    def gross_amount(self) -> Money:
        return self.line_amount + self.tax_amount


@dataclass(frozen=True)
class TaxGroup:
    """All line taxes of one code (and tax account), for a single GL line."""

    tax_code: str
    tax_account_id: UUID | None
    rate: Decimal
    taxable_amount: Money
    tax_amount: Money


@dataclass(frozen=True)
class DocumentTax:
    """Line-derived totals of a whole document."""

    subtotal: Money
    tax_total: Money
    total: Money
    line_taxes: tuple[LineTax, ...]
    groups: tuple[TaxGroup, ...]


def _round(amount: Decimal, currency: str) -> Money:
    return Money.of(amount, currency).round(ROUND_HALF_UP)


def _resolve_rate(
    line: TaxableLine,
    rates: Mapping[str, TaxRate],
) -> tuple[str, Decimal, UUID | None]:
    if line.tax_rate is not None:
        if line.tax_rate < 0:
            raise InvalidInputError([f"Negative tax rate {line.tax_rate}"])
        return line.tax_code or ZERO_RATED_CODE, line.tax_rate, line.tax_account_id

    if line.tax_code and line.tax_code != ZERO_RATED_CODE:
        tax_rate = rates.get(line.tax_code)
        if tax_rate is None:
            raise InvalidInputError([f"Unknown tax code {line.tax_code}"])
        return tax_rate.tax_code, tax_rate.rate, line.tax_account_id or tax_rate.account_id

    return ZERO_RATED_CODE, Decimal("0"), line.tax_account_id


def calculate_line_tax(
    line: TaxableLine,
    currency: str,
    rates: Mapping[str, TaxRate] | None = None,
) -> LineTax:
    """
    Compute quantity x unit price and its tax, rounded to currency precision.

    With ``tax_inclusive`` the extended price already contains the tax and
    the tax is backed out as price x rate / (1 + rate).
    """
    tax_code, rate, tax_account_id = _resolve_rate(line, rates or {})
    extended = line.quantity * line.unit_price

    if line.tax_inclusive:
        gross = _round(extended, currency)
        tax_amount = _round(gross.amount * rate / (Decimal("1") + rate), currency)
        line_amount = gross - tax_amount
    else:
        line_amount = _round(extended, currency)
        tax_amount = _round(line_amount.amount * rate, currency)

    return LineTax(
        line_amount=line_amount,
        tax_amount=tax_amount,
        tax_code=tax_code,
        rate=rate,
        tax_account_id=tax_account_id,
        account_id=line.account_id,
    )


def calculate_total_tax(line_taxes: Sequence[LineTax], currency: str | None = None) -> Money:
    if not line_taxes:
        if currency is None:
            raise ValueError("currency is required when there are no line taxes")
        return Money.zero(currency)

    total = line_taxes[0].tax_amount
    for line_tax in line_taxes[1:]:
        total = total + line_tax.tax_amount
    return total


def group_taxes_by_code(line_taxes: Sequence[LineTax]) -> list[TaxGroup]:
    """
    One group per distinct (tax code, tax account) in first-seen order.

    Groups whose tax sums to zero are dropped; they would produce an empty
    GL line.
    """
    groups: dict[tuple[str, UUID | None], TaxGroup] = {}
    for line_tax in line_taxes:
        key = (line_tax.tax_code, line_tax.tax_account_id)
        current = groups.get(key)
        if current is None:
            groups[key] = TaxGroup(
                tax_code=line_tax.tax_code,
                tax_account_id=line_tax.tax_account_id,
                rate=line_tax.rate,
                taxable_amount=line_tax.line_amount,
                tax_amount=line_tax.tax_amount,
            )
        else:
            groups[key] = TaxGroup(
                tax_code=current.tax_code,
                tax_account_id=current.tax_account_id,
                rate=current.rate,
                taxable_amount=current.taxable_amount + line_tax.line_amount,
                tax_amount=current.tax_amount + line_tax.tax_amount,
            )
    return [group for group in groups.values() if not group.tax_amount.is_zero]


def calculate_document(
    lines: Sequence[TaxableLine],
    currency: str,
    rates: Mapping[str, TaxRate] | None = None,
) -> DocumentTax:
    """Subtotal, tax total, total, per-line taxes and tax groups of a document."""
    t0 = time.monotonic()
    line_taxes = [calculate_line_tax(line, currency, rates) for line in lines]

    subtotal = Money.zero(currency)
    for line_tax in line_taxes:
        subtotal = subtotal + line_tax.line_amount
    tax_total = calculate_total_tax(line_taxes, currency)
    groups = group_taxes_by_code(line_taxes)

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.debug(
        "tax_document_calculated",
        extra={
            "line_count": len(line_taxes),
            "group_count": len(groups),
            "subtotal": str(subtotal.amount),
            "tax_total": str(tax_total.amount),
            "currency": currency,
            "duration_ms": duration_ms,
        },
    )

    return DocumentTax(
        subtotal=subtotal,
        tax_total=tax_total,
        total=subtotal + tax_total,
        line_taxes=tuple(line_taxes),
        groups=tuple(groups),
    )


class TaxCalculator:
    """
    Tax calculator bound to a rate table.

    Thin stateful wrapper over the module functions for callers that hold a
    configured rate table.
    """

    def __init__(self, rates: Mapping[str, TaxRate] | None = None):
        self._rates = dict(rates or {})

    @property
    def rates(self) -> Mapping[str, TaxRate]:
        return dict(self._rates)

    def calculate_line(self, line: TaxableLine, currency: str) -> LineTax:
        return calculate_line_tax(line, currency, self._rates)

    def calculate_document(self, lines: Sequence[TaxableLine], currency: str) -> DocumentTax:
        return calculate_document(lines, currency, self._rates)
