"""
Currency -- ISO 4217 codes the ledger accepts and their minor-unit scale.

The scale drives every rounding decision: tax amounts, FX conversions and
the one-minor-unit tolerance used when comparing document totals and
trial balance columns.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

DEFAULT_DECIMAL_PLACES = 2


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    decimal_places: int
    name: str


def _table(*entries: tuple[str, int, str]) -> dict[str, CurrencyInfo]:
    return {code: CurrencyInfo(code, places, name) for code, places, name in entries}


class CurrencyRegistry:
    """Supported currencies keyed by ISO code."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = _table(
        ("MYR", 2, "Malaysian Ringgit"),
        ("SGD", 2, "Singapore Dollar"),
        ("USD", 2, "US Dollar"),
        ("EUR", 2, "Euro"),
        ("GBP", 2, "Pound Sterling"),
        ("AUD", 2, "Australian Dollar"),
        ("CAD", 2, "Canadian Dollar"),
        ("CHF", 2, "Swiss Franc"),
        ("CNY", 2, "Chinese Yuan"),
        ("HKD", 2, "Hong Kong Dollar"),
        ("INR", 2, "Indian Rupee"),
        ("IDR", 2, "Indonesian Rupiah"),
        ("THB", 2, "Thai Baht"),
        ("PHP", 2, "Philippine Peso"),
        ("NZD", 2, "New Zealand Dollar"),
        ("AED", 2, "UAE Dirham"),
        ("JPY", 0, "Japanese Yen"),
        ("KRW", 0, "South Korean Won"),
        ("VND", 0, "Vietnamese Dong"),
        ("BHD", 3, "Bahraini Dinar"),
        ("KWD", 3, "Kuwaiti Dinar"),
        ("OMR", 3, "Omani Rial"),
    )

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls._CURRENCIES.get(code)
        return info.decimal_places if info else DEFAULT_DECIMAL_PLACES

    @classmethod
    def get_rounding_tolerance(cls, code: str) -> Decimal:
        """One minor unit, e.g. 0.01 for MYR and 1 for JPY."""
        return Decimal(1).scaleb(-cls.get_decimal_places(code))
