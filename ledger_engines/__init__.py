"""
Pure calculation engines: tax computation and FX staleness classification.

Engines take values in and return values out.  They never touch the
database and depend on the kernel only for value objects, exceptions and
logging.
"""

from ledger_engines.fx_staleness import (
    DEFAULT_STALENESS_CONFIG,
    FxStalenessConfig,
    StalenessLevel,
    classify_staleness,
    requires_review,
)
from ledger_engines.tax import (
    ZERO_RATED_CODE,
    DocumentTax,
    LineTax,
    TaxableLine,
    TaxCalculator,
    TaxGroup,
    TaxRate,
    TaxType,
    calculate_document,
    calculate_line_tax,
    calculate_total_tax,
    group_taxes_by_code,
)

__all__ = [
    "DEFAULT_STALENESS_CONFIG",
    "DocumentTax",
    "FxStalenessConfig",
    "LineTax",
    "StalenessLevel",
    "TaxCalculator",
    "TaxGroup",
    "TaxRate",
    "TaxType",
    "TaxableLine",
    "ZERO_RATED_CODE",
    "calculate_document",
    "calculate_line_tax",
    "calculate_total_tax",
    "classify_staleness",
    "group_taxes_by_code",
    "requires_review",
]
