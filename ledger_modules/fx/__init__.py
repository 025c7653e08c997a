"""
FX Module (``ledger_modules.fx``).

Multi-source exchange-rate ingestion with per-source retries and
fallbacks, plus staleness classification of stored rates.
"""

from ledger_modules.fx.config import (
    FxSourceConfig,
    http_sources_from_policy,
    ordered_sources,
    staleness_config_from_policy,
)
from ledger_modules.fx.service import (
    FxBulkResult,
    FxIngestionService,
    FxIngestResult,
    staleness_of,
)
from ledger_modules.fx.sources import (
    FetchedRate,
    FxRateSource,
    FxSourceUnavailableError,
    HttpJsonRateSource,
    StaticRateSource,
)

__all__ = [
    "FetchedRate",
    "FxBulkResult",
    "FxIngestResult",
    "FxIngestionService",
    "FxRateSource",
    "FxSourceConfig",
    "FxSourceUnavailableError",
    "HttpJsonRateSource",
    "http_sources_from_policy",
    "StaticRateSource",
    "ordered_sources",
    "staleness_config_from_policy",
    "staleness_of",
]
