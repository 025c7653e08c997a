"""
FX module configuration.

Source definitions come straight from ``ledger_config``; this module only
orders them, derives the staleness thresholds handed to the engine and
builds HTTP adapters for sources that name a ``base_url``.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx

from ledger_config.schema import FxPolicy, FxSourceDef
from ledger_engines.fx_staleness import FxStalenessConfig
from ledger_modules.fx.sources import HttpJsonRateSource

FxSourceConfig = FxSourceDef


def staleness_config_from_policy(policy: FxPolicy) -> FxStalenessConfig:
    return FxStalenessConfig(
        critical_minutes=policy.critical_minutes,
        warning_minutes=policy.warning_minutes,
        acceptable_minutes=policy.acceptable_minutes,
    )


def ordered_sources(sources: Sequence[FxSourceConfig]) -> list[FxSourceConfig]:
    """Primaries by ``order``, then fallbacks by ``order``; stable otherwise."""
    primaries = [s for s in sources if s.priority == "primary"]
    fallbacks = [s for s in sources if s.priority == "fallback"]
    return sorted(primaries, key=lambda s: s.order) + sorted(fallbacks, key=lambda s: s.order)


def http_sources_from_policy(
    policy: FxPolicy,
    client: httpx.Client | None = None,
) -> list[tuple[FxSourceConfig, HttpJsonRateSource]]:
    """Pair every configured source that has a ``base_url`` with an HTTP adapter."""
    return [
        (source, HttpJsonRateSource(source.name, source.base_url, client))
        for source in policy.sources
        if source.base_url
    ]
