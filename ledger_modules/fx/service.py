"""
FX Ingestion Service (``ledger_modules.fx.service``).

Responsibility
--------------
Fetches exchange rates from the configured sources, persists the first
successful quote through the kernel ``FxRateService`` and classifies the
age of stored rates.

Architecture position
---------------------
**Modules layer**.  Composes kernel ``FxRateService`` (persistence),
``ledger_engines.fx_staleness`` (classification) and the source adapters
in ``sources.py``.

Invariants enforced
-------------------
* Primaries are tried in ``order``, then fallbacks in ``order``.  Each
  source gets ``1 + max_retries`` attempts.
* Source failures never propagate across tiers.  A source that exhausts
  its attempts contributes one retryable ``FxIngestError`` to the result.
* Only a successful quote is written; a total failure writes nothing.
* Staleness thresholds are injected, never module state.

Failure modes
-------------
* Every source failed  -> ``FxIngestResult(rate=None, retryable=True)``
  carrying the per-source errors.  Nothing is raised.
* Unexpected exceptions from a source (programming errors) propagate.

Audit relevance
---------------
``fx_source_attempt_failed`` is logged for every failed attempt,
``fx_rate_ingested`` for every stored rate and ``fx_ingest_failed`` when
all sources are exhausted.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from ledger_engines.fx_staleness import (
    DEFAULT_STALENESS_CONFIG,
    FxStalenessConfig,
    StalenessLevel,
    classify_staleness,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import FxRateInfo, LedgerScope
from ledger_kernel.exceptions import FxIngestError, LedgerExternalError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.fx_rate_service import FxRateService
from ledger_modules.fx.config import FxSourceConfig, ordered_sources
from ledger_modules.fx.sources import FxRateSource

logger = get_logger("modules.fx.service")


def staleness_of(
    fx_rate: FxRateInfo,
    now: datetime,
    config: FxStalenessConfig = DEFAULT_STALENESS_CONFIG,
) -> StalenessLevel:
    """Classify ``fx_rate`` by its age at ``now``."""
    # A rate stamped slightly ahead of ``now`` counts as brand new.
    return classify_staleness(max(fx_rate.age_minutes(now), 0.0), config)


@dataclass(frozen=True)
class FxIngestResult:
    """Outcome of one ``ingest`` call."""

    from_currency: str
    to_currency: str
    rate: Decimal | None
    source: str | None
    attempts: int
    fx_rate: FxRateInfo | None = None
    errors: tuple[FxIngestError, ...] = ()
    retryable: bool = False

    @property
    def succeeded(self) -> bool:
        return self.rate is not None


@dataclass(frozen=True)
class FxBulkResult:
    """Summary of an ``ingest_many`` run."""

    results: tuple[FxIngestResult, ...]

    @property
    def updated(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.succeeded)

    @property
    def failed_pairs(self) -> list[tuple[str, str]]:
        return [(r.from_currency, r.to_currency) for r in self.results if not r.succeeded]


# Failures a source may legitimately produce; anything else is a bug.
_SOURCE_FAILURES = (LedgerExternalError, httpx.HTTPError, ValueError, KeyError)


class FxIngestionService:
    """
    Multi-source rate ingestion with per-source retries.

    Contract
    --------
    * ``sources`` pairs each configured source with its adapter; the order
      given is irrelevant, ``priority`` and ``order`` decide.
    * ``ingest`` never raises for source failures.

    Non-goals
    ---------
    * No backoff or scheduling; callers decide when to ingest again.
    """

    def __init__(
        self,
        session: Session,
        scope: LedgerScope,
        sources: Sequence[tuple[FxSourceConfig, FxRateSource]],
        actor_id: UUID,
        clock: Clock | None = None,
        staleness_config: FxStalenessConfig | None = None,
    ):
        self._clock = clock or SystemClock()
        self._rates = FxRateService(session, scope, self._clock)
        self._adapters = {config.name: adapter for config, adapter in sources}
        self._sources = ordered_sources([config for config, _ in sources])
        self._actor_id = actor_id
        self._staleness_config = staleness_config or DEFAULT_STALENESS_CONFIG

    @property
    def rate_service(self) -> FxRateService:
        return self._rates

    def _try_source(
        self,
        config: FxSourceConfig,
        from_currency: str,
        to_currency: str,
        as_of: date | None,
    ):
        """Returns (fetched rate or None, attempts used, last failure reason)."""
        adapter = self._adapters[config.name]
        reason = ""
        max_attempts = 1 + config.max_retries
        for attempt in range(1, max_attempts + 1):
            try:
                fetched = adapter.fetch(
                    from_currency, to_currency, as_of, config.timeout_seconds
                )
                return fetched, attempt, ""
            except _SOURCE_FAILURES as exc:
                reason = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "fx_source_attempt_failed",
                    extra={
                        "source": config.name,
                        "priority": config.priority,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "from_currency": from_currency,
                        "to_currency": to_currency,
                        "error": reason,
                    },
                )
        return None, max_attempts, reason

    def ingest(
        self,
        from_currency: str,
        to_currency: str,
        as_of: date | None = None,
    ) -> FxIngestResult:
        """
        Fetch and store the rate for one pair.

        Same-currency requests return a rate of 1 without touching any
        source or the database.
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return FxIngestResult(
                from_currency=from_currency,
                to_currency=to_currency,
                rate=Decimal("1"),
                source=None,
                attempts=0,
            )

        t0 = time.monotonic()
        errors: list[FxIngestError] = []
        total_attempts = 0

        for config in self._sources:
            fetched, attempts, reason = self._try_source(config, from_currency, to_currency, as_of)
            total_attempts += attempts
            if fetched is None:
                errors.append(FxIngestError(config.name, attempts, reason))
                continue

            now = self._clock.now()
            fx_rate = self._rates.record_rate(
                from_currency,
                to_currency,
                fetched.rate,
                source=config.name,
                actor_id=self._actor_id,
                valid_from=fetched.as_of or as_of or now.date(),
                ingested_at=now,
            )
            logger.info(
                "fx_rate_ingested",
                extra={
                    "from_currency": from_currency,
                    "to_currency": to_currency,
                    "rate": str(fetched.rate),
                    "source": config.name,
                    "attempts": total_attempts,
                    "failed_sources": [e.source for e in errors],
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return FxIngestResult(
                from_currency=from_currency,
                to_currency=to_currency,
                rate=fetched.rate,
                source=config.name,
                attempts=total_attempts,
                fx_rate=fx_rate,
                errors=tuple(errors),
            )

        logger.error(
            "fx_ingest_failed",
            extra={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "attempts": total_attempts,
                "sources": [e.source for e in errors],
                "retryable": True,
            },
        )
        return FxIngestResult(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=None,
            source=None,
            attempts=total_attempts,
            errors=tuple(errors),
            retryable=True,
        )

    def ingest_many(
        self,
        pairs: Iterable[tuple[str, str]],
        as_of: date | None = None,
    ) -> FxBulkResult:
        results = tuple(self.ingest(f, t, as_of) for f, t in pairs)
        bulk = FxBulkResult(results)
        logger.info(
            "fx_bulk_ingest_completed",
            extra={"updated": bulk.updated, "failed": bulk.failed},
        )
        return bulk

    def staleness_of(self, fx_rate: FxRateInfo, now: datetime | None = None) -> StalenessLevel:
        return staleness_of(fx_rate, now or self._clock.now(), self._staleness_config)

    def latest_staleness(self, from_currency: str, to_currency: str) -> StalenessLevel | None:
        """Staleness of the newest stored rate for the pair, None if there is none."""
        fx_rate = self._rates.latest_rate(from_currency, to_currency)
        if fx_rate is None:
            return None
        return self.staleness_of(fx_rate)
