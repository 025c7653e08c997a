"""
FX rate sources.

A source answers one question: what is the rate from one currency to
another on a given date.  Sources raise on failure; retrying and falling
back between sources is the ingestion service's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Protocol

import httpx

from ledger_kernel.exceptions import LedgerExternalError
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.fx.sources")


class FxSourceUnavailableError(LedgerExternalError):
    """A source answered but had no usable rate for the pair."""

    code: str = "FX_SOURCE_UNAVAILABLE"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(
            f"FX source {source} unavailable: {reason}",
            {"source": source, "reason": reason},
        )


@dataclass(frozen=True)
class FetchedRate:
    """A rate as returned by a source, before it is persisted."""

    from_currency: str
    to_currency: str
    rate: Decimal
    source: str
    as_of: date | None


class FxRateSource(Protocol):
    """Anything that can quote a currency pair."""

    name: str

    def fetch(
        self,
        from_currency: str,
        to_currency: str,
        as_of: date | None,
        timeout: float,
    ) -> FetchedRate: ...


def _to_rate(value: Any, source: str) -> Decimal:
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise FxSourceUnavailableError(source, f"malformed rate {value!r}") from exc
    if not rate.is_finite() or rate <= 0:
        raise FxSourceUnavailableError(source, f"non-positive rate {value!r}")
    return rate


class HttpJsonRateSource:
    """
    JSON-over-HTTP source in the exchangerate-api style.

    ``GET {base_url}/latest/{FROM}`` (or ``{base_url}/{YYYY-MM-DD}/{FROM}``
    for a dated quote) returning ``{"rates": {"TO": 4.71, ...}}``.
    ``conversion_rates`` is accepted as an alias of ``rates``.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        client: httpx.Client | None = None,
    ):
        self.name = name
        self._base_url = base_url.rstrip("/")
        self._client = client

    def _url(self, from_currency: str, as_of: date | None) -> str:
        segment = as_of.isoformat() if as_of is not None else "latest"
        return f"{self._base_url}/{segment}/{from_currency.upper()}"

    def _get(self, url: str, timeout: float) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, timeout=timeout)
        with httpx.Client() as client:
            return client.get(url, timeout=timeout)

    def fetch(
        self,
        from_currency: str,
        to_currency: str,
        as_of: date | None,
        timeout: float,
    ) -> FetchedRate:
        url = self._url(from_currency, as_of)
        response = self._get(url, timeout)
        response.raise_for_status()

        payload = response.json()
        rates: Mapping[str, Any] | None = payload.get("rates") or payload.get(
            "conversion_rates"
        )
        if not rates or to_currency.upper() not in rates:
            raise FxSourceUnavailableError(
                self.name, f"rate {from_currency}/{to_currency} not in response"
            )

        quoted = payload.get("date")
        logger.debug(
            "fx_source_response",
            extra={"source": self.name, "url": url, "status_code": response.status_code},
        )
        return FetchedRate(
            from_currency=from_currency.upper(),
            to_currency=to_currency.upper(),
            rate=_to_rate(rates[to_currency.upper()], self.name),
            source=self.name,
            as_of=date.fromisoformat(quoted) if quoted else as_of,
        )


class StaticRateSource:
    """Fixed rate table, for seeding and manual overrides."""

    def __init__(self, name: str, rates: Mapping[tuple[str, str], Decimal]):
        self.name = name
        self._rates = {
            (from_currency.upper(), to_currency.upper()): Decimal(str(rate))
            for (from_currency, to_currency), rate in rates.items()
        }

    def fetch(
        self,
        from_currency: str,
        to_currency: str,
        as_of: date | None,
        timeout: float,
    ) -> FetchedRate:
        key = (from_currency.upper(), to_currency.upper())
        if key not in self._rates:
            raise FxSourceUnavailableError(self.name, f"no static rate for {key[0]}/{key[1]}")
        return FetchedRate(
            from_currency=key[0],
            to_currency=key[1],
            rate=_to_rate(self._rates[key], self.name),
            source=self.name,
            as_of=as_of,
        )
