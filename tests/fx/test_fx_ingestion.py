"""
FX ingestion: source ordering, retries, fallback and staleness of stored rates.
"""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from ledger_config.schema import FxPolicy, FxSourceDef
from ledger_engines.fx_staleness import StalenessLevel
from ledger_modules.fx import (
    FxIngestionService,
    HttpJsonRateSource,
    StaticRateSource,
    http_sources_from_policy,
)
from ledger_modules.fx.sources import FxSourceUnavailableError
from tests.conftest import TEST_ACTOR_ID


class FlakySource:
    """Fails ``failures`` times, then answers from ``rates``."""

    def __init__(self, name, failures, rates=None):
        self.name = name
        self.failures = failures
        self.calls = 0
        self._static = StaticRateSource(name, rates or {})

    def fetch(self, from_currency, to_currency, as_of, timeout):
        self.calls += 1
        if self.calls <= self.failures:
            raise httpx.ConnectError("connection refused")
        return self._static.fetch(from_currency, to_currency, as_of, timeout)


@pytest.fixture
def make_service(session, scope, deterministic_clock):
    def _make(*sources):
        return FxIngestionService(
            session, scope, list(sources), TEST_ACTOR_ID, deterministic_clock
        )

    return _make


class TestIngest:
    def test_primary_answers_first(self, make_service):
        primary = StaticRateSource("central_bank", {("USD", "MYR"): Decimal("4.70")})
        fallback = StaticRateSource("open_rates", {("USD", "MYR"): Decimal("9.99")})
        service = make_service(
            (FxSourceDef("open_rates", "fallback", max_retries=0), fallback),
            (FxSourceDef("central_bank", "primary", max_retries=0), primary),
        )

        result = service.ingest("usd", "myr")

        assert result.succeeded
        assert result.rate == Decimal("4.70")
        assert result.source == "central_bank"
        assert result.attempts == 1
        assert result.fx_rate.from_currency == "USD"

    def test_same_currency_is_unity_without_attempts(self, make_service):
        service = make_service()

        result = service.ingest("MYR", "MYR")

        assert result.rate == Decimal("1")
        assert result.attempts == 0
        assert result.fx_rate is None

    def test_retries_then_succeeds(self, make_service):
        flaky = FlakySource("central_bank", failures=2, rates={("USD", "MYR"): "4.71"})
        service = make_service((FxSourceDef("central_bank", max_retries=2), flaky))

        result = service.ingest("USD", "MYR")

        assert result.succeeded
        assert result.attempts == 3
        assert flaky.calls == 3

    def test_falls_back_after_primary_exhausted(self, make_service, captured_logs):
        flaky = FlakySource("central_bank", failures=10)
        fallback = StaticRateSource("open_rates", {("USD", "MYR"): Decimal("4.69")})
        service = make_service(
            (FxSourceDef("central_bank", max_retries=1), flaky),
            (FxSourceDef("open_rates", "fallback", max_retries=0), fallback),
        )

        result = service.ingest("USD", "MYR")

        assert result.source == "open_rates"
        assert result.attempts == 3
        assert [e.source for e in result.errors] == ["central_bank"]
        failed = [r for r in captured_logs() if r["message"] == "fx_source_attempt_failed"]
        assert len(failed) == 2

    def test_total_failure_is_retryable_and_writes_nothing(self, make_service):
        service = make_service(
            (FxSourceDef("central_bank", max_retries=1), FlakySource("central_bank", 10)),
            (FxSourceDef("open_rates", "fallback", max_retries=0), StaticRateSource("open_rates", {})),
        )

        result = service.ingest("USD", "MYR")

        assert not result.succeeded
        assert result.retryable
        assert result.attempts == 3
        assert [e.code for e in result.errors] == ["FX_INGEST_FAILED", "FX_INGEST_FAILED"]
        assert service.rate_service.latest_rate("USD", "MYR") is None

    def test_ingest_many_reports_failed_pairs(self, make_service):
        source = StaticRateSource("central_bank", {("USD", "MYR"): "4.70"})
        service = make_service((FxSourceDef("central_bank", max_retries=0), source))

        bulk = service.ingest_many([("USD", "MYR"), ("EUR", "MYR")])

        assert bulk.updated == 1
        assert bulk.failed == 1
        assert bulk.failed_pairs == [("EUR", "MYR")]


class TestStaleness:
    def test_latest_rate_ages_with_the_clock(self, make_service, deterministic_clock):
        source = StaticRateSource("central_bank", {("USD", "MYR"): "4.70"})
        service = make_service((FxSourceDef("central_bank", max_retries=0), source))
        service.ingest("USD", "MYR")

        assert service.latest_staleness("USD", "MYR") == StalenessLevel.FRESH
        deterministic_clock.advance_minutes(120)
        assert service.latest_staleness("USD", "MYR") == StalenessLevel.WARNING
        deterministic_clock.advance_minutes(2000)
        assert service.latest_staleness("USD", "MYR") == StalenessLevel.STALE

    def test_no_rate_has_no_staleness(self, make_service):
        assert make_service().latest_staleness("USD", "MYR") is None


class TestHttpSource:
    def _client(self, handler):
        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_reads_latest_rates(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"date": "2025-02-03", "rates": {"MYR": 4.7215}})

        source = HttpJsonRateSource("central_bank", "https://rates.test/", self._client(handler))

        fetched = source.fetch("usd", "myr", None, 5)

        assert seen == ["https://rates.test/latest/USD"]
        assert fetched.rate == Decimal("4.7215")
        assert fetched.as_of == date(2025, 2, 3)

    def test_dated_request_and_conversion_rates_alias(self):
        def handler(request):
            assert request.url.path == "/2025-01-15/USD"
            return httpx.Response(200, json={"conversion_rates": {"MYR": "4.65"}})

        source = HttpJsonRateSource("open_rates", "https://rates.test", self._client(handler))

        fetched = source.fetch("USD", "MYR", date(2025, 1, 15), 5)

        assert fetched.rate == Decimal("4.65")
        assert fetched.as_of == date(2025, 1, 15)

    def test_missing_pair_raises(self):
        source = HttpJsonRateSource(
            "central_bank",
            "https://rates.test",
            self._client(lambda request: httpx.Response(200, json={"rates": {"EUR": 0.2}})),
        )

        with pytest.raises(FxSourceUnavailableError):
            source.fetch("USD", "MYR", None, 5)

    def test_server_error_falls_through_to_fallback(self, make_service):
        client = self._client(lambda request: httpx.Response(503))
        http_source = HttpJsonRateSource("central_bank", "https://rates.test", client)
        fallback = StaticRateSource("open_rates", {("USD", "MYR"): "4.70"})
        service = make_service(
            (FxSourceDef("central_bank", max_retries=0), http_source),
            (FxSourceDef("open_rates", "fallback", max_retries=0), fallback),
        )

        result = service.ingest("USD", "MYR")

        assert result.source == "open_rates"
        assert "HTTPStatusError" in result.errors[0].reason

    def test_policy_builds_adapters_for_sources_with_urls(self):
        policy = FxPolicy(
            sources=(
                FxSourceDef("central_bank", base_url="https://rates.test"),
                FxSourceDef("manual", "fallback"),
            )
        )

        pairs = http_sources_from_policy(policy)

        assert [config.name for config, _ in pairs] == ["central_bank"]
        assert isinstance(pairs[0][1], HttpJsonRateSource)
