"""
FxRateService -- storage and lookup of exchange rates.

Responsibility:
    Records ingested rates and resolves the rate applicable to a posting
    date.  Classification of a rate's age is left to the FX module; this
    service only reports the age in minutes.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Applicable rate: the most recently ingested row with
      valid_from <= posting_date and (valid_to is null or
      valid_to >= posting_date).
    - Rates are strictly positive Decimals.

Failure modes:
    - ExchangeRateRequiredError from ``require_rate`` when nothing applies.
    - ValueError on a non-positive rate.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select

from ledger_kernel.domain.dtos import FxRateInfo
from ledger_kernel.exceptions import ExchangeRateRequiredError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fx_rate import FxRate
from ledger_kernel.services.base import BaseService

logger = get_logger("services.fx_rate")


class FxRateService(BaseService):
    """
    Exchange rates are global reference data: they are not scoped to a
    tenant, so the scope passed in is only used for logging context.
    """

    def record_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        source: str,
        actor_id: UUID,
        valid_from: date | None = None,
        valid_to: date | None = None,
        ingested_at: datetime | None = None,
    ) -> FxRateInfo:
        if not isinstance(rate, Decimal):
            rate = Decimal(str(rate))
        if rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {rate}")

        now = ingested_at or self._clock.now()
        fx_rate = FxRate(
            from_currency=from_currency.upper(),
            to_currency=to_currency.upper(),
            rate=rate,
            source=source,
            ingested_at=now,
            valid_from=valid_from or now.date(),
            valid_to=valid_to,
            created_by_id=actor_id,
        )
        self.session.add(fx_rate)
        self.session.flush()

        logger.info(
            "fx_rate_recorded",
            extra={
                "from_currency": fx_rate.from_currency,
                "to_currency": fx_rate.to_currency,
                "rate": str(rate),
                "source": source,
            },
        )
        return FxRateInfo.from_model(fx_rate)

    def get_applicable_rate(
        self,
        from_currency: str,
        to_currency: str,
        posting_date: date,
    ) -> FxRateInfo | None:
        fx_rate = self.session.execute(
            select(FxRate)
            .where(
                FxRate.from_currency == from_currency.upper(),
                FxRate.to_currency == to_currency.upper(),
                FxRate.valid_from <= posting_date,
                or_(FxRate.valid_to.is_(None), FxRate.valid_to >= posting_date),
            )
            .order_by(FxRate.valid_from.desc(), FxRate.ingested_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return FxRateInfo.from_model(fx_rate) if fx_rate is not None else None

    def require_rate(
        self,
        from_currency: str,
        to_currency: str,
        posting_date: date,
    ) -> FxRateInfo:
        fx_rate = self.get_applicable_rate(from_currency, to_currency, posting_date)
        if fx_rate is None:
            logger.warning(
                "fx_rate_missing",
                extra={
                    "from_currency": from_currency,
                    "to_currency": to_currency,
                    "posting_date": str(posting_date),
                },
            )
            raise ExchangeRateRequiredError(from_currency, to_currency, str(posting_date))
        return fx_rate

    def latest_rate(self, from_currency: str, to_currency: str) -> FxRateInfo | None:
        fx_rate = self.session.execute(
            select(FxRate)
            .where(
                FxRate.from_currency == from_currency.upper(),
                FxRate.to_currency == to_currency.upper(),
            )
            .order_by(FxRate.ingested_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return FxRateInfo.from_model(fx_rate) if fx_rate is not None else None

    def age_minutes(self, fx_rate: FxRateInfo, now: datetime | None = None) -> float:
        """Minutes elapsed between ingestion and ``now``."""
        return fx_rate.age_minutes(now or self._clock.now())
