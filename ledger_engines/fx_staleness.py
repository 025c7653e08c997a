"""
FX Staleness Engine - Classify how old an exchange rate is.

Pure functions with no I/O.  Thresholds arrive in an injected
``FxStalenessConfig``; nothing here reads global state.

Bands (upper bounds inclusive):
    age <= critical_minutes                         FRESH
    critical_minutes < age <= warning_minutes       WARNING
    warning_minutes < age <= acceptable_minutes     ACCEPTABLE
    age > acceptable_minutes                        STALE

Only STALE rates require review.  A stale rate never blocks posting; the
journal is flagged instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class StalenessLevel(str, Enum):
    FRESH = "FRESH"
    WARNING = "WARNING"
    ACCEPTABLE = "ACCEPTABLE"
    STALE = "STALE"


@dataclass(frozen=True)
class FxStalenessConfig:
    """Age thresholds in minutes."""

    critical_minutes: int = 60
    warning_minutes: int = 240
    acceptable_minutes: int = 1440

    def __post_init__(self) -> None:
        if not (0 <= self.critical_minutes <= self.warning_minutes <= self.acceptable_minutes):
            raise ValueError(
                "Staleness thresholds must satisfy "
                "0 <= critical <= warning <= acceptable "
                f"(got {self.critical_minutes}, {self.warning_minutes}, "
                f"{self.acceptable_minutes})"
            )


DEFAULT_STALENESS_CONFIG = FxStalenessConfig()


def classify_staleness(
    age_minutes: int | float | Decimal,
    config: FxStalenessConfig = DEFAULT_STALENESS_CONFIG,
) -> StalenessLevel:
    if age_minutes < 0:
        raise ValueError(f"Rate age cannot be negative: {age_minutes}")
    if age_minutes <= config.critical_minutes:
        return StalenessLevel.FRESH
    if age_minutes <= config.warning_minutes:
        return StalenessLevel.WARNING
    if age_minutes <= config.acceptable_minutes:
        return StalenessLevel.ACCEPTABLE
    return StalenessLevel.STALE


def requires_review(level: StalenessLevel) -> bool:
    return level == StalenessLevel.STALE
