"""Pure domain layer: value objects, DTOs, clock and chart-of-accounts rules."""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.values import Currency, Money

__all__ = [
    "Clock",
    "Currency",
    "DeterministicClock",
    "Money",
    "SystemClock",
]
