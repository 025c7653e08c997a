"""
Configuration Schema (``ledger_config.schema``).

Frozen dataclasses that hold a parsed ledger configuration.  Every field
has a typed home here; nothing downstream reads raw YAML dicts.

Sections:
    GovernancePolicy  -- roles, permissions, approval thresholds, period-close
                         policy (dual control, lock on close, auto-open).
    FxPolicy          -- ordered FX sources and staleness thresholds.
    ReportingPolicy   -- statement classification overrides.
    PostingPolicy     -- account codes the posting pipeline books to on its
                         own: realized FX gain/loss, customer advances and
                         supplier prepayments.
    TaxCodeDef        -- the rate table handed to the tax engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

WILDCARD = "*"


@dataclass(frozen=True)
class RoleDef:
    """
    Single role: permissions, optional inheritance and approval threshold.

    ``approval_threshold`` is in base currency; None means the role may
    post any amount without a second approver.
    """

    name: str
    permissions: tuple[str, ...]
    inherits: tuple[str, ...] = ()
    approval_threshold: Decimal | None = None


@dataclass(frozen=True)
class GovernancePolicy:
    """Authorization and period-close policy."""

    roles: tuple[RoleDef, ...]
    dual_control_on_close: bool = True
    lock_on_close: bool = False
    auto_open_next_period: bool = True
    reopen_requires_approval: bool = True
    required_adjustments: tuple[str, ...] = ()
    close_approval_threshold: Decimal | None = None
    reversal_marker: str = "ACCRUAL"

    def role(self, name: str) -> RoleDef | None:
        for role in self.roles:
            if role.name == name:
                return role
        return None


@dataclass(frozen=True)
class FxSourceDef:
    """One configured FX rate source."""

    name: str
    priority: str = "primary"
    base_url: str | None = None
    timeout_seconds: float = 5.0
    max_retries: int = 2
    order: int = 0

    def __post_init__(self) -> None:
        if self.priority not in ("primary", "fallback"):
            raise ValueError(f"FX source priority must be primary or fallback: {self.priority}")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")


@dataclass(frozen=True)
class FxPolicy:
    sources: tuple[FxSourceDef, ...] = ()
    critical_minutes: int = 60
    warning_minutes: int = 240
    acceptable_minutes: int = 1440


@dataclass(frozen=True)
class ReportingPolicy:
    """
    Reporting overrides.

    ``classification`` holds prefix-tuple overrides keyed by the field
    names of the reporting module's AccountClassification.
    """

    entity_name: str = "Company"
    include_zero_balances: bool = False
    classification: dict[str, tuple[str, ...]] = field(default_factory=dict)
    non_cash_expense_tags: tuple[str, ...] = ("depreciation", "amortization", "impairment")


@dataclass(frozen=True)
class PostingPolicy:
    """
    Chart codes for lines the posting pipeline adds itself.

    None leaves the feature off: a payment that would need the account
    is rejected instead.
    """

    fx_gain_account: str | None = None
    fx_loss_account: str | None = None
    customer_advance_account: str | None = None
    supplier_prepayment_account: str | None = None


@dataclass(frozen=True)
class TaxCodeDef:
    code: str
    name: str
    rate: Decimal
    tax_type: str = "sales"


@dataclass(frozen=True)
class LedgerConfiguration:
    """The complete, validated runtime configuration."""

    config_id: str
    version: int
    checksum: str
    base_currency: str
    governance: GovernancePolicy
    fx: FxPolicy = field(default_factory=FxPolicy)
    reporting: ReportingPolicy = field(default_factory=ReportingPolicy)
    posting: PostingPolicy = field(default_factory=PostingPolicy)
    tax_codes: tuple[TaxCodeDef, ...] = ()
