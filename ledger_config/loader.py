"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Amounts and rates are parsed as ``Decimal`` from their string form.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    WILDCARD,
    FxPolicy,
    FxSourceDef,
    GovernancePolicy,
    LedgerConfiguration,
    PostingPolicy,
    ReportingPolicy,
    RoleDef,
    TaxCodeDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, float):
        # YAML floats lose precision; go through repr of the literal.
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} is not a decimal: {value!r}") from exc


def _optional_decimal(value: Any, name: str) -> Decimal | None:
    return None if value is None else parse_decimal(value, name)


def parse_role(data: dict[str, Any]) -> RoleDef:
    return RoleDef(
        name=data["name"],
        permissions=tuple(data.get("permissions", ())),
        inherits=tuple(data.get("inherits", ())),
        approval_threshold=_optional_decimal(
            data.get("approval_threshold"), f"roles.{data['name']}.approval_threshold"
        ),
    )


def parse_governance(data: dict[str, Any]) -> GovernancePolicy:
    roles = tuple(parse_role(r) for r in data["roles"])

    names = {role.name for role in roles}
    if len(names) != len(roles):
        raise ValueError("Duplicate role names in governance.roles")
    for role in roles:
        for parent in role.inherits:
            if parent not in names:
                raise ValueError(f"Role {role.name} inherits unknown role {parent}")
        for permission in role.permissions:
            if permission != WILDCARD and ":" not in permission:
                raise ValueError(f"Malformed permission {permission!r} on role {role.name}")

    return GovernancePolicy(
        roles=roles,
        dual_control_on_close=bool(data.get("dual_control_on_close", True)),
        lock_on_close=bool(data.get("lock_on_close", False)),
        auto_open_next_period=bool(data.get("auto_open_next_period", True)),
        reopen_requires_approval=bool(data.get("reopen_requires_approval", True)),
        required_adjustments=tuple(data.get("required_adjustments") or ()),
        close_approval_threshold=_optional_decimal(
            data.get("close_approval_threshold"), "governance.close_approval_threshold"
        ),
        reversal_marker=data.get("reversal_marker", "ACCRUAL"),
    )


def parse_fx(data: dict[str, Any]) -> FxPolicy:
    sources = tuple(
        FxSourceDef(
            name=s["name"],
            priority=s.get("priority", "primary"),
            base_url=s.get("base_url"),
            timeout_seconds=float(s.get("timeout_seconds", 5.0)),
            max_retries=int(s.get("max_retries", 2)),
            order=int(s.get("order", 0)),
        )
        for s in data.get("sources", ())
    )
    return FxPolicy(
        sources=sources,
        critical_minutes=int(data.get("critical_minutes", 60)),
        warning_minutes=int(data.get("warning_minutes", 240)),
        acceptable_minutes=int(data.get("acceptable_minutes", 1440)),
    )


def parse_reporting(data: dict[str, Any]) -> ReportingPolicy:
    classification = {
        key: tuple(str(p) for p in prefixes)
        for key, prefixes in (data.get("classification") or {}).items()
    }
    return ReportingPolicy(
        entity_name=data.get("entity_name", "Company"),
        include_zero_balances=bool(data.get("include_zero_balances", False)),
        classification=classification,
        non_cash_expense_tags=tuple(
            data.get("non_cash_expense_tags", ("depreciation", "amortization", "impairment"))
        ),
    )


def parse_posting(data: dict[str, Any]) -> PostingPolicy:
    def code(key: str) -> str | None:
        value = data.get(key)
        return None if value is None else str(value)

    return PostingPolicy(
        fx_gain_account=code("fx_gain_account"),
        fx_loss_account=code("fx_loss_account"),
        customer_advance_account=code("customer_advance_account"),
        supplier_prepayment_account=code("supplier_prepayment_account"),
    )


def parse_tax_code(data: dict[str, Any]) -> TaxCodeDef:
    return TaxCodeDef(
        code=data["code"],
        name=data.get("name", data["code"]),
        rate=parse_decimal(data["rate"], f"tax_codes.{data['code']}.rate"),
        tax_type=data.get("tax_type", "sales"),
    )


def load_configuration(data: dict[str, Any]) -> LedgerConfiguration:
    """
    Parse a configuration dict into a ``LedgerConfiguration``.

    Postconditions:
        - ``checksum`` is the SHA-256 of ``data``'s canonical JSON.
    """
    return LedgerConfiguration(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        base_currency=data["base_currency"],
        governance=parse_governance(data["governance"]),
        fx=parse_fx(data.get("fx") or {}),
        reporting=parse_reporting(data.get("reporting") or {}),
        posting=parse_posting(data.get("posting") or {}),
        tax_codes=tuple(parse_tax_code(t) for t in data.get("tax_codes", ())),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
