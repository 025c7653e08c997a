"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the runtime configuration through ``get_active_config()``:
    governance (roles, permissions, approval thresholds, period-close
    policy), FX sources and staleness thresholds, reporting overrides,
    posting account codes and the tax rate table.

Architecture position:
    Configuration.  Sits above ``ledger_kernel`` and below
    ``ledger_services`` / ``ledger_modules``.  The kernel MUST NEVER import
    from ``ledger_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every ``get_active_config()`` call emits a ``LEDGER_CONFIG_TRACE`` log
    entry with config_id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import compute_checksum, load_configuration, load_yaml_file
from ledger_config.schema import (
    FxPolicy,
    FxSourceDef,
    GovernancePolicy,
    LedgerConfiguration,
    PostingPolicy,
    ReportingPolicy,
    RoleDef,
    TaxCodeDef,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfiguration:
    """
    Load and validate the configuration at ``path`` (bundled defaults if None).

    Does not cache; callers hold the returned configuration for the
    lifetime of their services.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_configuration(load_yaml_file(config_path))

    logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "base_currency": config.base_currency,
            "role_count": len(config.governance.roles),
            "fx_source_count": len(config.fx.sources),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "FxPolicy",
    "FxSourceDef",
    "GovernancePolicy",
    "LedgerConfiguration",
    "PostingPolicy",
    "ReportingPolicy",
    "RoleDef",
    "TaxCodeDef",
    "compute_checksum",
    "get_active_config",
    "load_configuration",
]
