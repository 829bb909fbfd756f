"""
inventory_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  No other component reads configuration files or environment
    variables directly.

Architecture position:
    Configuration sits above ``inventory_kernel`` and below
    ``inventory_services``.  The kernel never imports from here; the
    InventoryLedger facade translates a LedgerConfig into engine settings
    and a TransactionBudget.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- a value has the wrong type or is out of range.

Audit relevance:
    Every successful call emits ``config_loaded`` with the config id,
    version and checksum of the effective settings.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from inventory_config.loader import apply_env_overrides, load_yaml_file, parse_config
from inventory_config.schema import (
    DatabaseSettings,
    LedgerConfig,
    LoggingSettings,
    TransactionSettings,
)
from inventory_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """
    Load, override and validate the active configuration.

    Args:
        path: YAML file.  Defaults to inventory_config/sets/default.yaml.
        env: Environment mapping for overrides.  Defaults to os.environ.

    Returns:
        Frozen LedgerConfig.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    raw = load_yaml_file(config_path)
    merged = apply_env_overrides(raw, os.environ if env is None else env)
    config = parse_config(merged)

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(config_path),
        },
    )
    return config


__all__ = [
    "DatabaseSettings",
    "LedgerConfig",
    "LoggingSettings",
    "TransactionSettings",
    "get_active_config",
]
