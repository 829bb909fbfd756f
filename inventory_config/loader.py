"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, applies environment overrides and parses
the result into the frozen dataclasses of ``inventory_config.schema``.
Runtime callers go through ``inventory_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Type mismatches raise ``ValueError`` naming the offending key; there are
  no silent coercions (``"10"`` is not an int, ``"yes"`` is not a bool).
* ``compute_checksum`` is deterministic for identical effective settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    DatabaseSettings,
    LedgerConfig,
    LoggingSettings,
    TransactionSettings,
)

ENV_DATABASE_URL = "INVENTORY_DATABASE_URL"
ENV_LOG_LEVEL = "INVENTORY_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def _typed(section: str, data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key, default)
    # bool is an int subclass; reject it where an int is expected
    if kind is int and isinstance(value, bool):
        raise ValueError(f"{section}.{key} must be int, got bool")
    if not isinstance(value, kind):
        raise ValueError(
            f"{section}.{key} must be {kind.__name__}, got {type(value).__name__}"
        )
    return value


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=_typed("database", data, "url", str, ""),
        echo=_typed("database", data, "echo", bool, False),
        pool_size=_typed("database", data, "pool_size", int, 20),
        max_overflow=_typed("database", data, "max_overflow", int, 10),
        pool_timeout=_typed("database", data, "pool_timeout", int, 30),
        pool_recycle=_typed("database", data, "pool_recycle", int, 1800),
    )


def parse_transaction(data: Mapping[str, Any]) -> TransactionSettings:
    return TransactionSettings(
        isolation_level=_typed(
            "transaction", data, "isolation_level", str, "READ COMMITTED"
        ).upper(),
        max_wait_ms=_typed("transaction", data, "max_wait_ms", int, 5000),
        timeout_ms=_typed("transaction", data, "timeout_ms", int, 10000),
        lock_lots=_typed("transaction", data, "lock_lots", bool, True),
    )


def parse_logging(data: Mapping[str, Any]) -> LoggingSettings:
    return LoggingSettings(
        level=_typed("logging", data, "level", str, "INFO").upper(),
    )


def apply_env_overrides(
    data: dict[str, Any],
    env: Mapping[str, str],
) -> dict[str, Any]:
    """
    Return a copy of data with environment overrides applied.

    INVENTORY_DATABASE_URL replaces database.url; INVENTORY_LOG_LEVEL
    replaces logging.level.
    """
    merged = {key: dict(value) if isinstance(value, dict) else value
              for key, value in data.items()}
    if env.get(ENV_DATABASE_URL):
        merged.setdefault("database", {})["url"] = env[ENV_DATABASE_URL]
    if env.get(ENV_LOG_LEVEL):
        merged.setdefault("logging", {})["level"] = env[ENV_LOG_LEVEL]
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Build a LedgerConfig from an already merged dict.

    Raises:
        KeyError: if ``database`` or ``config_id`` is missing.
        ValueError: on any invalid value.
    """
    database = parse_database(data["database"])
    transaction = parse_transaction(data.get("transaction") or {})
    logging_settings = parse_logging(data.get("logging") or {})
    version = _typed("root", data, "version", int, 1)

    effective = {
        "config_id": data["config_id"],
        "version": version,
        "database": asdict(database),
        "transaction": asdict(transaction),
        "logging": asdict(logging_settings),
    }
    return LedgerConfig(
        config_id=data["config_id"],
        version=version,
        database=database,
        transaction=transaction,
        logging=logging_settings,
        checksum=compute_checksum(effective),
    )
