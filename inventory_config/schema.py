"""
Configuration schema (``inventory_config.schema``).

Frozen dataclasses produced by the loader.  Validation lives in
``__post_init__`` so an invalid value can never exist as a config object.
"""

from __future__ import annotations

from dataclasses import dataclass

VALID_ISOLATION_LEVELS = frozenset({
    "READ COMMITTED",
    "REPEATABLE READ",
    "SERIALIZABLE",
})

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size <= 0:
            raise ValueError(f"database.pool_size must be positive, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"database.max_overflow cannot be negative, got {self.max_overflow}")
        if self.pool_timeout <= 0:
            raise ValueError(f"database.pool_timeout must be positive, got {self.pool_timeout}")


@dataclass(frozen=True)
class TransactionSettings:
    """Unit-of-work budget.  Defaults mirror 5s max wait, 10s execution."""

    isolation_level: str = "READ COMMITTED"
    max_wait_ms: int = 5000
    timeout_ms: int = 10000
    lock_lots: bool = True

    def __post_init__(self) -> None:
        if self.isolation_level not in VALID_ISOLATION_LEVELS:
            raise ValueError(
                f"transaction.isolation_level must be one of "
                f"{sorted(VALID_ISOLATION_LEVELS)}, got {self.isolation_level!r}"
            )
        if self.max_wait_ms <= 0:
            raise ValueError(f"transaction.max_wait_ms must be positive, got {self.max_wait_ms}")
        if self.timeout_ms <= 0:
            raise ValueError(f"transaction.timeout_ms must be positive, got {self.timeout_ms}")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}, got {self.level!r}"
            )


@dataclass(frozen=True)
class LedgerConfig:
    """
    The complete runtime configuration.

    checksum identifies the effective settings (after environment
    overrides), so two processes can be compared by one string.
    """

    config_id: str
    version: int
    database: DatabaseSettings
    transaction: TransactionSettings
    logging: LoggingSettings
    checksum: str
