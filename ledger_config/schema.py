"""
Ledger settings schema.

Frozen dataclasses describing everything the ledger reads from
configuration.  The loader parses YAML and environment overrides into
these types; nothing else in the repository reads configuration files or
environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Engine construction parameters."""

    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 3600
    pool_pre_ping: bool = True
    isolation_level: str = "READ COMMITTED"


@dataclass(frozen=True)
class RetrySettings:
    """Bounded retry for transient conflicts."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Complete runtime configuration of the ledger."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    unit_timeout_seconds: float = 30.0
    log_level: str = "INFO"
    amount_tolerance: Decimal = Decimal("0.01")
    source: str = "defaults"
    checksum: str = ""
