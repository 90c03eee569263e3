"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way the rest of the repository
    obtains settings.  No other component reads YAML files or environment
    variables.

Failure modes:
    - ``FileNotFoundError`` -- the overlay file does not exist.
    - ``ValueError`` -- malformed YAML or invalid values.

Audit relevance:
    Every successful load emits a ``ledger_config_loaded`` log entry with
    the source and the checksum of the effective settings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from ledger_config.loader import load_settings
from ledger_config.schema import DatabaseSettings, LedgerSettings, RetrySettings

_logger = logging.getLogger("ledger_kernel.config")


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """Load and validate the effective ledger settings."""
    settings = load_settings(path, environ)
    _logger.info(
        "ledger_config_loaded",
        extra={
            "source": settings.source,
            "checksum": settings.checksum,
            "database_dialect": settings.database.url.split(":", 1)[0],
            "retry_max_attempts": settings.retry.max_attempts,
            "unit_timeout_seconds": settings.unit_timeout_seconds,
        },
    )
    return settings


__all__ = [
    "DatabaseSettings",
    "LedgerSettings",
    "RetrySettings",
    "get_active_config",
]
