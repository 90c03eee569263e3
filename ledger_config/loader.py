"""
YAML loader for ledger settings.

Loads the packaged ``defaults.yaml``, overlays an optional YAML file, then
applies environment variable overrides, and parses the result into the
frozen dataclasses of ``ledger_config.schema``.

Order of precedence (last wins):

* ``defaults.yaml`` shipped with the package;
* the file given to ``load_settings(path)``, else ``LEDGER_CONFIG_FILE``;
* ``LEDGER_DATABASE_URL``, ``LEDGER_LOG_LEVEL``,
  ``LEDGER_RETRY_MAX_ATTEMPTS``, ``LEDGER_UNIT_TIMEOUT_SECONDS``.

Failure modes:

* Missing overlay file -> ``FileNotFoundError``.
* Malformed YAML, a value of the wrong type, or an out-of-range value ->
  ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from ledger_config.schema import DatabaseSettings, LedgerSettings, RetrySettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_FILE_ENV = "LEDGER_CONFIG_FILE"

# env var -> (path into the YAML document, parser)
ENV_OVERRIDES: dict[str, tuple[tuple[str, ...], Callable[[str], Any]]] = {
    "LEDGER_DATABASE_URL": (("database", "url"), str),
    "LEDGER_LOG_LEVEL": (("logging", "level"), str),
    "LEDGER_RETRY_MAX_ATTEMPTS": (("retry", "max_attempts"), int),
    "LEDGER_UNIT_TIMEOUT_SECONDS": (("unit_timeout_seconds",), float),
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the file is not valid YAML or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Top level of {path} must be a mapping")
    return data


def deep_merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``overlay`` merged in; nested mappings merge key by key."""
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    result = copy.deepcopy(data)
    for name, (path, parse) in ENV_OVERRIDES.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            value = parse(raw)
        except ValueError as exc:
            raise ValueError(f"{name}: cannot parse {raw!r}") from exc
        node = result
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
    return result


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"'{name}' must be a mapping")
    return value


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false", "1", "0", "yes", "no"):
        return value.lower() in ("true", "1", "yes")
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _as_number(value: Any, cast: Callable[[Any], Any], name: str, minimum: float) -> Any:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        number = cast(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if number < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {number}")
    return number


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseSettings(
        url=url,
        echo=_as_bool(data.get("echo", defaults.echo), "database.echo"),
        pool_size=_as_number(data.get("pool_size", defaults.pool_size), int, "database.pool_size", 1),
        max_overflow=_as_number(
            data.get("max_overflow", defaults.max_overflow), int, "database.max_overflow", 0
        ),
        pool_timeout=_as_number(
            data.get("pool_timeout", defaults.pool_timeout), int, "database.pool_timeout", 0
        ),
        pool_recycle=_as_number(
            data.get("pool_recycle", defaults.pool_recycle), int, "database.pool_recycle", -1
        ),
        pool_pre_ping=_as_bool(
            data.get("pool_pre_ping", defaults.pool_pre_ping), "database.pool_pre_ping"
        ),
        isolation_level=str(data.get("isolation_level", defaults.isolation_level)),
    )


def parse_retry(data: Mapping[str, Any]) -> RetrySettings:
    defaults = RetrySettings()
    retry = RetrySettings(
        max_attempts=_as_number(
            data.get("max_attempts", defaults.max_attempts), int, "retry.max_attempts", 1
        ),
        base_delay_seconds=_as_number(
            data.get("base_delay_seconds", defaults.base_delay_seconds),
            float,
            "retry.base_delay_seconds",
            0,
        ),
        max_delay_seconds=_as_number(
            data.get("max_delay_seconds", defaults.max_delay_seconds),
            float,
            "retry.max_delay_seconds",
            0,
        ),
    )
    if retry.max_delay_seconds < retry.base_delay_seconds:
        raise ValueError("retry.max_delay_seconds must be >= retry.base_delay_seconds")
    return retry


def parse_settings(data: Mapping[str, Any], source: str, checksum: str) -> LedgerSettings:
    level = str(_section(data, "logging").get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {sorted(_LOG_LEVELS)}, got {level!r}")

    raw_tolerance = _section(data, "amounts").get("tolerance", "0.01")
    try:
        tolerance = Decimal(str(raw_tolerance))
    except InvalidOperation as exc:
        raise ValueError(f"amounts.tolerance is not a decimal: {raw_tolerance!r}") from exc
    if not tolerance.is_finite() or tolerance < 0:
        raise ValueError(f"amounts.tolerance must be >= 0, got {raw_tolerance!r}")

    timeout = data.get("unit_timeout_seconds", 30)
    return LedgerSettings(
        database=parse_database(_section(data, "database")),
        retry=parse_retry(_section(data, "retry")),
        unit_timeout_seconds=_as_number(timeout, float, "unit_timeout_seconds", 0),
        log_level=level,
        amount_tolerance=tolerance,
        source=source,
        checksum=checksum,
    )


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Build LedgerSettings from defaults, an optional overlay and environment.

    Args:
        path: Overlay YAML file.  Defaults to ``$LEDGER_CONFIG_FILE``.
        environ: Environment mapping; ``os.environ`` when omitted.
    """
    environ = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)
    source = "defaults"

    overlay_path = path or environ.get(CONFIG_FILE_ENV) or None
    if overlay_path:
        data = deep_merge(data, load_yaml_file(Path(overlay_path)))
        source = str(overlay_path)

    data = apply_env_overrides(data, environ)
    return parse_settings(data, source=source, checksum=compute_checksum(data))
