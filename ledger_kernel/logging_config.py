"""
Structured JSON logging for the ledger kernel.

Every record is written as one JSON object per line::

    {"ts": "2024-06-15T10:00:00+00:00", "level": "INFO",
     "logger": "ledger_kernel.services.ledger_poster",
     "message": "voucher_posted", "operation": "approve_or_reject",
     "actor_id": "...", "voucher_id": "...", "entry_count": 2}

Field order: the four base fields, then the request context bound by
VoucherLifecycle (operation, actor, voucher or account being worked on),
then whatever the call site passed in ``extra``.

A record logged with ``exc_info`` carries an ``error`` object.  For a
LedgerKernelError it holds the stable error code, the HTTP-equivalent
status and the exception's structured details, so a rejected posting can
be traced to the account code and amounts without parsing the message.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, TextIO
from uuid import UUID

from ledger_kernel.exceptions import LedgerKernelError

LOGGER_NAMESPACE = "ledger_kernel"

CONTEXT_FIELDS = (
    "correlation_id",
    "operation",
    "actor_id",
    "voucher_id",
    "voucher_no",
    "account_id",
)

_EMPTY_CONTEXT: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar(
    "ledger_log_context", default=_EMPTY_CONTEXT
)


class LogContext:
    """
    Request-scoped fields stamped on every record.

    The whole context lives in one ContextVar holding a read-only mapping,
    so nested binds restore the outer context exactly and concurrent
    threads or tasks never see each other's voucher.
    """

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY_CONTEXT)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Add fields for the duration of the block.

        Only names in CONTEXT_FIELDS are accepted.  None values are skipped
        so an unset voucher_id does not hide one bound further out.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return repr(value)


def _error_payload(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, LedgerKernelError):
        error["code"] = exc.code
        error["status"] = exc.http_status
        error["details"] = exc.details()
    return error


class StructuredFormatter(logging.Formatter):
    """Renders a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())

        for key, value in vars(record).items():
            if key in _RECORD_ATTRIBUTES or key in payload or value is None:
                continue
            payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _error_payload(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger below the kernel namespace, e.g. ``get_logger("db.engine")``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configure_lock = threading.Lock()


def _ledger_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "_ledger_structured", False)]


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``ledger_kernel`` logger.

    Only the first call installs anything; later calls are no-ops until
    reset_logging() removes the handler.  Records stop at the kernel logger
    and never reach the host application's root handlers.
    """
    kernel = logging.getLogger(LOGGER_NAMESPACE)
    with _configure_lock:
        if _ledger_handlers(kernel):
            return
        installed = handler
        if installed is None:
            installed = logging.StreamHandler(stream or sys.stderr)
        installed.setFormatter(StructuredFormatter())
        installed._ledger_structured = True
        kernel.addHandler(installed)
        kernel.setLevel(level)
        kernel.propagate = False


def reset_logging() -> None:
    """Remove the handler configure_logging() installed and drop to WARNING."""
    kernel = logging.getLogger(LOGGER_NAMESPACE)
    with _configure_lock:
        for installed in _ledger_handlers(kernel):
            kernel.removeHandler(installed)
        kernel.setLevel(logging.WARNING)
