"""
ledger_services.error_mapping -- exceptions to transport-neutral responses.

``error_response(exc)`` turns any exception into
``{"status", "code", "message", "details"}``.  Kernel errors keep their
stable code and HTTP-equivalent status; details are the structured
attributes the exception carries.  Anything else is a 500
``INTERNAL_ERROR`` whose message does not leak internals.
"""

from __future__ import annotations

from typing import Any

from ledger_kernel.exceptions import LedgerKernelError

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"


def error_details(exc: LedgerKernelError) -> dict[str, Any]:
    return exc.details()


def error_response(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, LedgerKernelError):
        return {
            "status": exc.http_status,
            "code": exc.code,
            "message": str(exc),
            "details": error_details(exc),
        }
    return {
        "status": 500,
        "code": INTERNAL_ERROR_CODE,
        "message": "Internal error",
        "details": {"error_type": type(exc).__name__},
    }
