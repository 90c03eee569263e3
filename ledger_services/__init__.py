"""
ledger_services -- public API of the voucher ledger.

Responsibility:
    The VoucherLifecycle facade, its bootstrap from configuration and the
    mapping of errors to transport-neutral responses.

Architecture position:
    Services -- outermost layer.  ledger_kernel never imports from here.
"""

from ledger_services.bootstrap import build_lifecycle, build_unit_of_work
from ledger_services.error_mapping import error_response
from ledger_services.voucher_lifecycle import VoucherLifecycle

__all__ = [
    "VoucherLifecycle",
    "build_lifecycle",
    "build_unit_of_work",
    "error_response",
]
