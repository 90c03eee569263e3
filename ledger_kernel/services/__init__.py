"""
Kernel services: the imperative shell around the pure domain.

Every service works on the session it is given and never commits; the
unit of work owns the transaction.

VoucherService is imported from its own module: it sits on top of the
voucher processors, which in turn depend on the services exported here.
"""

from ledger_kernel.services.account_service import (
    AccountChanges,
    AccountData,
    AccountService,
    cash_bank_spec,
)
from ledger_kernel.services.allocation_service import AllocationResult, AllocationService
from ledger_kernel.services.approval_service import ApprovalService
from ledger_kernel.services.ledger_poster import (
    REVERSAL_NARRATION_PREFIX,
    LedgerPoster,
    PostingResult,
    ReversalResult,
)
from ledger_kernel.services.sequence_service import SequenceService, format_voucher_no

__all__ = [
    "AccountChanges",
    "AccountData",
    "AccountService",
    "AllocationResult",
    "AllocationService",
    "ApprovalService",
    "LedgerPoster",
    "PostingResult",
    "REVERSAL_NARRATION_PREFIX",
    "ReversalResult",
    "SequenceService",
    "cash_bank_spec",
    "format_voucher_no",
]
