"""
Pure domain layer.

Value objects and rules with NO dependencies on the ORM, the database,
wall-clock time or I/O.
"""

from ledger_kernel.domain.accounts import (
    AccountSubType,
    AccountType,
    PartyAccountRole,
    is_cash_or_bank,
)
from ledger_kernel.domain.approval import ApprovalAction, VOUCHER_TRANSITIONS
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.collaborators import (
    InvoiceGateway,
    InvoiceSnapshot,
    InvoiceStatus,
    PartyDirectory,
)
from ledger_kernel.domain.vouchers import (
    AllocationRequest,
    ApprovalStatus,
    Attachment,
    ContraPayload,
    ExpensePayload,
    JournalPayload,
    LineSpec,
    PartyType,
    PaymentDetails,
    PaymentMode,
    PaymentPayload,
    ReceiptPayload,
    VoucherPayload,
    VoucherStatus,
    VoucherType,
)

__all__ = [
    "AccountSubType",
    "AccountType",
    "AllocationRequest",
    "ApprovalAction",
    "ApprovalStatus",
    "Attachment",
    "Clock",
    "ContraPayload",
    "DeterministicClock",
    "ExpensePayload",
    "InvoiceGateway",
    "InvoiceSnapshot",
    "InvoiceStatus",
    "JournalPayload",
    "LineSpec",
    "PartyAccountRole",
    "PartyDirectory",
    "PartyType",
    "PaymentDetails",
    "PaymentMode",
    "PaymentPayload",
    "ReceiptPayload",
    "SystemClock",
    "VOUCHER_TRANSITIONS",
    "VoucherPayload",
    "VoucherStatus",
    "VoucherType",
    "is_cash_or_bank",
]
