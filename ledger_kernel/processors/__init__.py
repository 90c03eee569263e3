"""Voucher processors: one strategy per voucher kind."""

from ledger_kernel.processors.base import BaseVoucherProcessor, ProcessingContext
from ledger_kernel.processors.contra import ContraProcessor
from ledger_kernel.processors.expense import ExpenseProcessor
from ledger_kernel.processors.journal import JournalProcessor
from ledger_kernel.processors.party_settlement import PaymentProcessor, ReceiptProcessor
from ledger_kernel.processors.registry import (
    VoucherProcessorRegistry,
    build_default_registry,
    get_default_registry,
)

__all__ = [
    "BaseVoucherProcessor",
    "ContraProcessor",
    "ExpenseProcessor",
    "JournalProcessor",
    "PaymentProcessor",
    "ProcessingContext",
    "ReceiptProcessor",
    "VoucherProcessorRegistry",
    "build_default_registry",
    "get_default_registry",
]
