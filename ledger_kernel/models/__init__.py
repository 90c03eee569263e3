"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.models.expense_category import ExpenseCategory
from ledger_kernel.models.ledger_entry import LedgerEntry
from ledger_kernel.models.reference import Invoice, Party
from ledger_kernel.models.sequence_counter import SequenceCounter
from ledger_kernel.models.voucher import Voucher, VoucherInvoiceLink, VoucherLine

__all__ = [
    "ExpenseCategory",
    "Invoice",
    "LedgerAccount",
    "LedgerEntry",
    "Party",
    "SequenceCounter",
    "Voucher",
    "VoucherInvoiceLink",
    "VoucherLine",
]
