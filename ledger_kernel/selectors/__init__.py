"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.account_selector import AccountNode, AccountRecord, AccountSelector
from ledger_kernel.selectors.base import Page
from ledger_kernel.selectors.ledger_selector import (
    AccountBalanceReport,
    LedgerEntryFilter,
    LedgerSelector,
    PartyStatement,
    StatementLine,
    TrialBalance,
    TrialBalanceRow,
)
from ledger_kernel.selectors.report_selector import (
    CashFlowSummary,
    ExpenseSummary,
    ExpenseSummaryRow,
    ReportSelector,
)
from ledger_kernel.selectors.voucher_selector import (
    LedgerEntryRecord,
    LineRecord,
    LinkRecord,
    VoucherFilter,
    VoucherRecord,
    VoucherSelector,
    to_voucher_record,
)

__all__ = [
    "AccountBalanceReport",
    "AccountNode",
    "AccountRecord",
    "AccountSelector",
    "CashFlowSummary",
    "ExpenseSummary",
    "ExpenseSummaryRow",
    "LedgerEntryFilter",
    "LedgerEntryRecord",
    "LedgerSelector",
    "LineRecord",
    "LinkRecord",
    "Page",
    "PartyStatement",
    "ReportSelector",
    "StatementLine",
    "TrialBalance",
    "TrialBalanceRow",
    "VoucherFilter",
    "VoucherRecord",
    "VoucherSelector",
    "to_voucher_record",
]
