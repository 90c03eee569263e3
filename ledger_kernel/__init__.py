"""
Ledger Kernel - double-entry voucher ledger.

Turns receipts, payments, journals, contra transfers and expenses into
balanced debit/credit postings with:
- Running account balances
- Invoice allocation with on-account remainders
- An approval workflow that gates posting
- Append-only ledger entries, corrected only by reversal
"""

__version__ = "0.1.0"
