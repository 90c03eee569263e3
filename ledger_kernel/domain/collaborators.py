"""
Interfaces the ledger consumes from neighbouring subsystems.

The invoice subsystem and the party directory are owned elsewhere.  The
kernel only talks to them through these Protocols, built per session so
that their writes commit or roll back with the voucher.  SQL-backed
reference implementations live in ``ledger_kernel.adapters``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID


class InvoiceStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


@dataclass(frozen=True)
class InvoiceSnapshot:
    """What the allocator needs to know about an invoice."""

    invoice_id: UUID
    invoice_no: str
    party_id: UUID
    party_type: str
    total_amount: Decimal
    outstanding_amount: Decimal
    status: InvoiceStatus


def invoice_status_for(outstanding: Decimal, total: Decimal) -> InvoiceStatus:
    if outstanding <= 0:
        return InvoiceStatus.PAID
    if outstanding >= total:
        return InvoiceStatus.UNPAID
    return InvoiceStatus.PARTIAL


class InvoiceGateway(Protocol):
    """Outstanding balances and allocation writes for sales/purchase invoices."""

    def get_invoice(self, invoice_id: UUID) -> InvoiceSnapshot | None:
        """Return the invoice or None when it does not exist."""
        ...

    def apply_allocation(self, invoice_id: UUID, amount: Decimal) -> Decimal:
        """Reduce the outstanding amount; return the new outstanding."""
        ...

    def reverse_allocation(self, invoice_id: UUID, amount: Decimal) -> Decimal:
        """Restore ``amount``, clamped to [0, total]; return the new outstanding."""
        ...


class PartyDirectory(Protocol):
    """Customer and vendor master data."""

    def get_display_name(self, party_id: UUID, party_type: str) -> str:
        """Return the party's name. Raises PartyNotFoundError if unknown."""
        ...

    def adjust_cash_balance(self, party_id: UUID, party_type: str, delta: Decimal) -> None:
        """Move the party's on-account (advance) balance by ``delta``."""
        ...
