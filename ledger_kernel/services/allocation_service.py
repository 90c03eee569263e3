"""
AllocationService -- matches a receipt or payment against open invoices.

Responsibility:
    Validates each requested allocation against the invoice's party and
    outstanding balance, applies it through the InvoiceGateway and reports
    the unallocated (on-account) remainder.  Also undoes allocations when a
    voucher is reversed, rejected or cancelled.

Architecture position:
    Kernel > Services.  The gateway is built on the unit of work's session,
    so invoice writes commit or roll back with the voucher.

Invariants enforced:
    - A request may overshoot the outstanding amount or the voucher total
      by at most 0.01.  The applied amount is clamped to both, so the
      recorded allocated_amount is exactly what the invoice moved by and
      deallocation restores the previous outstanding.
    - sum(allocated_amount) <= total_amount.
    - on_account_amount = total_amount - sum(allocated_amount) >= 0.

Failure modes:
    - ValidationError: negative allocation, or allocations exceed total.
    - InvoiceNotFoundError, PartyMismatchError,
      AllocationExceedsOutstandingError.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from ledger_kernel.domain.amounts import BALANCE_TOLERANCE, ZERO, quantize_money, to_money
from ledger_kernel.domain.collaborators import InvoiceGateway, InvoiceStatus
from ledger_kernel.domain.vouchers import AllocationRecord, AllocationRequest, PartyType
from ledger_kernel.exceptions import (
    AllocationExceedsOutstandingError,
    InvoiceNotFoundError,
    PartyMismatchError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.allocation")


@dataclass(frozen=True)
class AllocationResult:
    allocations: tuple[AllocationRecord, ...]
    allocated_total: Decimal
    on_account_amount: Decimal


class _AllocatedLink(Protocol):
    invoice_id: UUID
    allocated_amount: Decimal


class AllocationService:
    """
    Invoice allocator.

    Contract:
        ``allocate`` returns one AllocationRecord per request that moved an
        invoice, in request order, after the gateway has applied it.

    Non-goals:
        - Does NOT pick invoices automatically (no FIFO matching).
    """

    def __init__(self, invoice_gateway: InvoiceGateway):
        self._invoices = invoice_gateway

    def allocate(
        self,
        party_id: UUID,
        party_type: str,
        requests: Iterable[AllocationRequest],
        total_amount: Decimal,
    ) -> AllocationResult:
        party_type = PartyType(party_type).value
        wanted: list[tuple[UUID, Decimal]] = []
        for request in requests:
            amount = to_money(request.amount, "allocations.amount")
            if amount < ZERO:
                raise ValidationError(
                    "Allocation amount cannot be negative", field="allocations.amount"
                )
            if amount == ZERO:
                continue
            wanted.append((request.invoice_id, amount))

        requested_total = sum((amount for _, amount in wanted), ZERO)
        if requested_total > total_amount + BALANCE_TOLERANCE:
            raise ValidationError(
                f"Allocations ({requested_total}) exceed voucher total ({total_amount})",
                field="allocations",
            )

        records: list[AllocationRecord] = []
        remaining = total_amount
        for invoice_id, requested in wanted:
            invoice = self._invoices.get_invoice(invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(str(invoice_id))
            if invoice.party_id != party_id or invoice.party_type != party_type:
                raise PartyMismatchError(str(invoice_id), str(party_id), party_type)
            outstanding = quantize_money(invoice.outstanding_amount)
            if requested > outstanding + BALANCE_TOLERANCE:
                raise AllocationExceedsOutstandingError(
                    str(invoice_id), str(outstanding), str(requested)
                )
            amount = min(requested, outstanding, remaining)
            if amount <= ZERO:
                continue
            remaining -= amount

            new_balance = quantize_money(
                max(self._invoices.apply_allocation(invoice_id, amount), ZERO)
            )
            status = InvoiceStatus.PAID if new_balance == ZERO else InvoiceStatus.PARTIAL
            records.append(
                AllocationRecord(
                    invoice_id=invoice_id,
                    invoice_no=invoice.invoice_no,
                    allocated_amount=amount,
                    previous_balance=outstanding,
                    new_balance=new_balance,
                    status=status.value,
                )
            )
            logger.info(
                "invoice_allocated",
                extra={
                    "invoice_id": str(invoice_id),
                    "invoice_no": invoice.invoice_no,
                    "amount": str(amount),
                    "new_balance": str(new_balance),
                    "status": status.value,
                },
            )

        return AllocationResult(
            allocations=tuple(records),
            allocated_total=total_amount - remaining,
            on_account_amount=quantize_money(remaining),
        )

    def deallocate(self, links: Iterable[_AllocatedLink]) -> None:
        """Give every allocated amount back to its invoice."""
        for link in links:
            new_balance = self._invoices.reverse_allocation(
                link.invoice_id, Decimal(link.allocated_amount)
            )
            logger.info(
                "invoice_deallocated",
                extra={
                    "invoice_id": str(link.invoice_id),
                    "amount": str(link.allocated_amount),
                    "new_balance": str(new_balance),
                },
            )
