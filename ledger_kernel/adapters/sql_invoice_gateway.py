"""
SqlInvoiceGateway -- InvoiceGateway over the ``invoices`` table.

Runs on the unit of work's session, so an allocation is undone when the
voucher transaction rolls back.  Invoice rows are locked FOR UPDATE before
their outstanding balance moves.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.amounts import ZERO, quantize_money
from ledger_kernel.domain.collaborators import InvoiceSnapshot, InvoiceStatus, invoice_status_for
from ledger_kernel.exceptions import InvoiceNotFoundError
from ledger_kernel.models.reference import Invoice


class SqlInvoiceGateway:
    """InvoiceGateway backed by the reference Invoice model."""

    def __init__(self, session: Session):
        self._session = session

    def _locked(self, invoice_id: UUID) -> Invoice:
        invoice = self._session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def get_invoice(self, invoice_id: UUID) -> InvoiceSnapshot | None:
        invoice = self._session.get(Invoice, invoice_id)
        if invoice is None:
            return None
        return InvoiceSnapshot(
            invoice_id=invoice.id,
            invoice_no=invoice.invoice_no,
            party_id=invoice.party_id,
            party_type=invoice.party_type,
            total_amount=invoice.total_amount,
            outstanding_amount=invoice.outstanding_amount,
            status=InvoiceStatus(invoice.status),
        )

    def apply_allocation(self, invoice_id: UUID, amount: Decimal) -> Decimal:
        return self._move(invoice_id, -amount)

    def reverse_allocation(self, invoice_id: UUID, amount: Decimal) -> Decimal:
        return self._move(invoice_id, amount)

    def _move(self, invoice_id: UUID, delta: Decimal) -> Decimal:
        invoice = self._locked(invoice_id)
        outstanding = quantize_money(invoice.outstanding_amount + delta)
        # Outstanding always stays within [0, total]
        outstanding = min(max(outstanding, ZERO), invoice.total_amount)
        invoice.outstanding_amount = outstanding
        invoice.status = invoice_status_for(outstanding, invoice.total_amount).value
        self._session.flush()
        return outstanding
