"""
Module: ledger_kernel.models.reference
Responsibility: Minimal invoice and party tables backing the SQL reference
    collaborators in ledger_kernel.adapters.

Deployments that keep invoices and parties in another service implement
InvoiceGateway / PartyDirectory themselves and never touch these tables.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.collaborators import InvoiceStatus


class Invoice(TrackedBase):
    """Sales invoice (Customer) or purchase bill (Vendor)."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_no", name="uq_invoice_no"),
        Index("idx_invoice_party", "party_id", "party_type"),
    )

    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)

    party_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    party_type: Mapped[str] = mapped_column(String(20), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    outstanding_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(10), nullable=False, default=InvoiceStatus.UNPAID
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_no} outstanding={self.outstanding_amount}>"


class Party(TrackedBase):
    """Customer or vendor with a running on-account (advance) balance."""

    __tablename__ = "parties"

    __table_args__ = (
        Index("idx_party_type", "party_type"),
    )

    party_type: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    cash_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<Party {self.party_type} {self.name}>"
