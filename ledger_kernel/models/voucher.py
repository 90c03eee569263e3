"""
Module: ledger_kernel.models.voucher
Responsibility: ORM persistence for vouchers, their lines and their invoice
    allocation links.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain vocabulary only.

Invariants enforced:
    - voucher_no is unique (uq_voucher_no).
    - Sum of line debits == sum of line credits == total_amount within 0.01
      on every persisted voucher (checked by the processors before flush).
    - Lines and invoice links are owned by the voucher (delete-orphan);
      they are replaced wholesale when a voucher is reprocessed.
    - version is a version_id_col so two concurrent lifecycle decisions on
      the same voucher cannot both commit.

Audit relevance:
    created_by_id / updated_by_id / approved_by_id / approved_at record who
    created, last changed and decided on the voucher.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.domain.vouchers import (
    ApprovalStatus,
    PaymentMode,
    VoucherStatus,
    VoucherType,
)


class Voucher(TrackedBase):
    """
    A financial transaction document.

    Contract:
        Once status is approved the lines are frozen.  A monetary change
        goes through reverse -> reprocess -> repost in one unit of work.
    """

    __tablename__ = "vouchers"

    __table_args__ = (
        UniqueConstraint("voucher_no", name="uq_voucher_no"),
        Index("idx_voucher_type_date", "voucher_type", "voucher_date"),
        Index("idx_voucher_status", "status"),
        Index("idx_voucher_party", "party_id", "party_type"),
    )

    voucher_no: Mapped[str] = mapped_column(String(30), nullable=False)

    voucher_type: Mapped[VoucherType] = mapped_column(String(20), nullable=False)

    voucher_date: Mapped[date] = mapped_column(Date, nullable=False)

    financial_year: Mapped[str] = mapped_column(String(9), nullable=False)

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    party_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    party_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    party_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    on_account_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    from_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("ledger_accounts.id"), nullable=True
    )

    to_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("ledger_accounts.id"), nullable=True
    )

    expense_category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("expense_categories.id"), nullable=True
    )

    payment_mode: Mapped[PaymentMode | None] = mapped_column(String(20), nullable=True)

    payment_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[VoucherStatus] = mapped_column(
        String(20), nullable=False, default=VoucherStatus.DRAFT
    )

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING
    )

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    attachments: Mapped[list | None] = mapped_column(JSON, nullable=True)

    narration: Mapped[str | None] = mapped_column(Text, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reference_no: Mapped[str | None] = mapped_column(String(100), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    lines: Mapped[list["VoucherLine"]] = relationship(
        back_populates="voucher",
        cascade="all, delete-orphan",
        order_by="VoucherLine.line_no",
        lazy="selectin",
    )

    invoice_links: Mapped[list["VoucherInvoiceLink"]] = relationship(
        back_populates="voucher",
        cascade="all, delete-orphan",
        order_by="VoucherInvoiceLink.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Voucher {self.voucher_no} status={self.status}>"

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))


class VoucherLine(Base):
    """One debit or credit line of a voucher, in entry order."""

    __tablename__ = "voucher_lines"

    __table_args__ = (
        Index("idx_voucher_line_voucher", "voucher_id"),
    )

    voucher_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vouchers.id"), nullable=False
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ledger_accounts.id"), nullable=False
    )

    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    debit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    credit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    tax_percent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    voucher: Mapped["Voucher"] = relationship(back_populates="lines")


class VoucherInvoiceLink(Base):
    """Record of an amount allocated from a voucher to one invoice."""

    __tablename__ = "voucher_invoice_links"

    __table_args__ = (
        Index("idx_voucher_link_voucher", "voucher_id"),
        Index("idx_voucher_link_invoice", "invoice_id"),
    )

    voucher_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vouchers.id"), nullable=False
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    invoice_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)

    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)

    previous_balance: Mapped[Decimal] = mapped_column(nullable=False)

    new_balance: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(10), nullable=False)

    voucher: Mapped["Voucher"] = relationship(back_populates="invoice_links")
