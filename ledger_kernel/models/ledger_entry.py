"""
Module: ledger_kernel.models.ledger_entry
Responsibility: ORM persistence for immutable debit/credit postings.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only.  After INSERT only is_reversed / reversed_at (and audit
      metadata) may change; see db/immutability.py.
    - A mirror entry written by reversal points at its original through
      reversal_of_id and swaps debit and credit.
    - running_balance is the account's current_balance immediately after
      this entry was applied.
    - seq is unique and strictly increasing in posting order.  It is the
      final ordering key wherever entries are listed or paged.

Audit relevance:
    The ledger entry table is the history of every balance.  Reversal never
    removes rows, it adds mirror rows.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class LedgerEntry(TrackedBase):
    """One posting against one account for one voucher."""

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index("idx_ledger_entry_voucher", "voucher_id"),
        Index("idx_ledger_entry_account_date", "account_id", "entry_date"),
        Index("idx_ledger_entry_party", "party_id", "party_type"),
        Index("idx_ledger_entry_reversal_of", "reversal_of_id"),
        UniqueConstraint("seq", name="uq_ledger_entry_seq"),
    )

    # Global posting order, assigned by LedgerPoster
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    voucher_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vouchers.id"), nullable=False
    )

    voucher_no: Mapped[str] = mapped_column(String(30), nullable=False)

    voucher_type: Mapped[str] = mapped_column(String(20), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ledger_accounts.id"), nullable=False
    )

    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_code: Mapped[str] = mapped_column(String(50), nullable=False)

    # Position of the source line within the voucher
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    financial_year: Mapped[str] = mapped_column(String(9), nullable=False)

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    debit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    credit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    narration: Mapped[str | None] = mapped_column(Text, nullable=True)

    party_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    party_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    running_balance: Mapped[Decimal] = mapped_column(nullable=False)

    is_reversed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Set on mirror entries only
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("ledger_entries.id"), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.voucher_no} {self.account_code} "
            f"Dr {self.debit_amount} Cr {self.credit_amount}>"
        )

    @property
    def is_live(self) -> bool:
        """Neither reversed nor itself a mirror."""
        return not self.is_reversed and self.reversal_of_id is None
