"""
Module: ledger_kernel.models.sequence_counter
Responsibility: Locked counter rows behind voucher numbers.

One row per voucher-number prefix and day (e.g. ``RV-20240115``).  The
row is read FOR UPDATE and incremented; MAX()+1 over vouchers is never used.
"""

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SequenceCounter(Base):
    """Named monotonic counter."""

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("name", name="uq_sequence_counter_name"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
