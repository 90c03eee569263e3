"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts.  Each row carries
    the cached running balance that the Ledger Poster maintains.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain vocabulary only.

Invariants enforced:
    - account_code is unique (uq_ledger_account_code).
    - current_balance == opening_balance + signed sum of every ledger entry
      against the account.  Only the Ledger Poster writes current_balance.
    - version is a SQLAlchemy version_id_col: a write based on a stale read
      raises StaleDataError, which the unit of work retries.
    - level is derived from the parent (root = 0); the hierarchy is acyclic
      (checked by AccountService on every re-parent).

Failure modes:
    - IntegrityError on duplicate account_code.  Get-or-create upserts treat
      it as "already exists, reload".
    - StaleDataError on concurrent balance updates.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.accounts import AccountSubType, AccountType, is_cash_or_bank


class LedgerAccount(TrackedBase):
    """
    One node in the chart of accounts.

    Contract:
        account_type never changes once ledger entries reference the
        account.  Synthetic party accounts carry party_id / party_type.

    Non-goals:
        - Does not compute balances; see services/ledger_poster.py.
    """

    __tablename__ = "ledger_accounts"

    __table_args__ = (
        UniqueConstraint("account_code", name="uq_ledger_account_code"),
        Index("idx_ledger_account_type", "account_type"),
        Index("idx_ledger_account_parent", "parent_account_id"),
        Index("idx_ledger_account_party", "party_id", "party_type"),
    )

    account_code: Mapped[str] = mapped_column(String(50), nullable=False)

    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    sub_type: Mapped[AccountSubType | None] = mapped_column(String(30), nullable=True)

    parent_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_accounts.id"),
        nullable=True,
    )

    # Depth in the hierarchy, root = 0
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    allow_direct_posting: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    current_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_system_account: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    party_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    party_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<LedgerAccount {self.account_code}: {self.account_name}>"

    @property
    def is_cash_or_bank(self) -> bool:
        return is_cash_or_bank(
            self.account_name, self.account_code, self.account_type, self.sub_type
        )
