"""
Module: ledger_kernel.models.expense_category
Responsibility: ORM persistence for expense categories: approval thresholds,
    budgets and the default expense account.

The ledger only reads the thresholds and the default account, and moves
current_spent on posting (+) and reversal (-).  Category administration
belongs to the caller.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class ExpenseCategory(TrackedBase):
    """Expense classification with an optional approval limit."""

    __tablename__ = "expense_categories"

    __table_args__ = (
        UniqueConstraint("category_code", name="uq_expense_category_code"),
    )

    category_name: Mapped[str] = mapped_column(String(255), nullable=False)

    category_code: Mapped[str] = mapped_column(String(50), nullable=False)

    monthly_budget: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    yearly_budget: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    current_spent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # 0 means every expense in this category needs approval
    approval_limit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    default_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("ledger_accounts.id"), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ExpenseCategory {self.category_code}: {self.category_name}>"

    def needs_approval(self, amount: Decimal) -> bool:
        """True when an expense of ``amount`` must wait for approval."""
        if not self.requires_approval:
            return False
        return self.approval_limit == 0 or amount > self.approval_limit
