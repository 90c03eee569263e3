"""
Module: ledger_kernel.selectors.report_selector
Responsibility: Simple aggregations over approved vouchers -- cash flow by
    voucher kind and expense totals by category.
Architecture position: Kernel > Selectors.

Only vouchers in status approved count.  Cancelled vouchers were reversed
and drop out of both reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.amounts import ZERO
from ledger_kernel.domain.vouchers import VoucherStatus, VoucherType
from ledger_kernel.models.expense_category import ExpenseCategory
from ledger_kernel.models.voucher import Voucher
from ledger_kernel.selectors.base import BaseSelector, money


@dataclass(frozen=True)
class CashFlowSummary:
    date_from: date | None
    date_to: date | None
    receipts: Decimal
    payments: Decimal
    expenses: Decimal
    contra_transfers: Decimal

    @property
    def total_inflow(self) -> Decimal:
        return self.receipts

    @property
    def total_outflow(self) -> Decimal:
        return self.payments + self.expenses

    @property
    def net_flow(self) -> Decimal:
        return self.total_inflow - self.total_outflow


@dataclass(frozen=True)
class ExpenseSummaryRow:
    category_id: UUID
    category_code: str
    category_name: str
    voucher_count: int
    total_amount: Decimal
    monthly_budget: Decimal
    current_spent: Decimal


@dataclass(frozen=True)
class ExpenseSummary:
    date_from: date | None
    date_to: date | None
    rows: tuple[ExpenseSummaryRow, ...]

    @property
    def total_amount(self) -> Decimal:
        return sum((row.total_amount for row in self.rows), ZERO)


class ReportSelector(BaseSelector[Voucher]):

    def _approved_in_range(self, date_from: date | None, date_to: date | None) -> list:
        conditions = [Voucher.status == VoucherStatus.APPROVED.value]
        if date_from is not None:
            conditions.append(Voucher.voucher_date >= date_from)
        if date_to is not None:
            conditions.append(Voucher.voucher_date <= date_to)
        return conditions

    def cash_flow(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> CashFlowSummary:
        rows = self.session.execute(
            select(Voucher.voucher_type, func.sum(Voucher.total_amount))
            .where(*self._approved_in_range(date_from, date_to))
            .group_by(Voucher.voucher_type)
        ).all()
        totals = {VoucherType(kind): money(amount) for kind, amount in rows}
        return CashFlowSummary(
            date_from=date_from,
            date_to=date_to,
            receipts=totals.get(VoucherType.RECEIPT, ZERO),
            payments=totals.get(VoucherType.PAYMENT, ZERO),
            expenses=totals.get(VoucherType.EXPENSE, ZERO),
            contra_transfers=totals.get(VoucherType.CONTRA, ZERO),
        )

    def expense_summary(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> ExpenseSummary:
        """Approved expense vouchers per category, largest total first."""
        total = func.sum(Voucher.total_amount).label("total_amount")
        query = (
            select(
                ExpenseCategory.id,
                ExpenseCategory.category_code,
                ExpenseCategory.category_name,
                ExpenseCategory.monthly_budget,
                ExpenseCategory.current_spent,
                func.count(Voucher.id).label("voucher_count"),
                total,
            )
            .join(Voucher, Voucher.expense_category_id == ExpenseCategory.id)
            .where(
                Voucher.voucher_type == VoucherType.EXPENSE.value,
                *self._approved_in_range(date_from, date_to),
            )
            .group_by(
                ExpenseCategory.id,
                ExpenseCategory.category_code,
                ExpenseCategory.category_name,
                ExpenseCategory.monthly_budget,
                ExpenseCategory.current_spent,
            )
        )
        rows = [
            ExpenseSummaryRow(
                category_id=row.id,
                category_code=row.category_code,
                category_name=row.category_name,
                voucher_count=row.voucher_count,
                total_amount=money(row.total_amount),
                monthly_budget=money(row.monthly_budget),
                current_spent=money(row.current_spent),
            )
            for row in self.session.execute(query).all()
        ]
        rows.sort(key=lambda r: (-r.total_amount, r.category_code))
        return ExpenseSummary(date_from=date_from, date_to=date_to, rows=tuple(rows))
