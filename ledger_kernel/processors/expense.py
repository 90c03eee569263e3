"""
Expense processor.

Dr expense account, Cr cash/bank.  The expense account is the category's
default account, or else the first active expense account by code.  The
category's approval rule decides whether the voucher waits in pending.
"""

from ledger_kernel.domain.amounts import require_positive
from ledger_kernel.domain.vouchers import (
    ExpensePayload,
    PaymentMode,
    ProcessedVoucher,
    VoucherStatus,
    VoucherType,
    validate_payment_details,
)
from ledger_kernel.exceptions import ExpenseCategoryNotFoundError, ValidationError
from ledger_kernel.models.expense_category import ExpenseCategory
from ledger_kernel.processors.base import (
    BaseVoucherProcessor,
    ProcessingContext,
    credit_line,
    debit_line,
    require_balanced,
)


class ExpenseProcessor(BaseVoucherProcessor):

    @property
    def voucher_type(self) -> VoucherType:
        return VoucherType.EXPENSE

    def process(self, payload: ExpensePayload, ctx: ProcessingContext) -> ProcessedVoucher:
        amount = require_positive(payload.amount)
        mode = PaymentMode(payload.payment_mode)
        validate_payment_details(mode, payload.payment_details)

        category = ctx.session.get(ExpenseCategory, payload.expense_category_id)
        if category is None:
            raise ExpenseCategoryNotFoundError(str(payload.expense_category_id))
        if not category.is_active:
            raise ValidationError(
                f"Expense category is inactive: {category.category_name}",
                field="expense_category_id",
            )

        if category.default_account_id is not None:
            expense_account = ctx.accounts.require_active(category.default_account_id)
        else:
            expense_account = ctx.accounts.first_active_expense_account()
            if expense_account is None:
                raise ValidationError(
                    "No active expense account to post to", field="expense_category_id"
                )

        cash = ctx.accounts.cash_bank_account(mode, ctx.actor_id)
        description = payload.narration or category.category_name
        lines = (
            debit_line(expense_account, amount, description, payload.tax_percent),
            credit_line(cash, amount, description),
        )

        status = (
            VoucherStatus.PENDING if category.needs_approval(amount) else VoucherStatus.APPROVED
        )
        return ProcessedVoucher(
            voucher_type=VoucherType.EXPENSE,
            voucher_date=self.voucher_date(payload, ctx),
            total_amount=require_balanced(lines),
            lines=lines,
            status=status,
            payment_mode=mode,
            payment_details=payload.payment_details,
            expense_category_id=category.id,
        )
