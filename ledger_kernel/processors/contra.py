"""
Contra processor.

Moves money between two cash/bank accounts (cash deposit, withdrawal,
bank-to-bank).  The source is locked before its balance is checked so the
check and the later posting see the same balance.
"""

from ledger_kernel.domain.amounts import require_positive
from ledger_kernel.domain.vouchers import (
    ContraPayload,
    PaymentMode,
    ProcessedVoucher,
    VoucherStatus,
    VoucherType,
    validate_payment_details,
)
from ledger_kernel.exceptions import InsufficientBalanceError, ValidationError
from ledger_kernel.processors.base import (
    BaseVoucherProcessor,
    ProcessingContext,
    credit_line,
    debit_line,
    require_balanced,
)


class ContraProcessor(BaseVoucherProcessor):
    """Dr destination, Cr source.  Approved on creation."""

    @property
    def voucher_type(self) -> VoucherType:
        return VoucherType.CONTRA

    def process(self, payload: ContraPayload, ctx: ProcessingContext) -> ProcessedVoucher:
        if payload.from_account_id == payload.to_account_id:
            raise ValidationError("Source and destination accounts must differ")
        amount = require_positive(payload.amount)
        mode = PaymentMode(payload.payment_mode)
        validate_payment_details(mode, payload.payment_details)

        source = ctx.accounts.require_postable(payload.from_account_id)
        destination = ctx.accounts.require_postable(payload.to_account_id)
        for account in (source, destination):
            if not account.is_cash_or_bank:
                raise ValidationError(
                    f"Contra vouchers only move money between cash and bank accounts: "
                    f"{account.account_name}",
                    field="from_account_id" if account is source else "to_account_id",
                )

        locked = ctx.accounts.lock([source.id, destination.id])
        source = locked[source.id]
        if source.current_balance < amount:
            raise InsufficientBalanceError(
                source.account_code, str(source.current_balance), str(amount)
            )

        lines = (
            debit_line(locked[destination.id], amount, payload.narration),
            credit_line(source, amount, payload.narration),
        )
        return ProcessedVoucher(
            voucher_type=VoucherType.CONTRA,
            voucher_date=self.voucher_date(payload, ctx),
            total_amount=require_balanced(lines),
            lines=lines,
            status=VoucherStatus.APPROVED,
            payment_mode=mode,
            payment_details=payload.payment_details,
            from_account_id=source.id,
            to_account_id=destination.id,
        )
