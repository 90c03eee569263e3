"""
Journal processor.

Manual journals move value between any direct-postable accounts.  Two
input shapes are accepted: a debit account + credit account + amount
shortcut, or an explicit list of two or more lines.  Journals start as
draft, or pending when submitted for approval straight away.
"""

from decimal import Decimal

from ledger_kernel.domain.amounts import ZERO, compute_tax, require_positive, to_money
from ledger_kernel.domain.vouchers import (
    JournalPayload,
    LineSpec,
    ProcessedLine,
    ProcessedVoucher,
    VoucherStatus,
    VoucherType,
)
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.processors.base import (
    BaseVoucherProcessor,
    ProcessingContext,
    require_balanced,
)


class JournalProcessor(BaseVoucherProcessor):
    """Balanced manual journal between direct-postable accounts."""

    @property
    def voucher_type(self) -> VoucherType:
        return VoucherType.JOURNAL

    def process(self, payload: JournalPayload, ctx: ProcessingContext) -> ProcessedVoucher:
        specs = self._line_specs(payload)
        if len(specs) < 2:
            raise ValidationError("A journal needs at least two lines", field="lines")

        lines: list[ProcessedLine] = []
        for index, spec in enumerate(specs):
            account = ctx.accounts.require_postable(spec.account_id)
            debit = to_money(spec.debit_amount, f"lines[{index}].debit_amount")
            credit = to_money(spec.credit_amount, f"lines[{index}].credit_amount")
            lines.append(
                ProcessedLine(
                    account_id=account.id,
                    account_name=account.account_name,
                    debit_amount=debit,
                    credit_amount=credit,
                    description=spec.description or payload.narration,
                    tax_percent=Decimal(spec.tax_percent or 0),
                    tax_amount=compute_tax(max(debit, credit), spec.tax_percent),
                )
            )

        total = require_balanced(tuple(lines))
        if total <= ZERO:
            raise ValidationError("Journal total must be greater than zero", field="lines")

        status = VoucherStatus.PENDING if payload.submit_for_approval else VoucherStatus.DRAFT
        return ProcessedVoucher(
            voucher_type=VoucherType.JOURNAL,
            voucher_date=self.voucher_date(payload, ctx),
            total_amount=total,
            lines=tuple(lines),
            status=status,
        )

    @staticmethod
    def _line_specs(payload: JournalPayload) -> tuple[LineSpec, ...]:
        shortcut = (
            payload.debit_account_id is not None
            or payload.credit_account_id is not None
            or payload.amount is not None
        )
        if payload.lines and shortcut:
            raise ValidationError(
                "Give either explicit lines or debit/credit accounts with an amount, not both"
            )
        if payload.lines:
            return tuple(payload.lines)
        if payload.debit_account_id is None or payload.credit_account_id is None:
            raise ValidationError(
                "A journal needs lines, or both debit_account_id and credit_account_id"
            )
        if payload.debit_account_id == payload.credit_account_id:
            raise ValidationError("Debit and credit accounts must differ")
        amount = require_positive(payload.amount)
        return (
            LineSpec(account_id=payload.debit_account_id, debit_amount=amount),
            LineSpec(account_id=payload.credit_account_id, credit_amount=amount),
        )
