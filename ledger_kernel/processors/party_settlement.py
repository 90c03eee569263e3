"""
Receipt and payment processors.

A receipt brings money in from a customer; a payment sends money out to a
vendor.  Both settle invoices first and park the remainder on account:

    Receipt                              Payment
    Dr Cash/Bank        total            Dr Vendor payable    allocated
    Cr Customer recv.   allocated        Dr Vendor advance    on account
    Cr Customer adv.    on account       Cr Cash/Bank         total

Cash goes to Cash in Hand; bank, cheque, online and transfer go to the
Bank Account.  Both kinds are approved on creation unless the caller
defers approval.
"""

from decimal import Decimal

from ledger_kernel.domain.accounts import PartyAccountRole
from ledger_kernel.domain.amounts import ZERO, require_positive
from ledger_kernel.domain.vouchers import (
    PartyType,
    PaymentMode,
    PaymentPayload,
    ProcessedLine,
    ProcessedVoucher,
    ReceiptPayload,
    VoucherStatus,
    VoucherType,
    validate_payment_details,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.processors.base import (
    BaseVoucherProcessor,
    ProcessingContext,
    credit_line,
    debit_line,
    require_balanced,
)

logger = get_logger("processors.party_settlement")


class _PartySettlementProcessor(BaseVoucherProcessor):
    party_type: PartyType
    settled_role: PartyAccountRole
    advance_role: PartyAccountRole
    # True when cash/bank is debited (money in)
    money_in: bool

    def process(self, payload: ReceiptPayload | PaymentPayload, ctx: ProcessingContext) -> ProcessedVoucher:
        amount = require_positive(payload.amount)
        mode = PaymentMode(payload.payment_mode)
        validate_payment_details(mode, payload.payment_details)

        party_type = self.party_type.value
        party_name = ctx.parties.get_display_name(payload.party_id, party_type)

        allocation = ctx.allocator.allocate(
            payload.party_id, party_type, payload.allocations, amount
        )
        allocated = allocation.allocated_total
        on_account = allocation.on_account_amount

        cash = ctx.accounts.cash_bank_account(mode, ctx.actor_id)
        party_lines: list[ProcessedLine] = []
        if allocated > ZERO:
            settled = ctx.accounts.party_account(
                self.settled_role, payload.party_id, party_type, party_name, ctx.actor_id
            )
            party_lines.append(self._party_line(settled, allocated, "Against invoices"))
        if on_account > ZERO:
            advance = ctx.accounts.party_account(
                self.advance_role, payload.party_id, party_type, party_name, ctx.actor_id
            )
            party_lines.append(self._party_line(advance, on_account, "On account"))

        if self.money_in:
            lines = (debit_line(cash, amount, payload.narration), *party_lines)
        else:
            lines = (*party_lines, credit_line(cash, amount, payload.narration))
        total = require_balanced(lines)

        status = VoucherStatus.PENDING if payload.defer_approval else VoucherStatus.APPROVED
        logger.debug(
            "voucher_processed",
            extra={
                "voucher_type": self.voucher_type.value,
                "party_id": str(payload.party_id),
                "allocated": str(allocated),
                "on_account": str(on_account),
            },
        )
        return ProcessedVoucher(
            voucher_type=self.voucher_type,
            voucher_date=self.voucher_date(payload, ctx),
            total_amount=total,
            lines=lines,
            status=status,
            payment_mode=mode,
            payment_details=payload.payment_details,
            party_id=payload.party_id,
            party_type=self.party_type,
            party_name=party_name,
            allocations=allocation.allocations,
            on_account_amount=on_account,
        )

    def _party_line(self, account, amount: Decimal, description: str) -> ProcessedLine:
        if self.money_in:
            return credit_line(account, amount, description)
        return debit_line(account, amount, description)


class ReceiptProcessor(_PartySettlementProcessor):
    party_type = PartyType.CUSTOMER
    settled_role = PartyAccountRole.CUSTOMER_RECEIVABLE
    advance_role = PartyAccountRole.CUSTOMER_ADVANCE
    money_in = True

    @property
    def voucher_type(self) -> VoucherType:
        return VoucherType.RECEIPT


class PaymentProcessor(_PartySettlementProcessor):
    party_type = PartyType.VENDOR
    settled_role = PartyAccountRole.VENDOR_PAYABLE
    advance_role = PartyAccountRole.VENDOR_ADVANCE
    money_in = False

    @property
    def voucher_type(self) -> VoucherType:
        return VoucherType.PAYMENT
