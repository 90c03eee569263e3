"""
Base voucher processor.

A processor turns one payload kind into balanced, resolved voucher lines.
It validates input, resolves or lazily creates the accounts involved and
decides the initial status.  It does not post; the Ledger Poster does.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.amounts import compute_tax, is_balanced
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.collaborators import PartyDirectory
from ledger_kernel.domain.vouchers import ProcessedLine, ProcessedVoucher, VoucherType
from ledger_kernel.exceptions import UnbalancedVoucherError
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.allocation_service import AllocationService


@dataclass(frozen=True)
class ProcessingContext:
    """Session-bound collaborators a processor may use."""

    session: Session
    accounts: AccountService
    allocator: AllocationService
    parties: PartyDirectory
    clock: Clock
    actor_id: UUID


def debit_line(
    account: LedgerAccount,
    amount: Decimal,
    description: str | None = None,
    tax_percent: Decimal = Decimal("0"),
) -> ProcessedLine:
    return ProcessedLine(
        account_id=account.id,
        account_name=account.account_name,
        debit_amount=amount,
        credit_amount=Decimal("0"),
        description=description,
        tax_percent=Decimal(tax_percent or 0),
        tax_amount=compute_tax(amount, tax_percent),
    )


def credit_line(
    account: LedgerAccount,
    amount: Decimal,
    description: str | None = None,
    tax_percent: Decimal = Decimal("0"),
) -> ProcessedLine:
    return ProcessedLine(
        account_id=account.id,
        account_name=account.account_name,
        debit_amount=Decimal("0"),
        credit_amount=amount,
        description=description,
        tax_percent=Decimal(tax_percent or 0),
        tax_amount=compute_tax(amount, tax_percent),
    )


def require_balanced(lines: tuple[ProcessedLine, ...]) -> Decimal:
    """Return the voucher total, or raise when debits != credits."""
    debits = sum((line.debit_amount for line in lines), Decimal("0"))
    credits = sum((line.credit_amount for line in lines), Decimal("0"))
    if not is_balanced(debits, credits):
        raise UnbalancedVoucherError(str(debits), str(credits))
    return debits


class BaseVoucherProcessor(ABC):
    """
    Abstract voucher processor.

    Contract:
        ``process(payload, ctx)`` either raises a LedgerKernelError or
        returns a ProcessedVoucher whose lines balance within 0.01.
    """

    @property
    @abstractmethod
    def voucher_type(self) -> VoucherType:
        """Voucher kind this processor handles."""

    @abstractmethod
    def process(self, payload, ctx: ProcessingContext) -> ProcessedVoucher:
        """Validate ``payload`` and derive the voucher lines."""

    @staticmethod
    def voucher_date(payload, ctx: ProcessingContext) -> date:
        return payload.voucher_date or ctx.clock.today()
