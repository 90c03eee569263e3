"""
Voucher domain types.

Responsibility:
    Enumerations for voucher kind, status and payment mode, the tagged set
    of creation payloads (one frozen dataclass per voucher kind), and the
    processor output ``ProcessedVoucher``.

Architecture position:
    Kernel > Domain -- pure value objects.  No ORM, no session.

Invariants enforced:
    - A payload type fixes the voucher kind; a receipt payload cannot carry
      contra accounts and a contra payload cannot carry allocations.
    - Non-cash payment modes carry their required sub-detail
      (``validate_payment_details``).
    - Every ``ProcessedLine`` has exactly one non-zero side.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.exceptions import MissingPaymentDetailError, ValidationError


class VoucherType(str, Enum):
    RECEIPT = "receipt"
    PAYMENT = "payment"
    JOURNAL = "journal"
    CONTRA = "contra"
    EXPENSE = "expense"

    @property
    def prefix(self) -> str:
        """Voucher number prefix for this kind."""
        return VOUCHER_NO_PREFIXES[self]


VOUCHER_NO_PREFIXES: dict[VoucherType, str] = {
    VoucherType.RECEIPT: "RV",
    VoucherType.PAYMENT: "PV",
    VoucherType.JOURNAL: "JV",
    VoucherType.CONTRA: "CV",
    VoucherType.EXPENSE: "EV",
}


class VoucherStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMode(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CHEQUE = "cheque"
    ONLINE = "online"
    TRANSFER = "transfer"


class PartyType(str, Enum):
    CUSTOMER = "Customer"
    VENDOR = "Vendor"


@dataclass(frozen=True)
class PaymentDetails:
    """Sub-details for non-cash payment modes."""

    cheque_no: str | None = None
    cheque_date: date | None = None
    bank_name: str | None = None
    bank_account_no: str | None = None
    transaction_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "cheque_no": self.cheque_no,
            "cheque_date": self.cheque_date.isoformat() if self.cheque_date else None,
            "bank_name": self.bank_name,
            "bank_account_no": self.bank_account_no,
            "transaction_id": self.transaction_id,
        }


# payment mode -> PaymentDetails attribute that must be non-empty
REQUIRED_PAYMENT_DETAIL: dict[PaymentMode, str] = {
    PaymentMode.CHEQUE: "cheque_no",
    PaymentMode.BANK: "bank_account_no",
    PaymentMode.ONLINE: "transaction_id",
}


def validate_payment_details(mode: PaymentMode, details: PaymentDetails | None) -> None:
    """
    Raises:
        MissingPaymentDetailError: mode needs a sub-detail that is absent.
    """
    required = REQUIRED_PAYMENT_DETAIL.get(PaymentMode(mode))
    if required is None:
        return
    if details is None or not getattr(details, required):
        raise MissingPaymentDetailError(PaymentMode(mode).value, required)


@dataclass(frozen=True)
class Attachment:
    """Opaque reference into attachment storage."""

    file_name: str
    uri: str
    file_type: str | None = None
    file_size: int | None = None

    def to_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "uri": self.uri,
            "file_type": self.file_type,
            "file_size": self.file_size,
        }


@dataclass(frozen=True)
class AllocationRequest:
    """Amount of a receipt/payment to apply against one invoice."""

    invoice_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class LineSpec:
    """One requested journal line."""

    account_id: UUID
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    description: str | None = None
    tax_percent: Decimal = Decimal("0")


# ---------------------------------------------------------------------------
# Creation payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReceiptPayload:
    """Money received from a customer."""

    party_id: UUID
    amount: Decimal
    payment_mode: PaymentMode = PaymentMode.CASH
    voucher_date: date | None = None
    allocations: tuple[AllocationRequest, ...] = ()
    payment_details: PaymentDetails | None = None
    narration: str | None = None
    notes: str | None = None
    reference_type: str | None = None
    reference_no: str | None = None
    attachments: tuple[Attachment, ...] = ()
    defer_approval: bool = False

    voucher_type = VoucherType.RECEIPT
    party_type = PartyType.CUSTOMER


@dataclass(frozen=True)
class PaymentPayload:
    """Money paid to a vendor."""

    party_id: UUID
    amount: Decimal
    payment_mode: PaymentMode = PaymentMode.CASH
    voucher_date: date | None = None
    allocations: tuple[AllocationRequest, ...] = ()
    payment_details: PaymentDetails | None = None
    narration: str | None = None
    notes: str | None = None
    reference_type: str | None = None
    reference_no: str | None = None
    attachments: tuple[Attachment, ...] = ()
    defer_approval: bool = False

    voucher_type = VoucherType.PAYMENT
    party_type = PartyType.VENDOR


@dataclass(frozen=True)
class JournalPayload:
    """
    Manual journal.

    Either ``debit_account_id`` + ``credit_account_id`` + ``amount`` for a
    two-line journal, or ``lines`` with at least two entries.
    """

    lines: tuple[LineSpec, ...] = ()
    debit_account_id: UUID | None = None
    credit_account_id: UUID | None = None
    amount: Decimal | None = None
    voucher_date: date | None = None
    narration: str | None = None
    notes: str | None = None
    reference_type: str | None = None
    reference_no: str | None = None
    attachments: tuple[Attachment, ...] = ()
    submit_for_approval: bool = False

    voucher_type = VoucherType.JOURNAL


@dataclass(frozen=True)
class ContraPayload:
    """Transfer between two cash/bank accounts."""

    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal
    payment_mode: PaymentMode = PaymentMode.TRANSFER
    voucher_date: date | None = None
    payment_details: PaymentDetails | None = None
    narration: str | None = None
    notes: str | None = None
    reference_type: str | None = None
    reference_no: str | None = None
    attachments: tuple[Attachment, ...] = ()

    voucher_type = VoucherType.CONTRA


@dataclass(frozen=True)
class ExpensePayload:
    """Expense paid from cash or bank against an expense category."""

    expense_category_id: UUID
    amount: Decimal
    payment_mode: PaymentMode = PaymentMode.CASH
    voucher_date: date | None = None
    payment_details: PaymentDetails | None = None
    tax_percent: Decimal = Decimal("0")
    narration: str | None = None
    notes: str | None = None
    reference_type: str | None = None
    reference_no: str | None = None
    attachments: tuple[Attachment, ...] = ()

    voucher_type = VoucherType.EXPENSE


VoucherPayload = (
    ReceiptPayload | PaymentPayload | JournalPayload | ContraPayload | ExpensePayload
)


# ---------------------------------------------------------------------------
# Processor output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcessedLine:
    """A validated, resolved voucher line ready to persist."""

    account_id: UUID
    account_name: str
    debit_amount: Decimal
    credit_amount: Decimal
    description: str | None = None
    tax_percent: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.debit_amount < 0 or self.credit_amount < 0:
            raise ValidationError("Line amounts cannot be negative")
        if (self.debit_amount > 0) == (self.credit_amount > 0):
            raise ValidationError(
                "Each line must have exactly one of debit or credit amount"
            )


@dataclass(frozen=True)
class AllocationRecord:
    """Outcome of applying an allocation to one invoice."""

    invoice_id: UUID
    invoice_no: str
    allocated_amount: Decimal
    previous_balance: Decimal
    new_balance: Decimal
    status: str


@dataclass(frozen=True)
class ProcessedVoucher:
    """Everything a processor derives from a payload."""

    voucher_type: VoucherType
    voucher_date: date
    total_amount: Decimal
    lines: tuple[ProcessedLine, ...]
    status: VoucherStatus
    payment_mode: PaymentMode | None = None
    payment_details: PaymentDetails | None = None
    party_id: UUID | None = None
    party_type: PartyType | None = None
    party_name: str | None = None
    allocations: tuple[AllocationRecord, ...] = ()
    on_account_amount: Decimal = Decimal("0")
    from_account_id: UUID | None = None
    to_account_id: UUID | None = None
    expense_category_id: UUID | None = None

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))
