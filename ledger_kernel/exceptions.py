"""
Typed exception hierarchy for the voucher ledger kernel.

Every error carries:
  1. a TYPED class (catch by type, never by message),
  2. a class-level ``code`` (machine-readable, stable across releases),
  3. an ``http_status`` hint for the outer transport layer,
  4. structured attributes describing the failure.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingPaymentDetailError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- VoucherNotFoundError
    |   +-- PartyNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- ExpenseCategoryNotFoundError
    |
    +-- BusinessRuleError
    |   +-- UnbalancedVoucherError
    |   +-- InsufficientBalanceError
    |   +-- AllocationExceedsOutstandingError
    |   +-- PartyMismatchError
    |   +-- DirectPostingDisallowedError
    |   +-- AccountInactiveError
    |   +-- AccountCycleError
    |
    +-- ConflictError
    |   +-- AccountReferencedError
    |   +-- SystemAccountProtectedError
    |   +-- InvalidStateTransitionError
    |   +-- ImmutableApprovedVoucherError
    |   +-- ConcurrencyConflictError
    |
    +-- ImmutabilityViolationError
    |
    +-- InfrastructureError
        +-- UnitOfWorkTimeoutError
        +-- LedgerStorageError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                            | Status | When Raised
--------------------------------|--------|------------------------------------
VALIDATION_ERROR                | 400    | Malformed or missing input
MISSING_PAYMENT_DETAIL          | 400    | Cheque no / bank a/c / txn id absent
*_NOT_FOUND                     | 404    | Referenced record does not exist
UNBALANCED                      | 422    | Debits != credits
INSUFFICIENT_BALANCE            | 422    | Contra source cannot cover amount
ALLOCATION_EXCEEDS_OUTSTANDING  | 422    | Allocation > invoice outstanding
PARTY_MISMATCH                  | 422    | Invoice belongs to another party
DIRECT_POSTING_DISALLOWED       | 422    | Summary/control account targeted
ACCOUNT_INACTIVE                | 422    | Posting to a deactivated account
ACCOUNT_CYCLE                   | 422    | Re-parent would create a cycle
ACCOUNT_REFERENCED              | 409    | Delete of account with history
SYSTEM_ACCOUNT_PROTECTED        | 409    | Delete of a system account
INVALID_STATE_TRANSITION        | 409    | Lifecycle edge not allowed
IMMUTABLE_APPROVED_VOUCHER      | 409    | Monetary edit without force
CONCURRENCY_CONFLICT            | 409    | Retries exhausted on write conflict
IMMUTABILITY_VIOLATION          | 500    | Ledger entry edited or deleted
UNIT_OF_WORK_TIMEOUT            | 503    | Unit of work exceeded its deadline
STORAGE_UNAVAILABLE             | 503    | Unexpected database failure

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        lifecycle.create_voucher(payload, actor_id)
    except InsufficientBalanceError as e:
        notify(f"{e.account_code} holds {e.available}, needs {e.requested}")
    except LedgerKernelError as e:
        respond(status=e.http_status, code=e.code, message=str(e))

ConcurrencyConflictError is only raised after the unit of work has
exhausted its retries; callers should not retry it in a tight loop.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    identification and an ``http_status`` for transport mapping.
    """

    code: str = "LEDGER_KERNEL_ERROR"
    http_status: int = 500

    def details(self) -> dict[str, Any]:
        """
        Structured attributes set by the subclass constructor.

        Private and unset (None) attributes are left out; UUIDs and Decimals
        are rendered as strings so the result is JSON-safe.
        """
        return {
            key: str(value) if isinstance(value, (UUID, Decimal)) else value
            for key, value in vars(self).items()
            if not key.startswith("_") and value is not None
        }


# Validation


class ValidationError(LedgerKernelError):
    """Malformed or missing input. Never retried."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class MissingPaymentDetailError(ValidationError):
    """A non-cash payment mode is missing its required sub-detail."""

    code: str = "MISSING_PAYMENT_DETAIL"

    def __init__(self, payment_mode: str, detail: str):
        self.payment_mode = payment_mode
        self.detail = detail
        super().__init__(
            f"Payment mode '{payment_mode}' requires '{detail}'",
            field=detail,
        )


# Not found


class NotFoundError(LedgerKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class AccountNotFoundError(NotFoundError):
    """Ledger account with given ID or code was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class VoucherNotFoundError(NotFoundError):
    """Voucher with given ID was not found."""

    code: str = "VOUCHER_NOT_FOUND"

    def __init__(self, voucher_id: str):
        self.voucher_id = voucher_id
        super().__init__(f"Voucher not found: {voucher_id}")


class PartyNotFoundError(NotFoundError):
    """Customer or vendor was not found in the party directory."""

    code: str = "PARTY_NOT_FOUND"

    def __init__(self, party_id: str, party_type: str):
        self.party_id = party_id
        self.party_type = party_type
        super().__init__(f"{party_type} not found: {party_id}")


class InvoiceNotFoundError(NotFoundError):
    """Invoice was not found by the invoice collaborator."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class ExpenseCategoryNotFoundError(NotFoundError):
    """Expense category was not found."""

    code: str = "EXPENSE_CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Expense category not found: {category_id}")


# Business rules


class BusinessRuleError(LedgerKernelError):
    """Base exception for well-formed input that violates a ledger rule."""

    code: str = "BUSINESS_RULE_VIOLATION"
    http_status: int = 422


class UnbalancedVoucherError(BusinessRuleError):
    """Voucher debits do not equal credits. Must never be persisted."""

    code: str = "UNBALANCED"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Unbalanced voucher: debits={debits}, credits={credits}"
        )


class InsufficientBalanceError(BusinessRuleError):
    """Source account does not hold enough to cover a transfer."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, account_code: str, available: str, requested: str):
        self.account_code = account_code
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance in {account_code}: "
            f"available={available}, requested={requested}"
        )


class AllocationExceedsOutstandingError(BusinessRuleError):
    """Allocation against an invoice exceeds its outstanding amount."""

    code: str = "ALLOCATION_EXCEEDS_OUTSTANDING"

    def __init__(self, invoice_id: str, outstanding: str, requested: str):
        self.invoice_id = invoice_id
        self.outstanding = outstanding
        self.requested = requested
        super().__init__(
            f"Allocation for invoice {invoice_id} ({requested}) "
            f"exceeds outstanding ({outstanding})"
        )


class PartyMismatchError(BusinessRuleError):
    """Invoice does not belong to the party named on the voucher."""

    code: str = "PARTY_MISMATCH"

    def __init__(self, invoice_id: str, party_id: str, party_type: str):
        self.invoice_id = invoice_id
        self.party_id = party_id
        self.party_type = party_type
        super().__init__(
            f"Invoice {invoice_id} does not belong to {party_type} {party_id}"
        )


class DirectPostingDisallowedError(BusinessRuleError):
    """Account is a summary/control account closed to manual postings."""

    code: str = "DIRECT_POSTING_DISALLOWED"

    def __init__(self, account_id: str, account_name: str):
        self.account_id = account_id
        self.account_name = account_name
        super().__init__(
            f"Direct posting not allowed for account: {account_name}"
        )


class AccountInactiveError(BusinessRuleError):
    """Account is deactivated and cannot receive postings."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_name: str):
        self.account_id = account_id
        self.account_name = account_name
        super().__init__(f"Account is inactive: {account_name}")


class AccountCycleError(BusinessRuleError):
    """Setting the parent would make the account its own ancestor."""

    code: str = "ACCOUNT_CYCLE"

    def __init__(self, account_id: str, parent_account_id: str):
        self.account_id = account_id
        self.parent_account_id = parent_account_id
        super().__init__(
            f"Account {account_id} cannot be placed under {parent_account_id}: "
            "the hierarchy would contain a cycle"
        )


# Conflicts


class ConflictError(LedgerKernelError):
    """Base exception for requests that conflict with current state."""

    code: str = "CONFLICT"
    http_status: int = 409


class AccountReferencedError(ConflictError):
    """Account has postings or children and cannot be deleted."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Cannot delete account {account_id}: {reason}")


class SystemAccountProtectedError(ConflictError):
    """System accounts such as Cash in Hand cannot be deleted."""

    code: str = "SYSTEM_ACCOUNT_PROTECTED"

    def __init__(self, account_id: str, account_name: str):
        self.account_id = account_id
        self.account_name = account_name
        super().__init__(f"System account cannot be deleted: {account_name}")


class InvalidStateTransitionError(ConflictError):
    """Voucher lifecycle transition is not allowed from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, voucher_id: str, from_status: str, to_status: str):
        self.voucher_id = voucher_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Voucher {voucher_id} cannot move from '{from_status}' "
            f"to '{to_status}'"
        )


class ImmutableApprovedVoucherError(ConflictError):
    """Monetary edit of an approved voucher attempted without force."""

    code: str = "IMMUTABLE_APPROVED_VOUCHER"

    def __init__(self, voucher_id: str, voucher_no: str):
        self.voucher_id = voucher_id
        self.voucher_no = voucher_no
        super().__init__(
            f"Cannot update approved voucher {voucher_no} without force"
        )


class ConcurrencyConflictError(ConflictError):
    """Write conflict persisted after all retry attempts."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Operation '{operation}' hit a write conflict on all "
            f"{attempts} attempt(s)"
        )


# Immutability


class ImmutabilityViolationError(LedgerKernelError):
    """An append-only ledger record was modified or deleted."""

    code: str = "IMMUTABILITY_VIOLATION"
    http_status: int = 500

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Infrastructure


class InfrastructureError(LedgerKernelError):
    """Base exception for failures outside the ledger's own rules."""

    code: str = "INFRASTRUCTURE_ERROR"
    http_status: int = 503


class UnitOfWorkTimeoutError(InfrastructureError):
    """Unit of work ran past its deadline and was rolled back."""

    code: str = "UNIT_OF_WORK_TIMEOUT"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Operation '{operation}' exceeded {timeout_seconds}s and was rolled back"
        )


class LedgerStorageError(InfrastructureError):
    """Storage failed unexpectedly. Requires manual reconciliation review."""

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during '{operation}': {detail}")
