"""
Money arithmetic for the ledger.

Responsibility:
    Quantization to the 0.01 money unit, the balance tolerance, the
    debit/credit sign convention per account type, flat-rate line tax and
    the April-March financial year label.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Amounts are Decimal, never float.  Floats are rejected.
    - Rounding is ROUND_HALF_UP at two places.
    - Debits equal credits when they differ by no more than
      BALANCE_TOLERANCE.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.exceptions import ValidationError

ZERO = Decimal("0")
MONEY_QUANTUM = Decimal("0.01")
BALANCE_TOLERANCE = Decimal("0.01")

# Account types whose balance grows with debits.
DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def quantize_money(value: Decimal) -> Decimal:
    """Round to two places, half up."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def to_money(value: Decimal | int | str | None, field: str = "amount") -> Decimal:
    """
    Coerce ``value`` to a quantized Decimal.

    Raises:
        ValidationError: value is None, a float, a bool or not numeric.
    """
    if value is None or isinstance(value, (bool, float)):
        raise ValidationError(f"{field} must be a Decimal, int or numeric string", field=field)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} is not a valid amount: {value!r}", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    return quantize_money(amount)


def require_positive(value: Decimal | int | str | None, field: str = "amount") -> Decimal:
    """Coerce and require a strictly positive amount."""
    amount = to_money(value, field)
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return amount


def is_balanced(
    debits: Decimal,
    credits: Decimal,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> bool:
    return abs(debits - credits) <= tolerance


def balance_delta(account_type: AccountType | str, debit: Decimal, credit: Decimal) -> Decimal:
    """
    Signed effect of one posting on an account's running balance.

    asset / expense:            debit - credit
    liability / equity / income: credit - debit
    """
    if AccountType(account_type) in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def compute_tax(amount: Decimal, tax_percent: Decimal | None) -> Decimal:
    """Informational line tax: amount * percent / 100, quantized."""
    if not tax_percent:
        return ZERO
    percent = Decimal(tax_percent)
    if percent < ZERO or percent > Decimal("100"):
        raise ValidationError("tax_percent must be between 0 and 100", field="tax_percent")
    return quantize_money(amount * percent / Decimal("100"))


def financial_year_for(on_date: date) -> str:
    """
    Financial year label running April to March.

    >>> financial_year_for(date(2024, 4, 1))
    '2024-2025'
    >>> financial_year_for(date(2025, 3, 31))
    '2024-2025'
    """
    start = on_date.year if on_date.month >= 4 else on_date.year - 1
    return f"{start}-{start + 1}"
