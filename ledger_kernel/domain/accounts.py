"""
Chart-of-accounts vocabulary.

Account types and subtypes, the well-known system accounts, the synthetic
per-party accounts and the cash/bank classification rule.  Pure data and
functions; the ORM model lives in models/account.py.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class AccountType(str, Enum):
    """Top-level account classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class AccountSubType(str, Enum):
    """Second-level classification, constrained by AccountType."""

    CURRENT_ASSET = "current_asset"
    FIXED_ASSET = "fixed_asset"
    CURRENT_LIABILITY = "current_liability"
    LONG_TERM_LIABILITY = "long_term_liability"
    SHARE_CAPITAL = "share_capital"
    RETAINED_EARNINGS = "retained_earnings"
    SALES = "sales"
    OTHER_INCOME = "other_income"
    OPERATING_EXPENSE = "operating_expense"
    FINANCIAL_EXPENSE = "financial_expense"


SUBTYPES_BY_TYPE: dict[AccountType, frozenset[AccountSubType]] = {
    AccountType.ASSET: frozenset({
        AccountSubType.CURRENT_ASSET,
        AccountSubType.FIXED_ASSET,
    }),
    AccountType.LIABILITY: frozenset({
        AccountSubType.CURRENT_LIABILITY,
        AccountSubType.LONG_TERM_LIABILITY,
    }),
    AccountType.EQUITY: frozenset({
        AccountSubType.SHARE_CAPITAL,
        AccountSubType.RETAINED_EARNINGS,
    }),
    AccountType.INCOME: frozenset({
        AccountSubType.SALES,
        AccountSubType.OTHER_INCOME,
    }),
    AccountType.EXPENSE: frozenset({
        AccountSubType.OPERATING_EXPENSE,
        AccountSubType.FINANCIAL_EXPENSE,
    }),
}


def subtype_allowed(account_type: AccountType | str, sub_type: AccountSubType | str | None) -> bool:
    if sub_type is None:
        return True
    return AccountSubType(sub_type) in SUBTYPES_BY_TYPE[AccountType(account_type)]


@dataclass(frozen=True)
class SystemAccountSpec:
    """Definition of an account the kernel creates on first use."""

    code: str
    name: str
    account_type: AccountType
    sub_type: AccountSubType


CASH_IN_HAND = SystemAccountSpec(
    code="CASH001",
    name="Cash in Hand",
    account_type=AccountType.ASSET,
    sub_type=AccountSubType.CURRENT_ASSET,
)

BANK_ACCOUNT = SystemAccountSpec(
    code="BANK001",
    name="Bank Account",
    account_type=AccountType.ASSET,
    sub_type=AccountSubType.CURRENT_ASSET,
)


class PartyAccountRole(str, Enum):
    """Synthetic account kinds opened per customer or vendor."""

    CUSTOMER_RECEIVABLE = "customer_receivable"
    CUSTOMER_ADVANCE = "customer_advance"
    VENDOR_PAYABLE = "vendor_payable"
    VENDOR_ADVANCE = "vendor_advance"


@dataclass(frozen=True)
class PartyAccountTemplate:
    code_prefix: str
    name_prefix: str
    account_type: AccountType
    sub_type: AccountSubType


PARTY_ACCOUNT_TEMPLATES: dict[PartyAccountRole, PartyAccountTemplate] = {
    PartyAccountRole.CUSTOMER_RECEIVABLE: PartyAccountTemplate(
        "CUST", "Customer", AccountType.ASSET, AccountSubType.CURRENT_ASSET,
    ),
    PartyAccountRole.CUSTOMER_ADVANCE: PartyAccountTemplate(
        "CADV", "Customer Advance", AccountType.LIABILITY, AccountSubType.CURRENT_LIABILITY,
    ),
    PartyAccountRole.VENDOR_PAYABLE: PartyAccountTemplate(
        "VEND", "Vendor", AccountType.LIABILITY, AccountSubType.CURRENT_LIABILITY,
    ),
    PartyAccountRole.VENDOR_ADVANCE: PartyAccountTemplate(
        "VADV", "Vendor Advance", AccountType.ASSET, AccountSubType.CURRENT_ASSET,
    ),
}


def party_account_spec(
    role: PartyAccountRole, party_id: UUID, party_name: str
) -> SystemAccountSpec:
    """Code and name of the synthetic account for ``party_id`` in ``role``."""
    template = PARTY_ACCOUNT_TEMPLATES[role]
    return SystemAccountSpec(
        code=f"{template.code_prefix}-{party_id.hex}",
        name=f"{template.name_prefix} - {party_name}",
        account_type=template.account_type,
        sub_type=template.sub_type,
    )


CASH_BANK_NAME_MARKERS = ("cash in hand", "bank account", "petty cash", "cash at bank")
CASH_BANK_CODE_PREFIXES = ("CASH", "BANK")


def is_cash_or_bank(
    account_name: str,
    account_code: str,
    account_type: AccountType | str,
    sub_type: AccountSubType | str | None,
) -> bool:
    """Whether an account may take part in a contra transfer."""
    lowered = (account_name or "").lower()
    if any(marker in lowered for marker in CASH_BANK_NAME_MARKERS):
        return True
    return (
        account_type == AccountType.ASSET
        and sub_type == AccountSubType.CURRENT_ASSET
        and (account_code or "").upper().startswith(CASH_BANK_CODE_PREFIXES)
    )
