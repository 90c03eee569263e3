"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Chart-of-accounts reads -- active accounts grouped by type
    and the nested account hierarchy.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountRecord:
    id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    sub_type: str | None
    parent_account_id: UUID | None
    level: int
    is_active: bool
    allow_direct_posting: bool
    opening_balance: Decimal
    current_balance: Decimal
    is_system_account: bool
    description: str | None
    party_id: UUID | None
    party_type: str | None

    @classmethod
    def from_model(cls, account: LedgerAccount) -> AccountRecord:
        return cls(
            id=account.id,
            account_code=account.account_code,
            account_name=account.account_name,
            account_type=AccountType(account.account_type),
            sub_type=account.sub_type,
            parent_account_id=account.parent_account_id,
            level=account.level,
            is_active=account.is_active,
            allow_direct_posting=account.allow_direct_posting,
            opening_balance=account.opening_balance,
            current_balance=account.current_balance,
            is_system_account=account.is_system_account,
            description=account.description,
            party_id=account.party_id,
            party_type=account.party_type,
        )


@dataclass
class AccountNode:
    account: AccountRecord
    children: list[AccountNode] = field(default_factory=list)

    def walk(self):
        """Yield this node and its descendants depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


class AccountSelector(BaseSelector[LedgerAccount]):

    def _accounts(self, include_inactive: bool) -> list[LedgerAccount]:
        query = select(LedgerAccount).order_by(LedgerAccount.account_code)
        if not include_inactive:
            query = query.where(LedgerAccount.is_active.is_(True))
        return list(self.session.execute(query).scalars())

    def get(self, account_id: UUID) -> AccountRecord | None:
        account = self.session.get(LedgerAccount, account_id)
        return AccountRecord.from_model(account) if account else None

    def chart_of_accounts(
        self, include_inactive: bool = False
    ) -> dict[AccountType, list[AccountRecord]]:
        """Accounts grouped by type, each group ordered by code."""
        grouped: dict[AccountType, list[AccountRecord]] = {t: [] for t in AccountType}
        for account in self._accounts(include_inactive):
            record = AccountRecord.from_model(account)
            grouped[record.account_type].append(record)
        return grouped

    def account_tree(self, include_inactive: bool = True) -> list[AccountNode]:
        """
        Accounts as a forest of root nodes ordered by code.

        An account whose parent is filtered out is shown as a root.
        """
        nodes = {
            account.id: AccountNode(AccountRecord.from_model(account))
            for account in self._accounts(include_inactive)
        }
        roots: list[AccountNode] = []
        for node in nodes.values():
            parent = nodes.get(node.account.parent_account_id)
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots
