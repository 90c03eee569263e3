"""
AccountService -- chart-of-accounts writes and account resolution.

Responsibility:
    Account administration (create, update, re-parent, delete), the
    idempotent get-or-create of system and per-party accounts, and the
    posting-time lookups used by the voucher processors and the poster.

Architecture position:
    Kernel > Services -- imperative shell.  Never commits.

Invariants enforced:
    - account_code is unique; duplicate creation fails ValidationError.
    - The hierarchy is acyclic: re-parenting under the account itself or
      one of its descendants fails AccountCycleError.  level is recomputed
      for the moved subtree.
    - account_type is frozen once the account has ledger entries.
    - System accounts are never deleted; accounts with entries or children
      are never deleted.
    - Rows that will be written are locked FOR UPDATE in ascending id
      order, so two transactions never wait on each other in a cycle.

Failure modes:
    - AccountNotFoundError, AccountInactiveError,
      DirectPostingDisallowedError, AccountCycleError,
      AccountReferencedError, SystemAccountProtectedError, ValidationError.
    - IntegrityError inside get_or_create is absorbed: a concurrent
      transaction created the same account, so it is reloaded.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import (
    BANK_ACCOUNT,
    CASH_IN_HAND,
    AccountSubType,
    AccountType,
    PartyAccountRole,
    SystemAccountSpec,
    party_account_spec,
    subtype_allowed,
)
from ledger_kernel.domain.amounts import to_money
from ledger_kernel.domain.vouchers import PaymentMode
from ledger_kernel.exceptions import (
    AccountCycleError,
    AccountInactiveError,
    AccountNotFoundError,
    AccountReferencedError,
    DirectPostingDisallowedError,
    SystemAccountProtectedError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.models.ledger_entry import LedgerEntry
from ledger_kernel.models.voucher import VoucherLine

logger = get_logger("services.account")


@dataclass(frozen=True)
class AccountData:
    """Input for creating an account."""

    account_code: str
    account_name: str
    account_type: AccountType
    sub_type: AccountSubType | None = None
    parent_account_id: UUID | None = None
    opening_balance: Decimal = Decimal("0")
    allow_direct_posting: bool = True
    is_active: bool = True
    description: str | None = None
    is_system_account: bool = False


@dataclass(frozen=True)
class AccountChanges:
    """Partial update of an account. None means unchanged."""

    account_name: str | None = None
    account_type: AccountType | None = None
    sub_type: AccountSubType | None = None
    description: str | None = None
    is_active: bool | None = None
    allow_direct_posting: bool | None = None
    parent_account_id: UUID | None = None
    detach_from_parent: bool = False


def cash_bank_spec(payment_mode: PaymentMode | str | None) -> SystemAccountSpec:
    """Cash goes to Cash in Hand; every other mode settles through the bank."""
    if payment_mode is None or PaymentMode(payment_mode) == PaymentMode.CASH:
        return CASH_IN_HAND
    return BANK_ACCOUNT


class AccountService:
    """
    Chart-of-accounts service.

    Contract:
        Operates on the caller's session.  Every write is flushed, never
        committed.
    """

    def __init__(self, session: Session):
        self._session = session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, account_id: UUID) -> LedgerAccount:
        account = self._session.get(LedgerAccount, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_by_code(self, account_code: str) -> LedgerAccount | None:
        return self._session.execute(
            select(LedgerAccount).where(LedgerAccount.account_code == account_code)
        ).scalar_one_or_none()

    def require_postable(self, account_id: UUID) -> LedgerAccount:
        """Account must exist, be active and accept direct postings."""
        account = self.require_active(account_id)
        if not account.allow_direct_posting:
            raise DirectPostingDisallowedError(str(account.id), account.account_name)
        return account

    def require_active(self, account_id: UUID) -> LedgerAccount:
        account = self.get(account_id)
        if not account.is_active:
            raise AccountInactiveError(str(account.id), account.account_name)
        return account

    def lock(self, account_ids: Iterable[UUID]) -> dict[UUID, LedgerAccount]:
        """
        Lock the given accounts FOR UPDATE in ascending id order.

        Rows are re-read (populate_existing) so the balances seen by the
        caller are the ones the lock protects.
        """
        ordered = sorted({UUID(str(a)) for a in account_ids}, key=str)
        locked: dict[UUID, LedgerAccount] = {}
        for account_id in ordered:
            account = self._session.execute(
                select(LedgerAccount)
                .where(LedgerAccount.id == account_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if account is None:
                raise AccountNotFoundError(str(account_id))
            locked[account_id] = account
        return locked

    def first_active_expense_account(self) -> LedgerAccount | None:
        return self._session.execute(
            select(LedgerAccount)
            .where(
                LedgerAccount.account_type == AccountType.EXPENSE.value,
                LedgerAccount.is_active.is_(True),
            )
            .order_by(LedgerAccount.account_code)
            .limit(1)
        ).scalar_one_or_none()

    def has_entries(self, account_id: UUID) -> bool:
        return bool(
            self._session.execute(
                select(exists().where(LedgerEntry.account_id == account_id))
            ).scalar()
        )

    def has_children(self, account_id: UUID) -> bool:
        return bool(
            self._session.execute(
                select(exists().where(LedgerAccount.parent_account_id == account_id))
            ).scalar()
        )

    # ------------------------------------------------------------------
    # Idempotent upserts
    # ------------------------------------------------------------------

    def get_or_create(
        self,
        spec: SystemAccountSpec,
        actor_id: UUID,
        party_id: UUID | None = None,
        party_type: str | None = None,
    ) -> LedgerAccount:
        """
        Return the account with ``spec.code``, creating it on first use.

        Creation runs in a SAVEPOINT.  A unique-constraint violation means a
        concurrent transaction won the race; the savepoint is rolled back and
        the existing row reloaded.
        """
        account = self.get_by_code(spec.code)
        if account is not None:
            return account

        savepoint = self._session.begin_nested()
        try:
            account = LedgerAccount(
                account_code=spec.code,
                account_name=spec.name,
                account_type=spec.account_type.value,
                sub_type=spec.sub_type.value,
                level=0,
                is_active=True,
                allow_direct_posting=True,
                opening_balance=Decimal("0"),
                current_balance=Decimal("0"),
                is_system_account=True,
                party_id=party_id,
                party_type=party_type,
                created_by_id=actor_id,
            )
            self._session.add(account)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "account_upsert_race_reload",
                extra={"account_code": spec.code},
            )
            account = self.get_by_code(spec.code)
            if account is None:
                raise
            return account

        logger.info(
            "account_auto_created",
            extra={
                "account_id": str(account.id),
                "account_code": spec.code,
                "party_id": str(party_id) if party_id else None,
            },
        )
        return account

    def cash_bank_account(
        self, payment_mode: PaymentMode | str | None, actor_id: UUID
    ) -> LedgerAccount:
        return self.get_or_create(cash_bank_spec(payment_mode), actor_id)

    def party_account(
        self,
        role: PartyAccountRole,
        party_id: UUID,
        party_type: str,
        party_name: str,
        actor_id: UUID,
    ) -> LedgerAccount:
        spec = party_account_spec(role, party_id, party_name)
        return self.get_or_create(spec, actor_id, party_id=party_id, party_type=party_type)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create_account(self, data: AccountData, actor_id: UUID) -> LedgerAccount:
        """
        Create an account.

        Raises:
            ValidationError: Blank/duplicate code, or sub_type not valid for
                account_type.
            AccountNotFoundError: parent_account_id does not exist.
        """
        code = (data.account_code or "").strip()
        name = (data.account_name or "").strip()
        if not code or not name:
            raise ValidationError("account_code and account_name are required")
        account_type = AccountType(data.account_type)
        if not subtype_allowed(account_type, data.sub_type):
            raise ValidationError(
                f"sub_type '{data.sub_type}' is not valid for {account_type.value}",
                field="sub_type",
            )
        if self.get_by_code(code) is not None:
            raise ValidationError(f"Account code already exists: {code}", field="account_code")

        level = 0
        if data.parent_account_id is not None:
            level = self.get(data.parent_account_id).level + 1

        opening = to_money(data.opening_balance, "opening_balance")
        account = LedgerAccount(
            account_code=code,
            account_name=name,
            account_type=account_type.value,
            sub_type=AccountSubType(data.sub_type).value if data.sub_type else None,
            parent_account_id=data.parent_account_id,
            level=level,
            is_active=data.is_active,
            allow_direct_posting=data.allow_direct_posting,
            opening_balance=opening,
            current_balance=opening,
            is_system_account=data.is_system_account,
            description=data.description,
            created_by_id=actor_id,
        )
        self._session.add(account)
        self._session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "account_code": code,
                "account_type": account_type.value,
                "level": level,
            },
        )
        return account

    def update_account(
        self, account_id: UUID, changes: AccountChanges, actor_id: UUID
    ) -> LedgerAccount:
        account = self.get(account_id)

        if changes.account_type is not None and changes.account_type != account.account_type:
            if self.has_entries(account.id):
                raise AccountReferencedError(
                    str(account.id), "account_type cannot change once entries exist"
                )
            account.account_type = AccountType(changes.account_type).value

        if changes.sub_type is not None:
            account.sub_type = AccountSubType(changes.sub_type).value
        if not subtype_allowed(account.account_type, account.sub_type):
            raise ValidationError(
                f"sub_type '{account.sub_type}' is not valid for {account.account_type}",
                field="sub_type",
            )

        if changes.account_name is not None:
            if not changes.account_name.strip():
                raise ValidationError("account_name cannot be blank", field="account_name")
            account.account_name = changes.account_name.strip()
        if changes.description is not None:
            account.description = changes.description
        if changes.is_active is not None:
            account.is_active = changes.is_active
        if changes.allow_direct_posting is not None:
            account.allow_direct_posting = changes.allow_direct_posting

        if changes.detach_from_parent:
            self._move(account, None)
        elif changes.parent_account_id is not None:
            self._move(account, changes.parent_account_id)

        account.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "account_updated",
            extra={"account_id": str(account.id), "account_code": account.account_code},
        )
        return account

    def _move(self, account: LedgerAccount, parent_id: UUID | None) -> None:
        """Re-parent ``account`` and recompute levels for its subtree."""
        if parent_id is None:
            account.parent_account_id = None
            account.level = 0
        else:
            parent = self.get(parent_id)
            self._assert_not_descendant(account, parent)
            account.parent_account_id = parent.id
            account.level = parent.level + 1

        queue = deque([account])
        while queue:
            node = queue.popleft()
            children = self._session.execute(
                select(LedgerAccount).where(LedgerAccount.parent_account_id == node.id)
            ).scalars().all()
            for child in children:
                child.level = node.level + 1
                queue.append(child)

    def _assert_not_descendant(self, account: LedgerAccount, new_parent: LedgerAccount) -> None:
        """Walk up from new_parent; meeting ``account`` means a cycle."""
        seen: set[UUID] = set()
        node: LedgerAccount | None = new_parent
        while node is not None:
            if node.id == account.id:
                raise AccountCycleError(str(account.id), str(new_parent.id))
            if node.id in seen:
                raise AccountCycleError(str(account.id), str(new_parent.id))
            seen.add(node.id)
            if node.parent_account_id is None:
                break
            node = self._session.get(LedgerAccount, node.parent_account_id)

    def delete_account(self, account_id: UUID) -> None:
        account = self.get(account_id)
        if account.is_system_account:
            raise SystemAccountProtectedError(str(account.id), account.account_name)
        if self.has_entries(account.id):
            raise AccountReferencedError(str(account.id), "account has ledger entries")
        if self.has_children(account.id):
            raise AccountReferencedError(str(account.id), "account has child accounts")
        on_voucher = self._session.execute(
            select(exists().where(VoucherLine.account_id == account.id))
        ).scalar()
        if on_voucher:
            raise AccountReferencedError(str(account.id), "account is used on vouchers")

        self._session.delete(account)
        self._session.flush()
        logger.info(
            "account_deleted",
            extra={"account_id": str(account_id), "account_code": account.account_code},
        )
