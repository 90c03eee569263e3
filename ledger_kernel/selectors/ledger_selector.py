"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries -- trial balance, party statement,
    account balance over a period and the paged ledger entry listing.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every figure is derived from ledger entries.  Originals and reversal
      mirrors are both included, so a reversed voucher nets to zero.
    - Trial balance totals: sum(debit_total) == sum(credit_total) for any
      date range, because every voucher posts balanced lines.

Failure modes:
    - AccountNotFoundError from account_balance for an unknown account.
    - Empty reports (zero totals) when no entries match.

Audit relevance:
    The trial balance is the standing proof of the double-entry invariant.
    A non-zero difference means the ledger has been corrupted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.amounts import ZERO, balance_delta, is_balanced
from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.domain.vouchers import PartyType
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.models.ledger_entry import LedgerEntry
from ledger_kernel.selectors.base import BaseSelector, Page, clamp_limit, money
from ledger_kernel.selectors.voucher_selector import LedgerEntryRecord


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total

    @property
    def signed_balance(self) -> Decimal:
        """Net movement in the account's normal direction."""
        return balance_delta(self.account_type, self.debit_total, self.credit_total)


@dataclass(frozen=True)
class TrialBalance:
    date_from: date | None
    date_to: date | None
    rows: tuple[TrialBalanceRow, ...]

    @property
    def total_debit(self) -> Decimal:
        return sum((row.debit_total for row in self.rows), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((row.credit_total for row in self.rows), ZERO)

    @property
    def is_balanced(self) -> bool:
        return is_balanced(self.total_debit, self.total_credit)


@dataclass(frozen=True)
class StatementLine:
    entry_id: UUID
    entry_date: date
    voucher_id: UUID
    voucher_no: str
    voucher_type: str
    account_code: str
    narration: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class PartyStatement:
    """
    Movements on a party's ledger accounts.

    Customer balances run debit - credit (what the customer owes); vendor
    balances run credit - debit (what is owed to the vendor).  Receivable
    and advance accounts are combined.
    """

    party_id: UUID
    party_type: PartyType
    date_from: date | None
    date_to: date | None
    opening_balance: Decimal
    lines: tuple[StatementLine, ...]

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), ZERO)

    @property
    def closing_balance(self) -> Decimal:
        if self.lines:
            return self.lines[-1].running_balance
        return self.opening_balance


@dataclass(frozen=True)
class AccountBalanceReport:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    date_from: date | None
    date_to: date | None
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    entry_count: int

    @property
    def closing_balance(self) -> Decimal:
        return self.opening_balance + balance_delta(
            self.account_type, self.total_debit, self.total_credit
        )


@dataclass(frozen=True)
class LedgerEntryFilter:
    account_id: UUID | None = None
    voucher_id: UUID | None = None
    party_id: UUID | None = None
    party_type: PartyType | None = None
    date_from: date | None = None
    date_to: date | None = None
    include_reversed: bool = True
    limit: int | None = None
    offset: int = 0


def _party_sign(party_type: PartyType, debit: Decimal, credit: Decimal) -> Decimal:
    if party_type == PartyType.CUSTOMER:
        return debit - credit
    return credit - debit


class LedgerSelector(BaseSelector[LedgerEntry]):
    """
    Selector for ledger reports.

    Contract:
        Date bounds are inclusive and apply to ``entry_date``.  A mirror
        entry carries the date it was reversed on, so a report for the
        original period still shows the original posting.
    """

    def trial_balance(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> TrialBalance:
        """One row per account with entries in range, ordered by code."""
        query = (
            select(
                LedgerAccount.id,
                LedgerAccount.account_code,
                LedgerAccount.account_name,
                LedgerAccount.account_type,
                func.sum(LedgerEntry.debit_amount).label("debit_total"),
                func.sum(LedgerEntry.credit_amount).label("credit_total"),
            )
            .join(LedgerAccount, LedgerEntry.account_id == LedgerAccount.id)
            .group_by(
                LedgerAccount.id,
                LedgerAccount.account_code,
                LedgerAccount.account_name,
                LedgerAccount.account_type,
            )
            .order_by(LedgerAccount.account_code)
        )
        if date_from is not None:
            query = query.where(LedgerEntry.entry_date >= date_from)
        if date_to is not None:
            query = query.where(LedgerEntry.entry_date <= date_to)

        rows = tuple(
            TrialBalanceRow(
                account_id=row.id,
                account_code=row.account_code,
                account_name=row.account_name,
                account_type=AccountType(row.account_type),
                debit_total=money(row.debit_total),
                credit_total=money(row.credit_total),
            )
            for row in self.session.execute(query).all()
        )
        return TrialBalance(date_from=date_from, date_to=date_to, rows=rows)

    def party_statement(
        self,
        party_id: UUID,
        party_type: PartyType | str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> PartyStatement:
        party_type = PartyType(party_type)
        account_ids = select(LedgerAccount.id).where(
            LedgerAccount.party_id == party_id,
            LedgerAccount.party_type == party_type.value,
        )
        query = (
            select(LedgerEntry)
            .where(LedgerEntry.account_id.in_(account_ids))
            .order_by(LedgerEntry.entry_date, LedgerEntry.seq)
        )
        if date_to is not None:
            query = query.where(LedgerEntry.entry_date <= date_to)
        entries = self.session.execute(query).scalars()

        opening = ZERO
        running = ZERO
        lines: list[StatementLine] = []
        for entry in entries:
            delta = _party_sign(party_type, entry.debit_amount, entry.credit_amount)
            if date_from is not None and entry.entry_date < date_from:
                opening += delta
                running = opening
                continue
            running += delta
            lines.append(
                StatementLine(
                    entry_id=entry.id,
                    entry_date=entry.entry_date,
                    voucher_id=entry.voucher_id,
                    voucher_no=entry.voucher_no,
                    voucher_type=entry.voucher_type,
                    account_code=entry.account_code,
                    narration=entry.narration,
                    debit_amount=money(entry.debit_amount),
                    credit_amount=money(entry.credit_amount),
                    running_balance=money(running),
                )
            )

        return PartyStatement(
            party_id=party_id,
            party_type=party_type,
            date_from=date_from,
            date_to=date_to,
            opening_balance=money(opening),
            lines=tuple(lines),
        )

    def account_balance(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> AccountBalanceReport:
        """
        Opening balance, period totals and closing balance of one account.

        The opening balance is the account's opening_balance plus the signed
        effect of every entry before ``date_from``.
        """
        account = self.session.get(LedgerAccount, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        account_type = AccountType(account.account_type)

        def totals(*conditions):
            row = self.session.execute(
                select(
                    func.sum(LedgerEntry.debit_amount),
                    func.sum(LedgerEntry.credit_amount),
                    func.count(LedgerEntry.id),
                ).where(LedgerEntry.account_id == account_id, *conditions)
            ).one()
            return money(row[0]), money(row[1]), row[2]

        opening = money(account.opening_balance)
        if date_from is not None:
            debit, credit, _ = totals(LedgerEntry.entry_date < date_from)
            opening += balance_delta(account_type, debit, credit)

        period = []
        if date_from is not None:
            period.append(LedgerEntry.entry_date >= date_from)
        if date_to is not None:
            period.append(LedgerEntry.entry_date <= date_to)
        debit, credit, count = totals(*period)

        return AccountBalanceReport(
            account_id=account.id,
            account_code=account.account_code,
            account_name=account.account_name,
            account_type=account_type,
            date_from=date_from,
            date_to=date_to,
            opening_balance=opening,
            total_debit=debit,
            total_credit=credit,
            entry_count=count,
        )

    def entries(self, filters: LedgerEntryFilter | None = None) -> Page[LedgerEntryRecord]:
        """Ledger entries in posting order, paged."""
        filters = filters or LedgerEntryFilter()
        conditions = []
        if filters.account_id is not None:
            conditions.append(LedgerEntry.account_id == filters.account_id)
        if filters.voucher_id is not None:
            conditions.append(LedgerEntry.voucher_id == filters.voucher_id)
        if filters.party_id is not None:
            conditions.append(LedgerEntry.party_id == filters.party_id)
        if filters.party_type is not None:
            conditions.append(LedgerEntry.party_type == PartyType(filters.party_type).value)
        if filters.date_from is not None:
            conditions.append(LedgerEntry.entry_date >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(LedgerEntry.entry_date <= filters.date_to)
        if not filters.include_reversed:
            conditions.append(LedgerEntry.is_reversed.is_(False))
            conditions.append(LedgerEntry.reversal_of_id.is_(None))

        total = self.session.execute(
            select(func.count()).select_from(LedgerEntry).where(*conditions)
        ).scalar_one()

        limit = clamp_limit(filters.limit)
        offset = max(filters.offset, 0)
        rows = self.session.execute(
            select(LedgerEntry)
            .where(*conditions)
            .order_by(LedgerEntry.entry_date, LedgerEntry.seq)
            .limit(limit)
            .offset(offset)
        ).scalars()
        return Page(
            items=tuple(LedgerEntryRecord.from_model(e) for e in rows),
            total=total,
            limit=limit,
            offset=offset,
        )
