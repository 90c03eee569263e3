"""
LedgerPoster -- writes immutable ledger entries and keeps balances.

Responsibility:
    ``post`` turns a voucher's lines into ledger entries and moves the
    running balance of every account touched.  ``reverse`` cancels a
    posting by writing mirror entries; the originals stay in place, flagged
    ``is_reversed``.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the approval service
    when a voucher enters or leaves ``approved``, and by VoucherService when
    an approved voucher is force-updated.

Invariants enforced:
    - Sign convention: asset / expense += debit - credit;
      liability / equity / income += credit - debit.
    - current_balance == opening_balance + signed sum of all entries,
      originals and mirrors alike.
    - Idempotent posting: a voucher with live entries is not posted twice.
    - Accounts are locked FOR UPDATE in ascending id order before any
      balance moves.
    - Ledger entries are never updated except for the reversal flags
      (db/immutability.py rejects anything else).

Failure modes:
    - StaleDataError on a concurrent balance update (retried by the unit
      of work).
    - AccountNotFoundError if a line refers to a deleted account.

Audit relevance:
    Each entry records the account's running balance after it was
    applied, so any balance can be traced back through the entry table.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.amounts import ZERO, balance_delta, financial_year_for
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.collaborators import PartyDirectory
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.models.expense_category import ExpenseCategory
from ledger_kernel.models.ledger_entry import LedgerEntry
from ledger_kernel.models.voucher import Voucher
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.allocation_service import AllocationService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger_poster")

REVERSAL_NARRATION_PREFIX = "Reversal: "


@dataclass(frozen=True)
class PostingResult:
    voucher_id: UUID
    entry_ids: tuple[UUID, ...]
    already_posted: bool = False


@dataclass(frozen=True)
class ReversalResult:
    voucher_id: UUID
    mirror_entry_ids: tuple[UUID, ...]
    reversed_entry_ids: tuple[UUID, ...]

    @property
    def nothing_to_reverse(self) -> bool:
        return not self.reversed_entry_ids


class LedgerPoster:
    """
    Posting and reversal of voucher lines.

    Contract:
        Works on the caller's session and never commits.  Collaborator
        side effects (invoice deallocation, party on-account balance,
        expense category spend) happen in the same transaction.

    Non-goals:
        - Does NOT decide whether a voucher should be posted; the approval
          state machine does.
    """

    def __init__(
        self,
        session: Session,
        accounts: AccountService,
        allocator: AllocationService,
        parties: PartyDirectory,
        clock: Clock,
    ):
        self._session = session
        self._accounts = accounts
        self._allocator = allocator
        self._parties = parties
        self._clock = clock
        self._sequences = SequenceService(session)

    def live_entries(self, voucher_id: UUID) -> list[LedgerEntry]:
        """Entries of the voucher that are neither reversed nor mirrors."""
        return list(
            self._session.execute(
                select(LedgerEntry)
                .where(
                    LedgerEntry.voucher_id == voucher_id,
                    LedgerEntry.is_reversed.is_(False),
                    LedgerEntry.reversal_of_id.is_(None),
                )
                .order_by(LedgerEntry.line_no)
            ).scalars()
        )

    def post(self, voucher: Voucher, actor_id: UUID) -> PostingResult:
        """
        Write one ledger entry per voucher line and move balances.

        Postconditions:
            - Every line has exactly one live entry.
            - Party on-account balance moved by +on_account_amount.
            - Expense category current_spent moved by +total_amount.
        """
        existing = self.live_entries(voucher.id)
        if existing:
            logger.info(
                "voucher_already_posted",
                extra={"voucher_id": str(voucher.id), "voucher_no": voucher.voucher_no},
            )
            return PostingResult(
                voucher_id=voucher.id,
                entry_ids=tuple(e.id for e in existing),
                already_posted=True,
            )

        locked = self._accounts.lock(line.account_id for line in voucher.lines)
        entries: list[LedgerEntry] = []
        for line in voucher.lines:
            account = locked[line.account_id]
            entry = self._apply(
                voucher,
                account,
                line_no=line.line_no,
                debit=line.debit_amount,
                credit=line.credit_amount,
                narration=line.description or voucher.narration,
                entry_date=voucher.voucher_date,
                actor_id=actor_id,
            )
            entries.append(entry)
        self._session.flush()

        self._adjust_party_on_account(voucher, Decimal("1"))
        self._adjust_expense_spend(voucher, Decimal("1"))

        logger.info(
            "voucher_posted",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_no": voucher.voucher_no,
                "entry_count": len(entries),
                "total_amount": str(voucher.total_amount),
            },
        )
        return PostingResult(voucher_id=voucher.id, entry_ids=tuple(e.id for e in entries))

    def reverse(self, voucher: Voucher, actor_id: UUID) -> ReversalResult:
        """
        Mirror every live entry and undo the posting's side effects.

        A voucher without live entries reverses to a no-op.

        Postconditions:
            - Every former live entry has is_reversed=True, reversed_at set
              and exactly one mirror entry pointing at it.
            - Touched balances are back to their pre-posting values.
            - Invoice allocations released, party on-account and category
              spend restored.
        """
        live = self.live_entries(voucher.id)
        if not live:
            logger.info(
                "voucher_reversal_noop",
                extra={"voucher_id": str(voucher.id), "voucher_no": voucher.voucher_no},
            )
            return ReversalResult(voucher.id, (), ())

        now = self._clock.now()
        today = now.date()
        locked = self._accounts.lock(entry.account_id for entry in live)
        mirrors: list[LedgerEntry] = []
        for entry in live:
            mirror = self._apply(
                voucher,
                locked[entry.account_id],
                line_no=entry.line_no,
                debit=entry.credit_amount,
                credit=entry.debit_amount,
                narration=f"{REVERSAL_NARRATION_PREFIX}{entry.narration or voucher.voucher_no}",
                entry_date=today,
                actor_id=actor_id,
                reversal_of_id=entry.id,
            )
            mirrors.append(mirror)
            entry.is_reversed = True
            entry.reversed_at = now
            entry.updated_by_id = actor_id
        self._session.flush()

        self._allocator.deallocate(voucher.invoice_links)
        self._adjust_party_on_account(voucher, Decimal("-1"))
        self._adjust_expense_spend(voucher, Decimal("-1"))

        logger.info(
            "voucher_reversed",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_no": voucher.voucher_no,
                "mirror_count": len(mirrors),
            },
        )
        return ReversalResult(
            voucher_id=voucher.id,
            mirror_entry_ids=tuple(m.id for m in mirrors),
            reversed_entry_ids=tuple(e.id for e in live),
        )

    def _apply(
        self,
        voucher: Voucher,
        account: LedgerAccount,
        line_no: int,
        debit: Decimal,
        credit: Decimal,
        narration: str | None,
        entry_date,
        actor_id: UUID,
        reversal_of_id: UUID | None = None,
    ) -> LedgerEntry:
        account.current_balance = account.current_balance + balance_delta(
            account.account_type, debit, credit
        )
        account.updated_by_id = actor_id
        entry = LedgerEntry(
            seq=self._sequences.next_value(SequenceService.LEDGER_ENTRY),
            voucher_id=voucher.id,
            voucher_no=voucher.voucher_no,
            voucher_type=voucher.voucher_type,
            account_id=account.id,
            account_name=account.account_name,
            account_code=account.account_code,
            line_no=line_no,
            entry_date=entry_date,
            financial_year=financial_year_for(entry_date),
            month=entry_date.month,
            year=entry_date.year,
            debit_amount=debit,
            credit_amount=credit,
            narration=narration,
            party_id=voucher.party_id,
            party_type=voucher.party_type,
            running_balance=account.current_balance,
            is_reversed=False,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        self._session.add(entry)
        return entry

    def _adjust_party_on_account(self, voucher: Voucher, sign: Decimal) -> None:
        if voucher.party_id is None or not voucher.on_account_amount:
            return
        delta = sign * voucher.on_account_amount
        self._parties.adjust_cash_balance(voucher.party_id, voucher.party_type, delta)
        logger.debug(
            "party_on_account_adjusted",
            extra={
                "party_id": str(voucher.party_id),
                "party_type": voucher.party_type,
                "delta": str(delta),
            },
        )

    def _adjust_expense_spend(self, voucher: Voucher, sign: Decimal) -> None:
        if voucher.expense_category_id is None:
            return
        category = self._session.execute(
            select(ExpenseCategory)
            .where(ExpenseCategory.id == voucher.expense_category_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()
        category.current_spent = max(
            category.current_spent + sign * voucher.total_amount, ZERO
        )
        if sign > 0 and category.monthly_budget and category.current_spent > category.monthly_budget:
            logger.warning(
                "expense_budget_exceeded",
                extra={
                    "category_id": str(category.id),
                    "category_code": category.category_code,
                    "current_spent": str(category.current_spent),
                    "monthly_budget": str(category.monthly_budget),
                },
            )
