"""
ledger_services.voucher_lifecycle -- the public entry point of the ledger.

Responsibility:
    One method per lifecycle or reporting operation.  Each call runs in
    its own unit of work: a fresh session, one transaction, bounded retry
    on transient conflicts.  Results are detached DTOs built inside the
    transaction.

Architecture position:
    Services -- outermost layer.  Wires the kernel services per session and
    owns the transaction boundary.

Invariants enforced:
    - All-or-nothing: voucher rows, ledger entries, balances, invoice
      allocations and party balances commit together or not at all.
    - Collaborators are built from factories on the unit of work's session
      so their writes join the same transaction.
    - Every call binds ``operation`` / ``actor_id`` / ``voucher_id`` into
      the log context for the duration of the call.

Failure modes:
    - LedgerKernelError subclasses propagate unchanged.
    - Any other SQLAlchemyError is logged at ERROR with the operation and
      ids involved, then raised as LedgerStorageError.

Audit relevance:
    A LedgerStorageError means the outcome of the operation is not known to
    the caller; the ERROR log line carries what is needed to reconcile.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Iterable, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.db.unit_of_work import UnitOfWork
from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.domain.approval import ApprovalAction
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.collaborators import InvoiceGateway, PartyDirectory
from ledger_kernel.domain.vouchers import Attachment, PartyType, VoucherPayload
from ledger_kernel.exceptions import LedgerKernelError, LedgerStorageError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.processors.registry import VoucherProcessorRegistry
from ledger_kernel.selectors.account_selector import AccountNode, AccountRecord, AccountSelector
from ledger_kernel.selectors.base import Page
from ledger_kernel.selectors.ledger_selector import (
    AccountBalanceReport,
    LedgerEntryFilter,
    LedgerSelector,
    PartyStatement,
    TrialBalance,
)
from ledger_kernel.selectors.report_selector import CashFlowSummary, ExpenseSummary, ReportSelector
from ledger_kernel.selectors.voucher_selector import (
    LedgerEntryRecord,
    VoucherFilter,
    VoucherRecord,
    VoucherSelector,
    to_voucher_record,
)
from ledger_kernel.services.account_service import AccountChanges, AccountData, AccountService
from ledger_kernel.services.voucher_service import VoucherService

logger = get_logger("services.voucher_lifecycle")

T = TypeVar("T")

InvoiceGatewayFactory = Callable[[Session], InvoiceGateway]
PartyDirectoryFactory = Callable[[Session], PartyDirectory]


class VoucherLifecycle:
    """
    Facade over the ledger kernel.

    Contract:
        Callers pass plain values and payload dataclasses and get frozen
        records back.  No ORM object escapes a call.

    Non-goals:
        - Does NOT authenticate; ``actor_id`` is trusted.
        - Does NOT decide when a voucher should exist.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        invoice_gateway_factory: InvoiceGatewayFactory,
        party_directory_factory: PartyDirectoryFactory,
        clock: Clock | None = None,
        registry: VoucherProcessorRegistry | None = None,
    ):
        self._uow = unit_of_work
        self._invoice_gateway_factory = invoice_gateway_factory
        self._party_directory_factory = party_directory_factory
        self._clock = clock or SystemClock()
        self._registry = registry

    def _vouchers(self, session: Session) -> VoucherService:
        return VoucherService(
            session,
            self._clock,
            self._invoice_gateway_factory(session),
            self._party_directory_factory(session),
            registry=self._registry,
        )

    def _run(
        self,
        name: str,
        operation: Callable[[Session], T],
        actor_id: UUID | None = None,
        voucher_id: UUID | None = None,
        account_id: UUID | None = None,
    ) -> T:
        with LogContext.bind(
            operation=name, actor_id=actor_id, voucher_id=voucher_id, account_id=account_id
        ):
            try:
                return self._uow.run(operation, name)
            except LedgerKernelError:
                raise
            except SQLAlchemyError as exc:
                logger.error(
                    "ledger_storage_failure",
                    exc_info=True,
                    extra={"error_type": type(exc).__name__},
                )
                raise LedgerStorageError(name, type(exc).__name__) from exc

    # ------------------------------------------------------------------
    # Voucher lifecycle
    # ------------------------------------------------------------------

    def create_voucher(self, payload: VoucherPayload, actor_id: UUID) -> VoucherRecord:
        def operation(session: Session) -> VoucherRecord:
            voucher = self._vouchers(session).create(payload, actor_id)
            return to_voucher_record(voucher, VoucherSelector(session).entries_for(voucher.id))

        return self._run("create_voucher", operation, actor_id=actor_id)

    def update_voucher(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        payload: VoucherPayload | None = None,
        force: bool = False,
        narration: str | None = None,
        notes: str | None = None,
        attachments: Iterable[Attachment] = (),
    ) -> VoucherRecord:
        attachments = tuple(attachments)

        def operation(session: Session) -> VoucherRecord:
            voucher = self._vouchers(session).update(
                voucher_id,
                actor_id,
                payload=payload,
                force=force,
                narration=narration,
                notes=notes,
                attachments=attachments,
            )
            return to_voucher_record(voucher, VoucherSelector(session).entries_for(voucher.id))

        return self._run("update_voucher", operation, actor_id=actor_id, voucher_id=voucher_id)

    def submit_voucher(self, voucher_id: UUID, actor_id: UUID) -> VoucherRecord:
        def operation(session: Session) -> VoucherRecord:
            voucher = self._vouchers(session).submit(voucher_id, actor_id)
            return to_voucher_record(voucher, VoucherSelector(session).entries_for(voucher.id))

        return self._run("submit_voucher", operation, actor_id=actor_id, voucher_id=voucher_id)

    def approve_or_reject(
        self,
        voucher_id: UUID,
        action: ApprovalAction | str,
        actor_id: UUID,
        comments: str | None = None,
    ) -> VoucherRecord:
        def operation(session: Session) -> VoucherRecord:
            voucher = self._vouchers(session).approve_or_reject(
                voucher_id, action, actor_id, comments
            )
            return to_voucher_record(voucher, VoucherSelector(session).entries_for(voucher.id))

        return self._run("approve_or_reject", operation, actor_id=actor_id, voucher_id=voucher_id)

    def delete_voucher(self, voucher_id: UUID, actor_id: UUID) -> None:
        """Soft delete.  Rejected and cancelled vouchers are left as they are."""

        def operation(session: Session) -> None:
            self._vouchers(session).delete(voucher_id, actor_id)

        self._run("delete_voucher", operation, actor_id=actor_id, voucher_id=voucher_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_voucher(self, voucher_id: UUID) -> VoucherRecord:
        return self._run(
            "get_voucher",
            lambda session: VoucherSelector(session).get(voucher_id),
            voucher_id=voucher_id,
        )

    def list_vouchers(self, filters: VoucherFilter | None = None) -> Page[VoucherRecord]:
        return self._run("list_vouchers", lambda session: VoucherSelector(session).list(filters))

    def get_trial_balance(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> TrialBalance:
        return self._run(
            "get_trial_balance",
            lambda session: LedgerSelector(session).trial_balance(date_from, date_to),
        )

    def get_party_statement(
        self,
        party_id: UUID,
        party_type: PartyType | str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> PartyStatement:
        return self._run(
            "get_party_statement",
            lambda session: LedgerSelector(session).party_statement(
                party_id, party_type, date_from, date_to
            ),
        )

    def list_ledger_entries(
        self, filters: LedgerEntryFilter | None = None
    ) -> Page[LedgerEntryRecord]:
        return self._run(
            "list_ledger_entries", lambda session: LedgerSelector(session).entries(filters)
        )

    def get_cash_flow(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> CashFlowSummary:
        return self._run(
            "get_cash_flow",
            lambda session: ReportSelector(session).cash_flow(date_from, date_to),
        )

    def get_expense_summary(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> ExpenseSummary:
        return self._run(
            "get_expense_summary",
            lambda session: ReportSelector(session).expense_summary(date_from, date_to),
        )

    # ------------------------------------------------------------------
    # Chart of accounts
    # ------------------------------------------------------------------

    def create_account(self, data: AccountData, actor_id: UUID) -> AccountRecord:
        return self._run(
            "create_account",
            lambda session: AccountRecord.from_model(
                AccountService(session).create_account(data, actor_id)
            ),
            actor_id=actor_id,
        )

    def update_account(
        self, account_id: UUID, changes: AccountChanges, actor_id: UUID
    ) -> AccountRecord:
        return self._run(
            "update_account",
            lambda session: AccountRecord.from_model(
                AccountService(session).update_account(account_id, changes, actor_id)
            ),
            actor_id=actor_id,
            account_id=account_id,
        )

    def delete_account(self, account_id: UUID, actor_id: UUID) -> None:
        self._run(
            "delete_account",
            lambda session: AccountService(session).delete_account(account_id),
            actor_id=actor_id,
            account_id=account_id,
        )

    def get_chart_of_accounts(
        self, include_inactive: bool = False
    ) -> dict[AccountType, list[AccountRecord]]:
        return self._run(
            "get_chart_of_accounts",
            lambda session: AccountSelector(session).chart_of_accounts(include_inactive),
        )

    def get_account_tree(self, include_inactive: bool = True) -> list[AccountNode]:
        return self._run(
            "get_account_tree",
            lambda session: AccountSelector(session).account_tree(include_inactive),
        )

    def get_account_balance(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> AccountBalanceReport:
        return self._run(
            "get_account_balance",
            lambda session: LedgerSelector(session).account_balance(
                account_id, date_from, date_to
            ),
            account_id=account_id,
        )
