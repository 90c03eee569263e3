"""
VoucherService -- creation, update and lifecycle of vouchers.

Responsibility:
    Orchestrates one voucher operation inside the caller's transaction:
    runs the processor for the payload, numbers and persists the voucher,
    and hands status changes to the ApprovalService (which drives the
    LedgerPoster).

Architecture position:
    Kernel > Services -- imperative shell.  The VoucherLifecycle facade
    builds one VoucherService per unit-of-work attempt.

Invariants enforced:
    - A persisted voucher balances within 0.01 (processors check before
      anything is written).
    - Approved vouchers are frozen: a monetary update without ``force``
      fails ImmutableApprovedVoucherError; with ``force`` it runs
      reverse -> reprocess -> repost.
    - Before an unposted voucher is reprocessed its old invoice allocations
      are released, so an invoice is never allocated twice by one voucher.
    - The voucher row is locked FOR UPDATE before any lifecycle change.

Failure modes:
    - Any LedgerKernelError from the processors, allocator or poster.
    - VoucherNotFoundError, InvalidStateTransitionError.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.amounts import financial_year_for
from ledger_kernel.domain.approval import TERMINAL_VOUCHER_STATUSES, ApprovalAction
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.collaborators import InvoiceGateway, PartyDirectory
from ledger_kernel.domain.vouchers import (
    ApprovalStatus,
    Attachment,
    ProcessedVoucher,
    VoucherPayload,
    VoucherStatus,
    VoucherType,
)
from ledger_kernel.exceptions import (
    ImmutableApprovedVoucherError,
    InvalidStateTransitionError,
    ValidationError,
    VoucherNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.voucher import Voucher, VoucherInvoiceLink, VoucherLine
from ledger_kernel.processors.base import ProcessingContext
from ledger_kernel.processors.registry import VoucherProcessorRegistry, get_default_registry
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.allocation_service import AllocationService
from ledger_kernel.services.approval_service import ApprovalService
from ledger_kernel.services.ledger_poster import LedgerPoster
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.voucher")


def merge_attachments(
    existing: list[dict] | None, added: Iterable[Attachment]
) -> list[dict]:
    """Append new attachments, skipping any whose uri is already present."""
    merged = list(existing or [])
    seen = {item.get("uri") for item in merged}
    for attachment in added:
        if attachment.uri in seen:
            continue
        merged.append(attachment.to_dict())
        seen.add(attachment.uri)
    return merged


class VoucherService:
    """
    Voucher orchestration on one session.

    Contract:
        Never commits.  Every method leaves the session flushed so the
        caller can read generated ids and numbers.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        invoice_gateway: InvoiceGateway,
        party_directory: PartyDirectory,
        registry: VoucherProcessorRegistry | None = None,
    ):
        self._session = session
        self._clock = clock
        self._parties = party_directory
        self._registry = registry or get_default_registry()
        self._accounts = AccountService(session)
        self._allocator = AllocationService(invoice_gateway)
        self._sequences = SequenceService(session)
        self._poster = LedgerPoster(
            session, self._accounts, self._allocator, party_directory, clock
        )
        self._approval = ApprovalService(self._poster, self._allocator, clock)

    @property
    def accounts(self) -> AccountService:
        return self._accounts

    @property
    def poster(self) -> LedgerPoster:
        return self._poster

    def _context(self, actor_id: UUID) -> ProcessingContext:
        return ProcessingContext(
            session=self._session,
            accounts=self._accounts,
            allocator=self._allocator,
            parties=self._parties,
            clock=self._clock,
            actor_id=actor_id,
        )

    def get(self, voucher_id: UUID, lock: bool = False) -> Voucher:
        stmt = select(Voucher).where(Voucher.id == voucher_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        voucher = self._session.execute(stmt).scalar_one_or_none()
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))
        return voucher

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, payload: VoucherPayload, actor_id: UUID) -> Voucher:
        """
        Process, number, persist and (when approved) post a voucher.

        Postconditions:
            - voucher_no is ``<PREFIX>-<YYYYMMDD>-<NNNN>`` for the voucher
              date.
            - An approved voucher has one live ledger entry per line.
        """
        processed = self._registry.process(payload, self._context(actor_id))
        voucher_no = self._sequences.next_voucher_no(
            processed.voucher_type.prefix, processed.voucher_date
        )

        voucher = Voucher(
            voucher_no=voucher_no,
            status=processed.status.value,
            approval_status=ApprovalStatus.PENDING.value,
            narration=payload.narration,
            notes=payload.notes,
            reference_type=payload.reference_type,
            reference_no=payload.reference_no,
            attachments=merge_attachments(None, payload.attachments),
            created_by_id=actor_id,
        )
        self._apply_processed(voucher, processed)
        self._session.add(voucher)
        self._session.flush()

        if processed.status == VoucherStatus.APPROVED:
            self._approval.approve_on_creation(voucher, actor_id)
            self._session.flush()

        logger.info(
            "voucher_created",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_no": voucher_no,
                "voucher_type": processed.voucher_type.value,
                "status": processed.status.value,
                "total_amount": str(processed.total_amount),
            },
        )
        return voucher

    def _apply_processed(self, voucher: Voucher, processed: ProcessedVoucher) -> None:
        """Copy processor output onto the voucher, replacing lines and links."""
        voucher.voucher_type = processed.voucher_type.value
        voucher.voucher_date = processed.voucher_date
        voucher.financial_year = financial_year_for(processed.voucher_date)
        voucher.month = processed.voucher_date.month
        voucher.year = processed.voucher_date.year
        voucher.total_amount = processed.total_amount
        voucher.payment_mode = processed.payment_mode.value if processed.payment_mode else None
        voucher.payment_details = (
            processed.payment_details.to_dict() if processed.payment_details else None
        )
        voucher.party_id = processed.party_id
        voucher.party_type = processed.party_type.value if processed.party_type else None
        voucher.party_name = processed.party_name
        voucher.on_account_amount = processed.on_account_amount
        voucher.from_account_id = processed.from_account_id
        voucher.to_account_id = processed.to_account_id
        voucher.expense_category_id = processed.expense_category_id

        voucher.lines = [
            VoucherLine(
                line_no=index,
                account_id=line.account_id,
                account_name=line.account_name,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                description=line.description,
                tax_percent=line.tax_percent,
                tax_amount=line.tax_amount,
            )
            for index, line in enumerate(processed.lines, start=1)
        ]
        voucher.invoice_links = [
            VoucherInvoiceLink(
                line_no=index,
                invoice_id=record.invoice_id,
                invoice_no=record.invoice_no,
                allocated_amount=record.allocated_amount,
                previous_balance=record.previous_balance,
                new_balance=record.new_balance,
                status=record.status,
            )
            for index, record in enumerate(processed.allocations, start=1)
        ]

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        payload: VoucherPayload | None = None,
        force: bool = False,
        narration: str | None = None,
        notes: str | None = None,
        attachments: Iterable[Attachment] = (),
    ) -> Voucher:
        """
        Update a voucher.

        Narration, notes and attachments may change in any non-terminal
        status.  A new payload reprocesses the voucher; when the voucher is
        approved this needs ``force`` and runs reverse -> reprocess ->
        repost.  The status is kept.

        Raises:
            InvalidStateTransitionError: voucher is rejected or cancelled.
            ImmutableApprovedVoucherError: payload for an approved voucher
                without ``force``.
            ValidationError: payload of another voucher type.
        """
        voucher = self.get(voucher_id, lock=True)
        status = VoucherStatus(voucher.status)
        if status in TERMINAL_VOUCHER_STATUSES:
            raise InvalidStateTransitionError(str(voucher.id), status.value, "updated")

        if payload is not None:
            if VoucherType(payload.voucher_type) != VoucherType(voucher.voucher_type):
                raise ValidationError(
                    "Voucher type cannot change on update", field="voucher_type"
                )
            if status == VoucherStatus.APPROVED:
                if not force:
                    raise ImmutableApprovedVoucherError(str(voucher.id), voucher.voucher_no)
                self._poster.reverse(voucher, actor_id)
                self._reprocess(voucher, payload, actor_id)
                self._poster.post(voucher, actor_id)
            else:
                self._allocator.deallocate(voucher.invoice_links)
                self._reprocess(voucher, payload, actor_id)

            voucher.narration = payload.narration
            voucher.notes = payload.notes
            voucher.reference_type = payload.reference_type
            voucher.reference_no = payload.reference_no
            attachments = (*payload.attachments, *attachments)

        if narration is not None:
            voucher.narration = narration
        if notes is not None:
            voucher.notes = notes
        voucher.attachments = merge_attachments(voucher.attachments, attachments)
        voucher.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "voucher_updated",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_no": voucher.voucher_no,
                "reprocessed": payload is not None,
                "forced": bool(force and status == VoucherStatus.APPROVED),
            },
        )
        return voucher

    def _reprocess(self, voucher: Voucher, payload: VoucherPayload, actor_id: UUID) -> None:
        processed = self._registry.process(payload, self._context(actor_id))
        self._apply_processed(voucher, processed)
        self._session.flush()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def submit(self, voucher_id: UUID, actor_id: UUID) -> Voucher:
        voucher = self.get(voucher_id, lock=True)
        self._approval.submit(voucher, actor_id)
        self._session.flush()
        return voucher

    def approve_or_reject(
        self,
        voucher_id: UUID,
        action: ApprovalAction | str,
        actor_id: UUID,
        comments: str | None = None,
    ) -> Voucher:
        voucher = self.get(voucher_id, lock=True)
        self._approval.decide(voucher, action, actor_id, comments)
        self._session.flush()
        return voucher

    def delete(self, voucher_id: UUID, actor_id: UUID) -> Voucher:
        """Soft delete: cancel the voucher, reversing it when approved."""
        voucher = self.get(voucher_id, lock=True)
        if self._approval.cancel(voucher, actor_id):
            self._session.flush()
            logger.info(
                "voucher_deleted",
                extra={"voucher_id": str(voucher.id), "voucher_no": voucher.voucher_no},
            )
        return voucher
