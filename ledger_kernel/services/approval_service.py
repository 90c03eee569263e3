"""
ApprovalService -- the voucher status state machine with its side effects.

Responsibility:
    Moves a voucher between statuses along ``VOUCHER_TRANSITIONS`` and
    performs what each edge implies: entering approved posts, leaving
    approved reverses, and rejecting or cancelling an unposted voucher
    releases its invoice allocations.

Architecture position:
    Kernel > Services -- imperative shell.  Driven by VoucherService.

Invariants enforced:
    - No transition outside VOUCHER_TRANSITIONS.
    - approve / reject only from draft or pending.
    - Posting is idempotent (LedgerPoster guards on live entries).
    - approved_by_id / approved_at are stamped on approve and on reject.

Failure modes:
    - InvalidStateTransitionError for an edge that does not exist.
"""

from __future__ import annotations

from uuid import UUID

from ledger_kernel.domain.approval import (
    ACTION_TARGETS,
    DECIDABLE_STATUSES,
    TERMINAL_VOUCHER_STATUSES,
    ApprovalAction,
    append_comment,
    approval_status_for,
    is_valid_transition,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.vouchers import VoucherStatus
from ledger_kernel.exceptions import InvalidStateTransitionError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.voucher import Voucher
from ledger_kernel.services.allocation_service import AllocationService
from ledger_kernel.services.ledger_poster import LedgerPoster

logger = get_logger("services.approval")


class ApprovalService:
    """
    Status transitions for vouchers.

    Contract:
        Every method mutates the voucher in the caller's session and never
        commits.  A failed transition leaves the voucher untouched.
    """

    def __init__(
        self,
        poster: LedgerPoster,
        allocator: AllocationService,
        clock: Clock,
    ):
        self._poster = poster
        self._allocator = allocator
        self._clock = clock

    def transition(self, voucher: Voucher, target: VoucherStatus, actor_id: UUID) -> None:
        current = VoucherStatus(voucher.status)
        target = VoucherStatus(target)
        if not is_valid_transition(current, target):
            raise InvalidStateTransitionError(str(voucher.id), current.value, target.value)

        if target == VoucherStatus.APPROVED:
            self._poster.post(voucher, actor_id)
        elif current == VoucherStatus.APPROVED:
            self._poster.reverse(voucher, actor_id)
        elif target in TERMINAL_VOUCHER_STATUSES:
            self._allocator.deallocate(voucher.invoice_links)

        voucher.status = target.value
        voucher.updated_by_id = actor_id
        logger.info(
            "voucher_status_changed",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_no": voucher.voucher_no,
                "from_status": current.value,
                "to_status": target.value,
            },
        )

    def approve_on_creation(self, voucher: Voucher, actor_id: UUID) -> None:
        """Post a voucher whose processor decided it is approved straight away."""
        self._poster.post(voucher, actor_id)
        voucher.approval_status = approval_status_for(VoucherStatus.APPROVED).value
        voucher.approved_by_id = actor_id
        voucher.approved_at = self._clock.now()

    def submit(self, voucher: Voucher, actor_id: UUID) -> None:
        """draft -> pending."""
        if VoucherStatus(voucher.status) != VoucherStatus.DRAFT:
            raise InvalidStateTransitionError(
                str(voucher.id), VoucherStatus(voucher.status).value, VoucherStatus.PENDING.value
            )
        self.transition(voucher, VoucherStatus.PENDING, actor_id)

    def decide(
        self,
        voucher: Voucher,
        action: ApprovalAction | str,
        actor_id: UUID,
        comments: str | None = None,
    ) -> None:
        """
        Approve or reject a draft or pending voucher.

        Raises:
            InvalidStateTransitionError: voucher is approved, rejected or
                cancelled already.
        """
        action = ApprovalAction(action)
        target = ACTION_TARGETS[action]
        current = VoucherStatus(voucher.status)
        if current not in DECIDABLE_STATUSES:
            raise InvalidStateTransitionError(str(voucher.id), current.value, target.value)

        self.transition(voucher, target, actor_id)
        voucher.approval_status = approval_status_for(target).value
        voucher.approved_by_id = actor_id
        voucher.approved_at = self._clock.now()
        voucher.notes = append_comment(voucher.notes, comments)

        logger.info(
            "voucher_decided",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_no": voucher.voucher_no,
                "action": action.value,
            },
        )

    def cancel(self, voucher: Voucher, actor_id: UUID) -> bool:
        """
        Move a voucher to cancelled.

        Returns False (and does nothing) when the voucher is already
        rejected or cancelled.
        """
        if VoucherStatus(voucher.status) in TERMINAL_VOUCHER_STATUSES:
            logger.info(
                "voucher_cancel_noop",
                extra={
                    "voucher_id": str(voucher.id),
                    "voucher_no": voucher.voucher_no,
                    "status": VoucherStatus(voucher.status).value,
                },
            )
            return False
        self.transition(voucher, VoucherStatus.CANCELLED, actor_id)
        return True
