"""
Voucher approval lifecycle (``ledger_kernel.domain.approval``).

Responsibility
--------------
The voucher status state machine as data.  ``VOUCHER_TRANSITIONS`` is the
only source of valid edges; services consult it before changing status.

Architecture position
---------------------
**Kernel domain layer** -- pure.  No ORM, no session.

Invariants enforced
-------------------
* Terminal states (rejected, cancelled) have no outgoing edges.
* approve / reject are only reachable from draft or pending.
* Only ``approved`` carries live postings; entering it posts, leaving it
  (to cancelled) reverses.
"""

from __future__ import annotations

from enum import Enum

from ledger_kernel.domain.vouchers import ApprovalStatus, VoucherStatus


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


VOUCHER_TRANSITIONS: dict[VoucherStatus, frozenset[VoucherStatus]] = {
    VoucherStatus.DRAFT: frozenset({
        VoucherStatus.PENDING,
        VoucherStatus.APPROVED,
        VoucherStatus.REJECTED,
        VoucherStatus.CANCELLED,
    }),
    VoucherStatus.PENDING: frozenset({
        VoucherStatus.APPROVED,
        VoucherStatus.REJECTED,
        VoucherStatus.CANCELLED,
    }),
    VoucherStatus.APPROVED: frozenset({
        VoucherStatus.CANCELLED,
    }),
    VoucherStatus.REJECTED: frozenset(),
    VoucherStatus.CANCELLED: frozenset(),
}

TERMINAL_VOUCHER_STATUSES: frozenset[VoucherStatus] = frozenset({
    VoucherStatus.REJECTED,
    VoucherStatus.CANCELLED,
})

# Statuses from which an approve/reject decision may be taken.
DECIDABLE_STATUSES: frozenset[VoucherStatus] = frozenset({
    VoucherStatus.DRAFT,
    VoucherStatus.PENDING,
})

ACTION_TARGETS: dict[ApprovalAction, VoucherStatus] = {
    ApprovalAction.APPROVE: VoucherStatus.APPROVED,
    ApprovalAction.REJECT: VoucherStatus.REJECTED,
}


def is_valid_transition(current: VoucherStatus | str, target: VoucherStatus | str) -> bool:
    return VoucherStatus(target) in VOUCHER_TRANSITIONS[VoucherStatus(current)]


def approval_status_for(status: VoucherStatus | str) -> ApprovalStatus:
    """Approval flag that accompanies a voucher status."""
    status = VoucherStatus(status)
    if status == VoucherStatus.APPROVED:
        return ApprovalStatus.APPROVED
    if status == VoucherStatus.REJECTED:
        return ApprovalStatus.REJECTED
    return ApprovalStatus.PENDING


def append_comment(notes: str | None, comments: str | None) -> str | None:
    """Append approval comments to voucher notes."""
    if not comments:
        return notes
    line = f"Approval Comments: {comments}"
    if notes:
        return f"{notes}\n{line}"
    return line
