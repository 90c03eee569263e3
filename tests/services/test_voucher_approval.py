"""
ApprovalService tests, driven through VoucherService.

Tests cover:
- submit: draft -> pending only
- approve: posts, stamps approver, appends comments
- reject: releases allocations, never posts
- cancel: reverses approved vouchers, no-op on terminal vouchers
- Invalid edges raise InvalidStateTransitionError and change nothing
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.domain.approval import ApprovalAction
from ledger_kernel.domain.vouchers import (
    AllocationRequest,
    ApprovalStatus,
    JournalPayload,
    PartyType,
    ReceiptPayload,
    VoucherStatus,
)
from ledger_kernel.exceptions import InvalidStateTransitionError


@pytest.fixture
def accounts(session, factory):
    return {
        "rent": factory.account(session, "EXP100", "Rent", AccountType.EXPENSE),
        "capital": factory.account(session, "EQ100", "Capital", AccountType.EQUITY),
    }


@pytest.fixture
def journal(voucher_service, accounts, actor_id):
    return voucher_service.create(
        JournalPayload(
            debit_account_id=accounts["rent"].id,
            credit_account_id=accounts["capital"].id,
            amount=Decimal("120"),
        ),
        actor_id,
    )


class TestSubmit:

    def test_draft_to_pending(self, voucher_service, journal, actor_id):
        voucher = voucher_service.submit(journal.id, actor_id)
        assert voucher.status == VoucherStatus.PENDING.value
        assert voucher.updated_by_id == actor_id

    def test_pending_cannot_be_submitted_again(self, voucher_service, journal, actor_id):
        voucher_service.submit(journal.id, actor_id)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            voucher_service.submit(journal.id, actor_id)
        assert exc_info.value.from_status == "pending"
        assert exc_info.value.to_status == "pending"


class TestApprove:

    def test_approve_posts_and_stamps(self, voucher_service, journal, accounts, actor_id, clock):
        voucher_service.submit(journal.id, actor_id)

        voucher = voucher_service.approve_or_reject(
            journal.id, ApprovalAction.APPROVE, actor_id, comments="Checked against lease"
        )

        assert voucher.status == VoucherStatus.APPROVED.value
        assert voucher.approval_status == ApprovalStatus.APPROVED.value
        assert voucher.approved_by_id == actor_id
        assert voucher.approved_at == clock.now()
        assert voucher.notes == "Approval Comments: Checked against lease"
        assert len(voucher_service.poster.live_entries(journal.id)) == 2
        assert accounts["rent"].current_balance == Decimal("120.00")
        assert accounts["capital"].current_balance == Decimal("120.00")

    def test_draft_can_be_approved_directly(self, voucher_service, journal, actor_id):
        voucher = voucher_service.approve_or_reject(journal.id, "approve", actor_id)
        assert voucher.status == VoucherStatus.APPROVED.value

    def test_approved_cannot_be_decided_again(self, voucher_service, journal, actor_id):
        voucher_service.approve_or_reject(journal.id, "approve", actor_id)
        with pytest.raises(InvalidStateTransitionError):
            voucher_service.approve_or_reject(journal.id, "approve", actor_id)
        with pytest.raises(InvalidStateTransitionError):
            voucher_service.approve_or_reject(journal.id, "reject", actor_id)
        assert len(voucher_service.poster.live_entries(journal.id)) == 2

    def test_unknown_action(self, voucher_service, journal, actor_id):
        with pytest.raises(ValueError):
            voucher_service.approve_or_reject(journal.id, "escalate", actor_id)


class TestReject:

    def test_reject_never_posts(self, voucher_service, journal, accounts, actor_id):
        voucher = voucher_service.approve_or_reject(
            journal.id, ApprovalAction.REJECT, actor_id, comments="Wrong account"
        )
        assert voucher.status == VoucherStatus.REJECTED.value
        assert voucher.approval_status == ApprovalStatus.REJECTED.value
        assert voucher.approved_by_id == actor_id
        assert voucher.notes.endswith("Wrong account")
        assert voucher_service.poster.live_entries(journal.id) == []
        assert accounts["rent"].current_balance == Decimal("0")

    def test_reject_releases_allocations(self, session, voucher_service, factory, actor_id):
        customer = factory.party(session, "Acme", PartyType.CUSTOMER)
        invoice = factory.invoice(session, customer, "250.00")
        voucher = voucher_service.create(
            ReceiptPayload(
                party_id=customer.id,
                amount=Decimal("250.00"),
                allocations=(AllocationRequest(invoice.id, Decimal("250.00")),),
                defer_approval=True,
            ),
            actor_id,
        )
        assert invoice.status == "PAID"

        voucher_service.approve_or_reject(voucher.id, "reject", actor_id)

        assert invoice.outstanding_amount == Decimal("250.00")
        assert invoice.status == "UNPAID"

    def test_rejected_is_terminal(self, voucher_service, journal, actor_id):
        voucher_service.approve_or_reject(journal.id, "reject", actor_id)
        with pytest.raises(InvalidStateTransitionError):
            voucher_service.submit(journal.id, actor_id)
        with pytest.raises(InvalidStateTransitionError):
            voucher_service.approve_or_reject(journal.id, "approve", actor_id)


class TestCancel:

    def test_cancel_approved_reverses(self, voucher_service, journal, accounts, actor_id):
        voucher_service.approve_or_reject(journal.id, "approve", actor_id)

        voucher = voucher_service.delete(journal.id, actor_id)

        assert voucher.status == VoucherStatus.CANCELLED.value
        assert voucher_service.poster.live_entries(journal.id) == []
        assert accounts["rent"].current_balance == Decimal("0")
        assert accounts["capital"].current_balance == Decimal("0")

    def test_cancel_draft(self, voucher_service, journal, actor_id):
        voucher = voucher_service.delete(journal.id, actor_id)
        assert voucher.status == VoucherStatus.CANCELLED.value

    def test_cancel_terminal_is_noop(self, voucher_service, journal, actor_id, captured_logs):
        voucher_service.approve_or_reject(journal.id, "reject", actor_id)

        voucher = voucher_service.delete(journal.id, actor_id)

        assert voucher.status == VoucherStatus.REJECTED.value
        messages = [r["message"] for r in captured_logs()]
        assert "voucher_cancel_noop" in messages
        assert "voucher_deleted" not in messages

    def test_cancelled_cannot_be_approved(self, voucher_service, journal, actor_id):
        voucher_service.delete(journal.id, actor_id)
        with pytest.raises(InvalidStateTransitionError):
            voucher_service.approve_or_reject(journal.id, "approve", actor_id)


def test_status_changes_are_logged(voucher_service, journal, actor_id, captured_logs):
    voucher_service.submit(journal.id, actor_id)
    voucher_service.approve_or_reject(journal.id, "approve", actor_id)

    changes = [r for r in captured_logs() if r["message"] == "voucher_status_changed"]
    assert [(r["from_status"], r["to_status"]) for r in changes] == [
        ("draft", "pending"),
        ("pending", "approved"),
    ]
