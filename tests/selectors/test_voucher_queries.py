"""VoucherSelector: single voucher reads and filtered listings."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.domain.vouchers import (
    AllocationRequest,
    JournalPayload,
    PartyType,
    ReceiptPayload,
    VoucherStatus,
    VoucherType,
)
from ledger_kernel.exceptions import VoucherNotFoundError
from ledger_kernel.selectors.voucher_selector import VoucherFilter, VoucherSelector


@pytest.fixture
def selector(session):
    return VoucherSelector(session)


@pytest.fixture
def book(session, voucher_service, factory, actor_id):
    """A receipt from Acme, a draft journal and a cancelled journal."""
    acme = factory.party(session, "Acme Traders", PartyType.CUSTOMER)
    invoice = factory.invoice(session, acme, "400.00", invoice_no="INV-0042")
    rent = factory.account(session, "EXP100", "Rent", AccountType.EXPENSE)
    capital = factory.account(session, "EQ100", "Capital", AccountType.EQUITY)

    receipt = voucher_service.create(
        ReceiptPayload(
            party_id=acme.id,
            amount=Decimal("400"),
            voucher_date=date(2024, 6, 3),
            allocations=(AllocationRequest(invoice.id, Decimal("400")),),
            reference_no="BANKREF-9",
        ),
        actor_id,
    )
    draft = voucher_service.create(
        JournalPayload(
            debit_account_id=rent.id,
            credit_account_id=capital.id,
            amount=Decimal("75"),
            voucher_date=date(2024, 6, 5),
            narration="June office rent",
        ),
        actor_id,
    )
    cancelled = voucher_service.create(
        JournalPayload(
            debit_account_id=rent.id,
            credit_account_id=capital.id,
            amount=Decimal("5"),
            voucher_date=date(2024, 6, 7),
        ),
        actor_id,
    )
    voucher_service.approve_or_reject(cancelled.id, "approve", actor_id)
    voucher_service.delete(cancelled.id, actor_id)
    return {"acme": acme, "receipt": receipt, "draft": draft, "cancelled": cancelled}


class TestGet:

    def test_record_carries_lines_links_and_entries(self, selector, book):
        record = selector.get(book["receipt"].id)

        assert record.voucher_type == VoucherType.RECEIPT
        assert record.voucher_no == "RV-20240603-0001"
        assert record.financial_year == "2024-2025"
        assert [line.line_no for line in record.lines] == [1, 2]
        assert record.total_debit == record.total_credit == Decimal("400.00")
        assert [(l.invoice_no, l.status) for l in record.linked_invoices] == [("INV-0042", "PAID")]
        assert len(record.entries) == 2
        assert record.live_entries == record.entries

    def test_mirrors_follow_originals(self, selector, book):
        record = selector.get(book["cancelled"].id)
        assert [e.is_mirror for e in record.entries] == [False, False, True, True]
        assert all(e.is_reversed for e in record.entries[:2])

    def test_without_entries(self, selector, book):
        assert selector.get(book["receipt"].id, include_entries=False).entries == ()

    def test_unknown(self, selector):
        with pytest.raises(VoucherNotFoundError):
            selector.get(uuid4())

    def test_by_number(self, selector, book):
        record = selector.get_by_number("JV-20240605-0001")
        assert record.id == book["draft"].id
        assert selector.get_by_number("JV-19990101-0001") is None


class TestList:

    def test_newest_first(self, selector, book):
        page = selector.list()
        assert page.total == 3
        assert [v.id for v in page.items] == [
            book["cancelled"].id,
            book["draft"].id,
            book["receipt"].id,
        ]
        assert all(v.entries == () for v in page.items)

    @pytest.mark.parametrize(
        "filters,expected",
        [
            (VoucherFilter(voucher_type=VoucherType.JOURNAL), ["cancelled", "draft"]),
            (VoucherFilter(status=VoucherStatus.DRAFT), ["draft"]),
            (VoucherFilter(status="cancelled"), ["cancelled"]),
            (VoucherFilter(party_type=PartyType.CUSTOMER), ["receipt"]),
            (VoucherFilter(date_from=date(2024, 6, 4), date_to=date(2024, 6, 6)), ["draft"]),
            (VoucherFilter(search="office rent"), ["draft"]),
            (VoucherFilter(search="acme"), ["receipt"]),
            (VoucherFilter(search="BANKREF"), ["receipt"]),
            (VoucherFilter(search="RV-2024"), ["receipt"]),
        ],
    )
    def test_filters(self, selector, book, filters, expected):
        assert [v.id for v in selector.list(filters).items] == [book[k].id for k in expected]

    def test_party_filter(self, selector, book):
        page = selector.list(VoucherFilter(party_id=book["acme"].id))
        assert [v.party_name for v in page.items] == ["Acme Traders"]

    def test_paging(self, selector, book):
        page = selector.list(VoucherFilter(limit=2, offset=2))
        assert page.total == 3
        assert [v.id for v in page.items] == [book["receipt"].id]
        assert not page.has_more
