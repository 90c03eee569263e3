"""
Property-based tests for money arithmetic and allocation bookkeeping.

Properties:
- Quantization is idempotent and never moves a value by more than half a cent
- balance_delta of a posting and its mirror cancel out
- The allocator's on-account remainder plus allocations equals the total
- Deallocating what was allocated restores every outstanding balance, even
  when a request overshoots within the 0.01 tolerance
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.domain.amounts import (
    BALANCE_TOLERANCE,
    ZERO,
    balance_delta,
    is_balanced,
    quantize_money,
    to_money,
)
from ledger_kernel.domain.collaborators import InvoiceSnapshot, InvoiceStatus
from ledger_kernel.domain.vouchers import AllocationRequest, PartyType
from ledger_kernel.services.allocation_service import AllocationService

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

raw_amounts = st.decimals(
    min_value=Decimal("-1000000"),
    max_value=Decimal("1000000"),
    places=6,
    allow_nan=False,
    allow_infinity=False,
)


@given(value=raw_amounts)
def test_quantize_is_idempotent(value):
    once = quantize_money(value)
    assert quantize_money(once) == once
    assert abs(once - value) <= Decimal("0.005")


@given(value=raw_amounts)
def test_to_money_matches_quantize(value):
    assert to_money(str(value)) == quantize_money(value)


@given(
    account_type=st.sampled_from(list(AccountType)),
    debit=amounts,
    credit=amounts,
)
def test_mirror_cancels_posting(account_type, debit, credit):
    original = balance_delta(account_type, debit, credit)
    mirror = balance_delta(account_type, credit, debit)
    assert original + mirror == ZERO


@given(total=amounts, drift=st.integers(min_value=0, max_value=3))
def test_tolerance_boundary(total, drift):
    other = total + Decimal(drift) * Decimal("0.01")
    assert is_balanced(total, other) == (abs(other - total) <= BALANCE_TOLERANCE)


class _MemoryInvoices:
    def __init__(self, party_id, outstanding):
        self.party_id = party_id
        self.invoices = {}
        for amount in outstanding:
            invoice_id = uuid4()
            self.invoices[invoice_id] = [amount, amount]

    def get_invoice(self, invoice_id):
        total, outstanding = self.invoices[invoice_id]
        return InvoiceSnapshot(
            invoice_id=invoice_id,
            invoice_no=str(invoice_id)[:8],
            party_id=self.party_id,
            party_type=PartyType.CUSTOMER.value,
            total_amount=total,
            outstanding_amount=outstanding,
            status=InvoiceStatus.UNPAID,
        )

    def apply_allocation(self, invoice_id, amount):
        self.invoices[invoice_id][1] -= amount
        return self.invoices[invoice_id][1]

    def reverse_allocation(self, invoice_id, amount):
        total, outstanding = self.invoices[invoice_id]
        self.invoices[invoice_id][1] = min(outstanding + amount, total)
        return self.invoices[invoice_id][1]


@settings(max_examples=50)
@given(
    outstanding=st.lists(amounts, min_size=1, max_size=5),
    extra=st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=2),
)
def test_allocation_remainder_is_on_account(outstanding, extra):
    party_id = uuid4()
    gateway = _MemoryInvoices(party_id, outstanding)
    requests = [
        AllocationRequest(invoice_id=invoice_id, amount=values[1])
        for invoice_id, values in gateway.invoices.items()
    ]
    total = sum(outstanding, ZERO) + extra
    assume(total > ZERO)

    result = AllocationService(gateway).allocate(
        party_id, PartyType.CUSTOMER, requests, total
    )

    assert result.allocated_total + result.on_account_amount == total
    assert result.on_account_amount == extra
    assert all(values[1] == ZERO for values in gateway.invoices.values())
    assert all(record.status == InvoiceStatus.PAID.value for record in result.allocations)


@settings(max_examples=50)
@given(
    balances=st.lists(
        st.tuples(amounts, st.integers(min_value=0, max_value=100)), min_size=1, max_size=4
    ),
    overshoot=st.sampled_from([Decimal("0"), Decimal("0.01")]),
    short=st.sampled_from([Decimal("0"), Decimal("0.01")]),
)
def test_deallocation_restores_outstanding(balances, overshoot, short):
    party_id = uuid4()
    gateway = _MemoryInvoices(party_id, [])
    for total, paid_percent in balances:
        outstanding = quantize_money(total * (100 - paid_percent) / 100)
        gateway.invoices[uuid4()] = [total, outstanding]
    before = {invoice_id: values[1] for invoice_id, values in gateway.invoices.items()}
    assume(overshoot + short <= BALANCE_TOLERANCE)
    requests = [
        AllocationRequest(invoice_id, outstanding + (overshoot if index == 0 else ZERO))
        for index, (invoice_id, outstanding) in enumerate(before.items())
    ]
    total = sum(before.values(), ZERO) - short
    assume(total > ZERO)
    service = AllocationService(gateway)

    result = service.allocate(party_id, PartyType.CUSTOMER, requests, total)

    assert sum((r.allocated_amount for r in result.allocations), ZERO) <= total
    assert result.allocated_total + result.on_account_amount == total
    for record in result.allocations:
        assert record.allocated_amount <= record.previous_balance

    service.deallocate(result.allocations)
    assert {k: v[1] for k, v in gateway.invoices.items()} == before
