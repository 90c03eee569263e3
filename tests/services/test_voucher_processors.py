"""
Voucher processor tests, driven through VoucherService.create.

Tests cover:
- Receipt / payment: invoice allocation, on-account remainder, party accounts
- Journal: shortcut and explicit lines, draft vs pending, posting guards
- Contra: cash/bank only, insufficient balance
- Expense: category account resolution, approval threshold, tax
- Payment detail validation for non-cash modes
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.accounts import AccountSubType, AccountType
from ledger_kernel.domain.collaborators import InvoiceStatus
from ledger_kernel.domain.vouchers import (
    AllocationRequest,
    ContraPayload,
    ExpensePayload,
    JournalPayload,
    LineSpec,
    PartyType,
    PaymentDetails,
    PaymentMode,
    PaymentPayload,
    ReceiptPayload,
    VoucherStatus,
)
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AllocationExceedsOutstandingError,
    DirectPostingDisallowedError,
    ExpenseCategoryNotFoundError,
    InsufficientBalanceError,
    MissingPaymentDetailError,
    PartyMismatchError,
    PartyNotFoundError,
    UnbalancedVoucherError,
    ValidationError,
)
from ledger_kernel.models.ledger_entry import LedgerEntry
from ledger_kernel.models.voucher import Voucher


def _account(voucher_service, code):
    return voucher_service.accounts.get_by_code(code)


def _entry_count(session):
    return session.execute(select(func.count()).select_from(LedgerEntry)).scalar_one()


@pytest.fixture
def customer(session, factory):
    return factory.party(session, "Acme Retail", PartyType.CUSTOMER)


@pytest.fixture
def vendor(session, factory):
    return factory.party(session, "Steel Supplies", PartyType.VENDOR)


# =============================================================================
# Receipts and payments
# =============================================================================


class TestReceipt:

    def test_allocation_and_on_account(self, session, voucher_service, factory, customer, actor_id):
        invoice = factory.invoice(session, customer, "1000.00")

        voucher = voucher_service.create(
            ReceiptPayload(
                party_id=customer.id,
                amount=Decimal("600.00"),
                allocations=(AllocationRequest(invoice.id, Decimal("400.00")),),
            ),
            actor_id,
        )

        assert voucher.status == VoucherStatus.APPROVED.value
        assert voucher.voucher_no == "RV-20240615-0001"
        assert voucher.party_name == "Acme Retail"
        assert voucher.on_account_amount == Decimal("200.00")

        lines = [(l.account_name, l.debit_amount, l.credit_amount) for l in voucher.lines]
        assert lines == [
            ("Cash in Hand", Decimal("600.00"), Decimal("0")),
            ("Customer - Acme Retail", Decimal("0"), Decimal("400.00")),
            ("Customer Advance - Acme Retail", Decimal("0"), Decimal("200.00")),
        ]

        assert invoice.outstanding_amount == Decimal("600.00")
        assert invoice.status == InvoiceStatus.PARTIAL.value
        assert customer.cash_balance == Decimal("200.00")
        assert _account(voucher_service, "CASH001").current_balance == Decimal("600.00")

        link = voucher.invoice_links[0]
        assert link.previous_balance == Decimal("1000.00")
        assert link.new_balance == Decimal("600.00")
        assert link.status == InvoiceStatus.PARTIAL.value

    def test_bank_mode_goes_to_bank_account(self, voucher_service, customer, actor_id):
        voucher = voucher_service.create(
            ReceiptPayload(
                party_id=customer.id,
                amount=Decimal("50"),
                payment_mode=PaymentMode.CHEQUE,
                payment_details=PaymentDetails(cheque_no="004512"),
            ),
            actor_id,
        )
        assert voucher.lines[0].account_name == "Bank Account"
        assert voucher.payment_details["cheque_no"] == "004512"
        assert _account(voucher_service, "BANK001").current_balance == Decimal("50.00")

    def test_party_accounts_are_reused(self, voucher_service, customer, actor_id, session):
        payload = ReceiptPayload(party_id=customer.id, amount=Decimal("10"))
        voucher_service.create(payload, actor_id)
        voucher_service.create(payload, actor_id)

        code = f"CADV-{customer.id.hex}"
        advance = _account(voucher_service, code)
        assert advance.current_balance == Decimal("20.00")
        assert advance.is_system_account
        assert advance.party_id == customer.id

    def test_deferred_approval_is_pending_and_unposted(
        self, session, voucher_service, customer, actor_id
    ):
        voucher = voucher_service.create(
            ReceiptPayload(party_id=customer.id, amount=Decimal("10"), defer_approval=True),
            actor_id,
        )
        assert voucher.status == VoucherStatus.PENDING.value
        assert _entry_count(session) == 0
        assert customer.cash_balance == Decimal("0")

    def test_unknown_party(self, voucher_service, actor_id):
        with pytest.raises(PartyNotFoundError):
            voucher_service.create(
                ReceiptPayload(party_id=uuid4(), amount=Decimal("10")), actor_id
            )

    def test_vendor_is_not_a_customer(self, voucher_service, vendor, actor_id):
        with pytest.raises(PartyNotFoundError):
            voucher_service.create(
                ReceiptPayload(party_id=vendor.id, amount=Decimal("10")), actor_id
            )


class TestPayment:

    def test_full_settlement_marks_invoice_paid(
        self, session, voucher_service, factory, vendor, actor_id
    ):
        bill = factory.invoice(session, vendor, "500.00")

        voucher = voucher_service.create(
            PaymentPayload(
                party_id=vendor.id,
                amount=Decimal("500.00"),
                allocations=(AllocationRequest(bill.id, Decimal("500.00")),),
            ),
            actor_id,
        )

        assert bill.status == InvoiceStatus.PAID.value
        assert bill.outstanding_amount == Decimal("0")
        lines = [(l.account_name, l.debit_amount, l.credit_amount) for l in voucher.lines]
        assert lines == [
            ("Vendor - Steel Supplies", Decimal("500.00"), Decimal("0")),
            ("Cash in Hand", Decimal("0"), Decimal("500.00")),
        ]
        assert _account(voucher_service, f"VEND-{vendor.id.hex}").current_balance == Decimal(
            "-500.00"
        )

    def test_advance_to_vendor(self, voucher_service, vendor, actor_id):
        voucher = voucher_service.create(
            PaymentPayload(party_id=vendor.id, amount=Decimal("75")), actor_id
        )
        assert voucher.lines[0].account_name == "Vendor Advance - Steel Supplies"
        assert vendor.cash_balance == Decimal("75.00")

    def test_allocation_beyond_outstanding(self, session, voucher_service, factory, vendor, actor_id):
        bill = factory.invoice(session, vendor, "500.00", outstanding="100.00")
        with pytest.raises(AllocationExceedsOutstandingError) as exc_info:
            voucher_service.create(
                PaymentPayload(
                    party_id=vendor.id,
                    amount=Decimal("300"),
                    allocations=(AllocationRequest(bill.id, Decimal("150")),),
                ),
                actor_id,
            )
        assert exc_info.value.invoice_id == str(bill.id)

    def test_allocation_within_tolerance(self, session, voucher_service, factory, vendor, actor_id):
        bill = factory.invoice(session, vendor, "100.00")
        voucher = voucher_service.create(
            PaymentPayload(
                party_id=vendor.id,
                amount=Decimal("100.01"),
                allocations=(AllocationRequest(bill.id, Decimal("100.01")),),
            ),
            actor_id,
        )
        assert bill.outstanding_amount == Decimal("0")
        assert voucher.invoice_links[0].new_balance == Decimal("0")
        assert voucher.invoice_links[0].allocated_amount == Decimal("100.00")
        assert voucher.on_account_amount == Decimal("0.01")

    def test_invoice_of_other_party(self, session, voucher_service, factory, vendor, actor_id):
        other = factory.party(session, "Other Vendor", PartyType.VENDOR)
        bill = factory.invoice(session, other, "100.00")
        with pytest.raises(PartyMismatchError):
            voucher_service.create(
                PaymentPayload(
                    party_id=vendor.id,
                    amount=Decimal("100"),
                    allocations=(AllocationRequest(bill.id, Decimal("100")),),
                ),
                actor_id,
            )

    def test_allocations_exceed_total(self, session, voucher_service, factory, vendor, actor_id):
        bill = factory.invoice(session, vendor, "500.00")
        with pytest.raises(ValidationError):
            voucher_service.create(
                PaymentPayload(
                    party_id=vendor.id,
                    amount=Decimal("100"),
                    allocations=(AllocationRequest(bill.id, Decimal("200")),),
                ),
                actor_id,
            )

    @pytest.mark.parametrize(
        "mode,detail",
        [
            (PaymentMode.CHEQUE, "cheque_no"),
            (PaymentMode.BANK, "bank_account_no"),
            (PaymentMode.ONLINE, "transaction_id"),
        ],
    )
    def test_missing_payment_detail(self, voucher_service, vendor, actor_id, mode, detail):
        with pytest.raises(MissingPaymentDetailError) as exc_info:
            voucher_service.create(
                PaymentPayload(party_id=vendor.id, amount=Decimal("10"), payment_mode=mode),
                actor_id,
            )
        assert exc_info.value.field == detail

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount(self, voucher_service, vendor, actor_id, amount):
        with pytest.raises(ValidationError):
            voucher_service.create(PaymentPayload(party_id=vendor.id, amount=amount), actor_id)


# =============================================================================
# Journals
# =============================================================================


@pytest.fixture
def rent(session, factory):
    return factory.account(
        session, "EXP100", "Rent", AccountType.EXPENSE, AccountSubType.OPERATING_EXPENSE
    )


@pytest.fixture
def capital(session, factory):
    return factory.account(
        session, "EQ100", "Owner Capital", AccountType.EQUITY, AccountSubType.SHARE_CAPITAL
    )


class TestJournal:

    def test_shortcut_creates_draft(self, session, voucher_service, rent, capital, actor_id):
        voucher = voucher_service.create(
            JournalPayload(
                debit_account_id=rent.id,
                credit_account_id=capital.id,
                amount=Decimal("250"),
                narration="June rent paid by owner",
            ),
            actor_id,
        )
        assert voucher.status == VoucherStatus.DRAFT.value
        assert voucher.voucher_no.startswith("JV-")
        assert voucher.total_amount == Decimal("250.00")
        assert [l.line_no for l in voucher.lines] == [1, 2]
        assert _entry_count(session) == 0

    def test_submit_for_approval_creates_pending(self, voucher_service, rent, capital, actor_id):
        voucher = voucher_service.create(
            JournalPayload(
                debit_account_id=rent.id,
                credit_account_id=capital.id,
                amount=Decimal("1"),
                submit_for_approval=True,
            ),
            actor_id,
        )
        assert voucher.status == VoucherStatus.PENDING.value

    def test_explicit_lines_with_tax(self, session, voucher_service, factory, rent, capital, actor_id):
        utilities = factory.account(session, "EXP200", "Utilities", AccountType.EXPENSE)
        voucher = voucher_service.create(
            JournalPayload(
                lines=(
                    LineSpec(rent.id, debit_amount=Decimal("100"), tax_percent=Decimal("18")),
                    LineSpec(utilities.id, debit_amount=Decimal("50")),
                    LineSpec(capital.id, credit_amount=Decimal("150")),
                )
            ),
            actor_id,
        )
        assert voucher.total_amount == Decimal("150.00")
        assert voucher.lines[0].tax_amount == Decimal("18.00")
        assert voucher.lines[1].tax_amount == Decimal("0")

    def test_unbalanced_lines(self, voucher_service, rent, capital, actor_id):
        with pytest.raises(UnbalancedVoucherError):
            voucher_service.create(
                JournalPayload(
                    lines=(
                        LineSpec(rent.id, debit_amount=Decimal("100")),
                        LineSpec(capital.id, credit_amount=Decimal("99.98")),
                    )
                ),
                actor_id,
            )

    def test_one_cent_difference_is_tolerated(self, voucher_service, rent, capital, actor_id):
        voucher = voucher_service.create(
            JournalPayload(
                lines=(
                    LineSpec(rent.id, debit_amount=Decimal("100")),
                    LineSpec(capital.id, credit_amount=Decimal("99.99")),
                )
            ),
            actor_id,
        )
        assert voucher.total_amount == Decimal("100.00")

    def test_single_line_rejected(self, voucher_service, rent, actor_id):
        with pytest.raises(ValidationError):
            voucher_service.create(
                JournalPayload(lines=(LineSpec(rent.id, debit_amount=Decimal("1")),)),
                actor_id,
            )

    def test_lines_and_shortcut_rejected(self, voucher_service, rent, capital, actor_id):
        with pytest.raises(ValidationError):
            voucher_service.create(
                JournalPayload(
                    lines=(
                        LineSpec(rent.id, debit_amount=Decimal("1")),
                        LineSpec(capital.id, credit_amount=Decimal("1")),
                    ),
                    debit_account_id=rent.id,
                ),
                actor_id,
            )

    def test_same_account_on_both_sides(self, voucher_service, rent, actor_id):
        with pytest.raises(ValidationError):
            voucher_service.create(
                JournalPayload(
                    debit_account_id=rent.id, credit_account_id=rent.id, amount=Decimal("1")
                ),
                actor_id,
            )

    def test_summary_account_rejected(self, session, voucher_service, factory, capital, actor_id):
        summary = factory.account(
            session, "EXP000", "Operating Expenses", AccountType.EXPENSE, allow_direct_posting=False
        )
        with pytest.raises(DirectPostingDisallowedError) as exc_info:
            voucher_service.create(
                JournalPayload(
                    debit_account_id=summary.id, credit_account_id=capital.id, amount=Decimal("5")
                ),
                actor_id,
            )
        assert exc_info.value.account_name == "Operating Expenses"
        assert session.execute(select(func.count()).select_from(Voucher)).scalar_one() == 0

    def test_inactive_account_rejected(self, session, voucher_service, factory, capital, actor_id):
        closed = factory.account(session, "EXP999", "Old", AccountType.EXPENSE, is_active=False)
        with pytest.raises(AccountInactiveError):
            voucher_service.create(
                JournalPayload(
                    debit_account_id=closed.id, credit_account_id=capital.id, amount=Decimal("5")
                ),
                actor_id,
            )

    def test_explicit_voucher_date(self, voucher_service, rent, capital, actor_id):
        voucher = voucher_service.create(
            JournalPayload(
                debit_account_id=rent.id,
                credit_account_id=capital.id,
                amount=Decimal("5"),
                voucher_date=date(2024, 3, 31),
            ),
            actor_id,
        )
        assert voucher.voucher_no == "JV-20240331-0001"
        assert voucher.financial_year == "2023-2024"
        assert (voucher.month, voucher.year) == (3, 2024)


# =============================================================================
# Contra
# =============================================================================


class TestContra:

    def test_cash_deposit(self, session, voucher_service, factory, actor_id):
        cash = factory.cash(session, "800.00")
        bank = factory.bank(session)

        voucher = voucher_service.create(
            ContraPayload(from_account_id=cash.id, to_account_id=bank.id, amount=Decimal("300")),
            actor_id,
        )

        assert voucher.status == VoucherStatus.APPROVED.value
        assert voucher.from_account_id == cash.id
        assert voucher.to_account_id == bank.id
        assert cash.current_balance == Decimal("500.00")
        assert bank.current_balance == Decimal("300.00")

    def test_insufficient_balance(self, session, voucher_service, factory, actor_id):
        cash = factory.cash(session, "800.00")
        bank = factory.bank(session)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            voucher_service.create(
                ContraPayload(
                    from_account_id=cash.id, to_account_id=bank.id, amount=Decimal("1000")
                ),
                actor_id,
            )
        assert exc_info.value.account_code == "CASH001"
        assert cash.current_balance == Decimal("800.00")
        assert _entry_count(session) == 0

    def test_non_cash_account_rejected(self, session, voucher_service, factory, rent, actor_id):
        cash = factory.cash(session, "100")
        with pytest.raises(ValidationError) as exc_info:
            voucher_service.create(
                ContraPayload(from_account_id=cash.id, to_account_id=rent.id, amount=Decimal("1")),
                actor_id,
            )
        assert exc_info.value.field == "to_account_id"

    def test_same_account_rejected(self, session, voucher_service, factory, actor_id):
        cash = factory.cash(session, "100")
        with pytest.raises(ValidationError):
            voucher_service.create(
                ContraPayload(from_account_id=cash.id, to_account_id=cash.id, amount=Decimal("1")),
                actor_id,
            )


# =============================================================================
# Expense
# =============================================================================


class TestExpense:

    def test_posts_to_category_default_account(
        self, session, voucher_service, factory, rent, actor_id
    ):
        category = factory.category(session, "RENT", "Rent", default_account=rent)

        voucher = voucher_service.create(
            ExpensePayload(
                expense_category_id=category.id,
                amount=Decimal("200"),
                tax_percent=Decimal("18"),
            ),
            actor_id,
        )

        assert voucher.status == VoucherStatus.APPROVED.value
        assert voucher.lines[0].account_id == rent.id
        assert voucher.lines[0].description == "Rent"
        assert voucher.lines[0].tax_amount == Decimal("36.00")
        assert rent.current_balance == Decimal("200.00")
        assert _account(voucher_service, "CASH001").current_balance == Decimal("-200.00")
        assert category.current_spent == Decimal("200.00")

    def test_falls_back_to_first_expense_account(self, session, voucher_service, factory, actor_id):
        factory.account(session, "EXP500", "Travel", AccountType.EXPENSE)
        first = factory.account(session, "EXP050", "General", AccountType.EXPENSE)
        category = factory.category(session, "MISC", "Miscellaneous")

        voucher = voucher_service.create(
            ExpensePayload(expense_category_id=category.id, amount=Decimal("10")), actor_id
        )
        assert voucher.lines[0].account_id == first.id

    def test_no_expense_account(self, session, voucher_service, factory, actor_id):
        category = factory.category(session, "MISC", "Miscellaneous")
        with pytest.raises(ValidationError):
            voucher_service.create(
                ExpensePayload(expense_category_id=category.id, amount=Decimal("10")), actor_id
            )

    def test_above_approval_limit_waits(self, session, voucher_service, factory, rent, actor_id):
        category = factory.category(
            session, "RENT", "Rent", default_account=rent,
            requires_approval=True, approval_limit="100",
        )
        voucher = voucher_service.create(
            ExpensePayload(expense_category_id=category.id, amount=Decimal("200")), actor_id
        )
        assert voucher.status == VoucherStatus.PENDING.value
        assert rent.current_balance == Decimal("0")
        assert category.current_spent == Decimal("0")

    def test_within_approval_limit_is_approved(
        self, session, voucher_service, factory, rent, actor_id
    ):
        category = factory.category(
            session, "RENT", "Rent", default_account=rent,
            requires_approval=True, approval_limit="100",
        )
        voucher = voucher_service.create(
            ExpensePayload(expense_category_id=category.id, amount=Decimal("100")), actor_id
        )
        assert voucher.status == VoucherStatus.APPROVED.value

    def test_unknown_category(self, voucher_service, actor_id):
        with pytest.raises(ExpenseCategoryNotFoundError):
            voucher_service.create(
                ExpensePayload(expense_category_id=uuid4(), amount=Decimal("10")), actor_id
            )

    def test_inactive_category(self, session, voucher_service, factory, rent, actor_id):
        category = factory.category(session, "OLD", "Old", default_account=rent, is_active=False)
        with pytest.raises(ValidationError):
            voucher_service.create(
                ExpensePayload(expense_category_id=category.id, amount=Decimal("10")), actor_id
            )

    def test_budget_overrun_is_logged(
        self, session, voucher_service, factory, rent, actor_id, captured_logs
    ):
        category = factory.category(
            session, "RENT", "Rent", default_account=rent, monthly_budget="50"
        )
        voucher_service.create(
            ExpensePayload(expense_category_id=category.id, amount=Decimal("80")), actor_id
        )
        warnings = [r for r in captured_logs() if r["message"] == "expense_budget_exceeded"]
        assert len(warnings) == 1
        assert warnings[0]["category_code"] == "RENT"
