"""
Money arithmetic tests.

Tests cover:
- Coercion: floats and booleans rejected, strings and ints accepted
- Rounding: ROUND_HALF_UP at two places
- Balance tolerance of 0.01
- Sign convention per account type
- Line tax and financial year labels
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.domain.amounts import (
    balance_delta,
    compute_tax,
    financial_year_for,
    is_balanced,
    quantize_money,
    require_positive,
    to_money,
)
from ledger_kernel.exceptions import ValidationError


class TestToMoney:

    def test_string_is_quantized(self):
        assert to_money("10") == Decimal("10.00")

    def test_int_is_accepted(self):
        assert to_money(7) == Decimal("7.00")

    def test_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money("2.344") == Decimal("2.34")

    @pytest.mark.parametrize("value", [1.5, True, None, "abc", "NaN", "Infinity"])
    def test_rejects_non_decimal_input(self, value):
        with pytest.raises(ValidationError) as exc_info:
            to_money(value, field="amount")
        assert exc_info.value.field == "amount"

    def test_require_positive_rejects_zero(self):
        with pytest.raises(ValidationError):
            require_positive("0.00")

    def test_require_positive_rejects_rounding_to_zero(self):
        with pytest.raises(ValidationError):
            require_positive("0.004")

    def test_require_positive_returns_quantized(self):
        assert require_positive("0.005") == Decimal("0.01")


class TestBalanceTolerance:

    def test_exact_match_balances(self):
        assert is_balanced(Decimal("100.00"), Decimal("100.00"))

    def test_one_cent_difference_balances(self):
        assert is_balanced(Decimal("100.00"), Decimal("100.01"))

    def test_two_cent_difference_does_not_balance(self):
        assert not is_balanced(Decimal("100.00"), Decimal("100.02"))


class TestSignConvention:

    @pytest.mark.parametrize("account_type", [AccountType.ASSET, AccountType.EXPENSE])
    def test_debit_normal_types(self, account_type):
        assert balance_delta(account_type, Decimal("10"), Decimal("0")) == Decimal("10")
        assert balance_delta(account_type, Decimal("0"), Decimal("4")) == Decimal("-4")

    @pytest.mark.parametrize(
        "account_type", [AccountType.LIABILITY, AccountType.EQUITY, AccountType.INCOME]
    )
    def test_credit_normal_types(self, account_type):
        assert balance_delta(account_type, Decimal("0"), Decimal("10")) == Decimal("10")
        assert balance_delta(account_type, Decimal("4"), Decimal("0")) == Decimal("-4")

    def test_accepts_string_type(self):
        assert balance_delta("asset", Decimal("3"), Decimal("1")) == Decimal("2")


class TestTax:

    def test_no_percent_is_zero(self):
        assert compute_tax(Decimal("100"), None) == Decimal("0")
        assert compute_tax(Decimal("100"), Decimal("0")) == Decimal("0")

    def test_percent_of_amount(self):
        assert compute_tax(Decimal("200.00"), Decimal("18")) == Decimal("36.00")

    def test_rounds_to_cents(self):
        assert compute_tax(Decimal("10.00"), Decimal("12.5")) == Decimal("1.25")
        assert compute_tax(Decimal("0.05"), Decimal("50")) == Decimal("0.03")

    def test_rejects_out_of_range_percent(self):
        with pytest.raises(ValidationError):
            compute_tax(Decimal("10"), Decimal("101"))


class TestFinancialYear:

    @pytest.mark.parametrize(
        "on_date,label",
        [
            (date(2024, 4, 1), "2024-2025"),
            (date(2025, 3, 31), "2024-2025"),
            (date(2024, 3, 31), "2023-2024"),
            (date(2024, 12, 31), "2024-2025"),
        ],
    )
    def test_april_to_march(self, on_date, label):
        assert financial_year_for(on_date) == label


def test_quantize_money_keeps_two_places():
    assert quantize_money(Decimal("1")) == Decimal("1.00")
    assert str(quantize_money(Decimal("1"))) == "1.00"
