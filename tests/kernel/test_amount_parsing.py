"""Tests for amount parsing and money formatting (cashflow_kernel/db/types.py)."""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cashflow_kernel.db.types import format_money, parse_amount, round_money
from cashflow_kernel.exceptions import MalformedAmountError


class TestParseAmount:

    def test_none_is_absence(self):
        assert parse_amount(None) is None

    def test_integer(self):
        assert parse_amount(4000) == Decimal("4000")

    def test_float_has_no_binary_noise(self):
        assert parse_amount(0.1) == Decimal("0.1")

    def test_numeric_string(self):
        assert parse_amount("1250.50") == Decimal("1250.50")

    def test_string_with_separators_and_currency(self):
        assert parse_amount(" $1,250.50 ") == Decimal("1250.50")

    def test_booleans_map_to_zero_and_one(self):
        assert parse_amount(True) == Decimal("1")
        assert parse_amount(False) == Decimal("0")

    @pytest.mark.parametrize("value", ["abc", "", "   ", "NaN", "Infinity", "-inf"])
    def test_malformed_strings_rejected(self, value):
        with pytest.raises(MalformedAmountError):
            parse_amount(value)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), [1], {"a": 1}])
    def test_non_finite_and_containers_rejected(self, value):
        with pytest.raises(MalformedAmountError):
            parse_amount(value)

    def test_error_carries_field_and_code(self):
        with pytest.raises(MalformedAmountError) as exc_info:
            parse_amount("oops", "activities.X.cumulative_balance")
        assert exc_info.value.code == "MALFORMED_AMOUNT"
        assert exc_info.value.field == "activities.X.cumulative_balance"
        assert exc_info.value.value == "'oops'"

    @given(st.decimals(allow_nan=False, allow_infinity=False, places=2))
    def test_finite_decimal_strings_parse_exactly(self, value):
        assert parse_amount(str(value)) == value


class TestMoneyFormatting:

    def test_round_money_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")

    def test_format_money_two_decimals(self):
        assert format_money(Decimal("5000")) == "5000.00"
        assert format_money(Decimal("-12.5")) == "-12.50"
