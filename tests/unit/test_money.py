"""
Unit tests for money helpers.

Verifies:
- round_money is half-up at two places
- to_money coerces aggregates and rejects non-numbers
- positive_money rejects zero, negatives and sub-paisa precision
"""

from decimal import Decimal

import pytest

from fund_kernel.db.types import ZERO, positive_money, round_money, to_money
from fund_kernel.exceptions import InvalidAmountError


class TestRoundMoney:

    def test_half_up(self):
        assert round_money(Decimal("10.005")) == Decimal("10.01")
        assert round_money(Decimal("10.004")) == Decimal("10.00")

    def test_negative_half_up_rounds_away_from_zero(self):
        assert round_money(Decimal("-2.345")) == Decimal("-2.35")


class TestToMoney:

    def test_none_is_zero(self):
        """SUM over zero rows comes back as None."""
        assert to_money(None) == ZERO

    def test_float_goes_through_str(self):
        assert to_money(0.1) == Decimal("0.10")

    def test_int_and_str(self):
        assert to_money(15000) == Decimal("15000.00")
        assert to_money("4000.5") == Decimal("4000.50")

    def test_not_a_number(self):
        with pytest.raises(InvalidAmountError):
            to_money("twelve")

    def test_infinity_rejected(self):
        with pytest.raises(InvalidAmountError):
            to_money(Decimal("Infinity"))


class TestPositiveMoney:

    def test_accepts_two_places(self):
        assert positive_money("123.45") == Decimal("123.45")

    @pytest.mark.parametrize("value", [0, "0.00", -1, "-0.01"])
    def test_rejects_non_positive(self, value):
        with pytest.raises(InvalidAmountError) as exc_info:
            positive_money(value)
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_rejects_sub_paisa(self):
        with pytest.raises(InvalidAmountError, match="two decimal places"):
            positive_money("10.001")
