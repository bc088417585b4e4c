"""
Unit tests for fee calculation and payment splits.

Verifies:
- Fee law: 10000 at 1.5% is exactly 150.00
- The documented rounding rule (half-even by default, round-down optional)
- Purity: same inputs, same fee
- Split allocations always add up to the split amount
"""

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from escrow_kernel.domain.fees import calculate_fee, calculate_split
from escrow_kernel.exceptions import InvalidSplitError

FEE = Decimal("1.5")

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestCalculateFee:

    def test_fee_law(self):
        assert calculate_fee(Decimal("10000"), FEE) == Decimal("150.00")
        assert str(calculate_fee(Decimal("10000.00"), FEE)) == "150.00"

    @pytest.mark.parametrize(
        "amount, expected",
        [
            (Decimal("3.00"), Decimal("0.04")),   # 0.045 -> even neighbour
            (Decimal("1.00"), Decimal("0.02")),   # 0.015 -> even neighbour
            (Decimal("7.00"), Decimal("0.10")),   # 0.105 -> down, not up
            (Decimal("5.00"), Decimal("0.08")),   # 0.075 -> up
            (Decimal("0.01"), Decimal("0.00")),
        ],
    )
    def test_half_even_rule(self, amount, expected):
        assert calculate_fee(amount, FEE) == expected
        assert calculate_fee(amount, FEE, ROUND_HALF_EVEN) == expected

    @pytest.mark.parametrize(
        "amount, expected",
        [
            (Decimal("1.00"), Decimal("0.01")),
            (Decimal("5.00"), Decimal("0.07")),
            (Decimal("10000.00"), Decimal("150.00")),
        ],
    )
    def test_round_down_rule(self, amount, expected):
        assert calculate_fee(amount, FEE, ROUND_DOWN) == expected

    def test_zero_rate(self):
        assert calculate_fee(Decimal("10000"), Decimal("0")) == Decimal("0.00")

    @given(amount=amounts)
    def test_pure_and_deterministic(self, amount):
        assert calculate_fee(amount, FEE) == calculate_fee(amount, FEE)

    @given(amount=amounts)
    def test_fee_has_two_places_and_never_exceeds_amount(self, amount):
        fee = calculate_fee(amount, FEE)
        assert fee.as_tuple().exponent == -2
        assert Decimal("0") <= fee <= amount

    @given(amount=amounts)
    def test_round_down_never_above_half_even(self, amount):
        assert calculate_fee(amount, FEE, ROUND_DOWN) <= calculate_fee(amount, FEE)


class TestCalculateSplit:

    def test_even_thirds_residue_goes_to_last(self):
        allocations = calculate_split(
            Decimal("100.00"),
            [("beneficiary", "33.33"), ("agent", "33.33"), ("platform", "33.34")],
        )
        assert [a.amount for a in allocations] == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]
        assert [a.party_id for a in allocations] == ["beneficiary", "agent", "platform"]

    def test_rounding_residue(self):
        allocations = calculate_split(Decimal("10.00"), [("a", "33.33"), ("b", "66.67")])
        assert allocations[0].amount == Decimal("3.33")
        assert allocations[1].amount == Decimal("6.67")

    def test_half_even_share(self):
        allocations = calculate_split(Decimal("0.05"), [("a", 50), ("b", 50)])
        assert allocations[0].amount == Decimal("0.02")
        assert allocations[1].amount == Decimal("0.03")

    def test_single_share_takes_everything(self):
        allocations = calculate_split(Decimal("99.99"), [("only", Decimal("100"))])
        assert allocations[0].amount == Decimal("99.99")
        assert allocations[0].percentage == Decimal("100")

    @pytest.mark.parametrize(
        "shares",
        [
            [("a", "50"), ("b", "49.99")],
            [("a", "60"), ("b", "60")],
        ],
    )
    def test_total_not_100_rejected(self, shares):
        with pytest.raises(InvalidSplitError, match="total 100"):
            calculate_split(Decimal("100.00"), shares)

    def test_empty_rejected(self):
        with pytest.raises(InvalidSplitError, match="at least one share"):
            calculate_split(Decimal("100.00"), [])

    def test_float_percentage_rejected(self):
        with pytest.raises(InvalidSplitError, match="float"):
            calculate_split(Decimal("100.00"), [("a", 50.0), ("b", "50")])

    @pytest.mark.parametrize("bad", ["-10", "0", "abc"])
    def test_malformed_percentage_rejected(self, bad):
        with pytest.raises(InvalidSplitError):
            calculate_split(Decimal("100.00"), [("a", bad), ("b", "100")])

    def test_split_error_is_invalid_request(self):
        with pytest.raises(InvalidSplitError) as exc_info:
            calculate_split(Decimal("1.00"), [("a", "10")])
        assert exc_info.value.category == "invalid_request"
        assert exc_info.value.total_percentage == Decimal("10")

    @given(
        amount=amounts,
        first=st.integers(min_value=1, max_value=98),
        second=st.integers(min_value=1, max_value=98),
    )
    def test_allocations_sum_to_amount(self, amount, first, second):
        if first + second >= 100:
            first, second = 50, 25
        shares = [("a", first), ("b", second), ("c", 100 - first - second)]
        allocations = calculate_split(amount, shares)
        assert sum(a.amount for a in allocations) == amount
