"""Unit tests for checked fixed-point arithmetic."""

import pytest

from fastprice.src.errors import ComputationError
from fastprice.src.fixed_point import (
    MAX_UINT64,
    MAX_UINT256,
    PRICE_PRECISION,
    abs_diff,
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    multiply_ratio,
    require_uint,
)


class TestCheckedArithmetic:
    """Test bounds enforcement of the checked helpers."""

    def test_add_within_bounds(self) -> None:
        """Sums below the limit should pass through."""
        assert checked_add(2, 3) == 5
        assert checked_add(MAX_UINT256 - 1, 1) == MAX_UINT256

    def test_add_overflow(self) -> None:
        """Sums above 2**256 - 1 should raise."""
        with pytest.raises(ComputationError, match="overflow"):
            checked_add(MAX_UINT256, 1)

    def test_add_custom_limit(self) -> None:
        """A custom limit should bound the sum."""
        with pytest.raises(ComputationError, match="overflow"):
            checked_add(MAX_UINT64, 1, limit=MAX_UINT64)

    def test_sub_underflow(self) -> None:
        """Negative results should raise."""
        assert checked_sub(5, 5) == 0
        with pytest.raises(ComputationError, match="underflow"):
            checked_sub(1, 2)

    def test_mul_overflow(self) -> None:
        """Products above 2**256 - 1 should raise."""
        assert checked_mul(3, 4) == 12
        with pytest.raises(ComputationError, match="overflow"):
            checked_mul(2**200, 2**100)

    def test_div_truncates(self) -> None:
        """Division should round toward zero."""
        assert checked_div(7, 2) == 3
        assert checked_div(1, 3) == 0

    def test_div_by_zero(self) -> None:
        """Division by zero should raise instead of crashing."""
        with pytest.raises(ComputationError, match="division by zero"):
            checked_div(1, 0)

    def test_abs_diff(self) -> None:
        """abs_diff should be symmetric."""
        assert abs_diff(10, 4) == 6
        assert abs_diff(4, 10) == 6
        assert abs_diff(4, 4) == 0


class TestMultiplyRatio:
    """Test multiply_ratio rescaling."""

    def test_rescale_to_price_precision(self) -> None:
        """8-decimal prices should be lifted to 30 decimals."""
        assert multiply_ratio(3, PRICE_PRECISION, 10**8) == 3 * 10**22

    def test_wide_intermediate(self) -> None:
        """Intermediate products may exceed 256 bits if the result fits."""
        assert multiply_ratio(MAX_UINT256, 2**10, 2**10) == MAX_UINT256

    def test_zero_denominator(self) -> None:
        """A zero denominator should raise."""
        with pytest.raises(ComputationError, match="division by zero"):
            multiply_ratio(1, PRICE_PRECISION, 0)

    def test_oversized_result(self) -> None:
        """Results above 2**256 - 1 should raise."""
        with pytest.raises(ComputationError, match="overflow"):
            multiply_ratio(MAX_UINT256, 2, 1)


class TestRequireUint:
    """Test input range validation."""

    def test_valid_values(self) -> None:
        """In-range integers should be returned unchanged."""
        assert require_uint(0, "x") == 0
        assert require_uint(MAX_UINT64, "x", MAX_UINT64) == MAX_UINT64

    @pytest.mark.parametrize("value", [-1, MAX_UINT256 + 1])
    def test_out_of_range(self, value: int) -> None:
        """Negative and oversized values should be rejected."""
        with pytest.raises(ValueError, match="x out of range"):
            require_uint(value, "x")

    @pytest.mark.parametrize("value", [True, 1.5, "10", None])
    def test_non_integer(self, value) -> None:
        """Non-integers, including bools, should be rejected."""
        with pytest.raises(ValueError, match="x must be an integer"):
            require_uint(value, "x")
