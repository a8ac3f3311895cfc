"""Checked unsigned fixed-point arithmetic.

Stored prices and accumulators are unsigned 256-bit integers. Python integers
never overflow, so every helper here enforces the bounds explicitly and raises
ComputationError instead of producing a wrong number. Division truncates toward
zero, matching on-chain integer semantics.

.. code-block:: python

    >>> multiply_ratio(3, PRICE_PRECISION, 10**8)
    30000000000000000000000
    >>> checked_sub(1, 2)
    Traceback (most recent call last):
    ...
    ComputationError: underflow: 1 - 2
"""

from __future__ import annotations

from .errors import ComputationError

MAX_UINT64 = 2**64 - 1
MAX_UINT256 = 2**256 - 1

# Shared scale of every stored price.
PRICE_PRECISION = 10**30

# Scale of cumulative delta accumulators.
CUMULATIVE_DELTA_PRECISION = 10 * 1000 * 1000

BASIS_POINTS_DIVISOR = 10000


def _check_bounds(value: int, limit: int, what: str) -> int:
    if value < 0:
        raise ComputationError(f"underflow: {what}")
    if value > limit:
        raise ComputationError(f"overflow: {what}")
    return value


def checked_add(a: int, b: int, limit: int = MAX_UINT256) -> int:
    """Add two unsigned integers.

    :raises ComputationError: If the sum exceeds ``limit``.
    """
    return _check_bounds(a + b, limit, f"{a} + {b}")


def checked_sub(a: int, b: int) -> int:
    """Subtract ``b`` from ``a``.

    :raises ComputationError: If the result would be negative.
    """
    return _check_bounds(a - b, MAX_UINT256, f"{a} - {b}")


def checked_mul(a: int, b: int, limit: int = MAX_UINT256) -> int:
    """Multiply two unsigned integers.

    :raises ComputationError: If the product exceeds ``limit``.
    """
    return _check_bounds(a * b, limit, f"{a} * {b}")


def checked_div(a: int, b: int) -> int:
    """Truncating division.

    :raises ComputationError: If ``b`` is zero.
    """
    if b == 0:
        raise ComputationError(f"division by zero: {a} / 0")
    return a // b


def multiply_ratio(value: int, numerator: int, denominator: int) -> int:
    """Compute ``value * numerator / denominator`` with a wide intermediate.

    Only the final result must fit in 256 bits.

    :raises ComputationError: On a zero denominator or an oversized result.
    """
    if denominator == 0:
        raise ComputationError(
            f"division by zero: {value} * {numerator} / 0"
        )
    return _check_bounds(
        value * numerator // denominator,
        MAX_UINT256,
        f"{value} * {numerator} / {denominator}",
    )


def abs_diff(a: int, b: int) -> int:
    """Absolute difference of two unsigned integers."""
    return a - b if a > b else b - a


def require_uint(value: int, name: str, limit: int = MAX_UINT256) -> int:
    """Validate that an input fits the unsigned range of its field.

    :param value: Input value.
    :param name: Field name used in the error message.
    :param limit: Largest allowed value.
    :returns: The value unchanged.
    :raises ValueError: If the value is not an int or is out of range.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0 or value > limit:
        raise ValueError(f"{name} out of range: {value}")
    return value
