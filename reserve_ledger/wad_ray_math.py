"""
wad_ray_math.py - Fixed-point integer arithmetic for indices and rates.

Two scales are used:
    WAD = 1e18   (token amounts with 18 decimals)
    RAY = 1e27   (indices, rates, utilization)

Python integers are arbitrary precision, so intermediate products never
overflow. Storage bounds (uint128) are enforced where values are persisted,
in reserve_logic.

Rounding:
    ray_mul / ray_div        half-up, identical to the on-chain library
    ray_div_floor / _ceil    directed rounding for scaled balance mints and burns
"""

from __future__ import annotations
from decimal import Decimal
from typing import Union


WAD = 10 ** 18

RAY = 10 ** 27
HALF_RAY = RAY // 2

SECONDS_PER_YEAR = 365 * 24 * 60 * 60


def ray_mul(a: int, b: int) -> int:
    """Multiply two ray values, rounding half up."""
    return (a * b + HALF_RAY) // RAY


def ray_div(a: int, b: int) -> int:
    """
    Divide two ray values, rounding half up.

    Raises:
        ZeroDivisionError: If b is zero.
    """
    if b == 0:
        raise ZeroDivisionError("ray_div by zero")
    return (a * RAY + b // 2) // b


def ray_div_floor(a: int, b: int) -> int:
    """Divide a by b in ray precision, rounding toward zero."""
    if b == 0:
        raise ZeroDivisionError("ray_div_floor by zero")
    return (a * RAY) // b


def ray_div_ceil(a: int, b: int) -> int:
    """Divide a by b in ray precision, rounding up."""
    if b == 0:
        raise ZeroDivisionError("ray_div_ceil by zero")
    return -((-a * RAY) // b)


def to_ray(value: Union[int, str, float, Decimal]) -> int:
    """
    Convert a human-readable fraction to a ray integer.

    Ints are taken to be ray values already. Strings and floats go through
    Decimal(str(...)) so that "0.05" and 0.05 give the same result.

    Example:
        to_ray("0.05") == 50000000000000000000000000
    """
    if isinstance(value, bool):
        raise ValueError("cannot convert bool to ray")
    if isinstance(value, int):
        return value
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value.is_nan() or value.is_infinite():
        raise ValueError(f"cannot convert {value} to ray")
    return int(value * RAY)
