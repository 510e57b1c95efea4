"""
interest_rate.py - Utilization-based (kinked) interest rate curve.

    utilization = total_borrowed / total_supplied

    if utilization <= optimal:
        borrow_rate = base + slope1 * utilization / optimal
    else:
        borrow_rate = base + slope1 + slope2 * (utilization - optimal) / (1 - optimal)

    liquidity_rate = borrow_rate * utilization

All values are ray integers. The curve is a pure function of utilization and
its four constants; nothing depends on history.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .wad_ray_math import RAY, ray_div, ray_mul, to_ray


@dataclass(frozen=True, slots=True)
class InterestRateCurve:
    """
    Immutable rate curve parameters, ray-scaled.

    Accepts ints (already ray) or Decimal/str/float fractions, which are
    converted with to_ray(), so InterestRateCurve("0.05", "0.02", "0.30", "0.8")
    is the curve used throughout the tests.
    """
    base_rate: int
    slope1: int
    slope2: int
    optimal_utilization: int

    def __post_init__(self):
        for name in ('base_rate', 'slope1', 'slope2', 'optimal_utilization'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                object.__setattr__(self, name, to_ray(value))
        if self.base_rate < 0 or self.slope1 < 0 or self.slope2 < 0:
            raise ValueError("rate curve parameters cannot be negative")
        if self.optimal_utilization <= 0 or self.optimal_utilization >= RAY:
            raise ValueError(
                f"optimal_utilization must be strictly between 0 and RAY, got {self.optimal_utilization}"
            )

    @property
    def max_excess_utilization(self) -> int:
        return RAY - self.optimal_utilization

    def to_dict(self) -> Dict[str, int]:
        return {
            'base_rate': self.base_rate,
            'slope1': self.slope1,
            'slope2': self.slope2,
            'optimal_utilization': self.optimal_utilization,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> InterestRateCurve:
        return cls(
            base_rate=raw['base_rate'],
            slope1=raw['slope1'],
            slope2=raw['slope2'],
            optimal_utilization=raw['optimal_utilization'],
        )


def calculate_utilization(total_borrowed: int, total_supplied: int) -> int:
    """Return borrowed / supplied as a ray, or 0 when either side is empty."""
    if total_borrowed == 0 or total_supplied == 0:
        return 0
    return ray_div(total_borrowed, total_supplied)


def calculate_interest_rates(
    total_borrowed: int,
    total_supplied: int,
    curve: InterestRateCurve,
) -> Tuple[int, int]:
    """
    Compute the instantaneous rates for a post-action utilization.

    PURE FUNCTION - deterministic in its inputs.

    Args:
        total_borrowed: Real outstanding debt of the reserve
        total_supplied: Available liquidity plus outstanding debt
        curve: Rate curve constants

    Returns:
        Tuple of (liquidity_rate, borrow_rate), both rays.

    Example:
        curve = InterestRateCurve("0.05", "0.02", "0.30", "0.8")
        calculate_interest_rates(0, 1000, curve)     # (0, 0.05 ray)
        calculate_interest_rates(500, 500, curve)    # (0.37 ray, 0.37 ray)
    """
    if total_borrowed < 0 or total_supplied < 0:
        raise ValueError("totals cannot be negative")

    utilization = calculate_utilization(total_borrowed, total_supplied)

    if utilization > curve.optimal_utilization:
        excess = ray_div(
            utilization - curve.optimal_utilization,
            curve.max_excess_utilization,
        )
        borrow_rate = curve.base_rate + curve.slope1 + ray_mul(curve.slope2, excess)
    else:
        borrow_rate = curve.base_rate + ray_div(
            ray_mul(curve.slope1, utilization),
            curve.optimal_utilization,
        )

    liquidity_rate = ray_mul(borrow_rate, utilization)
    return liquidity_rate, borrow_rate
