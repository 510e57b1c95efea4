"""
reserve_logic.py - Accrual engine for a single reserve.

Indices are updated lazily: nothing runs on a timer. Every action first calls
refresh() to bring the indices up to "now", settles against the refreshed
state, then calls update_interest_rates() for the post-action utilization.

    liquidity_index(t) = liquidity_index * (1 + liquidity_rate * dt / year)
    borrow_index(t)    = borrow_index * compounded(borrow_rate, dt)

compounded() is a third-order Taylor expansion of e^(rate * dt / year),
evaluated in integer ray arithmetic. The term structure and truncation are
part of the protocol's observable rounding and must not be replaced by an
exact exponential.

All functions are pure: ReserveState in, new ReserveState out. The balance
queries at the bottom only read from a LedgerView.
"""

from __future__ import annotations
from dataclasses import replace

from .core import LedgerView, MAX_UINT128, to_timestamp
from .interest_rate import InterestRateCurve, calculate_interest_rates
from .units.reserve import ReserveState, load_reserve
from .units.scaled_token import balance_of
from .wad_ray_math import RAY, SECONDS_PER_YEAR, ray_mul


# ============================================================================
# INTEREST FORMULAS
# ============================================================================

def calculate_linear_interest(rate: int, last_update_timestamp: int, now: int) -> int:
    """
    Simple interest factor over [last_update_timestamp, now], as a ray.

    Example:
        calculate_linear_interest(to_ray("0.37"), 0, SECONDS_PER_YEAR // 100)
        # 1.0037 ray
    """
    elapsed = now - last_update_timestamp
    return RAY + rate * elapsed // SECONDS_PER_YEAR


def calculate_compounded_interest(rate: int, last_update_timestamp: int, now: int) -> int:
    """
    Compounded interest factor over [last_update_timestamp, now], as a ray.

        1 + n*x + n(n-1)/2 * x^2 + n(n-1)(n-2)/6 * x^3

    with x = rate / SECONDS_PER_YEAR and n = elapsed seconds. Each power of
    x is built from the previous one by ray multiplication, so the result
    slightly undershoots true continuous compounding.

    Returns RAY when no time has elapsed.
    """
    exp = now - last_update_timestamp
    if exp <= 0:
        return RAY

    exp_minus_one = exp - 1
    exp_minus_two = exp - 2 if exp > 2 else 0

    base_power_two = ray_mul(rate, rate) // (SECONDS_PER_YEAR * SECONDS_PER_YEAR)
    base_power_three = ray_mul(base_power_two, rate) // SECONDS_PER_YEAR

    second_term = exp * exp_minus_one * base_power_two // 2
    third_term = exp * exp_minus_one * exp_minus_two * base_power_three // 6

    return RAY + rate * exp // SECONDS_PER_YEAR + second_term + third_term


# ============================================================================
# INDEX PROJECTION (read-only)
# ============================================================================

def get_normalized_income(state: ReserveState, now: int) -> int:
    """Liquidity index as it would be at `now`, without mutating anything."""
    if now <= state.last_update_timestamp:
        return state.liquidity_index
    return ray_mul(
        calculate_linear_interest(state.current_liquidity_rate, state.last_update_timestamp, now),
        state.liquidity_index,
    )


def get_normalized_debt(state: ReserveState, now: int) -> int:
    """Borrow index as it would be at `now`, without mutating anything."""
    if now <= state.last_update_timestamp:
        return state.borrow_index
    return ray_mul(
        calculate_compounded_interest(state.current_borrow_rate, state.last_update_timestamp, now),
        state.borrow_index,
    )


# ============================================================================
# STATE TRANSITIONS
# ============================================================================

def _check_uint128(name: str, value: int) -> int:
    if value > MAX_UINT128:
        raise OverflowError(f"{name} overflow: {value} exceeds uint128")
    return value


def refresh(state: ReserveState, now: int) -> ReserveState:
    """
    Bring both indices current as of `now`.

    Identity when `now` is not after last_update_timestamp, so a second
    refresh at the same timestamp changes nothing.

    The liquidity index only moves when there is a liquidity rate, and the
    borrow index only when there is scaled debt to accrue on.

    Raises:
        OverflowError: If an index would exceed uint128 storage.
    """
    if now <= state.last_update_timestamp:
        return state

    liquidity_index = state.liquidity_index
    if state.current_liquidity_rate != 0:
        cumulated = calculate_linear_interest(
            state.current_liquidity_rate, state.last_update_timestamp, now
        )
        liquidity_index = _check_uint128(
            "liquidity_index", ray_mul(cumulated, state.liquidity_index)
        )

    borrow_index = state.borrow_index
    if state.total_scaled_debt != 0:
        cumulated = calculate_compounded_interest(
            state.current_borrow_rate, state.last_update_timestamp, now
        )
        borrow_index = _check_uint128(
            "borrow_index", ray_mul(cumulated, state.borrow_index)
        )

    return replace(
        state,
        liquidity_index=liquidity_index,
        borrow_index=borrow_index,
        last_update_timestamp=now,
    )


def update_interest_rates(
    state: ReserveState,
    curve: InterestRateCurve,
    total_borrowed: int,
    total_supplied: int,
) -> ReserveState:
    """
    Store the rates for a post-action utilization.

    Args:
        state: Refreshed reserve state
        curve: The reserve's rate curve
        total_borrowed: Real outstanding debt after the action
        total_supplied: Available liquidity plus outstanding debt after the action

    Raises:
        OverflowError: If a rate would exceed uint128 storage.
    """
    liquidity_rate, borrow_rate = calculate_interest_rates(total_borrowed, total_supplied, curve)
    return replace(
        state,
        current_liquidity_rate=_check_uint128("liquidity_rate", liquidity_rate),
        current_borrow_rate=_check_uint128("borrow_rate", borrow_rate),
    )


# ============================================================================
# BALANCE QUERIES
# ============================================================================

def supply_balance_of(view: LedgerView, asset: str, user: str) -> int:
    """User's supplied balance including interest accrued up to view.current_time."""
    terms, _, state = load_reserve(view, asset)
    index = get_normalized_income(state, to_timestamp(view.current_time))
    return balance_of(view, terms.supply_token, user, index)


def debt_balance_of(view: LedgerView, asset: str, user: str) -> int:
    """User's variable debt including interest accrued up to view.current_time."""
    terms, _, state = load_reserve(view, asset)
    index = get_normalized_debt(state, to_timestamp(view.current_time))
    return balance_of(view, terms.debt_token, user, index)
