"""
validation.py - Precondition checks for reserve actions.

Every check runs before any state is computed, and each failure raises its
own LedgerError subclass. The order of checks within a function is the order
callers observe when several preconditions fail at once.
"""

from __future__ import annotations
from typing import Optional

from .core import (
    MAX_AMOUNT,
    InvalidAmount, NoExplicitAmountToRepayOnBehalf,
    ReserveInactive, ReservePaused, ReserveFrozen,
    NoDebtOfSelectedType, BorrowingNotEnabled,
    NotEnoughAvailableUserBalance, AssetNotBorrowableInIsolation,
)
from .units.reserve import ReserveConfiguration


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an int, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")


def _check_active_not_paused(config: ReserveConfiguration) -> None:
    if not config.active:
        raise ReserveInactive("Reserve is not active")
    if config.paused:
        raise ReservePaused("Reserve is paused")


def validate_supply(config: ReserveConfiguration, amount: int) -> None:
    _check_amount(amount)
    _check_active_not_paused(config)
    if config.frozen:
        raise ReserveFrozen("Reserve is frozen")


def validate_withdraw(config: ReserveConfiguration, amount: int, user_balance: int) -> None:
    """`amount` is the resolved amount (MAX_AMOUNT already replaced by the balance)."""
    _check_amount(amount)
    _check_active_not_paused(config)
    if amount > user_balance:
        raise NotEnoughAvailableUserBalance(
            f"Withdraw of {amount} exceeds supplied balance {user_balance}"
        )


def validate_borrow(
    config: ReserveConfiguration,
    amount: int,
    isolated: bool = False,
) -> None:
    """
    Check borrow preconditions on the debt reserve.

    The debt ceiling itself is enforced in isolation_mode when the new
    isolated total is computed.
    """
    _check_amount(amount)
    if amount == MAX_AMOUNT:
        raise InvalidAmount("Borrow amount cannot be the repay-all sentinel")
    _check_active_not_paused(config)
    if config.frozen:
        raise ReserveFrozen("Reserve is frozen")
    if not config.borrowing_enabled:
        raise BorrowingNotEnabled("Borrowing is not enabled on this reserve")
    if isolated and not config.borrowable_in_isolation:
        raise AssetNotBorrowableInIsolation("Asset is not borrowable in isolation mode")


def validate_repay(
    config: ReserveConfiguration,
    amount: int,
    payer: str,
    on_behalf_of: str,
    scaled_debt: Optional[int],
) -> None:
    """
    Check repay preconditions. Frozen reserves still accept repayments.

    Raises, in order:
        InvalidAmount: amount is zero
        NoExplicitAmountToRepayOnBehalf: repay-all sentinel used for someone else
        ReserveInactive / ReservePaused: administrative gate
        NoDebtOfSelectedType: on_behalf_of has no variable debt
    """
    _check_amount(amount)
    if amount == MAX_AMOUNT and payer != on_behalf_of:
        raise NoExplicitAmountToRepayOnBehalf(
            "Repaying the full debt on behalf of another account needs an explicit amount"
        )
    _check_active_not_paused(config)
    if not scaled_debt:
        raise NoDebtOfSelectedType(f"{on_behalf_of} has no variable debt to repay")
