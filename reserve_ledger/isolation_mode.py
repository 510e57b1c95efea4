"""
isolation_mode.py - Debt ceiling accounting for isolated collateral.

A borrower whose only collateral is an isolated asset may borrow against it
only up to that asset's debt ceiling. The running total lives on the
COLLATERAL reserve (isolation_mode_total_debt) and is kept in a coarse unit
with DEBT_CEILING_DECIMALS decimals: borrowed and repaid amounts of the debt
asset are truncated to that precision before being added or removed.

The counter is an approximate cap, not an exact ledger. Interest never
increments it, and truncation means a partial repay can leave a residual
unit behind.
"""

from __future__ import annotations

from .core import DebtCeilingExceeded
from .units.reserve import DEBT_CEILING_DECIMALS


def truncate_to_ceiling_units(amount: int, decimals: int) -> int:
    """
    Express an amount of a `decimals`-decimal asset in ceiling units.

    Example:
        truncate_to_ceiling_units(4_999_999 * 10**12, 18) == 499   # 4.999999 -> 4.99
    """
    return amount // 10 ** (decimals - DEBT_CEILING_DECIMALS)


def isolation_debt_after_repay(total_debt: int, repaid: int, decimals: int) -> int:
    """Reduce the isolated debt total by a repaid amount, floored at zero."""
    truncated = truncate_to_ceiling_units(repaid, decimals)
    if total_debt <= truncated:
        return 0
    return total_debt - truncated


def isolation_debt_after_borrow(
    total_debt: int, borrowed: int, decimals: int, debt_ceiling: int
) -> int:
    """
    Increase the isolated debt total by a borrowed amount.

    Raises:
        DebtCeilingExceeded: If the new total would be above debt_ceiling.
    """
    new_total = total_debt + truncate_to_ceiling_units(borrowed, decimals)
    if new_total > debt_ceiling:
        raise DebtCeilingExceeded(
            f"Isolated debt {new_total} would exceed ceiling {debt_ceiling}"
        )
    return new_total
