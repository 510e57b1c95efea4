"""
scaled_token.py - Scaled position units (supply and variable debt).

Positions are stored divided by the reserve index at the time of each mint
or burn. The real balance at any moment is

    balance = ray_mul(scaled_balance, current_index)

so interest accrues to every holder without touching their positions.

Mints are moves from SYSTEM_WALLET, burns are moves back to it. The system
wallet therefore holds minus the scaled total supply, and the unit's
ledger-wide sum stays zero.
"""

from __future__ import annotations

from ..core import (
    LedgerView, Move, Unit,
    SYSTEM_WALLET, UNIT_TYPE_SCALED_SUPPLY, UNIT_TYPE_SCALED_DEBT,
    mint_burn_only_rule, _freeze_state,
)
from ..wad_ray_math import ray_mul


def create_scaled_supply_unit(symbol: str, asset_unit: Unit) -> Unit:
    """Create the scaled supply unit (aToken) for an underlying token."""
    return Unit(
        symbol=symbol,
        name=f"Interest bearing {asset_unit.symbol}",
        unit_type=UNIT_TYPE_SCALED_SUPPLY,
        min_balance=0,
        decimals=asset_unit.decimals,
        _frozen_state=_freeze_state({'underlying': asset_unit.symbol}),
    )


def create_scaled_debt_unit(symbol: str, asset_unit: Unit) -> Unit:
    """Create the scaled variable debt unit. Debt cannot be transferred."""
    return Unit(
        symbol=symbol,
        name=f"Variable debt {asset_unit.symbol}",
        unit_type=UNIT_TYPE_SCALED_DEBT,
        min_balance=0,
        decimals=asset_unit.decimals,
        transfer_rule=mint_burn_only_rule,
        _frozen_state=_freeze_state({'underlying': asset_unit.symbol}),
    )


def scaled_balance_of(view: LedgerView, symbol: str, wallet: str) -> int:
    if wallet not in view.list_wallets():
        return 0
    return view.get_balance(wallet, symbol)


def scaled_total_supply(view: LedgerView, symbol: str) -> int:
    """Sum of all holders' scaled positions (system wallet excluded)."""
    return sum(
        qty for wallet, qty in view.get_positions(symbol).items()
        if wallet != SYSTEM_WALLET
    )


def balance_of(view: LedgerView, symbol: str, wallet: str, index: int) -> int:
    """Real balance of a holder at the given index, rounded half up."""
    return ray_mul(scaled_balance_of(view, symbol, wallet), index)


def mint_move(symbol: str, wallet: str, scaled_amount: int, contract_id: str) -> Move:
    return Move(scaled_amount, symbol, SYSTEM_WALLET, wallet, contract_id)


def burn_move(symbol: str, wallet: str, scaled_amount: int, contract_id: str) -> Move:
    return Move(scaled_amount, symbol, wallet, SYSTEM_WALLET, contract_id)
