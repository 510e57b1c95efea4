"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing pure compute
functions without requiring a full Ledger instance.
"""

from __future__ import annotations
from datetime import datetime
from typing import Dict, Set, Optional, Any

from reserve_ledger import UnitNotRegistered
from reserve_ledger.core import Unit


# Type aliases (matching core.py)
Positions = Dict[str, int]
UnitState = Dict[str, Any]


class FakeView:
    """
    Minimal LedgerView implementation for testing compute functions.

    Example:
        view = FakeView(
            balances={'alice': {'DAI': 1000}, 'aDAI': {'DAI': 500}},
            states={'DAI_RESERVE': to_state_dict(terms, config, state)},
            time=datetime(2025, 1, 1)
        )

        positions = view.get_positions('DAI')
        # Returns: {'alice': 1000, 'aDAI': 500}
    """

    def __init__(
        self,
        balances: Dict[str, Dict[str, int]],
        states: Optional[Dict[str, UnitState]] = None,
        time: Optional[datetime] = None,
        units: Optional[Dict[str, Unit]] = None
    ):
        self._balances = balances
        self._states = states or {}
        self._time = time or datetime(2025, 1, 1)
        self._units = units or {}

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_balance(self, wallet: str, unit: str) -> int:
        return self._balances.get(wallet, {}).get(unit, 0)

    def get_unit_state(self, unit: str) -> UnitState:
        return dict(self._states.get(unit, {}))

    def get_positions(self, unit: str) -> Positions:
        return {
            w: b[unit]
            for w, b in self._balances.items()
            if unit in b and b[unit] != 0
        }

    def list_wallets(self) -> Set[str]:
        return set(self._balances.keys())

    def get_unit(self, symbol: str) -> Unit:
        if symbol in self._units:
            return self._units[symbol]
        raise UnitNotRegistered(f"Unit {symbol} not registered")
