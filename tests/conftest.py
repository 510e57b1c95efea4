"""
conftest.py - Shared pytest fixtures for reserve ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Basic ledgers (empty, with an underlying token)
- Pool fixtures with a configured DAI reserve and funded, approved wallets
- Isolation-mode fixture with an isolated collateral reserve
- Comparison utilities
"""

import pytest
from datetime import datetime, timedelta
from typing import Tuple
from hypothesis import strategies as st

from reserve_ledger import (
    Ledger, Move, Pool, InterestRateCurve,
    ExecuteResult, LedgerError, build_transaction, token,
    SYSTEM_WALLET, MAX_AMOUNT, WAD,
)


START = datetime(2025, 1, 1)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def standard_curve() -> InterestRateCurve:
    """base 5%, slope1 2%, slope2 30%, optimal utilization 80%."""
    return InterestRateCurve("0.05", "0.02", "0.30", "0.8")


def fund(ledger: Ledger, wallet: str, asset: str, amount: int) -> None:
    """Issue underlying to a wallet through the system wallet (logged, replayable)."""
    tx = build_transaction(ledger, [
        Move(amount, asset, SYSTEM_WALLET, wallet, f"faucet_{asset}_{wallet}_{len(ledger.transaction_log)}")
    ])
    assert ledger.execute(tx) == ExecuteResult.APPLIED


def advance(ledger: Ledger, seconds: int) -> None:
    ledger.advance_time(ledger.current_time + timedelta(seconds=seconds))


def compare_ledger_states(ledger1: Ledger, ledger2: Ledger) -> dict:
    """Compare two ledger states and return differences."""
    balance_diffs = []
    state_diffs = []

    all_wallets = ledger1.registered_wallets | ledger2.registered_wallets
    all_units = set(ledger1.units.keys()) | set(ledger2.units.keys())

    for wallet in all_wallets:
        for unit in all_units:
            bal1 = ledger1.balances.get(wallet, {}).get(unit, 0)
            bal2 = ledger2.balances.get(wallet, {}).get(unit, 0)
            if bal1 != bal2:
                balance_diffs.append({
                    "wallet": wallet,
                    "unit": unit,
                    "ledger1": bal1,
                    "ledger2": bal2,
                })

    for unit_sym in all_units:
        if unit_sym in ledger1.units and unit_sym in ledger2.units:
            state1 = ledger1.get_unit_state(unit_sym)
            state2 = ledger2.get_unit_state(unit_sym)
            field_diffs = {
                key: {"ledger1": state1.get(key), "ledger2": state2.get(key)}
                for key in set(state1) | set(state2)
                if state1.get(key) != state2.get(key)
            }
            if field_diffs:
                state_diffs.append({"unit": unit_sym, "diffs": field_diffs})
        elif unit_sym in ledger1.units or unit_sym in ledger2.units:
            state_diffs.append({"unit": unit_sym, "diffs": "missing in one ledger"})

    return {
        "equal": len(balance_diffs) == 0 and len(state_diffs) == 0,
        "balance_diffs": balance_diffs,
        "state_diffs": state_diffs,
    }


def ledger_state_equals(ledger1: Ledger, ledger2: Ledger) -> bool:
    return compare_ledger_states(ledger1, ledger2)["equal"]


def make_pool(name: str = "test") -> Tuple[Ledger, Pool]:
    """Ledger with a DAI reserve; alice and bob funded and approved."""
    ledger = Ledger(name, START, verbose=False, test_mode=True)
    ledger.register_unit(token("DAI", "Dai Stablecoin"))
    for wallet in ("alice", "bob", "charlie"):
        ledger.register_wallet(wallet)

    pool = Pool(ledger)
    pool.init_reserve("DAI", standard_curve())

    fund(ledger, "alice", "DAI", 10_000 * WAD)
    fund(ledger, "bob", "DAI", 1_000 * WAD)
    fund(ledger, "charlie", "DAI", 1_000 * WAD)
    for wallet in ("alice", "bob", "charlie"):
        pool.approve(wallet, "DAI")
    return ledger, pool


# =============================================================================
# RANDOM ACTION SEQUENCES (property-based tests)
# =============================================================================

ACTORS = ("alice", "bob", "charlie")

# (action, actor, amount, seconds to wait before acting)
actions = st.lists(
    st.tuples(
        st.sampled_from(["supply", "withdraw", "borrow", "repay"]),
        st.sampled_from(ACTORS),
        st.one_of(st.integers(min_value=1, max_value=600 * WAD), st.just(MAX_AMOUNT)),
        st.integers(min_value=0, max_value=30 * 86_400),
    ),
    min_size=1,
    max_size=25,
)


def run_action(pool: Pool, action: tuple) -> Tuple[str, int]:
    """
    Advance time and attempt one action on the DAI reserve.

    Returns (kind, underlying amount that moved), or (kind, 0) if the action
    was refused. Cash entering the reserve is positive, cash leaving negative.
    """
    kind, actor, amount, wait = action
    advance(pool.ledger, wait)
    try:
        if kind == "supply":
            return kind, pool.supply("DAI", amount, actor)
        if kind == "withdraw":
            return kind, -pool.withdraw("DAI", amount, actor)
        if kind == "borrow":
            return kind, -pool.borrow("DAI", amount, actor)
        return kind, pool.repay("DAI", amount, actor).actual_amount_repaid
    except LedgerError:
        return kind, 0


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", verbose=False, test_mode=True)


@pytest.fixture
def basic_ledger():
    """Ledger with DAI and two wallets."""
    ledger = Ledger("test", START, verbose=False, test_mode=True)
    ledger.register_unit(token("DAI", "Dai Stablecoin"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def funded_ledger(basic_ledger):
    """Basic ledger with alice holding 10,000 DAI."""
    basic_ledger.set_balance("alice", "DAI", 10_000 * WAD)
    return basic_ledger


# =============================================================================
# POOL FIXTURES
# =============================================================================

@pytest.fixture
def curve():
    return standard_curve()


@pytest.fixture
def pool():
    """Pool with an empty DAI reserve and funded, approved wallets."""
    _, pool = make_pool()
    return pool


@pytest.fixture
def borrowed_pool(pool):
    """alice supplied 1,000 DAI and bob borrowed 500 DAI at the start time."""
    pool.supply("DAI", 1_000 * WAD, "alice")
    pool.borrow("DAI", 500 * WAD, "bob")
    return pool


@pytest.fixture
def isolated_pool(pool):
    """
    Adds ISO, an isolated collateral with a 10.00 ceiling, and makes DAI
    borrowable in isolation. bob borrows as an isolated user.
    """
    ledger = pool.ledger
    ledger.register_unit(token("ISO", "Isolated Token"))
    pool.init_reserve("ISO", standard_curve(), debt_ceiling=1_000)
    pool.configure_reserve("DAI", borrowable_in_isolation=True)
    pool.set_user_isolation("bob", "ISO")
    pool.supply("DAI", 1_000 * WAD, "alice")
    return pool
