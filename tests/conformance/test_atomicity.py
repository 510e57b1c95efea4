"""
Atomicity Conformance Tests

INVARIANT: Reserve actions are all-or-nothing.

    ∀ action A:
        A succeeds ⟹ every move and every reserve state change in A is applied
        A fails    ⟹ balances, allowances and reserve state are unchanged

A repay that cannot pull its funds does not burn debt, and an isolated
borrow that would pass the ceiling does not mint debt or touch the counter.
"""

import pytest
from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from reserve_ledger import (
    WAD, MAX_AMOUNT, POOL_SPENDER,
    ExecuteResult, InsufficientFunds, DebtCeilingExceeded,
    compute_supply, settle_repay,
)
from tests.conftest import advance, compare_ledger_states, make_pool


def snapshot(ledger):
    return ledger.clone()


class TestAtomicityProperties:

    @given(st.integers(min_value=0, max_value=499 * WAD))
    @settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_underfunded_repay_changes_nothing(self, payer_cash):
        """
        PROPERTY: If the payer cannot cover the repay, debt, cash and
        reserve state all stay as they were.
        """
        ledger, pool = make_pool()
        pool.supply("DAI", 1_000 * WAD, "alice")
        pool.borrow("DAI", 500 * WAD, "bob")
        advance(ledger, 86_400)
        ledger.set_balance("bob", "DAI", payer_cash)

        before = snapshot(ledger)
        with pytest.raises(InsufficientFunds):
            pool.repay("DAI", MAX_AMOUNT, "bob")

        diff = compare_ledger_states(before, ledger)
        assert diff["equal"], diff

    @given(st.integers(min_value=1, max_value=10 * WAD))
    @settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_insufficient_allowance_changes_nothing(self, allowance):
        ledger, pool = make_pool()
        pool.supply("DAI", 1_000 * WAD, "alice")
        pool.borrow("DAI", 500 * WAD, "bob")
        pool.approve("bob", "DAI", allowance)

        before = snapshot(ledger)
        with pytest.raises(InsufficientFunds):
            pool.repay("DAI", 10 * WAD + 1, "bob")

        assert compare_ledger_states(before, ledger)["equal"]
        assert ledger.allowance("bob", POOL_SPENDER, "DAI") == allowance


class TestAtomicityExamples:

    def test_rejected_supply_leaves_reserve_state(self):
        ledger, pool = make_pool()
        pending = compute_supply(ledger, "DAI", 2_000 * WAD, "bob")
        state_before = ledger.get_unit_state("DAI_RESERVE")

        assert ledger.execute(pending) == ExecuteResult.REJECTED
        assert ledger.get_unit_state("DAI_RESERVE") == state_before
        assert ledger.get_balance("bob", "aDAI") == 0

    def test_ceiling_breach_mints_nothing(self, isolated_pool):
        ledger = isolated_pool.ledger
        isolated_pool.borrow("DAI", 9 * WAD, "bob")
        before = snapshot(ledger)

        with pytest.raises(DebtCeilingExceeded):
            isolated_pool.borrow("DAI", 2 * WAD, "bob")

        assert compare_ledger_states(before, ledger)["equal"]
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 900

    def test_stale_repay_is_rejected_whole(self):
        """A repay computed before another action on the reserve is refused."""
        ledger, pool = make_pool()
        pool.supply("DAI", 1_000 * WAD, "alice")
        pool.borrow("DAI", 500 * WAD, "bob")
        advance(ledger, 3_600)

        pending, _ = settle_repay(ledger, "DAI", 100 * WAD, "bob", contract_id="late")
        pool.supply("DAI", WAD, "charlie")

        before = snapshot(ledger)
        assert ledger.execute(pending) == ExecuteResult.REJECTED
        assert ledger.last_rejection_reason.startswith("stale state for DAI_RESERVE")
        assert compare_ledger_states(before, ledger)["equal"]
