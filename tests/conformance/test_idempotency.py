"""
Idempotency Conformance Tests

INVARIANT: Executing the same intent twice has the effect of executing it once.

    ∀ pending P:
        execute(P) = APPLIED ⟹ execute(P) = ALREADY_APPLIED, state unchanged

and refreshing a reserve twice at the same timestamp is the identity:

    refresh(refresh(S, t), t) = refresh(S, t)
"""

from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from reserve_ledger import (
    RAY, WAD, MAX_AMOUNT,
    ExecuteResult, ReserveState,
    compute_supply, compute_borrow, settle_repay, load_reserve, refresh,
)
from tests.conftest import advance, compare_ledger_states, make_pool


reserve_states = st.builds(
    ReserveState,
    liquidity_index=st.integers(min_value=RAY, max_value=10 * RAY),
    borrow_index=st.integers(min_value=RAY, max_value=10 * RAY),
    current_liquidity_rate=st.integers(min_value=0, max_value=RAY),
    current_borrow_rate=st.integers(min_value=0, max_value=RAY),
    last_update_timestamp=st.integers(min_value=0, max_value=2 * 10 ** 9),
    total_scaled_supply=st.integers(min_value=0, max_value=10 ** 30),
    total_scaled_debt=st.integers(min_value=0, max_value=10 ** 30),
    isolation_mode_total_debt=st.integers(min_value=0, max_value=10 ** 6),
)


class TestRefreshIdempotency:

    @given(reserve_states, st.integers(min_value=0, max_value=10 ** 8))
    @settings(max_examples=200)
    def test_double_refresh_is_single_refresh(self, state, elapsed):
        now = state.last_update_timestamp + elapsed
        once = refresh(state, now)
        assert refresh(once, now) == once

    @given(reserve_states)
    @settings(max_examples=100)
    def test_zero_elapsed_is_identity(self, state):
        assert refresh(state, state.last_update_timestamp) == state


class TestExecuteIdempotency:

    @given(st.integers(min_value=1, max_value=1_000 * WAD))
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_duplicate_supply_applies_once(self, amount):
        ledger, _ = make_pool()
        pending = compute_supply(ledger, "DAI", amount, "alice", contract_id="dup")

        assert ledger.execute(pending) == ExecuteResult.APPLIED
        after_first = ledger.clone()
        assert ledger.execute(pending) == ExecuteResult.ALREADY_APPLIED
        assert compare_ledger_states(after_first, ledger)["equal"]

    def test_duplicate_repay_applies_once(self):
        ledger, pool = make_pool()
        pool.supply("DAI", 1_000 * WAD, "alice")
        pool.borrow("DAI", 500 * WAD, "bob")
        advance(ledger, 86_400)

        pending, result = settle_repay(ledger, "DAI", MAX_AMOUNT, "bob", contract_id="r")
        assert ledger.execute(pending) == ExecuteResult.APPLIED
        bob_cash = ledger.get_balance("bob", "DAI")

        assert ledger.execute(pending) == ExecuteResult.ALREADY_APPLIED
        assert ledger.get_balance("bob", "DAI") == bob_cash
        assert result.actual_amount_repaid > 500 * WAD

    def test_repeat_action_at_same_time_accrues_nothing(self):
        """Two actions in the same second see the same indices."""
        ledger, pool = make_pool()
        pool.supply("DAI", 1_000 * WAD, "alice")
        pool.borrow("DAI", 500 * WAD, "bob")
        advance(ledger, 86_400)

        pool.borrow("DAI", WAD, "charlie")
        _, _, first = load_reserve(ledger, "DAI")
        pool.borrow("DAI", WAD, "charlie")
        _, _, second = load_reserve(ledger, "DAI")

        assert second.borrow_index == first.borrow_index
        assert second.liquidity_index == first.liquidity_index

    def test_distinct_contract_ids_both_apply(self):
        ledger, _ = make_pool()
        first = compute_borrow(ledger, "DAI", 1, "bob", contract_id="a")
        assert first.intent_id != compute_borrow(ledger, "DAI", 1, "bob", contract_id="b").intent_id
