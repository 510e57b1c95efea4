"""
test_pool.py - Unit tests for the Pool entry points

Tests:
- Reserve initialization and configuration through the pool
- Actions executed against the ledger, with errors surfaced as exceptions
- Allowance and balance shortfalls
- Isolation-mode bookkeeping
- Balance queries
"""

import pytest

from reserve_ledger import (
    RAY, WAD, MAX_AMOUNT, POOL_SPENDER, PendingTransaction,
    settle_repay,
    InsufficientFunds, LedgerError, ReserveFrozen, ReservePaused,
    ReserveAlreadyInitialized, UnitNotRegistered, WalletNotRegistered, InvalidAmount,
)
from tests.conftest import advance, standard_curve


class TestReserveSetup:

    def test_init_registers_liquidity_wallet(self, pool):
        assert pool.ledger.is_registered("aDAI")
        data = pool.get_reserve_state("DAI")
        assert data.liquidity_index == RAY
        assert data.borrow_index == RAY

    def test_init_twice(self, pool):
        with pytest.raises(ReserveAlreadyInitialized):
            pool.init_reserve("DAI", standard_curve())

    def test_init_unknown_token(self, pool):
        with pytest.raises(UnitNotRegistered):
            pool.init_reserve("WETH", standard_curve())

    def test_configure_then_revert(self, pool):
        pool.configure_reserve("DAI", frozen=True)
        with pytest.raises(ReserveFrozen):
            pool.supply("DAI", WAD, "alice")
        pool.configure_reserve("DAI", frozen=False)
        assert pool.supply("DAI", WAD, "alice") == WAD

    def test_set_isolation_requires_ceiling(self, pool):
        with pytest.raises(ValueError):
            pool.set_user_isolation("bob", "DAI")

    def test_clear_isolation(self, isolated_pool):
        isolated_pool.set_user_isolation("bob", None)
        assert "bob" not in isolated_pool.user_isolation


class TestActions:

    def test_supply_moves_funds(self, pool):
        pool.supply("DAI", 100 * WAD, "alice")
        assert pool.ledger.get_balance("aDAI", "DAI") == 100 * WAD
        assert pool.scaled_supply_of("DAI", "alice") == 100 * WAD
        assert pool.supply_balance_of("DAI", "alice") == 100 * WAD

    def test_supply_without_allowance(self, pool):
        pool.approve("alice", "DAI", 10)
        with pytest.raises(InsufficientFunds, match="allowance"):
            pool.supply("DAI", 11, "alice")
        assert pool.ledger.allowance("alice", POOL_SPENDER, "DAI") == 10

    def test_supply_more_than_wallet(self, pool):
        with pytest.raises(InsufficientFunds):
            pool.supply("DAI", 1_001 * WAD, "bob")
        assert pool.get_reserve_state("DAI").total_scaled_supply == 0

    def test_borrow_more_than_cash(self, pool):
        pool.supply("DAI", 100, "alice")
        with pytest.raises(InsufficientFunds):
            pool.borrow("DAI", 101, "bob")
        assert pool.scaled_debt_of("DAI", "bob") == 0

    def test_withdraw_returns_paid_amount(self, borrowed_pool):
        advance(borrowed_pool.ledger, 86_400)
        expected = borrowed_pool.supply_balance_of("DAI", "alice")
        paid = borrowed_pool.withdraw("DAI", 100 * WAD, "alice")
        assert paid == 100 * WAD
        assert borrowed_pool.supply_balance_of("DAI", "alice") <= expected - 100 * WAD

    def test_withdraw_all_blocked_by_cash(self, borrowed_pool):
        with pytest.raises(InsufficientFunds):
            borrowed_pool.withdraw("DAI", MAX_AMOUNT, "alice")

    def test_repay_returns_result(self, borrowed_pool):
        result = borrowed_pool.repay("DAI", 200 * WAD, "bob")
        assert result.actual_amount_repaid == 200 * WAD
        assert borrowed_pool.debt_balance_of("DAI", "bob") == 300 * WAD

    def test_repay_allowed_when_frozen(self, borrowed_pool):
        borrowed_pool.configure_reserve("DAI", frozen=True)
        borrowed_pool.repay("DAI", MAX_AMOUNT, "bob")
        assert borrowed_pool.scaled_debt_of("DAI", "bob") == 0

    def test_repay_blocked_when_paused(self, borrowed_pool):
        borrowed_pool.configure_reserve("DAI", paused=True)
        with pytest.raises(ReservePaused):
            borrowed_pool.repay("DAI", MAX_AMOUNT, "bob")

    def test_repay_payer_short_of_funds(self, borrowed_pool):
        ledger = borrowed_pool.ledger
        ledger.set_balance("bob", "DAI", 10)
        with pytest.raises(InsufficientFunds):
            borrowed_pool.repay("DAI", MAX_AMOUNT, "bob")
        assert borrowed_pool.scaled_debt_of("DAI", "bob") == 500 * WAD

    def test_repay_from_unregistered_payer(self, borrowed_pool):
        """An unknown payer is reported as such, not as a funds shortfall."""
        with pytest.raises(WalletNotRegistered, match="mallory"):
            borrowed_pool.repay("DAI", 10 * WAD, "mallory", on_behalf_of="bob")
        assert borrowed_pool.debt_balance_of("DAI", "bob") == 500 * WAD

    def test_stale_rejection_is_not_a_funds_error(self, borrowed_pool):
        ledger = borrowed_pool.ledger
        advance(ledger, 3_600)
        pending, _ = settle_repay(ledger, "DAI", WAD, "bob", contract_id="late")
        borrowed_pool.supply("DAI", WAD, "charlie")
        with pytest.raises(LedgerError, match="stale state") as excinfo:
            borrowed_pool._execute(pending)
        assert not isinstance(excinfo.value, InsufficientFunds)

    def test_borrow_sentinel_rejected(self, borrowed_pool):
        with pytest.raises(InvalidAmount):
            borrowed_pool.borrow("DAI", MAX_AMOUNT, "charlie")

    def test_replayed_pending_surfaces_ledger_error(self, borrowed_pool):
        ledger = borrowed_pool.ledger
        last = ledger.transaction_log[-1]
        pending = PendingTransaction(
            moves=last.moves, state_changes=last.state_changes,
            origin=last.origin, timestamp=last.timestamp,
        )
        with pytest.raises(LedgerError, match="already applied"):
            borrowed_pool._execute(pending)


class TestIsolation:

    def test_borrow_and_repay_track_ceiling(self, isolated_pool):
        isolated_pool.borrow("DAI", 5 * WAD, "bob")
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 500

        result = isolated_pool.repay("DAI", 2 * WAD, "bob")
        assert result.new_isolation_debt == 300
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 300

    def test_non_isolated_borrower_leaves_counter(self, isolated_pool):
        isolated_pool.borrow("DAI", 5 * WAD, "charlie")
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 0
        assert isolated_pool.repay("DAI", MAX_AMOUNT, "charlie").new_isolation_debt is None

    def test_clearing_ceiling_resets_counter(self, isolated_pool):
        isolated_pool.borrow("DAI", 5 * WAD, "bob")
        isolated_pool.configure_reserve("ISO", debt_ceiling=0)
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 0

        isolated_pool.repay("DAI", MAX_AMOUNT, "bob")
        isolated_pool.configure_reserve("ISO", debt_ceiling=1_000)
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 0

        isolated_pool.borrow("DAI", 10 * WAD, "bob")
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 1_000

    def test_raising_ceiling_keeps_counter(self, isolated_pool):
        isolated_pool.borrow("DAI", 5 * WAD, "bob")
        isolated_pool.configure_reserve("ISO", debt_ceiling=2_000)
        assert isolated_pool.get_reserve_state("ISO").isolation_mode_total_debt == 500
