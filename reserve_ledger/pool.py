"""
pool.py - Entry points for reserve actions on a Ledger.

Pool is a thin stateful wrapper: it builds each action with the pure
compute_* functions, submits it to the ledger, and turns a rejection into an
exception. All accounting state stays in the ledger; the pool only remembers
which borrowers are in isolation mode and a nonce for contract ids.

Example:
    ledger = Ledger("main", initial_time=datetime(2024, 1, 1))
    ledger.register_unit(token("DAI", "Dai Stablecoin"))
    ledger.register_wallet("alice")

    pool = Pool(ledger)
    pool.init_reserve("DAI", InterestRateCurve("0.05", "0.02", "0.30", "0.8"))
    pool.approve("alice", "DAI")
    pool.supply("DAI", 1000 * 10**18, "alice")
"""

from __future__ import annotations
from typing import Any, Dict, Optional

from .core import (
    ExecuteResult, PendingTransaction,
    MAX_AMOUNT, POOL_SPENDER,
    LedgerError,
)
from .interest_rate import InterestRateCurve
from .ledger import Ledger
from .reserve_logic import debt_balance_of, supply_balance_of
from .settlement import (
    RepayResult,
    compute_borrow, compute_supply, compute_withdraw, settle_repay,
)
from .units.reserve import (
    ReserveConfiguration, ReserveData,
    compute_configure_reserve, compute_init_reserve, get_reserve_state,
    liquidity_wallet, load_reserve,
)
from .units.scaled_token import scaled_balance_of


class Pool:
    """Serialized entry point for supply, withdraw, borrow and repay."""

    def __init__(self, ledger: Ledger):
        self.ledger = ledger
        self.user_isolation: Dict[str, str] = {}
        self._nonce = 0

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def _contract_id(self, event_type: str, asset: str, actor: str) -> str:
        self._nonce += 1
        return f"{event_type.lower()}_{asset}_{actor}_{self._nonce}"

    def _execute(self, pending: PendingTransaction) -> None:
        """Apply pending, raising a rejection as the ledger's typed error."""
        result = self.ledger.execute(pending)
        if result == ExecuteResult.REJECTED:
            raise self.ledger.last_rejection_kind(self.ledger.last_rejection_reason)
        if result == ExecuteResult.ALREADY_APPLIED:
            raise LedgerError(f"Transaction {pending.intent_id} was already applied")

    # ========================================================================
    # RESERVE CONFIGURATION
    # ========================================================================

    def init_reserve(self, asset: str, curve: InterestRateCurve, **flags: Any) -> None:
        """
        Create the reserve for a registered token.

        Keyword flags are ReserveConfiguration fields (active, paused, frozen,
        borrowing_enabled, borrowable_in_isolation, debt_ceiling).
        """
        config = ReserveConfiguration(curve=curve, **flags)
        pending = compute_init_reserve(self.ledger, asset, config)
        wallet = liquidity_wallet(asset)
        if not self.ledger.is_registered(wallet):
            self.ledger.register_wallet(wallet)
        self._execute(pending)

    def configure_reserve(self, asset: str, **changes: Any) -> None:
        cid = self._contract_id("CONFIGURE", asset, "configurator")
        self._execute(compute_configure_reserve(self.ledger, asset, cid, **changes))

    def set_user_isolation(self, user: str, collateral: Optional[str]) -> None:
        """
        Mark user as borrowing against isolated collateral, or clear with None.

        Raises:
            ValueError: If the collateral reserve has no debt ceiling.
        """
        if collateral is None:
            self.user_isolation.pop(user, None)
            return
        _, config, _ = load_reserve(self.ledger, collateral)
        if config.debt_ceiling == 0:
            raise ValueError(f"{collateral} has no debt ceiling and is not an isolated asset")
        self.user_isolation[user] = collateral

    def approve(self, owner: str, asset: str, amount: int = MAX_AMOUNT) -> None:
        """Allow the pool to pull `amount` of asset from owner (default unlimited)."""
        self.ledger.approve(owner, POOL_SPENDER, asset, amount)

    # ========================================================================
    # ACTIONS
    # ========================================================================

    def supply(self, asset: str, amount: int, payer: str, on_behalf_of: Optional[str] = None) -> int:
        """Deposit underlying. Returns the amount supplied."""
        cid = self._contract_id("SUPPLY", asset, payer)
        self._execute(compute_supply(self.ledger, asset, amount, payer, on_behalf_of, cid))
        return amount

    def withdraw(self, asset: str, amount: int, owner: str, to: Optional[str] = None) -> int:
        """Withdraw underlying (MAX_AMOUNT for everything). Returns the amount paid out."""
        cid = self._contract_id("WITHDRAW", asset, owner)
        pending = compute_withdraw(self.ledger, asset, amount, owner, to, cid)
        self._execute(pending)
        return next(m.quantity for m in pending.moves if m.unit_symbol == asset)

    def borrow(self, asset: str, amount: int, borrower: str) -> int:
        """Borrow underlying at the variable rate. Returns the amount borrowed."""
        cid = self._contract_id("BORROW", asset, borrower)
        pending = compute_borrow(
            self.ledger, asset, amount, borrower,
            self.user_isolation.get(borrower), cid,
        )
        self._execute(pending)
        return amount

    def repay(
        self,
        asset: str,
        amount: int,
        payer: str,
        on_behalf_of: Optional[str] = None,
    ) -> RepayResult:
        """
        Repay variable debt (MAX_AMOUNT repays everything of the payer's own debt).

        Raises:
            InsufficientFunds: payer's balance or allowance does not cover the repay
            WalletNotRegistered: payer is not a registered wallet
        """
        on_behalf_of = on_behalf_of or payer
        cid = self._contract_id("REPAY", asset, on_behalf_of)
        pending, result = settle_repay(
            self.ledger, asset, amount, payer, on_behalf_of,
            self.user_isolation.get(on_behalf_of), cid,
        )
        self._execute(pending)
        return result

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_reserve_state(self, asset: str) -> ReserveData:
        return get_reserve_state(self.ledger, asset)

    def supply_balance_of(self, asset: str, user: str) -> int:
        return supply_balance_of(self.ledger, asset, user)

    def debt_balance_of(self, asset: str, user: str) -> int:
        return debt_balance_of(self.ledger, asset, user)

    def scaled_debt_of(self, asset: str, user: str) -> int:
        terms, _, _ = load_reserve(self.ledger, asset)
        return scaled_balance_of(self.ledger, terms.debt_token, user)

    def scaled_supply_of(self, asset: str, user: str) -> int:
        terms, _, _ = load_reserve(self.ledger, asset)
        return scaled_balance_of(self.ledger, terms.supply_token, user)
