"""
ledger.py - Stateful Double-Entry Ledger for lending reserves

The Ledger class is the only object in the package that mutates state.
Pure compute_* functions read it through the LedgerView protocol and hand back
PendingTransactions; the ledger validates and applies them atomically.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes transactions atomically (all moves and state changes, or nothing)
    - Maintains integer wallet balances, unit definitions and spender allowances
    - Rejects transactions built against stale unit state (optimistic concurrency)
    - Tracks logical time and can rebuild itself from its log (replay)
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple, Type, Any
import copy

from .core import (
    # Types
    Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState, BalanceMap,
    # Constants
    SYSTEM_WALLET, MAX_AMOUNT,
    # Exceptions
    LedgerError, InsufficientFunds, TransferRuleViolation, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    _freeze_state, to_timestamp,
)


class Ledger:
    """
    Double-entry ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Design Principles:
        - Always validates: registration, transfer rules, balance limits,
          allowances and state freshness are checked before anything is applied.
        - Always logs: every applied transaction is recorded, so replay()
          rebuilds identical state.

    Thread Safety:
        Not thread-safe. Callers serialize access (one writer at a time).

    Example:
        ledger = Ledger("main")
        ledger.register_unit(token("DAI", "Dai Stablecoin"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        tx = build_transaction(ledger, [
            Move(100, "DAI", "alice", "bob", "payment_001")
        ])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print every registration and transaction (default: True)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        # (sequence at approval time, owner, spender, unit, amount)
        self.approval_log: List[Tuple[int, str, str, str, int]] = []
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.last_rejection_reason: str = ""
        # exception type a caller should raise for the last rejection
        self.last_rejection_kind: Type[LedgerError] = LedgerError
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # unit -> {wallet -> quantity}, zero balances excluded
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        unit_obj = self.units[unit_symbol]
        return copy.deepcopy(unit_obj.state) if unit_obj.state else {}

    def get_positions(self, unit_symbol: str) -> Positions:
        """All non-zero positions for a unit, system wallet included."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> int:
        """
        Sum of a unit's balances across all wallets, system wallet included.

        Every move debits one wallet and credits another, so this is always
        zero for units that only enter through moves.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(self.balances[w].get(unit_symbol, 0) for w in sorted(self.registered_wallets))

    def allowance(self, owner: str, spender: str, unit_symbol: str) -> int:
        """Remaining amount spender may move out of owner's wallet."""
        return self.allowances.get((owner, spender, unit_symbol), 0)

    def verify_double_entry(
        self,
        expected_supplies: Optional[Dict[str, int]] = None,
    ) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        Args:
            expected_supplies: Optional dict mapping unit symbols to expected totals.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Current total supply for each unit
            - 'discrepancies': List[Dict] - unit, expected, actual, difference

        Example:
            result = ledger.verify_double_entry()
            assert result['valid'], f"Conservation violated: {result['discrepancies']}"
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply

            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                if current_supply != expected:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': current_supply,
                        'difference': current_supply - expected,
                    })

        if expected_supplies:
            for unit_symbol, expected in expected_supplies.items():
                if unit_symbol not in supplies:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': 0,
                        'difference': -expected,
                        'error': 'unit not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            rule_str = f", rule={unit.transfer_rule.__name__}" if unit.transfer_rule else ""
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]{rule_str}")

    def approve(self, owner: str, spender: str, unit_symbol: str, amount: int) -> None:
        """
        Set the amount spender may pull from owner's wallet via spender moves.

        MAX_AMOUNT is an unlimited approval and is never decremented.

        Raises:
            WalletNotRegistered: If owner is not registered
            UnitNotRegistered: If unit is not registered
            ValueError: If amount is negative
        """
        if owner not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {owner} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        if amount < 0:
            raise ValueError(f"Allowance cannot be negative, got {amount}")
        self.allowances[(owner, spender, unit_symbol)] = amount
        self.approval_log.append((self._next_sequence, owner, spender, unit_symbol, amount))
        if self.verbose:
            shown = "unlimited" if amount == MAX_AMOUNT else str(amount)
            print(f"Approved: {owner} -> {spender} {shown} {unit_symbol}")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: bypasses double-entry accounting and is not logged, so
        replay() will not reproduce it. Only available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        quantity = int(quantity)
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{unix_seconds}"""
        return f"exec:{self.name}:{sequence:012d}:{to_timestamp(self._current_time)}"

    def _reject(
        self,
        reason: str,
        newly_registered_units: List[str],
        kind: Type[LedgerError] = LedgerError,
    ) -> ExecuteResult:
        for sym in newly_registered_units:
            del self.units[sym]
        self.last_rejection_reason = reason
        self.last_rejection_kind = kind
        if self.verbose:
            print(f"✗ REJECTED: {reason}")
        return ExecuteResult.REJECTED

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves and state changes succeed together or nothing changes.
        Execution is idempotent: a pending transaction with the same intent_id
        is not applied twice.

        Validated against:
        - Timestamp (not from the future)
        - Unit and wallet registration
        - Transfer rules
        - Balance limits (system wallet exempt)
        - Spender allowances
        - Freshness of every state change's old_state

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if the intent was already executed
            ExecuteResult.REJECTED if validation failed (see last_rejection_reason
            and last_rejection_kind)
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        # Units are registered before validation so their transfer rules apply;
        # they are removed again if the transaction is rejected.
        newly_registered_units: List[str] = []
        for unit in pending.units_to_create:
            if unit.symbol in self.units:
                return self._reject(f"unit already registered: {unit.symbol}", newly_registered_units)
            self.register_unit(unit)
            newly_registered_units.append(unit.symbol)

        kind, reason = self._validate_pending(pending)
        if kind is not None:
            return self._reject(reason, newly_registered_units, kind)

        sequence = self._next_sequence
        self._next_sequence += 1
        exec_id = self._generate_exec_id(sequence)

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=exec_id,
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            units_to_create=pending.units_to_create,
        )

        self._execute_moves(tx.moves)

        for sc in tx.state_changes:
            old_unit = self.units[sc.unit]
            new_state = copy.deepcopy(sc.new_state if isinstance(sc.new_state, dict) else {})
            self.units[sc.unit] = replace(old_unit, _frozen_state=_freeze_state(new_state))

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)
        self.last_rejection_reason = ""
        self.last_rejection_kind = LedgerError

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print the Transaction box with a result line in place of its footer."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def _validate_pending(
        self, pending: PendingTransaction
    ) -> Tuple[Optional[Type[LedgerError]], str]:
        """
        Validate a pending transaction against all constraints.

        Returns:
            Tuple of (kind, reason). kind is None on success, otherwise the
            LedgerError subclass naming the failed check:
            - InsufficientFunds: balance below minimum or allowance too small
            - WalletNotRegistered / UnitNotRegistered: unknown wallet or unit
            - TransferRuleViolation: a unit refused the move
            - LedgerError: future timestamp, balance above maximum, stale state
        """
        if pending.timestamp > self._current_time:
            return LedgerError, "future timestamp"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return UnitNotRegistered, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return WalletNotRegistered, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return WalletNotRegistered, f"wallet not registered: {move.dest}"

            unit = self.units[move.unit_symbol]
            if unit.transfer_rule:
                try:
                    unit.transfer_rule(self, move)
                except TransferRuleViolation as e:
                    return TransferRuleViolation, str(e)

        net: Dict[Tuple[str, str], int] = defaultdict(int)
        pulled: Dict[Tuple[str, str, str], int] = defaultdict(int)
        for move in pending.moves:
            net[(move.source, move.unit_symbol)] -= move.quantity
            net[(move.dest, move.unit_symbol)] += move.quantity
            if move.spender is not None and move.spender != move.source:
                pulled[(move.source, move.spender, move.unit_symbol)] += move.quantity

        # SYSTEM_WALLET is exempt: it is the mint and burn counterparty.
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[unit_sym]
            proposed = self.balances[wallet][unit_sym] + delta
            if proposed < unit.min_balance:
                return InsufficientFunds, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
            if unit.max_balance is not None and proposed > unit.max_balance:
                return LedgerError, f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"

        for (owner, spender, unit_sym), total in pulled.items():
            allowed = self.allowance(owner, spender, unit_sym)
            if allowed != MAX_AMOUNT and allowed < total:
                return InsufficientFunds, f"allowance {owner}->{spender} {unit_sym}: {allowed} < {total}"

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return UnitNotRegistered, f"unit not registered: {sc.unit}"
            if sc.old_state is None:
                continue
            current_state = self.units[sc.unit].state
            old_state = sc.old_state if isinstance(sc.old_state, dict) else {}
            for key in set(old_state) | set(current_state):
                if old_state.get(key) != current_state.get(key):
                    return LedgerError, (
                        f"stale state for {sc.unit}.{key}: "
                        f"expected {old_state.get(key)!r}, found {current_state.get(key)!r}"
                    )

        return None, ""

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        if quantity != 0:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply moves to balances, the position index and allowances."""
        for move in moves:
            new_src_balance = self.balances[move.source][move.unit_symbol] - move.quantity
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)

            new_dst_balance = self.balances[move.dest][move.unit_symbol] + move.quantity
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

            if move.spender is not None and move.spender != move.source:
                key = (move.source, move.spender, move.unit_symbol)
                if self.allowances.get(key, 0) != MAX_AMOUNT:
                    self.allowances[key] = self.allowances.get(key, 0) - move.quantity

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a fully independent deep copy of this ledger.

        Units, balances, allowances, the transaction log, the current time and
        configuration are all copied.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned.last_rejection_reason = self.last_rejection_reason
        cloned.last_rejection_kind = self.last_rejection_kind

        # Units are frozen; only their state needs a deep copy.
        cloned.units = {
            symbol: replace(unit, _frozen_state=_freeze_state(copy.deepcopy(unit.state)))
            for symbol, unit in self.units.items()
        }

        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned.approval_log = list(self.approval_log)
        cloned.allowances = dict(self.allowances)
        cloned._next_sequence = self._next_sequence

        cloned.balances = {}
        for wallet, bals in self.balances.items():
            cloned.balances[wallet] = defaultdict(int, bals)

        cloned._positions_by_unit = defaultdict(dict)
        for unit_symbol, positions in self._positions_by_unit.items():
            cloned._positions_by_unit[unit_symbol] = dict(positions)

        return cloned

    def replay(self) -> Ledger:
        """
        Create a new ledger by re-executing the transaction log from the start.

        Units created by logged transactions are recreated by those
        transactions. Pre-registered units start from the state they had
        before their first logged state change. Approvals are re-applied at
        the point in the sequence where they were originally made.

        Balances set via set_balance() are NOT replayed.

        Raises:
            LedgerError: If any logged transaction is rejected during replay
        """
        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            initial_time=datetime(1970, 1, 1),
            verbose=self.verbose,
            test_mode=self._test_mode
        )

        units_created_in_log = set()
        initial_states: Dict[str, UnitState] = {}
        for tx in self.transaction_log:
            for unit in tx.units_to_create:
                units_created_in_log.add(unit.symbol)
            for sc in tx.state_changes:
                if sc.unit not in initial_states and sc.old_state is not None:
                    initial_states[sc.unit] = sc.old_state

        for symbol, unit in self.units.items():
            if symbol in units_created_in_log:
                continue
            state = initial_states.get(symbol, unit.state)
            new_ledger.units[symbol] = replace(
                unit, _frozen_state=_freeze_state(copy.deepcopy(state))
            )

        for wallet in self.registered_wallets:
            if wallet != SYSTEM_WALLET:
                new_ledger.register_wallet(wallet)

        approvals = list(self.approval_log)
        for tx in self.transaction_log:
            while approvals and approvals[0][0] <= tx.sequence_number:
                _, owner, spender, unit_symbol, amount = approvals.pop(0)
                new_ledger.allowances[(owner, spender, unit_symbol)] = amount
                new_ledger.approval_log.append(
                    (new_ledger._next_sequence, owner, spender, unit_symbol, amount)
                )

            if tx.timestamp > new_ledger._current_time:
                new_ledger.advance_time(tx.timestamp)

            pending = PendingTransaction(
                moves=tx.moves,
                state_changes=tx.state_changes,
                origin=tx.origin,
                timestamp=tx.timestamp,
                units_to_create=tx.units_to_create,
            )
            result = new_ledger.execute(pending)
            if result != ExecuteResult.APPLIED:
                raise LedgerError(
                    f"Replay failed at tx {tx.exec_id}: {new_ledger.last_rejection_reason}"
                )

        for _, owner, spender, unit_symbol, amount in approvals:
            new_ledger.allowances[(owner, spender, unit_symbol)] = amount
            new_ledger.approval_log.append(
                (new_ledger._next_sequence, owner, spender, unit_symbol, amount)
            )

        if self._current_time > new_ledger._current_time:
            new_ledger.advance_time(self._current_time)

        return new_ledger
