"""
settlement.py - Supply, withdraw, borrow and repay against a reserve.

Every action follows the same three steps and produces exactly one
PendingTransaction, so the ledger applies it entirely or not at all:

    1. refresh()                  bring indices current as of view.current_time
    2. settle                     underlying moves, scaled mints/burns, isolation debt
    3. update_interest_rates()    rates for the post-action utilization

The reserve's old_state is recorded in the transaction. If another action
touches the reserve first, the ledger rejects this one as stale rather than
applying deltas computed against outdated indices.

Rounding of scaled amounts always favours the reserve:
    supply    mints  floor(amount / liquidity_index)
    withdraw  burns  ceil(amount / liquidity_index), everything on a full withdraw
    borrow    mints  ceil(amount / borrow_index)
    repay     burns  floor(amount / borrow_index), everything on a full repay
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .core import (
    LedgerView, Move, PendingTransaction, UnitStateChange,
    TransactionOrigin, OriginType,
    MAX_AMOUNT, POOL_SPENDER,
    InvalidAmount,
    build_transaction, to_timestamp,
)
from .isolation_mode import isolation_debt_after_borrow, isolation_debt_after_repay
from .reserve_logic import refresh, update_interest_rates
from .units.reserve import (
    ReserveConfiguration, ReserveState, ReserveTerms,
    load_reserve, reserve_symbol, to_state_dict,
)
from .units.scaled_token import burn_move, mint_move, scaled_balance_of
from .validation import validate_borrow, validate_repay, validate_supply, validate_withdraw
from .wad_ray_math import ray_div_ceil, ray_div_floor, ray_mul


@dataclass(frozen=True, slots=True)
class RepayResult:
    """
    Outcome of a repay.

    new_isolation_debt is the collateral reserve's isolation_mode_total_debt
    after the repay, or None when the borrower is not isolated.
    """
    actual_amount_repaid: int
    new_isolation_debt: Optional[int] = None


# ============================================================================
# SHARED HELPERS
# ============================================================================

def _origin(actor: str, asset: str, event_type: str) -> TransactionOrigin:
    return TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=actor,
        unit_symbol=reserve_symbol(asset),
        event_type=event_type,
    )


def _default_contract_id(event_type: str, asset: str, actor: str, now: int) -> str:
    return f"{event_type.lower()}_{asset}_{actor}_{now}"


def _available_liquidity(view: LedgerView, terms: ReserveTerms) -> int:
    return view.get_balance(terms.liquidity_wallet, terms.asset)


def _with_new_rates(
    config: ReserveConfiguration,
    state: ReserveState,
    available_liquidity: int,
) -> ReserveState:
    """Recompute rates from the state's scaled debt and the post-action cash."""
    total_debt = ray_mul(state.total_scaled_debt, state.borrow_index)
    return update_interest_rates(
        state, config.curve, total_debt, available_liquidity + total_debt
    )


def _isolation_collateral(
    view: LedgerView, collateral: Optional[str]
) -> Optional[Tuple[ReserveTerms, ReserveConfiguration, ReserveState]]:
    """Load the collateral reserve if it is an isolated asset (non-zero ceiling)."""
    if collateral is None:
        return None
    loaded = load_reserve(view, collateral)
    if loaded[1].debt_ceiling == 0:
        return None
    return loaded


def _state_changes(
    view: LedgerView,
    updates: Dict[str, Tuple[ReserveTerms, ReserveConfiguration, ReserveState]],
) -> List[UnitStateChange]:
    return [
        UnitStateChange(
            unit=reserve_symbol(asset),
            old_state=view.get_unit_state(reserve_symbol(asset)),
            new_state=to_state_dict(terms, config, state),
        )
        for asset, (terms, config, state) in sorted(updates.items())
    ]


# ============================================================================
# SUPPLY
# ============================================================================

def compute_supply(
    view: LedgerView,
    asset: str,
    amount: int,
    payer: str,
    on_behalf_of: Optional[str] = None,
    contract_id: Optional[str] = None,
) -> PendingTransaction:
    """
    Deposit underlying into the reserve and mint scaled supply.

    The underlying is pulled from payer under its allowance to POOL_SPENDER;
    the scaled supply is credited to on_behalf_of (default: payer).

    Raises:
        InvalidAmount: amount is zero, or too small to mint one scaled unit
        ReserveInactive, ReservePaused, ReserveFrozen: reserve gates
    """
    on_behalf_of = on_behalf_of or payer
    terms, config, state = load_reserve(view, asset)
    validate_supply(config, amount)

    now = to_timestamp(view.current_time)
    state = refresh(state, now)

    scaled = ray_div_floor(amount, state.liquidity_index)
    if scaled == 0:
        raise InvalidAmount(f"Supply of {amount} mints no scaled balance")

    cid = contract_id or _default_contract_id("SUPPLY", asset, on_behalf_of, now)
    moves = [
        Move(amount, asset, payer, terms.liquidity_wallet, cid, spender=POOL_SPENDER),
        mint_move(terms.supply_token, on_behalf_of, scaled, cid),
    ]

    state = replace(state, total_scaled_supply=state.total_scaled_supply + scaled)
    state = _with_new_rates(config, state, _available_liquidity(view, terms) + amount)

    return build_transaction(
        view, moves, _state_changes(view, {asset: (terms, config, state)}),
        origin=_origin(payer, asset, "SUPPLY"),
    )


# ============================================================================
# WITHDRAW
# ============================================================================

def compute_withdraw(
    view: LedgerView,
    asset: str,
    amount: int,
    owner: str,
    to: Optional[str] = None,
    contract_id: Optional[str] = None,
) -> PendingTransaction:
    """
    Burn scaled supply and pay out underlying from the reserve.

    MAX_AMOUNT withdraws the owner's whole balance. A withdraw larger than
    the reserve's available cash is rejected by the ledger.

    Raises:
        InvalidAmount: amount is zero
        ReserveInactive, ReservePaused: reserve gates
        NotEnoughAvailableUserBalance: amount exceeds the owner's balance
    """
    to = to or owner
    terms, config, state = load_reserve(view, asset)

    now = to_timestamp(view.current_time)
    refreshed = refresh(state, now)
    scaled_balance = scaled_balance_of(view, terms.supply_token, owner)
    user_balance = ray_mul(scaled_balance, refreshed.liquidity_index)

    resolved = user_balance if amount == MAX_AMOUNT else amount
    if amount == MAX_AMOUNT and resolved == 0:
        raise InvalidAmount(f"{owner} has nothing to withdraw")
    validate_withdraw(config, resolved, user_balance)

    if resolved == user_balance:
        burned = scaled_balance
    else:
        burned = min(ray_div_ceil(resolved, refreshed.liquidity_index), scaled_balance)

    cid = contract_id or _default_contract_id("WITHDRAW", asset, owner, now)
    moves = [
        burn_move(terms.supply_token, owner, burned, cid),
        Move(resolved, asset, terms.liquidity_wallet, to, cid),
    ]

    state = replace(refreshed, total_scaled_supply=refreshed.total_scaled_supply - burned)
    # A cash shortfall is rejected by the ledger; rates only need a valid input here.
    remaining = max(_available_liquidity(view, terms) - resolved, 0)
    state = _with_new_rates(config, state, remaining)

    return build_transaction(
        view, moves, _state_changes(view, {asset: (terms, config, state)}),
        origin=_origin(owner, asset, "WITHDRAW"),
    )


# ============================================================================
# BORROW
# ============================================================================

def compute_borrow(
    view: LedgerView,
    asset: str,
    amount: int,
    borrower: str,
    isolation_collateral: Optional[str] = None,
    contract_id: Optional[str] = None,
) -> PendingTransaction:
    """
    Mint scaled variable debt and pay out underlying to the borrower.

    When isolation_collateral names an isolated asset (non-zero debt
    ceiling), the borrowed amount is added to that reserve's
    isolation_mode_total_debt in ceiling units.

    Raises:
        InvalidAmount: amount is zero
        ReserveInactive, ReservePaused, ReserveFrozen: reserve gates
        BorrowingNotEnabled: borrowing disabled on the reserve
        AssetNotBorrowableInIsolation: isolated borrower, asset not allowed
        DebtCeilingExceeded: isolated total would pass the collateral's ceiling
    """
    terms, config, state = load_reserve(view, asset)
    collateral = _isolation_collateral(view, isolation_collateral)
    validate_borrow(config, amount, isolated=collateral is not None)

    now = to_timestamp(view.current_time)
    state = refresh(state, now)

    scaled = ray_div_ceil(amount, state.borrow_index)
    cid = contract_id or _default_contract_id("BORROW", asset, borrower, now)
    moves = [
        mint_move(terms.debt_token, borrower, scaled, cid),
        Move(amount, asset, terms.liquidity_wallet, borrower, cid),
    ]

    state = replace(state, total_scaled_debt=state.total_scaled_debt + scaled)
    updates = {asset: (terms, config, state)}

    if collateral is not None:
        c_terms, c_config, c_state = updates.get(isolation_collateral, collateral)
        new_total = isolation_debt_after_borrow(
            c_state.isolation_mode_total_debt, amount, terms.decimals, c_config.debt_ceiling
        )
        updates[isolation_collateral] = (
            c_terms, c_config, replace(c_state, isolation_mode_total_debt=new_total)
        )

    # A cash shortfall is rejected by the ledger; rates only need a valid input here.
    remaining = max(_available_liquidity(view, terms) - amount, 0)
    d_terms, d_config, d_state = updates[asset]
    updates[asset] = (d_terms, d_config, _with_new_rates(d_config, d_state, remaining))

    return build_transaction(
        view, moves, _state_changes(view, updates),
        origin=_origin(borrower, asset, "BORROW"),
    )


# ============================================================================
# REPAY
# ============================================================================

def settle_repay(
    view: LedgerView,
    asset: str,
    amount: int,
    payer: str,
    on_behalf_of: Optional[str] = None,
    isolation_collateral: Optional[str] = None,
    contract_id: Optional[str] = None,
) -> Tuple[PendingTransaction, RepayResult]:
    """
    Build a repay and report what it will do once applied.

    Steps:
        1. refresh the reserve
        2. outstanding = ray_mul(scaled_debt, borrow_index)
        3. actual = min(amount, outstanding); MAX_AMOUNT repays everything
        4. pull `actual` underlying from payer into the liquidity wallet
        5. burn scaled debt: the whole balance when actual == outstanding,
           otherwise floor(actual / borrow_index), which always leaves at
           least one scaled unit behind
        6. supply-side positions are untouched
        7. isolated borrower: reduce the collateral's isolation debt by the
           truncated amount, floored at zero
        8. recompute rates

    Raises:
        InvalidAmount: amount is zero, or a partial repay too small to burn
                       one scaled unit
        NoExplicitAmountToRepayOnBehalf: MAX_AMOUNT with payer != on_behalf_of
        ReserveInactive, ReservePaused: reserve gates (frozen is allowed)
        NoDebtOfSelectedType: on_behalf_of has no variable debt

    Example:
        pending, result = settle_repay(view, "DAI", MAX_AMOUNT, "alice")
        ledger.execute(pending)
        result.actual_amount_repaid   # principal plus accrued interest
    """
    on_behalf_of = on_behalf_of or payer
    terms, config, state = load_reserve(view, asset)
    scaled_debt = scaled_balance_of(view, terms.debt_token, on_behalf_of)
    validate_repay(config, amount, payer, on_behalf_of, scaled_debt)

    now = to_timestamp(view.current_time)
    state = refresh(state, now)

    outstanding = ray_mul(scaled_debt, state.borrow_index)
    actual = outstanding if amount == MAX_AMOUNT else min(amount, outstanding)

    if actual == outstanding:
        burned = scaled_debt
    else:
        burned = ray_div_floor(actual, state.borrow_index)
        if burned == 0:
            raise InvalidAmount(f"Repay of {actual} burns no scaled debt")

    cid = contract_id or _default_contract_id("REPAY", asset, on_behalf_of, now)
    moves = [
        Move(actual, asset, payer, terms.liquidity_wallet, cid, spender=POOL_SPENDER),
        burn_move(terms.debt_token, on_behalf_of, burned, cid),
    ]

    state = replace(state, total_scaled_debt=state.total_scaled_debt - burned)
    updates = {asset: (terms, config, state)}

    new_isolation_debt = None
    collateral = _isolation_collateral(view, isolation_collateral)
    if collateral is not None:
        c_terms, c_config, c_state = updates.get(isolation_collateral, collateral)
        new_isolation_debt = isolation_debt_after_repay(
            c_state.isolation_mode_total_debt, actual, terms.decimals
        )
        updates[isolation_collateral] = (
            c_terms, c_config, replace(c_state, isolation_mode_total_debt=new_isolation_debt)
        )

    d_terms, d_config, d_state = updates[asset]
    updates[asset] = (
        d_terms, d_config,
        _with_new_rates(d_config, d_state, _available_liquidity(view, terms) + actual),
    )

    pending = build_transaction(
        view, moves, _state_changes(view, updates),
        origin=_origin(payer, asset, "REPAY"),
    )
    return pending, RepayResult(actual, new_isolation_debt)


def compute_repay(
    view: LedgerView,
    asset: str,
    amount: int,
    payer: str,
    on_behalf_of: Optional[str] = None,
    isolation_collateral: Optional[str] = None,
    contract_id: Optional[str] = None,
) -> PendingTransaction:
    """Repay variable debt. See settle_repay() for the algorithm."""
    pending, _ = settle_repay(
        view, asset, amount, payer, on_behalf_of, isolation_collateral, contract_id
    )
    return pending


# ============================================================================
# TRANSACTION INTERFACE
# ============================================================================

def transact(
    view: LedgerView,
    asset: str,
    event_type: str,
    **kwargs
) -> PendingTransaction:
    """
    Build the transaction for a reserve action.

    Args:
        view: Read-only ledger access
        asset: Underlying asset symbol of the reserve
        event_type: One of
            - SUPPLY: requires 'amount', 'payer'; optional 'on_behalf_of'
            - WITHDRAW: requires 'amount', 'owner'; optional 'to'
            - BORROW: requires 'amount', 'borrower'; optional 'isolation_collateral'
            - REPAY: requires 'amount', 'payer'; optional 'on_behalf_of',
              'isolation_collateral'
        **kwargs: Event-specific parameters, plus optional 'contract_id'

    Example:
        pending = transact(view, "DAI", "REPAY", amount=MAX_AMOUNT, payer="alice")
    """
    def require(name: str):
        value = kwargs.get(name)
        if value is None:
            raise ValueError(f"Missing '{name}' parameter for {event_type} event on {asset}")
        return value

    contract_id = kwargs.get('contract_id')

    if event_type == 'SUPPLY':
        return compute_supply(
            view, asset, require('amount'), require('payer'),
            kwargs.get('on_behalf_of'), contract_id,
        )

    elif event_type == 'WITHDRAW':
        return compute_withdraw(
            view, asset, require('amount'), require('owner'),
            kwargs.get('to'), contract_id,
        )

    elif event_type == 'BORROW':
        return compute_borrow(
            view, asset, require('amount'), require('borrower'),
            kwargs.get('isolation_collateral'), contract_id,
        )

    elif event_type == 'REPAY':
        return compute_repay(
            view, asset, require('amount'), require('payer'),
            kwargs.get('on_behalf_of'), kwargs.get('isolation_collateral'), contract_id,
        )

    else:
        raise ValueError(f"Unknown event type '{event_type}' for reserve {asset}")
