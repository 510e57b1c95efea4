"""
reserve.py - Reserve units: per-asset accounting state held in the ledger.

A reserve is a state-only unit (type RESERVE) registered next to two scaled
position units and one liquidity wallet:

    DAI                 underlying token (registered separately)
    DAI_RESERVE         reserve state: indices, rates, totals, configuration
    aDAI                scaled supply positions
    variableDebtDAI     scaled variable debt positions
    wallet "aDAI"       holds the reserve's underlying liquidity

The ledger's unit table is the arena; the asset symbol is the handle. Every
function here takes (view, asset) explicitly, never ambient state.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - ReserveTerms: fixed at creation (asset, decimals, unit and wallet names)
   - ReserveConfiguration: externally settable flags, isolation ceiling, rate curve
   - ReserveState: indices, rates, timestamp, scaled totals, isolation debt

2. ADAPTER FUNCTIONS (load_reserve / to_state_dict):
   - The ONLY place that converts between LedgerView state dicts and dataclasses

3. CONVENIENCE FUNCTIONS (compute_*, get_*):
   - Build PendingTransactions or read views for the pool
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ..core import (
    LedgerView, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    UNIT_TYPE_RESERVE, UNIT_TYPE_TOKEN, MAX_UINT128,
    ReserveAlreadyInitialized, UnitNotRegistered,
    build_transaction, no_balances_rule, to_timestamp,
    _freeze_state,
)
from ..interest_rate import InterestRateCurve
from ..wad_ray_math import RAY
from .scaled_token import create_scaled_supply_unit, create_scaled_debt_unit


# Isolation-mode debt is tracked with two decimals, whatever the asset's decimals.
DEBT_CEILING_DECIMALS = 2


def reserve_symbol(asset: str) -> str:
    return f"{asset}_RESERVE"


def supply_token_symbol(asset: str) -> str:
    return f"a{asset}"


def debt_token_symbol(asset: str) -> str:
    return f"variableDebt{asset}"


def liquidity_wallet(asset: str) -> str:
    return f"a{asset}"


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class ReserveTerms:
    """Fixed at initialization, never changes."""
    asset: str
    decimals: int
    supply_token: str
    debt_token: str
    liquidity_wallet: str


@dataclass(frozen=True, slots=True)
class ReserveConfiguration:
    """
    Externally configured reserve parameters.

    frozen still permits repay and withdraw; paused and inactive block everything.
    A non-zero debt_ceiling marks the asset as an isolated collateral, with the
    ceiling expressed in truncated units (DEBT_CEILING_DECIMALS).
    """
    curve: InterestRateCurve
    active: bool = True
    paused: bool = False
    frozen: bool = False
    borrowing_enabled: bool = True
    borrowable_in_isolation: bool = False
    debt_ceiling: int = 0

    def __post_init__(self):
        if self.debt_ceiling < 0:
            raise ValueError(f"debt_ceiling cannot be negative, got {self.debt_ceiling}")


@dataclass(frozen=True, slots=True)
class ReserveState:
    """
    Immutable snapshot of a reserve's accounting state.

    Each mutation produces a NEW instance (value semantics); see reserve_logic.
    """
    liquidity_index: int
    borrow_index: int
    current_liquidity_rate: int
    current_borrow_rate: int
    last_update_timestamp: int
    total_scaled_supply: int
    total_scaled_debt: int
    isolation_mode_total_debt: int

    def __post_init__(self):
        for name in (
            'liquidity_index', 'borrow_index', 'current_liquidity_rate',
            'current_borrow_rate', 'isolation_mode_total_debt',
        ):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} cannot be negative, got {value}")
            if value > MAX_UINT128:
                raise OverflowError(f"{name} exceeds uint128: {value}")
        if self.liquidity_index < RAY or self.borrow_index < RAY:
            raise ValueError("indices cannot fall below RAY")
        if self.total_scaled_supply < 0 or self.total_scaled_debt < 0:
            raise ValueError("scaled totals cannot be negative")


@dataclass(frozen=True, slots=True)
class ReserveData:
    """Read-only snapshot exposed to oracles, administration and UI layers."""
    asset: str
    liquidity_index: int
    borrow_index: int
    current_liquidity_rate: int
    current_borrow_rate: int
    last_update_timestamp: int
    isolation_mode_total_debt: int
    total_scaled_supply: int
    total_scaled_debt: int


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_reserve(
    view: LedgerView, asset: str
) -> Tuple[ReserveTerms, ReserveConfiguration, ReserveState]:
    """
    Load a reserve from ledger state as typed frozen dataclasses.

    Raises:
        UnitNotRegistered: If no reserve exists for the asset.
    """
    raw = view.get_unit_state(reserve_symbol(asset))
    if not raw:
        raise UnitNotRegistered(f"No reserve initialized for {asset}")

    terms = ReserveTerms(
        asset=raw['asset'],
        decimals=raw['decimals'],
        supply_token=raw['supply_token'],
        debt_token=raw['debt_token'],
        liquidity_wallet=raw['liquidity_wallet'],
    )
    config = ReserveConfiguration(
        curve=InterestRateCurve.from_dict(raw['curve']),
        active=raw['active'],
        paused=raw['paused'],
        frozen=raw['frozen'],
        borrowing_enabled=raw['borrowing_enabled'],
        borrowable_in_isolation=raw['borrowable_in_isolation'],
        debt_ceiling=raw['debt_ceiling'],
    )
    state = ReserveState(
        liquidity_index=raw['liquidity_index'],
        borrow_index=raw['borrow_index'],
        current_liquidity_rate=raw['current_liquidity_rate'],
        current_borrow_rate=raw['current_borrow_rate'],
        last_update_timestamp=raw['last_update_timestamp'],
        total_scaled_supply=raw['total_scaled_supply'],
        total_scaled_debt=raw['total_scaled_debt'],
        isolation_mode_total_debt=raw['isolation_mode_total_debt'],
    )
    return terms, config, state


def to_state_dict(
    terms: ReserveTerms,
    config: ReserveConfiguration,
    state: ReserveState,
) -> Dict[str, Any]:
    """Inverse of load_reserve(), used to build UnitStateChange.new_state."""
    return {
        'asset': terms.asset,
        'decimals': terms.decimals,
        'supply_token': terms.supply_token,
        'debt_token': terms.debt_token,
        'liquidity_wallet': terms.liquidity_wallet,
        'curve': config.curve.to_dict(),
        'active': config.active,
        'paused': config.paused,
        'frozen': config.frozen,
        'borrowing_enabled': config.borrowing_enabled,
        'borrowable_in_isolation': config.borrowable_in_isolation,
        'debt_ceiling': config.debt_ceiling,
        'liquidity_index': state.liquidity_index,
        'borrow_index': state.borrow_index,
        'current_liquidity_rate': state.current_liquidity_rate,
        'current_borrow_rate': state.current_borrow_rate,
        'last_update_timestamp': state.last_update_timestamp,
        'total_scaled_supply': state.total_scaled_supply,
        'total_scaled_debt': state.total_scaled_debt,
        'isolation_mode_total_debt': state.isolation_mode_total_debt,
    }


# ============================================================================
# RESERVE CREATION
# ============================================================================

def create_reserve(
    asset_unit: Unit,
    config: ReserveConfiguration,
    initialized_at: Optional[datetime] = None,
) -> Tuple[Unit, Unit, Unit]:
    """
    Create the reserve, scaled supply and scaled debt units for an asset.

    The reserve starts with both indices at RAY, both rates at zero and no
    positions.

    Args:
        asset_unit: The underlying TOKEN unit
        config: Initial configuration (flags, isolation ceiling, rate curve)
        initialized_at: Initial last_update_timestamp (default: epoch)

    Returns:
        Tuple of (reserve_unit, supply_unit, debt_unit)

    Raises:
        ValueError: If asset_unit is not a TOKEN unit.
    """
    if asset_unit.unit_type != UNIT_TYPE_TOKEN:
        raise ValueError(f"{asset_unit.symbol} is not a token unit ({asset_unit.unit_type})")

    asset = asset_unit.symbol
    terms = ReserveTerms(
        asset=asset,
        decimals=asset_unit.decimals,
        supply_token=supply_token_symbol(asset),
        debt_token=debt_token_symbol(asset),
        liquidity_wallet=liquidity_wallet(asset),
    )
    state = ReserveState(
        liquidity_index=RAY,
        borrow_index=RAY,
        current_liquidity_rate=0,
        current_borrow_rate=0,
        last_update_timestamp=to_timestamp(initialized_at) if initialized_at else 0,
        total_scaled_supply=0,
        total_scaled_debt=0,
        isolation_mode_total_debt=0,
    )

    reserve_unit = Unit(
        symbol=reserve_symbol(asset),
        name=f"{asset_unit.name} Reserve",
        unit_type=UNIT_TYPE_RESERVE,
        min_balance=0,
        max_balance=0,
        decimals=asset_unit.decimals,
        transfer_rule=no_balances_rule,
        _frozen_state=_freeze_state(to_state_dict(terms, config, state)),
    )
    supply_unit = create_scaled_supply_unit(terms.supply_token, asset_unit)
    debt_unit = create_scaled_debt_unit(terms.debt_token, asset_unit)
    return reserve_unit, supply_unit, debt_unit


def _is_registered(view: LedgerView, symbol: str) -> bool:
    try:
        view.get_unit(symbol)
    except UnitNotRegistered:
        return False
    return True


def compute_init_reserve(
    view: LedgerView,
    asset: str,
    config: ReserveConfiguration,
) -> PendingTransaction:
    """
    Build the transaction that registers a new reserve for an already
    registered underlying token.

    The liquidity wallet must be registered before execution.

    Raises:
        ReserveAlreadyInitialized: If a reserve unit already exists for the asset.
        UnitNotRegistered: If the underlying token is not registered.
    """
    if _is_registered(view, reserve_symbol(asset)):
        raise ReserveAlreadyInitialized(f"Reserve for {asset} already initialized")
    asset_unit = view.get_unit(asset)
    units = create_reserve(asset_unit, config, initialized_at=view.current_time)
    return PendingTransaction(
        moves=(),
        state_changes=(),
        origin=TransactionOrigin(OriginType.SYSTEM, "pool", reserve_symbol(asset), "INIT_RESERVE"),
        timestamp=view.current_time,
        units_to_create=units,
    )


def compute_configure_reserve(
    view: LedgerView,
    asset: str,
    contract_id: Optional[str] = None,
    **changes: Any,
) -> PendingTransaction:
    """
    Update externally settable configuration of a reserve.

    Accepted keywords are the ReserveConfiguration fields: active, paused,
    frozen, borrowing_enabled, borrowable_in_isolation, debt_ceiling, curve.
    Indices and rates are untouched; a new curve takes effect at the next action.
    Setting debt_ceiling to 0 ends isolation for the asset and clears its
    isolation_mode_total_debt.
    contract_id distinguishes otherwise identical updates (pause, unpause,
    pause again) so they are not deduplicated by the ledger.

    Raises:
        ValueError: On unknown keywords or invalid values.
    """
    allowed = {
        'active', 'paused', 'frozen', 'borrowing_enabled',
        'borrowable_in_isolation', 'debt_ceiling', 'curve',
    }
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown reserve configuration fields: {sorted(unknown)}")

    symbol = reserve_symbol(asset)
    old_state = view.get_unit_state(symbol)
    terms, config, state = load_reserve(view, asset)
    new_config = replace(config, **changes)
    if changes.get('debt_ceiling') == 0:
        state = replace(state, isolation_mode_total_debt=0)
    new_state = to_state_dict(terms, new_config, state)

    return build_transaction(
        view,
        [],
        [UnitStateChange(unit=symbol, old_state=old_state, new_state=new_state)],
        origin=TransactionOrigin(
            OriginType.EXTERNAL, contract_id or "configurator", symbol, "CONFIGURE"
        ),
    )


# ============================================================================
# READ ACCESSOR
# ============================================================================

def get_reserve_state(view: LedgerView, asset: str) -> ReserveData:
    """
    Return the stored reserve state, as of its last_update_timestamp.

    Use reserve_logic.get_normalized_income / get_normalized_debt for
    indices projected to the current time.
    """
    _, _, state = load_reserve(view, asset)
    return ReserveData(
        asset=asset,
        liquidity_index=state.liquidity_index,
        borrow_index=state.borrow_index,
        current_liquidity_rate=state.current_liquidity_rate,
        current_borrow_rate=state.current_borrow_rate,
        last_update_timestamp=state.last_update_timestamp,
        isolation_mode_total_debt=state.isolation_mode_total_debt,
        total_scaled_supply=state.total_scaled_supply,
        total_scaled_debt=state.total_scaled_debt,
    )
