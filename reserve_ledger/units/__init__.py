"""
Units module - Reserve and scaled position units.

- Reserve units carry per-asset accounting state (indices, rates, totals)
- Scaled supply and debt units carry per-holder scaled positions

All unit factories and related functions are re-exported here for convenience.
"""

# Reserve units
from .reserve import (
    DEBT_CEILING_DECIMALS,
    ReserveTerms,
    ReserveConfiguration,
    ReserveState,
    ReserveData,
    load_reserve,
    to_state_dict,
    create_reserve,
    compute_init_reserve,
    compute_configure_reserve,
    get_reserve_state,
    reserve_symbol,
    supply_token_symbol,
    debt_token_symbol,
    liquidity_wallet,
)

# Scaled position units
from .scaled_token import (
    create_scaled_supply_unit,
    create_scaled_debt_unit,
    scaled_balance_of,
    scaled_total_supply,
    balance_of,
    mint_move,
    burn_move,
)

__all__ = [
    # Reserve
    'DEBT_CEILING_DECIMALS',
    'ReserveTerms',
    'ReserveConfiguration',
    'ReserveState',
    'ReserveData',
    'load_reserve',
    'to_state_dict',
    'create_reserve',
    'compute_init_reserve',
    'compute_configure_reserve',
    'get_reserve_state',
    'reserve_symbol',
    'supply_token_symbol',
    'debt_token_symbol',
    'liquidity_wallet',
    # Scaled tokens
    'create_scaled_supply_unit',
    'create_scaled_debt_unit',
    'scaled_balance_of',
    'scaled_total_supply',
    'balance_of',
    'mint_move',
    'burn_move',
]
