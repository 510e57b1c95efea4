"""
reserve_ledger - Lending reserve accounting on a double-entry ledger

Interest accrual (ray indices, kinked rate curve) and settlement of supply,
withdraw, borrow and repay actions, including isolation-mode debt ceilings.

Usage:
    from reserve_ledger import Ledger, Pool, InterestRateCurve, token, MAX_AMOUNT

    ledger = Ledger("main", initial_time=datetime(2024, 1, 1))
    ledger.register_unit(token("DAI", "Dai Stablecoin"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")

    pool = Pool(ledger)
    pool.init_reserve("DAI", InterestRateCurve("0.05", "0.02", "0.30", "0.8"))

    # Fund wallets via SYSTEM_WALLET (issuance)
    ledger.execute(build_transaction(ledger, [
        Move(1000 * 10**18, "DAI", SYSTEM_WALLET, "alice", "faucet_alice"),
        Move(100 * 10**18, "DAI", SYSTEM_WALLET, "bob", "faucet_bob"),
    ]))

    pool.approve("alice", "DAI")
    pool.approve("bob", "DAI")
    pool.supply("DAI", 1000 * 10**18, "alice")
    pool.borrow("DAI", 500 * 10**18, "bob")
    pool.repay("DAI", MAX_AMOUNT, "bob")
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    empty_pending_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    InsufficientFunds,
    TransferRuleViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    InvalidAmount,
    NoExplicitAmountToRepayOnBehalf,
    ReserveInactive,
    ReservePaused,
    ReserveFrozen,
    ReserveAlreadyInitialized,
    NoDebtOfSelectedType,
    BorrowingNotEnabled,
    NotEnoughAvailableUserBalance,
    AssetNotBorrowableInIsolation,
    DebtCeilingExceeded,
    mint_burn_only_rule,
    no_balances_rule,
    token,
    to_timestamp,
    SYSTEM_WALLET,
    POOL_SPENDER,
    MAX_AMOUNT,
    MAX_UINT128,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_RESERVE,
    UNIT_TYPE_SCALED_SUPPLY,
    UNIT_TYPE_SCALED_DEBT,
)

# Ledger
from .ledger import Ledger

# Fixed-point math
from .wad_ray_math import (
    WAD,
    RAY,
    HALF_RAY,
    SECONDS_PER_YEAR,
    ray_mul,
    ray_div,
    ray_div_floor,
    ray_div_ceil,
    to_ray,
)

# Accrual engine
from .interest_rate import (
    InterestRateCurve,
    calculate_utilization,
    calculate_interest_rates,
)
from .reserve_logic import (
    calculate_linear_interest,
    calculate_compounded_interest,
    get_normalized_income,
    get_normalized_debt,
    refresh,
    update_interest_rates,
    supply_balance_of,
    debt_balance_of,
)

# Settlement
from .isolation_mode import (
    truncate_to_ceiling_units,
    isolation_debt_after_repay,
    isolation_debt_after_borrow,
)
from .validation import (
    validate_supply,
    validate_withdraw,
    validate_borrow,
    validate_repay,
)
from .settlement import (
    RepayResult,
    compute_supply,
    compute_withdraw,
    compute_borrow,
    compute_repay,
    settle_repay,
    transact,
)
from .pool import Pool

# Units
from .units import (
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
    create_scaled_supply_unit,
    create_scaled_debt_unit,
    scaled_balance_of,
    scaled_total_supply,
    balance_of,
    mint_move,
    burn_move,
)

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction', 'empty_pending_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult', 'token', 'to_timestamp',
    'mint_burn_only_rule', 'no_balances_rule',
    'SYSTEM_WALLET', 'POOL_SPENDER', 'MAX_AMOUNT', 'MAX_UINT128',
    'UNIT_TYPE_TOKEN', 'UNIT_TYPE_RESERVE', 'UNIT_TYPE_SCALED_SUPPLY', 'UNIT_TYPE_SCALED_DEBT',
    # Errors
    'LedgerError', 'InsufficientFunds', 'TransferRuleViolation',
    'UnitNotRegistered', 'WalletNotRegistered', 'InvalidAmount',
    'NoExplicitAmountToRepayOnBehalf', 'ReserveInactive', 'ReservePaused',
    'ReserveFrozen', 'ReserveAlreadyInitialized', 'NoDebtOfSelectedType',
    'BorrowingNotEnabled', 'NotEnoughAvailableUserBalance',
    'AssetNotBorrowableInIsolation', 'DebtCeilingExceeded',
    # Ledger
    'Ledger',
    # Math
    'WAD', 'RAY', 'HALF_RAY', 'SECONDS_PER_YEAR',
    'ray_mul', 'ray_div', 'ray_div_floor', 'ray_div_ceil', 'to_ray',
    # Accrual
    'InterestRateCurve', 'calculate_utilization', 'calculate_interest_rates',
    'calculate_linear_interest', 'calculate_compounded_interest',
    'get_normalized_income', 'get_normalized_debt',
    'refresh', 'update_interest_rates', 'supply_balance_of', 'debt_balance_of',
    # Settlement
    'truncate_to_ceiling_units', 'isolation_debt_after_repay', 'isolation_debt_after_borrow',
    'validate_supply', 'validate_withdraw', 'validate_borrow', 'validate_repay',
    'RepayResult', 'compute_supply', 'compute_withdraw', 'compute_borrow',
    'compute_repay', 'settle_repay', 'transact', 'Pool',
    # Units
    'DEBT_CEILING_DECIMALS', 'ReserveTerms', 'ReserveConfiguration', 'ReserveState',
    'ReserveData', 'load_reserve', 'to_state_dict', 'create_reserve',
    'compute_init_reserve', 'compute_configure_reserve', 'get_reserve_state',
    'reserve_symbol', 'supply_token_symbol', 'debt_token_symbol', 'liquidity_wallet',
    'create_scaled_supply_unit', 'create_scaled_debt_unit', 'scaled_balance_of',
    'scaled_total_supply', 'balance_of', 'mint_move', 'burn_move',
]

__version__ = '1.0.0'
