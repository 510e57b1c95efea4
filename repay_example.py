"""
repay_example.py - Step-by-Step Borrow and Repay Example

Demonstrates the lifecycle of a variable-rate loan against a DAI reserve:
1. Setup: Create ledger, register DAI, fund and approve wallets
2. Reserve: Initialize the reserve with a kinked rate curve
3. Supply and Borrow: alice deposits, bob borrows at full utilization
4. Accrual: 3.65 days pass; inspect indices and balances
5. Repay: bob repays everything with the MAX_AMOUNT sentinel
6. Isolation: a borrower against isolated collateral, and the ceiling counter
7. Audit: conservation check and replay of the transaction log

Run this file directly:
    python repay_example.py
"""

from datetime import datetime, timedelta
from reserve_ledger import (
    # Core
    Ledger, Move, token, build_transaction, SYSTEM_WALLET, MAX_AMOUNT,

    # Math
    WAD, RAY, SECONDS_PER_YEAR,

    # Pool
    Pool, InterestRateCurve,
    DebtCeilingExceeded,
)


def fmt(amount: int, decimals: int = 18) -> str:
    """Format a base-unit amount with its decimals."""
    whole, frac = divmod(amount, 10 ** decimals)
    return f"{whole:,}.{frac:0{decimals}d}"


def fmt_ray(value: int) -> str:
    return fmt(value, 27)


def print_reserve(pool: Pool, asset: str) -> None:
    data = pool.get_reserve_state(asset)
    print(f"  liquidity index : {fmt_ray(data.liquidity_index)}")
    print(f"  borrow index    : {fmt_ray(data.borrow_index)}")
    print(f"  liquidity rate  : {fmt_ray(data.current_liquidity_rate)}")
    print(f"  borrow rate     : {fmt_ray(data.current_borrow_rate)}")


def main():
    print("=" * 70)
    print("BORROW AND REPAY EXAMPLE")
    print("=" * 70)

    # =========================================================================
    # STEP 1: Setup
    # =========================================================================
    print("\n--- Step 1: Setup ---")
    start = datetime(2025, 1, 1)
    ledger = Ledger("lending", start, verbose=False)
    ledger.register_unit(token("DAI", "Dai Stablecoin"))
    for wallet in ("alice", "bob"):
        ledger.register_wallet(wallet)

    ledger.execute(build_transaction(ledger, [
        Move(1_000 * WAD, "DAI", SYSTEM_WALLET, "alice", "faucet_alice"),
        Move(100 * WAD, "DAI", SYSTEM_WALLET, "bob", "faucet_bob"),
    ]))
    print(f"alice: {fmt(ledger.get_balance('alice', 'DAI'))} DAI")
    print(f"bob:   {fmt(ledger.get_balance('bob', 'DAI'))} DAI")

    # =========================================================================
    # STEP 2: Reserve
    # =========================================================================
    print("\n--- Step 2: Initialize Reserve ---")
    pool = Pool(ledger)
    curve = InterestRateCurve(
        base_rate="0.05",
        slope1="0.02",
        slope2="0.30",
        optimal_utilization="0.8",
    )
    pool.init_reserve("DAI", curve)
    pool.approve("alice", "DAI")
    pool.approve("bob", "DAI")
    print(f"Units: {ledger.list_units()}")

    # =========================================================================
    # STEP 3: Supply and Borrow
    # =========================================================================
    print("\n--- Step 3: Supply and Borrow ---")
    pool.supply("DAI", 500 * WAD, "alice")
    pool.borrow("DAI", 500 * WAD, "bob")
    print("alice supplied 500 DAI, bob borrowed 500 DAI (100% utilization)")
    print_reserve(pool, "DAI")

    # =========================================================================
    # STEP 4: Accrual
    # =========================================================================
    print("\n--- Step 4: 3.65 Days Later ---")
    ledger.advance_time(start + timedelta(seconds=SECONDS_PER_YEAR // 100))
    print(f"bob owes:      {fmt(pool.debt_balance_of('DAI', 'bob'))} DAI")
    print(f"alice is owed: {fmt(pool.supply_balance_of('DAI', 'alice'))} DAI")
    print("(indices are stored lazily; nothing changes until the next action)")

    # =========================================================================
    # STEP 5: Repay
    # =========================================================================
    print("\n--- Step 5: Repay Everything ---")
    result = pool.repay("DAI", MAX_AMOUNT, "bob")
    print(f"bob repaid:    {fmt(result.actual_amount_repaid)} DAI")
    print(f"scaled debt:   {pool.scaled_debt_of('DAI', 'bob')}")
    for unit, qty in sorted(ledger.get_wallet_balances("bob").items()):
        print(f"  bob holds {unit}: {qty}")
    print_reserve(pool, "DAI")
    assert pool.get_reserve_state("DAI").liquidity_index == 1_003_700_000_000_000_000_000_000_000
    assert pool.get_reserve_state("DAI").borrow_index > RAY

    # =========================================================================
    # STEP 6: Isolation Mode
    # =========================================================================
    print("\n--- Step 6: Isolated Collateral ---")
    ledger.register_unit(token("GOV", "Governance Token"))
    pool.init_reserve("GOV", curve, debt_ceiling=1_000)   # 10.00 DAI-equivalent
    pool.configure_reserve("DAI", borrowable_in_isolation=True)
    pool.set_user_isolation("bob", "GOV")

    pool.borrow("DAI", 5 * WAD, "bob")
    print(f"GOV isolated debt after borrowing 5 DAI: "
          f"{pool.get_reserve_state('GOV').isolation_mode_total_debt}")
    try:
        pool.borrow("DAI", 6 * WAD, "bob")
    except DebtCeilingExceeded as e:
        print(f"Borrowing 6 more DAI refused: {e}")

    result = pool.repay("DAI", 499 * 10 ** 16, "bob")
    print(f"After repaying 4.99 DAI, isolated debt = {result.new_isolation_debt}")
    result = pool.repay("DAI", MAX_AMOUNT, "bob")
    print(f"After repaying the rest, isolated debt = {result.new_isolation_debt}")

    # =========================================================================
    # STEP 7: Audit
    # =========================================================================
    print("\n--- Step 7: Audit ---")
    check = ledger.verify_double_entry({unit: 0 for unit in ledger.list_units()})
    print(f"Conservation holds: {check['valid']}")
    replayed = ledger.replay()
    same = all(
        replayed.get_unit_state(unit) == ledger.get_unit_state(unit)
        for unit in ledger.list_units()
    )
    print(f"Replay reproduces every reserve: {same}")
    print(f"Transactions logged: {len(ledger.transaction_log)}")


if __name__ == "__main__":
    main()
