"""
Example: Balances and Transaction History

Demonstrates deposits, withdrawals, transfers and the per-account history.
Reads OMNILEDGER_* settings from a .env file if one is present.
"""

import asyncio

from dotenv import load_dotenv

load_dotenv()

from omniledger import (  # noqa: E402
    AccessDeniedError,
    InsufficientFundsError,
    OmniLedger,
)


async def main():
    """
    Ledger example showing:
    1. Money movements between two accounts
    2. A rejected withdrawal
    3. Querying transaction history
    """
    print("=== OmniLedger Example ===\n")

    ledger = OmniLedger()
    alice = await ledger.open_account()
    bob = await ledger.open_account()

    # ========================================
    # Move some money
    # ========================================
    print("--- Movements ---")

    await ledger.deposit(alice.id, 100)
    await ledger.deposit(alice.id, 50)
    print(f"  Alice after deposits: {await ledger.get_balance(alice.id)}")

    try:
        await ledger.withdraw(alice.id, 200)
    except InsufficientFundsError as e:
        print(f"  Withdraw 200 rejected: {e}")

    transfer = await ledger.transfer(alice.id, bob.id, 100)
    print(f"  Transfer #{transfer.id}: Alice={await ledger.get_balance(alice.id)}, "
          f"Bob={await ledger.get_balance(bob.id)}")

    # ========================================
    # Query the history
    # ========================================
    print("\n--- Alice's History ---")

    history = await ledger.list_transactions(alice.id)
    for view in history.to_views():
        print(f"    {view}")

    print("\n--- Access Control ---")
    deposit_id = history[0].id
    try:
        await ledger.get_transaction(bob.id, deposit_id)
    except AccessDeniedError:
        print(f"  Bob cannot see Alice's deposit #{deposit_id}")

    await ledger.close()
    print("\n=== Ledger Example Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
