"""
Account balance store.

Holds the current balance per account on top of the StorageBackend and
exposes compare-and-set as the only way to change a balance.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from omniledger.core.exceptions import AccountNotFoundError, InvalidAmountError
from omniledger.core.types import Account, AccountId, CasResult

if TYPE_CHECKING:
    from omniledger.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class AccountStore:
    """
    Balance store backed by a StorageBackend.

    Balances are stored as strings in the ``balance`` field of each
    account document, so compare-and-set compares exact integer text.
    """

    COLLECTION = "accounts"
    SEQUENCE = "accounts"
    BALANCE_FIELD = "balance"

    def __init__(self, storage: StorageBackend) -> None:
        """
        Initialize the store.

        Args:
            storage: The unified storage backend (InMemory, Redis, etc.)
        """
        self._storage = storage

    async def open_account(self, initial_balance: int = 0) -> Account:
        """
        Open a new account with the next identifier.

        Args:
            initial_balance: Opening balance, zero unless seeding test data

        Returns:
            The stored Account
        """
        if isinstance(initial_balance, bool) or not isinstance(initial_balance, int) or initial_balance < 0:
            raise InvalidAmountError(
                f"Initial balance must be a non-negative integer, got {initial_balance!r}",
                amount=initial_balance,
            )

        account_id = await self._storage.next_sequence(self.SEQUENCE)
        account = Account(id=account_id, balance=initial_balance)
        await self._storage.save(self.COLLECTION, str(account_id), account.to_dict())
        logger.info(f"Opened account {account_id} with balance {initial_balance}")
        return account

    async def get_account(self, account_id: AccountId) -> Account:
        data = await self._storage.get(self.COLLECTION, str(account_id))
        if data is None:
            raise AccountNotFoundError(f"Account {account_id} not found", account_id=account_id)
        return Account.from_dict(data)

    async def get_balance(self, account_id: AccountId) -> int:
        """Read the committed balance of an account."""
        return (await self.get_account(account_id)).balance

    async def compare_and_set_balance(
        self,
        account_id: AccountId,
        expected: int,
        new: int,
    ) -> CasResult:
        """
        Replace the balance only if it still equals ``expected``.

        Returns:
            OK, CONFLICT if another writer got there first, or NOT_FOUND
        """
        return await self.compare_and_set_balances({account_id: (expected, new)})

    async def compare_and_set_balances(
        self,
        changes: Mapping[AccountId, tuple[int, int]],
    ) -> CasResult:
        """
        Apply several balance changes as one atomic compare-and-set.

        Accounts are always handed to the backend in ascending id order,
        whatever order the caller built ``changes`` in.
        """
        ordered = {
            str(account_id): (str(expected), str(new))
            for account_id, (expected, new) in sorted(changes.items())
        }
        return await self._storage.compare_and_set_many(self.COLLECTION, self.BALANCE_FIELD, ordered)
