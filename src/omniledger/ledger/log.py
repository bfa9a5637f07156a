"""
Append-only transaction log.

Records completed money movements under identifiers drawn from one
global sequence. The engine reserves an id after reading the balances
and before their compare-and-set, so for any one account id order is
commit order. Ids reserved by attempts that lost a race are skipped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from omniledger.core.exceptions import StorageError
from omniledger.core.types import (
    AccountId,
    Transaction,
    TransactionHistory,
    TransactionKind,
    utcnow,
)

if TYPE_CHECKING:
    from omniledger.storage.base import StorageBackend


class TransactionLog:
    """
    Transaction log using StorageBackend.

    Records are written once and never updated or deleted.
    """

    COLLECTION = "transactions"
    SEQUENCE = "transactions"

    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage

    async def reserve_id(self) -> int:
        """Draw the next identifier from the global sequence."""
        return await self._storage.next_sequence(self.SEQUENCE)

    async def append(
        self,
        kind: TransactionKind,
        from_id: AccountId,
        to_id: AccountId,
        amount: int,
        transaction_id: int | None = None,
    ) -> Transaction:
        """
        Persist a record under a reserved identifier.

        Returns only after the backend has stored the record.

        Args:
            kind: Deposit, withdraw or transfer
            from_id: Source account
            to_id: Destination account (same as source for self-operations)
            amount: Positive amount moved
            transaction_id: Id from reserve_id(); drawn here if omitted

        Returns:
            The stored Transaction
        """
        if transaction_id is None:
            transaction_id = await self.reserve_id()
        transaction = Transaction(
            id=transaction_id,
            kind=kind,
            from_id=from_id,
            to_id=to_id,
            amount=amount,
            at=utcnow(),
        )
        await self._storage.save(self.COLLECTION, str(transaction_id), transaction.to_dict())
        return transaction

    async def get(self, transaction_id: int) -> Transaction | None:
        """
        Get a record by id.

        Returns:
            Transaction or None if not found
        """
        data = await self._storage.get(self.COLLECTION, str(transaction_id))
        if not data:
            return None
        return self._load(data)

    async def query(self, account_id: AccountId) -> TransactionHistory:
        """
        Collect every record the account took part in, by id ascending.

        Args:
            account_id: Source or destination account to match
        """
        records = await self._storage.query(self.COLLECTION)
        matching = [
            self._load(data)
            for data in records
            if data.get("from") == account_id or data.get("to") == account_id
        ]
        return TransactionHistory(account_id, matching)

    async def count(self) -> int:
        return await self._storage.count(self.COLLECTION)

    @staticmethod
    def _load(data: dict) -> Transaction:
        try:
            return Transaction.from_dict(data)
        except (KeyError, ValueError) as e:
            raise StorageError(
                "Malformed transaction record",
                details={"key": data.get("_key"), "error": str(e)},
            ) from e
