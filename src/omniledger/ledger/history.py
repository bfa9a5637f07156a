"""
Transaction history queries with participant-only access.
"""

from __future__ import annotations

import logging

from omniledger.core.exceptions import AccessDeniedError
from omniledger.core.types import AccountId, Transaction, TransactionHistory
from omniledger.ledger.log import TransactionLog

logger = logging.getLogger(__name__)


class HistoryService:
    """Serves an account's view of the transaction log."""

    def __init__(self, log: TransactionLog) -> None:
        self._log = log

    async def list_transactions(self, account_id: AccountId) -> TransactionHistory:
        """All transactions the account took part in, oldest first."""
        return await self._log.query(account_id)

    async def get_transaction(self, account_id: AccountId, transaction_id: int) -> Transaction:
        """
        Get one transaction on behalf of an account.

        Raises:
            AccessDeniedError: If the account is not the source or
                destination, or the transaction does not exist. Both
                cases raise the same error.
        """
        transaction = await self._log.get(transaction_id)
        if transaction is None or not transaction.involves(account_id):
            logger.warning(f"Account {account_id} denied access to transaction {transaction_id}")
            raise AccessDeniedError()
        return transaction
