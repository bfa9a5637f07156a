"""
Account Lock Service.

Pessimistic per-account locks for the ledger engine's pessimistic lock
mode. Several accounts are always locked in ascending id order, so two
operations on the same pair of accounts can never wait on each other in
a cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from omniledger.core.exceptions import TransientConflictError
from omniledger.core.types import AccountId

if TYPE_CHECKING:
    from omniledger.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class AccountLockService:
    """
    Service for managing account locks (mutexes).

    Implements a distributed lock pattern using the storage backend.
    """

    def __init__(
        self,
        storage: StorageBackend,
        ttl: int = 30,
        retry_count: int = 3,
        retry_delay: float = 0.05,
    ) -> None:
        """
        Initialize lock service.

        Args:
            storage: Storage backend (Redis/Memory)
            ttl: Lock time-to-live in seconds
            retry_count: Number of retries if a lock is held
            retry_delay: Delay between retries in seconds
        """
        self._storage = storage
        self._ttl = ttl
        self._retry_count = retry_count
        self._retry_delay = retry_delay

    @staticmethod
    def _lock_key(account_id: AccountId) -> str:
        return f"lock:account:{account_id}"

    async def acquire(self, account_id: AccountId) -> str | None:
        """
        Acquire the lock for one account.

        Returns:
            lock_token (str) if successful, None if failed
        """
        lock_key = self._lock_key(account_id)

        for i in range(self._retry_count + 1):
            token = await self._storage.acquire_lock(lock_key, self._ttl)
            if token:
                logger.debug(f"Acquired lock for account {account_id} (token: {token[:8]}...)")
                return token

            if i < self._retry_count:
                logger.debug(f"Account {account_id} locked, retrying in {self._retry_delay}s...")
                await asyncio.sleep(self._retry_delay)

        logger.warning(
            f"Failed to acquire lock for account {account_id} after {self._retry_count} retries"
        )
        return None

    async def release(self, account_id: AccountId, lock_token: str) -> bool:
        """
        Release a previously acquired lock.

        Returns:
            True if released, False if not found or token mismatch
        """
        result = await self._storage.release_lock(self._lock_key(account_id), lock_token)
        if result:
            logger.debug(f"Released lock for account {account_id}")
        return result

    async def acquire_all(self, account_ids: Iterable[AccountId]) -> dict[AccountId, str] | None:
        """
        Lock every account, lowest id first.

        If any lock cannot be taken the ones already held are released
        and None is returned.
        """
        held: dict[AccountId, str] = {}
        for account_id in sorted(set(account_ids)):
            token = await self.acquire(account_id)
            if token is None:
                await self.release_all(held)
                return None
            held[account_id] = token
        return held

    async def release_all(self, tokens: dict[AccountId, str]) -> None:
        # Reverse of acquisition order
        for account_id in sorted(tokens, reverse=True):
            await self.release(account_id, tokens[account_id])

    @asynccontextmanager
    async def hold(self, *account_ids: AccountId) -> AsyncIterator[None]:
        """
        Hold the locks of all given accounts for the body of the block.

        Raises:
            TransientConflictError: If the locks could not be acquired
        """
        tokens = await self.acquire_all(account_ids)
        if tokens is None:
            raise TransientConflictError(
                f"Accounts {sorted(set(account_ids))} are busy (locked by another operation). Please retry.",
                attempts=self._retry_count + 1,
            )
        try:
            yield
        finally:
            await self.release_all(tokens)
