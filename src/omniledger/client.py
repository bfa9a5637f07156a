"""OmniLedger - main entry point for callers that have already authenticated the acting account."""

from __future__ import annotations

import os

from omniledger.core.config import Config
from omniledger.core.exceptions import ConfigurationError
from omniledger.core.logging import configure_logging, get_logger
from omniledger.core.types import Account, AccountId, Transaction, TransactionHistory
from omniledger.ledger.engine import LedgerEngine
from omniledger.ledger.lock import AccountLockService
from omniledger.storage import StorageBackend, get_storage


class OmniLedger:
    """
    Main client for OmniLedger.

    Wires configuration, logging, storage and the ledger engine together.
    Every method takes the acting account id as resolved by the caller's
    authentication layer.
    """

    def __init__(
        self,
        config: Config | None = None,
        storage: StorageBackend | None = None,
        log_level: int | str | None = None,
    ) -> None:
        """
        Initialize OmniLedger client.

        Args:
            config: Configuration (default: Config.from_env())
            storage: Storage backend (default: built from config.storage_backend)
            log_level: Logging level (default from config). Set to logging.DEBUG to see retries and locks.
        """
        self._config = config or Config.from_env()

        if log_level is None:
            log_level = os.environ.get("OMNILEDGER_LOG_LEVEL", self._config.log_level)

        configure_logging(level=log_level, fmt=self._config.log_format)
        self._logger = get_logger("client")
        self._logger.info(
            f"Initializing OmniLedger (storage: {self._config.storage_backend}, "
            f"lock mode: {self._config.lock_mode})"
        )

        self._storage = storage or self._build_storage(self._config)

        lock_service = None
        if self._config.pessimistic_locking:
            lock_service = AccountLockService(
                self._storage,
                ttl=self._config.lock_ttl,
                retry_count=self._config.lock_retry_count,
                retry_delay=self._config.lock_retry_delay,
            )

        self._engine = LedgerEngine(
            self._storage,
            max_conflict_retries=self._config.max_conflict_retries,
            lock_service=lock_service,
        )

    @staticmethod
    def _build_storage(config: Config) -> StorageBackend:
        kwargs = {}
        if config.storage_backend == "redis":
            kwargs = {"redis_url": config.redis_url, "prefix": config.redis_prefix}
        try:
            return get_storage(config.storage_backend, **kwargs)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    @property
    def config(self) -> Config:
        return self._config

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    @property
    def engine(self) -> LedgerEngine:
        return self._engine

    async def open_account(self, initial_balance: int = 0) -> Account:
        """Open an account. Registration details live with the caller."""
        return await self._engine.open_account(initial_balance)

    async def get_balance(self, account_id: AccountId) -> int:
        return await self._engine.get_balance(account_id)

    async def deposit(self, account_id: AccountId, amount: int) -> Transaction:
        return await self._engine.deposit(account_id, amount)

    async def withdraw(self, account_id: AccountId, amount: int) -> Transaction:
        return await self._engine.withdraw(account_id, amount)

    async def transfer(self, account_id: AccountId, to_account_id: AccountId, amount: int) -> Transaction:
        """Transfer from the acting account to another account."""
        return await self._engine.transfer(account_id, to_account_id, amount)

    async def list_transactions(self, account_id: AccountId) -> TransactionHistory:
        return await self._engine.list_transactions(account_id)

    async def get_transaction(self, account_id: AccountId, transaction_id: int) -> Transaction:
        return await self._engine.get_transaction(account_id, transaction_id)

    async def health_check(self) -> bool:
        return await self._storage.health_check()

    async def close(self) -> None:
        await self._storage.close()
