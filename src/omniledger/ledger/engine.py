"""
Ledger Engine.

Moves money between account balances and records every movement in the
transaction log. Balances only change through compare-and-set: each
operation reads, validates against what it read, and commits on the
condition that nothing changed in between. Lost races are retried a
bounded number of times.

An operation is reported as successful only once both the balance
change and the log record are stored. If the balances commit but the
record cannot be appended, the operation fails with
InconsistentStateError and is logged at CRITICAL for reconciliation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING

from omniledger.core.exceptions import (
    AccountNotFoundError,
    BalanceConflictError,
    InconsistentStateError,
    InsufficientFundsError,
    InvalidAmountError,
)
from omniledger.core.logging import get_logger
from omniledger.core.types import (
    Account,
    AccountId,
    CasResult,
    Transaction,
    TransactionHistory,
    TransactionKind,
)
from omniledger.ledger.accounts import AccountStore
from omniledger.ledger.history import HistoryService
from omniledger.ledger.lock import AccountLockService
from omniledger.ledger.log import TransactionLog
from omniledger.resilience.retry import execute_with_conflict_retry

if TYPE_CHECKING:
    from omniledger.storage.base import StorageBackend


def validate_amount(amount: object) -> int:
    """
    Check that an amount is a positive integer of minor units.

    Raises:
        InvalidAmountError: For zero, negative or non-integer amounts
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {amount!r}", amount=amount)
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}", amount=amount)
    return amount


class LedgerEngine:
    """
    Deposit, withdraw and transfer over an AccountStore and TransactionLog.

    Args:
        storage: Backend shared by balances, the log and locks
        max_conflict_retries: Compare-and-set attempts per operation
        lock_service: If given, accounts are also locked (lowest id
            first) for the whole read-validate-commit cycle
    """

    def __init__(
        self,
        storage: StorageBackend,
        max_conflict_retries: int = 5,
        lock_service: AccountLockService | None = None,
    ) -> None:
        self._accounts = AccountStore(storage)
        self._log = TransactionLog(storage)
        self._history = HistoryService(self._log)
        self._max_attempts = max_conflict_retries
        self._lock_service = lock_service
        self._logger = get_logger("engine")

    @property
    def accounts(self) -> AccountStore:
        return self._accounts

    @property
    def log(self) -> TransactionLog:
        return self._log

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def open_account(self, initial_balance: int = 0) -> Account:
        return await self._accounts.open_account(initial_balance)

    async def get_balance(self, account_id: AccountId) -> int:
        return await self._accounts.get_balance(account_id)

    # ------------------------------------------------------------------
    # Money movement
    # ------------------------------------------------------------------

    async def deposit(self, account_id: AccountId, amount: int) -> Transaction:
        """
        Add money to an account.

        Raises:
            InvalidAmountError: If amount is not a positive integer
            AccountNotFoundError: If the account does not exist
            TransientConflictError: If the retry budget was exhausted
            InconsistentStateError: If the balance committed but the record did not
        """
        validate_amount(amount)

        async def cycle() -> int:
            balance = await self._accounts.get_balance(account_id)
            return await self._commit({account_id: (balance, balance + amount)})

        transaction_id = await self._run((account_id,), cycle)
        return await self._record(TransactionKind.DEPOSIT, account_id, account_id, amount, transaction_id)

    async def withdraw(self, account_id: AccountId, amount: int) -> Transaction:
        """
        Take money out of an account.

        The funds check is made against the same balance the
        compare-and-set commits against, so a balance that drops between
        read and commit is caught by the conflict and checked again.

        Raises:
            InvalidAmountError: If amount is not a positive integer
            AccountNotFoundError: If the account does not exist
            InsufficientFundsError: If the balance is below amount
            TransientConflictError: If the retry budget was exhausted
            InconsistentStateError: If the balance committed but the record did not
        """
        validate_amount(amount)

        async def cycle() -> int:
            balance = await self._accounts.get_balance(account_id)
            self._check_funds(account_id, balance, amount)
            return await self._commit({account_id: (balance, balance - amount)})

        transaction_id = await self._run((account_id,), cycle)
        return await self._record(TransactionKind.WITHDRAW, account_id, account_id, amount, transaction_id)

    async def transfer(self, from_id: AccountId, to_id: AccountId, amount: int) -> Transaction:
        """
        Move money from one account to another.

        Both balances change in a single compare-and-set over the two
        accounts, handed to storage in ascending id order. A transfer to
        the same account leaves the balance as it is but still needs
        sufficient funds and is recorded. Its funds check is confirmed by
        a compare-and-set that writes back the balance it read.

        Raises:
            InvalidAmountError: If amount is not a positive integer
            AccountNotFoundError: If either account does not exist
            InsufficientFundsError: If the source balance is below amount
            TransientConflictError: If the retry budget was exhausted
            InconsistentStateError: If the balances committed but the record did not
        """
        validate_amount(amount)

        if from_id == to_id:

            async def cycle() -> int:
                balance = await self._accounts.get_balance(from_id)
                self._check_funds(from_id, balance, amount)
                return await self._commit({from_id: (balance, balance)})

        else:

            async def cycle() -> int:
                from_balance = await self._accounts.get_balance(from_id)
                to_balance = await self._accounts.get_balance(to_id)
                self._check_funds(from_id, from_balance, amount)
                return await self._commit(
                    {
                        from_id: (from_balance, from_balance - amount),
                        to_id: (to_balance, to_balance + amount),
                    }
                )

        transaction_id = await self._run((from_id, to_id), cycle)
        return await self._record(TransactionKind.TRANSFER, from_id, to_id, amount, transaction_id)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def list_transactions(self, account_id: AccountId) -> TransactionHistory:
        return await self._history.list_transactions(account_id)

    async def get_transaction(self, account_id: AccountId, transaction_id: int) -> Transaction:
        return await self._history.get_transaction(account_id, transaction_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(
        self,
        account_ids: tuple[AccountId, ...],
        cycle: Callable[[], Awaitable[int]],
    ) -> int:
        """Run a cycle under the retry budget and return the transaction id it committed with."""
        async with AsyncExitStack() as stack:
            if self._lock_service is not None:
                await stack.enter_async_context(self._lock_service.hold(*account_ids))
            return await execute_with_conflict_retry(cycle, max_attempts=self._max_attempts)

    def _check_funds(self, account_id: AccountId, balance: int, amount: int) -> None:
        if balance < amount:
            self._logger.warning(
                f"Insufficient funds on account {account_id}: balance {balance}, required {amount}"
            )
            raise InsufficientFundsError(
                f"Insufficient funds on account {account_id}",
                current_balance=balance,
                required_amount=amount,
                account_id=account_id,
            )

    async def _commit(self, changes: Mapping[AccountId, tuple[int, int]]) -> int:
        """
        Reserve a transaction id, then compare-and-set the balances.

        The id is drawn after the balances were read, so any operation
        that commits on these accounts in between makes this
        compare-and-set conflict and the retry draws a later id.

        Returns:
            The reserved transaction id
        """
        transaction_id = await self._log.reserve_id()
        result = await self._accounts.compare_and_set_balances(changes)
        if result is CasResult.CONFLICT:
            raise BalanceConflictError(
                "Balance changed before commit",
                account_ids=tuple(sorted(changes)),
            )
        if result is CasResult.NOT_FOUND:
            raise AccountNotFoundError(f"Accounts {sorted(changes)} not all found")
        return transaction_id

    async def _record(
        self,
        kind: TransactionKind,
        from_id: AccountId,
        to_id: AccountId,
        amount: int,
        transaction_id: int,
    ) -> Transaction:
        fields = {
            "transaction_id": transaction_id,
            "kind": kind.value,
            "account_ids": [from_id, to_id],
            "amount": amount,
        }
        try:
            transaction = await self._log.append(kind, from_id, to_id, amount, transaction_id)
        except Exception as e:
            self._logger.critical(
                f"RECONCILE: {kind.value} #{transaction_id} of {amount} between accounts "
                f"{from_id} -> {to_id} committed to balances but the transaction record failed: {e}",
                extra=fields,
            )
            raise InconsistentStateError(
                "Balances committed but the transaction could not be recorded",
                kind=kind.value,
                account_ids=(from_id, to_id),
                amount=amount,
            ) from e

        self._logger.info(
            f"Committed {kind.value} #{transaction.id}: {amount} ({from_id} -> {to_id})",
            extra=fields,
        )
        return transaction
