"""
Exception hierarchy for OmniLedger.

All ledger-specific exceptions inherit from OmniLedgerError for easy catching.
"""

from __future__ import annotations

from typing import Any


class OmniLedgerError(Exception):
    """
    Base exception for all OmniLedger errors.

    Catch this to handle any ledger-related exception.

    Example:
        >>> try:
        ...     await ledger.withdraw(account_id, 500)
        ... except OmniLedgerError as e:
        ...     print(f"Ledger error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(OmniLedgerError):
    """
    Configuration is missing or invalid.

    Raised when:
    - A storage backend cannot be constructed from the configuration
    - Environment variables hold values that cannot be parsed
    """

    pass


class StorageError(OmniLedgerError):
    """
    Storage backend failed to read or write.

    Raised when:
    - A stored document is malformed
    - The backend returned an unexpected result
    """

    pass


class ValidationError(OmniLedgerError):
    """
    Input validation error.

    Raised when:
    - Required parameters are missing
    - Parameter values are invalid
    """

    pass


class InvalidAmountError(ValidationError):
    """
    Amount is not a positive whole number of minor currency units.

    Raised before any storage access, never retried.
    """

    def __init__(self, message: str, amount: Any = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.amount = amount


class AccountNotFoundError(OmniLedgerError):
    """No account exists with the given identifier."""

    def __init__(
        self,
        message: str,
        account_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.account_id = account_id


class InsufficientFundsError(OmniLedgerError):
    """
    Account balance is lower than the amount being moved out of it.

    Raised when:
    - Withdraw amount exceeds the balance at commit time
    - Transfer amount exceeds the source balance at commit time

    The check is made against the same balance snapshot that the
    compare-and-set commits against, so it is never retried.
    """

    def __init__(
        self,
        message: str,
        current_balance: int,
        required_amount: int,
        account_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.current_balance = current_balance
        self.required_amount = required_amount
        self.account_id = account_id
        self.shortfall = required_amount - current_balance

    def __str__(self) -> str:
        return (
            f"{self.message} | "
            f"Balance: {self.current_balance}, Required: {self.required_amount}, "
            f"Shortfall: {self.shortfall}"
        )


class BalanceConflictError(OmniLedgerError):
    """
    A concurrent writer changed a balance between read and commit.

    Internal to the engine: it drives the retry loop and is converted
    to TransientConflictError once the retry budget is spent.
    """

    def __init__(
        self,
        message: str,
        account_ids: tuple[int, ...] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.account_ids = account_ids


class TransientConflictError(OmniLedgerError):
    """
    The operation kept losing races and gave up.

    Raised when:
    - Every compare-and-set attempt in the retry budget hit a conflict
    - Account locks could not be acquired in pessimistic lock mode

    Safe to retry from the caller: nothing was written.
    """

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.attempts = attempts


class AccessDeniedError(OmniLedgerError):
    """
    Caller may not see the requested transaction.

    Raised both when the transaction belongs to other accounts and when
    it does not exist at all, so existence is never revealed.
    """

    def __init__(self, message: str = "access denied") -> None:
        super().__init__(message)


class InconsistentStateError(OmniLedgerError):
    """
    Balances were committed but the transaction record could not be appended.

    This is a correctness gap that needs manual reconciliation. The
    append failure is chained as ``__cause__``. The engine neither
    retries the append nor rolls back the balances.
    """

    def __init__(
        self,
        message: str,
        kind: str,
        account_ids: tuple[int, ...],
        amount: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.kind = kind
        self.account_ids = account_ids
        self.amount = amount
