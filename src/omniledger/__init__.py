"""
OmniLedger - Account balances and transaction history that never lose money

Deposits, withdrawals and transfers commit through compare-and-set, so
concurrent callers cannot overwrite each other's balance updates.

Usage:
    >>> from omniledger import OmniLedger
    >>>
    >>> ledger = OmniLedger()
    >>> alice = await ledger.open_account()
    >>> bob = await ledger.open_account()
    >>> await ledger.deposit(alice.id, 100)
    >>> await ledger.transfer(alice.id, bob.id, 40)
    >>> [t.to_view() for t in await ledger.list_transactions(alice.id)]
"""

from omniledger.client import OmniLedger
from omniledger.core.config import Config
from omniledger.core.exceptions import (
    AccessDeniedError,
    AccountNotFoundError,
    ConfigurationError,
    InconsistentStateError,
    InsufficientFundsError,
    InvalidAmountError,
    OmniLedgerError,
    StorageError,
    TransientConflictError,
    ValidationError,
)
from omniledger.core.types import (
    Account,
    CasResult,
    Transaction,
    TransactionHistory,
    TransactionKind,
)
from omniledger.ledger import LedgerEngine

__version__ = "0.1.0"
__all__ = [
    # Main Client
    "OmniLedger",
    "LedgerEngine",
    # Types
    "Account",
    "CasResult",
    "Transaction",
    "TransactionHistory",
    "TransactionKind",
    # Config
    "Config",
    # Exceptions
    "OmniLedgerError",
    "ConfigurationError",
    "StorageError",
    "ValidationError",
    "InvalidAmountError",
    "AccountNotFoundError",
    "InsufficientFundsError",
    "TransientConflictError",
    "AccessDeniedError",
    "InconsistentStateError",
]
