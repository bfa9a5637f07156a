"""
Ledger module - balances, transaction log and the engine that moves money.

All components share one StorageBackend.
"""

from omniledger.ledger.accounts import AccountStore
from omniledger.ledger.engine import LedgerEngine, validate_amount
from omniledger.ledger.history import HistoryService
from omniledger.ledger.lock import AccountLockService
from omniledger.ledger.log import TransactionLog

__all__ = [
    "AccountStore",
    "AccountLockService",
    "HistoryService",
    "LedgerEngine",
    "TransactionLog",
    "validate_amount",
]
