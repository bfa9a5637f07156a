"""
Type definitions for OmniLedger.

Enums, records and value types shared by the storage layer, the
ledger engine and the client facade. Amounts and balances are plain
``int`` values in the smallest currency unit.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeAlias

AccountId: TypeAlias = int


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionKind(str, Enum):
    """Kinds of money movement recorded in the transaction log."""

    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"


class CasResult(str, Enum):
    """Outcome of a compare-and-set on one or more stored balances."""

    OK = "ok"
    CONFLICT = "conflict"  # Stored value no longer matches the expected one
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Account:
    """
    An account identity with its current balance.

    Attributes:
        id: Account identifier, allocated from a global sequence
        balance: Non-negative balance in the smallest currency unit
        created_at: When the account was opened
    """

    id: AccountId
    balance: int = 0
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            # Strings survive every backend's JSON round-trip unchanged
            "balance": str(self.balance),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Account:
        """Create Account from dictionary."""
        ts_str = data.get("created_at")
        return cls(
            id=int(data["id"]),
            balance=int(data.get("balance", "0")),
            created_at=datetime.fromisoformat(ts_str) if ts_str else utcnow(),
        )


@dataclass(frozen=True)
class Transaction:
    """
    An immutable record of one completed money movement.

    Deposits and withdrawals are stored with ``from_id == to_id``; the
    ``kind`` field is what tells them apart from a transfer.

    Attributes:
        id: Position in the global, strictly increasing log sequence
        kind: Deposit, withdraw or transfer
        from_id: Source account
        to_id: Destination account
        amount: Positive amount in the smallest currency unit
        at: Commit timestamp
    """

    id: int
    kind: TransactionKind
    from_id: AccountId
    to_id: AccountId
    amount: int
    at: datetime = field(default_factory=utcnow)

    @property
    def is_self_operation(self) -> bool:
        return self.from_id == self.to_id

    def involves(self, account_id: AccountId) -> bool:
        """Check whether the account is the source or destination."""
        return account_id in (self.from_id, self.to_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "from": self.from_id,
            "to": self.to_id,
            "amount": str(self.amount),
            "at": self.at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        """Create Transaction from dictionary."""
        return cls(
            id=int(data["id"]),
            kind=TransactionKind(data["kind"]),
            from_id=int(data["from"]),
            to_id=int(data["to"]),
            amount=int(data["amount"]),
            at=datetime.fromisoformat(data["at"]),
        )

    def to_view(self) -> dict[str, Any]:
        """
        Render the externally visible form of the record.

        ``from``/``to`` are left out when they are equal, since they only
        carry meaning for a transfer between two different accounts.
        """
        view: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "amount": self.amount,
            "at": self.at.isoformat(),
        }
        if not self.is_self_operation:
            view["from"] = self.from_id
            view["to"] = self.to_id
        return view


class TransactionHistory(Sequence[Transaction]):
    """
    Snapshot of an account's transactions, ordered by id ascending.

    The matching records are collected once from the log; iterating the
    history again starts over from the first record and never sees
    transactions committed after the snapshot was taken.
    """

    def __init__(self, account_id: AccountId, transactions: Iterable[Transaction]) -> None:
        self.account_id = account_id
        self._items = tuple(sorted(transactions, key=lambda t: t.id))

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):  # type: ignore[override]
        return self._items[index]

    def __repr__(self) -> str:
        return f"TransactionHistory(account_id={self.account_id}, count={len(self._items)})"

    def to_views(self) -> list[dict[str, Any]]:
        return [t.to_view() for t in self._items]
