"""
Storage backend interface.

Every persistence backend implements the document operations used by the
ledger components plus three primitives the ledger engine relies on for
correctness: compare-and-set on stored fields, global sequences and
ownership-token locks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from omniledger.core.types import CasResult

_BACKENDS: dict[str, type[StorageBackend]] = {}


class StorageBackend(ABC):
    """
    Abstract async storage backend.

    Data is organised as collections of JSON-compatible documents keyed
    by string. Implementations must make ``compare_and_set_many``,
    ``next_sequence`` and ``acquire_lock`` atomic with respect to every
    other caller of the same backend.
    """

    @abstractmethod
    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        """Create or replace a document."""

    @abstractmethod
    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get a document, or None if missing."""

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """Delete a document. Returns True if it existed."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Query documents whose fields equal every filter value.

        Each result carries its storage key under ``_key``.
        """

    @abstractmethod
    async def update(self, collection: str, key: str, data: dict[str, Any]) -> bool:
        """Merge fields into an existing document. Returns False if missing."""

    @abstractmethod
    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        """Count documents in a collection."""

    @abstractmethod
    async def clear(self, collection: str) -> int:
        """Remove every document in a collection. Returns the number removed."""

    async def compare_and_set(
        self,
        collection: str,
        key: str,
        field: str,
        expected: str,
        new: str,
    ) -> CasResult:
        """
        Set ``field`` to ``new`` only if it still equals ``expected``.

        Values are compared as strings.
        """
        return await self.compare_and_set_many(collection, field, {key: (expected, new)})

    @abstractmethod
    async def compare_and_set_many(
        self,
        collection: str,
        field: str,
        changes: Mapping[str, tuple[str, str]],
    ) -> CasResult:
        """
        Apply ``key -> (expected, new)`` changes to ``field`` all-or-nothing.

        Keys are locked in the order given, so callers must pass them in a
        fixed global order. Returns NOT_FOUND if any document is missing
        and CONFLICT if any stored value differs from its expected value;
        nothing is written in either case.
        """

    @abstractmethod
    async def next_sequence(self, name: str) -> int:
        """Return the next value of a global counter, starting at 1."""

    @abstractmethod
    async def acquire_lock(self, key: str, ttl: int = 30) -> str | None:
        """Acquire a lock. Returns an ownership token, or None if held."""

    @abstractmethod
    async def release_lock(self, key: str, token: str | None = None) -> bool:
        """Release a lock held under ``token``."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release backend resources."""


def register_storage_backend(name: str, backend_class: type[StorageBackend]) -> None:
    """Register a backend class under a configuration name."""
    _BACKENDS[name] = backend_class


def get_storage_backend(name: str) -> type[StorageBackend] | None:
    return _BACKENDS.get(name)


def list_storage_backends() -> list[str]:
    return sorted(_BACKENDS)
