"""
In-Memory Storage Backend.

Default storage backend that keeps all data in memory.
Suitable for development and testing, but not for production.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Mapping
from contextlib import ExitStack
from copy import deepcopy
from typing import Any

from omniledger.core.types import CasResult
from omniledger.storage.base import StorageBackend, register_storage_backend


class InMemoryStorage(StorageBackend):
    """
    In-memory storage backend.

    Stores all data in Python dicts. Data is lost when process ends.
    Documents map onto a fixed pool of lock stripes by key hash, so a
    compare-and-set is atomic even when the storage is shared with worker
    threads, and the number of locks does not grow with the data.
    """

    LOCK_STRIPES = 64

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._sequences: dict[str, int] = {}
        self._locks: dict[str, tuple[str, float]] = {}
        self._stripes = [threading.Lock() for _ in range(self.LOCK_STRIPES)]
        self._guard = threading.Lock()

    def _ensure_collection(self, collection: str) -> dict[str, dict[str, Any]]:
        """Ensure collection exists and return it."""
        with self._guard:
            return self._data.setdefault(collection, {})

    def _stripe(self, collection: str, key: str) -> int:
        return hash((collection, key)) % self.LOCK_STRIPES

    def _key_lock(self, collection: str, key: str) -> threading.Lock:
        return self._stripes[self._stripe(collection, key)]

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
    ) -> None:
        """Save data to memory."""
        coll = self._ensure_collection(collection)
        with self._key_lock(collection, key):
            coll[key] = deepcopy(data)

    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        """Get data from memory."""
        coll = self._ensure_collection(collection)
        with self._key_lock(collection, key):
            data = coll.get(key)
            return deepcopy(data) if data is not None else None

    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        """Delete data from memory."""
        coll = self._ensure_collection(collection)
        with self._key_lock(collection, key):
            return coll.pop(key, None) is not None

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query data with optional filters."""
        coll = self._ensure_collection(collection)
        with self._guard:
            snapshot = list(coll.items())

        results = []
        for key, data in snapshot:
            if filters and any(data.get(k) != v for k, v in filters.items()):
                continue

            # Include key in result
            result = deepcopy(data)
            result["_key"] = key
            results.append(result)

        results = results[offset:]
        if limit is not None:
            results = results[:limit]

        return results

    async def update(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
    ) -> bool:
        """Update existing data."""
        coll = self._ensure_collection(collection)
        with self._key_lock(collection, key):
            if key not in coll:
                return False
            coll[key].update(deepcopy(data))
            return True

    async def count(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
    ) -> int:
        """Count records in collection."""
        if filters:
            results = await self.query(collection, filters)
            return len(results)

        return len(self._ensure_collection(collection))

    async def clear(self, collection: str) -> int:
        """Clear all records from a collection."""
        coll = self._ensure_collection(collection)
        with self._guard:
            count = len(coll)
            coll.clear()
        return count

    async def compare_and_set_many(
        self,
        collection: str,
        field: str,
        changes: Mapping[str, tuple[str, str]],
    ) -> CasResult:
        """Check every expected value, then write every new value, under the key locks."""
        coll = self._ensure_collection(collection)
        # Keys can share a stripe; each stripe is taken once, lowest index first
        stripes = sorted({self._stripe(collection, key) for key in changes})
        with ExitStack() as stack:
            for index in stripes:
                stack.enter_context(self._stripes[index])

            for key, (expected, _new) in changes.items():
                data = coll.get(key)
                if data is None:
                    return CasResult.NOT_FOUND
                if str(data.get(field)) != expected:
                    return CasResult.CONFLICT

            for key, (_expected, new) in changes.items():
                coll[key][field] = new

        return CasResult.OK

    async def next_sequence(self, name: str) -> int:
        """Increment and return a counter."""
        with self._guard:
            value = self._sequences.get(name, 0) + 1
            self._sequences[name] = value
            return value

    async def acquire_lock(
        self,
        key: str,
        ttl: int = 30,
    ) -> str | None:
        """Acquire lock (simple in-memory implementation)."""
        now = time.time()
        with self._guard:
            held = self._locks.get(key)
            # Expired locks are free to take over
            if held is not None and now < held[1]:
                return None

            token = str(uuid.uuid4())
            self._locks[key] = (token, now + ttl)
            return token

    async def release_lock(
        self,
        key: str,
        token: str | None = None,
    ) -> bool:
        """Release lock if the token matches the current owner."""
        with self._guard:
            held = self._locks.get(key)
            if held is None:
                return False
            if token is not None and held[0] != token:
                return False
            del self._locks[key]
            return True


# Register as default backend
register_storage_backend("memory", InMemoryStorage)
