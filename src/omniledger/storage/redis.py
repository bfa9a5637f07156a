"""
Redis Storage Backend.

Production-ready storage backend using Redis for persistence.
Compare-and-set runs as a Lua script so the check and the write are a
single atomic step on the server.
"""

from __future__ import annotations

import json
import os
import uuid
from collections.abc import Mapping
from typing import Any

import redis.asyncio as redis

from omniledger.core.exceptions import StorageError
from omniledger.core.types import CasResult
from omniledger.storage.base import StorageBackend, register_storage_backend


class RedisStorage(StorageBackend):
    """
    Redis storage backend.

    Documents are JSON strings under ``prefix:collection:key`` with a set
    index per collection. Suitable for production and for sharing one
    ledger between several processes.
    """

    # KEYS: documents in lock order. ARGV[1]: field, then expected/new pairs.
    _CAS_SCRIPT = """
    local field = ARGV[1]
    local docs = {}
    for i, key in ipairs(KEYS) do
        local raw = redis.call("GET", key)
        if not raw then
            return "not_found"
        end
        local doc = cjson.decode(raw)
        if tostring(doc[field]) ~= ARGV[2 * i] then
            return "conflict"
        end
        docs[i] = doc
    end
    for i, key in ipairs(KEYS) do
        docs[i][field] = ARGV[2 * i + 1]
        redis.call("SET", key, cjson.encode(docs[i]))
    end
    return "ok"
    """

    # Lua script for safe lock release: only delete if token matches
    _RELEASE_LOCK_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "omniledger",
    ) -> None:
        """
        Initialize Redis storage.

        Args:
            redis_url: Redis connection URL (or from OMNILEDGER_REDIS_URL env)
            prefix: Key prefix for all storage keys
        """
        self._redis_url = redis_url or os.environ.get(
            "OMNILEDGER_REDIS_URL",
            "redis://localhost:6379/0",
        )
        self._prefix = prefix
        self._client = None

    def _get_client(self):
        """Lazy-create the Redis client."""
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _make_key(self, collection: str, key: str) -> str:
        """Create Redis key from collection and key."""
        return f"{self._prefix}:{collection}:{key}"

    def _index_key(self, collection: str) -> str:
        return f"{self._prefix}:{collection}:_index"

    def _decode(self, redis_key: str, raw: str) -> dict[str, Any]:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Malformed document at {redis_key}", details={"error": str(e)}) from e

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
    ) -> None:
        """Save data to Redis."""
        client = self._get_client()
        async with client.pipeline(transaction=True) as pipe:
            pipe.set(self._make_key(collection, key), json.dumps(data))
            pipe.sadd(self._index_key(collection), key)
            await pipe.execute()

    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        """Get data from Redis."""
        client = self._get_client()
        redis_key = self._make_key(collection, key)
        raw = await client.get(redis_key)
        if raw is None:
            return None
        return self._decode(redis_key, raw)

    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        """Delete data from Redis."""
        client = self._get_client()
        result = await client.delete(self._make_key(collection, key))
        await client.srem(self._index_key(collection), key)
        return result > 0

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query data with optional filters."""
        client = self._get_client()
        keys = sorted(await client.smembers(self._index_key(collection)))
        if not keys:
            return []

        redis_keys = [self._make_key(collection, key) for key in keys]
        raw_values = await client.mget(redis_keys)

        results = []
        for key, redis_key, raw in zip(keys, redis_keys, raw_values):
            if raw is None:
                continue
            data = self._decode(redis_key, raw)
            if filters and any(data.get(k) != v for k, v in filters.items()):
                continue
            data["_key"] = key
            results.append(data)

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
        existing = await self.get(collection, key)
        if existing is None:
            return False

        existing.update(data)
        await self.save(collection, key, existing)
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

        client = self._get_client()
        return await client.scard(self._index_key(collection))

    async def clear(self, collection: str) -> int:
        """Clear all records from a collection."""
        client = self._get_client()
        keys = await client.smembers(self._index_key(collection))

        for key in keys:
            await self.delete(collection, key)

        return len(keys)

    async def compare_and_set_many(
        self,
        collection: str,
        field: str,
        changes: Mapping[str, tuple[str, str]],
    ) -> CasResult:
        """Run the compare-and-set script over every key in one server call."""
        client = self._get_client()
        redis_keys = [self._make_key(collection, key) for key in changes]
        args: list[str] = [field]
        for expected, new in changes.values():
            args.extend((expected, new))

        result = await client.eval(self._CAS_SCRIPT, len(redis_keys), *redis_keys, *args)
        try:
            return CasResult(result)
        except ValueError:
            raise StorageError(f"Unexpected compare-and-set result: {result!r}") from None

    async def next_sequence(self, name: str) -> int:
        """INCR is atomic and starts from 1 on a missing key."""
        client = self._get_client()
        return int(await client.incr(f"{self._prefix}:_seq:{name}"))

    async def acquire_lock(
        self,
        key: str,
        ttl: int = 30,
    ) -> str | None:
        """
        Acquire a distributed lock with ownership token (Redis SET NX).

        Args:
            key: Lock key (e.g. "lock:account:42")
            ttl: TTL in seconds

        Returns:
            Unique ownership token if acquired, None if already held
        """
        client = self._get_client()
        token = str(uuid.uuid4())

        # SET key token NX EX ttl
        result = await client.set(f"{self._prefix}:locks:{key}", token, nx=True, ex=ttl)
        if result:
            return token
        return None

    async def release_lock(
        self,
        key: str,
        token: str | None = None,
    ) -> bool:
        """
        Release a lock safely using Lua script.

        Only deletes the key if the stored value matches our token,
        preventing accidental release of another caller's lock.
        """
        client = self._get_client()
        redis_key = f"{self._prefix}:locks:{key}"

        if token:
            result = await client.eval(self._RELEASE_LOCK_SCRIPT, 1, redis_key, token)
            return int(result) > 0

        result = await client.delete(redis_key)
        return result > 0

    async def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            client = self._get_client()
            await client.ping()
            return True
        except redis.RedisError:
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


# Register backend
register_storage_backend("redis", RedisStorage)
