"""Tests for InMemoryStorage."""

import asyncio
import threading

import pytest

from omniledger.core.types import CasResult
from omniledger.storage import InMemoryStorage, get_storage, list_storage_backends


class TestDocuments:
    @pytest.mark.asyncio
    async def test_save_and_get_copies(self, storage):
        doc = {"balance": "10"}
        await storage.save("accounts", "1", doc)
        doc["balance"] = "99"

        stored = await storage.get("accounts", "1")
        assert stored == {"balance": "10"}

        stored["balance"] = "77"
        assert (await storage.get("accounts", "1"))["balance"] == "10"

    @pytest.mark.asyncio
    async def test_get_missing(self, storage):
        assert await storage.get("accounts", "nope") is None

    @pytest.mark.asyncio
    async def test_query_filters_and_key(self, storage):
        await storage.save("transactions", "1", {"from": 1, "to": 2})
        await storage.save("transactions", "2", {"from": 2, "to": 2})
        await storage.save("transactions", "3", {"from": 1, "to": 1})

        results = await storage.query("transactions", filters={"from": 1})

        assert sorted(r["_key"] for r in results) == ["1", "3"]

    @pytest.mark.asyncio
    async def test_query_limit_offset(self, storage):
        for i in range(5):
            await storage.save("c", str(i), {"n": i})

        results = await storage.query("c", offset=1, limit=2)
        assert [r["n"] for r in results] == [1, 2]

    @pytest.mark.asyncio
    async def test_update_delete_count_clear(self, storage):
        await storage.save("c", "a", {"x": 1})

        assert await storage.update("c", "a", {"y": 2}) is True
        assert await storage.update("c", "missing", {"y": 2}) is False
        assert await storage.get("c", "a") == {"x": 1, "y": 2}
        assert await storage.count("c") == 1

        assert await storage.delete("c", "a") is True
        assert await storage.delete("c", "a") is False

        await storage.save("c", "b", {})
        assert await storage.clear("c") == 1
        assert await storage.count("c") == 0


class TestCompareAndSet:
    @pytest.mark.asyncio
    async def test_single_ok(self, storage):
        await storage.save("accounts", "1", {"balance": "100"})

        result = await storage.compare_and_set("accounts", "1", "balance", "100", "150")

        assert result is CasResult.OK
        assert (await storage.get("accounts", "1"))["balance"] == "150"

    @pytest.mark.asyncio
    async def test_single_conflict_leaves_value(self, storage):
        await storage.save("accounts", "1", {"balance": "100"})

        result = await storage.compare_and_set("accounts", "1", "balance", "90", "150")

        assert result is CasResult.CONFLICT
        assert (await storage.get("accounts", "1"))["balance"] == "100"

    @pytest.mark.asyncio
    async def test_single_not_found(self, storage):
        result = await storage.compare_and_set("accounts", "1", "balance", "0", "1")

        assert result is CasResult.NOT_FOUND

    @pytest.mark.asyncio
    async def test_many_is_all_or_nothing(self, storage):
        await storage.save("accounts", "1", {"balance": "50"})
        await storage.save("accounts", "2", {"balance": "100"})

        result = await storage.compare_and_set_many(
            "accounts",
            "balance",
            {"1": ("50", "40"), "2": ("99", "110")},
        )

        assert result is CasResult.CONFLICT
        assert (await storage.get("accounts", "1"))["balance"] == "50"
        assert (await storage.get("accounts", "2"))["balance"] == "100"

    @pytest.mark.asyncio
    async def test_many_not_found_writes_nothing(self, storage):
        await storage.save("accounts", "1", {"balance": "50"})

        result = await storage.compare_and_set_many(
            "accounts",
            "balance",
            {"1": ("50", "40"), "2": ("0", "10")},
        )

        assert result is CasResult.NOT_FOUND
        assert (await storage.get("accounts", "1"))["balance"] == "50"

    @pytest.mark.asyncio
    async def test_keys_sharing_a_stripe(self, storage):
        first = "1"
        second = next(
            str(i)
            for i in range(2, 10_000)
            if storage._stripe("accounts", str(i)) == storage._stripe("accounts", first)
        )
        await storage.save("accounts", first, {"balance": "50"})
        await storage.save("accounts", second, {"balance": "0"})

        result = await storage.compare_and_set_many(
            "accounts",
            "balance",
            {first: ("50", "30"), second: ("0", "20")},
        )

        assert result is CasResult.OK
        assert (await storage.get("accounts", second))["balance"] == "20"

    @pytest.mark.asyncio
    async def test_lock_pool_does_not_grow(self, storage):
        for i in range(500):
            await storage.save("transactions", str(i), {"amount": "1"})
            await storage.get("transactions", f"missing-{i}")
        await storage.clear("transactions")

        assert len(storage._stripes) == InMemoryStorage.LOCK_STRIPES

    def test_threads_never_lose_updates(self):
        storage = InMemoryStorage()
        asyncio.run(storage.save("accounts", "1", {"balance": "0"}))
        per_thread = 100

        def worker():
            done = 0
            while done < per_thread:
                current = asyncio.run(storage.get("accounts", "1"))["balance"]
                result = asyncio.run(
                    storage.compare_and_set("accounts", "1", "balance", current, str(int(current) + 1))
                )
                if result is CasResult.OK:
                    done += 1

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        final = asyncio.run(storage.get("accounts", "1"))
        assert final["balance"] == str(4 * per_thread)


class TestSequences:
    @pytest.mark.asyncio
    async def test_starts_at_one_and_increases(self, storage):
        assert await storage.next_sequence("transactions") == 1
        assert await storage.next_sequence("transactions") == 2
        assert await storage.next_sequence("accounts") == 1


class TestLocks:
    @pytest.mark.asyncio
    async def test_lock_tokens(self, storage):
        token = await storage.acquire_lock("lock:account:1", ttl=30)
        assert token is not None
        assert await storage.acquire_lock("lock:account:1", ttl=30) is None

        assert await storage.release_lock("lock:account:1", "wrong-token") is False
        assert await storage.release_lock("lock:account:1", token) is True
        assert await storage.release_lock("lock:account:1", token) is False

    @pytest.mark.asyncio
    async def test_expired_lock_can_be_taken(self, storage):
        assert await storage.acquire_lock("k", ttl=0) is not None
        assert await storage.acquire_lock("k", ttl=30) is not None


class TestRegistry:
    def test_memory_is_registered(self):
        assert "memory" in list_storage_backends()
        assert "redis" in list_storage_backends()
        assert isinstance(get_storage("memory"), InMemoryStorage)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            get_storage("postgres")
