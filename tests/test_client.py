"""Tests for the OmniLedger client facade."""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from omniledger import OmniLedger
from omniledger.core.config import Config
from omniledger.core.exceptions import ConfigurationError, InsufficientFundsError
from omniledger.storage import InMemoryStorage, RedisStorage


@pytest.fixture
def client():
    return OmniLedger(config=Config(), storage=InMemoryStorage(), log_level=logging.WARNING)


class TestSetup:
    def test_default_storage_from_config(self):
        client = OmniLedger(config=Config(), log_level=logging.WARNING)

        assert isinstance(client.storage, InMemoryStorage)
        assert client.config.lock_mode == "optimistic"

    def test_redis_storage_from_config(self):
        config = Config(storage_backend="redis", redis_url="redis://cache:6379/1", redis_prefix="bank")
        client = OmniLedger(config=config, log_level=logging.WARNING)

        assert isinstance(client.storage, RedisStorage)
        assert client.storage._redis_url == "redis://cache:6379/1"
        assert client.storage._prefix == "bank"

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError, match="Unknown storage backend"):
            OmniLedger(config=Config(storage_backend="postgres"), log_level=logging.WARNING)

    def test_pessimistic_mode_wires_locks(self):
        config = Config(lock_mode="pessimistic")
        client = OmniLedger(config=config, storage=InMemoryStorage(), log_level=logging.WARNING)

        assert client.engine._lock_service is not None

    def test_configures_logging(self):
        OmniLedger(config=Config(), storage=InMemoryStorage(), log_level="DEBUG")

        logger = logging.getLogger("omniledger")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.propagate is False


class TestOperations:
    @pytest.mark.asyncio
    async def test_full_scenario(self, client):
        a = (await client.open_account(100)).id
        b = (await client.open_account()).id

        deposit = await client.deposit(a, 50)
        assert await client.get_balance(a) == 150
        assert deposit.to_view()["kind"] == "deposit"

        with pytest.raises(InsufficientFundsError):
            await client.withdraw(a, 200)
        assert await client.get_balance(a) == 150

        transfer = await client.transfer(a, b, 100)
        assert await client.get_balance(a) == 50
        assert await client.get_balance(b) == 100

        history = await client.list_transactions(a)
        assert [t.id for t in history] == [deposit.id, transfer.id]
        assert await client.get_transaction(b, transfer.id) == transfer

    @pytest.mark.asyncio
    async def test_health_and_close(self):
        storage = InMemoryStorage()
        client = OmniLedger(config=Config(), storage=storage, log_level=logging.WARNING)

        assert await client.health_check() is True

        with patch.object(storage, "close", AsyncMock()) as close:
            await client.close()
        close.assert_awaited_once()
