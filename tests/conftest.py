import asyncio

import pytest

from omniledger.ledger.engine import LedgerEngine
from omniledger.storage.memory import InMemoryStorage


class YieldingStorage(InMemoryStorage):
    """
    In-memory storage that hands control back to the event loop after every read.

    Plain InMemoryStorage never suspends, so concurrent tasks would run
    one after another. Yielding between the read and the caller's commit
    lets other tasks read the same balance first, which is the race the
    engine has to survive.
    """

    async def get(self, collection, key):
        data = await super().get(collection, key)
        await asyncio.sleep(0)
        return data


@pytest.fixture
def storage():
    """Provides memory storage."""
    return InMemoryStorage()


@pytest.fixture
def racy_storage():
    """Provides memory storage that interleaves concurrent readers."""
    return YieldingStorage()


@pytest.fixture
def engine(storage):
    return LedgerEngine(storage)


@pytest.fixture
def open_accounts(engine):
    """Open accounts with the given balances and return their ids."""

    async def _open(*balances):
        return [(await engine.open_account(balance)).id for balance in balances]

    return _open
