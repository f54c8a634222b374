from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from _helpers import FakeSyncTransport, make_config

from pymobilepush.client import PushClient
from pymobilepush.state.store import MemoryStateStore


@pytest.fixture
def transport() -> FakeSyncTransport:
    return FakeSyncTransport()


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest_asyncio.fixture
async def client(transport: FakeSyncTransport, store: MemoryStateStore) -> AsyncIterator[PushClient]:
    async with PushClient(make_config(), store=store, sync_transport=transport) as push_client:
        yield push_client
