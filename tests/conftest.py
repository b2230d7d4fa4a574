from __future__ import annotations

import pytest
import respx

from panel_client.client import AuthClient
from panel_client.config import ClientSettings
from panel_client.guard import RecordingNavigator
from panel_client.store import MemoryStorage, TokenStore

BASE_URL = "http://panel.test"


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage) -> TokenStore:
    return TokenStore(storage)


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(api_base=BASE_URL, timeout_s=5.0)


@pytest.fixture
def api():
    """respx router scoped to the test backend; unmatched requests fail loudly."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
        yield mock


@pytest.fixture
async def client(settings: ClientSettings, storage: MemoryStorage, navigator: RecordingNavigator):
    c = AuthClient.create(settings, storage=storage, navigator=navigator)
    yield c
    await c.aclose()
