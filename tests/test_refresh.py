from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from panel_client.refresh import RefreshCoordinator
from panel_client.store import MemoryStorage, TokenStore
from panel_client.types import (
    MalformedResponse,
    NetworkFailure,
    NoRefreshToken,
    RefreshRejected,
    Session,
)

from .conftest import BASE_URL


@pytest.fixture
async def http():
    async with httpx.AsyncClient(base_url=BASE_URL) as c:
        yield c


@pytest.fixture
def coordinator(http, store) -> RefreshCoordinator:
    return RefreshCoordinator(http, store)


async def test_success_replaces_both_tokens(api, coordinator, store) -> None:
    store.write(Session("old", "ref1"))
    api.post("/api/auth/refresh").mock(
        return_value=httpx.Response(200, json={"accessToken": "tok2", "refreshToken": "ref2"})
    )

    token = await coordinator.refresh()

    assert token == "tok2"
    assert store.read() == Session("tok2", "ref2")
    assert coordinator.refresh_count == 1
    assert not coordinator.in_flight


async def test_no_refresh_token_skips_network(api, coordinator, storage) -> None:
    storage.save({"accessToken": "old"})
    route = api.post("/api/auth/refresh")

    with pytest.raises(NoRefreshToken):
        await coordinator.refresh()

    assert not route.called
    assert coordinator.refresh_count == 0


async def test_rejection_carries_status_and_leaves_store(api, coordinator, store) -> None:
    store.write(Session("old", "ref1"))
    api.post("/api/auth/refresh").mock(return_value=httpx.Response(401))

    with pytest.raises(RefreshRejected) as exc_info:
        await coordinator.refresh()

    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "refresh_rejected"
    assert store.read() == Session("old", "ref1")


@pytest.mark.parametrize(
    "body",
    [
        {"accessToken": "tok2"},
        {"refreshToken": "ref2"},
        {"accessToken": None, "refreshToken": "ref2"},
        ["tok2", "ref2"],
    ],
)
async def test_incomplete_body_is_malformed(api, coordinator, store, body) -> None:
    store.write(Session("old", "ref1"))
    api.post("/api/auth/refresh").mock(return_value=httpx.Response(200, json=body))

    with pytest.raises(MalformedResponse):
        await coordinator.refresh()

    assert store.read() == Session("old", "ref1")


async def test_non_json_body_is_malformed(api, coordinator, store) -> None:
    store.write(Session("old", "ref1"))
    api.post("/api/auth/refresh").mock(return_value=httpx.Response(200, text="ok"))

    with pytest.raises(MalformedResponse):
        await coordinator.refresh()


async def test_undecodable_body_is_malformed(store) -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(
            200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"not-gzip")
        )
    )
    store.write(Session("old", "ref1"))
    async with httpx.AsyncClient(base_url=BASE_URL, transport=transport) as http:
        coordinator = RefreshCoordinator(http, store)
        with pytest.raises(MalformedResponse):
            await coordinator.refresh()

    assert store.read() == Session("old", "ref1")
    assert not coordinator.in_flight


async def test_transport_error_is_network_failure(api, coordinator, store) -> None:
    store.write(Session("old", "ref1"))
    api.post("/api/auth/refresh").mock(side_effect=httpx.ReadTimeout("slow"))

    with pytest.raises(NetworkFailure):
        await coordinator.refresh()


async def test_sequential_refreshes_each_hit_the_network(api, coordinator, store) -> None:
    store.write(Session("old", "ref1"))
    route = api.post("/api/auth/refresh").mock(
        side_effect=[
            httpx.Response(200, json={"accessToken": "tok2", "refreshToken": "ref2"}),
            httpx.Response(200, json={"accessToken": "tok3", "refreshToken": "ref3"}),
        ]
    )

    assert await coordinator.refresh() == "tok2"
    assert await coordinator.refresh() == "tok3"

    assert route.call_count == 2
    assert json.loads(route.calls[1].request.content) == {"refreshToken": "ref2"}
    assert store.read() == Session("tok3", "ref3")


def _slow_refresh_backend(status_code: int = 200):
    calls: list[dict] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        await asyncio.sleep(0.01)
        if status_code != 200:
            return httpx.Response(status_code)
        return httpx.Response(200, json={"accessToken": "tok2", "refreshToken": "ref2"})

    return httpx.MockTransport(handler), calls


async def test_concurrent_callers_share_one_exchange() -> None:
    transport, calls = _slow_refresh_backend()
    store = TokenStore(MemoryStorage({"accessToken": "old", "refreshToken": "ref1"}))
    async with httpx.AsyncClient(base_url=BASE_URL, transport=transport) as http:
        coordinator = RefreshCoordinator(http, store)
        tokens = await asyncio.gather(*(coordinator.refresh() for _ in range(5)))

    assert tokens == ["tok2"] * 5
    assert calls == [{"refreshToken": "ref1"}]
    assert coordinator.refresh_count == 1


async def test_concurrent_callers_share_one_failure() -> None:
    transport, calls = _slow_refresh_backend(status_code=401)
    store = TokenStore(MemoryStorage({"accessToken": "old", "refreshToken": "ref1"}))
    async with httpx.AsyncClient(base_url=BASE_URL, transport=transport) as http:
        coordinator = RefreshCoordinator(http, store)
        outcomes = await asyncio.gather(
            *(coordinator.refresh() for _ in range(3)), return_exceptions=True
        )

    assert len(calls) == 1
    assert all(isinstance(o, RefreshRejected) for o in outcomes)
    assert outcomes[0] is outcomes[1] is outcomes[2]
    assert not coordinator.in_flight
