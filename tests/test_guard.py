from __future__ import annotations

from panel_client.guard import CallbackNavigator, RecordingNavigator, SessionGuard
from panel_client.store import MemoryStorage, TokenStore
from panel_client.types import Session


def test_authenticated_is_presence_of_access_token(store, navigator) -> None:
    guard = SessionGuard(store, navigator)
    assert not guard.is_authenticated()

    store.write(Session("not-even-a-jwt", "ref1"))
    assert guard.is_authenticated()


def test_refresh_token_alone_is_not_authenticated(navigator) -> None:
    store = TokenStore(MemoryStorage({"refreshToken": "ref1"}))
    assert not SessionGuard(store, navigator).is_authenticated()


def test_invalidate_clears_then_navigates(store) -> None:
    store.write(Session("tok1", "ref1"))
    seen: list[Session] = []
    guard = SessionGuard(store, CallbackNavigator(lambda: seen.append(store.read())))

    guard.invalidate()

    assert seen == [Session(None, None)]
    assert store.read() == Session(None, None)


def test_invalidate_swallows_navigator_errors(store) -> None:
    def broken() -> None:
        raise RuntimeError("navigation unavailable")

    store.write(Session("tok1", "ref1"))
    SessionGuard(store, CallbackNavigator(broken)).invalidate()
    assert store.read() == Session(None, None)


def test_recording_navigator_counts() -> None:
    nav = RecordingNavigator()
    guard = SessionGuard(TokenStore(MemoryStorage()), nav)
    guard.invalidate()
    guard.invalidate()
    assert nav.redirects == 2
