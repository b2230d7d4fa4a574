from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from panel_client.logging_conf import get_logger
from panel_client.store import TokenStore

__all__ = ["Navigator", "CallbackNavigator", "RecordingNavigator", "SessionGuard"]

logger = get_logger("panel_client.guard")


class Navigator(Protocol):
    def go_to_login(self) -> None: ...


class CallbackNavigator:
    """Adapts a plain callable to the Navigator port."""

    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback = callback

    def go_to_login(self) -> None:
        self._callback()


class RecordingNavigator:
    """Counts redirects instead of performing them."""

    def __init__(self) -> None:
        self.redirects = 0

    def go_to_login(self) -> None:
        self.redirects += 1


class SessionGuard:
    """Answers "is there a session?" and tears one down when it is unusable."""

    def __init__(self, store: TokenStore, navigator: Navigator) -> None:
        self._store = store
        self._navigator = navigator

    def is_authenticated(self) -> bool:
        """True iff an access token is stored. Expiry is not checked."""
        return self._store.read().has_access_token

    def invalidate(self) -> None:
        """Clear the session, then send the user to the login entry point.

        Never raises: a failing navigator is logged and ignored.
        """
        self._store.clear()
        logger.info("session.invalidated", extra={"event": "session_invalidated"})
        try:
            self._navigator.go_to_login()
        except Exception:
            logger.exception("session.redirect_failed", extra={"event": "redirect_failed"})
