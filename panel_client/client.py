"""Authenticated API client.

Every call goes through `AuthClient.request`, which walks a small state machine:

    initial -> attempt_1 -> done
                         -> refreshing -> attempt_2 (returned whatever its status)
                                       -> invalidated (first response returned)

The two suspension points are the network calls in attempt_1/attempt_2 and the
refresh exchange. There is no path from attempt_2 back into refreshing. If a
refresh settled while attempt_1 was on the wire, the stored token already
differs from the one sent and attempt_2 uses it without another exchange.
"""
from __future__ import annotations

import json
from types import TracebackType
from typing import Any
from urllib.parse import urlsplit

import httpx

from panel_client.config import LOGIN_PATH, REFRESH_PATH, REGISTER_PATH, ClientSettings
from panel_client.guard import Navigator, RecordingNavigator, SessionGuard
from panel_client.logging_conf import get_logger
from panel_client.refresh import RefreshCoordinator
from panel_client.store import FileStorage, Storage, TokenStore
from panel_client.types import (
    CredentialsRejected,
    NetworkFailure,
    RefreshError,
    RequestState,
    Session,
    TokenPair,
)

__all__ = ["AuthClient"]

logger = get_logger("panel_client.client")


class AuthClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        store: TokenStore,
        coordinator: RefreshCoordinator,
        guard: SessionGuard,
        *,
        refresh_path: str = REFRESH_PATH,
    ) -> None:
        self._http = http
        self.store = store
        self.coordinator = coordinator
        self.guard = guard
        self.refresh_path = refresh_path
        self._invalidated_by: RefreshError | None = None

    @classmethod
    def create(
        cls,
        settings: ClientSettings,
        *,
        storage: Storage | None = None,
        navigator: Navigator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AuthClient:
        """Wire a client and its collaborators around one httpx.AsyncClient.

        - `storage` defaults to the JSON session file from settings
        - `navigator` defaults to one that only counts redirects
        - `transport` is handed to httpx (tests pass MockTransport/ASGITransport)
        """
        http = httpx.AsyncClient(
            base_url=settings.api_base,
            timeout=settings.timeout_s,
            transport=transport,
        )
        store = TokenStore(storage if storage is not None else FileStorage(settings.session_file))
        coordinator = RefreshCoordinator(http, store, refresh_path=settings.refresh_path)
        guard = SessionGuard(store, navigator if navigator is not None else RecordingNavigator())
        return cls(http, store, coordinator, guard, refresh_path=settings.refresh_path)

    async def __aenter__(self) -> AuthClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------
    # Requests
    # ------------------------

    def _is_refresh_path(self, path: str) -> bool:
        return urlsplit(path).path.rstrip("/") == self.refresh_path.rstrip("/")

    @staticmethod
    def _build_headers(headers: dict[str, str] | None, access_token: str | None) -> httpx.Headers:
        out = httpx.Headers({"Content-Type": "application/json"})
        out.update(headers or {})
        if access_token:
            out["Authorization"] = f"Bearer {access_token}"
        return out

    async def _send(
        self, method: str, path: str, headers: httpx.Headers, options: dict[str, Any]
    ) -> httpx.Response:
        try:
            return await self._http.request(method, path, headers=headers, **options)
        except httpx.RequestError as e:
            logger.warning(
                "request.network_error",
                extra={"event": "request_network_error", "method": method, "path": path, "error": str(e)},
            )
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        **options: Any,
    ) -> httpx.Response:
        """Send a request with the stored bearer token, refreshing once on 401.

        - `options` (json, content, params, ...) go to httpx untouched
        - A 401 from the refresh endpoint itself is returned as-is
        - If the refresh fails the session is invalidated and the first response returned
        - httpx request failures of either attempt raise NetworkFailure
        """
        session = self.store.read()
        req_headers = self._build_headers(headers, session.access_token)

        first = await self._send(method, path, req_headers, options)
        if first.status_code != 401 or self._is_refresh_path(path):
            self._log_outcome(RequestState.done, method, path, first)
            return first

        try:
            new_token = self._rotated_since(session.access_token)
            if new_token is None:
                new_token = await self.coordinator.refresh()
        except RefreshError as e:
            logger.info(
                "request.refresh_failed",
                extra={"event": "request_refresh_failed", "path": path, "error_code": e.code},
            )
            # Callers that joined one failed refresh all see the same exception object.
            if e is not self._invalidated_by:
                self._invalidated_by = e
                self.guard.invalidate()
            self._log_outcome(RequestState.invalidated, method, path, first)
            return first

        req_headers["Authorization"] = f"Bearer {new_token}"
        second = await self._send(method, path, req_headers, options)
        self._log_outcome(RequestState.attempt_2, method, path, second)
        return second

    def _rotated_since(self, sent_token: str | None) -> str | None:
        """Return the stored access token if a settled refresh replaced `sent_token`."""
        if self.coordinator.in_flight:
            return None
        current = self.store.read().access_token
        if current and current != sent_token:
            logger.debug("request.reuse_rotated", extra={"event": "request_reuse_rotated"})
            return current
        return None

    @staticmethod
    def _log_outcome(state: RequestState, method: str, path: str, resp: httpx.Response) -> None:
        logger.debug(
            "request.end",
            extra={
                "event": "request_end",
                "state": state.value,
                "method": method,
                "path": path,
                "status_code": resp.status_code,
            },
        )

    async def get(self, path: str, **options: Any) -> httpx.Response:
        return await self.request(path, method="GET", **options)

    async def post(self, path: str, **options: Any) -> httpx.Response:
        return await self.request(path, method="POST", **options)

    async def put(self, path: str, **options: Any) -> httpx.Response:
        return await self.request(path, method="PUT", **options)

    async def delete(self, path: str, **options: Any) -> httpx.Response:
        return await self.request(path, method="DELETE", **options)

    # ------------------------
    # Session lifecycle
    # ------------------------

    def is_authenticated(self) -> bool:
        return self.guard.is_authenticated()

    async def _establish(self, path: str, email: str, password: str) -> Session:
        try:
            resp = await self._http.post(
                path,
                json={"email": email, "password": password},
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            raise NetworkFailure(f"POST {path} failed: {e}") from e
        if not resp.is_success:
            raise CredentialsRejected(resp.status_code, _error_message(resp))
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CredentialsRejected(resp.status_code, "response is not JSON") from e
        session = TokenPair.parse_body(data).to_session()
        self.store.write(session)
        logger.info("session.established", extra={"event": "session_established", "path": path})
        return session

    async def login(self, email: str, password: str) -> Session:
        """Log in and store the initial token pair."""
        return await self._establish(LOGIN_PATH, email, password)

    async def register(self, email: str, password: str) -> Session:
        """Create an account and store the initial token pair."""
        return await self._establish(REGISTER_PATH, email, password)

    def logout(self) -> None:
        """Forget the stored session without redirecting."""
        self.store.clear()
        logger.info("session.logout", extra={"event": "session_logout"})


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return resp.text
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return resp.text
