from __future__ import annotations

import asyncio
import json

import httpx

from panel_client.config import REFRESH_PATH
from panel_client.logging_conf import get_logger
from panel_client.store import TokenStore
from panel_client.types import (
    MalformedResponse,
    NetworkFailure,
    NoRefreshToken,
    RefreshRejected,
    TokenPair,
)

__all__ = ["RefreshCoordinator"]

logger = get_logger("panel_client.refresh")


class RefreshCoordinator:
    """Exchanges the stored refresh token for a new pair, one exchange at a time.

    Refresh tokens are single-use, so concurrent callers must never each send
    their own exchange. The first caller starts the task; everyone arriving
    while it is pending awaits the same task and gets the same outcome. The
    slot is emptied when the task settles, after which a new exchange may start.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        store: TokenStore,
        *,
        refresh_path: str = REFRESH_PATH,
    ) -> None:
        self._http = http
        self._store = store
        self.refresh_path = refresh_path
        self._inflight: asyncio.Task[str] | None = None
        self.refresh_count = 0

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def refresh(self) -> str:
        """Return a fresh access token or raise a RefreshError subclass."""
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._run())
            self._inflight = task
        else:
            logger.debug("refresh.join", extra={"event": "refresh_join"})
        return await asyncio.shield(task)

    async def _run(self) -> str:
        try:
            return await self._exchange()
        finally:
            self._inflight = None

    async def _exchange(self) -> str:
        refresh_token = self._store.read().refresh_token
        if not refresh_token:
            logger.info("refresh.no_token", extra={"event": "refresh_no_token"})
            raise NoRefreshToken("No refresh token stored")

        self.refresh_count += 1
        logger.info("refresh.start", extra={"event": "refresh_start"})
        try:
            resp = await self._http.post(
                self.refresh_path,
                json={"refreshToken": refresh_token},
                headers={"Content-Type": "application/json"},
            )
        except httpx.DecodingError as e:
            logger.warning(
                "refresh.undecodable",
                extra={"event": "refresh_undecodable", "error": str(e)},
            )
            raise MalformedResponse(f"Refresh response could not be decoded: {e}") from e
        except httpx.RequestError as e:
            logger.warning(
                "refresh.network_error",
                extra={"event": "refresh_network_error", "error": str(e)},
            )
            raise NetworkFailure(f"Refresh request failed: {e}") from e

        if not resp.is_success:
            logger.warning(
                "refresh.rejected",
                extra={"event": "refresh_rejected", "status_code": resp.status_code},
            )
            raise RefreshRejected(resp.status_code)

        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponse("Refresh response is not JSON") from e
        pair = TokenPair.parse_body(data)

        self._store.write(pair.to_session())
        logger.info("refresh.ok", extra={"event": "refresh_ok"})
        return pair.access_token
