"""Smoke runner for the refresh path against a running stub backend.

Steps:
- wait for server health
- register a throwaway user (session kept in memory only)
- confirm the fresh access token works
- wait for the access token to expire (start the stub with a short ACCESS_TTL_MS)
- fire N concurrent requests that all hit 401 and must share one refresh
- emit a compact summary and exit code
"""
from __future__ import annotations

import asyncio
import secrets
import time

import httpx

from panel_client.client import AuthClient
from panel_client.config import ClientSettings
from panel_client.guard import RecordingNavigator
from panel_client.logging_conf import get_logger
from panel_client.store import MemoryStorage
from panel_client.utils import SmokeError, summarize

logger = get_logger("panel_client.smoke")


async def wait_for_health(base_url: str, timeout_s: float = 20.0) -> None:
    """Ping /health until it returns ok or raise after a timeout."""
    deadline = time.monotonic() + timeout_s
    async with httpx.AsyncClient(base_url=base_url, timeout=5.0) as client:
        while time.monotonic() < deadline:
            try:
                r = await client.get("/health")
                if r.status_code == 200 and r.json().get("ok") is True:
                    logger.info("health.ok", extra={"event": "health_ok"})
                    return
            except httpx.TransportError:
                pass
            await asyncio.sleep(0.25)
    raise SmokeError("Health check did not pass within timeout")


async def run_smoke(
    *, base_url: str, concurrency: int = 8, expiry_wait_s: float = 1.5, timeout_s: float = 20.0
) -> int:
    await wait_for_health(base_url, timeout_s)
    navigator = RecordingNavigator()
    settings = ClientSettings(api_base=base_url, timeout_s=timeout_s)
    async with AuthClient.create(settings, storage=MemoryStorage(), navigator=navigator) as client:
        email = f"smoke-{secrets.token_hex(4)}@example.test"
        await client.register(email, secrets.token_urlsafe(12))
        warmup = await client.get("/api/me")
        if warmup.status_code != 200:
            raise SmokeError(f"fresh session rejected: HTTP {warmup.status_code}")

        await asyncio.sleep(expiry_wait_s)
        started = time.monotonic()
        results = await asyncio.gather(
            *(client.get("/api/sites") for _ in range(concurrency)), return_exceptions=True
        )
        elapsed_ms = (time.monotonic() - started) * 1000.0

        summary, exit_code = summarize(
            results=results,
            refresh_count=client.coordinator.refresh_count,
            redirects=navigator.redirects,
            elapsed_ms=elapsed_ms,
        )
    logger.info("runner.summary", extra=summary)
    return exit_code

