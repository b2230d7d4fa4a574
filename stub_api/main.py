"""FastAPI app factory for the stub backend: health, auth and sites routes."""
from __future__ import annotations

import os
import time
from collections.abc import Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stub_api.api import router as api_router
from stub_api.logging_conf import get_logger, setup_logging
from stub_api.service.auth_service import AuthFailure, AuthService, StubSettings, now_ms

# Configure logging before anything else.
setup_logging()
logger = get_logger("app")


def create_app(
    settings: StubSettings | None = None, clock: Callable[[], int] | None = None
) -> FastAPI:
    app = FastAPI(
        title="Admin panel backend (stub)",
        version=os.getenv("APP_VERSION", "0.1.0"),
    )
    app.state.auth = AuthService(
        settings=settings or StubSettings.from_env(),
        clock=clock or now_ms,
    )

    @app.exception_handler(AuthFailure)
    async def _auth_failure(request: Request, exc: AuthFailure) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "invalid request"})

    @app.middleware("http")
    async def request_logger(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """JSON request logging with correlation id.

        - If the client sends X-Request-ID we propagate it; otherwise we mint one
        - Logs method/path/status/elapsed_ms once the response is ready
        """
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.error",
                extra={
                    "event": "request_error",
                    "path": request.url.path,
                    "method": request.method,
                    "request_id": request_id,
                },
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request.end",
            extra={
                "event": "request_end",
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed_ms, 2),
                "request_id": request_id,
            },
        )
        return response

    @app.get("/health", summary="Liveness/readiness check")
    async def health() -> JSONResponse:
        return JSONResponse(content={"ok": True})

    app.include_router(api_router)
    return app


def serve() -> None:
    """Console entry point: run the stub with uvicorn on $HOST:$PORT."""
    import uvicorn

    uvicorn.run(
        "stub_api.main:create_app",
        factory=True,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8080")),
        log_config=None,
    )
