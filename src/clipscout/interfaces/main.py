from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from clipscout.infrastructure.config import AppConfig
from clipscout.interfaces.app_state import AppState
from clipscout.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def build_app(config: AppConfig) -> FastAPI:
    """Build FastAPI app: configuration only, no resource initialization.

    Resources (HTTP client, cache, browser pool, resolver) are created in
    lifespan().
    """
    app = FastAPI(
        title="clipscout",
        description="Resolves Twitch clip pages to direct media asset URLs",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from clipscout.interfaces.api.resolve.router import router as resolve_router

    app.include_router(resolve_router, prefix="/api/v1")

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                query=str(request.url.query),
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
