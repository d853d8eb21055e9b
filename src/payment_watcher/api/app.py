"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from payment_watcher import __version__
from payment_watcher.api.routes import router as watch_router
from payment_watcher.config.settings import AppConfig
from payment_watcher.engine.client import WatcherEngine
from payment_watcher.errors.watcher_errors import WatcherError
from payment_watcher.metrics.collector import WatcherMetrics
from payment_watcher.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Connects the engine to the node and the webhook sink on startup; cancels
    in-flight watches and closes connections on exit.
    """
    config: AppConfig = app.state.config
    engine = WatcherEngine(config, metrics=app.state.metrics)

    try:
        await engine.initialize()
        app.state.engine = engine
        logger.info("Watcher engine initialized")
        yield
    finally:
        await engine.close()
        app.state.engine = None
        logger.info("Watcher engine shut down")


def create_app(*, config: AppConfig | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="payment-watcher",
        version=__version__,
        description="Watch Bitcoin addresses for payments and report via webhook",
        lifespan=_lifespan,
    )

    app.state.config = config
    app.state.metrics = WatcherMetrics()

    # -- Error handlers --
    @app.exception_handler(WatcherError)
    async def _watcher_error_handler(request: Request, exc: WatcherError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"code": "invalid-request", "message": str(exc.errors())},
        )

    # -- Base routes --
    @app.get("/", tags=["base"], response_class=PlainTextResponse)
    async def index() -> str:
        return "Hello World"

    @app.get("/health", tags=["base"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    if config.metrics.enabled:

        @app.get("/metrics", tags=["base"], include_in_schema=False)
        async def metrics_endpoint() -> Response:
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(app.state.metrics.registry),
                media_type="text/plain; version=0.0.4; charset=utf-8",
            )

        app.add_middleware(PrometheusMiddleware, registry=app.state.metrics.registry)

    app.include_router(watch_router)

    return app
