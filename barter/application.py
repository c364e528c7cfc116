"""FastAPI application factory and bootstrap helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from barter.api.routes import include_api_routes
from barter.config import settings
from barter.errors import BarterError
from barter.services.storage.redis_client import close_redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events."""
    logger.info("Barter API starting (environment=%s)", settings.ENVIRONMENT)
    try:
        yield
    finally:
        await close_redis_client()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Barter Marketplace",
        description="Bid ledger and notification service for product swaps",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    _configure_cors(app)
    _register_error_handlers(app)
    include_api_routes(app)

    return app


def _configure_cors(app: FastAPI) -> None:
    """Allow broad access in non-production environments."""

    if settings.is_production:
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _register_error_handlers(app: FastAPI) -> None:
    """Render domain errors with their HTTP status instead of a 500."""

    @app.exception_handler(BarterError)
    async def _handle_barter_error(request: Request, exc: BarterError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.http_status,
            content={
                "code": exc.code,
                "error": type(exc).__name__,
                "detail": exc.message,
            },
        )
