from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from typing import AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from querybridge.apps.api.errors import (
    domain_exception_handler,
    http_exception_handler,
    starlette_http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from querybridge.apps.api.response import API_VERSION, mark_request_start
from querybridge.apps.api.routes.activity import router as activity_router
from querybridge.apps.api.routes.database import router as database_router
from querybridge.apps.api.routes.health import router as health_router
from querybridge.apps.api.routes.queries import router as queries_router
from querybridge.apps.api.routes.stats import router as stats_router
from querybridge.core.config import get_settings
from querybridge.core.errors import QueryBridgeError
from querybridge.core.logging import configure_logging
from querybridge.persistence.db import Database
from querybridge.providers.describer.factory import load_table_describer


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Own the shared metadata-store engine for the process lifetime unless one was injected.
    owned = getattr(app.state, "database", None) is None
    if owned:
        app.state.database = Database.from_settings()
    if getattr(app.state, "describer", None) is None:
        app.state.describer = load_table_describer()
    logger.info("app_started dialect=%s", app.state.database.dialect_name)
    try:
        yield
    finally:
        await app.state.describer.aclose()
        app.state.describer = None
        if owned:
            await app.state.database.dispose()
            app.state.database = None
        logger.info("app_stopped")


def create_app(database: Database | None = None) -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="QueryBridge API", version=API_VERSION, lifespan=lifespan)
    app.state.database = database
    app.state.describer = None

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        mark_request_start(request, request_id)
        response = await call_next(request)
        latency_ms = (time.monotonic() - request.state.started_at) * 1000.0
        logger.info(
            "request_complete method=%s path=%s status=%s latency_ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(QueryBridgeError)
    async def _domain_exception_handler(request: Request, exc: QueryBridgeError):
        return await domain_exception_handler(request, exc)

    app.include_router(health_router, prefix=f"/{API_VERSION}")
    app.include_router(database_router, prefix=f"/{API_VERSION}")
    app.include_router(queries_router, prefix=f"/{API_VERSION}")
    app.include_router(stats_router, prefix=f"/{API_VERSION}")
    app.include_router(activity_router, prefix=f"/{API_VERSION}")

    logger.debug("app_created name=%s", settings.app_name)
    return app


app = create_app()
