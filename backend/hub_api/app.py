"""Application factory for the Streamhub API."""
from __future__ import annotations

import logging
import traceback
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..providers.errors import ExecutionError, ProviderError
from .routers import content, diagnostics, fallback, health, providers, proxy, stream, transcode
from .settings import HubSettings
from .state import AppState

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


async def handle_provider_error(request: Request, exc: ProviderError) -> JSONResponse:
    """Render any provider failure as the shared JSON error envelope."""

    settings: HubSettings = request.app.state.settings
    payload = exc.to_payload()
    if isinstance(exc, ExecutionError) and exc.cause is not None and not settings.is_production:
        payload.setdefault("details", "".join(traceback.format_exception(exc.cause)))
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s answered %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=payload)


def create_app(
    settings: HubSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""

    resolved_settings = settings or HubSettings()
    configure_logging(resolved_settings.log_level)
    app_state = AppState(settings=resolved_settings, transport=transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await app_state.aclose()

    app = FastAPI(title="Streamhub API", version=resolved_settings.version, lifespan=lifespan)
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Length", "Content-Range", "Accept-Ranges", "Content-Type"],
    )
    app.add_exception_handler(ProviderError, handle_provider_error)

    for router in (
        health.router,
        providers.router,
        stream.router,
        fallback.router,
        proxy.router,
        transcode.router,
        content.router,
        diagnostics.router,
    ):
        app.include_router(router)

    return app
