"""FastAPI dependencies for the Streamhub API."""
from __future__ import annotations

import asyncio
from typing import AsyncIterator

from fastapi import Depends, Request

from ..providers.content import ProviderContentService
from ..providers.diagnostics import ProviderDiagnostics
from ..providers.errors import AbortedError, InvalidRequestError
from ..providers.resolution import StreamResolutionService
from ..providers.signals import AbortSignal
from .settings import HubSettings
from .state import AppState

DISCONNECT_POLL_SECONDS = 0.5


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_settings(app_state: AppState = Depends(get_app_state)) -> HubSettings:
    return app_state.settings


def get_resolution_service(app_state: AppState = Depends(get_app_state)) -> StreamResolutionService:
    return app_state.resolution


def get_content_service(app_state: AppState = Depends(get_app_state)) -> ProviderContentService:
    return app_state.content


def get_diagnostics(app_state: AppState = Depends(get_app_state)) -> ProviderDiagnostics:
    return app_state.diagnostics


async def _watch_disconnect(request: Request, signal: AbortSignal) -> None:
    while not signal.aborted:
        if await request.is_disconnected():
            signal.abort(AbortedError("Client disconnected"))
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def get_abort_signal(request: Request) -> AsyncIterator[AbortSignal]:
    """Provide a per-request signal that fires when the client goes away."""

    signal = AbortSignal()
    watcher = asyncio.create_task(_watch_disconnect(request, signal))
    try:
        yield signal
    finally:
        watcher.cancel()


def require_params(**params: str | None) -> None:
    """Raise a 400 envelope naming every missing query parameter."""

    missing = [name for name, value in params.items() if not value]
    if missing:
        raise InvalidRequestError(
            f"Missing required parameters: {', '.join(missing)}",
            suggestions=[f"Provide the {name} query parameter" for name in missing],
        )
