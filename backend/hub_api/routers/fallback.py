"""Generic stream fallback endpoint."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...providers.errors import FallbackExhaustedError
from ...providers.proxy import require_http_url
from ...providers.signals import AbortSignal
from ..dependencies import get_abort_signal, get_app_state
from ..state import AppState

router = APIRouter(tags=["stream"])


@router.get("/stream-fallback", summary="Find direct or embedded streams on any page")
async def stream_fallback(
    link: str | None = Query(default=None),
    url: str | None = Query(default=None, description="Alias of link."),
    type: str = Query(default="movie"),
    app_state: AppState = Depends(get_app_state),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    target = require_http_url(link or url)
    candidates = await app_state.fallback_resolver.resolve(target, type=type, signal=signal)
    if not candidates:
        raise FallbackExhaustedError("No streams found")
    return {
        "data": [candidate.model_dump(exclude_none=True) for candidate in candidates],
        "source": "stream-fallback",
    }
