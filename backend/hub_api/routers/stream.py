"""Stream resolution endpoint."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...providers.resolution import StreamResolutionService
from ...providers.signals import AbortSignal
from ..dependencies import get_abort_signal, get_resolution_service, require_params

router = APIRouter(tags=["stream"])


@router.get("/stream", summary="Resolve a content link to playable streams")
async def resolve_stream(
    provider: str | None = Query(default=None, description="Provider identifier or alias."),
    link: str | None = Query(default=None, description="Content page link handed to get_stream."),
    type: str = Query(default="movie", description="Content type, e.g. movie or series."),
    refresh: bool = Query(default=False, description="Bypass the module cache."),
    cache_age: int | None = Query(default=None, description="Client cache age in milliseconds."),
    service: StreamResolutionService = Depends(get_resolution_service),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    """Return ``{"data": [candidate, ...], "source": ...}`` for the link."""

    require_params(provider=provider, link=link)
    result = await service.resolve(
        provider,
        link,
        type=type,
        signal=signal,
        refresh=refresh,
        cache_age=cache_age,
    )
    return result.to_payload()
