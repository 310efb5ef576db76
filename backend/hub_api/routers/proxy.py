"""Range-aware media relay endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from ..dependencies import get_app_state
from ..state import AppState

router = APIRouter(tags=["proxy"])


@router.get("/proxy", summary="Relay media bytes with Range support")
async def proxy_media(
    request: Request,
    url: str | None = Query(default=None, description="Absolute http(s) media URL."),
    referer: str | None = Query(default=None, description="Referer sent upstream."),
    app_state: AppState = Depends(get_app_state),
) -> StreamingResponse:
    """Forward the upstream status code, byte-serving headers and body unchanged."""

    relay = await app_state.proxy.open(
        url,
        referer=referer,
        range_header=request.headers.get("range"),
    )
    return StreamingResponse(relay.body, status_code=relay.status_code, headers=relay.headers)
