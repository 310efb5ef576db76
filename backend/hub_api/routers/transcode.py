"""Best-effort relay endpoint trying several request shapes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ...providers.proxy import UpstreamRelay
from ..dependencies import get_app_state
from ..state import AppState

router = APIRouter(tags=["proxy"])


@router.get("/transcode", summary="Relay media, falling back to alternate headers or page extraction")
async def transcode_media(
    request: Request,
    url: str | None = Query(default=None),
    link: str | None = Query(default=None, description="Alias of url."),
    referer: str | None = Query(default=None),
    method: str = Query(default="auto", description="auto, direct, alternative or extract."),
    app_state: AppState = Depends(get_app_state),
):
    method_used, outcome = await app_state.transcode.open(
        url or link,
        referer=referer,
        range_header=request.headers.get("range"),
        method=method,
    )
    if not isinstance(outcome, UpstreamRelay):
        return JSONResponse(content=outcome)
    headers = dict(outcome.headers)
    headers["x-transcode-method"] = method_used
    return StreamingResponse(outcome.body, status_code=outcome.status_code, headers=headers)
