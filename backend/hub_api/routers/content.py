"""Catalogue pass-through endpoints backed by provider modules."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...providers.content import ProviderContentService
from ...providers.signals import AbortSignal
from ..dependencies import get_abort_signal, get_content_service, require_params

router = APIRouter(tags=["content"])


@router.get("/posts", summary="List posts of a catalogue section")
async def get_posts(
    provider: str | None = Query(default=None),
    filter: str = Query(default=""),
    page: int = Query(default=1, ge=1),
    service: ProviderContentService = Depends(get_content_service),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    require_params(provider=provider)
    return {"data": await service.posts(provider, filter, page=page, signal=signal)}


@router.get("/search", summary="Search a provider")
async def search_posts(
    provider: str | None = Query(default=None),
    q: str | None = Query(default=None, description="Search query."),
    page: int = Query(default=1, ge=1),
    service: ProviderContentService = Depends(get_content_service),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    require_params(provider=provider, q=q)
    return {"data": await service.search(provider, q, page=page, signal=signal)}


@router.get("/info", summary="Metadata for a content link")
async def get_info(
    provider: str | None = Query(default=None),
    link: str | None = Query(default=None),
    service: ProviderContentService = Depends(get_content_service),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    require_params(provider=provider, link=link)
    return {"data": await service.meta(provider, link, signal=signal)}


@router.get("/episodes", summary="Episode links of a season page")
async def get_episodes(
    provider: str | None = Query(default=None),
    url: str | None = Query(default=None),
    service: ProviderContentService = Depends(get_content_service),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    require_params(provider=provider, url=url)
    return {"data": await service.episodes(provider, url, signal=signal)}


@router.get("/home", summary="Catalogue plus the first page of its leading sections")
async def get_home(
    provider: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    service: ProviderContentService = Depends(get_content_service),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    require_params(provider=provider)
    return await service.home(provider, page=page, signal=signal)
