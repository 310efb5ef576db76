"""Thin pass-throughs from listing endpoints to provider modules."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import AbortedError, ExecutionError
from .resolution import ProviderModules
from .signals import AbortSignal

logger = logging.getLogger(__name__)

HOME_SECTION_LIMIT = 4


class ProviderContentService:
    """Posts, search, metadata, episodes and the home page of a provider."""

    def __init__(self, modules: ProviderModules, provider_context: Any) -> None:
        self._modules = modules
        self._context = provider_context

    async def posts(
        self, provider: str, filter: str, *, page: int = 1, signal: AbortSignal | None = None
    ) -> Any:
        module = await self._modules.load(provider, "posts", signal=signal, required=False)
        if module is None or module.get_posts is None:
            return []
        data = await module.get_posts(
            filter=filter,
            page=page,
            provider_value=provider,
            signal=signal,
            provider_context=self._context,
        )
        return data or []

    async def search(
        self, provider: str, query: str, *, page: int = 1, signal: AbortSignal | None = None
    ) -> Any:
        module = await self._modules.load(provider, "posts", signal=signal, required=False)
        if module is None or module.get_search_posts is None:
            return []
        data = await module.get_search_posts(
            search_query=query,
            page=page,
            provider_value=provider,
            signal=signal,
            provider_context=self._context,
        )
        return data or []

    async def meta(self, provider: str, link: str, *, signal: AbortSignal | None = None) -> Any:
        module = await self._modules.load(provider, "meta", signal=signal, required=False)
        if module is None or module.get_meta is None:
            return None
        return await module.get_meta(
            link=link, provider=provider, signal=signal, provider_context=self._context
        )

    async def episodes(self, provider: str, url: str, *, signal: AbortSignal | None = None) -> list[Any]:
        """Episode links come from the episodes module, else the stream module."""

        for role in ("episodes", "stream"):
            module = await self._modules.load(provider, role, signal=signal, required=False)
            if module is None or module.get_episode_links is None:
                continue
            data = await module.get_episode_links(url=url, signal=signal, provider_context=self._context)
            return data if isinstance(data, list) else []
        return []

    async def home(
        self, provider: str, *, page: int = 1, signal: AbortSignal | None = None
    ) -> dict[str, Any]:
        """Return the catalog plus the first page of its leading sections."""

        catalog_module = await self._modules.load(provider, "catalog", signal=signal, required=False)
        catalog = list(catalog_module.catalog) if catalog_module is not None else []
        posts_module = await self._modules.load(provider, "posts", signal=signal, required=False)
        get_posts = posts_module.get_posts if posts_module is not None else None

        async def load_section(section: dict[str, Any]) -> dict[str, Any]:
            entry = {"title": section.get("title"), "filter": section.get("filter"), "Posts": []}
            if get_posts is None:
                logger.warning("No get_posts found for provider %s", provider)
                return entry
            try:
                posts = await get_posts(
                    filter=section.get("filter"),
                    page=page,
                    provider_value=provider,
                    signal=signal,
                    provider_context=self._context,
                )
            except (ExecutionError, AbortedError) as exc:
                logger.error("get_posts failed for section %s: %s", section.get("filter"), exc)
                entry["error"] = exc.message
                return entry
            entry["Posts"] = posts or []
            return entry

        sections = [section for section in catalog if isinstance(section, dict)][:HOME_SECTION_LIMIT]
        data = await asyncio.gather(*(load_section(section) for section in sections))
        return {"catalog": catalog, "data": list(data)}
