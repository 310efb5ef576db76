"""Provider module registry: alias resolution, TTL cache and mirror loading."""
from __future__ import annotations

import asyncio
import logging
import time

from .aliases import normalize_provider_key
from .cache import Clock, TTLCache
from .loader import ModuleLoader
from .models import MODULE_ROLES, ProviderModuleSet
from .signals import AbortSignal

logger = logging.getLogger(__name__)

MODULE_CACHE_TTL_SECONDS = 10 * 60


class ModuleRegistry:
    """Resolve provider identifiers to cached module sets."""

    def __init__(
        self,
        loader: ModuleLoader,
        *,
        ttl: float = MODULE_CACHE_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        self._loader = loader
        self._cache: TTLCache[ProviderModuleSet] = TTLCache(ttl, clock=clock or time.monotonic)

    async def resolve(
        self,
        provider_value: str,
        *,
        signal: AbortSignal | None = None,
    ) -> ProviderModuleSet:
        """Return the module set for ``provider_value``, fetching on cache miss."""

        key = normalize_provider_key(provider_value)
        if key != provider_value:
            logger.debug("Normalized provider %r -> %r", provider_value, key)

        cached = self._cache.get(key)
        if cached is not None:
            logger.info("Using cached modules for %s", key)
            return cached

        logger.info("Fetching fresh modules for %s", key)
        bodies = await asyncio.gather(
            *(self._loader.fetch(key, role, signal=signal) for role in MODULE_ROLES)
        )
        # Roles cut short by an abort are not mirror failures; never cache them.
        if signal is not None:
            signal.raise_if_aborted()
        modules = ProviderModuleSet(**dict(zip(MODULE_ROLES, bodies)))

        if modules.is_empty():
            logger.warning("No modules available for provider %s", key)
            return modules

        logger.info("Modules for %s: %s", key, ", ".join(modules.available()))
        self._cache.set(key, modules)
        return modules

    def invalidate(self, provider_value: str | None = None) -> None:
        """Drop the cached entry for one provider, or every entry."""

        if provider_value is None:
            self._cache.invalidate()
            logger.info("Cleared all provider module cache entries")
            return
        key = normalize_provider_key(provider_value)
        self._cache.invalidate(key)
        logger.info("Cleared module cache for provider %s", key)

    def cached_keys(self) -> list[str]:
        return self._cache.keys()
