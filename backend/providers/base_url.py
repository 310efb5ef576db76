"""Look up the current domain of a provider site."""
from __future__ import annotations

import logging
import time

from .cache import Clock, TTLCache
from .errors import AbortedError, NetworkError
from .http import ProviderHttpClient
from .signals import AbortSignal

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL_MANIFEST = "https://himanshu8443.github.io/providers/modflix.json"
BASE_URL_TTL_SECONDS = 60 * 60


class BaseUrlResolver:
    """TTL-cached lookup against a JSON manifest shaped ``{provider: {url}}``."""

    def __init__(
        self,
        http: ProviderHttpClient,
        *,
        manifest_url: str = DEFAULT_BASE_URL_MANIFEST,
        ttl: float = BASE_URL_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        self._http = http
        self._manifest_url = manifest_url
        self._cache: TTLCache[str] = TTLCache(ttl, clock=clock or time.monotonic)

    async def __call__(self, provider_value: str, *, signal: AbortSignal | None = None) -> str:
        return await self.get(provider_value, signal=signal)

    async def get(self, provider_value: str, *, signal: AbortSignal | None = None) -> str:
        """Return the base URL for ``provider_value`` or ``""`` when unknown."""

        cached = self._cache.get(provider_value)
        if cached is not None:
            return cached

        try:
            manifest = await self._http.get_json(self._manifest_url, signal=signal)
        except AbortedError:
            raise
        except NetworkError as exc:
            logger.warning("Base URL manifest unavailable: %s", exc)
            return ""

        entry = manifest.get(provider_value) if isinstance(manifest, dict) else None
        url = ""
        if isinstance(entry, dict):
            url = str(entry.get("url") or "")
        if not url:
            logger.info("No base URL listed for %s", provider_value)
        self._cache.set(provider_value, url)
        return url
