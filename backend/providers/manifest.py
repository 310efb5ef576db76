"""Provider catalogue from the static manifest."""
from __future__ import annotations

import logging
from typing import Any

from .http import ProviderHttpClient
from .signals import AbortSignal

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_MANIFEST = (
    "https://raw.githubusercontent.com/streamhub-providers/modules/refs/heads/main/manifest.json"
)


def manifest_entry(raw: dict[str, Any]) -> dict[str, str]:
    value = str(raw.get("value") or "")
    return {
        "value": value,
        "name": str(raw.get("display_name") or value),
        "type": str(raw.get("type") or "global"),
        "icon": str(raw.get("icon") or ""),
        "version": str(raw.get("version") or "0"),
    }


class ProviderManifest:
    def __init__(self, http: ProviderHttpClient, *, url: str = DEFAULT_PROVIDER_MANIFEST, timeout: float = 10.0) -> None:
        self._http = http
        self._url = url
        self._timeout = timeout

    async def providers(self, *, signal: AbortSignal | None = None) -> list[dict[str, str]]:
        """Return enabled providers; a non-list manifest yields an empty list."""

        payload = await self._http.get_json(self._url, timeout=self._timeout, signal=signal)
        if not isinstance(payload, list):
            logger.warning("Provider manifest at %s is not a list", self._url)
            return []
        entries = [
            manifest_entry(item)
            for item in payload
            if isinstance(item, dict) and not item.get("disabled") and item.get("value")
        ]
        logger.info("Provider manifest lists %d enabled provider(s)", len(entries))
        return entries
