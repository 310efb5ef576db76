"""Fetch provider module source text from an ordered list of mirrors."""
from __future__ import annotations

import logging
from typing import Sequence

import httpx

from .errors import AbortedError
from .signals import AbortSignal, guarded

logger = logging.getLogger(__name__)

DEFAULT_MIRRORS: tuple[str, ...] = (
    "https://raw.githubusercontent.com/streamhub-providers/modules/refs/heads/main/dist",
    "https://raw.githubusercontent.com/streamhub-providers/modules/main/dist",
    "https://github.com/streamhub-providers/modules/raw/main/dist",
)

LOADER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; Streamhub/1.0)",
    "Accept": "text/x-python,text/plain,*/*",
}


class ModuleLoader:
    """Per-module mirror fallback; one failing mirror never fails the module."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        mirrors: Sequence[str] = DEFAULT_MIRRORS,
        suffix: str = ".py",
        timeout: float = 15.0,
    ) -> None:
        self._client = client
        self._mirrors = [mirror.rstrip("/") for mirror in mirrors]
        self._suffix = suffix
        self._timeout = timeout

    @property
    def mirrors(self) -> list[str]:
        return list(self._mirrors)

    def module_url(self, mirror: str, provider_key: str, module_name: str) -> str:
        return f"{mirror}/{provider_key}/{module_name}{self._suffix}"

    async def fetch(
        self,
        provider_key: str,
        module_name: str,
        *,
        signal: AbortSignal | None = None,
    ) -> str | None:
        """Return the first non-empty module body any mirror serves, else ``None``."""

        for mirror in self._mirrors:
            if signal is not None and signal.aborted:
                break
            url = self.module_url(mirror, provider_key, module_name)
            logger.debug("Trying module mirror %s", url)
            try:
                response = await guarded(
                    self._client.get(url, headers=LOADER_HEADERS, timeout=self._timeout),
                    signal,
                )
            except AbortedError:
                logger.warning("Module fetch aborted for %s", url)
                break
            except httpx.HTTPError as exc:
                logger.warning("Failed %s: %s", url, exc.__class__.__name__)
                continue

            if response.status_code != 200:
                logger.warning("Failed %s: HTTP %s", url, response.status_code)
                continue
            text = response.text
            if not text.strip():
                logger.warning("Failed %s: empty body", url)
                continue

            logger.info("Loaded %s/%s (%d chars) from %s", provider_key, module_name, len(text), mirror)
            return text

        logger.warning("Module %s/%s failed to load from all mirrors", provider_key, module_name)
        return None
