"""Host-specific extractors exposed to provider modules and the cascade."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..errors import AbortedError
from ..http import ProviderHttpClient
from ..models import StreamCandidate
from ..signals import AbortSignal
from .base import HostExtractor, PageCache, make_candidate
from .gdflix import GdFlixExtractor
from .gofile import GoFileExtractor
from .hubcloud import HubCloudExtractor
from .supervideo import SuperVideoExtractor, find_packed_stream

logger = logging.getLogger(__name__)

# Order in which the cascade consults the extractors.
CASCADE_ORDER: tuple[str, ...] = ("gdflix", "hubcloud", "supervideo", "gofile")


class ExtractorSet:
    """Named extractors; every call logs and yields ``[]`` on failure."""

    def __init__(self, http: ProviderHttpClient) -> None:
        extractors: list[HostExtractor] = [
            GdFlixExtractor(http),
            HubCloudExtractor(http),
            SuperVideoExtractor(http),
            GoFileExtractor(http),
        ]
        self._extractors = {extractor.name: extractor for extractor in extractors}

    def names(self) -> list[str]:
        return list(self._extractors)

    def get(self, name: str) -> HostExtractor:
        return self._extractors[name]

    def ordered(self) -> list[HostExtractor]:
        return [self._extractors[name] for name in CASCADE_ORDER]

    async def run(
        self,
        name: str,
        link: str,
        *,
        signal: AbortSignal | None = None,
        require_claim: bool = False,
        page: PageCache | None = None,
    ) -> list[StreamCandidate]:
        extractor = self._extractors[name]
        logger.debug("%s extractor called with %s", name, link)
        try:
            candidates = await extractor.extract(
                link, signal=signal, require_claim=require_claim, page=page
            )
        except (AbortedError, asyncio.CancelledError):
            raise
        except Exception as exc:
            logger.warning("%s extractor failed for %s: %s", name, link, exc)
            return []
        logger.debug("%s extractor found %d link(s)", name, len(candidates))
        return candidates

    async def _for_module(self, name: str, link: str, signal: AbortSignal | None) -> list[dict[str, Any]]:
        candidates = await self.run(name, link, signal=signal)
        return [candidate.model_dump(exclude_none=True) for candidate in candidates]

    # Provider-facing helpers return plain dicts so module code can index them.

    async def hubcloud(self, link: str, signal: AbortSignal | None = None) -> list[dict[str, Any]]:
        return await self._for_module("hubcloud", link, signal)

    async def gdflix(self, link: str, signal: AbortSignal | None = None) -> list[dict[str, Any]]:
        return await self._for_module("gdflix", link, signal)

    async def supervideo(self, link: str, signal: AbortSignal | None = None) -> list[dict[str, Any]]:
        return await self._for_module("supervideo", link, signal)

    async def gofile(self, link: str, signal: AbortSignal | None = None) -> list[dict[str, Any]]:
        return await self._for_module("gofile", link, signal)

    @staticmethod
    def unpack_supervideo(html: str) -> str:
        """Return the HLS URL hidden in an already fetched SuperVideo page."""

        return find_packed_stream(html)


__all__ = [
    "CASCADE_ORDER",
    "ExtractorSet",
    "GdFlixExtractor",
    "GoFileExtractor",
    "HostExtractor",
    "HubCloudExtractor",
    "PageCache",
    "SuperVideoExtractor",
    "make_candidate",
]
