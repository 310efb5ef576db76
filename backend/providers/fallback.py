"""Direct-streaming-first fallback resolver and the client the cascade uses."""
from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from .errors import AbortedError, NetworkError
from .extractors.base import make_candidate
from .http import ProviderHttpClient
from .models import StreamCandidate, dedupe_candidates, validate_candidates
from .patterns import DEFAULT_PATTERNS, MiningPatterns
from .signals import AbortSignal

logger = logging.getLogger(__name__)

PLAYER_SELECTORS: tuple[str, ...] = (
    ".video-player",
    ".player",
    ".stream-player",
    "[data-video]",
    "[data-src]",
    ".embed-responsive",
)

CONTENT_TYPE_HINTS: dict[str, str] = {
    "application/vnd.apple.mpegurl": "m3u8",
    "application/x-mpegurl": "m3u8",
    "audio/mpegurl": "m3u8",
    "application/dash+xml": "mpd",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/x-matroska": "mkv",
    "video/x-msvideo": "avi",
    "video/quicktime": "mov",
    "video/x-flv": "flv",
}


def media_type_for(content_type: str) -> str | None:
    """Map a response content type to a stream type, or ``None`` for pages."""

    mime = content_type.split(";", 1)[0].strip().lower()
    if mime in CONTENT_TYPE_HINTS:
        return CONTENT_TYPE_HINTS[mime]
    if mime.startswith("video/"):
        return "mp4"
    return None


class FallbackResolver:
    """Last-resort resolution that needs nothing from provider modules."""

    def __init__(
        self,
        http: ProviderHttpClient,
        *,
        patterns: MiningPatterns = DEFAULT_PATTERNS,
        timeout: float = 30.0,
    ) -> None:
        self._http = http
        self._patterns = patterns
        self._timeout = timeout

    async def resolve(
        self,
        link: str,
        *,
        type: str = "movie",
        signal: AbortSignal | None = None,
    ) -> list[StreamCandidate]:
        logger.info("Fallback resolution (%s) for %s", type, link)
        direct = await self.direct_stream(link, signal=signal)
        if direct is not None:
            return [direct]

        try:
            response = await self._http.get(link, timeout=self._timeout, signal=signal)
        except NetworkError as exc:
            logger.warning("Fallback fetch failed for %s: %s", link, exc)
            return []
        if response.is_error:
            logger.warning("Fallback fetch for %s returned HTTP %s", link, response.status_code)
            return []

        page_url = str(response.url)
        markup = response.text
        soup = BeautifulSoup(markup, "html.parser")
        candidates = [
            *self._html_sources(soup, page_url),
            *self._player_embeds(soup, page_url),
            *self._hosting_patterns(markup),
        ]
        found = dedupe_candidates(candidates)
        logger.info("Fallback found %d stream(s) for %s", len(found), link)
        return found

    async def direct_stream(
        self,
        link: str,
        *,
        signal: AbortSignal | None = None,
    ) -> StreamCandidate | None:
        """Return ``link`` itself when it already points at media."""

        extension = self._patterns.media_type(link)
        if extension:
            return make_candidate("Direct Stream", link, extension)
        try:
            response = await self._http.head(link, timeout=self._timeout, signal=signal)
        except AbortedError:
            raise
        except NetworkError as exc:
            logger.debug("HEAD request failed for %s: %s", link, exc)
            return None
        if response.is_error:
            return None
        stream_type = media_type_for(response.headers.get("content-type", ""))
        if stream_type is None:
            return None
        return make_candidate("Direct Stream", str(response.url), stream_type)

    def _html_sources(self, soup: BeautifulSoup, page_url: str) -> list[StreamCandidate]:
        found: list[StreamCandidate | None] = []
        for tag in soup.select("video[src], video source[src]"):
            found.append(make_candidate("HTML5 Video", tag["src"], "mp4", base=page_url))
        hosting = self._patterns.hosting_url
        for iframe in soup.find_all("iframe", src=True):
            candidate = make_candidate("Embedded Player", iframe["src"], "iframe", base=page_url)
            if candidate is not None and hosting is not None and hosting.match(candidate.link):
                found.append(candidate)
        return [candidate for candidate in found if candidate is not None]

    def _player_embeds(self, soup: BeautifulSoup, page_url: str) -> list[StreamCandidate]:
        found: list[StreamCandidate] = []
        for selector in PLAYER_SELECTORS:
            for element in soup.select(selector):
                source = element.get("data-video") or element.get("data-src") or element.get("src")
                candidate = make_candidate("Embedded Player", source, "mp4", base=page_url)
                if candidate is not None:
                    found.append(candidate)
        return found

    def _hosting_patterns(self, markup: str) -> list[StreamCandidate]:
        found: list[StreamCandidate | None] = []
        for match in self._patterns.media_url.finditer(markup):
            found.append(make_candidate("Direct Link", match.group(0), match.group("ext").lower()))
        for pattern in (self._patterns.cdn_url, self._patterns.hosting_url):
            if pattern is None:
                continue
            for match in pattern.finditer(markup):
                found.append(make_candidate("Direct Link", match.group(0), "embed"))
        return [candidate for candidate in found if candidate is not None]


class FallbackClient:
    """Delegate to a remote fallback service when configured, else in-process."""

    def __init__(
        self,
        http: ProviderHttpClient,
        resolver: FallbackResolver,
        *,
        service_url: str | None = None,
    ) -> None:
        self._http = http
        self._resolver = resolver
        self._service_url = service_url

    @property
    def remote(self) -> bool:
        return bool(self._service_url)

    async def resolve(
        self,
        link: str,
        *,
        type: str = "movie",
        signal: AbortSignal | None = None,
    ) -> list[StreamCandidate]:
        if not self._service_url:
            return await self._resolver.resolve(link, type=type, signal=signal)

        response = await self._http.get(
            self._service_url,
            params={"link": link, "type": type},
            headers={"Accept": "application/json"},
            signal=signal,
        )
        if response.is_error:
            logger.info("Fallback service answered HTTP %s for %s", response.status_code, link)
            return []
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Fallback service returned invalid JSON for %s", link)
            return []
        data = payload.get("data") if isinstance(payload, dict) else None
        return validate_candidates(data, source="stream-fallback")
