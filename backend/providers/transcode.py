"""Best-effort media relay that tries several request shapes.

Nothing is re-encoded: every successful path ends in the byte relay of
``StreamProxy``, and failure points the client at the proxy and fallback
endpoints.
"""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from .errors import InvalidRequestError, NetworkError, TranscodeFailedError, UpstreamRejectedError, UpstreamUnavailableError
from .http import ProviderHttpClient
from .patterns import DEFAULT_PATTERNS, MiningPatterns, mine_page
from .proxy import StreamProxy, UpstreamRelay, require_http_url
from .signals import AbortSignal

logger = logging.getLogger(__name__)

TRANSCODE_METHODS: tuple[str, ...] = ("auto", "direct", "alternative", "extract")

ALTERNATIVE_USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

_PLAYABLE_TYPES = frozenset({"mp4", "m3u8", "mkv", "avi", "mov", "wmv", "flv", "webm"})


class TranscodeRelay:
    def __init__(
        self,
        proxy: StreamProxy,
        http: ProviderHttpClient,
        *,
        patterns: MiningPatterns = DEFAULT_PATTERNS,
    ) -> None:
        self._proxy = proxy
        self._http = http
        self._patterns = patterns

    async def _try(
        self,
        url: str,
        *,
        referer: str | None,
        range_header: str | None,
        signal: AbortSignal | None,
        user_agent: str | None = None,
    ) -> UpstreamRelay | None:
        try:
            relay = await self._proxy.open(
                url, referer=referer, range_header=range_header, user_agent=user_agent, signal=signal
            )
        except UpstreamUnavailableError as exc:
            logger.warning("Relay of %s failed: %s", url, exc)
            return None
        if relay.ok:
            return relay
        await relay.aclose()
        return None

    async def open(
        self,
        url: str,
        *,
        referer: str | None = None,
        range_header: str | None = None,
        method: str = "auto",
        signal: AbortSignal | None = None,
    ) -> tuple[str, UpstreamRelay | dict[str, Any]]:
        """Return ``(method_used, relay)`` or ``(method_used, extraction payload)``."""

        require_http_url(url)
        if method not in TRANSCODE_METHODS:
            raise InvalidRequestError(
                f"Unknown method: {method}",
                suggestions=[f"Use method={name}" for name in TRANSCODE_METHODS],
            )

        if method == "direct":
            relay = await self._proxy.open(url, referer=referer, range_header=range_header, signal=signal)
            if not relay.ok:
                await relay.aclose()
                raise UpstreamRejectedError(
                    f"Upstream answered HTTP {relay.status_code}", status_code=relay.status_code
                )
            return "direct-streaming", relay

        if method == "auto":
            relay = await self._try(url, referer=referer, range_header=range_header, signal=signal)
            if relay is not None:
                return "direct-streaming", relay

        if method in ("auto", "alternative"):
            for user_agent in ALTERNATIVE_USER_AGENTS:
                relay = await self._try(
                    url, referer=referer, range_header=range_header, signal=signal, user_agent=user_agent
                )
                if relay is not None:
                    return "alternative-headers", relay

        if method in ("auto", "extract"):
            extracted = await self._extract(url, referer=referer, range_header=range_header, signal=signal)
            if extracted is not None:
                return extracted

        raise TranscodeFailedError("All transcoding methods failed", url=url, referer=referer)

    async def _extract(
        self,
        url: str,
        *,
        referer: str | None,
        range_header: str | None,
        signal: AbortSignal | None,
    ) -> tuple[str, UpstreamRelay | dict[str, Any]] | None:
        headers = {"Referer": referer} if referer else None
        try:
            response = await self._http.get(url, headers=headers, signal=signal)
        except NetworkError as exc:
            logger.warning("Extraction fetch of %s failed: %s", url, exc)
            return None
        if response.is_error or "text/html" not in response.headers.get("content-type", ""):
            return None

        videos = [
            candidate.link
            for candidate in mine_page(response.text, str(response.url), patterns=self._patterns)
            if candidate.type in _PLAYABLE_TYPES
        ]
        if not videos:
            return None
        logger.info("Extracted %d video URL(s) from %s", len(videos), url)

        relay = await self._try(videos[0], referer=referer, range_header=range_header, signal=signal)
        if relay is not None:
            return "extracted-streaming", relay
        return "url-extraction", {
            "success": True,
            "method": "url-extraction",
            "videos": videos,
            "originalUrl": url,
            "streamingOptions": [
                {"url": video, "method": "direct", "endpoint": f"/transcode?url={quote(video, safe='')}&method=direct"}
                for video in videos
            ],
        }
