"""Byte-range preserving relay of upstream media."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from .errors import InvalidRequestError, UpstreamUnavailableError
from .http import DEFAULT_USER_AGENT
from .signals import AbortSignal, guarded

logger = logging.getLogger(__name__)

MIRRORED_HEADERS: tuple[str, ...] = (
    "content-type",
    "content-length",
    "accept-ranges",
    "content-range",
    "etag",
    "last-modified",
    "age",
    "expires",
)
BYTE_MEDIA_TYPES: tuple[str, ...] = ("video/mp4", "application/octet-stream")
EXPOSED_HEADERS = "Content-Length, Content-Range, Accept-Ranges, Content-Type"

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


def require_http_url(url: str | None) -> str:
    if not url or not _HTTP_URL.match(url):
        raise InvalidRequestError("Bad Request: url must be an absolute http(s) URL")
    return url


@dataclass(slots=True)
class UpstreamRelay:
    """Status, normalized headers and raw body of one upstream response."""

    url: str
    status_code: int
    headers: dict[str, str]
    body: AsyncIterator[bytes]
    response: httpx.Response

    @property
    def ok(self) -> bool:
        return self.response.is_success

    async def aclose(self) -> None:
        await self.response.aclose()


async def _relay_body(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    finally:
        await response.aclose()


class StreamProxy:
    """Forward ``Range``/``Referer`` upstream and mirror byte-serving headers back."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        expose_headers: bool = True,
    ) -> None:
        self._client = client
        self._user_agent = user_agent
        self._expose_headers = expose_headers

    def request_headers(
        self,
        *,
        referer: str | None = None,
        range_header: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, str]:
        headers = {
            "User-Agent": user_agent or self._user_agent,
            "Accept": "*/*",
            "Accept-Encoding": "identity",
        }
        if referer:
            headers["Referer"] = referer
        if range_header:
            headers["Range"] = range_header
        return headers

    async def open(
        self,
        url: str,
        *,
        referer: str | None = None,
        range_header: str | None = None,
        user_agent: str | None = None,
        signal: AbortSignal | None = None,
    ) -> UpstreamRelay:
        """Start relaying ``url``; the caller must exhaust or close the body."""

        require_http_url(url)
        headers = self.request_headers(referer=referer, range_header=range_header, user_agent=user_agent)
        request = self._client.build_request("GET", url, headers=headers)
        logger.info("Proxying %s%s", url, f" ({range_header})" if range_header else "")
        try:
            response = await guarded(self._client.send(request, stream=True), signal)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"Failed to reach upstream: {exc.__class__.__name__}") from exc

        relayed = {name: response.headers[name] for name in MIRRORED_HEADERS if name in response.headers}
        content_type = relayed.get("content-type", "").lower()
        missing = "content-length" not in relayed or "accept-ranges" not in relayed
        if missing and any(kind in content_type for kind in BYTE_MEDIA_TYPES):
            try:
                await self._backfill(url, headers, relayed, partial=response.status_code == 206, signal=signal)
            except BaseException:
                await response.aclose()
                raise

        relayed.setdefault("accept-ranges", "bytes")
        relayed["cache-control"] = "no-store"
        relayed["access-control-allow-origin"] = "*"
        if self._expose_headers:
            relayed["access-control-expose-headers"] = EXPOSED_HEADERS

        if not response.is_success:
            logger.warning("Upstream %s answered HTTP %s", url, response.status_code)
        return UpstreamRelay(
            url=url,
            status_code=response.status_code,
            headers=relayed,
            body=_relay_body(response),
            response=response,
        )

    async def _backfill(
        self,
        url: str,
        headers: dict[str, str],
        relayed: dict[str, str],
        *,
        partial: bool,
        signal: AbortSignal | None,
    ) -> None:
        """Learn length and range support from a HEAD request with the same headers."""

        try:
            head = await guarded(self._client.head(url, headers=headers), signal)
        except httpx.HTTPError as exc:
            logger.debug("HEAD request for %s failed: %s", url, exc)
            return
        length = head.headers.get("content-length")
        ranges = head.headers.get("accept-ranges")
        # A full-entity length would contradict a partial body.
        if length and "content-length" not in relayed and not partial:
            relayed["content-length"] = length
        if ranges and "accept-ranges" not in relayed:
            relayed["accept-ranges"] = ranges
        logger.debug("Backfilled headers for %s from HEAD", url)
