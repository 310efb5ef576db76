"""Outbound HTTP for provider code, extractors and the cascade."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from .errors import NetworkError
from .signals import AbortSignal, guarded

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

COMMON_HEADERS: dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


async def _log_request(request: httpx.Request) -> None:
    logger.debug("Requesting %s %s", request.method, request.url)


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug("Response from %s %s: %s", request.method, request.url, response.status_code)
    if response.status_code in (403, 503) and (
        "cf-mitigated" in response.headers
        or response.headers.get("server", "").lower() == "cloudflare"
    ):
        logger.warning(
            "Cloudflare challenge detected for %s; the site may block automated requests",
            request.url,
        )


def build_http_client(
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared ``httpx.AsyncClient`` with logging hooks installed."""

    return httpx.AsyncClient(
        headers={"User-Agent": user_agent},
        timeout=timeout,
        follow_redirects=True,
        transport=transport,
        event_hooks={"request": [_log_request], "response": [_log_response]},
    )


class ProviderHttpClient:
    """Thin wrapper over ``httpx.AsyncClient`` that honours abort signals.

    Transport failures surface as ``NetworkError``; firing ``signal`` cancels
    the in-flight request and raises ``AbortedError``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        default_headers: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._default_headers = dict(COMMON_HEADERS if default_headers is None else default_headers)

    def _headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(self._default_headers)
        if headers:
            merged.update(headers)
        return merged

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        data: Any = None,
        json: Any = None,
        follow_redirects: bool = True,
        timeout: float | None = None,
        signal: AbortSignal | None = None,
    ) -> httpx.Response:
        kwargs: dict[str, Any] = {
            "headers": self._headers(headers),
            "params": params,
            "data": data,
            "json": json,
            "follow_redirects": follow_redirects,
        }
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            return await guarded(self._client.request(method, url, **kwargs), signal)
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {url} failed: {exc.__class__.__name__}: {exc}") from exc

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def get_text(self, url: str, **kwargs: Any) -> str:
        """GET ``url`` and return the body, raising ``NetworkError`` on 4xx/5xx."""

        response = await self.get(url, **kwargs)
        if response.is_error:
            raise NetworkError(f"GET {url} returned HTTP {response.status_code}")
        return response.text

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.get(url, **kwargs)
        if response.is_error:
            raise NetworkError(f"GET {url} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"GET {url} returned invalid JSON") from exc

    async def final_url(self, url: str, **kwargs: Any) -> str:
        """Follow redirects with a HEAD request and return where they end."""

        response = await self.head(url, follow_redirects=True, **kwargs)
        return str(response.url)
