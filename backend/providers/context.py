"""Capability bundle injected into provider modules and cascade strategies."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from bs4 import BeautifulSoup

from .base_url import BASE_URL_TTL_SECONDS, DEFAULT_BASE_URL_MANIFEST, BaseUrlResolver
from .extractors import ExtractorSet
from .http import COMMON_HEADERS, ProviderHttpClient
from .signals import AbortSignal

logger = logging.getLogger(__name__)


class DebugLog:
    """Tagged debug output for provider code.

    Calling the object logs at debug level. Only the emitting methods are
    public, so module code never gets hold of a logger or its handlers.
    """

    __slots__ = ("_tag",)

    def __init__(self, tag: str = "provider-debug") -> None:
        self._tag = tag

    def _emit(self, level: int, args: Iterable[Any]) -> None:
        logger.log(level, "[%s] %s", self._tag, " ".join(str(arg) for arg in args))

    def __call__(self, *args: Any) -> None:
        self._emit(logging.DEBUG, args)

    def info(self, *args: Any) -> None:
        self._emit(logging.INFO, args)

    def warning(self, *args: Any) -> None:
        self._emit(logging.WARNING, args)

    def error(self, *args: Any) -> None:
        self._emit(logging.ERROR, args)


def parse_html(markup: str | bytes) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


@dataclass(slots=True)
class ProviderContext:
    """Everything provider code may reach; nothing else from the host is exposed."""

    http: ProviderHttpClient
    base_urls: BaseUrlResolver
    extractors: ExtractorSet
    common_headers: dict[str, str] = field(default_factory=lambda: dict(COMMON_HEADERS))
    debug: DebugLog = field(default_factory=DebugLog)

    def parse_html(self, markup: str | bytes) -> BeautifulSoup:
        return parse_html(markup)

    async def get_base_url(self, provider_value: str, *, signal: AbortSignal | None = None) -> str:
        return await self.base_urls.get(provider_value, signal=signal)


def build_provider_context(
    http: ProviderHttpClient,
    *,
    base_url_manifest: str = DEFAULT_BASE_URL_MANIFEST,
    base_url_ttl: float = BASE_URL_TTL_SECONDS,
) -> ProviderContext:
    return ProviderContext(
        http=http,
        base_urls=BaseUrlResolver(http, manifest_url=base_url_manifest, ttl=base_url_ttl),
        extractors=ExtractorSet(http),
    )
