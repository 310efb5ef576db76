"""Shared plumbing for host-specific link extractors."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..errors import NetworkError
from ..http import ProviderHttpClient
from ..models import StreamCandidate
from ..signals import AbortSignal

logger = logging.getLogger(__name__)


def make_candidate(
    server: str,
    link: str | None,
    type: str,
    *,
    base: str | None = None,
    headers: dict[str, str] | None = None,
) -> StreamCandidate | None:
    """Build a candidate, or ``None`` when ``link`` is not a usable http(s) URL."""

    if not link:
        return None
    link = link.strip()
    if link.lower().startswith("javascript:"):
        return None
    if base:
        link = urljoin(base, link)
    if urlparse(link).scheme not in ("http", "https"):
        return None
    return StreamCandidate(server=server, link=link, type=type, headers=headers)


def host_of(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


@dataclass(slots=True)
class PageCache:
    """A page fetched at most once; ``markup`` stays ``None`` when the fetch failed."""

    url: str | None = None
    markup: str | None = None
    fetched: bool = False

    async def load(
        self,
        http: ProviderHttpClient,
        link: str,
        *,
        timeout: float | None = None,
        signal: AbortSignal | None = None,
    ) -> tuple[str, str] | None:
        """Return ``(final_url, markup)``, fetching ``link`` only on first use."""

        if not self.fetched:
            self.fetched = True
            try:
                response = await http.get(link, timeout=timeout, signal=signal)
            except NetworkError as exc:
                logger.warning("Could not fetch %s: %s", link, exc)
                return None
            if response.is_error:
                logger.warning("Fetching %s returned HTTP %s", link, response.status_code)
                return None
            self.url, self.markup = str(response.url), response.text
        if self.url is None or self.markup is None:
            return None
        return self.url, self.markup


class HostExtractor:
    """Base class: fetch a landing page and mine it for stream links.

    ``claims`` decides whether a fetched page belongs to this host family.
    Callers that know which extractor they want skip the check; the cascade
    passes ``require_claim=True`` so an extractor never mislabels a foreign
    page.
    """

    name = "extractor"
    hosts: tuple[str, ...] = ()

    def __init__(self, http: ProviderHttpClient) -> None:
        self._http = http

    def matches_host(self, url: str) -> bool:
        host = host_of(url)
        return any(marker in host for marker in self.hosts)

    def claims(self, url: str, html: str, soup: BeautifulSoup) -> bool:
        return self.matches_host(url)

    async def fetch_page(self, url: str, *, signal: AbortSignal | None = None) -> tuple[str, str]:
        """Return ``(final_url, html)`` for ``url``."""

        response = await self._http.get(url, signal=signal)
        if response.is_error:
            raise NetworkError(f"{self.name}: {url} returned HTTP {response.status_code}")
        return str(response.url), response.text

    async def extract(
        self,
        link: str,
        *,
        signal: AbortSignal | None = None,
        require_claim: bool = False,
        page: PageCache | None = None,
    ) -> list[StreamCandidate]:
        if page is None:
            page_url, html = await self.fetch_page(link, signal=signal)
        else:
            loaded = await page.load(self._http, link, signal=signal)
            if loaded is None:
                return []
            page_url, html = loaded
        soup = BeautifulSoup(html, "html.parser")
        if require_claim and not self.claims(page_url, html, soup):
            logger.debug("%s does not recognise %s", self.name, page_url)
            return []
        return await self.parse(page_url, html, soup, signal=signal)

    async def parse(
        self,
        page_url: str,
        html: str,
        soup: BeautifulSoup,
        *,
        signal: AbortSignal | None = None,
    ) -> list[StreamCandidate]:
        raise NotImplementedError
