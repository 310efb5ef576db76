"""GDFlix style cloud-storage landing pages."""
from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

from ..errors import NetworkError
from ..models import StreamCandidate, dedupe_candidates
from ..signals import AbortSignal
from .base import HostExtractor, make_candidate

logger = logging.getLogger(__name__)

_LOCATION_REPLACE = re.compile(r"location\.replace\(\s*['\"]([^'\"]+)['\"]\s*\)")
_CLOUD_DOWNLOAD = "CLOUD DOWNLOAD"


def onload_redirect(soup: BeautifulSoup) -> str | None:
    """Return the target of an ``onload="location.replace('...')"`` handler."""

    tag = soup.find(attrs={"onload": _LOCATION_REPLACE})
    if tag is None:
        return None
    match = _LOCATION_REPLACE.search(str(tag.get("onload", "")))
    return match.group(1) if match else None


class GdFlixExtractor(HostExtractor):
    name = "gdflix"
    hosts = ("gdflix", "gdlink")

    def claims(self, url: str, html: str, soup: BeautifulSoup) -> bool:
        if self.matches_host(url) or onload_redirect(soup):
            return True
        return bool(soup.select("a.btn-outline-success")) or _CLOUD_DOWNLOAD in html.upper()

    async def parse(
        self,
        page_url: str,
        html: str,
        soup: BeautifulSoup,
        *,
        signal: AbortSignal | None = None,
    ) -> list[StreamCandidate]:
        redirect = onload_redirect(soup)
        if redirect:
            logger.debug("gdflix following onload redirect to %s", redirect)
            try:
                page_url, html = await self.fetch_page(redirect, signal=signal)
                soup = BeautifulSoup(html, "html.parser")
            except NetworkError as exc:
                logger.warning("gdflix redirect %s failed: %s", redirect, exc)

        candidates: list[StreamCandidate] = []
        for anchor in soup.find_all("a", href=True):
            classes = anchor.get("class") or []
            text = anchor.get_text(" ", strip=True).upper()
            if "btn-outline-success" in classes or _CLOUD_DOWNLOAD in text:
                candidate = make_candidate("R2", anchor["href"], "mkv", base=page_url)
            elif "btn-success" in classes:
                candidate = make_candidate("PixelDrain", anchor["href"], "mkv", base=page_url)
            else:
                continue
            if candidate is not None:
                candidates.append(candidate)
        return dedupe_candidates(candidates)
