"""SuperVideo style players hiding the HLS URL in a packed script."""
from __future__ import annotations

import re

from bs4 import BeautifulSoup

from ..models import StreamCandidate
from ..signals import AbortSignal
from ..unpacker import is_packed, unpack
from .base import HostExtractor, make_candidate

_HLS_FILE = re.compile(r"file\s*:\s*\"([^\"]+\.m3u8[^\"]*)\"", re.IGNORECASE)


def find_packed_stream(html: str) -> str:
    """Return the m3u8 URL declared by a packed player script, or ``""``."""

    match = _HLS_FILE.search(unpack(html))
    return match.group(1) if match else ""


class SuperVideoExtractor(HostExtractor):
    name = "supervideo"
    hosts = ("supervideo",)

    def claims(self, url: str, html: str, soup: BeautifulSoup) -> bool:
        return self.matches_host(url) or is_packed(html)

    async def parse(
        self,
        page_url: str,
        html: str,
        soup: BeautifulSoup,
        *,
        signal: AbortSignal | None = None,
    ) -> list[StreamCandidate]:
        candidate = make_candidate("SuperVideo", find_packed_stream(html), "m3u8", base=page_url)
        return [candidate] if candidate is not None else []
