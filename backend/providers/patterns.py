"""Pattern mining of media URLs in raw page markup.

Domain lists are configuration data: ``MiningPatterns`` is built from
settings, and the defaults below only describe a fresh install.
"""
from __future__ import annotations

import html as html_lib
import logging
import re
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from bs4 import BeautifulSoup

from .extractors.base import make_candidate
from .models import StreamCandidate, dedupe_candidates

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS: tuple[str, ...] = ("mp4", "m3u8", "mkv", "avi", "mov", "wmv", "flv", "webm")
DEFAULT_CDN_DOMAINS: tuple[str, ...] = ("cloudflare.com", "fastly.com", "bunny.com", "streamable.com")
DEFAULT_HOSTING_DOMAINS: tuple[str, ...] = ("youtube.com", "vimeo.com", "dailymotion.com")
DEFAULT_REDIRECTORS: dict[str, str] = {"vcloud.lol": "VCloud", "filebee.xyz": "Filebee"}

_URL_TAIL = r"[^\s\"'<>]"


def _domain_pattern(domains: Sequence[str]) -> re.Pattern[str] | None:
    if not domains:
        return None
    alternatives = "|".join(re.escape(domain) for domain in domains)
    return re.compile(
        rf"https?://(?:[\w-]+\.)*(?:{alternatives})(?:[/?#]{_URL_TAIL}*)?",
        re.IGNORECASE,
    )


@dataclass(frozen=True, slots=True)
class MiningPatterns:
    """Compiled regular expressions for one set of configured domains."""

    extensions: tuple[str, ...] = VIDEO_EXTENSIONS
    cdn_domains: tuple[str, ...] = DEFAULT_CDN_DOMAINS
    hosting_domains: tuple[str, ...] = DEFAULT_HOSTING_DOMAINS
    redirectors: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_REDIRECTORS))
    media_url: re.Pattern[str] = field(init=False, repr=False, compare=False)
    cdn_url: re.Pattern[str] | None = field(init=False, repr=False, compare=False)
    hosting_url: re.Pattern[str] | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        extensions = "|".join(re.escape(ext) for ext in self.extensions)
        media_url = re.compile(
            rf"https?://{_URL_TAIL}+?\.(?P<ext>{extensions})(?![\w.])(?:\?{_URL_TAIL}*)?",
            re.IGNORECASE,
        )
        object.__setattr__(self, "media_url", media_url)
        object.__setattr__(self, "cdn_url", _domain_pattern(self.cdn_domains))
        object.__setattr__(self, "hosting_url", _domain_pattern(self.hosting_domains))

    def media_type(self, url: str) -> str | None:
        """Return the container extension ``url`` ends with, if it is a known one."""

        path = url.split("?", 1)[0].split("#", 1)[0].lower()
        for ext in self.extensions:
            if path.endswith(f".{ext}"):
                return ext
        return None

    def redirector_links(self, markup: str, *, limit: int | None = None) -> list[tuple[str, str]]:
        """Return ``(url, label)`` for links to configured redirector domains."""

        found: list[tuple[str, str]] = []
        seen: set[str] = set()
        for domain, label in self.redirectors.items():
            pattern = re.compile(
                rf"https?://(?:[\w-]+\.)*{re.escape(domain)}/{_URL_TAIL}+", re.IGNORECASE
            )
            for match in pattern.finditer(markup):
                url = html_lib.unescape(match.group(0))
                if url in seen:
                    continue
                seen.add(url)
                found.append((url, label))
        return found if limit is None else found[:limit]


DEFAULT_PATTERNS = MiningPatterns()


def mine_page(
    markup: str,
    page_url: str,
    *,
    patterns: MiningPatterns = DEFAULT_PATTERNS,
    label: str | None = None,
) -> list[StreamCandidate]:
    """Collect media candidates from ``markup`` in a fixed order.

    Order: ``<video>``/``<source>`` sources, iframes, direct container URLs,
    CDN and video-hosting URLs, then download anchors when ``label`` names a
    tunnel page. Relative sources resolve against ``page_url``.
    """

    soup = BeautifulSoup(markup, "html.parser")
    candidates: list[StreamCandidate | None] = []

    for tag in soup.find_all(["video", "source"], src=True):
        src = tag["src"]
        candidates.append(
            make_candidate(
                f"{label} Video" if label else "HTML5 Video",
                src,
                patterns.media_type(src) or "mp4",
                base=page_url,
            )
        )

    for tag in soup.find_all("iframe", src=True):
        candidates.append(
            make_candidate(f"{label} Embed" if label else "Embedded Player", tag["src"], "iframe", base=page_url)
        )

    for match in patterns.media_url.finditer(markup):
        candidates.append(
            make_candidate(label or "Direct Link", html_lib.unescape(match.group(0)), match.group("ext").lower())
        )

    for pattern in (patterns.cdn_url, patterns.hosting_url):
        if pattern is None:
            continue
        for match in pattern.finditer(markup):
            candidates.append(
                make_candidate(f"{label} Embed" if label else "Video Hosting", html_lib.unescape(match.group(0)), "embed")
            )

    if label:
        for anchor in soup.find_all("a", href=True):
            if "download" in anchor["href"].lower():
                candidates.append(make_candidate(f"{label} Download", anchor["href"], "mp4", base=page_url))

    mined = dedupe_candidates(candidate for candidate in candidates if candidate is not None)
    logger.debug("Mined %d candidate(s) from %s", len(mined), page_url)
    return mined
