"""GoFile ID-based file hosting API."""
from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from ..errors import NetworkError
from ..models import StreamCandidate
from ..signals import AbortSignal
from .base import HostExtractor, PageCache, make_candidate

logger = logging.getLogger(__name__)

GOFILE_API = "https://api.gofile.io"
GOFILE_SCRIPT = "https://gofile.io/dist/js/global.js"

_WEBSITE_TOKEN = re.compile(r"appdata\.wt\s*=\s*[\"']([^\"']+)[\"']")


def content_id(link: str) -> str:
    """Return the content identifier from a gofile URL, or ``link`` itself."""

    path = urlparse(link).path if "://" in link else link
    return path.rstrip("/").rsplit("/", 1)[-1]


class GoFileExtractor(HostExtractor):
    name = "gofile"
    hosts = ("gofile",)

    async def extract(
        self,
        link: str,
        *,
        signal: AbortSignal | None = None,
        require_claim: bool = False,
        page: PageCache | None = None,
    ) -> list[StreamCandidate]:
        if require_claim and not self.matches_host(link):
            return []
        identifier = content_id(link)
        if not identifier:
            return []

        account = await self._http.post(f"{GOFILE_API}/accounts", signal=signal)
        if account.is_error:
            raise NetworkError(f"gofile account creation returned HTTP {account.status_code}")
        token = account.json()["data"]["token"]

        script = await self._http.get_text(GOFILE_SCRIPT, signal=signal)
        match = _WEBSITE_TOKEN.search(script)
        if match is None:
            logger.warning("gofile website token not found in %s", GOFILE_SCRIPT)
            return []

        contents = await self._http.get_json(
            f"{GOFILE_API}/contents/{identifier}",
            params={"wt": match.group(1)},
            headers={"Authorization": f"Bearer {token}"},
            signal=signal,
        )
        children = (contents.get("data") or {}).get("children") or {}
        if not children:
            return []
        first = next(iter(children.values()))
        candidate = make_candidate(
            "GoFile",
            first.get("link"),
            "mp4",
            headers={"Cookie": f"accountToken={token}"},
        )
        return [candidate] if candidate is not None else []
