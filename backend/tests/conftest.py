"""Shared fixtures: a scripted upstream web and sample provider modules."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.hub_api.settings import HubSettings  # noqa: E402
from backend.hub_api.state import AppState  # noqa: E402

MIRROR = "https://mirror.test/dist"
BACKUP_MIRROR = "https://backup.test/dist"
PROVIDER_MANIFEST = "https://manifest.test/manifest.json"
BASE_URL_MANIFEST = "https://manifest.test/base-urls.json"

Responder = Callable[[httpx.Request], httpx.Response]


class FakeUpstream:
    """Route table behind ``httpx.MockTransport``; unknown URLs answer 404."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        url: str,
        *,
        method: str = "GET",
        status: int = 200,
        text: str | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        responder: Responder | None = None,
    ) -> None:
        if responder is None:

            def responder(request: httpx.Request) -> httpx.Response:
                if json is not None:
                    return httpx.Response(status, json=json, headers=headers)
                if content is not None:
                    return httpx.Response(status, content=content, headers=headers)
                return httpx.Response(status, text=text or "", headers=headers)

        self.routes[(method.upper(), url)] = responder

    def module(self, provider: str, role: str, source: str, *, mirror: str = MIRROR) -> None:
        self.add(f"{mirror}/{provider}/{role}.py", text=source)

    def calls(self, url: str, *, method: str | None = None) -> int:
        return sum(
            1
            for request in self.requests
            if str(request.url).split("?", 1)[0] == url
            and (method is None or request.method == method)
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        responder = self.routes.get((request.method, url)) or self.routes.get(
            (request.method, url.split("?", 1)[0])
        )
        if responder is None:
            return httpx.Response(404, text="not found")
        return responder(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


STREAM_MODULE = '''
async def get_stream(link, type, signal, provider_context):
    console.log("resolving", link)
    if "empty" in link:
        return []
    return [
        {"server": "Mirror", "link": "https://cdn.test/video/master.m3u8", "type": "m3u8", "quality": "1080"},
        {"server": "Broken", "link": "not-a-url"},
    ]

exports.get_stream = get_stream
'''

EMPTY_STREAM_MODULE = '''
def getStream(link, type):
    return []

module.exports = {"getStream": getStream}
'''

FAILING_STREAM_MODULE = '''
def get_stream(link):
    raise ValueError("layout changed")
'''

POSTS_MODULE = '''
async def get_posts(filter, page, provider_value, provider_context):
    return [{"title": f"{filter} {page}", "link": f"https://site.test/{filter}/{page}"}]

async def get_search_posts(search_query, page):
    return [{"title": search_query.title(), "link": "https://site.test/search"}]

exports.default = {"getPosts": get_posts, "getSearchPosts": get_search_posts}
'''

CATALOG_MODULE = '''
catalog = [
    {"title": "Latest", "filter": "latest"},
    {"title": "Trending", "filter": "trending"},
]
genres = [{"title": "Action", "filter": "action"}]
'''

META_MODULE = '''
async def getMeta(link, provider):
    return {"title": "Example", "link": link, "provider": provider}

exports.getMeta = getMeta
'''

EPISODES_MODULE = '''
def get_episode_links(url):
    return [{"title": "Episode 1", "link": url + "/e1"}]
'''

DEBUG_STREAM_MODULE = '''
def get_stream(link):
    return []

def test():
    return {"ok": True}
'''


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def settings() -> HubSettings:
    return HubSettings(
        environment="test",
        module_mirrors=[MIRROR, BACKUP_MIRROR],
        provider_manifest_url=PROVIDER_MANIFEST,
        base_url_manifest_url=BASE_URL_MANIFEST,
        cascade_budget=5.0,
        resolver_timeout=5.0,
    )


@pytest.fixture()
def app_state(settings: HubSettings, upstream: FakeUpstream) -> AppState:
    return AppState(settings, transport=upstream.transport())
