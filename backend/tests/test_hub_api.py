"""Endpoint tests for the Streamhub API application factory."""
from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.hub_api import create_app
from backend.hub_api.settings import HubSettings

from .conftest import (
    CATALOG_MODULE,
    DEBUG_STREAM_MODULE,
    EMPTY_STREAM_MODULE,
    EPISODES_MODULE,
    FAILING_STREAM_MODULE,
    META_MODULE,
    POSTS_MODULE,
    PROVIDER_MANIFEST,
    STREAM_MODULE,
    FakeUpstream,
)

MEDIA_URL = "https://media.test/movie.mp4"


@pytest.fixture()
def client(settings: HubSettings, upstream: FakeUpstream) -> TestClient:
    """Provide a test client whose outbound traffic hits the scripted upstream."""

    return TestClient(create_app(settings=settings, transport=upstream.transport()))


def test_health_endpoint_reports_ok_status(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "version": "0.1.0",
        "environment": "test",
        "cached_providers": [],
    }


def test_providers_lists_enabled_manifest_entries(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.add(
        PROVIDER_MANIFEST,
        json=[
            {"value": "mod", "display_name": "ModFlix", "type": "global", "icon": "https://i.test/m.png", "version": "1.2"},
            {"value": "old", "display_name": "Retired", "disabled": True},
        ],
    )

    response = client.get("/providers")

    assert response.status_code == 200
    assert response.json() == {
        "data": [
            {"value": "mod", "name": "ModFlix", "type": "global", "icon": "https://i.test/m.png", "version": "1.2"}
        ]
    }


def test_providers_reports_unreachable_manifest(client: TestClient) -> None:
    response = client.get("/providers")

    assert response.status_code == 502
    assert response.json()["suggestions"]


def test_stream_resolves_through_alias_and_caches_modules(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.module("mod", "stream", STREAM_MODULE)

    response = client.get("/stream", params={"provider": "modflix", "link": "https://site.test/movies/abc"})

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "provider"
    assert body["data"][0]["link"] == "https://cdn.test/video/master.m3u8"
    assert len(body["data"]) == 1
    assert client.get("/health").json()["cached_providers"] == ["mod"]


def test_stream_requires_provider_and_link(client: TestClient) -> None:
    response = client.get("/stream", params={"link": "https://site.test/x"})

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required parameters: provider"


def test_stream_without_module_returns_404(client: TestClient) -> None:
    response = client.get("/stream", params={"provider": "ghost", "link": "https://site.test/x"})

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "No stream module for provider: ghost"
    assert "Check the provider identifier" in body["suggestions"]


def test_stream_execution_error_includes_traceback_outside_production(
    client: TestClient, upstream: FakeUpstream
) -> None:
    upstream.module("mod", "stream", FAILING_STREAM_MODULE)

    response = client.get("/stream", params={"provider": "mod", "link": "https://site.test/x"})

    assert response.status_code == 500
    body = response.json()
    assert "layout changed" in body["error"]
    assert "ValueError: layout changed" in body["details"]


def test_stream_execution_error_hides_traceback_in_production(
    settings: HubSettings, upstream: FakeUpstream
) -> None:
    upstream.module("mod", "stream", FAILING_STREAM_MODULE)
    production = settings.model_copy(update={"environment": "production"})
    client = TestClient(create_app(settings=production, transport=upstream.transport()))

    response = client.get("/stream", params={"provider": "mod", "link": "https://site.test/x"})

    assert response.status_code == 500
    assert "details" not in response.json()


def test_stream_exhaustion_returns_422_with_reasons(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.module("mod", "stream", EMPTY_STREAM_MODULE)

    response = client.get("/stream", params={"provider": "mod", "link": "https://site.test/movies/gone"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "Content extraction failed"
    assert body["originalUrl"] == "https://site.test/movies/gone"
    assert body["provider"] == "mod"
    assert len(body["reasons"]) == 4


def test_stream_fallback_endpoint(client: TestClient, upstream: FakeUpstream) -> None:
    direct = client.get("/stream-fallback", params={"url": "https://files.test/movie.mp4"})
    assert direct.status_code == 200
    assert direct.json() == {
        "data": [{"server": "Direct Stream", "link": "https://files.test/movie.mp4", "type": "mp4"}],
        "source": "stream-fallback",
    }

    upstream.add("https://site.test/blank", text="<html><body>nothing</body></html>")
    empty = client.get("/stream-fallback", params={"link": "https://site.test/blank"})
    assert empty.status_code == 422
    assert empty.json()["details"] == "Unable to extract content using fallback methods"

    assert client.get("/stream-fallback").status_code == 400


def test_proxy_relays_partial_content(client: TestClient, upstream: FakeUpstream) -> None:
    body = bytes(range(256)) * 4

    def ranged(request: httpx.Request) -> httpx.Response:
        assert request.headers["range"] == "bytes=100-199"
        return httpx.Response(
            206,
            content=body[100:200],
            headers={"content-type": "video/mp4", "content-range": "bytes 100-199/1024", "accept-ranges": "bytes"},
        )

    upstream.add(MEDIA_URL, responder=ranged)

    response = client.get("/proxy", params={"url": MEDIA_URL}, headers={"Range": "bytes=100-199"})

    assert response.status_code == 206
    assert response.content == body[100:200]
    assert response.headers["content-range"] == "bytes 100-199/1024"
    assert response.headers["access-control-allow-origin"] == "*"
    assert "Content-Range" in response.headers["access-control-expose-headers"]


def test_proxy_rejects_non_http_urls(client: TestClient) -> None:
    response = client.get("/proxy", params={"url": "file:///etc/passwd"})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Bad Request")


def test_transcode_streams_directly_when_possible(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.add(MEDIA_URL, content=b"movie-bytes", headers={"content-type": "video/mp4", "accept-ranges": "bytes"})

    response = client.get("/transcode", params={"url": MEDIA_URL})

    assert response.status_code == 200
    assert response.content == b"movie-bytes"
    assert response.headers["x-transcode-method"] == "direct-streaming"


def test_transcode_failure_points_to_alternatives(client: TestClient) -> None:
    response = client.get("/transcode", params={"link": MEDIA_URL})

    assert response.status_code == 502
    body = response.json()
    assert body["redirect"] is True
    assert body["fallback"].startswith("/stream-fallback?")
    assert body["proxy"].startswith("/proxy?")


def test_catalogue_pass_through_endpoints(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.module("mod", "posts", POSTS_MODULE)
    upstream.module("mod", "meta", META_MODULE)
    upstream.module("mod", "episodes", EPISODES_MODULE)
    upstream.module("mod", "catalog", CATALOG_MODULE)

    posts = client.get("/posts", params={"provider": "mod", "filter": "latest", "page": 2})
    assert posts.json() == {"data": [{"title": "latest 2", "link": "https://site.test/latest/2"}]}

    search = client.get("/search", params={"provider": "mod", "q": "dune"})
    assert search.json()["data"][0]["title"] == "Dune"

    info = client.get("/info", params={"provider": "mod", "link": "https://site.test/m/1"})
    assert info.json() == {"data": {"title": "Example", "link": "https://site.test/m/1", "provider": "mod"}}

    episodes = client.get("/episodes", params={"provider": "mod", "url": "https://site.test/s1"})
    assert episodes.json() == {"data": [{"title": "Episode 1", "link": "https://site.test/s1/e1"}]}

    home = client.get("/home", params={"provider": "mod"}).json()
    assert [section["filter"] for section in home["catalog"]] == ["latest", "trending"]
    assert home["data"][1] == {
        "title": "Trending",
        "filter": "trending",
        "Posts": [{"title": "trending 1", "link": "https://site.test/trending/1"}],
    }


def test_catalogue_endpoints_tolerate_missing_roles(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.module("mod", "stream", STREAM_MODULE)

    assert client.get("/posts", params={"provider": "mod"}).json() == {"data": []}
    assert client.get("/info", params={"provider": "mod", "link": "https://site.test/m/1"}).json() == {"data": None}
    assert client.get("/home", params={"provider": "mod"}).json() == {"catalog": [], "data": []}
    assert client.get("/search", params={"provider": "mod"}).status_code == 400


def test_test_provider_actions(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.module("mod", "stream", DEBUG_STREAM_MODULE)
    upstream.module("mod", "posts", POSTS_MODULE)

    info = client.get("/test-provider", params={"provider": "mod"}).json()
    assert info["modules"] == ["posts", "stream"]
    assert info["moduleSizes"]["stream"] == len(DEBUG_STREAM_MODULE)
    assert "gdflix" in info["providerContext"]["extractors"]

    stream = client.get("/test-provider", params={"provider": "mod", "action": "test-stream"}).json()
    assert stream["hasGetStream"] is True
    assert stream["testFunctions"] == ["test"]
    assert stream["functions"] == ["debug", "get_stream"]

    executed = client.get("/test-provider", params={"provider": "mod", "action": "execute-test"}).json()
    assert executed == {"success": True, "result": {"ok": True}, "resultType": "dict"}

    cleared = client.get("/test-provider", params={"provider": "mod", "action": "clear-cache"}).json()
    assert cleared == {"success": True, "message": "Cache cleared for provider: mod"}
    assert client.get("/health").json()["cached_providers"] == []


def test_test_provider_rejects_unknown_action(client: TestClient) -> None:
    response = client.get("/test-provider", params={"provider": "mod", "action": "explode"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid action: explode"
    assert body["availableActions"] == ["info", "test-stream", "execute-test", "clear-cache"]
