"""Tests for the byte relay and the best-effort transcode relay."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from backend.providers.errors import (
    AbortedError,
    InvalidRequestError,
    TranscodeFailedError,
    UpstreamRejectedError,
)
from backend.providers.http import ProviderHttpClient
from backend.providers.proxy import StreamProxy, UpstreamRelay
from backend.providers.signals import AbortSignal
from backend.providers.transcode import TranscodeRelay

from .conftest import FakeUpstream

MEDIA_URL = "https://media.test/movie.mp4"
BODY = bytes(range(256)) * 4


def _ranged(request: httpx.Request) -> httpx.Response:
    header = request.headers.get("range")
    if not header:
        return httpx.Response(200, content=BODY, headers={"content-type": "video/mp4", "accept-ranges": "bytes"})
    start, end = (int(part) for part in header.removeprefix("bytes=").split("-"))
    return httpx.Response(
        206,
        content=BODY[start : end + 1],
        headers={
            "content-type": "video/mp4",
            "content-range": f"bytes {start}-{end}/{len(BODY)}",
            "accept-ranges": "bytes",
        },
    )


async def _drain(relay: UpstreamRelay) -> bytes:
    return b"".join([chunk async for chunk in relay.body])


def _proxy(upstream: FakeUpstream) -> StreamProxy:
    return StreamProxy(httpx.AsyncClient(transport=upstream.transport()))


def test_partial_content_is_relayed_byte_for_byte(upstream: FakeUpstream) -> None:
    upstream.add(MEDIA_URL, responder=_ranged)

    async def scenario() -> tuple[UpstreamRelay, bytes]:
        relay = await _proxy(upstream).open(MEDIA_URL, range_header="bytes=100-199", referer="https://site.test/")
        return relay, await _drain(relay)

    relay, body = asyncio.run(scenario())

    assert relay.status_code == 206
    assert body == BODY[100:200]
    assert relay.headers["content-range"] == "bytes 100-199/1024"
    assert relay.headers["content-length"] == "100"
    sent = upstream.requests[0].headers
    assert sent["range"] == "bytes=100-199"
    assert sent["referer"] == "https://site.test/"
    assert sent["accept-encoding"] == "identity"


def test_missing_length_is_backfilled_from_head(upstream: FakeUpstream) -> None:
    upstream.add(
        MEDIA_URL,
        responder=lambda request: httpx.Response(
            200, stream=httpx.ByteStream(b"abc"), headers={"content-type": "video/mp4"}
        ),
    )
    upstream.add(
        MEDIA_URL,
        method="HEAD",
        headers={"content-length": "734003200", "accept-ranges": "bytes", "content-type": "video/mp4"},
    )

    async def scenario() -> UpstreamRelay:
        relay = await _proxy(upstream).open(MEDIA_URL)
        await _drain(relay)
        return relay

    relay = asyncio.run(scenario())

    assert relay.headers["content-length"] == "734003200"
    assert relay.headers["accept-ranges"] == "bytes"
    assert relay.headers["cache-control"] == "no-store"
    assert relay.headers["access-control-allow-origin"] == "*"
    assert upstream.calls(MEDIA_URL, method="HEAD") == 1


def test_partial_responses_never_take_full_length_from_head(upstream: FakeUpstream) -> None:
    upstream.add(
        MEDIA_URL,
        responder=lambda request: httpx.Response(
            206,
            stream=httpx.ByteStream(b"abc"),
            headers={"content-type": "video/mp4", "content-range": "bytes 0-2/900"},
        ),
    )
    upstream.add(MEDIA_URL, method="HEAD", headers={"content-length": "900", "accept-ranges": "bytes"})

    relay = asyncio.run(_proxy(upstream).open(MEDIA_URL, range_header="bytes=0-2"))

    assert "content-length" not in relay.headers
    assert relay.headers["accept-ranges"] == "bytes"
    asyncio.run(relay.aclose())


class RecordingStream(httpx.AsyncByteStream):
    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self):
        yield b"abc"

    async def aclose(self) -> None:
        self.closed = True


def test_body_is_closed_when_backfill_is_aborted(upstream: FakeUpstream) -> None:
    stream = RecordingStream()
    upstream.add(
        MEDIA_URL,
        responder=lambda request: httpx.Response(200, stream=stream, headers={"content-type": "video/mp4"}),
    )

    async def hanging_head(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    upstream.add(MEDIA_URL, method="HEAD", responder=hanging_head)

    async def open_then_abort() -> None:
        signal = AbortSignal()
        asyncio.get_running_loop().call_later(0.05, signal.abort)
        await _proxy(upstream).open(MEDIA_URL, signal=signal)

    with pytest.raises(AbortedError):
        asyncio.run(open_then_abort())

    assert stream.closed
    assert upstream.calls(MEDIA_URL, method="HEAD") == 1


def test_upstream_errors_are_forwarded(upstream: FakeUpstream) -> None:
    upstream.add(MEDIA_URL, status=403, text="denied", headers={"content-type": "text/plain"})

    async def scenario() -> tuple[UpstreamRelay, bytes]:
        relay = await _proxy(upstream).open(MEDIA_URL)
        return relay, await _drain(relay)

    relay, body = asyncio.run(scenario())

    assert relay.status_code == 403
    assert body == b"denied"
    assert not relay.ok


@pytest.mark.parametrize("url", [None, "", "ftp://media.test/a.mp4", "/relative.mp4"])
def test_proxy_requires_absolute_http_urls(upstream: FakeUpstream, url: str | None) -> None:
    with pytest.raises(InvalidRequestError):
        asyncio.run(_proxy(upstream).open(url))
    assert upstream.requests == []


def _transcoder(upstream: FakeUpstream) -> TranscodeRelay:
    client = httpx.AsyncClient(transport=upstream.transport())
    return TranscodeRelay(StreamProxy(client), ProviderHttpClient(client))


def test_transcode_direct_rejects_non_success(upstream: FakeUpstream) -> None:
    upstream.add(MEDIA_URL, status=451, text="blocked")

    with pytest.raises(UpstreamRejectedError) as excinfo:
        asyncio.run(_transcoder(upstream).open(MEDIA_URL, method="direct"))

    assert excinfo.value.status_code == 451


def test_transcode_auto_retries_with_alternative_user_agent(upstream: FakeUpstream) -> None:
    def picky(request: httpx.Request) -> httpx.Response:
        if "Macintosh" in request.headers["user-agent"]:
            return httpx.Response(200, content=b"movie", headers={"content-type": "video/mp4"})
        return httpx.Response(403)

    upstream.add(MEDIA_URL, responder=picky)

    async def scenario() -> tuple[str, bytes]:
        method, relay = await _transcoder(upstream).open(MEDIA_URL)
        assert isinstance(relay, UpstreamRelay)
        return method, await _drain(relay)

    method, body = asyncio.run(scenario())

    assert method == "alternative-headers"
    assert body == b"movie"


def test_transcode_extracts_video_urls_from_pages(upstream: FakeUpstream) -> None:
    page = "https://site.test/watch/1"
    upstream.add(
        page,
        text='<video><source src="https://media.test/gone.mp4"></video>',
        headers={"content-type": "text/html; charset=utf-8"},
    )

    method, payload = asyncio.run(_transcoder(upstream).open(page, method="extract"))

    assert method == "url-extraction"
    assert payload["videos"] == ["https://media.test/gone.mp4"]
    assert payload["streamingOptions"][0]["endpoint"] == (
        "/transcode?url=https%3A%2F%2Fmedia.test%2Fgone.mp4&method=direct"
    )


def test_transcode_failure_points_at_proxy_and_fallback(upstream: FakeUpstream) -> None:
    with pytest.raises(TranscodeFailedError) as excinfo:
        asyncio.run(_transcoder(upstream).open(MEDIA_URL, referer="https://site.test/"))

    payload = excinfo.value.to_payload()
    assert payload["redirect"] is True
    assert payload["fallback"].startswith("/stream-fallback?url=https%3A%2F%2Fmedia.test%2Fmovie.mp4")
    assert payload["proxy"].startswith("/proxy?url=")
    assert "referer=https%3A%2F%2Fsite.test%2F" in payload["proxy"]
