"""Tests for provider aliases, the TTL cache, mirror loading and the registry."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from backend.providers.aliases import PROVIDER_ALIASES, normalize_provider_key
from backend.providers.cache import TTLCache
from backend.providers.errors import AbortedError
from backend.providers.loader import ModuleLoader
from backend.providers.models import MODULE_ROLES
from backend.providers.registry import MODULE_CACHE_TTL_SECONDS, ModuleRegistry
from backend.providers.signals import AbortSignal

from .conftest import BACKUP_MIRROR, MIRROR, FakeClock, FakeUpstream


def _registry(upstream: FakeUpstream, clock: FakeClock) -> ModuleRegistry:
    client = httpx.AsyncClient(transport=upstream.transport())
    loader = ModuleLoader(client, mirrors=[MIRROR, BACKUP_MIRROR])
    return ModuleRegistry(loader, ttl=MODULE_CACHE_TTL_SECONDS, clock=clock)


@pytest.mark.parametrize("raw", [*PROVIDER_ALIASES, "Mod", "  ModFlix ", "unknown-site", ""])
def test_alias_normalization_is_idempotent(raw: str) -> None:
    """Normalizing twice must give the same key as normalizing once."""

    once = normalize_provider_key(raw)
    assert normalize_provider_key(once) == once


def test_alias_normalization_maps_aliases_and_lowercases() -> None:
    assert normalize_provider_key("modflix") == "mod"
    assert normalize_provider_key("  MoviesMod ") == "mod"
    assert normalize_provider_key("HDHub4u") == "hdhub4u"
    assert normalize_provider_key(None) == ""


def test_ttl_cache_expires_entries_with_injected_clock() -> None:
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(10, clock=clock)
    cache.set("mod", "modules")

    clock.advance(9.9)
    assert cache.get("mod") == "modules"
    assert cache.keys() == ["mod"]

    clock.advance(0.1)
    assert cache.get("mod") is None
    assert cache.keys() == []
    assert len(cache) == 0


def test_modflix_alias_loads_all_roles_then_serves_from_cache(upstream: FakeUpstream) -> None:
    """A second request inside the TTL must not touch the network."""

    for role in MODULE_ROLES:
        upstream.module("mod", role, f"# {role} module\n")
    clock = FakeClock()
    registry = _registry(upstream, clock)

    first = asyncio.run(registry.resolve("modflix"))
    assert first.available() == list(MODULE_ROLES)
    assert first.stream == "# stream module\n"
    assert len(upstream.requests) == 5
    assert registry.cached_keys() == ["mod"]

    clock.advance(MODULE_CACHE_TTL_SECONDS - 1)
    second = asyncio.run(registry.resolve("mod"))
    assert second is first
    assert len(upstream.requests) == 5

    clock.advance(1)
    asyncio.run(registry.resolve("mod"))
    assert len(upstream.requests) == 10


def test_loader_falls_back_to_next_mirror_per_module(upstream: FakeUpstream) -> None:
    upstream.add(f"{MIRROR}/mod/stream.py", status=500, text="boom")
    upstream.module("mod", "stream", "# from backup\n", mirror=BACKUP_MIRROR)
    upstream.module("mod", "posts", "# posts\n")
    upstream.add(f"{MIRROR}/mod/meta.py", text="   \n")

    modules = asyncio.run(_registry(upstream, FakeClock()).resolve("mod"))

    assert modules.stream == "# from backup\n"
    assert modules.posts == "# posts\n"
    assert modules.meta is None
    assert modules.available() == ["posts", "stream"]
    assert modules.sizes() == {"posts": len("# posts\n"), "stream": len("# from backup\n")}


def test_transport_errors_do_not_fail_other_modules() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/stream.py"):
            raise httpx.ConnectError("refused", request=request)
        if request.url.path.endswith("/catalog.py"):
            return httpx.Response(200, text="catalog = []\n")
        return httpx.Response(404)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    registry = ModuleRegistry(ModuleLoader(client, mirrors=[MIRROR]), clock=FakeClock())

    modules = asyncio.run(registry.resolve("mod"))

    assert modules.available() == ["catalog"]
    assert modules.stream is None


def test_empty_module_sets_are_not_cached(upstream: FakeUpstream) -> None:
    registry = _registry(upstream, FakeClock())

    modules = asyncio.run(registry.resolve("ghost"))

    assert modules.is_empty()
    assert registry.cached_keys() == []
    asyncio.run(registry.resolve("ghost"))
    assert len(upstream.requests) == 2 * 2 * len(MODULE_ROLES)


def test_invalidate_drops_one_provider(upstream: FakeUpstream) -> None:
    upstream.module("mod", "stream", "# mod\n")
    upstream.module("multi", "stream", "# multi\n")
    registry = _registry(upstream, FakeClock())
    asyncio.run(registry.resolve("mod"))
    asyncio.run(registry.resolve("multimovies"))
    assert registry.cached_keys() == ["mod", "multi"]

    registry.invalidate("modflix")

    assert registry.cached_keys() == ["multi"]
    registry.invalidate()
    assert registry.cached_keys() == []


def test_aborted_fetch_leaves_cache_untouched(upstream: FakeUpstream) -> None:
    """A request cancelled mid-fetch must not pin a partial module set."""

    async def slow_stream(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.3)
        return httpx.Response(200, text="# stream module\n")

    upstream.module("mod", "posts", "# posts\n")
    upstream.add(f"{MIRROR}/mod/stream.py", responder=slow_stream)
    registry = _registry(upstream, FakeClock())

    async def resolve_then_disconnect() -> None:
        signal = AbortSignal()
        asyncio.get_running_loop().call_later(0.05, signal.abort)
        await registry.resolve("mod", signal=signal)

    with pytest.raises(AbortedError):
        asyncio.run(resolve_then_disconnect())
    assert registry.cached_keys() == []

    modules = asyncio.run(registry.resolve("mod"))

    assert modules.stream == "# stream module\n"
    assert registry.cached_keys() == ["mod"]
