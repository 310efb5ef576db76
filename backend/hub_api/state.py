"""Shared state container for the Streamhub API."""
from __future__ import annotations

import httpx

from ..providers.cascade import CascadeRunner, build_default_strategies
from ..providers.content import ProviderContentService
from ..providers.context import ProviderContext, build_provider_context
from ..providers.diagnostics import ProviderDiagnostics
from ..providers.fallback import FallbackClient, FallbackResolver
from ..providers.http import ProviderHttpClient, build_http_client
from ..providers.loader import ModuleLoader
from ..providers.manifest import ProviderManifest
from ..providers.patterns import MiningPatterns
from ..providers.proxy import StreamProxy
from ..providers.registry import ModuleRegistry
from ..providers.resolution import ProviderModules, StreamResolutionService
from ..providers.sandbox import SandboxExecutor
from ..providers.transcode import TranscodeRelay
from .settings import HubSettings


class AppState:
    """Service objects built once per application and shared by every router."""

    def __init__(
        self,
        settings: HubSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.client = build_http_client(
            user_agent=settings.user_agent,
            timeout=settings.http_timeout,
            transport=transport,
        )
        self.http = ProviderHttpClient(self.client)
        self.patterns = MiningPatterns(
            cdn_domains=tuple(settings.cdn_domains),
            hosting_domains=tuple(settings.hosting_domains),
            redirectors=dict(settings.redirector_domains),
        )

        self.registry = ModuleRegistry(
            ModuleLoader(
                self.client,
                mirrors=settings.module_mirrors,
                suffix=settings.module_suffix,
                timeout=settings.module_fetch_timeout,
            ),
            ttl=settings.module_cache_ttl,
        )
        self.provider_context: ProviderContext = build_provider_context(
            self.http,
            base_url_manifest=settings.base_url_manifest_url,
            base_url_ttl=settings.base_url_ttl,
        )
        self.executor = SandboxExecutor(self.provider_context, max_source_bytes=settings.module_max_bytes)
        self.modules = ProviderModules(
            self.registry,
            self.executor,
            cache_age_threshold_ms=settings.cache_age_refresh_ms,
        )

        self.fallback_resolver = FallbackResolver(self.http, patterns=self.patterns)
        self.fallback = FallbackClient(
            self.http,
            self.fallback_resolver,
            service_url=settings.fallback_resolver_url,
        )
        self.cascade = CascadeRunner(
            build_default_strategies(
                http=self.http,
                extractors=self.provider_context.extractors,
                fallback=self.fallback,
                patterns=self.patterns,
                timeouts=settings.strategy_timeouts,
                strategy_concurrency=settings.strategy_concurrency,
                tunnel_link_limit=settings.tunnel_link_limit,
                tunnel_link_timeout=settings.tunnel_link_timeout,
            ),
            budget=settings.cascade_budget,
        )
        self.resolution = StreamResolutionService(
            self.modules,
            self.cascade,
            self.provider_context,
            resolver_timeout=settings.resolver_timeout,
            debug_timeout=settings.debug_hook_timeout,
        )
        self.content = ProviderContentService(self.modules, self.provider_context)
        self.diagnostics = ProviderDiagnostics(self.modules, self.provider_context)
        self.manifest = ProviderManifest(self.http, url=settings.provider_manifest_url)
        self.proxy = StreamProxy(self.client, user_agent=settings.user_agent)
        self.transcode = TranscodeRelay(self.proxy, self.http, patterns=self.patterns)

    async def aclose(self) -> None:
        await self.client.aclose()
