"""Stream resolution: provider resolver first, then the extraction cascade.

States per request: resolving through the provider's own ``get_stream``,
cascading through fallback strategies when that result is empty, and
resolved. Terminal failures are ``ModuleUnavailableError`` (no stream module
or resolver), ``NoCandidatesError`` (cascade exhausted) and the timeout and
execution errors raised while resolving.
"""
from __future__ import annotations

import logging
from typing import Any

from .adapter import ModuleFunction, ProviderModule, load_provider_module
from .aliases import normalize_provider_key
from .cascade import CascadeRunner, ExtractionRequest
from .errors import AbortedError, ExecutionError, ModuleUnavailableError, NoCandidatesError
from .models import ResolutionResult, validate_candidates
from .registry import ModuleRegistry
from .sandbox import SandboxExecutor
from .signals import AbortSignal

logger = logging.getLogger(__name__)

RESOLVER_TIMEOUT_SECONDS = 30.0
DEBUG_HOOK_TIMEOUT_SECONDS = 10.0
CACHE_AGE_REFRESH_MS = 5 * 60 * 1000


class ProviderModules:
    """Load provider modules by role: registry lookup, then sandboxed execution."""

    def __init__(
        self,
        registry: ModuleRegistry,
        executor: SandboxExecutor,
        *,
        cache_age_threshold_ms: int = CACHE_AGE_REFRESH_MS,
    ) -> None:
        self.registry = registry
        self._executor = executor
        self._cache_age_threshold_ms = cache_age_threshold_ms

    def should_refresh(self, *, refresh: bool = False, cache_age: int | None = None) -> bool:
        return refresh or (cache_age is not None and cache_age > self._cache_age_threshold_ms)

    async def load(
        self,
        provider: str,
        role: str,
        *,
        signal: AbortSignal | None = None,
        refresh: bool = False,
        required: bool = True,
    ) -> ProviderModule | None:
        if refresh:
            self.registry.invalidate(provider)
        modules = await self.registry.resolve(provider, signal=signal)
        source = modules.get(role)
        if not source:
            if required:
                raise ModuleUnavailableError(f"No {role} module for provider: {provider}")
            return None
        label = f"{normalize_provider_key(provider)}/{role}"
        return load_provider_module(self._executor, source, role=role, label=label)


class StreamResolutionService:
    """Resolve a content link to an ordered list of stream candidates."""

    def __init__(
        self,
        modules: ProviderModules,
        cascade: CascadeRunner,
        provider_context: Any,
        *,
        resolver_timeout: float = RESOLVER_TIMEOUT_SECONDS,
        debug_timeout: float = DEBUG_HOOK_TIMEOUT_SECONDS,
    ) -> None:
        self._modules = modules
        self._cascade = cascade
        self._context = provider_context
        self._resolver_timeout = resolver_timeout
        self._debug_timeout = debug_timeout

    async def resolve(
        self,
        provider: str,
        link: str,
        *,
        type: str = "movie",
        signal: AbortSignal | None = None,
        refresh: bool = False,
        cache_age: int | None = None,
    ) -> ResolutionResult:
        signal = signal or AbortSignal()
        refresh = self._modules.should_refresh(refresh=refresh, cache_age=cache_age)
        if refresh:
            logger.info("Refreshing modules for %s before resolving", provider)

        module = await self._modules.load(provider, "stream", signal=signal, refresh=refresh)
        get_stream = module.get_stream
        if get_stream is None:
            raise ModuleUnavailableError(
                f"getStream function not available for provider: {provider}",
                suggestions=["The provider module may need to be updated"],
            )

        logger.info("Resolving %s link %s (%s)", provider, link, type)
        raw = await self._call_resolver(get_stream, link, type, signal)
        candidates = validate_candidates(raw, source=module.label)
        if candidates:
            logger.info("Provider %s returned %d stream(s)", provider, len(candidates))
            return ResolutionResult(candidates=candidates, source="provider")

        logger.warning("Provider %s returned no streams for %s", provider, link)
        await self._debug_empty_result(module, link, type, signal)

        result = await self._cascade.run(
            ExtractionRequest(
                provider=normalize_provider_key(provider),
                link=link,
                type=type,
                signal=signal,
                resolver=get_stream,
                provider_context=self._context,
            )
        )
        if result.candidates:
            return result

        logger.warning(
            "Cascade exhausted for %s: %s",
            link,
            ", ".join(f"{a.strategy}={a.error or 'empty'}" for a in result.attempts) or "no strategies ran",
        )
        raise NoCandidatesError("Content extraction failed", link=link, provider=provider)

    async def _call_resolver(
        self,
        get_stream: ModuleFunction,
        link: str,
        type: str,
        signal: AbortSignal,
    ) -> Any:
        deadline = AbortSignal.timeout(
            self._resolver_timeout,
            message="Request timeout - the provider took too long to respond",
        )
        combined = AbortSignal.any([signal, deadline])
        try:
            return await combined.guard(
                get_stream(link=link, type=type, signal=combined, provider_context=self._context)
            )
        finally:
            deadline.dispose()

    async def _debug_empty_result(
        self,
        module: ProviderModule,
        link: str,
        type: str,
        signal: AbortSignal,
    ) -> None:
        """Run the module's debug hook under the request signal and its own deadline."""

        debug = module.debug
        if debug is None:
            return
        deadline = AbortSignal.timeout(self._debug_timeout, message="Debug hook took too long")
        combined = AbortSignal.any([signal, deadline])
        try:
            result = await combined.guard(
                debug(link=link, type=type, signal=combined, provider_context=self._context)
            )
        except ExecutionError as exc:
            logger.warning("Debug hook of %s failed: %s", module.label, exc)
            return
        except AbortedError as exc:
            signal.raise_if_aborted()
            logger.warning("Debug hook of %s abandoned: %s", module.label, exc)
            return
        finally:
            deadline.dispose()
        logger.info("Debug hook of %s returned: %r", module.label, result)
