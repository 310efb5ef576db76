"""Module diagnostics behind the test-provider endpoint and CLI."""
from __future__ import annotations

import logging
import traceback
from typing import Any

from .context import ProviderContext
from .errors import ExecutionError, ModuleUnavailableError, ProviderError
from .resolution import ProviderModules
from .signals import AbortSignal

logger = logging.getLogger(__name__)

DIAGNOSTIC_ACTIONS: tuple[str, ...] = ("info", "test-stream", "execute-test", "clear-cache")

_DEBUG_MARKERS = ("test", "debug", "info")


class UnknownActionError(ProviderError):
    status_code = 400
    default_suggestions = tuple(f"Use action={action}" for action in DIAGNOSTIC_ACTIONS)

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["availableActions"] = list(DIAGNOSTIC_ACTIONS)
        return payload


class ProviderDiagnostics:
    def __init__(self, modules: ProviderModules, provider_context: ProviderContext) -> None:
        self._modules = modules
        self._context = provider_context

    async def run(
        self,
        provider: str,
        action: str,
        *,
        signal: AbortSignal | None = None,
        include_traceback: bool = False,
    ) -> dict[str, Any]:
        logger.info("Diagnostics %s for provider %s", action, provider)
        if action == "info":
            return await self.info(provider, signal=signal)
        if action == "test-stream":
            return await self.test_stream(provider, signal=signal)
        if action == "execute-test":
            return await self.execute_test(provider, signal=signal, include_traceback=include_traceback)
        if action == "clear-cache":
            return self.clear_cache(provider)
        raise UnknownActionError(f"Invalid action: {action}")

    async def info(self, provider: str, *, signal: AbortSignal | None = None) -> dict[str, Any]:
        modules = await self._modules.registry.resolve(provider, signal=signal)
        return {
            "provider": provider,
            "modules": modules.available(),
            "moduleSizes": modules.sizes(),
            "providerContext": {
                "available": ["http", "parse_html", "get_base_url", "extractors", "common_headers", "debug"],
                "extractors": self._context.extractors.names(),
                "headers": sorted(self._context.common_headers),
            },
        }

    async def test_stream(self, provider: str, *, signal: AbortSignal | None = None) -> dict[str, Any]:
        module = await self._modules.load(provider, "stream", signal=signal)
        exported = module.export_names
        return {
            "provider": provider,
            "exports": exported,
            "functions": module.functions(),
            "testFunctions": [
                name for name in exported if any(marker in name.lower() for marker in _DEBUG_MARKERS)
            ],
            "hasGetStream": module.get_stream is not None,
        }

    async def execute_test(
        self,
        provider: str,
        *,
        signal: AbortSignal | None = None,
        include_traceback: bool = False,
    ) -> dict[str, Any]:
        module = await self._modules.load(provider, "stream", signal=signal)
        if module.debug is None:
            raise ModuleUnavailableError(
                "No test function available",
                suggestions=[f"Exported functions: {', '.join(module.functions()) or 'none'}"],
            )
        try:
            result = await module.debug(signal=signal, provider_context=self._context)
        except ExecutionError as exc:
            payload: dict[str, Any] = {"success": False, "error": exc.message}
            if include_traceback and exc.cause is not None:
                payload["details"] = "".join(traceback.format_exception(exc.cause))
            return payload
        return {"success": True, "result": result, "resultType": type(result).__name__}

    def clear_cache(self, provider: str) -> dict[str, Any]:
        self._modules.registry.invalidate(provider)
        return {"success": True, "message": f"Cache cleared for provider: {provider}"}
