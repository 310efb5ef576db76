"""Provider module diagnostics endpoint."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...providers.diagnostics import ProviderDiagnostics
from ...providers.signals import AbortSignal
from ..dependencies import get_abort_signal, get_diagnostics, get_settings, require_params
from ..settings import HubSettings

router = APIRouter(tags=["diagnostics"])


@router.get("/test-provider", summary="Inspect, exercise or evict a provider's modules")
async def test_provider(
    provider: str | None = Query(default=None),
    action: str = Query(default="info", description="info, test-stream, execute-test or clear-cache."),
    diagnostics: ProviderDiagnostics = Depends(get_diagnostics),
    settings: HubSettings = Depends(get_settings),
    signal: AbortSignal = Depends(get_abort_signal),
) -> dict[str, Any]:
    require_params(provider=provider)
    return await diagnostics.run(
        provider,
        action,
        signal=signal,
        include_traceback=not settings.is_production,
    )
