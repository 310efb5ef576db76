"""Provider catalogue endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ...providers.signals import AbortSignal
from ..dependencies import get_abort_signal, get_app_state
from ..schemas import ProviderListResponse, ProviderSummary
from ..state import AppState

router = APIRouter(tags=["providers"])


@router.get("/providers", response_model=ProviderListResponse, summary="List enabled providers")
async def list_providers(
    app_state: AppState = Depends(get_app_state),
    signal: AbortSignal = Depends(get_abort_signal),
) -> ProviderListResponse:
    entries = await app_state.manifest.providers(signal=signal)
    return ProviderListResponse(data=[ProviderSummary.model_validate(entry) for entry in entries])
