"""Pydantic models exposed by the Streamhub API."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the API service.")
    environment: str = Field(default="development", description="Configured deployment environment.")
    cached_providers: list[str] = Field(
        default_factory=list,
        description="Provider keys whose module sets are currently cached.",
    )


class ProviderSummary(BaseModel):
    """One enabled entry of the provider manifest."""

    value: str = Field(..., description="Provider identifier accepted by every endpoint.")
    name: str = Field(..., description="Human readable provider name.")
    type: str = Field(default="global", description="Catalogue grouping of the provider.")
    icon: str = Field(default="", description="Icon URL, empty when the manifest has none.")
    version: str = Field(default="0", description="Module version published in the manifest.")


class ProviderListResponse(BaseModel):
    """Envelope for ``GET /providers``."""

    data: list[ProviderSummary] = Field(default_factory=list)
