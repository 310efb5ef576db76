"""Core data types for provider modules and stream resolution."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

MODULE_ROLES: tuple[str, ...] = ("posts", "meta", "stream", "catalog", "episodes")


class StreamCandidate(BaseModel):
    """Labeled, typed URL believed to point at playable media."""

    model_config = ConfigDict(extra="allow")

    server: str = Field(default="Unknown", description="Human readable server label.")
    link: str = Field(..., description="Absolute URL of the stream or embed page.")
    type: str = Field(default="mp4", description="Container or protocol hint.")
    quality: str | None = Field(default=None)
    headers: dict[str, str] | None = Field(default=None)

    @field_validator("link")
    @classmethod
    def _require_http_link(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("link must be an absolute http(s) URL")
        return value

    @field_validator("server", "type", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any) -> Any:
        if value is None:
            return value
        return str(value)


def validate_candidates(raw: Any, *, source: str = "provider") -> list[StreamCandidate]:
    """Validate provider output, dropping entries that do not fit the schema."""

    if raw is None:
        return []
    if isinstance(raw, (StreamCandidate, Mapping)):
        raw = [raw]
    if not isinstance(raw, Iterable) or isinstance(raw, (str, bytes)):
        logger.warning("Discarding non-list stream result from %s: %r", source, type(raw))
        return []

    candidates: list[StreamCandidate] = []
    for item in raw:
        if isinstance(item, StreamCandidate):
            candidates.append(item)
            continue
        try:
            candidates.append(StreamCandidate.model_validate(item))
        except ValidationError as exc:
            logger.warning("Dropping invalid stream candidate from %s: %s", source, exc.errors()[0]["msg"])
    return candidates


def dedupe_candidates(candidates: Iterable[StreamCandidate]) -> list[StreamCandidate]:
    """Drop repeated links while keeping preference order."""

    seen: set[str] = set()
    unique: list[StreamCandidate] = []
    for candidate in candidates:
        if candidate.link in seen:
            continue
        seen.add(candidate.link)
        unique.append(candidate)
    return unique


@dataclass(frozen=True, slots=True)
class ProviderModuleSet:
    """Source text per module role; a missing role is a valid state."""

    posts: str | None = None
    meta: str | None = None
    stream: str | None = None
    catalog: str | None = None
    episodes: str | None = None

    def get(self, role: str) -> str | None:
        if role not in MODULE_ROLES:
            raise KeyError(role)
        return getattr(self, role)

    def available(self) -> list[str]:
        return [role for role in MODULE_ROLES if getattr(self, role)]

    def sizes(self) -> dict[str, int]:
        return {role: len(getattr(self, role) or "") for role in self.available()}

    def is_empty(self) -> bool:
        return not self.available()


@dataclass(slots=True)
class ExtractionAttempt:
    """Outcome of a single cascade strategy, kept for diagnostics."""

    strategy: str
    succeeded: bool
    candidates: int = 0
    elapsed: float = 0.0
    error: str | None = None


@dataclass(slots=True)
class ResolutionResult:
    """Ordered candidates plus where they came from."""

    candidates: list[StreamCandidate]
    source: str
    attempts: list[ExtractionAttempt] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "data": [candidate.model_dump(exclude_none=True) for candidate in self.candidates],
            "source": self.source,
        }
