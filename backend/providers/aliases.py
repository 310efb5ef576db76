"""Provider identifier normalization."""
from __future__ import annotations

PROVIDER_ALIASES: dict[str, str] = {
    "modflix": "mod",
    "moviesmod": "mod",
    "multimovie": "multi",
    "multimovies": "multi",
    "world4ufree": "world4u",
    "hdhub": "hdhub4u",
}


def normalize_provider_key(provider_value: str | None) -> str:
    """Map a raw provider value to its canonical cache key.

    Unknown values pass through lowercased and trimmed. Alias targets are never
    themselves aliases, so applying the function twice is a no-op.
    """

    value = (provider_value or "").strip().lower()
    return PROVIDER_ALIASES.get(value, value)
