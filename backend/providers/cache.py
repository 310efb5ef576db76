"""In-memory TTL cache with whole-entry replacement."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[V]):
    """Immutable cache record; refreshes replace the entry instead of mutating it."""

    value: V
    fetched_at: float


class TTLCache(Generic[V]):
    """Keyed cache whose entries expire ``ttl`` seconds after they were stored."""

    def __init__(self, ttl: float, *, clock: Clock = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self._ttl:
            return None
        return entry.value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._entries = {}
            return
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        """Return keys whose entries are still fresh."""

        now = self._clock()
        return sorted(
            key for key, entry in self._entries.items() if now - entry.fetched_at < self._ttl
        )

    def __len__(self) -> int:
        return len(self.keys())
