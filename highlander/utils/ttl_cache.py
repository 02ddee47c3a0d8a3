"""Small read-through cache with time-based expiry."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """Cache values per key for ``ttl`` seconds.

    ``clock`` returns monotonic seconds and can be swapped in tests. ``None``
    results from ``fetch`` are not cached so a missing row is looked up again
    on the next call.
    """

    def __init__(
        self,
        default_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[Hashable, _Entry[V]] = {}

    def get(self, key: Hashable) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: Hashable, value: V, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    async def get_or_fetch(
        self,
        key: Hashable,
        fetch: Callable[[], Awaitable[V | None]],
        ttl: float | None = None,
    ) -> V | None:
        """Return the cached value for ``key`` or load it with ``fetch``."""
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await fetch()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
