from __future__ import annotations

import time
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Small process-local TTL cache; entries are dropped lazily on access."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = max(1.0, ttl_seconds)
        self._max_entries = max(16, max_entries)
        self._clock = clock
        self._data: dict[str, tuple[float, T]] = {}

    def get(self, key: str) -> T | None:
        value = self._data.get(key)
        if value is None:
            return None
        expires_at, payload = value
        if expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return payload

    def set(self, key: str, value: T) -> None:
        now = self._clock()
        self._evict_expired(now)
        if len(self._data) >= self._max_entries:
            oldest_key = min(self._data, key=lambda k: self._data[k][0])
            self._data.pop(oldest_key, None)
        self._data[key] = (now + self._ttl_seconds, value)

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._data.items() if expires_at <= now]
        for key in expired:
            self._data.pop(key, None)
