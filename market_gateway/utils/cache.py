from __future__ import annotations

import time
from typing import Any, Callable


class CacheStore:
    """
    Volatile in-memory cache.

    Each key holds one (stored_at, value) pair. Freshness is decided at read
    time against a TTL supplied by the caller, so the same store can serve
    short-lived price data and slow-changing reference data. Stale entries are
    not removed; they stay until overwritten or cleared. There is no eviction
    and no size bound.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def is_valid(self, key: str, ttl: float) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        stored_at, _ = entry
        return self._clock() - stored_at < ttl

    def get(self, key: str, ttl: float) -> Any | None:
        """
        Return cached value if it exists and is younger than ttl seconds.
        """
        if not self.is_valid(key, ttl):
            return None
        return self._entries[key][1]

    def put(self, key: str, value: Any) -> None:
        """
        Store value in cache with current timestamp.
        """
        self._entries[key] = (self._clock(), value)

    def clear(self, pattern: str | None = None) -> int:
        """
        Drop every entry, or only those whose key contains pattern.
        Returns the number of entries removed.
        """
        if pattern is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        doomed = [k for k in self._entries if pattern in k]
        for k in doomed:
            del self._entries[k]
        return len(doomed)

    def stored_at(self, key: str) -> float | None:
        entry = self._entries.get(key)
        return entry[0] if entry else None

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
