"""In-memory TTL cache for fetched external events and reconciled views."""

import time
from typing import Callable, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")

DEFAULT_MAX_ENTRIES = 1024


class TTLCache(Generic[V]):
    """
    Dict-backed cache whose entries expire after a fixed number of seconds.

    A ttl of None keeps entries until they are invalidated. Expired entries
    are swept on every write, and the oldest entries are evicted once
    max_entries is reached.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_entries = max(1, max_entries)
        self._entries: dict[Hashable, tuple[float, V]] = {}

    def _expired(self, stored_at: float, now: float) -> bool:
        return self._ttl is not None and now - stored_at >= self._ttl

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._expired(stored_at, self._clock()):
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: V) -> None:
        now = self._clock()
        self._sweep(now)
        # Re-inserting moves the key to the end of the eviction order
        self._entries.pop(key, None)
        while len(self._entries) >= self._max_entries:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = (now, value)

    def _sweep(self, now: float) -> None:
        if self._ttl is None:
            return
        stale = [key for key, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]
        for key in stale:
            del self._entries[key]

    def invalidate_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key matches predicate; returns how many."""
        stale = [key for key in self._entries if predicate(key)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
