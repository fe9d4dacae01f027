from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

DEFAULT_MAX_ENTRIES = 50


@dataclass
class CacheEntry(Generic[T]):
    key: str
    data: T
    timestamp: float


class TTLCache(Generic[T]):
    """Expiring key-value store with insertion-order eviction.

    Entries are invalidated lazily on read; there is no background sweep.
    Not safe for use across threads, callers share one event loop.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl = float(ttl_seconds)
        self.max_entries = max_entries
        self._clock = clock
        self._store: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> T | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp < self.ttl:
            return entry.data
        del self._store[key]
        return None

    def set(self, key: str, data: T) -> None:
        existing = self._store.get(key)
        if existing is not None:
            # Overwrites keep their first insertion slot.
            existing.data = data
            existing.timestamp = self._clock()
            return
        self._store[key] = CacheEntry(key=key, data=data, timestamp=self._clock())
        if len(self._store) > self.max_entries:
            oldest_key = next(iter(self._store))
            del self._store[oldest_key]

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def delete_matching(self, predicate: Callable[[str], bool]) -> int:
        doomed = [key for key in self._store if predicate(key)]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    def clear(self) -> None:
        self._store.clear()

    def keys(self) -> list[str]:
        return list(self._store.keys())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store
