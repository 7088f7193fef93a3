"""Time-boxed caches for derived lighting and vision data.

Each entry stores ``(value, timestamp)`` and is read through ``get``, which
treats anything older than the TTL as missing. Invalidation is explicit and
must happen before the next read that depends on the changed data.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass
class _Entry(Generic[V]):
    value: V
    stored_at: float


class TimedCache(Generic[V]):
    def __init__(self, ttl: float, clock: Clock = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, _Entry[V]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> V | None:
        entry = self._entries.get(key)
        if entry is None or self._clock() - entry.stored_at > self.ttl:
            self.misses += 1
            return None
        self.hits += 1
        return entry.value

    def put(self, key: Hashable, value: V) -> V:
        self._entries[key] = _Entry(value, self._clock())
        return value

    def get_or_compute(self, key: Hashable, compute: Callable[[], V]) -> V:
        cached = self.get(key)
        if cached is not None:
            return cached
        return self.put(key, compute())

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one entry, or everything when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
