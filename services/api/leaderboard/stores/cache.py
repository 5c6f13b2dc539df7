"""Answer cache backends: opaque string key/value with per-key TTL.

No ordering or range operations are required of a backend. Backend failures
are raised as `CacheError`; deciding what a failure means (a miss) is the job
of `leaderboard.services.cache.RankCache`.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass


class AnswerCache(ABC):
    """Interface every cache backend implements."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get value, None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        """Set value with a time-to-live in seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete value (no-op when absent)."""


@dataclass
class _Entry:
    value: str
    inserted_at: float
    ttl: float


class MemoryAnswerCache(AnswerCache):
    """In-process TTL cache for local runs and tests.

    An entry is treated as absent once `now - inserted_at >= ttl`; expired
    entries are dropped lazily on read and on every `sweep_every` writes.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 1024):
        self._clock = clock
        self._sweep_every = sweep_every
        self._writes = 0
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> str | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now - entry.inserted_at >= entry.ttl:
                del self._entries[key]
                return None
            return entry.value

    async def set(self, key: str, value: str, ttl: int) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = _Entry(value=value, inserted_at=now, ttl=ttl)
            self._writes += 1
            if self._writes % self._sweep_every == 0:
                self._sweep(now)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if now - e.inserted_at >= e.ttl]
        for k in expired:
            del self._entries[k]

    def __len__(self) -> int:
        return len(self._entries)
