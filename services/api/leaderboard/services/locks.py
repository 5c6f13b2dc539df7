"""Per-key singleflight locks.

One asyncio.Lock per key, used to serialize rank recomputation for a user id
so concurrent cache misses collapse into a single store query.

Entries are reference counted: an entry exists only while at least one caller
holds or waits on its lock and is dropped on the last release. Memory stays
bounded by the number of ids with a recomputation in flight, and distinct
ids never share a lock.
"""

import asyncio
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SingleflightLocks:
    """Lazily created, reference-counted table of per-key locks."""

    def __init__(self) -> None:
        # Guards the table only; never held across an await.
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for `key`.

        Waiting is unbounded but cancellable: a cancelled waiter gives up its
        place without affecting the holder or the other waiters.
        """
        entry = self._checkout(key)
        try:
            async with entry.lock:
                yield
        finally:
            self._checkin(key, entry)

    def is_locked(self, key: str) -> bool:
        with self._guard:
            entry = self._entries.get(key)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
