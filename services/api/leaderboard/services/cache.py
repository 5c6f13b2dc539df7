"""Rank cache: key naming, TTL policies and failure handling.

Cache-aside over an `AnswerCache` backend (Redis in production).

Keys and TTL policies:
- user:{id}                               user record JSON, 5 minutes
- rank:{id}                               integer rank, 3 minutes
- leaderboard                             current page generation, 2 minutes
- leaderboard:{generation}:{page}:{size}  one materialized page, 2 minutes

Deleting the `leaderboard` key invalidates every cached page at once: readers
start a new generation and pages written under the old one are never read
again (they expire on their own TTL).

Correctness never depends on the cache. Backend errors, timeouts and
undecodable values are logged at WARNING and reported as misses.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar
from uuid import uuid4

from leaderboard.services.errors import CacheError
from leaderboard.stores.cache import AnswerCache
from leaderboard.stores.scores import UserRecord

logger = logging.getLogger("uvicorn.error")

# TTL constants (in seconds)
TTL_USER = 300  # 5 minutes
TTL_RANK = 180  # 3 minutes
TTL_LEADERBOARD = 120  # 2 minutes

# Key prefixes
PREFIX_USER = "user:"
PREFIX_RANK = "rank:"
KEY_LEADERBOARD = "leaderboard"
KEY_HEALTH_CHECK = "health-check"

T = TypeVar("T")


def user_key(user_id: str) -> str:
    return f"{PREFIX_USER}{user_id}"


def rank_key(user_id: str) -> str:
    return f"{PREFIX_RANK}{user_id}"


def leaderboard_page_key(generation: str, page: int, page_size: int) -> str:
    return f"{KEY_LEADERBOARD}:{generation}:{page}:{page_size}"


class RankCache:
    """Typed, failure-tolerant view of the answer cache."""

    def __init__(
        self,
        backend: AnswerCache,
        *,
        timeout: float = 1.0,
        user_ttl: int = TTL_USER,
        rank_ttl: int = TTL_RANK,
        leaderboard_ttl: int = TTL_LEADERBOARD,
    ):
        self._backend = backend
        self._timeout = timeout
        self.user_ttl = user_ttl
        self.rank_ttl = rank_ttl
        self.leaderboard_ttl = leaderboard_ttl

    # ============================================================
    # Backend calls with deadline
    # ============================================================

    async def _call(self, op: str, key: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, self._timeout)
        except asyncio.TimeoutError as e:
            raise CacheError(f"cache {op} {key} timed out after {self._timeout}s") from e

    async def _get(self, key: str) -> str | None:
        try:
            return await self._call("GET", key, self._backend.get(key))
        except CacheError as e:
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return None

    async def _set(self, key: str, value: str, ttl: int) -> bool:
        try:
            await self._call("SET", key, self._backend.set(key, value, ttl))
            return True
        except CacheError as e:
            logger.warning(f"Cache write failed: {e}")
            return False

    async def _delete(self, key: str) -> bool:
        try:
            await self._call("DEL", key, self._backend.delete(key))
            return True
        except CacheError as e:
            logger.warning(f"Cache delete failed: {e}")
            return False

    # ============================================================
    # User records
    # ============================================================

    async def get_user(self, user_id: str) -> UserRecord | None:
        raw = await self._get(user_key(user_id))
        if raw is None:
            return None
        try:
            return UserRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding undecodable cached user {user_id}: {e}")
            return None

    async def set_user(self, record: UserRecord) -> bool:
        return await self._set(user_key(record.id), json.dumps(record.to_dict()), self.user_ttl)

    async def invalidate_user(self, user_id: str) -> bool:
        return await self._delete(user_key(user_id))

    # ============================================================
    # Ranks
    # ============================================================

    async def get_rank(self, user_id: str) -> int | None:
        raw = await self._get(rank_key(user_id))
        if raw is None:
            return None
        try:
            rank = int(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cached rank for {user_id}: {raw!r}")
            return None
        return rank if rank >= 1 else None

    async def set_rank(self, user_id: str, rank: int) -> bool:
        return await self._set(rank_key(user_id), str(rank), self.rank_ttl)

    async def invalidate_rank(self, user_id: str) -> bool:
        return await self._delete(rank_key(user_id))

    # ============================================================
    # Materialized leaderboard pages
    # ============================================================

    async def leaderboard_generation(self) -> str | None:
        """Get the current page generation, starting a new one if none is live.

        Returns None when the cache cannot be used (pages are then neither
        read nor written).
        """
        generation = await self._get(KEY_LEADERBOARD)
        if generation:
            return generation
        generation = uuid4().hex[:12]
        if await self._set(KEY_LEADERBOARD, generation, self.leaderboard_ttl):
            return generation
        return None

    async def get_leaderboard_page(
        self, generation: str, page: int, page_size: int
    ) -> dict[str, Any] | None:
        raw = await self._get(leaderboard_page_key(generation, page, page_size))
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding undecodable cached leaderboard page {page}: {e}")
            return None
        return payload if isinstance(payload, dict) else None

    async def set_leaderboard_page(
        self, generation: str, page: int, page_size: int, payload: dict[str, Any]
    ) -> bool:
        return await self._set(
            leaderboard_page_key(generation, page, page_size),
            json.dumps(payload),
            self.leaderboard_ttl,
        )

    async def invalidate_leaderboard(self) -> bool:
        return await self._delete(KEY_LEADERBOARD)

    # ============================================================
    # Health
    # ============================================================

    async def ping(self) -> bool:
        """True when the backend answers a trivial read within the timeout."""
        try:
            await self._call("GET", KEY_HEALTH_CHECK, self._backend.get(KEY_HEALTH_CHECK))
        except CacheError as e:
            logger.warning(f"Cache health check failed: {e}")
            return False
        return True
