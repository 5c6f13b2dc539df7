"""Redis store for the answer cache.

Handles:
- Client lifecycle (init on startup, close on shutdown)
- SETEX / GET / DEL behind the `AnswerCache` interface

TTL policies and key naming live in `leaderboard.services.cache`; this module
only moves strings in and out of Redis.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from leaderboard.services.errors import CacheError
from leaderboard.settings import get_settings
from leaderboard.stores.cache import AnswerCache

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


class RedisAnswerCache(AnswerCache):
    """AnswerCache over a redis.asyncio client with decode_responses=True."""

    def __init__(self, client: redis.Redis):
        self._client = client

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheError(f"redis GET {key} failed: {e}") from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client.setex(key, ttl, value)
        except (RedisError, OSError) as e:
            raise CacheError(f"redis SETEX {key} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheError(f"redis DEL {key} failed: {e}") from e
