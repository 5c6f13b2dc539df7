"""Rank service: authoritative, cached user ranks and leaderboard pages.

Rank definition (tie-aware, "1224" competition ranking):
    rank(u) = 1 + number of users with a strictly greater rating
Users with equal ratings share a rank; ranks skip after a tie
(5000, 4500, 4500, 4000 -> 1, 2, 2, 4).

get_rank flow:
1. Check rank:{id} in the cache (hot path, no lock)
2. On miss, take the singleflight lock for the id
3. Re-check the cache under the lock (another caller may have filled it)
4. Compute from the store: rating lookup + COUNT(rating > x)
5. Write rank:{id} before releasing the lock (failure is logged, not raised)

At most one store rank computation per user id is in flight at any time.

Rating updates write through to the store synchronously, then queue
invalidation of user:{id}, rank:{id} and the leaderboard pages on the
background queue without waiting for it. A read issued before that job runs
may still see the old rank; the rank TTL bounds the window.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import asdict, dataclass, replace
from functools import partial
from typing import Any, TypeVar
from uuid import uuid4

from leaderboard.services.background import BackgroundQueue
from leaderboard.services.cache import RankCache
from leaderboard.services.errors import ConflictError, NotFoundError, StoreError
from leaderboard.services.locks import SingleflightLocks
from leaderboard.services.validation import (
    validate_context_size,
    validate_page,
    validate_rating,
    validate_user_id,
    validate_username,
)
from leaderboard.stores.scores import ScoreStore, UserRecord

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")


@dataclass(frozen=True)
class LeaderboardEntry:
    """A single ranked row of the leaderboard."""

    rank: int
    user_id: str
    username: str
    rating: int


@dataclass(frozen=True)
class LeaderboardPage:
    """One page of the global ranking."""

    entries: list[LeaderboardEntry]
    total: int
    page: int
    page_size: int
    has_more: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LeaderboardPage":
        return cls(
            entries=[LeaderboardEntry(**entry) for entry in data["entries"]],
            total=int(data["total"]),
            page=int(data["page"]),
            page_size=int(data["page_size"]),
            has_more=bool(data["has_more"]),
        )


def assign_ranks(
    rows: Sequence[UserRecord],
    offset: int,
    *,
    first_rank: int | None = None,
) -> list[LeaderboardEntry]:
    """Assign tie-aware ranks to a slice ordered by rating DESC, username ASC.

    Within the slice a row whose rating differs from the previous row gets
    rank `offset + index + 1` (every row before it globally has a strictly
    greater rating); a row with the same rating reuses the previous rank.

    The first row cannot see rows before the slice, so a tie straddling the
    page boundary needs its true rank passed in as `first_rank`
    (1 + count of strictly greater ratings).
    """
    entries: list[LeaderboardEntry] = []
    previous_rating: int | None = None
    current_rank = 0

    for index, row in enumerate(rows):
        if row.rating != previous_rating:
            if index == 0 and first_rank is not None:
                current_rank = first_rank
            else:
                current_rank = offset + index + 1
            previous_rating = row.rating

        entries.append(
            LeaderboardEntry(
                rank=current_rank,
                user_id=row.id,
                username=row.username,
                rating=row.rating,
            )
        )

    return entries


class RankService:
    """Orchestrates the score store, the rank cache and the singleflight locks."""

    def __init__(
        self,
        store: ScoreStore,
        cache: RankCache,
        *,
        background: BackgroundQueue | None = None,
        locks: SingleflightLocks | None = None,
        store_timeout: float = 5.0,
    ):
        self._scores = store
        self._cache = cache
        self._background = background or BackgroundQueue()
        self._locks = locks or SingleflightLocks()
        self._store_timeout = store_timeout

    async def _store_call(self, op: str, call: Awaitable[T]) -> T:
        """Await a store call under the store deadline."""
        try:
            return await asyncio.wait_for(call, self._store_timeout)
        except asyncio.TimeoutError as e:
            raise StoreError(f"{op} timed out after {self._store_timeout}s") from e

    # ============================================================
    # Users
    # ============================================================

    async def create_user(
        self,
        username: str,
        rating: int,
        user_id: str | None = None,
    ) -> UserRecord:
        """Register a new user.

        Raises:
            ValidationError: Bad username, rating or id.
            ConflictError: Username (case-insensitive) or id already taken.
        """
        username = validate_username(username)
        validate_rating(rating)
        if user_id is not None:
            user_id = validate_user_id(user_id)

        existing = await self._store_call("get user by username", self._scores.get_by_username(username))
        if existing is not None:
            raise ConflictError(
                f"user {username} already exists",
                detail={"username": username},
            )

        record = UserRecord(id=user_id or str(uuid4()), username=username, rating=rating)
        user = await self._store_call("create user", self._scores.create(record))

        await self._cache.set_user(user)
        # A new user shifts everyone rated below it.
        self._background.submit("invalidate-leaderboard", self._cache.invalidate_leaderboard)

        logger.info(f"User created user_id={user.id} username={user.username} rating={user.rating}")
        return user

    async def get_user(self, user_id: str) -> tuple[UserRecord, int]:
        """Get a user record and its current rank.

        Raises:
            NotFoundError: The user does not exist.
        """
        user = await self._cache.get_user(user_id)

        if user is None:
            user = await self._store_call("get user", self._scores.get_by_id(user_id))
            if user is None:
                raise NotFoundError(user_id)
            self._background.submit(f"cache-user:{user_id}", partial(self._cache.set_user, user))

        rank = await self.get_rank(user_id)
        return user, rank

    async def search_user(self, username: str) -> tuple[UserRecord, int] | None:
        """Find a user by username (case-insensitive). None when absent."""
        username = validate_username(username)

        user = await self._store_call("get user by username", self._scores.get_by_username(username))
        if user is None:
            return None

        rank = await self.get_rank(user.id)
        logger.info(f"User search term={username} found={user.username}")
        return user, rank

    # ============================================================
    # Ranks
    # ============================================================

    async def get_rank(self, user_id: str) -> int:
        """Get the tie-aware rank of a user.

        Raises:
            NotFoundError: The user does not exist.
            StoreError: The store failed or timed out on a cache miss.
        """
        cached = await self._cache.get_rank(user_id)
        if cached is not None:
            return cached

        async with self._locks.hold(user_id):
            # Another caller may have computed it while we waited.
            cached = await self._cache.get_rank(user_id)
            if cached is not None:
                return cached

            rank = await self._compute_rank(user_id)
            await self._cache.set_rank(user_id, rank)
            return rank

    async def _compute_rank(self, user_id: str) -> int:
        user = await self._store_call("get user rating", self._scores.get_by_id(user_id))
        if user is None:
            raise NotFoundError(user_id)
        higher = await self._store_call("calculate rank", self._scores.count_greater_than(user.rating))
        return higher + 1

    async def update_rating(self, user_id: str, rating: int) -> tuple[UserRecord, int]:
        """Persist a new rating and return the updated user with its fresh rank.

        Returns only after the store acknowledged the write. Cache invalidation
        is queued and not awaited.

        Raises:
            ValidationError: Rating outside [100, 5000].
            NotFoundError: The user does not exist.
        """
        validate_rating(rating)

        user = await self._store_call("get user", self._scores.get_by_id(user_id))
        if user is None:
            raise NotFoundError(user_id)

        updated_at = await self._store_call("update rating", self._scores.update_rating(user_id, rating))
        if updated_at is None:
            raise NotFoundError(user_id)

        self._background.submit(f"invalidate-user:{user_id}", partial(self._invalidate_user, user_id))

        rank = await self.get_rank(user_id)

        logger.info(
            f"User rating updated user_id={user_id} old_rating={user.rating} "
            f"new_rating={rating} rank={rank}"
        )
        return replace(user, rating=rating, updated_at=updated_at), rank

    async def _invalidate_user(self, user_id: str) -> None:
        # Each step logs its own failure; TTLs cover whatever is left behind.
        await self._cache.invalidate_user(user_id)
        await self._cache.invalidate_rank(user_id)
        await self._cache.invalidate_leaderboard()

    async def invalidate_leaderboard(self) -> None:
        """Drop every cached leaderboard page (after out-of-band bulk writes)."""
        await self._cache.invalidate_leaderboard()

    # ============================================================
    # Leaderboard
    # ============================================================

    async def get_leaderboard(self, page: int, page_size: int) -> LeaderboardPage:
        """Get page `page` (1-based) of the ranking, `page_size` rows per page.

        Raises:
            ValidationError: page < 1 or page_size outside [1, 1000].
        """
        validate_page(page, page_size)

        generation = await self._cache.leaderboard_generation()
        if generation is not None:
            cached = await self._cache.get_leaderboard_page(generation, page, page_size)
            if cached is not None:
                try:
                    return LeaderboardPage.from_dict(cached)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Discarding malformed cached leaderboard page {page}: {e}")

        result = await self._build_page(page, page_size)

        if generation is not None:
            await self._cache.set_leaderboard_page(generation, page, page_size, result.to_dict())

        logger.info(f"Leaderboard fetched page={page} page_size={page_size} total={result.total}")
        return result

    async def _build_page(self, page: int, page_size: int) -> LeaderboardPage:
        offset = (page - 1) * page_size

        total = await self._store_call("count users", self._scores.count_all())
        rows: list[UserRecord] = []
        if offset < total:
            rows = await self._store_call("get leaderboard", self._scores.get_page(offset, page_size))

        first_rank = None
        if offset > 0 and rows:
            higher = await self._store_call(
                "calculate rank", self._scores.count_greater_than(rows[0].rating)
            )
            first_rank = higher + 1

        return LeaderboardPage(
            entries=assign_ranks(rows, offset, first_rank=first_rank),
            total=total,
            page=page,
            page_size=page_size,
            has_more=offset + page_size < total,
        )

    async def get_leaderboard_around_user(self, user_id: str, context_size: int) -> LeaderboardPage:
        """Get a leaderboard page positioned near the user's rank.

        Best-effort window: page_size is 2 * context_size and the page number
        is derived from the rank, so the user is not guaranteed to sit in the
        middle (or, near page edges and tie runs, on the page at all).

        Raises:
            ValidationError: context_size outside [1, 100].
            NotFoundError: The user does not exist.
        """
        validate_context_size(context_size)

        rank = await self.get_rank(user_id)

        page_size = context_size * 2
        page = max(1, (rank - context_size) // page_size)

        return await self.get_leaderboard(page, page_size)

    # ============================================================
    # Health & lifecycle
    # ============================================================

    async def is_healthy(self) -> bool:
        return await self._cache.ping()

    async def wait_for_background(self) -> None:
        """Wait until queued cache population/invalidation has finished."""
        await self._background.join()

    async def close(self) -> None:
        await self._background.stop()
