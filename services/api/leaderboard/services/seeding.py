"""Development seed data: user001..userNNN with spread-out ratings.

Idempotent: existing usernames are skipped, so re-running only fills gaps.
"""

import logging
from uuid import uuid4

from leaderboard.services.errors import ConflictError
from leaderboard.services.validation import MAX_RATING, MIN_RATING
from leaderboard.stores.scores import ScoreStore, UserRecord

logger = logging.getLogger("uvicorn.error")

RATING_STEP = 37


def seed_username(i: int) -> str:
    return f"user{i:03d}"


def seed_rating(i: int) -> int:
    """Deterministic pseudo-random rating in [MIN_RATING, MAX_RATING]."""
    return MIN_RATING + (i * RATING_STEP) % (MAX_RATING - MIN_RATING + 1)


async def seed_users(store: ScoreStore, count: int) -> int:
    """Create up to `count` seed users. Returns how many were inserted."""
    created = 0
    for i in range(1, count + 1):
        username = seed_username(i)
        if await store.get_by_username(username) is not None:
            continue
        try:
            await store.create(UserRecord(id=str(uuid4()), username=username, rating=seed_rating(i)))
        except ConflictError:
            # Another instance seeded it first
            continue
        created += 1

    logger.info(f"Seeded {created} users ({count - created} already present)")
    return created
