"""Shared fixtures: in-memory score store and a wired rank service."""

import pytest

from fakes import FakeScoreStore, make_user
from leaderboard.services.background import BackgroundQueue
from leaderboard.services.cache import RankCache
from leaderboard.services.ranking import RankService
from leaderboard.stores.cache import MemoryAnswerCache
from leaderboard.stores.scores import UserRecord


@pytest.fixture
def abcd_users() -> list[UserRecord]:
    return [
        make_user("a", 5000, "alice"),
        make_user("b", 4500, "bob"),
        make_user("c", 4500, "carol"),
        make_user("d", 2000, "dave"),
    ]


@pytest.fixture
def store() -> FakeScoreStore:
    return FakeScoreStore()


@pytest.fixture
def backend() -> MemoryAnswerCache:
    return MemoryAnswerCache()


@pytest.fixture
def cache(backend: MemoryAnswerCache) -> RankCache:
    return RankCache(backend)


@pytest.fixture
async def service(store: FakeScoreStore, cache: RankCache):
    svc = RankService(store, cache, background=BackgroundQueue(workers=1, max_size=100))
    yield svc
    await svc.close()
