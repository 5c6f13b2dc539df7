"""Rank service: tie-aware ranks, cache-aside reads, singleflight, updates."""

import asyncio

import pytest

from fakes import BrokenAnswerCache, FakeScoreStore, HangingAnswerCache, StuckDeleteCache, make_user
from leaderboard.services.background import BackgroundQueue
from leaderboard.services.cache import RankCache
from leaderboard.services.errors import ConflictError, NotFoundError, StoreError, ValidationError
from leaderboard.services.ranking import RankService


@pytest.mark.asyncio
async def test_ties_share_rank_and_ranks_skip(service: RankService, store: FakeScoreStore):
    store.add(
        make_user("a", 5000),
        make_user("b", 4500),
        make_user("c", 4500),
        make_user("d", 4000),
    )

    ranks = [await service.get_rank(uid) for uid in ("a", "b", "c", "d")]

    assert ranks == [1, 2, 2, 4]


@pytest.mark.asyncio
async def test_higher_rating_never_ranks_worse(service: RankService, store: FakeScoreStore):
    ratings = [100, 2500, 2500, 5000, 4999, 101, 3000, 3000, 3000, 4200]
    store.add(*(make_user(f"u{i}", r) for i, r in enumerate(ratings)))

    ranks = {f"u{i}": await service.get_rank(f"u{i}") for i in range(len(ratings))}

    for i, ri in enumerate(ratings):
        for j, rj in enumerate(ratings):
            if ri > rj:
                assert ranks[f"u{i}"] <= ranks[f"u{j}"]
            if ri == rj:
                assert ranks[f"u{i}"] == ranks[f"u{j}"]


@pytest.mark.asyncio
async def test_cached_rank_does_not_touch_store(service: RankService, store: FakeScoreStore):
    store.add(make_user("a", 5000), make_user("b", 3000))

    assert await service.get_rank("b") == 2
    calls_after_miss = sum(store.calls.values())

    assert await service.get_rank("b") == 2
    assert sum(store.calls.values()) == calls_after_miss


@pytest.mark.asyncio
async def test_concurrent_misses_compute_once(service: RankService, store: FakeScoreStore):
    store.add(make_user("a", 5000), make_user("b", 3000), make_user("c", 1000))
    store.delay = 0.02

    results = await asyncio.gather(*(service.get_rank("c") for _ in range(25)))

    assert results == [3] * 25
    assert store.calls["count_greater_than"] == 1
    assert store.calls["get_by_id"] == 1


@pytest.mark.asyncio
async def test_distinct_ids_compute_in_parallel(service: RankService, store: FakeScoreStore):
    store.add(*(make_user(f"u{i}", 1000 + i) for i in range(5)))
    store.delay = 0.05

    await asyncio.gather(*(service.get_rank(f"u{i}") for i in range(5)))

    assert store.max_in_flight > 1


@pytest.mark.asyncio
async def test_unknown_user_not_found(service: RankService):
    with pytest.raises(NotFoundError):
        await service.get_rank("ghost")
    with pytest.raises(NotFoundError):
        await service.get_user("ghost")


@pytest.mark.asyncio
async def test_get_user_returns_record_and_rank(service: RankService, store: FakeScoreStore, abcd_users):
    store.add(*abcd_users)

    user, rank = await service.get_user("c")

    assert user.username == "carol"
    assert user.rating == 4500
    assert rank == 2


@pytest.mark.asyncio
async def test_get_user_populates_cache_in_background(
    service: RankService, store: FakeScoreStore, cache: RankCache
):
    store.add(make_user("a", 1234, "alice"))

    await service.get_user("a")
    await service.wait_for_background()

    cached = await cache.get_user("a")
    assert cached is not None
    assert cached.username == "alice"

    await service.get_user("a")
    assert store.calls["get_by_id"] == 2  # one for the record, one for the rank, none after


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [99, 5001, 0, -1])
async def test_update_rejects_out_of_range(service: RankService, store: FakeScoreStore, rating: int):
    store.add(make_user("a", 1000))

    with pytest.raises(ValidationError) as exc_info:
        await service.update_rating("a", rating)

    assert str(rating) in exc_info.value.message
    assert store.users["a"].rating == 1000
    assert store.calls["update_rating"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [100, 5000])
async def test_update_accepts_bounds(service: RankService, store: FakeScoreStore, rating: int):
    store.add(make_user("a", 1000))

    user, rank = await service.update_rating("a", rating)

    assert user.rating == rating
    assert store.users["a"].rating == rating
    assert rank == 1


@pytest.mark.asyncio
async def test_update_returns_stored_timestamp(service: RankService, store: FakeScoreStore):
    store.add(make_user("a", 1000))

    user, _ = await service.update_rating("a", 2000)

    assert user.updated_at is not None
    assert user.updated_at == store.users["a"].updated_at


@pytest.mark.asyncio
async def test_update_does_not_wait_for_invalidation(store: FakeScoreStore):
    background = BackgroundQueue(workers=1, max_size=10)
    service = RankService(store, RankCache(StuckDeleteCache(), timeout=30), background=background)
    store.add(make_user("a", 5000), make_user("b", 3000))
    assert await service.get_rank("b") == 2

    user, _ = await asyncio.wait_for(service.update_rating("b", 4000), timeout=1.0)

    assert user.rating == 4000
    assert store.users["b"].rating == 4000
    assert background.in_flight() == 1
    assert background.stats.completed == 0

    await background.stop(timeout=0.05)


@pytest.mark.asyncio
async def test_update_unknown_user(service: RankService):
    with pytest.raises(NotFoundError):
        await service.update_rating("ghost", 1000)


@pytest.mark.asyncio
async def test_rank_fresh_after_invalidation_completes(service: RankService, store: FakeScoreStore):
    store.add(make_user("a", 5000), make_user("b", 3000))
    assert await service.get_rank("b") == 2

    await service.update_rating("b", 5000)
    await service.wait_for_background()

    assert await service.get_rank("b") == 1


@pytest.mark.asyncio
async def test_end_to_end_abcd(service: RankService, store: FakeScoreStore, abcd_users):
    store.add(*abcd_users)

    assert await service.get_rank("d") == 4
    page = await service.get_leaderboard(1, 10)
    assert [(e.user_id, e.rank) for e in page.entries] == [("a", 1), ("b", 2), ("c", 2), ("d", 4)]

    await service.update_rating("d", 4600)
    await service.wait_for_background()

    assert await service.get_rank("d") == 2
    assert await service.get_rank("a") == 1


@pytest.mark.asyncio
async def test_store_failure_propagates(service: RankService, store: FakeScoreStore):
    store.add(make_user("a", 1000))
    store.fail_with = StoreError("connection refused")

    with pytest.raises(StoreError):
        await service.get_rank("a")


@pytest.mark.asyncio
async def test_store_timeout_becomes_store_error(cache: RankCache):
    store = FakeScoreStore([make_user("a", 1000)], delay=1.0)
    service = RankService(store, cache, background=BackgroundQueue(workers=1), store_timeout=0.05)

    with pytest.raises(StoreError, match="timed out"):
        await service.get_rank("a")

    await service.close()


@pytest.mark.asyncio
async def test_broken_cache_degrades_to_store(store: FakeScoreStore):
    service = RankService(store, RankCache(BrokenAnswerCache()), background=BackgroundQueue(workers=1))
    store.add(make_user("a", 5000), make_user("b", 3000))

    assert await service.get_rank("b") == 2
    assert await service.get_rank("b") == 2
    assert store.calls["count_greater_than"] == 2
    assert await service.is_healthy() is False

    await service.close()


@pytest.mark.asyncio
async def test_hanging_cache_times_out(store: FakeScoreStore):
    cache = RankCache(HangingAnswerCache(), timeout=0.05)
    service = RankService(store, cache, background=BackgroundQueue(workers=1))
    store.add(make_user("a", 5000))

    assert await service.get_rank("a") == 1
    assert await service.is_healthy() is False

    await service.close()


@pytest.mark.asyncio
async def test_healthy_with_working_cache(service: RankService):
    assert await service.is_healthy() is True


@pytest.mark.asyncio
async def test_create_user(service: RankService, store: FakeScoreStore):
    user = await service.create_user("  NewPlayer ", 1500)

    assert user.username == "NewPlayer"
    assert user.rating == 1500
    assert user.id in store.users
    _, rank = await service.get_user(user.id)
    assert rank == 1


@pytest.mark.asyncio
async def test_create_user_with_explicit_id(service: RankService, store: FakeScoreStore):
    user = await service.create_user("player_1", 1500, user_id="p-1")

    assert user.id == "p-1"
    assert store.users["p-1"].username == "player_1"


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", ["", "   ", "x" * 256])
async def test_create_user_rejects_bad_id(service: RankService, store: FakeScoreStore, user_id: str):
    with pytest.raises(ValidationError):
        await service.create_user("player_1", 1500, user_id=user_id)

    assert store.calls["create"] == 0


@pytest.mark.asyncio
async def test_create_user_username_conflict_is_case_insensitive(
    service: RankService, store: FakeScoreStore
):
    store.add(make_user("a", 1000, "Alice"))

    with pytest.raises(ConflictError):
        await service.create_user("alice", 1200)


@pytest.mark.asyncio
@pytest.mark.parametrize("username", ["ab", "x" * 51, "bad name", "semi;colon"])
async def test_create_user_rejects_bad_username(service: RankService, username: str):
    with pytest.raises(ValidationError):
        await service.create_user(username, 1000)


@pytest.mark.asyncio
async def test_search_user(service: RankService, store: FakeScoreStore, abcd_users):
    store.add(*abcd_users)

    found = await service.search_user("CAROL")
    assert found is not None
    user, rank = found
    assert user.id == "c"
    assert rank == 2

    assert await service.search_user("nobody") is None
