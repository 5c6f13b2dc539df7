"""SqlScoreStore against a real SQL engine (SQLite via aiosqlite)."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fakes import make_user
from leaderboard.services.background import BackgroundQueue
from leaderboard.services.cache import RankCache
from leaderboard.services.errors import ConflictError, StoreError
from leaderboard.services.ranking import RankService
from leaderboard.services.seeding import seed_rating, seed_users
from leaderboard.stores.cache import MemoryAnswerCache
from leaderboard.stores.postgres import Base
from leaderboard.stores.scores import SqlScoreStore, UserRecord


@pytest.fixture
async def sql_store():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield SqlScoreStore(async_sessionmaker(engine, expire_on_commit=False))

    await engine.dispose()


@pytest.fixture
async def file_store(tmp_path):
    # Separate connections per session, so concurrent writers really race
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'users.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield SqlScoreStore(async_sessionmaker(engine, expire_on_commit=False))

    await engine.dispose()


@pytest.mark.asyncio
async def test_create_and_get(sql_store: SqlScoreStore):
    created = await sql_store.create(make_user("u1", 1500, "Player_One"))

    by_id = await sql_store.get_by_id("u1")
    by_name = await sql_store.get_by_username("player_one")

    assert created.created_at is not None
    assert by_id is not None and by_id.rating == 1500
    assert by_name is not None and by_name.id == "u1"
    assert await sql_store.get_by_id("missing") is None
    assert await sql_store.get_by_username("missing") is None


@pytest.mark.asyncio
async def test_duplicates_conflict(sql_store: SqlScoreStore):
    await sql_store.create(make_user("u1", 1500, "alice"))

    with pytest.raises(ConflictError):
        await sql_store.create(make_user("u2", 1500, "alice"))
    with pytest.raises(ConflictError):
        await sql_store.create(make_user("u1", 1500, "someone_else"))
    with pytest.raises(ConflictError):
        await sql_store.create(make_user("u3", 1500, "ALICE"))

    assert await sql_store.count_all() == 1


@pytest.mark.asyncio
async def test_concurrent_case_variant_creates_conflict(file_store: SqlScoreStore):
    service = RankService(file_store, RankCache(MemoryAnswerCache()), background=BackgroundQueue(workers=1))

    results = await asyncio.gather(
        service.create_user("Alice", 1000),
        service.create_user("alice", 1200),
        return_exceptions=True,
    )

    assert sum(isinstance(r, UserRecord) for r in results) == 1
    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert await file_store.count_all() == 1

    await service.close()


@pytest.mark.asyncio
async def test_update_rating(sql_store: SqlScoreStore):
    await sql_store.create(make_user("u1", 1500))

    updated_at = await sql_store.update_rating("u1", 4200)

    assert updated_at is not None
    assert (await sql_store.get_by_id("u1")).rating == 4200
    assert await sql_store.update_rating("missing", 4200) is None


@pytest.mark.asyncio
async def test_rating_check_constraint(sql_store: SqlScoreStore):
    await sql_store.create(make_user("u1", 1500))

    with pytest.raises(StoreError):
        await sql_store.update_rating("u1", 9000)


@pytest.mark.asyncio
async def test_counts_and_page_order(sql_store: SqlScoreStore):
    for user in [
        make_user("1", 3000, "zed"),
        make_user("2", 4000, "max"),
        make_user("3", 3000, "amy"),
        make_user("4", 100, "low"),
    ]:
        await sql_store.create(user)

    assert await sql_store.count_all() == 4
    assert await sql_store.count_greater_than(3000) == 1
    assert await sql_store.count_greater_than(5000) == 0

    page = await sql_store.get_page(0, 10)
    assert [u.username for u in page] == ["max", "amy", "zed", "low"]
    assert [u.username for u in await sql_store.get_page(1, 2)] == ["amy", "zed"]
    assert await sql_store.get_page(10, 2) == []


@pytest.mark.asyncio
async def test_rank_service_over_sql(sql_store: SqlScoreStore, abcd_users):
    for user in abcd_users:
        await sql_store.create(user)
    service = RankService(sql_store, RankCache(MemoryAnswerCache()), background=BackgroundQueue(workers=1))

    assert await service.get_rank("d") == 4
    page = await service.get_leaderboard(1, 10)
    assert [(e.user_id, e.rank) for e in page.entries] == [("a", 1), ("b", 2), ("c", 2), ("d", 4)]

    await service.update_rating("d", 4600)
    await service.wait_for_background()
    assert await service.get_rank("d") == 2
    assert await service.get_rank("a") == 1

    await service.close()


@pytest.mark.asyncio
async def test_seed_users_is_idempotent(sql_store: SqlScoreStore):
    assert await seed_users(sql_store, 20) == 20
    assert await seed_users(sql_store, 25) == 5

    user = await sql_store.get_by_username("user007")
    assert user is not None
    assert user.rating == seed_rating(7) == 100 + 7 * 37
    assert await sql_store.count_all() == 25
