"""Score store: durable users table behind a narrow repository interface.

The rank service depends only on `ScoreStore`; `SqlScoreStore` is the
SQLAlchemy implementation used in production. Tests substitute in-memory
implementations of the same interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leaderboard.models import User
from leaderboard.services.errors import ConflictError, StoreError
from leaderboard.services.validation import sanitize_username


@dataclass(frozen=True)
class UserRecord:
    """Detached snapshot of a users row."""

    id: str
    username: str
    rating: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("created_at", "updated_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserRecord:
        def _ts(value: Any) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=str(data["id"]),
            username=str(data["username"]),
            rating=int(data["rating"]),
            created_at=_ts(data.get("created_at")),
            updated_at=_ts(data.get("updated_at")),
        )


class ScoreStore(ABC):
    """Interface for the users repository.

    Errors are reported as `StoreError` (connectivity, failed query) or
    `ConflictError` (duplicate id/username on insert).
    """

    @abstractmethod
    async def get_by_id(self, user_id: str) -> UserRecord | None:
        """Get user by id, None if absent."""

    @abstractmethod
    async def get_by_username(self, username: str) -> UserRecord | None:
        """Get user by username (case-insensitive exact match), None if absent."""

    @abstractmethod
    async def create(self, record: UserRecord) -> UserRecord:
        """Insert a new user and return the stored row."""

    @abstractmethod
    async def update_rating(self, user_id: str, rating: int) -> datetime | None:
        """Persist a new rating. Returns the stored updated_at, None when no row matched."""

    @abstractmethod
    async def count_greater_than(self, rating: int) -> int:
        """Count users with a rating strictly greater than `rating`."""

    @abstractmethod
    async def count_all(self) -> int:
        """Count all users."""

    @abstractmethod
    async def get_page(self, offset: int, limit: int) -> list[UserRecord]:
        """Get a slice ordered by rating DESC, username ASC."""


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        rating=user.rating,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class SqlScoreStore(ScoreStore):
    """ScoreStore backed by async SQLAlchemy (asyncpg in production)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_by_id(self, user_id: str) -> UserRecord | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).where(User.id == user_id))
                user = result.scalar_one_or_none()
                return _to_record(user) if user else None
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"failed to get user: {e}") from e

    async def get_by_username(self, username: str) -> UserRecord | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(User).where(func.lower(User.username) == sanitize_username(username))
                )
                user = result.scalar_one_or_none()
                return _to_record(user) if user else None
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"failed to get user by username: {e}") from e

    async def create(self, record: UserRecord) -> UserRecord:
        now = datetime.now(timezone.utc)
        stored = UserRecord(
            id=record.id,
            username=record.username,
            rating=record.rating,
            created_at=record.created_at or now,
            updated_at=record.updated_at or now,
        )
        try:
            async with self._session_factory() as session:
                session.add(User(**asdict(stored)))
                await session.commit()
                return stored
        except IntegrityError as e:
            raise ConflictError(
                f"user {record.username} already exists",
                detail={"user_id": record.id, "username": record.username},
            ) from e
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"failed to create user: {e}") from e

    async def update_rating(self, user_id: str, rating: int) -> datetime | None:
        updated_at = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(rating=rating, updated_at=updated_at)
                )
                await session.commit()
                return updated_at if (result.rowcount or 0) > 0 else None
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"failed to update rating: {e}") from e

    async def count_greater_than(self, rating: int) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count()).select_from(User).where(User.rating > rating)
                )
                return result.scalar() or 0
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"failed to calculate rank: {e}") from e

    async def count_all(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(func.count()).select_from(User))
                return result.scalar() or 0
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"failed to count users: {e}") from e

    async def get_page(self, offset: int, limit: int) -> list[UserRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(User)
                    .order_by(User.rating.desc(), User.username.asc())
                    .offset(offset)
                    .limit(limit)
                )
                return [_to_record(user) for user in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"failed to get leaderboard: {e}") from e
