"""Schemas for the user endpoints (/users)."""

from datetime import datetime

from pydantic import BaseModel, Field

from leaderboard.services.validation import MAX_USER_ID
from leaderboard.stores.scores import UserRecord


class CreateUserRequest(BaseModel):
    """Request body for registering a user. The id is generated when omitted."""

    user_id: str | None = Field(default=None, min_length=1, max_length=MAX_USER_ID)
    username: str
    initial_rating: int = Field(default=1000)


class UpdateRatingRequest(BaseModel):
    """Request body for a rating update. Bounds are enforced by the service."""

    rating: int


class UserSchema(BaseModel):
    """A stored user without rank."""

    id: str
    username: str
    rating: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserSchema":
        return cls(
            id=record.id,
            username=record.username,
            rating=record.rating,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class UserWithRank(BaseModel):
    """A user together with its current tie-aware rank."""

    id: str
    username: str
    rating: int
    rank: int = Field(ge=1)

    @classmethod
    def from_record(cls, record: UserRecord, rank: int) -> "UserWithRank":
        return cls(id=record.id, username=record.username, rating=record.rating, rank=rank)


class SearchResponse(BaseModel):
    """Result of a username search. `user` is null and `rank` 0 when not found."""

    user: UserWithRank | None = None
    rank: int = 0
    found: bool
