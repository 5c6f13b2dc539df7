"""Pydantic schemas for API request/response validation."""

from leaderboard.schemas.common import ErrorDetail, ErrorResponse, HealthResponse
from leaderboard.schemas.leaderboard import LeaderboardEntrySchema, LeaderboardResponse
from leaderboard.schemas.users import (
    CreateUserRequest,
    SearchResponse,
    UpdateRatingRequest,
    UserSchema,
    UserWithRank,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "LeaderboardEntrySchema",
    "LeaderboardResponse",
    "CreateUserRequest",
    "SearchResponse",
    "UpdateRatingRequest",
    "UserSchema",
    "UserWithRank",
]
