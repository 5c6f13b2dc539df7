"""Domain errors raised by stores and services.

Routes never catch these one by one; the exception handlers in
`leaderboard.main` map each class to an HTTP status and error code.
"""

from typing import Any


class LeaderboardError(Exception):
    """Base class for all domain errors."""

    code = "LEADERBOARD_ERROR"

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(LeaderboardError):
    """Caller supplied a value outside the accepted bounds."""

    code = "VALIDATION_ERROR"


class NotFoundError(LeaderboardError):
    """The requested user does not exist."""

    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} does not exist", detail={"user_id": user_id})
        self.user_id = user_id


class ConflictError(LeaderboardError):
    """A user with the same username already exists."""

    code = "USER_EXISTS"


class StoreError(LeaderboardError):
    """Score store unavailable, query failed or timed out."""

    code = "STORE_UNAVAILABLE"


class CacheError(LeaderboardError):
    """Answer cache failure. Never leaves the service layer."""

    code = "CACHE_ERROR"
