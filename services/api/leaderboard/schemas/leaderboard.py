"""Schemas for leaderboard pages (/leaderboard, /users/{id}/leaderboard-context)."""

from pydantic import BaseModel, Field

from leaderboard.services.ranking import LeaderboardPage


class LeaderboardEntrySchema(BaseModel):
    """A single ranked row."""

    rank: int = Field(ge=1)
    user_id: str
    username: str
    rating: int


class LeaderboardResponse(BaseModel):
    """One page of the global ranking, ordered by rating DESC, username ASC."""

    entries: list[LeaderboardEntrySchema]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    has_more: bool

    @classmethod
    def from_page(cls, page: LeaderboardPage) -> "LeaderboardResponse":
        return cls(
            entries=[
                LeaderboardEntrySchema(
                    rank=entry.rank,
                    user_id=entry.user_id,
                    username=entry.username,
                    rating=entry.rating,
                )
                for entry in page.entries
            ],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            has_more=page.has_more,
        )
