"""User model.

A user is a ranked entity: unique username plus a bounded integer rating.
Rank is never stored; it is derived from the rating distribution.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from leaderboard.stores.postgres import Base


class User(Base):
    """Registered user with a rating in [100, 5000]."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("rating >= 100 AND rating <= 5000", name="ck_users_rating_range"),
    )

    # Assigned by the caller (UUID when registration does not supply one)
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    username: Mapped[str] = mapped_column(String(255), unique=True)
    rating: Mapped[int] = mapped_column(Integer, default=1000, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.rating})>"


# Leaderboard pagination: ORDER BY rating DESC, username ASC
Index("ix_users_rating_username", User.rating.desc(), User.username)
# Case-insensitive lookup; also makes usernames unique regardless of case
Index("ix_users_username_lower", func.lower(User.username), unique=True)
