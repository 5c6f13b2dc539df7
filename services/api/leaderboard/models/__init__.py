"""SQLAlchemy ORM models.

Models represent database tables:
- users: registered users and their ratings (ranks are derived, never stored)
"""

from leaderboard.models.user import User

__all__ = ["User"]
