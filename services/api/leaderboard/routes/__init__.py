"""API routes."""

from fastapi import APIRouter

from leaderboard.routes import leaderboard, users

api_router = APIRouter()

# User lookup, rating updates and per-user context
api_router.include_router(users.router, prefix="/users", tags=["users"])

# Global ranking pages
api_router.include_router(leaderboard.router, prefix="/leaderboard", tags=["leaderboard"])
