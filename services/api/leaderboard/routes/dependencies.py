"""Route dependencies."""

from fastapi import Request

from leaderboard.services.ranking import RankService


def get_rank_service(request: Request) -> RankService:
    """Rank service created by the application lifespan."""
    service: RankService | None = getattr(request.app.state, "rank_service", None)
    if service is None:
        raise RuntimeError("Rank service not initialized")
    return service
