"""Leaderboard endpoint.

GET /leaderboard?page=1&page_size=100 - One page of the global ranking.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from leaderboard.rate_limiter import api_rate_limit, limiter
from leaderboard.routes.dependencies import get_rank_service
from leaderboard.schemas import LeaderboardResponse
from leaderboard.services.ranking import RankService
from leaderboard.services.validation import MAX_PAGE_SIZE

router = APIRouter()


@router.get("", response_model=LeaderboardResponse)
@limiter.limit(api_rate_limit)
async def get_leaderboard(
    request: Request,
    service: Annotated[RankService, Depends(get_rank_service)],
    page: int = Query(default=1, ge=1, description="1-based page number"),
    page_size: int = Query(default=100, ge=1, le=MAX_PAGE_SIZE, description="Rows per page"),
) -> LeaderboardResponse:
    """Get a page of users ordered by rating (ties share a rank)."""
    result = await service.get_leaderboard(page, page_size)
    return LeaderboardResponse.from_page(result)
