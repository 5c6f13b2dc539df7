"""User endpoints.

POST /users                                   - Register a user
GET  /users/search?username=                  - Case-insensitive lookup
GET  /users/{user_id}                         - User with current rank
PUT  /users/{user_id}/rating                  - Update rating, return new rank
GET  /users/{user_id}/leaderboard-context     - Leaderboard page around the user

Routers are thin: call services for business logic.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status

from leaderboard.rate_limiter import api_rate_limit, limiter
from leaderboard.routes.dependencies import get_rank_service
from leaderboard.schemas import (
    CreateUserRequest,
    ErrorResponse,
    LeaderboardResponse,
    SearchResponse,
    UpdateRatingRequest,
    UserSchema,
    UserWithRank,
)
from leaderboard.services.ranking import RankService
from leaderboard.services.validation import MAX_CONTEXT_SIZE, MAX_USER_ID

router = APIRouter()

RankServiceDep = Annotated[RankService, Depends(get_rank_service)]
UserId = Annotated[str, Path(min_length=1, max_length=MAX_USER_ID, description="User id")]

_NOT_FOUND = {404: {"model": ErrorResponse}}


@router.post(
    "",
    response_model=UserSchema,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(api_rate_limit)
async def create_user(request: Request, body: CreateUserRequest, service: RankServiceDep) -> UserSchema:
    """Register a new user."""
    user = await service.create_user(body.username, body.initial_rating, user_id=body.user_id)
    return UserSchema.from_record(user)


# Declared before /{user_id} so "search" is not captured as an id.
@router.get("/search", response_model=SearchResponse)
@limiter.limit(api_rate_limit)
async def search_user(
    request: Request,
    service: RankServiceDep,
    username: str = Query(
        description="Username, matched case-insensitively",
        examples=["user042"],
    ),
) -> SearchResponse:
    """Find a user by username. Not found is a normal response with found=false."""
    result = await service.search_user(username)
    if result is None:
        return SearchResponse(found=False)

    user, rank = result
    return SearchResponse(user=UserWithRank.from_record(user, rank), rank=rank, found=True)


@router.get("/{user_id}", response_model=UserWithRank, responses=_NOT_FOUND)
@limiter.limit(api_rate_limit)
async def get_user(request: Request, user_id: UserId, service: RankServiceDep) -> UserWithRank:
    """Get a user with its current rank."""
    user, rank = await service.get_user(user_id)
    return UserWithRank.from_record(user, rank)


@router.put("/{user_id}/rating", response_model=UserWithRank, responses=_NOT_FOUND)
@limiter.limit(api_rate_limit)
async def update_rating(
    request: Request,
    user_id: UserId,
    body: UpdateRatingRequest,
    service: RankServiceDep,
) -> UserWithRank:
    """Update a user's rating and return the new rank."""
    user, rank = await service.update_rating(user_id, body.rating)
    return UserWithRank.from_record(user, rank)


@router.get(
    "/{user_id}/leaderboard-context",
    response_model=LeaderboardResponse,
    responses=_NOT_FOUND,
)
@limiter.limit(api_rate_limit)
async def get_leaderboard_context(
    request: Request,
    user_id: UserId,
    service: RankServiceDep,
    context_size: int = Query(
        default=10,
        ge=1,
        le=MAX_CONTEXT_SIZE,
        description="Rows on each side of the user (page holds 2 * context_size)",
    ),
) -> LeaderboardResponse:
    """Get the leaderboard page around a user."""
    page = await service.get_leaderboard_around_user(user_id, context_size)
    return LeaderboardResponse.from_page(page)
