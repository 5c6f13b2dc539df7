"""FastAPI application entry point.

Leaderboard Rank Service - tie-aware ranks with a cache-aside answer cache.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from leaderboard.rate_limiter import configure_limiter
from leaderboard.routes import api_router
from leaderboard.schemas import HealthResponse
from leaderboard.services.background import BackgroundQueue
from leaderboard.services.cache import RankCache
from leaderboard.services.errors import (
    ConflictError,
    LeaderboardError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from leaderboard.services.ranking import RankService
from leaderboard.services.seeding import seed_users
from leaderboard.settings import Settings, get_settings
from leaderboard.stores.cache import AnswerCache, MemoryAnswerCache
from leaderboard.stores.postgres import close_db, create_tables, get_session_factory, init_db, ping_db
from leaderboard.stores.redis import RedisAnswerCache, close_redis, get_redis, init_redis
from leaderboard.stores.scores import ScoreStore, SqlScoreStore

logger = logging.getLogger("uvicorn.error")

ERROR_STATUS: dict[type[LeaderboardError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StoreError: 503,
}


def _error_body(code: str, message: str, detail: dict | None = None) -> dict:
    return {"error": {"code": code, "message": message, "detail": detail}}


async def _build_cache_backend(settings: Settings) -> AnswerCache:
    if settings.cache_backend == "memory":
        logger.info("Using in-process answer cache")
        return MemoryAnswerCache()
    # An unreachable Redis degrades to cache misses
    try:
        await init_redis()
    except Exception:
        logger.exception("Redis init failed")
    return RedisAnswerCache(get_redis())


def build_rank_service(settings: Settings, store: ScoreStore, backend: AnswerCache) -> RankService:
    """Wire the rank service from settings."""
    cache = RankCache(
        backend,
        timeout=settings.cache_timeout_seconds,
        user_ttl=settings.user_cache_ttl,
        rank_ttl=settings.rank_cache_ttl,
        leaderboard_ttl=settings.leaderboard_cache_ttl,
    )
    background = BackgroundQueue(
        workers=settings.background_workers,
        max_size=settings.background_queue_size,
    )
    return RankService(
        store,
        cache,
        background=background,
        store_timeout=settings.store_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events. Unlike a best-effort cache, the
    score store is required: startup fails if Postgres is unreachable.
    """
    # Startup
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    await init_db()
    await ping_db()
    logger.info("Postgres connected")
    if settings.create_tables_on_startup:
        await create_tables()

    store = SqlScoreStore(get_session_factory())
    backend = await _build_cache_backend(settings)

    service = build_rank_service(settings, store, backend)
    app.state.rank_service = service

    if settings.seed_on_startup:
        try:
            if await seed_users(store, settings.seed_user_count):
                await service.invalidate_leaderboard()
        except Exception:
            logger.exception("Seeding failed")

    yield

    # Shutdown
    await service.close()
    app.state.rank_service = None
    await close_redis()
    await close_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Leaderboard rank service with cached tie-aware ranks",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting (per client address)
    app.state.limiter = configure_limiter(settings)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Domain errors -> structured error format
    @app.exception_handler(LeaderboardError)
    async def domain_exception_handler(request: Request, exc: LeaderboardError) -> JSONResponse:
        status_code = ERROR_STATUS.get(type(exc), 500)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content=_error_body(exc.code, exc.message, exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=400,
            content=_error_body(
                ValidationError.code,
                message,
                {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in errors]},
            ),
        )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "INTERNAL_ERROR",
                str(exc) if settings.debug else "Internal server error",
            ),
        )

    # Health check endpoint
    @app.get(
        "/health",
        tags=["health"],
        response_model=HealthResponse,
        responses={503: {"model": HealthResponse}},
    )
    async def health_check(request: Request) -> JSONResponse:
        """Healthy when the answer cache answers a trivial read in time."""
        service: RankService | None = getattr(request.app.state, "rank_service", None)
        healthy = service is not None and await service.is_healthy()
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "leaderboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
