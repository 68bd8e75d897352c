"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from badgeflow.auth.router import router as auth_router
from badgeflow.badges.router import router as badges_router
from badgeflow.categories.router import router as categories_router
from badgeflow.config import get_settings
from badgeflow.database import close_db, init_db
from badgeflow.earning.router import router as community_router
from badgeflow.health.router import router as health_router
from badgeflow.middleware import setup_middleware
from badgeflow.redis_client import close_redis, init_redis
from badgeflow.submissions.router import router as submissions_router
from badgeflow.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_enabled:
        await init_redis(settings.redis_url)
    logger.info("startup_complete", environment=settings.environment, redis=settings.redis_enabled)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Badgeflow API",
        description="Badge submission, review and recognition pipeline",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(badges_router)
    app.include_router(categories_router)
    app.include_router(submissions_router)
    app.include_router(community_router)

    return app


app = create_app()
