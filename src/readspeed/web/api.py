"""FastAPI application factory.

Main entry point for the ReadSpeed Web API.
"""

import asyncio
import time
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from readspeed.config.app_config import APP_NAME, APP_VERSION, load_app_config
from readspeed.core.auth import AuthError
from readspeed.core.rate_limiting import RateLimiter, client_ip
from readspeed.core.subscriptions import LimitExceededError, UnknownTierError
from readspeed.db.database import init_db
from readspeed.utils.logging_config import configure_logging
from readspeed.utils.validators import ValidationError
from readspeed.web.routes import (
    admin_router,
    assessments_router,
    auth_router,
    books_router,
    dashboard_router,
    exercises_router,
    health_router,
    leaderboard_router,
    profile_router,
    storage_router,
    submissions_router,
)

logger = structlog.get_logger(__name__)


async def _cleanup_limiters(app: FastAPI, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        removed = await app.state.api_limiter.cleanup()
        removed += await app.state.auth_limiter.cleanup()
        if removed:
            logger.debug("rate_limit.cleanup", removed=removed)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    configure_logging(config.log_level, json_output=config.is_production)
    init_db(Path(config.paths.db_path))
    logger.info(
        "api_startup",
        environment=config.environment,
        db_path=config.paths.db_path,
        exercises_enabled=config.features.exercises_enabled,
    )

    cleanup = asyncio.create_task(
        _cleanup_limiters(app, config.rate_limit.window_ms / 1000)
    )
    yield
    cleanup.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup
    logger.info("api_shutdown")


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": exc.message, "code": "validation_failed", "field": exc.field},
        )

    @app.exception_handler(UnknownTierError)
    async def handle_unknown_tier(request: Request, exc: UnknownTierError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(LimitExceededError)
    async def handle_limit_exceeded(request: Request, exc: LimitExceededError) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"detail": exc.reason, "code": "limit_exceeded", "action": exc.action},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("api.unhandled_error", path=request.url.path, method=request.method)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    config = load_app_config()

    app = FastAPI(
        title=f"{APP_NAME} API",
        description="Reading speed and comprehension training API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.started_at = time.monotonic()
    app.state.api_limiter = RateLimiter(
        config.rate_limit.max_requests, config.rate_limit.window_ms, name="api"
    )
    app.state.auth_limiter = RateLimiter(
        config.rate_limit.auth_max_requests, config.rate_limit.auth_window_ms, name="auth"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.app_url] if config.is_production else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def rate_limit_api(request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        peer = request.client.host if request.client else None
        result = await app.state.api_limiter.check(client_ip(request.headers, peer))
        if not result.allowed:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later"},
                headers=result.headers(),
            )
        response = await call_next(request)
        response.headers.update(result.headers())
        return response

    _register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(books_router)
    app.include_router(submissions_router)
    app.include_router(dashboard_router)
    app.include_router(exercises_router)
    app.include_router(assessments_router)
    app.include_router(leaderboard_router)
    app.include_router(admin_router)
    app.include_router(storage_router)

    return app


# Default app instance for uvicorn
app = create_app()
