"""
FastAPI Application Entry Point.

This is the main application file for the FeastFrenzy auth service.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.config import Settings, settings
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from backend.app.core.logger import configure_logging, logger
from backend.app.core.observability import ObservabilityMiddleware
from backend.app.core.redis_client import get_redis, ping_redis, redis_client
from backend.app.db.session import AsyncSessionLocal, Base, engine
from backend.app.domain.auth.factory import build_auth_services
from backend.app.services.audit import AuditRecorder
from backend.app.services.cache import CacheInvalidator

# Import models to ensure they are registered with Base
from backend.app.models.user import User  # noqa: F401
from backend.app.models.audit_log import AuditLog  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Starts the background audit writer; flushes and stops it on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await app.state.audit_recorder.start()
    logger.info("%s started", app.title)
    yield
    await app.state.audit_recorder.stop()
    await engine.dispose()


def create_app(source: Settings = None) -> FastAPI:
    """
    Build the application.

    The auth services, audit recorder and cache collaborator are created here,
    once, and shared through ``app.state``. An invalid security configuration
    (missing or identical JWT secrets) fails here, before serving anything.
    """
    source = source or settings
    configure_logging(source.log_level)

    app = FastAPI(
        title=source.app_name,
        version=source.api_version,
        debug=source.debug,
        description="Authentication and session lifecycle for FeastFrenzy",
        lifespan=lifespan,
    )

    app.state.auth = build_auth_services(source)
    app.state.audit_recorder = AuditRecorder(AsyncSessionLocal, max_queue_size=source.audit_queue_size)
    app.state.cache = CacheInvalidator(redis_client, enabled=source.cache_enabled)

    # Register global exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.add_middleware(ObservabilityMiddleware)

    @app.get("/health", tags=["Health"])
    async def health_check(redis=Depends(get_redis)):
        """
        Health check endpoint.

        The cache is optional: an unreachable Redis degrades, it does not fail.

        Returns:
            dict: Status and application information
        """
        return {
            "status": "healthy",
            "cache": "up" if await ping_redis(redis) else "down",
            "app_name": source.app_name,
            "version": source.api_version,
        }

    # Include API v1 router
    app.include_router(api_v1_router, prefix=f"/{source.api_version}")

    return app


app = create_app()
