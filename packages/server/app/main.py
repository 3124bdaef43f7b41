"""
Brand Hub API Server

Entry point for the FastAPI application.
"""

import logging

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.core.database import dispose_engine, get_session_context
from app.core.errors import register_error_handlers
from app.core.middleware import CSRF_HEADER, CSRFMiddleware, SecurityHeadersMiddleware
from app.core.redis import close_redis, ping_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router

settings = get_settings()
log = structlog.get_logger()


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


async def _database_ready() -> bool:
    try:
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as exc:
        log.warning("ready.database_unavailable", error=str(exc))
        return False


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Brand Hub",
        description="Multi-tenant brand management: guidelines, collaboration and team roles.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    register_error_handlers(app)

    # Middleware (order matters — outermost first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", CSRF_HEADER],
    )

    # Auth routes (not brand-scoped)
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: database and Redis must both answer."""
        checks = {"database": await _database_ready(), "redis": await ping_redis()}
        if not all(checks.values()):
            return JSONResponse(status_code=503, content={"status": "unavailable", "checks": checks})
        return {"status": "ready", "checks": checks}

    @app.on_event("startup")
    async def on_startup():
        log.info("Brand Hub starting", debug=settings.debug)
        for feature, enabled in settings.feature_flags().items():
            if not enabled:
                log.warning("config.feature_disabled", feature=feature)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Brand Hub shutting down")
        await close_redis()
        await dispose_engine()

    return app


app = create_app()
