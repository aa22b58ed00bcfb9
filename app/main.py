"""
Profile Batch - FastAPI Main Application

This is the main entry point for the FastAPI application.
Configures middleware, exception handlers, routes and the job queue.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app import __version__
from app.config import get_settings
from app.core.errors import (
    AppException,
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
)
from app.database import close_db, get_db_session, init_db
from app.middleware import (
    CorrelationMiddleware,
    LoggingMiddleware,
    RateLimitMiddleware,
)
from app.services.provider import create_provider
from app.services.storage import Storage
from app.services.users import ensure_user
from app.worker.queue import JobQueue

settings = get_settings()


def configure_logging() -> None:
    """Configure structured logging with structlog."""
    if settings.is_production:
        # JSON output for production
        renderer = structlog.processors.JSONRenderer()
    else:
        # Pretty console output for development
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the job queue, resumes interrupted jobs on startup and stops the
    queue worker on shutdown.
    """
    logger = structlog.get_logger(__name__)

    await logger.ainfo(
        "application_starting",
        app_name=settings.app_name,
        version=__version__,
        environment=settings.app_env,
        provider_mode=settings.provider_mode,
    )

    await init_db()
    await logger.ainfo("database_initialized")

    if settings.app_env == "development":
        async with get_db_session() as db:
            await ensure_user(db, settings.dev_user_id, "demo", "demo@example.com")

    storage = Storage()
    provider = create_provider(settings)
    queue = JobQueue(storage, provider, settings=settings)
    app.state.storage = storage
    app.state.job_queue = queue

    recovered = await queue.recover()
    await logger.ainfo("job_queue_ready", recovered=recovered)

    yield

    await logger.ainfo("application_stopping")
    await queue.shutdown()
    close_provider = getattr(provider, "close", None)
    if close_provider is not None:
        await close_provider()
    await close_db()
    await logger.ainfo("database_closed")


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    # Configure logging first
    configure_logging()

    app = FastAPI(
        title="Profile Batch",
        description=(
            "Batch extraction of profile data from uploaded spreadsheets, "
            "with rate-limited processing, pause/resume and result exports."
        ),
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if not settings.is_production else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Order matters - last added = outermost
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    from app.api.health import router as health_router
    from app.api.jobs import router as jobs_router
    from app.api.stats import router as stats_router

    app.include_router(health_router)
    app.include_router(jobs_router)
    app.include_router(stats_router)

    return app


# Create the application instance
app = create_application()
