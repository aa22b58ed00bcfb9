"""
Health Check API - Health and readiness endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app import __version__
from app.config import get_settings
from app.database import get_db

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str
    timestamp: str
    checks: dict[str, bool]
    queued_jobs: int = 0
    current_job_id: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the service is running.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Verifies the database connection and the upload/result directories, and
    reports what the job queue holds.
    """
    settings = get_settings()
    checks = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError:
        checks["database"] = False

    checks["uploads_path"] = settings.uploads_path.exists()
    checks["results_path"] = settings.results_path.exists()

    queue = getattr(request.app.state, "job_queue", None)
    checks["job_queue"] = queue is not None

    return ReadinessResponse(
        status="ready" if all(checks.values()) else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=checks,
        queued_jobs=len(queue.records) if queue else 0,
        current_job_id=queue.current_job_id if queue else None,
    )
