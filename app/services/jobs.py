"""
Jobs Service - Persisted job records and per-user aggregates.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidJobTransitionError, JobNotFoundError
from app.models import Job, JobStatus, Profile, ProfileStatus

logger = structlog.get_logger(__name__)


async def create_job(
    db: AsyncSession,
    user_id: int,
    file_name: str,
    file_path: str,
    total_profiles: int,
    batch_size: int,
) -> Job:
    """
    Create a pending job for an uploaded spreadsheet.

    Args:
        db: Database session
        user_id: Owner ID
        file_name: Original upload name
        file_path: Where the upload is stored
        total_profiles: Number of profile URLs found in the file
        batch_size: Items per batch

    Returns:
        Created job
    """
    job = Job(
        user_id=user_id,
        file_name=file_name,
        file_path=file_path,
        status=JobStatus.PENDING.value,
        total_profiles=total_profiles,
        batch_size=batch_size,
    )

    db.add(job)
    await db.commit()
    await db.refresh(job)

    await logger.ainfo(
        "job_created",
        job_id=job.id,
        user_id=user_id,
        total_profiles=total_profiles,
    )

    return job


async def get_job(db: AsyncSession, job_id: int) -> Job:
    """
    Get job by ID.

    Raises:
        JobNotFoundError: If job doesn't exist
    """
    result = await db.execute(select(Job).where(Job.id == job_id))
    job = result.scalar_one_or_none()

    if not job:
        raise JobNotFoundError(job_id)

    return job


async def update_job_status(
    db: AsyncSession,
    job_id: int,
    status: JobStatus | None = None,
    **fields: Any,
) -> Job:
    """
    Apply a status change and/or field updates to a job.

    Passing ``status=None`` updates fields only and leaves the status as is,
    so progress writes never race a concurrent pause or stop.

    Raises:
        JobNotFoundError: If job doesn't exist
        InvalidJobTransitionError: If the status change is not allowed
    """
    job = await get_job(db, job_id)

    if status is not None and not job.can_transition_to(status):
        await logger.awarning(
            "invalid_job_transition",
            job_id=job_id,
            current=job.status,
            target=status.value,
        )
        raise InvalidJobTransitionError(job_id, job.status, status.value)

    old_status = job.status
    if status is not None:
        job.status = status.value

    for name, value in fields.items():
        setattr(job, name, value)

    await db.commit()
    await db.refresh(job)

    if status is not None and old_status != status.value:
        await logger.ainfo(
            "job_status_changed",
            job_id=job_id,
            from_status=old_status,
            to_status=status.value,
        )

    return job


async def fail_job(
    db: AsyncSession,
    job_id: int,
    error_message: str | None = None,
) -> Job:
    """Mark job as failed."""
    job = await update_job_status(
        db,
        job_id,
        JobStatus.FAILED,
        completed_at=datetime.now(timezone.utc),
        estimated_completion=None,
        error_message=error_message,
    )

    await logger.aerror(
        "job_failed",
        job_id=job_id,
        error=error_message,
    )

    return job


async def get_jobs_for_user(
    db: AsyncSession,
    user_id: int,
) -> list[Job]:
    """Get all jobs for a user, newest first."""
    result = await db.execute(
        select(Job)
        .where(Job.user_id == user_id)
        .order_by(Job.created_at.desc(), Job.id.desc())
    )
    return list(result.scalars().all())


async def get_active_job(db: AsyncSession, user_id: int) -> Job | None:
    """Get the user's processing or paused job, if any."""
    result = await db.execute(
        select(Job)
        .where(
            Job.user_id == user_id,
            Job.status.in_([JobStatus.PROCESSING.value, JobStatus.PAUSED.value]),
        )
        .order_by(Job.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_jobs_by_status(
    db: AsyncSession,
    statuses: list[JobStatus],
) -> list[Job]:
    """Get jobs in any of the given statuses ordered by creation."""
    result = await db.execute(
        select(Job)
        .where(Job.status.in_([s.value for s in statuses]))
        .order_by(Job.id)
    )
    return list(result.scalars().all())


async def get_job_stats(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Aggregate profile counters across all of a user's jobs."""
    result = await db.execute(
        select(
            func.coalesce(func.sum(Job.total_profiles), 0),
            func.coalesce(func.sum(Job.successful_profiles), 0),
            func.coalesce(func.sum(Job.failed_profiles), 0),
        ).where(Job.user_id == user_id)
    )
    total, successful, failed = result.one()

    success_rate = f"{successful / total * 100:.1f}%" if total > 0 else "0%"

    return {
        "total_profiles": int(total),
        "successful_profiles": int(successful),
        "failed_profiles": int(failed),
        "success_rate": success_rate,
    }


async def get_error_breakdown(db: AsyncSession, user_id: int) -> dict[str, int]:
    """Count failed profiles by error type across a user's jobs."""
    result = await db.execute(
        select(Profile.error_type, func.count(Profile.id))
        .join(Job, Job.id == Profile.job_id)
        .where(
            Job.user_id == user_id,
            Profile.status == ProfileStatus.FAILED.value,
        )
        .group_by(Profile.error_type)
    )
    counts = {error_type: count for error_type, count in result.all()}

    return {
        "captcha_blocked": counts.get("captcha", 0),
        "profile_not_found": counts.get("not_found", 0),
        "access_restricted": counts.get("access_restricted", 0),
        "rate_limited": counts.get("rate_limit", 0),
        "unknown": counts.get("unknown", 0),
    }
