"""
Profiles Service - Per-item records of a job.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Job, Profile, ProfileStatus


async def create_profile(
    db: AsyncSession,
    job_id: int,
    profile_url: str,
    row_index: int | None = None,
    row_data: dict[str, str] | None = None,
) -> Profile:
    """Create a pending profile record."""
    profile = Profile(
        job_id=job_id,
        profile_url=profile_url,
        row_index=row_index,
        row_data=row_data or None,
        status=ProfileStatus.PENDING.value,
        retry_count=0,
    )

    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


async def get_profiles_by_job(
    db: AsyncSession,
    job_id: int,
    statuses: list[ProfileStatus] | None = None,
) -> list[Profile]:
    """Get a job's profiles in creation order, optionally filtered by status."""
    query = select(Profile).where(Profile.job_id == job_id)
    if statuses:
        query = query.where(Profile.status.in_([s.value for s in statuses]))

    result = await db.execute(query.order_by(Profile.id))
    return list(result.scalars().all())


async def get_profile(db: AsyncSession, profile_id: int) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    return result.scalar_one_or_none()


async def update_profile_status(
    db: AsyncSession,
    profile_id: int,
    status: ProfileStatus,
    **fields: Any,
) -> Profile | None:
    """Set a profile's status and any extra fields. Returns None if missing."""
    profile = await get_profile(db, profile_id)
    if profile is None:
        return None

    profile.status = status.value
    for name, value in fields.items():
        setattr(profile, name, value)

    await db.commit()
    await db.refresh(profile)
    return profile


async def get_failed_profiles(db: AsyncSession, job_id: int) -> list[Profile]:
    """Get a job's failed profiles."""
    return await get_profiles_by_job(db, job_id, [ProfileStatus.FAILED])


async def get_profiles_for_user(
    db: AsyncSession,
    user_id: int,
    status: ProfileStatus | None = None,
) -> list[Profile]:
    """Get profiles across all of a user's jobs, oldest job first."""
    query = (
        select(Profile)
        .join(Job, Job.id == Profile.job_id)
        .where(Job.user_id == user_id)
    )
    if status is not None:
        query = query.where(Profile.status == status.value)

    result = await db.execute(query.order_by(Profile.job_id, Profile.id))
    return list(result.scalars().all())
