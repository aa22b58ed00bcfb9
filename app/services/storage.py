"""
Storage - Session-per-call facade over the job, profile and user services.

The job queue and batch scheduler outlive any single request, so instead of
sharing one session they go through this facade. Every call opens its own
session and commits before returning, which keeps the persisted records
current after each state change.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import async_session_maker, get_db_session
from app.models import Job, JobStatus, Profile, ProfileStatus, User
from app.services import jobs as jobs_service
from app.services import profiles as profiles_service
from app.services import users as users_service


class Storage:
    """Persistence operations used by the processing pipeline."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._session_maker = session_maker or async_session_maker

    def session(self):
        return get_db_session(self._session_maker)

    # Jobs
    async def create_job(
        self,
        user_id: int,
        file_name: str,
        file_path: str,
        total_profiles: int,
        batch_size: int,
    ) -> Job:
        async with self.session() as db:
            return await jobs_service.create_job(
                db, user_id, file_name, file_path, total_profiles, batch_size
            )

    async def get_job(self, job_id: int) -> Job:
        async with self.session() as db:
            return await jobs_service.get_job(db, job_id)

    async def update_job_status(
        self,
        job_id: int,
        status: JobStatus | None = None,
        **fields: Any,
    ) -> Job:
        async with self.session() as db:
            return await jobs_service.update_job_status(db, job_id, status, **fields)

    async def fail_job(self, job_id: int, error_message: str | None = None) -> Job:
        async with self.session() as db:
            return await jobs_service.fail_job(db, job_id, error_message)

    async def get_jobs_by_user(self, user_id: int) -> list[Job]:
        async with self.session() as db:
            return await jobs_service.get_jobs_for_user(db, user_id)

    async def get_active_job(self, user_id: int) -> Job | None:
        async with self.session() as db:
            return await jobs_service.get_active_job(db, user_id)

    async def get_jobs_by_status(self, statuses: list[JobStatus]) -> list[Job]:
        async with self.session() as db:
            return await jobs_service.get_jobs_by_status(db, statuses)

    async def get_job_stats(self, user_id: int) -> dict[str, Any]:
        async with self.session() as db:
            return await jobs_service.get_job_stats(db, user_id)

    async def get_error_breakdown(self, user_id: int) -> dict[str, int]:
        async with self.session() as db:
            return await jobs_service.get_error_breakdown(db, user_id)

    # Profiles
    async def create_profile(
        self,
        job_id: int,
        profile_url: str,
        row_index: int | None = None,
        row_data: dict[str, str] | None = None,
    ) -> Profile:
        async with self.session() as db:
            return await profiles_service.create_profile(
                db, job_id, profile_url, row_index, row_data
            )

    async def get_profiles_by_job(
        self,
        job_id: int,
        statuses: list[ProfileStatus] | None = None,
    ) -> list[Profile]:
        async with self.session() as db:
            return await profiles_service.get_profiles_by_job(db, job_id, statuses)

    async def update_profile_status(
        self,
        profile_id: int,
        status: ProfileStatus,
        **fields: Any,
    ) -> Profile | None:
        async with self.session() as db:
            return await profiles_service.update_profile_status(
                db, profile_id, status, **fields
            )

    async def get_failed_profiles(self, job_id: int) -> list[Profile]:
        async with self.session() as db:
            return await profiles_service.get_failed_profiles(db, job_id)

    async def get_profiles_for_user(
        self,
        user_id: int,
        status: ProfileStatus | None = None,
    ) -> list[Profile]:
        async with self.session() as db:
            return await profiles_service.get_profiles_for_user(db, user_id, status)

    # Users
    async def get_user(self, user_id: int) -> User | None:
        async with self.session() as db:
            return await users_service.get_user(db, user_id)
