"""
Batch Scheduler - Drives one run of a job over its profile list.

Profiles are processed strictly one at a time in fixed-size batches. The
job's live control state is consulted only at batch boundaries, so a pause
or stop lets the current batch finish before the run halts.
"""

import asyncio
import enum
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from app.config import Settings, get_settings
from app.core.errors import NoProfilesFoundError, ProfileExtractionError
from app.core.progress import compute_progress
from app.core.retry import execute_with_retry
from app.models import Job, Profile, ProfileStatus
from app.services.provider import ProfileProvider
from app.services.spreadsheet import SpreadsheetParser
from app.services.storage import Storage

logger = structlog.get_logger(__name__)

# An item whose retry count reaches this limit is failed instead of retrying
ITEM_RETRY_LIMIT = 3

UNPROCESSED_STATUSES = [ProfileStatus.PENDING, ProfileStatus.PROCESSING]


class RunOutcome(str, enum.Enum):
    """How a scheduler run ended."""

    COMPLETED = "completed"
    HALTED = "halted"


@dataclass
class RunCounters:
    """Job counters carried through a run, seeded from the persisted job."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    retrying: int = 0
    error_breakdown: Counter = field(default_factory=Counter)
    # Items attempted since this run started
    attempted_this_run: int = 0

    @classmethod
    def from_job(cls, job: Job) -> "RunCounters":
        return cls(
            processed=job.processed_profiles or 0,
            successful=job.successful_profiles or 0,
            failed=job.failed_profiles or 0,
            retrying=job.retrying_profiles or 0,
            error_breakdown=Counter(job.error_breakdown or {}),
        )

    def record(self, status: ProfileStatus, error_type: str | None) -> None:
        self.attempted_this_run += 1
        if status is ProfileStatus.SUCCESS:
            self.processed += 1
            self.successful += 1
        elif status is ProfileStatus.FAILED:
            self.processed += 1
            self.failed += 1
        else:
            self.retrying += 1

        if error_type:
            self.error_breakdown[error_type] += 1

    def as_fields(self) -> dict[str, Any]:
        return {
            "processed_profiles": self.processed,
            "successful_profiles": self.successful,
            "failed_profiles": self.failed,
            "retrying_profiles": self.retrying,
            "error_breakdown": dict(self.error_breakdown),
        }


def split_batches(profiles: list[Profile], batch_size: int) -> list[list[Profile]]:
    """Split profiles into consecutive batches of at most ``batch_size``."""
    size = max(batch_size, 1)
    return [profiles[i : i + size] for i in range(0, len(profiles), size)]


class BatchScheduler:
    """Runs the profiles of one job through the retry executor."""

    def __init__(
        self,
        storage: Storage,
        provider: ProfileProvider,
        parser: SpreadsheetParser | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.storage = storage
        self.provider = provider
        self.parser = parser or SpreadsheetParser()
        self.settings = settings or get_settings()
        self._sleep = sleep

    async def materialize(self, job: Job, file_path: str) -> list[Profile]:
        """
        Make sure the job has profile records and return the unprocessed ones.

        Profile records are created from the spreadsheet only on the first
        run. Later runs pick up whatever is still pending, in creation order.

        Raises:
            NoProfilesFoundError: If the job has no profiles at all
        """
        existing = await self.storage.get_profiles_by_job(job.id)

        if not existing:
            rows = await self.parser.parse_rows(file_path)
            if not rows:
                raise NoProfilesFoundError()

            for row in rows:
                row_data = {key: str(value) for key, value in row.extra.items()}
                await self.storage.create_profile(job.id, row.url, row.row_index, row_data)

            if not job.total_profiles:
                await self.storage.update_job_status(job.id, None, total_profiles=len(rows))

            await logger.ainfo("profiles_materialized", job_id=job.id, count=len(rows))

        return await self.storage.get_profiles_by_job(job.id, UNPROCESSED_STATUSES)

    async def run(
        self,
        job: Job,
        profiles: list[Profile],
        credential: str | None,
        is_active: Callable[[], bool],
        batch_size: int | None = None,
    ) -> RunOutcome:
        """
        Process ``profiles`` in batches.

        Args:
            job: Job being processed; counters continue from its values
            profiles: Unprocessed profiles, in processing order
            credential: Provider credential for the job's owner
            is_active: Returns False once the job has been paused or stopped
            batch_size: Items per batch, defaults to the job's batch size

        Returns:
            COMPLETED when every batch ran, HALTED when the control state
            stopped the run at a batch boundary
        """
        batches = split_batches(profiles, batch_size or job.batch_size)
        counters = RunCounters.from_job(job)
        total = job.total_profiles or len(profiles)
        run_started = datetime.now(timezone.utc)

        log = logger.bind(job_id=job.id)
        await log.ainfo(
            "job_run_started",
            pending=len(profiles),
            batches=len(batches),
            already_processed=counters.processed,
        )

        for batch_number, batch in enumerate(batches, start=1):
            if not is_active():
                await log.ainfo("job_run_halted", batch=batch_number)
                return RunOutcome.HALTED

            await log.ainfo(
                "batch_started",
                batch=batch_number,
                of=len(batches),
                size=len(batch),
            )

            for profile in batch:
                status, error_type = await self.process_profile(profile, credential)
                counters.record(status, error_type)

                snapshot = compute_progress(
                    counters.attempted_this_run,
                    counters.processed + counters.retrying,
                    total,
                    run_started,
                )
                await self.storage.update_job_status(
                    job.id,
                    None,
                    processing_rate=snapshot.rate_display,
                    estimated_completion=snapshot.estimated_completion,
                    **counters.as_fields(),
                )

                await self._sleep(self.settings.rate_limit_delay)

            await log.ainfo(
                "batch_completed",
                batch=batch_number,
                processed=counters.processed,
                successful=counters.successful,
                failed=counters.failed,
            )

            if batch_number < len(batches):
                await self._sleep(self.settings.batch_delay)

        await log.ainfo(
            "job_run_finished",
            processed=counters.processed,
            successful=counters.successful,
            failed=counters.failed,
            retrying=counters.retrying,
        )
        return RunOutcome.COMPLETED

    async def process_profile(
        self,
        profile: Profile,
        credential: str | None,
    ) -> tuple[ProfileStatus, str | None]:
        """
        Extract one profile and persist the outcome.

        Returns:
            The profile's new status and its error type, if it failed
        """
        await self.storage.update_profile_status(
            profile.id,
            ProfileStatus.PROCESSING,
            last_attempt=datetime.now(timezone.utc),
        )

        try:
            data = await execute_with_retry(
                lambda: self.provider.fetch_profile(credential, profile.profile_url),
                max_retries=self.settings.max_retries,
                initial_delay=self.settings.retry_initial_delay,
                profile_url=profile.profile_url,
            )
        except ProfileExtractionError as e:
            retry_count = (profile.retry_count or 0) + e.attempts
            if e.retryable and retry_count < ITEM_RETRY_LIMIT:
                status = ProfileStatus.RETRYING
            else:
                status = ProfileStatus.FAILED

            await self.storage.update_profile_status(
                profile.id,
                status,
                error_type=e.error_type.value,
                error_message=e.message,
                retry_count=retry_count,
                last_attempt=datetime.now(timezone.utc),
            )
            await logger.awarning(
                "profile_extraction_failed",
                job_id=profile.job_id,
                profile_id=profile.id,
                error_type=e.error_type.value,
                retry_count=retry_count,
                status=status.value,
            )
            return status, e.error_type.value

        await self.storage.update_profile_status(
            profile.id,
            ProfileStatus.SUCCESS,
            profile_data=data,
            error_type=None,
            error_message=None,
            extracted_at=datetime.now(timezone.utc),
        )
        return ProfileStatus.SUCCESS, None
