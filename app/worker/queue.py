"""
Job Queue - Owns submitted jobs and drives them through the scheduler.

One JobQueue is built at application start and shared through
``app.state``. It runs at most one job at a time: a single worker task
takes the earliest submitted pending job, runs it to a halt or to the end,
then looks for the next one. The worker exits when nothing is pending and
is started again by the next add or resume.
"""

import asyncio
import itertools
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from app.config import Settings, get_settings
from app.core.errors import ProviderAuthRequiredError
from app.models import Job, JobStatus
from app.services.provider import ProfileProvider
from app.services.spreadsheet import SpreadsheetParser
from app.services.storage import Storage
from app.worker.results import ResultCompiler
from app.worker.scheduler import BatchScheduler, RunOutcome

logger = structlog.get_logger(__name__)

STOPPED_MESSAGE = "Stopped by user"


@dataclass(frozen=True)
class JobParams:
    """What the queue needs to run a job."""

    job_id: int
    user_id: int
    file_path: str
    batch_size: int

    @classmethod
    def from_job(cls, job: Job) -> "JobParams":
        return cls(
            job_id=job.id,
            user_id=job.user_id,
            file_path=job.file_path,
            batch_size=job.batch_size,
        )


@dataclass
class ProcessingRecord:
    """
    In-memory state for a job held by the queue.

    ``retry_count`` counts how many times the job was put back in line after
    a pause.
    """

    sequence: int
    params: JobParams
    status: JobStatus = JobStatus.PENDING
    retry_count: int = 0

    @property
    def job_id(self) -> int:
        return self.params.job_id


class JobQueue:
    """Single-flight processing queue for extraction jobs."""

    def __init__(
        self,
        storage: Storage,
        provider: ProfileProvider,
        settings: Settings | None = None,
        parser: SpreadsheetParser | None = None,
        compiler: ResultCompiler | None = None,
        scheduler: BatchScheduler | None = None,
    ) -> None:
        self.storage = storage
        self.settings = settings or get_settings()
        self.compiler = compiler or ResultCompiler(storage, settings=self.settings)
        self.scheduler = scheduler or BatchScheduler(
            storage, provider, parser=parser, settings=self.settings
        )

        self._records: dict[int, ProcessingRecord] = {}
        self._sequence = itertools.count(1)
        self._worker: asyncio.Task | None = None
        self._current_job_id: int | None = None

    # Inspection
    def get_record(self, job_id: int) -> ProcessingRecord | None:
        return self._records.get(job_id)

    @property
    def records(self) -> list[ProcessingRecord]:
        return sorted(self._records.values(), key=lambda r: r.sequence)

    @property
    def current_job_id(self) -> int | None:
        return self._current_job_id

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    # Control
    async def add_job(self, params: JobParams) -> int:
        """
        Submit a job for processing.

        Submitting a job the queue already holds is a no-op, except that a
        paused job is resumed.

        Returns:
            The job ID
        """
        record = self._records.get(params.job_id)
        if record is not None:
            if record.status is JobStatus.PAUSED:
                await self.resume_job(params.job_id)
            return params.job_id

        record = ProcessingRecord(sequence=next(self._sequence), params=params)
        self._records[params.job_id] = record

        await logger.ainfo(
            "job_enqueued",
            job_id=params.job_id,
            sequence=record.sequence,
            queued=len(self._records),
        )

        self._ensure_worker()
        return params.job_id

    async def pause_job(self, job_id: int) -> bool:
        """
        Pause a processing job. The current batch finishes first.

        A job the worker has only just picked up may not be persisted as
        processing yet; the worker persists the pause once it is.

        Returns:
            True if the job was paused, False if it was not processing
        """
        record = self._records.get(job_id)
        if record is None or record.status is not JobStatus.PROCESSING:
            return False

        record.status = JobStatus.PAUSED

        job = await self.storage.get_job(job_id)
        if record.status is JobStatus.PAUSED and job.status == JobStatus.PROCESSING.value:
            await self._persist_pause(job_id)

        await logger.ainfo("job_paused", job_id=job_id)
        return True

    async def resume_job(self, job_id: int) -> bool:
        """
        Put a paused job back in line.

        Returns:
            True if the job was resumed, False if it was not paused
        """
        record = self._records.get(job_id)
        if record is None or record.status is not JobStatus.PAUSED:
            return False

        record.status = JobStatus.PENDING
        record.retry_count += 1
        await logger.ainfo("job_resumed", job_id=job_id, resumes=record.retry_count)

        self._ensure_worker()
        return True

    async def stop_job(self, job_id: int) -> bool:
        """
        Stop a job and mark it failed.

        A running job halts at the next batch boundary. A job that is not
        running is dropped from the queue straight away.

        Returns:
            True if the queue held the job
        """
        record = self._records.get(job_id)
        if record is None:
            return False

        record.status = JobStatus.FAILED

        job = await self.storage.get_job(job_id)
        if not job.is_terminal:
            await self.storage.fail_job(job_id, STOPPED_MESSAGE)

        if self._current_job_id != job_id:
            self._records.pop(job_id, None)

        await logger.ainfo("job_stopped", job_id=job_id)
        return True

    async def recover(self) -> int:
        """
        Re-enqueue jobs interrupted by a restart.

        Picks up jobs persisted as processing and pending jobs that had been
        queued. Their unprocessed profiles resume where they left off.

        Returns:
            Number of jobs enqueued
        """
        jobs = await self.storage.get_jobs_by_status(
            [JobStatus.PROCESSING, JobStatus.PENDING]
        )
        interrupted = [
            job
            for job in jobs
            if job.status == JobStatus.PROCESSING.value or job.queued_at is not None
        ]

        for job in interrupted:
            await self.add_job(JobParams.from_job(job))

        if interrupted:
            await logger.ainfo(
                "jobs_recovered",
                count=len(interrupted),
                job_ids=[job.id for job in interrupted],
            )
        return len(interrupted)

    async def join(self) -> None:
        """Wait until the worker has nothing left to run."""
        while self._worker is not None and not self._worker.done():
            await self._worker

    async def shutdown(self) -> None:
        """Cancel the worker. Running jobs stay persisted as processing."""
        if self._worker is None or self._worker.done():
            return

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        await logger.ainfo("job_queue_shutdown", held=len(self._records))

    # Processing loop
    def _ensure_worker(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run_loop())

    def _next_pending(self) -> ProcessingRecord | None:
        pending = [r for r in self._records.values() if r.status is JobStatus.PENDING]
        return min(pending, key=lambda r: r.sequence, default=None)

    async def _run_loop(self) -> None:
        await logger.adebug("job_queue_worker_started")

        while (record := self._next_pending()) is not None:
            await self._process(record)

        await logger.adebug("job_queue_worker_idle")

    async def _credential(self, user_id: int) -> str | None:
        """The owner's provider token. Only live mode requires one."""
        user = await self.storage.get_user(user_id)
        token = user.provider_access_token if user is not None else None

        if user is None or (not token and self.settings.provider_mode == "live"):
            raise ProviderAuthRequiredError(user_id)

        return token

    async def _persist_pause(self, job_id: int) -> None:
        await self.storage.update_job_status(
            job_id, JobStatus.PAUSED, estimated_completion=None
        )

    async def _process(self, record: ProcessingRecord) -> None:
        job_id = record.job_id
        record.status = JobStatus.PROCESSING
        self._current_job_id = job_id
        log = logger.bind(job_id=job_id, sequence=record.sequence)

        try:
            job = await self.storage.get_job(job_id)
            if job.is_terminal:
                # stopped before the worker got to it
                record.status = JobStatus(job.status)
                return

            fields = {}
            if job.started_at is None:
                fields["started_at"] = datetime.now(timezone.utc)
            job = await self.storage.update_job_status(job_id, JobStatus.PROCESSING, **fields)
            await log.ainfo("job_started", file_name=job.file_name)

            if record.status is JobStatus.PAUSED:
                await self._persist_pause(job_id)

            credential = await self._credential(record.params.user_id)
            profiles = await self.scheduler.materialize(job, record.params.file_path)
            job = await self.storage.get_job(job_id)

            outcome = await self.scheduler.run(
                job,
                profiles,
                credential,
                is_active=lambda: record.status is JobStatus.PROCESSING,
                batch_size=record.params.batch_size,
            )

            if outcome is RunOutcome.HALTED or record.status is JobStatus.FAILED:
                await log.ainfo("job_halted", status=record.status.value)
                return

            result_path = await self.compiler.compile(job_id)
            await self.storage.update_job_status(
                job_id,
                JobStatus.COMPLETED,
                completed_at=datetime.now(timezone.utc),
                estimated_completion=None,
                result_path=result_path,
            )
            record.status = JobStatus.COMPLETED
            await log.ainfo("job_completed", result_path=result_path)

        except Exception as e:
            record.status = JobStatus.FAILED
            await log.aerror("job_processing_error", error=str(e), exc_info=True)
            await self._mark_failed(job_id, str(e))

        finally:
            self._current_job_id = None
            if record.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                self._records.pop(job_id, None)

    async def _mark_failed(self, job_id: int, message: str) -> None:
        try:
            job = await self.storage.get_job(job_id)
            if not job.is_terminal:
                await self.storage.fail_job(job_id, message)
        except Exception as e:
            await logger.aerror("job_fail_not_persisted", job_id=job_id, error=str(e))
