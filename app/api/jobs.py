"""
Jobs API - Upload, control and tracking endpoints.
"""

import asyncio
import math
from datetime import datetime, timezone
from pathlib import Path as FilePath
from typing import Annotated
from uuid import uuid4

import structlog
from fastapi import APIRouter, File, Query, UploadFile, status
from fastapi.responses import FileResponse

from app.api.deps import JobQueueDep, OwnedJob, StorageDep
from app.config import get_settings
from app.core.errors import (
    InvalidJobTransitionError,
    InvalidUploadError,
    NoProfilesFoundError,
    ResultsNotFoundError,
)
from app.middleware import CurrentUserId
from app.models import Job, JobStatus, Profile, ProfileStatus
from app.schemas import (
    CurrentJobResponse,
    JobActionResponse,
    JobListResponse,
    JobResponse,
    JobStartRequest,
    JobUploadResponse,
    ProfileListResponse,
    ProfileResponse,
)
from app.services.spreadsheet import SpreadsheetParser, validate_spreadsheet
from app.worker.queue import STOPPED_MESSAGE, JobParams

settings = get_settings()
logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["Jobs"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_job_response(job: Job) -> JobResponse:
    return JobResponse(
        job_id=job.id,
        file_name=job.file_name,
        status=job.status,
        total_profiles=job.total_profiles,
        processed_profiles=job.processed_profiles,
        successful_profiles=job.successful_profiles,
        failed_profiles=job.failed_profiles,
        retrying_profiles=job.retrying_profiles,
        batch_size=job.batch_size,
        progress=job.progress_percent,
        processing_rate=job.processing_rate,
        estimated_completion=_aware(job.estimated_completion),
        error_breakdown=job.error_breakdown or {},
        error_message=job.error_message,
        has_results=bool(job.result_path),
        started_at=_aware(job.started_at),
        completed_at=_aware(job.completed_at),
        created_at=_aware(job.created_at),
    )


def to_profile_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        profile_id=profile.id,
        profile_url=profile.profile_url,
        row_index=profile.row_index,
        row_data=profile.row_data,
        status=profile.status,
        profile_data=profile.profile_data,
        error_type=profile.error_type,
        error_message=profile.error_message,
        retry_count=profile.retry_count,
        last_attempt=_aware(profile.last_attempt),
        extracted_at=_aware(profile.extracted_at),
    )


@router.post(
    "/upload",
    response_model=JobUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_spreadsheet(
    user_id: CurrentUserId,
    storage: StorageDep,
    file: Annotated[UploadFile, File(description="Spreadsheet of profile URLs")],
) -> JobUploadResponse:
    """
    Upload a spreadsheet and create a pending job for it.

    Every cell is scanned for profile URLs; the job is created only if at
    least one is found.
    """
    file_name = FilePath(file.filename or "upload.xlsx").name
    if FilePath(file_name).suffix.lower() not in settings.allowed_extensions:
        raise InvalidUploadError(
            f"Unsupported file type; allowed: {', '.join(settings.allowed_extensions)}",
            file_name,
        )

    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise InvalidUploadError(
            f"File size exceeds {settings.max_upload_size_mb}MB limit", file_name
        )

    path = settings.uploads_path / f"{uuid4().hex}_{file_name}"
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(None, path.write_bytes, content)

    try:
        validate_spreadsheet(path)
        rows = await SpreadsheetParser().parse_rows(path)
        if not rows:
            raise NoProfilesFoundError(file_name)
    except Exception:
        path.unlink(missing_ok=True)
        raise

    job = await storage.create_job(
        user_id=user_id,
        file_name=file_name,
        file_path=str(path),
        total_profiles=len(rows),
        batch_size=settings.default_batch_size,
    )

    return JobUploadResponse(
        job_id=job.id,
        file_name=file_name,
        total_profiles=job.total_profiles,
        status=job.status,
        message=f"Found {job.total_profiles} profile URLs",
    )


@router.get("", response_model=JobListResponse)
async def list_jobs(
    user_id: CurrentUserId,
    storage: StorageDep,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    search: Annotated[str | None, Query(description="Filter by file name")] = None,
) -> JobListResponse:
    """List the user's jobs, newest first."""
    jobs = await storage.get_jobs_by_user(user_id)
    if search:
        needle = search.lower()
        jobs = [job for job in jobs if needle in job.file_name.lower()]

    start = (page - 1) * page_size
    return JobListResponse(
        jobs=[to_job_response(job) for job in jobs[start : start + page_size]],
        total=len(jobs),
        page=page,
        page_size=page_size,
    )


@router.get("/recent", response_model=list[JobResponse])
async def recent_jobs(
    user_id: CurrentUserId,
    storage: StorageDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 5,
) -> list[JobResponse]:
    """The user's most recent jobs."""
    jobs = await storage.get_jobs_by_user(user_id)
    return [to_job_response(job) for job in jobs[:limit]]


@router.get("/current", response_model=CurrentJobResponse)
async def current_job(user_id: CurrentUserId, storage: StorageDep) -> CurrentJobResponse:
    """
    The user's processing or paused job, if any.

    Intended for polling; includes remaining profiles and the ETA in minutes.
    """
    job = await storage.get_active_job(user_id)
    if job is None:
        return CurrentJobResponse()

    eta_minutes = None
    estimated = _aware(job.estimated_completion)
    if estimated is not None:
        seconds = (estimated - datetime.now(timezone.utc)).total_seconds()
        eta_minutes = max(0, math.ceil(seconds / 60))

    return CurrentJobResponse(
        job=to_job_response(job),
        remaining_profiles=max(0, job.total_profiles - job.processed_profiles),
        eta_minutes=eta_minutes,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job_status(job: OwnedJob) -> JobResponse:
    """Get the status and counters of a job."""
    return to_job_response(job)


@router.get("/{job_id}/profiles", response_model=ProfileListResponse)
async def list_job_profiles(
    job: OwnedJob,
    storage: StorageDep,
    profile_status: Annotated[ProfileStatus | None, Query(alias="status")] = None,
) -> ProfileListResponse:
    """List a job's profiles in processing order."""
    profiles = await storage.get_profiles_by_job(
        job.id, [profile_status] if profile_status else None
    )
    return ProfileListResponse(
        job_id=job.id,
        profiles=[to_profile_response(p) for p in profiles],
        total=len(profiles),
    )


@router.get("/{job_id}/download")
async def download_results(job: OwnedJob) -> FileResponse:
    """Download the results workbook of a completed job."""
    if not job.result_path or not FilePath(job.result_path).exists():
        raise ResultsNotFoundError(job.id)

    return FileResponse(
        job.result_path,
        media_type=XLSX_MEDIA_TYPE,
        filename=f"job_{job.id}_results.xlsx",
    )


@router.post("/{job_id}/start", response_model=JobActionResponse)
async def start_job(
    job: OwnedJob,
    storage: StorageDep,
    queue: JobQueueDep,
    body: JobStartRequest | None = None,
) -> JobActionResponse:
    """
    Queue a pending job for processing.

    The job moves to processing once the queue reaches it.
    """
    if job.status != JobStatus.PENDING.value:
        raise InvalidJobTransitionError(job.id, job.status, JobStatus.PROCESSING.value)

    batch_size = settings.clamp_batch_size(body.batch_size if body else None)
    job = await storage.update_job_status(
        job.id,
        None,
        batch_size=batch_size,
        queued_at=datetime.now(timezone.utc),
    )
    await queue.add_job(JobParams.from_job(job))

    return JobActionResponse(
        job_id=job.id,
        status=job.status,
        message=f"Job queued with batch size {batch_size}",
    )


@router.post("/{job_id}/pause", response_model=JobActionResponse)
async def pause_job(job: OwnedJob, queue: JobQueueDep) -> JobActionResponse:
    """Pause a processing job once its current batch finishes."""
    if await queue.pause_job(job.id):
        return JobActionResponse(
            job_id=job.id,
            status=JobStatus.PAUSED.value,
            message="Job will pause after the current batch",
        )

    return JobActionResponse(
        job_id=job.id,
        status=job.status,
        message="Job is not processing; nothing to pause",
    )


@router.post("/{job_id}/resume", response_model=JobActionResponse)
async def resume_job(job: OwnedJob, queue: JobQueueDep) -> JobActionResponse:
    """
    Resume a paused job.

    A paused job the queue no longer holds (after a restart) is submitted
    again and continues from its pending profiles.
    """
    resumed = await queue.resume_job(job.id)
    if not resumed:
        if job.status != JobStatus.PAUSED.value:
            raise InvalidJobTransitionError(job.id, job.status, JobStatus.PROCESSING.value)
        await queue.add_job(JobParams.from_job(job))

    return JobActionResponse(
        job_id=job.id,
        status=JobStatus.PAUSED.value,
        message="Job queued to resume",
    )


@router.post("/{job_id}/stop", response_model=JobActionResponse)
@router.post("/{job_id}/cancel", response_model=JobActionResponse, include_in_schema=False)
async def stop_job(
    job: OwnedJob,
    storage: StorageDep,
    queue: JobQueueDep,
) -> JobActionResponse:
    """Stop a job. Stopped jobs end as failed and cannot be resumed."""
    if not await queue.stop_job(job.id):
        if job.is_terminal:
            raise InvalidJobTransitionError(job.id, job.status, JobStatus.FAILED.value)
        await storage.fail_job(job.id, STOPPED_MESSAGE)

    await logger.ainfo("job_stop_requested", job_id=job.id)
    return JobActionResponse(
        job_id=job.id,
        status=JobStatus.FAILED.value,
        message="Job stopped",
    )
