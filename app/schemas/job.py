"""
Job Schemas - Pydantic models for the job API.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class JobUploadResponse(BaseModel):
    """Response after a spreadsheet upload is accepted."""

    job_id: int = Field(..., description="Created job identifier")
    file_name: str
    total_profiles: int = Field(..., description="Profile URLs found in the file")
    status: str
    message: str


class JobStartRequest(BaseModel):
    """Request to start (queue) a job."""

    batch_size: int | None = Field(
        default=None,
        description="Profiles per batch; clamped to the configured bounds",
        examples=[50],
    )


class JobActionResponse(BaseModel):
    """Result of a start/pause/resume/stop request."""

    job_id: int
    status: str
    message: str


class JobResponse(BaseModel):
    """Job status and counters."""

    job_id: int = Field(..., description="Unique job identifier")
    file_name: str
    status: str = Field(
        ..., description="Job status (pending, processing, paused, completed, failed)"
    )
    total_profiles: int
    processed_profiles: int
    successful_profiles: int
    failed_profiles: int
    retrying_profiles: int
    batch_size: int
    progress: int = Field(..., ge=0, le=100, description="Progress percentage")
    processing_rate: str | None = None
    estimated_completion: datetime | None = None
    error_breakdown: dict[str, int] = {}
    error_message: str | None = None
    has_results: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime


class JobListResponse(BaseModel):
    """Page of a user's jobs, newest first."""

    jobs: list[JobResponse]
    total: int
    page: int
    page_size: int


class CurrentJobResponse(BaseModel):
    """The user's active job with derived progress figures."""

    job: JobResponse | None = None
    remaining_profiles: int = 0
    eta_minutes: int | None = None


class ProfileResponse(BaseModel):
    """One profile of a job."""

    profile_id: int
    profile_url: str
    row_index: int | None = None
    row_data: dict[str, str] | None = None
    status: str
    profile_data: Any | None = None
    error_type: str | None = None
    error_message: str | None = None
    retry_count: int = 0
    last_attempt: datetime | None = None
    extracted_at: datetime | None = None


class ProfileListResponse(BaseModel):
    """Profiles of a job in processing order."""

    job_id: int
    profiles: list[ProfileResponse]
    total: int


class StatsOverviewResponse(BaseModel):
    """Profile totals across all of a user's jobs."""

    total_profiles: int
    successful_profiles: int
    failed_profiles: int
    success_rate: str


class ErrorBreakdownResponse(BaseModel):
    """Failed profiles by error type across a user's jobs."""

    captcha_blocked: int
    profile_not_found: int
    access_restricted: int
    rate_limited: int
    unknown: int


class ExportCountsResponse(BaseModel):
    """How many rows each export type would contain."""

    all: int
    successful: int
    failed: int
