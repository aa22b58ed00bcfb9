"""Schemas package - Pydantic API models."""

from app.schemas.job import (
    CurrentJobResponse,
    ErrorBreakdownResponse,
    ExportCountsResponse,
    JobActionResponse,
    JobListResponse,
    JobResponse,
    JobStartRequest,
    JobUploadResponse,
    ProfileListResponse,
    ProfileResponse,
    StatsOverviewResponse,
)

__all__ = [
    # Jobs
    "JobUploadResponse",
    "JobStartRequest",
    "JobActionResponse",
    "JobResponse",
    "JobListResponse",
    "CurrentJobResponse",
    # Profiles
    "ProfileResponse",
    "ProfileListResponse",
    # Stats
    "StatsOverviewResponse",
    "ErrorBreakdownResponse",
    "ExportCountsResponse",
]
