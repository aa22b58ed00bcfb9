"""
Profile Batch - Standardized Error Handling

This module provides canonical error codes, exception classes, and FastAPI
exception handlers for consistent error responses across the API.
"""

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.core.classification import ErrorType


class ErrorCode(str, Enum):
    """Canonical error codes."""

    # Job errors
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    INVALID_JOB_TRANSITION = "INVALID_JOB_TRANSITION"
    RESULTS_NOT_FOUND = "RESULTS_NOT_FOUND"

    # Upload errors
    INVALID_UPLOAD = "INVALID_UPLOAD"
    NO_PROFILES_FOUND = "NO_PROFILES_FOUND"

    # Extraction errors
    EXTRACTION_ERROR = "EXTRACTION_ERROR"
    PROVIDER_AUTH_REQUIRED = "PROVIDER_AUTH_REQUIRED"

    # Auth errors
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"

    # General errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standardized error response format."""

    error_code: ErrorCode
    message: str
    details: dict[str, Any] = {}
    retry_after: int | None = None


class AppException(Exception):
    """Base application exception with structured error info."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: dict[str, Any] | None = None,
        retry_after: int | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.retry_after = retry_after
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response model."""
        return ErrorResponse(
            error_code=self.error_code,
            message=self.message,
            details=self.details,
            retry_after=self.retry_after,
        )


# Specific exception classes for common errors
class JobNotFoundError(AppException):
    """Raised when job is not found."""

    def __init__(self, job_id: int) -> None:
        super().__init__(
            error_code=ErrorCode.JOB_NOT_FOUND,
            message=f"Job not found: {job_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"job_id": job_id},
        )


class InvalidJobTransitionError(AppException):
    """Raised when a job status change would break the lifecycle."""

    def __init__(self, job_id: int, current: str, target: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_JOB_TRANSITION,
            message=f"Invalid transition from {current} to {target}",
            status_code=status.HTTP_409_CONFLICT,
            details={"job_id": job_id, "current": current, "target": target},
        )


class ResultsNotFoundError(AppException):
    """Raised when a job has no result workbook yet."""

    def __init__(self, job_id: int) -> None:
        super().__init__(
            error_code=ErrorCode.RESULTS_NOT_FOUND,
            message="Results not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"job_id": job_id},
        )


class InvalidUploadError(AppException):
    """Raised when an uploaded spreadsheet cannot be used."""

    def __init__(self, reason: str, file_name: str | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_UPLOAD,
            message=reason,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"file_name": file_name} if file_name else {},
        )


class NoProfilesFoundError(AppException):
    """Raised when a spreadsheet holds no profile URLs."""

    def __init__(self, file_name: str | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.NO_PROFILES_FOUND,
            message="No profile URLs found in the uploaded file",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"file_name": file_name} if file_name else {},
        )


class ProviderAuthRequiredError(AppException):
    """Raised when the job owner has no provider credential."""

    def __init__(self, user_id: int) -> None:
        super().__init__(
            error_code=ErrorCode.PROVIDER_AUTH_REQUIRED,
            message="Provider authentication required",
            status_code=status.HTTP_401_UNAUTHORIZED,
            details={"user_id": user_id},
        )


class ProfileExtractionError(AppException):
    """A classified failure to extract one profile."""

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        profile_url: str | None = None,
        attempts: int = 1,
    ) -> None:
        self.error_type = error_type
        self.profile_url = profile_url
        self.attempts = attempts
        super().__init__(
            error_code=ErrorCode.EXTRACTION_ERROR,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"error_type": error_type.value, "profile_url": profile_url},
        )

    @property
    def retryable(self) -> bool:
        return self.error_type.retryable


class UnauthorizedError(AppException):
    """Raised when authentication fails."""

    def __init__(self, reason: str = "Invalid or missing credentials") -> None:
        super().__init__(
            error_code=ErrorCode.UNAUTHORIZED,
            message=reason,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class RateLimitedError(AppException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60) -> None:
        super().__init__(
            error_code=ErrorCode.RATE_LIMITED,
            message="Rate limit exceeded. Please retry later.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            retry_after=retry_after,
        )


# FastAPI exception handlers
async def app_exception_handler(
    request: Request, exc: AppException
) -> JSONResponse:
    """Handle application exceptions."""
    response = exc.to_response()
    headers = {}
    if response.retry_after:
        headers["Retry-After"] = str(response.retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def http_exception_handler(
    request: Request, exc: HTTPException
) -> JSONResponse:
    """Handle standard HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error_code=ErrorCode.INTERNAL_ERROR,
            message=str(exc.detail),
        ).model_dump(mode="json", exclude_none=True),
    )


async def general_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handle unhandled exceptions."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error_code=ErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred",
        ).model_dump(mode="json", exclude_none=True),
    )
