"""Core utilities package."""

from app.core.classification import (
    CLASSIFICATION_TABLE,
    NON_RETRYABLE,
    ErrorType,
    classify_error,
    classify_message,
)
from app.core.errors import (
    AppException,
    ErrorCode,
    ErrorResponse,
    InvalidJobTransitionError,
    InvalidUploadError,
    JobNotFoundError,
    NoProfilesFoundError,
    ProfileExtractionError,
    ProviderAuthRequiredError,
    RateLimitedError,
    ResultsNotFoundError,
    UnauthorizedError,
)
from app.core.progress import ProgressSnapshot, compute_progress, format_rate
from app.core.retry import execute_with_retry

__all__ = [
    # Classification
    "ErrorType",
    "CLASSIFICATION_TABLE",
    "NON_RETRYABLE",
    "classify_error",
    "classify_message",
    # Errors
    "AppException",
    "ErrorCode",
    "ErrorResponse",
    "JobNotFoundError",
    "InvalidJobTransitionError",
    "ResultsNotFoundError",
    "InvalidUploadError",
    "NoProfilesFoundError",
    "ProviderAuthRequiredError",
    "ProfileExtractionError",
    "UnauthorizedError",
    "RateLimitedError",
    # Progress
    "ProgressSnapshot",
    "compute_progress",
    "format_rate",
    # Retry
    "execute_with_retry",
]
