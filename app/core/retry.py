"""
Retry Executor - Runs one extraction with classified, exponential-backoff retries.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.core.classification import classify_error
from app.core.errors import ProfileExtractionError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ProfileExtractionError) and error.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "extraction_retry_scheduled",
        attempt=retry_state.attempt_number,
        error_type=getattr(error, "error_type", None),
        error=str(error),
        delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


async def _attempt(
    unit_of_work: Callable[[], Awaitable[T]],
    profile_url: str | None,
) -> T:
    """Run the unit of work once, converting any failure into a classified error."""
    try:
        return await unit_of_work()
    except ProfileExtractionError:
        raise
    except Exception as e:
        raise ProfileExtractionError(classify_error(e), str(e), profile_url) from e


async def execute_with_retry(
    unit_of_work: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    profile_url: str | None = None,
) -> T:
    """
    Execute a unit of work with bounded retries.

    Args:
        unit_of_work: Zero-argument coroutine function to call
        max_retries: Total number of attempts allowed
        initial_delay: Seconds before the second attempt, doubled for each later one
        profile_url: URL attached to raised errors for context

    Returns:
        The unit of work's result

    Raises:
        ProfileExtractionError: Immediately for not_found/access_restricted,
            otherwise the last classified error once attempts are exhausted.
            Its ``attempts`` holds how many times the unit of work ran.
    """
    attempts = 0
    retrying = AsyncRetrying(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(max(max_retries, 1)),
        wait=wait_exponential(multiplier=initial_delay, exp_base=2),
        before_sleep=_log_retry,
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                attempts += 1
                result = await _attempt(unit_of_work, profile_url)
    except ProfileExtractionError as e:
        e.attempts = attempts
        raise

    return result
