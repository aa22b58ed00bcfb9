"""Tests for the retry executor."""

import time

import pytest

from app.core.classification import ErrorType
from app.core.errors import ProfileExtractionError
from app.core.retry import execute_with_retry


class Flaky:
    """Fails with ``message`` for the first ``failures`` calls."""

    def __init__(self, failures: int, message: str = "rate limit exceeded", result="ok"):
        self.failures = failures
        self.message = message
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(self.message)
        return self.result


async def test_returns_first_success():
    work = Flaky(failures=0)
    assert await execute_with_retry(work, max_retries=3, initial_delay=0.001) == "ok"
    assert work.calls == 1


async def test_backoff_doubles_between_attempts():
    work = Flaky(failures=2)
    initial_delay = 0.05

    started = time.monotonic()
    result = await execute_with_retry(work, max_retries=3, initial_delay=initial_delay)
    elapsed = time.monotonic() - started

    assert result == "ok"
    assert work.calls == 3
    # allow for timer resolution
    assert elapsed >= initial_delay + 2 * initial_delay - 0.002


async def test_not_found_is_attempted_once():
    work = Flaky(failures=10, message="HTTP 404")

    with pytest.raises(ProfileExtractionError) as exc_info:
        await execute_with_retry(work, max_retries=3, initial_delay=0.001)

    assert work.calls == 1
    assert exc_info.value.error_type is ErrorType.NOT_FOUND
    assert exc_info.value.attempts == 1


async def test_access_restricted_is_attempted_once():
    work = Flaky(failures=10, message="access restricted (HTTP 403)")

    with pytest.raises(ProfileExtractionError) as exc_info:
        await execute_with_retry(work, max_retries=3, initial_delay=0.001)

    assert work.calls == 1
    assert exc_info.value.error_type is ErrorType.ACCESS_RESTRICTED


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("rate limit exceeded", ErrorType.RATE_LIMIT),
        ("captcha challenge required", ErrorType.CAPTCHA),
        ("socket closed", ErrorType.UNKNOWN),
    ],
)
async def test_retryable_kinds_exhaust_attempts(message, expected):
    work = Flaky(failures=10, message=message)

    with pytest.raises(ProfileExtractionError) as exc_info:
        await execute_with_retry(
            work, max_retries=3, initial_delay=0.001, profile_url="https://x/in/a"
        )

    assert work.calls == 3
    assert exc_info.value.error_type is expected
    assert exc_info.value.attempts == 3
    assert exc_info.value.message == message
    assert exc_info.value.profile_url == "https://x/in/a"


async def test_classified_errors_pass_through():
    async def work():
        raise ProfileExtractionError(ErrorType.NOT_FOUND, "bad url")

    with pytest.raises(ProfileExtractionError) as exc_info:
        await execute_with_retry(work, max_retries=3, initial_delay=0.001)

    assert exc_info.value.error_type is ErrorType.NOT_FOUND
    assert exc_info.value.attempts == 1


async def test_zero_retries_still_attempts_once():
    work = Flaky(failures=1)

    with pytest.raises(ProfileExtractionError):
        await execute_with_retry(work, max_retries=0, initial_delay=0.001)

    assert work.calls == 1
