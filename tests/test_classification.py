"""Tests for the error classification table."""

import pytest

from app.core.classification import NON_RETRYABLE, ErrorType, classify_error, classify_message
from app.core.errors import ProfileExtractionError


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Captcha required", ErrorType.CAPTCHA),
        ("security CHALLENGE presented", ErrorType.CAPTCHA),
        ("profile not found", ErrorType.NOT_FOUND),
        ("HTTP 404", ErrorType.NOT_FOUND),
        ("access restricted", ErrorType.ACCESS_RESTRICTED),
        ("got 403 from upstream", ErrorType.ACCESS_RESTRICTED),
        ("Unauthorized", ErrorType.ACCESS_RESTRICTED),
        ("rate limit exceeded", ErrorType.RATE_LIMIT),
        ("status 429", ErrorType.RATE_LIMIT),
        ("connection reset by peer", ErrorType.UNKNOWN),
        ("", ErrorType.UNKNOWN),
    ],
)
def test_classify_message(message, expected):
    assert classify_message(message) is expected


def test_first_match_wins():
    # captcha is checked before rate limit
    assert classify_message("rate limit hit, captcha shown") is ErrorType.CAPTCHA
    # not found is checked before access restricted
    assert classify_message("404 or 403, who knows") is ErrorType.NOT_FOUND


def test_underscored_tokens_do_not_match():
    assert classify_message("rate_limit_exceeded") is ErrorType.UNKNOWN


def test_retryable_kinds():
    assert NON_RETRYABLE == {ErrorType.NOT_FOUND, ErrorType.ACCESS_RESTRICTED}
    for kind in ErrorType:
        assert kind.retryable is (kind not in NON_RETRYABLE)


def test_classify_error_keeps_existing_type():
    error = ProfileExtractionError(ErrorType.CAPTCHA, "profile not found")
    assert classify_error(error) is ErrorType.CAPTCHA


def test_classify_error_uses_message():
    assert classify_error(RuntimeError("Too many requests (429)")) is ErrorType.RATE_LIMIT
