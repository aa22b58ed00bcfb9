"""
Error Classification - Maps provider failure messages to a closed set of kinds.

The substring table below is the single source of truth for how a failure
is classified. Matching is case-insensitive and the first matching row wins,
so "captcha" outranks "not found" when a message contains both.
"""

import enum


class ErrorType(str, enum.Enum):
    """Closed set of extraction failure kinds."""

    CAPTCHA = "captcha"
    NOT_FOUND = "not_found"
    ACCESS_RESTRICTED = "access_restricted"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Whether another attempt could succeed."""
        return self not in NON_RETRYABLE


# Properties of the target itself, so retrying cannot help
NON_RETRYABLE: frozenset[ErrorType] = frozenset(
    {ErrorType.NOT_FOUND, ErrorType.ACCESS_RESTRICTED}
)

# Ordered (kind, tokens) table
CLASSIFICATION_TABLE: tuple[tuple[ErrorType, tuple[str, ...]], ...] = (
    (ErrorType.CAPTCHA, ("captcha", "challenge")),
    (ErrorType.NOT_FOUND, ("not found", "404")),
    (ErrorType.ACCESS_RESTRICTED, ("restricted", "403", "unauthorized")),
    (ErrorType.RATE_LIMIT, ("rate limit", "429")),
)


def classify_message(message: str | None) -> ErrorType:
    """Classify a failure message into an ErrorType."""
    if not message:
        return ErrorType.UNKNOWN

    lowered = message.lower()
    for error_type, tokens in CLASSIFICATION_TABLE:
        if any(token in lowered for token in tokens):
            return error_type

    return ErrorType.UNKNOWN


def classify_error(error: BaseException) -> ErrorType:
    """
    Classify an exception raised by the profile provider.

    Exceptions that already carry an ErrorType (see ProfileExtractionError)
    keep it; everything else is classified from its message text.
    """
    error_type = getattr(error, "error_type", None)
    if isinstance(error_type, ErrorType):
        return error_type
    return classify_message(str(error))
