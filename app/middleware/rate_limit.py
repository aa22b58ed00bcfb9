"""
Rate Limiting Middleware - Request rate limiting per API key or client.
"""

import time
from collections import defaultdict
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_settings
from app.core.errors import RateLimitedError

settings = get_settings()

EXEMPT_PATHS = frozenset({"/health", "/ready", "/docs", "/openapi.json", "/jobs/current"})


class RateLimiter:
    """In-memory sliding-window rate limiter."""

    def __init__(self, requests_per_minute: int = 100, window_size: float = 60.0):
        self.requests_per_minute = requests_per_minute
        self.window_size = window_size
        self.requests: dict[str, list[float]] = defaultdict(list)

    def is_allowed(self, key: str, now: float | None = None) -> tuple[bool, int]:
        """
        Check if request is allowed for the given key.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        now = time.time() if now is None else now
        window_start = now - self.window_size

        recent = [ts for ts in self.requests[key] if ts > window_start]
        self.requests[key] = recent

        if len(recent) >= self.requests_per_minute:
            retry_after = int(min(recent) + self.window_size - now) + 1
            return False, retry_after

        recent.append(now)
        return True, 0


rate_limiter = RateLimiter(settings.rate_limit_per_minute)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware for rate limiting requests.

    Status polling and health checks are exempt. The error response is built
    here since exceptions raised in middleware bypass the app's handlers.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        api_key = request.headers.get(settings.api_key_header, "")
        if api_key:
            key = f"api:{api_key[:8]}"
        else:
            key = f"ip:{request.client.host if request.client else 'unknown'}"

        allowed, retry_after = rate_limiter.is_allowed(key)
        if not allowed:
            error = RateLimitedError(retry_after=retry_after)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response().model_dump(mode="json", exclude_none=True),
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
