"""
Request Logging Middleware - Structured request/response logging.
"""

import time
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

# Polled by load balancers and the dashboard; logged at debug only
QUIET_PATHS = frozenset({"/health", "/ready", "/jobs/current"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging."""

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        start_time = time.perf_counter()
        quiet = request.url.path in QUIET_PATHS
        log_request = logger.adebug if quiet else logger.ainfo

        await log_request(
            "request_started",
            method=request.method,
            path=request.url.path,
            query=str(request.query_params),
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            await logger.aerror(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        if response.status_code >= 500:
            log_response = logger.aerror
        elif response.status_code >= 400:
            log_response = logger.awarning
        else:
            log_response = log_request

        await log_response(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response
