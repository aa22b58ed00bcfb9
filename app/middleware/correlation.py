"""
Correlation ID Middleware - Request tracing across async operations.

The ID is also bound into structlog's context variables, so every log line
emitted while serving the request (including job-control calls into the
queue) carries it.
"""

import contextvars
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

correlation_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

CORRELATION_ID_HEADER = "X-Correlation-ID"


def get_correlation_id() -> str:
    """Get the current correlation ID."""
    return correlation_id_ctx.get()


def new_correlation_id() -> str:
    return uuid4().hex[:16]


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add a correlation ID to requests and their logs."""

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or new_correlation_id()

        token = correlation_id_ctx.set(correlation_id)
        try:
            with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
                response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            correlation_id_ctx.reset(token)
