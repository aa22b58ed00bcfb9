"""
Authentication Middleware - API key validation and current-user resolution.
"""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.errors import UnauthorizedError
from app.core.security import verify_api_key
from app.database import get_db
from app.models import APIKey

settings = get_settings()

# API Key header security scheme
api_key_header = APIKeyHeader(
    name=settings.api_key_header,
    auto_error=False,
)


async def validate_api_key(
    api_key: Annotated[str | None, Security(api_key_header)],
    db: AsyncSession = Depends(get_db),
) -> APIKey | None:
    """
    Validate API key from request header.

    In development mode, no API key is required.
    In production, valid API key is mandatory.
    """
    # Allow no auth in development
    if settings.app_env == "development" and not api_key:
        return None

    if not api_key:
        raise UnauthorizedError("API key required")

    # Look up API key by prefix
    result = await db.execute(
        select(APIKey).where(APIKey.key_prefix == api_key[:8])
    )
    db_key = result.scalar_one_or_none()

    if not db_key or not verify_api_key(api_key, db_key.key_hash):
        raise UnauthorizedError("Invalid API key")

    if not db_key.is_valid:
        if db_key.is_expired:
            raise UnauthorizedError("API key has expired")
        raise UnauthorizedError("API key is disabled")

    db_key.total_requests += 1
    db_key.last_used_at = datetime.now(timezone.utc)

    return db_key


async def get_current_user_id(
    api_key: Annotated[APIKey | None, Depends(validate_api_key)],
) -> int:
    """
    Resolve the user a request acts for.

    The key's owner when a key was sent; the development user otherwise.
    """
    if api_key is not None:
        return api_key.user_id

    if settings.app_env != "development":
        raise UnauthorizedError("API key required")
    return settings.dev_user_id


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
