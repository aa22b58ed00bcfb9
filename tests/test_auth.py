"""Tests for API key validation and request rate limiting."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import UnauthorizedError
from app.core.security import generate_api_key, hash_api_key
from app.middleware.auth import get_current_user_id, validate_api_key
from app.middleware.rate_limit import RateLimiter
from app.models import APIKey


async def issue_key(storage, **fields) -> str:
    raw, prefix = generate_api_key()
    async with storage.session() as db:
        db.add(
            APIKey(
                user_id=1,
                name="ci",
                key_prefix=prefix,
                key_hash=hash_api_key(raw),
                **fields,
            )
        )
    return raw


async def test_valid_key_resolves_owner(storage):
    raw = await issue_key(storage)

    async with storage.session() as db:
        key = await validate_api_key(raw, db)

    assert key.total_requests == 1
    assert key.last_used_at is not None
    assert await get_current_user_id(key) == 1


async def test_wrong_key_is_rejected(storage):
    raw = await issue_key(storage)
    forged = raw[:8] + "x" * (len(raw) - 8)

    async with storage.session() as db:
        with pytest.raises(UnauthorizedError, match="Invalid API key"):
            await validate_api_key(forged, db)


async def test_expired_key_is_rejected(storage):
    raw = await issue_key(
        storage, expires_at=datetime.now(timezone.utc) - timedelta(days=1)
    )

    async with storage.session() as db:
        with pytest.raises(UnauthorizedError, match="expired"):
            await validate_api_key(raw, db)


async def test_development_falls_back_to_dev_user(storage):
    async with storage.session() as db:
        assert await validate_api_key(None, db) is None
    assert await get_current_user_id(None) == 1


def test_rate_limiter_window():
    limiter = RateLimiter(requests_per_minute=2, window_size=60.0)

    assert limiter.is_allowed("ip:a", now=0.0) == (True, 0)
    assert limiter.is_allowed("ip:a", now=10.0) == (True, 0)
    allowed, retry_after = limiter.is_allowed("ip:a", now=20.0)
    assert not allowed
    assert retry_after == 41

    # other clients are counted separately
    assert limiter.is_allowed("ip:b", now=20.0)[0]
    # the oldest request has left the window
    assert limiter.is_allowed("ip:a", now=61.0)[0]
