"""
Users Service - Job owners and their provider credentials.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User

logger = structlog.get_logger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    """Get user by ID, returns None if not found."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def ensure_user(
    db: AsyncSession,
    user_id: int,
    username: str,
    email: str,
) -> User:
    """Get the user with the given ID, creating it if missing."""
    user = await get_user(db, user_id)
    if user is not None:
        return user

    user = User(id=user_id, username=username, email=email)
    db.add(user)
    await db.commit()
    await db.refresh(user)

    await logger.ainfo("user_created", user_id=user.id, username=username)
    return user
