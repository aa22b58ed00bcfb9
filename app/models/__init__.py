"""Models package - SQLAlchemy data models."""

from app.models.api_key import APIKey
from app.models.job import VALID_TRANSITIONS, Job, JobStatus
from app.models.profile import SETTLED_STATUSES, Profile, ProfileStatus
from app.models.user import User

__all__ = [
    # Job
    "Job",
    "JobStatus",
    "VALID_TRANSITIONS",
    # Profile
    "Profile",
    "ProfileStatus",
    "SETTLED_STATUSES",
    # Auth
    "User",
    "APIKey",
]
