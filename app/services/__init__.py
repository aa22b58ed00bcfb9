"""Services package - Business logic layer."""

from app.services.jobs import (
    create_job,
    fail_job,
    get_active_job,
    get_error_breakdown,
    get_job,
    get_job_stats,
    get_jobs_by_status,
    get_jobs_for_user,
    update_job_status,
)
from app.services.profiles import (
    create_profile,
    get_failed_profiles,
    get_profile,
    get_profiles_by_job,
    get_profiles_for_user,
    update_profile_status,
)
from app.services.users import ensure_user, get_user

__all__ = [
    # Jobs
    "create_job",
    "get_job",
    "update_job_status",
    "fail_job",
    "get_jobs_for_user",
    "get_active_job",
    "get_jobs_by_status",
    "get_job_stats",
    "get_error_breakdown",
    # Profiles
    "create_profile",
    "get_profile",
    "get_profiles_by_job",
    "update_profile_status",
    "get_failed_profiles",
    "get_profiles_for_user",
    # Users
    "get_user",
    "ensure_user",
]
