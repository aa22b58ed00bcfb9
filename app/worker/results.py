"""
Result Compiler - Turns per-profile outcomes into spreadsheet artifacts.
"""

import enum
import json
from pathlib import Path
from typing import Any

import structlog

from app.config import Settings, get_settings
from app.models import Profile, ProfileStatus
from app.services.spreadsheet import SpreadsheetWriter
from app.services.storage import Storage

logger = structlog.get_logger(__name__)

RESULT_COLUMNS = [
    "Row #",
    "Profile URL",
    "Status",
    "First Name",
    "Last Name",
    "Headline",
    "Location",
    "Industry",
    "Current Position",
    "Current Company",
    "Summary",
    "Skills",
    "Years of Experience",
    "Latest Position",
    "Latest Company",
    "Highest Education",
    "School",
    "Field of Study",
    "Error Type",
    "Error Message",
    "Retry Count",
    "Source Data",
]

EXPORT_COLUMNS = [
    "Job ID",
    "Profile URL",
    "Status",
    "First Name",
    "Last Name",
    "Headline",
    "Location",
    "Industry",
    "Error Type",
    "Error Message",
    "Retry Count",
    "Last Attempt",
    "Extracted At",
]


class ExportType(str, enum.Enum):
    """Which profiles an export includes."""

    ALL = "all"
    SUCCESSFUL = "successful"
    FAILED = "failed"

    @property
    def profile_status(self) -> ProfileStatus | None:
        return {
            ExportType.SUCCESSFUL: ProfileStatus.SUCCESS,
            ExportType.FAILED: ProfileStatus.FAILED,
        }.get(self)


def decode_payload(profile: Profile) -> dict[str, Any] | None:
    """
    Get a profile's extracted payload as a dict.

    Payloads stored as JSON text are parsed. Anything that cannot be decoded
    into an object is treated as missing.
    """
    raw = profile.profile_data
    if raw is None or isinstance(raw, dict):
        return raw

    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError as e:
            logger.warning(
                "profile_payload_undecodable",
                profile_id=profile.id,
                job_id=profile.job_id,
                error=str(e),
            )
            return None
        if isinstance(decoded, dict):
            return decoded

    logger.warning(
        "profile_payload_unexpected_type",
        profile_id=profile.id,
        job_id=profile.job_id,
        payload_type=type(raw).__name__,
    )
    return None


def _experience(payload: dict[str, Any]) -> list[dict[str, Any]]:
    return payload.get("experience") or payload.get("positions") or []


def build_result_row(row_number: int, profile: Profile) -> dict[str, Any]:
    """One row of the job results sheet."""
    row: dict[str, Any] = {
        "Row #": row_number,
        "Profile URL": profile.profile_url,
        "Status": profile.status,
    }

    payload = decode_payload(profile)
    if profile.status == ProfileStatus.SUCCESS.value and payload:
        row.update(
            {
                "First Name": payload.get("first_name", ""),
                "Last Name": payload.get("last_name", ""),
                "Headline": payload.get("headline", ""),
                "Location": payload.get("location", ""),
                "Industry": payload.get("industry", ""),
                "Current Position": payload.get("current_position", ""),
                "Current Company": payload.get("current_company", ""),
                "Summary": payload.get("summary", ""),
            }
        )

        skills = payload.get("skills")
        if isinstance(skills, list):
            row["Skills"] = ", ".join(str(skill) for skill in skills)

        experience = _experience(payload)
        if experience:
            row["Years of Experience"] = len(experience)
            row["Latest Position"] = experience[0].get("title", "")
            row["Latest Company"] = experience[0].get("company", "")

        education = payload.get("education") or []
        if education:
            row["Highest Education"] = education[0].get("degree", "")
            row["School"] = education[0].get("school", "")
            row["Field of Study"] = education[0].get("field_of_study", "")

    elif profile.status in (ProfileStatus.FAILED.value, ProfileStatus.RETRYING.value):
        row["Error Type"] = profile.error_type or "unknown"
        row["Error Message"] = profile.error_message or "Failed to extract profile"
        row["Retry Count"] = profile.retry_count or 0

    if profile.row_data:
        row["Source Data"] = "; ".join(
            f"{key}: {value}" for key, value in profile.row_data.items()
        )

    return row


def build_export_row(profile: Profile) -> dict[str, Any]:
    """One row of a cross-job export."""
    payload = decode_payload(profile) or {}
    return {
        "Job ID": profile.job_id,
        "Profile URL": profile.profile_url,
        "Status": profile.status,
        "First Name": payload.get("first_name", ""),
        "Last Name": payload.get("last_name", ""),
        "Headline": payload.get("headline", ""),
        "Location": payload.get("location", ""),
        "Industry": payload.get("industry", ""),
        "Error Type": profile.error_type or "",
        "Error Message": profile.error_message or "",
        "Retry Count": profile.retry_count or 0,
        "Last Attempt": profile.last_attempt.isoformat() if profile.last_attempt else "",
        "Extracted At": profile.extracted_at.isoformat() if profile.extracted_at else "",
    }


class ResultCompiler:
    """Builds result workbooks from persisted profiles."""

    def __init__(
        self,
        storage: Storage,
        writer: SpreadsheetWriter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.storage = storage
        self.writer = writer or SpreadsheetWriter()
        self.settings = settings or get_settings()

    def result_path(self, job_id: int) -> Path:
        return self.settings.results_path / f"job_{job_id}_results.xlsx"

    async def compile(self, job_id: int) -> str:
        """
        Write the results workbook for a job.

        Returns:
            Path of the written file, to be stored on the job

        Raises:
            JobNotFoundError: If job doesn't exist
        """
        await self.storage.get_job(job_id)
        profiles = await self.storage.get_profiles_by_job(job_id)

        rows = [build_result_row(i, p) for i, p in enumerate(profiles, start=1)]
        path = await self.writer.write_artifact(rows, RESULT_COLUMNS, self.result_path(job_id))

        await logger.ainfo("job_results_compiled", job_id=job_id, rows=len(rows), path=path)
        return path

    async def export_rows(
        self,
        user_id: int,
        export_type: ExportType = ExportType.ALL,
    ) -> list[dict[str, Any]]:
        """Rows for a user's export, oldest job first."""
        status = ExportType(export_type).profile_status
        profiles = await self.storage.get_profiles_for_user(user_id, status)
        return [build_export_row(p) for p in profiles]

    async def export(
        self,
        user_id: int,
        export_type: ExportType = ExportType.ALL,
    ) -> bytes:
        """Render a user's profiles as an .xlsx workbook."""
        rows = await self.export_rows(user_id, export_type)
        await logger.ainfo(
            "profiles_exported",
            user_id=user_id,
            export_type=ExportType(export_type).value,
            rows=len(rows),
        )
        return await self.writer.render(rows, EXPORT_COLUMNS)
