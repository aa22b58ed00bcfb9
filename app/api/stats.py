"""
Stats API - Aggregates and exports across a user's jobs.
"""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Path
from fastapi.responses import Response

from app.api.deps import ResultCompilerDep, StorageDep
from app.middleware import CurrentUserId
from app.models import ProfileStatus
from app.schemas import ErrorBreakdownResponse, ExportCountsResponse, StatsOverviewResponse
from app.worker.results import ExportType

router = APIRouter(tags=["Stats"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/stats/overview", response_model=StatsOverviewResponse)
async def stats_overview(user_id: CurrentUserId, storage: StorageDep) -> StatsOverviewResponse:
    """Profile totals and success rate across all of the user's jobs."""
    return StatsOverviewResponse(**await storage.get_job_stats(user_id))


@router.get("/stats/errors", response_model=ErrorBreakdownResponse)
async def stats_errors(user_id: CurrentUserId, storage: StorageDep) -> ErrorBreakdownResponse:
    """Failed profiles grouped by error type."""
    return ErrorBreakdownResponse(**await storage.get_error_breakdown(user_id))


@router.get("/stats/export-counts", response_model=ExportCountsResponse)
async def export_counts(user_id: CurrentUserId, storage: StorageDep) -> ExportCountsResponse:
    """Row counts of each export type."""
    profiles = await storage.get_profiles_for_user(user_id)
    return ExportCountsResponse(
        all=len(profiles),
        successful=sum(p.status == ProfileStatus.SUCCESS.value for p in profiles),
        failed=sum(p.status == ProfileStatus.FAILED.value for p in profiles),
    )


@router.post("/export/{export_type}")
async def export_profiles(
    export_type: Annotated[ExportType, Path(description="all, successful or failed")],
    user_id: CurrentUserId,
    compiler: ResultCompilerDep,
) -> Response:
    """Download the user's profiles as an .xlsx workbook."""
    content = await compiler.export(user_id, export_type)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": (
                f'attachment; filename="profiles_{export_type.value}_{stamp}.xlsx"'
            )
        },
    )
