from typing import Any
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.db.session import get_db
from edualert.schemas.report import TrackedReport, TrackResponse
from edualert.services.report_service import ReportService

router = APIRouter()


@router.get("", response_model=TrackResponse)
async def track_report(
    ref: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Public status lookup by reference number. Exposes no report content.
    """
    report = await ReportService.get_by_reference(db, ref)
    school = report.school
    return TrackResponse(report=TrackedReport(
        reference_number=report.reference_number,
        status=report.status,
        priority=report.priority,
        school=school.name if school else None,
        region=school.region.name if school and school.region else None,
        created_at=report.created_at,
    ))
