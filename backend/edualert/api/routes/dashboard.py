from typing import Any, Optional, Set
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.api import deps
from edualert.db.session import get_db
from edualert.schemas.report import DashboardResponse
from edualert.services.report_service import ReportService

router = APIRouter()


@router.get("", response_model=DashboardResponse)
async def read_dashboard(
    visible_ids: Optional[Set[UUID]] = Depends(deps.get_visible_report_ids),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Status counts and the five most recent reports in the caller's scope.
    """
    stats, recent = await ReportService.dashboard(db, visible_ids)
    return DashboardResponse(stats=stats, recent_reports=recent)
