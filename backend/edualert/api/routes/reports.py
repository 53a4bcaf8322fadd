from typing import Any, Optional, Set
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.api import deps
from edualert.db.session import get_db
from edualert.models.report import ReportStatus, ReportPriority
from edualert.models.user import User
from edualert.schemas.common import AckResponse
from edualert.schemas.officer import OfficerBrief
from edualert.schemas.report import (
    CreateReportRequest, CreateReportResponse, ReportOut, ReportListResponse,
    ReportUpdateRequest, ReportDetail, ReportDetailResponse,
    AnalyzeRequest, AnalyzeResponse,
    NoteCreateRequest, NoteOut, NoteResponse, NotesResponse,
)
from edualert.services.notification_service import NotificationService
from edualert.services.report_service import ReportService
from edualert.services.triage_service import TriageService

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=ReportListResponse)
async def list_reports(
    status: Optional[ReportStatus] = None,
    priority: Optional[ReportPriority] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    visible_ids: Optional[Set[UUID]] = Depends(deps.get_visible_report_ids),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Reports visible to the caller, newest first. Officers only see
    assigned reports and those matching their subscriptions.
    """
    reports, total = await ReportService.list_reports(db, visible_ids, status, priority, limit, offset)
    return ReportListResponse(
        reports=[ReportOut.from_model(r) for r in reports],
        total=total,
        has_more=offset + len(reports) < total,
    )


@router.post("", response_model=CreateReportResponse, status_code=201)
async def create_report(
    request: CreateReportRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Public submission. Returns as soon as the report is stored; triage
    runs afterwards in the background.
    """
    report = await ReportService.create_report(db, request)
    background_tasks.add_task(TriageService.run_background_triage, report.id)
    return CreateReportResponse(
        message="Report submitted successfully",
        reference_number=report.reference_number,
        report=ReportOut.from_model(report),
    )


@router.post("/analyze", response_model=AnalyzeResponse, dependencies=[Depends(deps.verify_internal_key)])
async def analyze_report(
    request: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> Any:
    outcome = await TriageService.analyze(db, request.report_id)
    if outcome.action == "approved":
        background_tasks.add_task(NotificationService.send_report_notifications, outcome.report_id)
    return AnalyzeResponse(
        action=outcome.action,
        reason=outcome.reason,
        confidence=outcome.confidence,
        message=outcome.message,
    )


@router.get("/{report_id}", response_model=ReportDetailResponse)
async def read_report(
    report_id: UUID,
    visible_ids: Optional[Set[UUID]] = Depends(deps.get_visible_report_ids),
    db: AsyncSession = Depends(get_db),
) -> Any:
    report = await ReportService.get_report(db, report_id, visible_ids)
    assignees = await ReportService.get_assignees(db, report.id)
    comments = await ReportService.list_comments(db, report.id)
    detail = ReportDetail(
        **ReportOut.from_model(report).model_dump(),
        assigned_officers=[OfficerBrief.from_model(u) for u in assignees],
        notes=[NoteOut.from_model(c) for c in comments],
    )
    return ReportDetailResponse(report=detail)


@router.patch("/{report_id}", response_model=AckResponse)
async def update_report(
    report_id: UUID,
    request: ReportUpdateRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(deps.get_current_user),
    visible_ids: Optional[Set[UUID]] = Depends(deps.get_visible_report_ids),
    db: AsyncSession = Depends(get_db),
) -> Any:
    outcome = await ReportService.update_report(db, report_id, request, current_user.id, visible_ids)
    if outcome.assigned_officer_ids:
        background_tasks.add_task(
            NotificationService.send_assignment_notifications,
            outcome.report.id,
            outcome.assigned_officer_ids,
        )
    return AckResponse(message="Report updated successfully")


@router.get("/{report_id}/notes", response_model=NotesResponse)
async def list_notes(
    report_id: UUID,
    visible_ids: Optional[Set[UUID]] = Depends(deps.get_visible_report_ids),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await ReportService.get_report(db, report_id, visible_ids)
    comments = await ReportService.list_comments(db, report_id)
    return NotesResponse(notes=[NoteOut.from_model(c) for c in comments])


@router.post("/{report_id}/notes", response_model=NoteResponse, status_code=201)
async def add_note(
    report_id: UUID,
    request: NoteCreateRequest,
    current_user: User = Depends(deps.get_current_user),
    visible_ids: Optional[Set[UUID]] = Depends(deps.get_visible_report_ids),
    db: AsyncSession = Depends(get_db),
) -> Any:
    comment = await ReportService.add_comment(db, report_id, current_user.id, request.content, visible_ids)
    return NoteResponse(message="Note added successfully", note=NoteOut.from_model(comment))
