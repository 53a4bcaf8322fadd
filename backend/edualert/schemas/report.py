from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import Field

from edualert.models.report import (
    Report, ReportComment, ReportStatus, ReportPriority, ReporterType,
)
from edualert.schemas.common import APIModel
from edualert.schemas.officer import OfficerBrief


class CreateReportRequest(APIModel):
    """Public submission form."""
    region_id: int
    school_id: int
    grade: str = Field(..., min_length=1, max_length=50)
    teacher_name: str = Field(..., min_length=1, max_length=255)
    subject: str = Field(..., min_length=1, max_length=255)
    reporter_type: ReporterType
    description: str = Field(..., min_length=1)

class ReportOut(APIModel):
    id: UUID
    reference_number: str
    school_id: int
    school_name: Optional[str] = None
    region_id: Optional[int] = None
    region_name: Optional[str] = None
    school_level_name: Optional[str] = None
    grade: str
    teacher_name: str
    subject: str
    reporter_type: ReporterType
    description: str
    status: ReportStatus
    priority: ReportPriority
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, report: Report) -> "ReportOut":
        school = report.school
        return cls(
            id=report.id,
            reference_number=report.reference_number,
            school_id=report.school_id,
            school_name=school.name if school else None,
            region_id=school.region_id if school else None,
            region_name=school.region.name if school and school.region else None,
            school_level_name=school.school_level.name if school and school.school_level else None,
            grade=report.grade,
            teacher_name=report.teacher_name,
            subject=report.subject,
            reporter_type=report.reporter_type,
            description=report.description,
            status=report.status,
            priority=report.priority,
            closed_at=report.closed_at,
            created_at=report.created_at,
            updated_at=report.updated_at,
        )

class CreateReportResponse(APIModel):
    message: str
    reference_number: str
    report: ReportOut

class ReportListResponse(APIModel):
    reports: List[ReportOut]
    total: int
    has_more: bool

class ReportUpdateRequest(APIModel):
    """Partial update. Omitted fields are left untouched."""
    status: Optional[ReportStatus] = None
    priority: Optional[ReportPriority] = None
    assigned_officers: Optional[List[UUID]] = None


class NoteAuthor(APIModel):
    name: str
    title: str

class NoteOut(APIModel):
    id: UUID
    content: str
    created_at: datetime
    officer: NoteAuthor

    @classmethod
    def from_model(cls, comment: ReportComment) -> "NoteOut":
        if comment.author is None:
            author = NoteAuthor(name="System", title="Automated Analysis")
        else:
            author = NoteAuthor(
                name=comment.author.full_name or comment.author.email,
                title=comment.author.position or "Unknown Position",
            )
        return cls(id=comment.id, content=comment.comment, created_at=comment.created_at, officer=author)

class NoteCreateRequest(APIModel):
    content: str = Field(..., min_length=1)

class NoteResponse(APIModel):
    message: str
    note: NoteOut

class NotesResponse(APIModel):
    notes: List[NoteOut]

class ReportDetail(ReportOut):
    assigned_officers: List[OfficerBrief] = []
    notes: List[NoteOut] = []

class ReportDetailResponse(APIModel):
    report: ReportDetail


class AnalyzeRequest(APIModel):
    report_id: UUID

class AnalyzeResponse(APIModel):
    action: str  # approved | closed
    reason: str
    confidence: float
    message: str


class TrackedReport(APIModel):
    reference_number: str
    status: ReportStatus
    priority: ReportPriority
    school: Optional[str] = None
    region: Optional[str] = None
    created_at: datetime

class TrackResponse(APIModel):
    report: TrackedReport


class DashboardStats(APIModel):
    total_reports: int
    open_reports: int
    in_progress_reports: int
    closed_reports: int

class RecentReport(APIModel):
    id: UUID
    ref: str
    status: str
    description: str
    school: str
    time: str

class DashboardResponse(APIModel):
    stats: DashboardStats
    recent_reports: List[RecentReport]
