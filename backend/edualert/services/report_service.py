import secrets
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select, func, delete, desc
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.core.exceptions import NotFoundError, PersistenceError, ValidationError
from edualert.core.time_utils import get_local_now, get_utc_now, time_ago
from edualert.db.session import commit_or_raise
from edualert.models.reference import School
from edualert.models.report import (
    Report, ReportAssignment, ReportComment, ReportStatus, ReportPriority,
)
from edualert.models.user import User
from edualert.schemas.report import (
    CreateReportRequest, ReportUpdateRequest, DashboardStats, RecentReport,
)
from edualert.services.access_scope import apply_scope, can_see

logger = structlog.get_logger()

STATUS_LABELS = {
    ReportStatus.OPEN: "Open",
    ReportStatus.IN_PROGRESS: "In Progress",
    ReportStatus.CLOSED: "Closed",
}


class ReferenceNumberService:
    """
    Human-facing report identifiers: EDU + year + 4 random digits
    (e.g. EDU20261234). The column is unique; candidates are checked
    before insert and regenerated on collision.
    """

    PREFIX = "EDU"
    MAX_ATTEMPTS = 10

    @classmethod
    def candidate(cls) -> str:
        year = get_local_now().year
        return f"{cls.PREFIX}{year}{1000 + secrets.randbelow(9000)}"

    @classmethod
    async def generate(cls, session: AsyncSession) -> str:
        for _ in range(cls.MAX_ATTEMPTS):
            reference = cls.candidate()
            taken = await session.execute(
                select(Report.id).where(Report.reference_number == reference)
            )
            if taken.scalar_one_or_none() is None:
                return reference
            logger.warning("reference_number_collision", reference=reference)
        raise PersistenceError("Could not allocate a unique reference number", code="reference_exhausted")


@dataclass
class UpdateOutcome:
    report: Report
    assigned_officer_ids: List[UUID] = field(default_factory=list)


class ReportService:

    # Creation

    @staticmethod
    async def create_report(db: AsyncSession, request: CreateReportRequest) -> Report:
        school = await db.get(School, request.school_id)
        if not school:
            raise ValidationError("School not found", field="schoolId")
        if school.region_id != request.region_id:
            raise ValidationError("School does not belong to the selected region", field="regionId")

        report = Report(
            reference_number=await ReferenceNumberService.generate(db),
            school_id=school.id,
            grade=request.grade,
            teacher_name=request.teacher_name,
            subject=request.subject,
            reporter_type=request.reporter_type,
            description=request.description,
            status=ReportStatus.OPEN,
            priority=ReportPriority.MEDIUM,
        )
        db.add(report)
        await commit_or_raise(db)
        await db.refresh(report)
        logger.info("report_created", report_id=str(report.id), reference=report.reference_number, school_id=school.id)
        return report

    # Reads

    @staticmethod
    async def get_report(db: AsyncSession, report_id: UUID, visible_ids: Optional[Set[UUID]] = None) -> Report:
        """Officers get NotFound for reports outside their scope."""
        if not can_see(report_id, visible_ids):
            raise NotFoundError("Report not found")
        report = await db.get(Report, report_id)
        if not report:
            raise NotFoundError("Report not found")
        return report

    @staticmethod
    async def get_by_reference(db: AsyncSession, reference_number: str) -> Report:
        reference = reference_number.strip().upper()
        if not Report.validate_reference_number(reference):
            raise NotFoundError("Reference number not found")
        result = await db.execute(select(Report).where(Report.reference_number == reference))
        report = result.scalar_one_or_none()
        if not report:
            raise NotFoundError("Reference number not found")
        return report

    @staticmethod
    async def list_reports(
        db: AsyncSession,
        visible_ids: Optional[Set[UUID]],
        status: Optional[ReportStatus] = None,
        priority: Optional[ReportPriority] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Report], int]:
        stmt = apply_scope(select(Report), visible_ids)
        if stmt is None:
            return [], 0
        if status:
            stmt = stmt.where(Report.status == status)
        if priority:
            stmt = stmt.where(Report.priority == priority)

        total = (await db.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        )).scalar_one()
        result = await db.execute(
            stmt.order_by(desc(Report.created_at)).offset(offset).limit(limit)
        )
        return list(result.scalars().unique().all()), total

    @staticmethod
    async def get_assignees(db: AsyncSession, report_id: UUID) -> List[User]:
        result = await db.execute(
            select(User)
            .join(ReportAssignment, ReportAssignment.officer_id == User.id)
            .where(ReportAssignment.report_id == report_id, ReportAssignment.removed_at.is_(None))
            .order_by(ReportAssignment.assigned_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_comments(db: AsyncSession, report_id: UUID) -> List[ReportComment]:
        result = await db.execute(
            select(ReportComment)
            .where(ReportComment.report_id == report_id)
            .order_by(ReportComment.created_at)
        )
        return list(result.scalars().all())

    # Mutations

    @staticmethod
    async def _validate_officers(db: AsyncSession, officer_ids: List[UUID]) -> List[UUID]:
        unique_ids = list(dict.fromkeys(officer_ids))
        if not unique_ids:
            return []
        result = await db.execute(
            select(User.id).where(
                User.id.in_(unique_ids),
                User.is_approved.is_(True),
                User.deleted_at.is_(None),
            )
        )
        found = set(result.scalars().all())
        missing = [str(oid) for oid in unique_ids if oid not in found]
        if missing:
            raise ValidationError(f"Unknown or inactive officers: {', '.join(missing)}", field="assignedOfficers")
        return unique_ids

    @classmethod
    async def update_report(
        cls,
        db: AsyncSession,
        report_id: UUID,
        changes: ReportUpdateRequest,
        actor_id: UUID,
        visible_ids: Optional[Set[UUID]] = None,
    ) -> UpdateOutcome:
        """
        Apply a partial update in one transaction. Assignment is a full
        replace: existing rows are deleted and one fresh row per officer is
        inserted. Notifications are the caller's job, after commit.
        """
        report = await cls.get_report(db, report_id, visible_ids)

        officer_ids: Optional[List[UUID]] = None
        if changes.assigned_officers is not None:
            officer_ids = await cls._validate_officers(db, changes.assigned_officers)

        if changes.status is not None and changes.status != report.status:
            report.status = changes.status
            report.closed_at = get_utc_now() if changes.status == ReportStatus.CLOSED else None
        if changes.priority is not None:
            report.priority = changes.priority

        if officer_ids is not None:
            await db.execute(delete(ReportAssignment).where(ReportAssignment.report_id == report.id))
            now = get_utc_now()
            for officer_id in officer_ids:
                db.add(ReportAssignment(
                    report_id=report.id,
                    officer_id=officer_id,
                    assigned_by=actor_id,
                    assigned_at=now,
                ))

        report.updated_at = get_utc_now()
        await commit_or_raise(db)
        await db.refresh(report)

        logger.info(
            "report_updated",
            report_id=str(report.id),
            status=report.status.value,
            priority=report.priority.value,
            assignees=len(officer_ids) if officer_ids is not None else None,
            actor_id=str(actor_id),
        )
        return UpdateOutcome(report=report, assigned_officer_ids=officer_ids or [])

    @classmethod
    async def add_comment(
        cls,
        db: AsyncSession,
        report_id: UUID,
        user_id: UUID,
        content: str,
        visible_ids: Optional[Set[UUID]] = None,
    ) -> ReportComment:
        text = (content or "").strip()
        if not text:
            raise ValidationError("Note content is required", field="content")
        await cls.get_report(db, report_id, visible_ids)

        comment = ReportComment(report_id=report_id, user_id=user_id, comment=text)
        db.add(comment)
        await commit_or_raise(db)
        await db.refresh(comment, attribute_names=["author"])
        logger.info("report_comment_added", report_id=str(report_id), user_id=str(user_id))
        return comment

    # Aggregates

    @staticmethod
    async def dashboard(db: AsyncSession, visible_ids: Optional[Set[UUID]], recent_limit: int = 5) -> Tuple[DashboardStats, List[RecentReport]]:
        stmt = apply_scope(select(Report.status, func.count()).group_by(Report.status), visible_ids)
        if stmt is None:
            return DashboardStats(total_reports=0, open_reports=0, in_progress_reports=0, closed_reports=0), []

        counts = {status: count for status, count in (await db.execute(stmt)).all()}
        stats = DashboardStats(
            total_reports=sum(counts.values()),
            open_reports=counts.get(ReportStatus.OPEN, 0),
            in_progress_reports=counts.get(ReportStatus.IN_PROGRESS, 0),
            closed_reports=counts.get(ReportStatus.CLOSED, 0),
        )

        recent_stmt = apply_scope(select(Report), visible_ids).order_by(desc(Report.created_at)).limit(recent_limit)
        recent = (await db.execute(recent_stmt)).scalars().unique().all()
        now = get_utc_now()
        recent_reports = [
            RecentReport(
                id=report.id,
                ref=report.reference_number,
                status=STATUS_LABELS.get(report.status, report.status.value),
                description=report.description if len(report.description) <= 100 else report.description[:100] + "...",
                school=report.school.name if report.school else "Unknown School",
                time=time_ago(report.created_at, now),
            )
            for report in recent
        ]
        return stats, recent_reports
