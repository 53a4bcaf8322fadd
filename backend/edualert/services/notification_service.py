"""
Officer notifications. Everything here is a side effect: it runs after the
primary write has committed, opens its own session, and never raises.
"""

import asyncio
from typing import Dict, List, Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.db import session as db_session
from edualert.models.report import Report
from edualert.models.subscription import OfficerSubscription
from edualert.models.user import User, ELEVATED_ROLES
from edualert.services.email_service import EmailService, new_report_email, assignment_email

logger = structlog.get_logger()


class NotificationService:

    @staticmethod
    async def _report_context(db: AsyncSession, report_id: UUID) -> Optional[Dict]:
        report = await db.get(Report, report_id)
        if not report:
            return None
        school = report.school
        return {
            "report_id": str(report.id),
            "reference_number": report.reference_number,
            "teacher_name": report.teacher_name,
            "description": report.description,
            "school_name": school.name if school else "Unknown School",
            "region_id": school.region_id if school else None,
            "school_level_id": school.school_level_id if school else None,
            "region_name": school.region.name if school and school.region else "Unknown Region",
            "school_level_name": school.school_level.name if school and school.school_level else "Unknown Level",
        }

    @staticmethod
    async def get_report_recipients(db: AsyncSession, region_id: Optional[int], school_level_id: Optional[int]) -> List[User]:
        """
        Subscribed approved officers for the pair, plus every approved
        admin and senior officer. Deduplicated by user id.
        """
        recipients: Dict[UUID, User] = {}

        if region_id is not None and school_level_id is not None:
            subscribed = await db.execute(
                select(User)
                .join(OfficerSubscription, OfficerSubscription.officer_id == User.id)
                .where(
                    OfficerSubscription.region_id == region_id,
                    OfficerSubscription.school_level_id == school_level_id,
                    OfficerSubscription.deleted_at.is_(None),
                    User.is_approved.is_(True),
                    User.deleted_at.is_(None),
                )
            )
            for user in subscribed.scalars().all():
                recipients[user.id] = user

        elevated = await db.execute(
            select(User).where(
                User.role.in_(ELEVATED_ROLES),
                User.is_approved.is_(True),
                User.deleted_at.is_(None),
            )
        )
        for user in elevated.scalars().all():
            recipients.setdefault(user.id, user)

        return list(recipients.values())

    @staticmethod
    async def _deliver(recipients: Sequence[User], subject: str, render) -> int:
        results = await asyncio.gather(
            *[EmailService.send(user.email, subject, render(user)) for user in recipients],
            return_exceptions=True,
        )
        sent = 0
        for user, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.error("notification_failed", to=user.email, error=str(result))
            elif result:
                sent += 1
        return sent

    @classmethod
    async def send_report_notifications(cls, report_id: UUID) -> int:
        """Fan out a newly approved report. Returns the number of emails delivered."""
        try:
            async with db_session.AsyncSessionLocal() as db:
                context = await cls._report_context(db, report_id)
                if not context:
                    logger.error("notification_report_missing", report_id=str(report_id))
                    return 0
                recipients = await cls.get_report_recipients(db, context["region_id"], context["school_level_id"])

            if not recipients:
                logger.info("notification_no_recipients", reference=context["reference_number"])
                return 0

            subject = f"New Teacher Absence Report: {context['reference_number']}"
            sent = await cls._deliver(recipients, subject, lambda _user: new_report_email(context))
            logger.info("report_notifications_sent", reference=context["reference_number"], recipients=len(recipients), delivered=sent)
            return sent
        except Exception as e:
            logger.error("report_notifications_failed", report_id=str(report_id), error=str(e))
            return 0

    @classmethod
    async def send_assignment_notifications(cls, report_id: UUID, officer_ids: Sequence[UUID]) -> int:
        """Tell each (re-)assigned officer about the report."""
        if not officer_ids:
            return 0
        try:
            async with db_session.AsyncSessionLocal() as db:
                context = await cls._report_context(db, report_id)
                if not context:
                    logger.error("notification_report_missing", report_id=str(report_id))
                    return 0
                result = await db.execute(select(User).where(User.id.in_(list(officer_ids))))
                officers = result.scalars().all()

            subject = f"Report Assigned: {context['reference_number']}"
            sent = await cls._deliver(
                officers, subject, lambda user: assignment_email(user.full_name or user.email, context)
            )
            logger.info("assignment_notifications_sent", reference=context["reference_number"], officers=len(officers), delivered=sent)
            return sent
        except Exception as e:
            logger.error("assignment_notifications_failed", report_id=str(report_id), error=str(e))
            return 0
