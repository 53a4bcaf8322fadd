"""
Report visibility for the officer role.

resolve_visible_report_ids returns None for unrestricted roles and a concrete
(possibly empty) set for officers. Callers must short-circuit on an empty set
instead of falling through to an unfiltered query.
"""

from typing import Optional, Set
from uuid import UUID

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.models.report import Report, ReportAssignment
from edualert.models.reference import School
from edualert.models.subscription import OfficerSubscription
from edualert.models.user import UserRole

logger = structlog.get_logger()


async def resolve_visible_report_ids(
    db: AsyncSession, user_id: UUID, role: UserRole | str
) -> Optional[Set[UUID]]:
    if UserRole(role) != UserRole.OFFICER:
        return None

    visible: Set[UUID] = set()

    # 1. Direct assignments
    assigned = await db.execute(
        select(ReportAssignment.report_id).where(
            ReportAssignment.officer_id == user_id,
            ReportAssignment.removed_at.is_(None),
        )
    )
    visible.update(assigned.scalars().all())

    # 2. Subscription matches, batched into one query over all pairs
    subs = await db.execute(
        select(OfficerSubscription.region_id, OfficerSubscription.school_level_id).where(
            OfficerSubscription.officer_id == user_id,
            OfficerSubscription.deleted_at.is_(None),
        )
    )
    pairs = set(subs.all())
    if pairs:
        matches = or_(*[
            and_(School.region_id == region_id, School.school_level_id == level_id)
            for region_id, level_id in pairs
        ])
        subscribed = await db.execute(
            select(Report.id).join(School, Report.school_id == School.id).where(matches)
        )
        visible.update(subscribed.scalars().all())

    logger.debug("visible_reports_resolved", user_id=str(user_id), subscriptions=len(pairs), count=len(visible))
    return visible


def apply_scope(stmt, visible_ids: Optional[Set[UUID]]):
    """
    Narrow a Report query to the resolved scope. Returns None when the scope
    is explicitly empty so the caller can skip the query altogether.
    """
    if visible_ids is None:
        return stmt
    if not visible_ids:
        return None
    return stmt.where(Report.id.in_(visible_ids))


def can_see(report_id: UUID, visible_ids: Optional[Set[UUID]]) -> bool:
    return visible_ids is None or report_id in visible_ids
