import asyncio
import math
from collections import Counter
from datetime import timedelta
from typing import Optional, Set, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.core.config import settings
from edualert.core.exceptions import UpstreamError
from edualert.core.time_utils import ensure_utc, get_utc_now
from edualert.models.report import Report, ReportStatus, ReportPriority
from edualert.services.access_scope import apply_scope
from edualert.services.ai_service import GeminiService
from edualert.services.usage_service import UsageInfo, UsageService

logger = structlog.get_logger()

STATS_WINDOW_DAYS = 60
STATS_UNAVAILABLE = "Report statistics are currently unavailable."


def wants_statistics(message: str) -> bool:
    text = message.lower()
    return "report" in text and any(word in text for word in ("month", "summary", "statistic"))


class ChatService:

    @staticmethod
    async def build_statistics(db: AsyncSession, visible_ids: Optional[Set[UUID]]) -> str:
        """Plain-text digest of the caller's reports over the last 60 days."""
        since = get_utc_now() - timedelta(days=STATS_WINDOW_DAYS)
        stmt = apply_scope(select(Report).where(Report.created_at >= since), visible_ids)
        if stmt is None:
            return f"No teacher absence reports have been received in the last {STATS_WINDOW_DAYS} days."

        reports = (await db.execute(stmt)).scalars().unique().all()
        total = len(reports)
        if total == 0:
            return f"No teacher absence reports have been received in the last {STATS_WINDOW_DAYS} days."

        statuses = Counter(r.status for r in reports)
        priorities = Counter(r.priority for r in reports)
        regions = Counter(
            r.school.region.name if r.school and r.school.region else "Unknown Region"
            for r in reports
        )

        resolved = [r for r in reports if r.status == ReportStatus.CLOSED and r.closed_at]
        avg_days = None
        if resolved:
            total_days = sum(
                math.ceil((ensure_utc(r.closed_at) - ensure_utc(r.created_at)).total_seconds() / 86400)
                for r in resolved
            )
            avg_days = round(total_days / len(resolved))

        lines = [
            f"Reports in the last {STATS_WINDOW_DAYS} days: {total}",
            f"Open: {statuses[ReportStatus.OPEN]}",
            f"In progress: {statuses[ReportStatus.IN_PROGRESS]}",
            f"Closed: {statuses[ReportStatus.CLOSED]}",
            f"High priority: {priorities[ReportPriority.HIGH]}",
            f"Medium priority: {priorities[ReportPriority.MEDIUM]}",
            f"Low priority: {priorities[ReportPriority.LOW]}",
            f"Resolution rate: {round(statuses[ReportStatus.CLOSED] / total * 100)}%",
        ]
        if avg_days is not None:
            lines.append(f"Average time to resolve: {avg_days} days")
        else:
            lines.append("No reports have been closed yet for timing analysis")
        lines.append("Regional breakdown:")
        lines.extend(f"- {name}: {count}" for name, count in regions.most_common())
        return "\n".join(lines)

    @classmethod
    async def chat(
        cls, db: AsyncSession, user_id: UUID, message: str, visible_ids: Optional[Set[UUID]]
    ) -> Tuple[str, UsageInfo]:
        """
        Answer one question for the caller. Only answered questions count
        against the daily quota.
        """
        await UsageService.check_quota(db, user_id)

        data_context = ""
        if wants_statistics(message):
            try:
                data_context = await asyncio.wait_for(
                    cls.build_statistics(db, visible_ids),
                    timeout=settings.DB_QUERY_TIMEOUT_SECONDS,
                )
            except asyncio.TimeoutError:
                logger.warning("chat_statistics_timeout", timeout=settings.DB_QUERY_TIMEOUT_SECONDS)
                data_context = STATS_UNAVAILABLE
            except SQLAlchemyError as e:
                logger.error("chat_statistics_failed", error=str(e))
                data_context = STATS_UNAVAILABLE

        reply = await GeminiService.chat(message, data_context)
        if reply is None:
            raise UpstreamError("AI assistant is temporarily unavailable")
        usage = await UsageService.record_question(db, user_id)
        logger.info("chat_answered", with_statistics=bool(data_context), questions_used=usage.questions_used)
        return reply, usage
