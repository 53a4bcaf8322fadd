import asyncio
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List
from uuid import UUID

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.core.config import settings
from edualert.core.exceptions import RateLimitError
from edualert.core.time_utils import UTC, get_utc_now
from edualert.db.session import commit_or_raise
from edualert.models.ai_usage import AiUsage

logger = structlog.get_logger()


@dataclass
class UsageInfo:
    questions_used: int
    daily_limit: int
    resets_at: datetime


def usage_today() -> date:
    """Quotas roll over at midnight UTC."""
    return get_utc_now().date()


def next_reset() -> datetime:
    return datetime.combine(usage_today() + timedelta(days=1), time.min, tzinfo=UTC)


def _info(used: int) -> UsageInfo:
    return UsageInfo(questions_used=used, daily_limit=settings.AI_DAILY_QUESTION_LIMIT, resets_at=next_reset())


class UsageService:

    @staticmethod
    async def questions_used(db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            select(AiUsage.questions_asked).where(
                AiUsage.user_id == user_id,
                AiUsage.usage_date == usage_today(),
            )
        )
        return result.scalar_one_or_none() or 0

    @classmethod
    async def get_usage(cls, db: AsyncSession, user_id: UUID) -> UsageInfo:
        """
        Read-only lookup for the usage panel. A slow or failing database
        reports zero questions used instead of erroring.
        """
        try:
            used = await asyncio.wait_for(
                cls.questions_used(db, user_id),
                timeout=settings.DB_QUERY_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning("usage_lookup_timeout", user_id=str(user_id), timeout=settings.DB_QUERY_TIMEOUT_SECONDS)
            used = 0
        except SQLAlchemyError as e:
            logger.error("usage_lookup_failed", user_id=str(user_id), error=str(e))
            used = 0
        return _info(used)

    @classmethod
    async def check_quota(cls, db: AsyncSession, user_id: UUID) -> int:
        """Returns questions used so far today; raises once the limit is reached."""
        used = await cls.questions_used(db, user_id)
        limit = settings.AI_DAILY_QUESTION_LIMIT
        if used >= limit:
            logger.info("chat_quota_exhausted", user_id=str(user_id), used=used, limit=limit)
            raise RateLimitError(f"Daily limit of {limit} questions reached. Please try again tomorrow.")
        return used

    @staticmethod
    async def _bump(db: AsyncSession, user_id: UUID, today: date) -> int:
        result = await db.execute(
            update(AiUsage)
            .where(AiUsage.user_id == user_id, AiUsage.usage_date == today)
            .values(questions_asked=AiUsage.questions_asked + 1, updated_at=get_utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @classmethod
    async def record_question(cls, db: AsyncSession, user_id: UUID) -> UsageInfo:
        today = usage_today()
        if not await cls._bump(db, user_id, today):
            db.add(AiUsage(user_id=user_id, usage_date=today, questions_asked=1))
            try:
                await db.flush()
            except IntegrityError:
                # Another request created today's row first
                await db.rollback()
                await cls._bump(db, user_id, today)
        await commit_or_raise(db)
        return _info(await cls.questions_used(db, user_id))

    @staticmethod
    async def list_today(db: AsyncSession) -> List[AiUsage]:
        result = await db.execute(
            select(AiUsage)
            .where(AiUsage.usage_date == usage_today())
            .order_by(AiUsage.questions_asked.desc())
        )
        return result.scalars().unique().all()

    @staticmethod
    async def reset(db: AsyncSession, user_id: UUID) -> None:
        await db.execute(
            delete(AiUsage).where(AiUsage.user_id == user_id, AiUsage.usage_date == usage_today())
        )
        await commit_or_raise(db)
        logger.info("chat_usage_reset", user_id=str(user_id))
