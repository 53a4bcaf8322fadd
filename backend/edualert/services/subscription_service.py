"""
Officer subscriptions to (region, school level) pairs. Rows are never
removed; dropping a pair stamps deleted_at.
"""

from typing import Iterable, List, Set, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.core.exceptions import NotFoundError, ValidationError
from edualert.core.time_utils import get_utc_now
from edualert.db.session import commit_or_raise
from edualert.models.reference import Region, SchoolLevel
from edualert.models.subscription import OfficerSubscription
from edualert.schemas.officer import SubscriptionOut, SubscriptionPair

logger = structlog.get_logger()


def to_out(subscription: OfficerSubscription) -> SubscriptionOut:
    return SubscriptionOut(
        id=subscription.id,
        region_id=subscription.region_id,
        region_name=subscription.region.name if subscription.region else "Unknown Region",
        school_level_id=subscription.school_level_id,
        school_level_name=subscription.school_level.name if subscription.school_level else "Unknown Level",
        created_at=subscription.created_at,
    )


class SubscriptionService:

    @staticmethod
    async def list_active(db: AsyncSession, officer_id: UUID) -> List[OfficerSubscription]:
        result = await db.execute(
            select(OfficerSubscription)
            .where(OfficerSubscription.officer_id == officer_id, OfficerSubscription.deleted_at.is_(None))
            .order_by(OfficerSubscription.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _validate_pairs(db: AsyncSession, pairs: Iterable[Tuple[int, int]]) -> None:
        pairs = list(pairs)
        region_ids = {region_id for region_id, _ in pairs}
        level_ids = {level_id for _, level_id in pairs}

        if region_ids:
            found = set((await db.execute(select(Region.id).where(Region.id.in_(region_ids)))).scalars().all())
            if region_ids - found:
                raise ValidationError("Invalid region", field="regionId")
        if level_ids:
            found = set((await db.execute(select(SchoolLevel.id).where(SchoolLevel.id.in_(level_ids)))).scalars().all())
            if level_ids - found:
                raise ValidationError("Invalid school level", field="schoolLevelId")

    @classmethod
    async def add(cls, db: AsyncSession, officer_id: UUID, pair: SubscriptionPair) -> OfficerSubscription:
        await cls._validate_pairs(db, [(pair.region_id, pair.school_level_id)])

        duplicate = await db.execute(
            select(OfficerSubscription.id).where(
                OfficerSubscription.officer_id == officer_id,
                OfficerSubscription.region_id == pair.region_id,
                OfficerSubscription.school_level_id == pair.school_level_id,
                OfficerSubscription.deleted_at.is_(None),
            )
        )
        if duplicate.scalar_one_or_none():
            raise ValidationError("Officer is already subscribed to this region and school level")

        subscription = OfficerSubscription(
            officer_id=officer_id,
            region_id=pair.region_id,
            school_level_id=pair.school_level_id,
        )
        db.add(subscription)
        await commit_or_raise(db)
        await db.refresh(subscription, attribute_names=["region", "school_level"])
        logger.info("subscription_added", officer_id=str(officer_id), region_id=pair.region_id, school_level_id=pair.school_level_id)
        return subscription

    @staticmethod
    async def remove(db: AsyncSession, officer_id: UUID, subscription_id: UUID) -> None:
        subscription = await db.get(OfficerSubscription, subscription_id)
        if not subscription or subscription.officer_id != officer_id or subscription.deleted_at is not None:
            raise NotFoundError("Subscription not found")
        subscription.deleted_at = get_utc_now()
        await commit_or_raise(db)
        logger.info("subscription_removed", officer_id=str(officer_id), subscription_id=str(subscription_id))

    @classmethod
    async def replace(cls, db: AsyncSession, officer_id: UUID, pairs: List[SubscriptionPair]) -> List[OfficerSubscription]:
        """
        Make the active set equal to `pairs`: dropped pairs are soft-deleted,
        new pairs are inserted, unchanged pairs keep their rows.
        """
        wanted: Set[Tuple[int, int]] = {(p.region_id, p.school_level_id) for p in pairs}
        await cls._validate_pairs(db, wanted)

        current = await cls.list_active(db, officer_id)
        existing = {(s.region_id, s.school_level_id): s for s in current}

        now = get_utc_now()
        removed = 0
        for key, subscription in existing.items():
            if key not in wanted:
                subscription.deleted_at = now
                removed += 1
        added = 0
        for region_id, level_id in sorted(wanted - existing.keys()):
            db.add(OfficerSubscription(officer_id=officer_id, region_id=region_id, school_level_id=level_id))
            added += 1

        await commit_or_raise(db)
        logger.info("subscriptions_replaced", officer_id=str(officer_id), added=added, removed=removed)
        return await cls.list_active(db, officer_id)

    @staticmethod
    async def reference_options(db: AsyncSession) -> Tuple[List[Region], List[SchoolLevel]]:
        regions = (await db.execute(select(Region).order_by(Region.id))).scalars().all()
        levels = (await db.execute(select(SchoolLevel).order_by(SchoolLevel.id))).scalars().all()
        return list(regions), list(levels)
