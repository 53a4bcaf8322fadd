from typing import List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from edualert.core import security
from edualert.core.config import settings
from edualert.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from edualert.core.time_utils import get_utc_now
from edualert.db.session import commit_or_raise
from edualert.models.subscription import OfficerSubscription
from edualert.models.user import User, UserRole
from edualert.schemas.officer import ManagedOfficer, OfficerCreateRequest, OfficerUpdateRequest

logger = structlog.get_logger()


class OfficerService:

    @staticmethod
    async def list_assignable(db: AsyncSession, q: Optional[str] = None, role: Optional[UserRole] = None) -> List[User]:
        """Approved, verified, active users that reports can be assigned to."""
        stmt = select(User).where(
            User.is_approved.is_(True),
            User.is_verified.is_(True),
            User.deleted_at.is_(None),
        )
        if role:
            stmt = stmt.where(User.role == role)
        if q and q.strip():
            pattern = f"%{q.strip()}%"
            stmt = stmt.where(or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern),
                User.position.ilike(pattern),
            ))
        result = await db.execute(stmt.order_by(User.full_name))
        return list(result.scalars().all())

    @staticmethod
    async def get_officer(db: AsyncSession, officer_id: UUID) -> User:
        user = await db.get(User, officer_id)
        if not user or user.deleted_at is not None:
            raise NotFoundError("Officer not found")
        return user

    @staticmethod
    def to_managed(user: User, subscription_count: int = 0) -> ManagedOfficer:
        return ManagedOfficer(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            position=user.position,
            role=user.role,
            is_approved=user.is_approved,
            is_verified=user.is_verified,
            created_at=user.created_at,
            subscription_count=subscription_count,
        )

    @classmethod
    async def list_managed(cls, db: AsyncSession) -> List[ManagedOfficer]:
        counts = (
            select(OfficerSubscription.officer_id, func.count(OfficerSubscription.id).label("n"))
            .where(OfficerSubscription.deleted_at.is_(None))
            .group_by(OfficerSubscription.officer_id)
            .subquery()
        )
        result = await db.execute(
            select(User, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.officer_id == User.id)
            .where(User.deleted_at.is_(None))
            .order_by(User.created_at.desc())
        )
        return [cls.to_managed(user, count) for user, count in result.all()]

    @classmethod
    async def create_officer(cls, db: AsyncSession, request: OfficerCreateRequest, actor: User) -> User:
        email = security.normalize_email(request.email)
        if not security.is_ministry_email(email):
            raise ValidationError(f"Email must be a @{settings.ALLOWED_EMAIL_DOMAIN} address", field="email")
        if request.role == UserRole.ADMIN and actor.role != UserRole.ADMIN:
            raise AuthorizationError("Only admins can create other admins")

        existing = await db.execute(select(User.id).where(User.email == email, User.deleted_at.is_(None)))
        if existing.scalar_one_or_none():
            raise ValidationError("User with this email already exists", field="email")

        user = User(
            email=email,
            password_hash=await run_in_threadpool(security.get_password_hash, request.password),
            full_name=request.full_name,
            position=request.position,
            role=request.role,
            is_approved=True,
            is_verified=True,
        )
        db.add(user)
        await commit_or_raise(db)
        logger.info("officer_created", officer_id=str(user.id), role=user.role.value, actor_id=str(actor.id))
        return user

    @classmethod
    async def update_officer(cls, db: AsyncSession, officer_id: UUID, request: OfficerUpdateRequest, actor: User) -> User:
        if request.role == UserRole.ADMIN and actor.role != UserRole.ADMIN:
            raise AuthorizationError("Only admins can assign admin role")

        user = await cls.get_officer(db, officer_id)
        if user.role == UserRole.ADMIN and actor.role != UserRole.ADMIN:
            raise AuthorizationError("Only admins can modify admin accounts")
        if request.full_name is not None:
            user.full_name = request.full_name
        if request.position is not None:
            user.position = request.position
        if request.role is not None:
            user.role = request.role
        if request.is_approved is not None:
            user.is_approved = request.is_approved
        if request.password:
            user.password_hash = await run_in_threadpool(security.get_password_hash, request.password)
        user.updated_at = get_utc_now()

        await commit_or_raise(db)
        logger.info("officer_updated", officer_id=str(user.id), actor_id=str(actor.id))
        return user

    @classmethod
    async def delete_officer(cls, db: AsyncSession, officer_id: UUID, actor: User) -> None:
        """Soft delete. Admin only, and never yourself."""
        if actor.role != UserRole.ADMIN:
            raise AuthorizationError("Only admins can delete officers")
        if officer_id == actor.id:
            raise ValidationError("Cannot delete your own account")

        user = await cls.get_officer(db, officer_id)
        user.deleted_at = get_utc_now()
        await commit_or_raise(db)
        logger.info("officer_deleted", officer_id=str(officer_id), actor_id=str(actor.id))

    @staticmethod
    async def subscription_count(db: AsyncSession, officer_id: UUID) -> int:
        result = await db.execute(
            select(func.count(OfficerSubscription.id)).where(
                OfficerSubscription.officer_id == officer_id,
                OfficerSubscription.deleted_at.is_(None),
            )
        )
        return result.scalar_one()
