"""
Account lifecycle: login, registration with email OTP, password reset and
profile maintenance. Registration and reset apply the strict password
policy; profile updates only check the length minimum.
"""

from datetime import timedelta
from typing import Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from edualert.core import security
from edualert.core.config import settings
from edualert.core.exceptions import (
    AuthenticationError, AuthorizationError, NotFoundError, ValidationError,
)
from edualert.core.time_utils import ensure_utc, get_utc_now
from edualert.db.session import commit_or_raise
from edualert.models.user import OtpCode, OtpPurpose, User, UserRole
from edualert.schemas.auth import RegisterRequest, ProfileUpdateRequest
from edualert.services.email_service import EmailService, verification_email, password_reset_email

logger = structlog.get_logger()

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset code has been sent."


class AuthService:

    @staticmethod
    async def get_active_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(
            select(User).where(User.email == security.normalize_email(email), User.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_user(db: AsyncSession, user_id: UUID) -> User:
        user = await db.get(User, user_id)
        if not user or user.deleted_at is not None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def issue_session(user: User) -> str:
        claims = security.SessionClaims(
            userId=str(user.id),
            email=user.email,
            role=user.role.value,
            isApproved=user.is_approved,
        )
        return security.create_session_token(claims)

    # Login

    @classmethod
    async def authenticate(cls, db: AsyncSession, email: str, password: str) -> User:
        """
        Unknown email, wrong domain and wrong password all look the same
        to the caller.
        """
        if not security.is_ministry_email(email):
            logger.info("login_failed", reason="domain")
            raise AuthenticationError("Invalid credentials")

        user = await cls.get_active_user_by_email(db, email)
        if not user:
            await run_in_threadpool(security.verify_password, password, security.dummy_password_hash())
            logger.info("login_failed", reason="unknown_user")
            raise AuthenticationError("Invalid credentials")

        valid = await run_in_threadpool(security.verify_password, password, user.password_hash)
        if not valid:
            logger.info("login_failed", reason="bad_password", user_id=str(user.id))
            raise AuthenticationError("Invalid credentials")

        if not user.is_verified:
            raise AuthorizationError("Please verify your email address before logging in")
        if not user.is_approved:
            raise AuthorizationError("Your account is pending approval by an administrator")

        logger.info("login_succeeded", user_id=str(user.id), role=user.role.value)
        return user

    # Registration

    @staticmethod
    async def _issue_code(db: AsyncSession, email: str, purpose: OtpPurpose, ttl_minutes: int) -> str:
        # Older unused codes for the same purpose stop working
        await db.execute(
            update(OtpCode)
            .where(OtpCode.email == email, OtpCode.purpose == purpose, OtpCode.used_at.is_(None))
            .values(used_at=get_utc_now())
        )
        code = security.generate_numeric_code()
        db.add(OtpCode(
            email=email,
            code=code,
            purpose=purpose,
            expires_at=get_utc_now() + timedelta(minutes=ttl_minutes),
        ))
        return code

    @staticmethod
    async def _find_code(db: AsyncSession, code: str, purpose: OtpPurpose, email: Optional[str] = None) -> Optional[OtpCode]:
        stmt = select(OtpCode).where(
            OtpCode.code == code,
            OtpCode.purpose == purpose,
            OtpCode.used_at.is_(None),
        )
        if email is not None:
            stmt = stmt.where(OtpCode.email == email)
        result = await db.execute(stmt.order_by(OtpCode.created_at.desc()))
        otp = result.scalars().first()
        if not otp or ensure_utc(otp.expires_at) < get_utc_now():
            return None
        return otp

    @classmethod
    async def register(cls, db: AsyncSession, request: RegisterRequest) -> Tuple[User, str]:
        email = security.normalize_email(request.email)
        if not security.is_ministry_email(email):
            raise ValidationError(
                f"Only @{settings.ALLOWED_EMAIL_DOMAIN} email addresses are allowed", field="email"
            )

        problems = security.validate_password_strength(request.password)
        if problems:
            raise ValidationError("; ".join(problems), field="password")

        if await cls.get_active_user_by_email(db, email):
            raise ValidationError("An account with this email already exists", field="email")

        password_hash = await run_in_threadpool(security.get_password_hash, request.password)
        user = User(
            email=email,
            password_hash=password_hash,
            full_name=request.full_name,
            position=request.position,
            role=UserRole.OFFICER,
            is_approved=False,
            is_verified=False,
        )
        db.add(user)
        code = await cls._issue_code(db, email, OtpPurpose.VERIFY_EMAIL, settings.OTP_EXPIRY_MINUTES)
        await commit_or_raise(db)
        logger.info("user_registered", user_id=str(user.id))

        await EmailService.send(email, "Verify your EduAlert account", verification_email(user.full_name, code))
        return user, code

    @classmethod
    async def verify_otp(cls, db: AsyncSession, email: str, code: str) -> User:
        email = security.normalize_email(email)
        otp = await cls._find_code(db, code, OtpPurpose.VERIFY_EMAIL, email=email)
        if not otp:
            raise ValidationError("Invalid or expired verification code", field="code")

        user = await cls.get_active_user_by_email(db, email)
        if not user:
            raise ValidationError("Invalid or expired verification code", field="code")

        otp.used_at = get_utc_now()
        user.is_verified = True
        await commit_or_raise(db)
        logger.info("user_verified", user_id=str(user.id))
        return user

    # Password reset

    @classmethod
    async def forgot_password(cls, db: AsyncSession, email: str) -> str:
        """Same answer whether or not the account exists."""
        user = await cls.get_active_user_by_email(db, email)
        if not user or not user.is_verified or not user.is_approved:
            logger.info("password_reset_skipped")
            return FORGOT_PASSWORD_MESSAGE

        code = await cls._issue_code(db, user.email, OtpPurpose.PASSWORD_RESET, settings.RESET_CODE_EXPIRY_MINUTES)
        await commit_or_raise(db)
        logger.info("password_reset_requested", user_id=str(user.id))

        await EmailService.send(
            user.email, "EduAlert password reset", password_reset_email(user.full_name or user.email, code)
        )
        return FORGOT_PASSWORD_MESSAGE

    @classmethod
    async def validate_reset_code(cls, db: AsyncSession, code: str) -> str:
        code = (code or "").strip()
        if not (len(code) == 6 and code.isdigit()):
            raise ValidationError("Reset code must be 6 digits", field="code")
        otp = await cls._find_code(db, code, OtpPurpose.PASSWORD_RESET)
        if not otp:
            raise ValidationError("Invalid or expired reset code", field="code")
        return otp.email

    @classmethod
    async def reset_password(cls, db: AsyncSession, code: str, password: str) -> None:
        email = await cls.validate_reset_code(db, code)

        problems = security.validate_password_strength(password)
        if problems:
            raise ValidationError("; ".join(problems), field="password")

        user = await cls.get_active_user_by_email(db, email)
        if not user:
            raise ValidationError("Invalid or expired reset code", field="code")

        otp = await cls._find_code(db, code.strip(), OtpPurpose.PASSWORD_RESET, email=email)
        user.password_hash = await run_in_threadpool(security.get_password_hash, password)
        if otp:
            otp.used_at = get_utc_now()
        await commit_or_raise(db)
        logger.info("password_reset_completed", user_id=str(user.id))

    # Profile

    @classmethod
    async def update_profile(cls, db: AsyncSession, user_id: UUID, request: ProfileUpdateRequest) -> User:
        user = await cls.get_active_user(db, user_id)

        if request.new_password:
            if not request.current_password:
                raise ValidationError("Current password is required to set a new password", field="currentPassword")
            problems = security.validate_password_length(request.new_password)
            if problems:
                raise ValidationError(problems[0], field="newPassword")
            valid = await run_in_threadpool(security.verify_password, request.current_password, user.password_hash)
            if not valid:
                raise ValidationError("Current password is incorrect", field="currentPassword")
            user.password_hash = await run_in_threadpool(security.get_password_hash, request.new_password)

        user.full_name = request.full_name
        user.position = request.position
        user.updated_at = get_utc_now()
        await commit_or_raise(db)
        logger.info("profile_updated", user_id=str(user.id), password_changed=bool(request.new_password))
        return user
