import uuid
import enum
from sqlalchemy import Column, String, Boolean, DateTime, Enum, Index
from sqlalchemy.dialects.postgresql import UUID
from edualert.core.time_utils import get_utc_now
from edualert.db.base import Base


class UserRole(str, enum.Enum):
    OFFICER = 'officer'
    SENIOR_OFFICER = 'senior_officer'
    ADMIN = 'admin'

ELEVATED_ROLES = (UserRole.SENIOR_OFFICER, UserRole.ADMIN)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    position = Column(String(255), nullable=True)
    role = Column(Enum(UserRole, name="user_role", values_callable=_enum_values), default=UserRole.OFFICER, nullable=False)

    is_approved = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


class OtpPurpose(str, enum.Enum):
    VERIFY_EMAIL = 'verify_email'
    PASSWORD_RESET = 'password_reset'


class OtpCode(Base):
    """Single-use codes for email verification and password reset."""
    __tablename__ = "otp_codes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, index=True)
    code = Column(String(16), nullable=False)
    purpose = Column(Enum(OtpPurpose, name="otp_purpose", values_callable=_enum_values), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)

    __table_args__ = (Index("ix_otp_codes_code_purpose", "code", "purpose"),)
