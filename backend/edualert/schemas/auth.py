from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import EmailStr, Field

from edualert.models.user import User, UserRole
from edualert.schemas.common import APIModel


class LoginRequest(APIModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class SessionUser(APIModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    role: UserRole
    is_approved: bool

    @classmethod
    def from_model(cls, user: User) -> "SessionUser":
        return cls(id=user.id, email=user.email, full_name=user.full_name, role=user.role, is_approved=user.is_approved)

class LoginResponse(APIModel):
    message: str
    user: SessionUser

class ValidateResponse(APIModel):
    message: str
    email: str
    user: SessionUser

class RegisterRequest(APIModel):
    email: EmailStr
    password: str
    full_name: str = Field(..., min_length=2, max_length=255)
    position: str = Field(..., min_length=1, max_length=255)

class RegisterResponse(APIModel):
    message: str
    email: str
    # Only populated outside production
    otp_code: Optional[str] = None

class VerifyOtpRequest(APIModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)

class VerifyOtpResponse(APIModel):
    message: str
    is_verified: bool

class ForgotPasswordRequest(APIModel):
    email: str = Field(..., min_length=1)

class ResetCodeRequest(APIModel):
    code: str = Field(..., min_length=1)

class ResetCodeResponse(APIModel):
    message: str
    email: str

class ResetPasswordRequest(APIModel):
    code: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class Profile(APIModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    position: Optional[str] = None
    role: UserRole
    is_approved: bool
    is_verified: bool
    created_at: datetime

class ProfileResponse(APIModel):
    profile: Profile

class ProfileUpdateRequest(APIModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    position: str = Field(..., min_length=1, max_length=255)
    current_password: Optional[str] = None
    new_password: Optional[str] = None

class ProfileUpdateResponse(APIModel):
    message: str
    profile: Profile
