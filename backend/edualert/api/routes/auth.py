from typing import Any
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.api import deps
from edualert.core.config import settings
from edualert.db.session import get_db
from edualert.models.user import User
from edualert.schemas.auth import (
    LoginRequest, LoginResponse, SessionUser, ValidateResponse,
    RegisterRequest, RegisterResponse, VerifyOtpRequest, VerifyOtpResponse,
    ForgotPasswordRequest, ResetCodeRequest, ResetCodeResponse, ResetPasswordRequest,
    Profile, ProfileResponse, ProfileUpdateRequest, ProfileUpdateResponse,
)
from edualert.schemas.common import MessageResponse
from edualert.schemas.officer import MySubscriptionsResponse, SubscriptionsReplaceRequest
from edualert.schemas.reference import RegionOut, SchoolLevelOut
from edualert.services.auth_service import AuthService
from edualert.services.subscription_service import SubscriptionService, to_out

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.SESSION_EXPIRE_HOURS * 3600,
        path="/",
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Password login. The session token is returned as an HTTP-only cookie.
    """
    user = await AuthService.authenticate(db, request.email, request.password)
    _set_session_cookie(response, AuthService.issue_session(user))
    return LoginResponse(message="Login successful", user=SessionUser.from_model(user))


@router.get("/validate", response_model=ValidateResponse)
async def validate_session(current_user: User = Depends(deps.get_current_user)) -> Any:
    return ValidateResponse(
        message="Session valid",
        email=current_user.email,
        user=SessionUser.from_model(current_user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> Any:
    """Clears the cookie only. Issued tokens stay valid until they expire."""
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return MessageResponse(message="Logged out successfully")


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)) -> Any:
    user, code = await AuthService.register(db, request)
    return RegisterResponse(
        message="Registration successful. Please check your email for the verification code.",
        email=user.email,
        otp_code=None if settings.is_production else code,
    )


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(request: VerifyOtpRequest, db: AsyncSession = Depends(get_db)) -> Any:
    await AuthService.verify_otp(db, request.email, request.code)
    return VerifyOtpResponse(
        message="Email verified successfully. Your account is awaiting administrator approval.",
        is_verified=True,
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(request: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)) -> Any:
    message = await AuthService.forgot_password(db, request.email)
    return MessageResponse(message=message)


@router.post("/validate-reset-code", response_model=ResetCodeResponse)
async def validate_reset_code(request: ResetCodeRequest, db: AsyncSession = Depends(get_db)) -> Any:
    email = await AuthService.validate_reset_code(db, request.code)
    return ResetCodeResponse(message="Reset code is valid", email=email)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(request: ResetPasswordRequest, db: AsyncSession = Depends(get_db)) -> Any:
    await AuthService.reset_password(db, request.code, request.password)
    return MessageResponse(message="Password has been reset successfully")


@router.get("/profile", response_model=ProfileResponse)
async def read_profile(current_user: User = Depends(deps.get_current_user)) -> Any:
    return ProfileResponse(profile=Profile.model_validate(current_user))


@router.patch("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    user = await AuthService.update_profile(db, current_user.id, request)
    return ProfileUpdateResponse(message="Profile updated successfully", profile=Profile.model_validate(user))


@router.get("/subscriptions", response_model=MySubscriptionsResponse)
async def read_my_subscriptions(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    subscriptions = await SubscriptionService.list_active(db, current_user.id)
    regions, levels = await SubscriptionService.reference_options(db)
    return MySubscriptionsResponse(
        subscriptions=[to_out(s) for s in subscriptions],
        available_regions=[RegionOut.model_validate(r) for r in regions],
        available_school_levels=[SchoolLevelOut.model_validate(lv) for lv in levels],
    )


@router.post("/subscriptions", response_model=MySubscriptionsResponse)
async def replace_my_subscriptions(
    request: SubscriptionsReplaceRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    subscriptions = await SubscriptionService.replace(db, current_user.id, request.subscriptions)
    regions, levels = await SubscriptionService.reference_options(db)
    return MySubscriptionsResponse(
        subscriptions=[to_out(s) for s in subscriptions],
        available_regions=[RegionOut.model_validate(r) for r in regions],
        available_school_levels=[SchoolLevelOut.model_validate(lv) for lv in levels],
    )
