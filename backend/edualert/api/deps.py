import secrets
from typing import Callable, Optional, Set
from uuid import UUID

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from edualert.core import security
from edualert.core.config import settings
from edualert.core.exceptions import AuthenticationError, AuthorizationError
from edualert.db.session import get_db
from edualert.models.user import User, UserRole
from edualert.services.access_scope import resolve_visible_report_ids

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """The session cookie wins; a Bearer header is accepted for API clients."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    if credentials:
        return credentials.credentials
    return None


def get_current_claims(token: Optional[str] = Depends(get_session_token)) -> security.SessionClaims:
    claims = security.decode_session_token(token)
    if claims is None:
        raise AuthenticationError("Authentication required")
    if not claims.isApproved:
        raise AuthorizationError("Account not approved")
    return claims


async def get_current_user(
    claims: security.SessionClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    try:
        user_id = UUID(claims.userId)
    except ValueError:
        raise AuthenticationError("Invalid session")

    user = await db.get(User, user_id)
    if not user or user.deleted_at is not None:
        raise AuthenticationError("Invalid session")
    if not user.is_approved:
        raise AuthorizationError("Account not approved")
    return user


def require_roles(*roles: UserRole) -> Callable:
    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError("Insufficient permissions")
        return current_user
    return checker


get_current_manager = require_roles(UserRole.ADMIN, UserRole.SENIOR_OFFICER)
get_current_admin = require_roles(UserRole.ADMIN)


async def get_visible_report_ids(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Optional[Set[UUID]]:
    """Recomputed on every request; subscriptions can change between calls."""
    return await resolve_visible_report_ids(db, current_user.id, current_user.role)


def verify_internal_key(x_internal_key: Optional[str] = Header(None)) -> None:
    if not settings.INTERNAL_API_KEY:
        return
    if not x_internal_key or not secrets.compare_digest(x_internal_key, settings.INTERNAL_API_KEY):
        raise AuthenticationError("Invalid internal key")
