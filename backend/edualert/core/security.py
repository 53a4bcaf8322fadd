"""
Credential and session primitives.

Sessions are stateless signed JWTs. Nothing is stored server-side, so a token
stays valid until it expires even after the client "logs out".
"""

import re
import secrets
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

import bcrypt
import structlog
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError as PydanticValidationError

from edualert.core.config import settings
from edualert.core.time_utils import get_utc_now

logger = structlog.get_logger()

BCRYPT_ROUNDS = 12
SPECIAL_CHARACTERS = r"[!@#$%^&*(),.?\":{}|<>]"


def _resolve_secret() -> str:
    if settings.JWT_SECRET:
        return settings.JWT_SECRET
    # Sessions issued with this secret die with the process.
    logger.warning("jwt_secret_missing", message="Using an ephemeral signing secret")
    return secrets.token_urlsafe(48)


SECRET_KEY = _resolve_secret()
ALGORITHM = settings.JWT_ALGORITHM


class SessionClaims(BaseModel):
    userId: str
    email: str
    role: str
    isApproved: bool


# Passwords

def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]

def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")

@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Stand-in hash so logins for unknown accounts still pay the bcrypt cost."""
    return get_password_hash(secrets.token_urlsafe(16))

def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False

def validate_password_strength(password: str) -> List[str]:
    """
    Strict policy used by registration and password reset.
    Returns the list of unmet requirements (empty when valid).
    """
    errors = []
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not re.search(SPECIAL_CHARACTERS, password):
        errors.append("Password must contain at least one special character")
    return errors

def validate_password_length(password: str) -> List[str]:
    """Looser rule applied on profile updates."""
    if len(password) < settings.PROFILE_PASSWORD_MIN_LENGTH:
        return [f"Password must be at least {settings.PROFILE_PASSWORD_MIN_LENGTH} characters long"]
    return []


# Emails

def normalize_email(email: str) -> str:
    return email.strip().lower()

def is_ministry_email(email: str) -> bool:
    domain = re.escape(settings.ALLOWED_EMAIL_DOMAIN)
    return bool(re.match(rf"^[^@\s]+@{domain}$", email.strip(), re.IGNORECASE))


# One-time codes

def generate_numeric_code() -> str:
    """6-digit code used for email verification and password reset."""
    return str(100000 + secrets.randbelow(900000))


# Session tokens

def create_session_token(claims: SessionClaims, expires_delta: Optional[timedelta] = None) -> str:
    now = get_utc_now()
    expire = now + (expires_delta or timedelta(hours=settings.SESSION_EXPIRE_HOURS))
    to_encode = claims.model_dump()
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def decode_session_token(token: Optional[str]) -> Optional[SessionClaims]:
    """
    Any signature, expiry or shape failure yields None. Never raises.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return SessionClaims(**payload)
    except (JWTError, PydanticValidationError):
        return None
