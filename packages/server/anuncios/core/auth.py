"""
Authentication and session handling.

Supports:
- Email/Password credentials (bcrypt)
- JWT session cookie with a Redis revocation list
- ``get_session_info``: resolve the request's session to a user (or None)
- Dependencies: ``require_user`` and ``require_platform_admin``
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from anuncios.core.config import get_settings
from anuncios.core.database import get_session
from anuncios.core.errors import ForbiddenError, UnauthenticatedError
from anuncios.core.gate import session_token_from
from anuncios.core.redis import get_redis, revoked_session_key
from anuncios.models.user import User

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "anuncios_session"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    is_admin: bool = False,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed session JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "is_admin": is_admin,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: Optional[int] = None) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(revoked_session_key(jti), ttl_seconds or settings.jwt_expire_minutes * 60, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(revoked_session_key(jti)) > 0


# ---------------------------------------------------------------------------
# CSRF Token
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Session resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionInfo:
    """The authenticated user behind a request."""

    user: User
    jti: Optional[str] = None

    @property
    def user_id(self) -> uuid.UUID:
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return bool(self.user.is_admin)


def _request_token(request: Request) -> Optional[str]:
    token = session_token_from(request.cookies)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


async def get_session_info(request: Request, session: AsyncSession) -> Optional[SessionInfo]:
    """Resolve the session cookie (or bearer token) to a user; None when absent or invalid."""
    token = _request_token(request)
    if not token:
        return None

    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        log.info("auth.invalid_session", path=request.url.path)
        return None

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        log.info("auth.revoked_session", user_id=str(user_id))
        return None

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        return None

    return SessionInfo(user=user, jti=jti)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

async def require_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> SessionInfo:
    """Any signed-in user."""
    info = await get_session_info(request, session)
    if info is None:
        raise UnauthenticatedError()
    request.state.auth = info
    return info


async def require_platform_admin(
    auth: SessionInfo = Depends(require_user),
) -> SessionInfo:
    """Platform administrators only (not organization admins)."""
    if not auth.is_admin:
        log.warning("auth.admin_required", user_id=str(auth.user_id))
        raise ForbiddenError("Admin access required")
    return auth
