"""
Authentication endpoints.

- Email/Password signup & login
- JWT session cookie + double-submit CSRF cookie
- Subscription cookie (re)issued on every successful sign-in
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from anuncios.core.auth import (
    SESSION_COOKIE,
    SessionInfo,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    hash_password,
    require_user,
    revoke_jwt,
    verify_password,
)
from anuncios.core.config import get_settings
from anuncios.core.database import get_session
from anuncios.core.errors import ConflictError, UnauthenticatedError, ValidationFailedError
from anuncios.core.gate import session_token_from
from anuncios.core.middleware import CSRF_COOKIE
from anuncios.core.subscription import SUBSCRIPTION_COOKIE_NAME, SubscriptionState
from anuncios.models.user import User
from anuncios.services.subscriptions import subscription_state_for_user
from anuncios_shared.schemas.auth import AuthResponse, LoginRequest, MeResponse, SignupRequest

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

MIN_PASSWORD_LENGTH = 8

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


def set_subscription_cookie(response: Response, state: SubscriptionState) -> None:
    """Write the cookie the gate reads on page navigation."""
    response.set_cookie(key=SUBSCRIPTION_COOKIE_NAME, value=state.serialize(), **COOKIE_KWARGS)


async def _start_session(response: Response, user: User, session: AsyncSession) -> None:
    token, _jti = create_jwt(user.id, is_admin=user.is_admin)
    _set_session_cookies(response, token, generate_csrf_token())
    set_subscription_cookie(response, await subscription_state_for_user(user.id, session))


# ---------------------------------------------------------------------------
# Email/Password
# ---------------------------------------------------------------------------

@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    body: SignupRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password and sign them in."""
    result = await session.execute(select(User).where(User.email == body.email))
    if result.scalar_one_or_none():
        raise ConflictError("Email already registered")

    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = User(
        email=body.email,
        name=body.name,
        password_hash=hash_password(body.password),
    )
    session.add(user)
    await session.flush()

    await _start_session(response, user, session)

    log.info("user.registered", user_id=str(user.id), email=body.email)
    return AuthResponse(user_id=user.id, email=user.email, message="Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    result = await session.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user or not user.password_hash:
        log.warning("auth.login_failure", email=body.email, reason="unknown_user")
        raise UnauthenticatedError("Invalid email or password")

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=body.email, reason="bad_password")
        raise UnauthenticatedError("Invalid email or password")

    await _start_session(response, user, session)

    log.info("auth.login_success", user_id=str(user.id), email=body.email)
    return AuthResponse(user_id=user.id, email=user.email, message="Login successful")


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = session_token_from(request.cookies)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            log.info("auth.logout_invalid_token")
        else:
            jti = payload.get("jti")
            if jti:
                await revoke_jwt(jti)

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    response.delete_cookie(SUBSCRIPTION_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.get("/me", response_model=MeResponse)
async def me(auth: SessionInfo = Depends(require_user)):
    user = auth.user
    return MeResponse(user_id=user.id, email=user.email, name=user.name, is_admin=user.is_admin)
