"""
Request classifier and subscription gate.

``decide`` is a pure function of the request path and cookies. It never
queries a store and never raises: missing or malformed cookies fail closed.

Precedence:

1. Auth route (``/login``, ``/signup``) with a session token -> home.
2. Public route or public prefix / static asset -> continue.
3. No session token -> login, carrying the original path.
4. Subscription route, not exempt, no valid subscription cookie -> subscribe.
5. Continue.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional
from urllib.parse import urlencode

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from anuncios.core.subscription import (
    SUBSCRIPTION_COOKIE_NAME,
    SUBSCRIPTION_PAGE,
    is_subscription_valid,
    requires_subscription,
)

log = structlog.get_logger()

SESSION_COOKIE_NAMES: tuple[str, ...] = ("anuncios_session", "__Secure-anuncios_session")

LOGIN_PAGE = "/login"
HOME_PAGE = "/"

# Exact-match routes that never require authentication
PUBLIC_ROUTES = frozenset({"/", "/login", "/signup"})

# Probes and API docs
SYSTEM_ROUTES = frozenset({"/health", "/ready", "/docs", "/redoc", "/openapi.json"})

# Routes authenticated users are bounced away from
AUTH_ROUTES = frozenset({"/login", "/signup"})

# API handlers authenticate on their own and answer 401 instead of redirecting
PUBLIC_PREFIXES: tuple[str, ...] = ("/api/", "/static/", "/favicon.ico")

STATIC_SUFFIXES: tuple[str, ...] = (".svg", ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".css", ".js")

# May require auth but never a subscription
SUBSCRIPTION_EXEMPT_PREFIXES: tuple[str, ...] = ("/subscribe", "/planos", "/api/", "/admin")


class GateAction(str, Enum):
    CONTINUE = "continue"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_SUBSCRIBE = "redirect_subscribe"
    REDIRECT_HOME = "redirect_home"


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    original_path: Optional[str] = None

    @property
    def location(self) -> Optional[str]:
        if self.action is GateAction.REDIRECT_HOME:
            return HOME_PAGE
        if self.action is GateAction.REDIRECT_LOGIN:
            return f"{LOGIN_PAGE}?{urlencode({'redirect': self.original_path})}"
        if self.action is GateAction.REDIRECT_SUBSCRIBE:
            return f"{SUBSCRIPTION_PAGE}?{urlencode({'redirect': self.original_path})}"
        return None


CONTINUE = GateDecision(GateAction.CONTINUE)


def is_public_route(path: str) -> bool:
    if path in PUBLIC_ROUTES or path in SYSTEM_ROUTES:
        return True
    if path.lower().endswith(STATIC_SUFFIXES):
        return True
    return any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES)


def is_auth_route(path: str) -> bool:
    return path in AUTH_ROUTES


def is_subscription_exempt(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix) for prefix in SUBSCRIPTION_EXEMPT_PREFIXES)


def session_token_from(cookies: Mapping[str, str]) -> Optional[str]:
    for name in SESSION_COOKIE_NAMES:
        value = cookies.get(name)
        if value:
            return value
    return None


def decide(path: str, cookies: Mapping[str, str], now: Optional[datetime] = None) -> GateDecision:
    has_session = session_token_from(cookies) is not None

    if is_auth_route(path) and has_session:
        return GateDecision(GateAction.REDIRECT_HOME)

    if is_public_route(path):
        return CONTINUE

    if not has_session:
        return GateDecision(GateAction.REDIRECT_LOGIN, original_path=path)

    if requires_subscription(path) and not is_subscription_exempt(path):
        if not is_subscription_valid(cookies.get(SUBSCRIPTION_COOKIE_NAME), now):
            return GateDecision(GateAction.REDIRECT_SUBSCRIBE, original_path=path)

    return CONTINUE


class SubscriptionGateMiddleware(BaseHTTPMiddleware):
    """Apply ``decide`` to every request; redirects are 307."""

    async def dispatch(self, request: Request, call_next) -> Response:
        decision = decide(request.url.path, request.cookies)
        if decision.action is GateAction.CONTINUE:
            return await call_next(request)

        log.debug("gate.redirect", path=request.url.path, action=decision.action.value)
        return RedirectResponse(url=decision.location, status_code=307)
