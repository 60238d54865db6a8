"""
Shared fixtures: in-memory SQLite, the app with its DB session and flag
resolver overridden, Redis mocked, and helpers to sign users in.
"""

from __future__ import annotations

import os

# Must be set before anything imports anuncios.core.config
os.environ["ANUNCIOS_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ANUNCIOS_DEBUG"] = "false"
os.environ["ANUNCIOS_BILLING_WEBHOOK_SECRET"] = "whsec_test"

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from anuncios.core.auth import SESSION_COOKIE, create_jwt, hash_password
from anuncios.core.database import build_engine, build_session_factory, get_session, init_db
from anuncios.core.flags import FlagResolver, get_flag_resolver
from anuncios.core.middleware import CSRF_COOKIE, CSRF_HEADER
from anuncios.core.subscription import SUBSCRIPTION_COOKIE_NAME, SubscriptionState
from anuncios.main import create_app
from anuncios.models.addon import Addon
from anuncios.models.organization import Organization
from anuncios.models.organization_member import OrganizationMember
from anuncios.models.plan import Plan
from anuncios.models.user import User

TEST_CSRF = "test-csrf-token"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    async with build_session_factory(engine)() as s:
        yield s


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_redis():
    redis = AsyncMock()
    redis.exists = AsyncMock(return_value=0)
    redis.setex = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    with patch("anuncios.core.auth.get_redis", return_value=redis), patch(
        "anuncios.main.get_redis", return_value=redis
    ):
        yield redis


# ---------------------------------------------------------------------------
# App + client
# ---------------------------------------------------------------------------

@pytest.fixture
def flag_overrides() -> dict[str, Any]:
    """Override per test module/class to switch features."""
    return {}


@pytest.fixture
def app(session, mock_redis, flag_overrides):
    app = create_app()

    async def _session_override():
        yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_flag_resolver] = lambda: FlagResolver(overrides=flag_overrides, environ={})
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac


@pytest.fixture
def sign_in(client):
    """Attach session + CSRF cookies (and optionally a subscription cookie) to the client."""

    def _sign_in(user: User, subscription: Optional[SubscriptionState] = None) -> AsyncClient:
        token, _ = create_jwt(user.id, is_admin=user.is_admin)
        client.cookies.set(SESSION_COOKIE, token)
        client.cookies.set(CSRF_COOKIE, TEST_CSRF)
        client.headers[CSRF_HEADER] = TEST_CSRF
        if subscription is not None:
            client.cookies.set(SUBSCRIPTION_COOKIE_NAME, subscription.serialize())
        return client

    return _sign_in


@pytest.fixture
def active_subscription() -> SubscriptionState:
    return SubscriptionState("active", datetime.now(timezone.utc) + timedelta(days=30))


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    async def _make(email: Optional[str] = None, *, is_admin: bool = False, password: str = "password123") -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            password_hash=hash_password(password),
            is_admin=is_admin,
        )
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_org(session):
    async def _make(owner: User, slug: str = "imobiliaria", members: Optional[list[tuple[User, str]]] = None) -> Organization:
        org = Organization(name=slug.title(), slug=slug, owner_id=owner.id)
        session.add(org)
        await session.flush()
        session.add(OrganizationMember(org_id=org.id, user_id=owner.id, role="owner"))
        for member, role in members or []:
            session.add(OrganizationMember(org_id=org.id, user_id=member.id, role=role))
        await session.flush()
        return org

    return _make


@pytest.fixture
async def catalog(session) -> dict[str, Addon]:
    addons = {
        "flood": Addon(name="Risco de Enchente", slug="flood", description="Análise de risco de enchente"),
        "financiamento": Addon(
            name="Simulador de Financiamento",
            slug="financiamento",
            description="Simulador de financiamento imobiliário",
        ),
    }
    session.add_all(addons.values())
    await session.flush()
    return addons


@pytest.fixture
async def plan(session) -> Plan:
    plan = Plan(name="Plus", slug="plus", description="Acesso completo", price_in_cents=2000)
    session.add(plan)
    await session.flush()
    return plan
