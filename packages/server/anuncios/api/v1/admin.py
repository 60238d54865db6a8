"""
Platform administration endpoints (``users.is_admin`` only).

GET    /api/v1/admin/users/{user_id}/addons              — Every grant of a user
POST   /api/v1/admin/users/{user_id}/addons              — Grant / update
PATCH  /api/v1/admin/users/{user_id}/addons/{slug}       — Enable/disable
DELETE /api/v1/admin/users/{user_id}/addons/{slug}       — Revoke
GET    /api/v1/admin/organizations/{org_id}/addons       — Every grant of an org
POST   /api/v1/admin/organizations/{org_id}/addons       — Grant / update
PATCH  /api/v1/admin/organizations/{org_id}/addons/{slug}
DELETE /api/v1/admin/organizations/{org_id}/addons/{slug}
POST   /api/v1/admin/subscriptions                       — Manual subscription grant
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.core.auth import SessionInfo, require_platform_admin
from anuncios.core.database import get_session
from anuncios.core.errors import NotFoundError
from anuncios.models.user import User
from anuncios.services import addons as addon_service
from anuncios.services import organizations as org_service
from anuncios.services import subscriptions as subscription_service
from anuncios_shared.schemas.addons import (
    AddonGrantRequest,
    AddonToggleRequest,
    EntitlementListResponse,
    EntitlementView,
)
from anuncios_shared.schemas.common import SuccessResponse
from anuncios_shared.schemas.subscriptions import SubscriptionGrantRequest, SubscriptionResponse

router = APIRouter(dependencies=[Depends(require_platform_admin)])


async def _require_user_exists(user_id: uuid.UUID, session: AsyncSession) -> None:
    if await session.get(User, user_id) is None:
        raise NotFoundError("User")


# ---------------------------------------------------------------------------
# User add-ons
# ---------------------------------------------------------------------------

@router.get("/users/{user_id}/addons", response_model=EntitlementListResponse)
async def list_user_grants(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    await _require_user_exists(user_id, session)
    return EntitlementListResponse(addons=await addon_service.list_user_grants(user_id, session))


@router.post("/users/{user_id}/addons", response_model=EntitlementView, status_code=201)
async def grant_user_addon(
    user_id: uuid.UUID,
    body: AddonGrantRequest,
    auth: SessionInfo = Depends(require_platform_admin),
    session: AsyncSession = Depends(get_session),
):
    await _require_user_exists(user_id, session)
    return await addon_service.grant_user_addon(
        user_id,
        body.addon_slug,
        session,
        granted_by=auth.user_id,
        enabled=body.enabled,
        expires_at=body.expires_at,
    )


@router.patch("/users/{user_id}/addons/{slug}", response_model=EntitlementView)
async def toggle_user_addon(
    user_id: uuid.UUID,
    slug: str,
    body: AddonToggleRequest,
    session: AsyncSession = Depends(get_session),
):
    return await addon_service.set_user_addon_enabled(user_id, slug, body.enabled, session)


@router.delete("/users/{user_id}/addons/{slug}", response_model=SuccessResponse)
async def revoke_user_addon(
    user_id: uuid.UUID,
    slug: str,
    session: AsyncSession = Depends(get_session),
):
    await addon_service.revoke_user_addon(user_id, slug, session)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Organization add-ons
# ---------------------------------------------------------------------------

@router.get("/organizations/{org_id}/addons", response_model=EntitlementListResponse)
async def list_org_grants(
    org_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    await org_service.get_org(org_id, session)
    return EntitlementListResponse(addons=await addon_service.list_org_grants(org_id, session))


@router.post("/organizations/{org_id}/addons", response_model=EntitlementView, status_code=201)
async def grant_org_addon(
    org_id: uuid.UUID,
    body: AddonGrantRequest,
    auth: SessionInfo = Depends(require_platform_admin),
    session: AsyncSession = Depends(get_session),
):
    await org_service.get_org(org_id, session)
    return await addon_service.grant_org_addon(
        org_id,
        body.addon_slug,
        session,
        granted_by=auth.user_id,
        enabled=body.enabled,
        expires_at=body.expires_at,
    )


@router.patch("/organizations/{org_id}/addons/{slug}", response_model=EntitlementView)
async def toggle_org_addon(
    org_id: uuid.UUID,
    slug: str,
    body: AddonToggleRequest,
    session: AsyncSession = Depends(get_session),
):
    return await addon_service.set_org_addon_enabled(org_id, slug, body.enabled, session)


@router.delete("/organizations/{org_id}/addons/{slug}", response_model=SuccessResponse)
async def revoke_org_addon(
    org_id: uuid.UUID,
    slug: str,
    session: AsyncSession = Depends(get_session),
):
    await addon_service.revoke_org_addon(org_id, slug, session)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=201)
async def grant_subscription(
    body: SubscriptionGrantRequest,
    auth: SessionInfo = Depends(require_platform_admin),
    session: AsyncSession = Depends(get_session),
):
    sub = await subscription_service.grant_subscription(
        body.user_id,
        body.plan_id,
        body.expires_at,
        session,
        granted_by=auth.user_id,
        notes=body.notes,
    )
    return SubscriptionResponse.model_validate(sub, from_attributes=True)
