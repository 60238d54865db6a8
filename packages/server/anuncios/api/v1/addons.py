"""
Add-on endpoints for the signed-in user.

GET    /api/v1/addons                   — Add-on catalog
GET    /api/v1/user/addons              — Caller's active add-ons
PATCH  /api/v1/user/addons/{slug}       — Enable/disable an own grant
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.core.auth import SessionInfo, require_user
from anuncios.core.database import get_session
from anuncios.services import addons as addon_service
from anuncios_shared.schemas.addons import (
    AddonCatalogResponse,
    AddonInfo,
    AddonToggleRequest,
    EntitlementListResponse,
    EntitlementView,
)

catalog_router = APIRouter()
user_router = APIRouter()


@catalog_router.get("", response_model=AddonCatalogResponse)
async def list_catalog(
    _auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    addons = await addon_service.list_catalog(session)
    return AddonCatalogResponse(
        addons=[AddonInfo.model_validate(addon, from_attributes=True) for addon in addons]
    )


@user_router.get("", response_model=EntitlementListResponse)
async def list_my_addons(
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Only enabled, unexpired grants are returned."""
    addons = await addon_service.active_user_addons(auth.user_id, session)
    return EntitlementListResponse(addons=addons)


@user_router.patch("/{slug}", response_model=EntitlementView)
async def toggle_my_addon(
    slug: str,
    body: AddonToggleRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return await addon_service.set_user_addon_enabled(auth.user_id, slug, body.enabled, session)
