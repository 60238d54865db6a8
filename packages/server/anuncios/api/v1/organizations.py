"""
Organization API endpoints.

GET    /api/v1/organizations                              — Orgs for the caller
POST   /api/v1/organizations                              — Create (caller becomes owner)
GET    /api/v1/organizations/{id}                         — Org details (any member)
PATCH  /api/v1/organizations/{id}                         — Rename (owner/admin)
DELETE /api/v1/organizations/{id}                         — Delete (owner)
GET    /api/v1/organizations/{id}/members                 — List members
POST   /api/v1/organizations/{id}/members                 — Add member by e-mail
PATCH  /api/v1/organizations/{id}/members/{user_id}       — Change role
DELETE /api/v1/organizations/{id}/members/{user_id}       — Remove / leave
GET    /api/v1/organizations/{id}/addons                  — Active org add-ons
PATCH  /api/v1/organizations/{id}/addons/{slug}           — Toggle (owner/admin)
DELETE /api/v1/organizations/{id}/addons/{slug}           — Revoke (owner/admin)

Everything here is behind the ``organizations`` feature flag.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.core.auth import SessionInfo, require_user
from anuncios.core.database import get_session
from anuncios.core.flags import require_flag
from anuncios.services import addons as addon_service
from anuncios.services import organizations as org_service
from anuncios_shared.schemas.addons import AddonToggleRequest, EntitlementListResponse, EntitlementView
from anuncios_shared.schemas.common import MANAGER_ROLES, SuccessResponse
from anuncios_shared.schemas.organizations import (
    MemberAddRequest,
    MemberListResponse,
    MemberResponse,
    MemberUpdateRequest,
    OrgCreateRequest,
    OrgListResponse,
    OrgResponse,
    OrgUpdateRequest,
)

router = APIRouter(dependencies=[Depends(require_flag("organizations"))])


def _org_response(org, role=None) -> OrgResponse:
    return OrgResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        owner_id=org.owner_id,
        created_at=org.created_at,
        updated_at=org.updated_at,
        user_role=role,
    )


@router.get("", response_model=OrgListResponse)
async def list_orgs(
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to."""
    items = await org_service.list_user_orgs(auth.user_id, session)
    return OrgListResponse(data=items)


@router.post("", response_model=OrgResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its owner."""
    org = await org_service.create_org(body, auth.user_id, session)
    return _org_response(org, "owner")


@router.get("/{org_id}", response_model=OrgResponse)
async def get_org(
    org_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    org, membership = await org_service.require_org_role(org_id, auth.user_id, session)
    return _org_response(org, membership.role)


@router.patch("/{org_id}", response_model=OrgResponse)
async def update_org(
    org_id: uuid.UUID,
    body: OrgUpdateRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.update_org(org_id, auth.user_id, body, session)
    return _org_response(org)


@router.delete("/{org_id}", response_model=SuccessResponse)
async def delete_org(
    org_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.delete_org(org_id, auth.user_id, session)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{org_id}/members", response_model=MemberListResponse)
async def list_members(
    org_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    items = await org_service.list_members(org_id, auth.user_id, session)
    return MemberListResponse(data=items)


@router.post("/{org_id}/members", response_model=MemberResponse, status_code=201)
async def add_member(
    org_id: uuid.UUID,
    body: MemberAddRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    item = await org_service.add_member(org_id, auth.user_id, body, session)
    return MemberResponse(**item)


@router.patch("/{org_id}/members/{user_id}", response_model=SuccessResponse)
async def update_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    body: MemberUpdateRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.update_member_role(org_id, auth.user_id, user_id, body.role, session)
    return SuccessResponse()


@router.delete("/{org_id}/members/{user_id}", response_model=SuccessResponse)
async def remove_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.remove_member(org_id, auth.user_id, user_id, session)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Organization add-ons
# ---------------------------------------------------------------------------

@router.get("/{org_id}/addons", response_model=EntitlementListResponse)
async def list_org_addons(
    org_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.require_org_role(org_id, auth.user_id, session)
    addons = await addon_service.active_org_addons(org_id, session)
    return EntitlementListResponse(addons=addons)


@router.patch("/{org_id}/addons/{slug}", response_model=EntitlementView)
async def toggle_org_addon(
    org_id: uuid.UUID,
    slug: str,
    body: AddonToggleRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.require_org_role(org_id, auth.user_id, session, MANAGER_ROLES)
    return await addon_service.set_org_addon_enabled(org_id, slug, body.enabled, session)


@router.delete("/{org_id}/addons/{slug}", response_model=SuccessResponse)
async def revoke_org_addon(
    org_id: uuid.UUID,
    slug: str,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.require_org_role(org_id, auth.user_id, session, MANAGER_ROLES)
    await addon_service.revoke_org_addon(org_id, slug, session)
    return SuccessResponse()
