"""
Organization service — org CRUD and membership management.

Permission tiers:
- any member may read the organization and its members
- owner/admin may update details, manage members and org add-ons
- only an owner may delete the organization or promote someone to owner
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Optional

import structlog
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from anuncios.core.errors import ConflictError, ForbiddenError, NotFoundError
from anuncios.models.addon import OrganizationAddon
from anuncios.models.collection import Collection
from anuncios.models.listing import Listing
from anuncios.models.organization import Organization
from anuncios.models.organization_member import OrganizationMember
from anuncios.models.user import User
from anuncios_shared.schemas.common import MANAGER_ROLES, OrgRole
from anuncios_shared.schemas.organizations import (
    MemberAddRequest,
    OrgCreateRequest,
    OrgUpdateRequest,
)

log = structlog.get_logger()


async def get_org(org_id: uuid.UUID, session: AsyncSession) -> Organization:
    """Get an org by id; raises 404 if not found."""
    result = await session.execute(select(Organization).where(Organization.id == org_id))
    org = result.scalar_one_or_none()
    if not org:
        raise NotFoundError("Organization")
    return org


async def get_membership(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Optional[OrganizationMember]:
    result = await session.execute(
        select(OrganizationMember).where(
            OrganizationMember.org_id == org_id,
            OrganizationMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def require_org_role(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    session: AsyncSession,
    roles: Optional[Iterable[OrgRole]] = None,
) -> tuple[Organization, OrganizationMember]:
    """Return (org, membership) or raise.

    ``roles=None`` accepts any member.
    """
    org = await get_org(org_id, session)
    membership = await get_membership(org_id, user_id, session)
    if membership is None:
        log.warning("org.not_a_member", org_id=str(org_id), user_id=str(user_id))
        raise ForbiddenError("You are not a member of this organization")

    if roles is not None and OrgRole(membership.role) not in set(roles):
        log.warning(
            "org.role_denied",
            org_id=str(org_id),
            user_id=str(user_id),
            role=membership.role,
        )
        raise ForbiddenError("Insufficient organization role")
    return org, membership


async def list_user_orgs(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List all orgs a user belongs to, with their role."""
    result = await session.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.org_id == Organization.id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.name)
    )
    return [
        {"id": org.id, "name": org.name, "slug": org.slug, "role": role}
        for org, role in result.all()
    ]


async def create_org(
    req: OrgCreateRequest, creator_id: uuid.UUID, session: AsyncSession
) -> Organization:
    """Create an org and make the creator its owner."""
    existing = await session.execute(select(Organization).where(Organization.slug == req.slug))
    if existing.scalar_one_or_none():
        raise ConflictError("Org slug already taken")

    org = Organization(name=req.name, slug=req.slug, owner_id=creator_id)
    session.add(org)
    await session.flush()

    session.add(OrganizationMember(org_id=org.id, user_id=creator_id, role=OrgRole.OWNER.value))
    await session.flush()

    log.info("org.created", org_id=str(org.id), slug=req.slug, creator=str(creator_id))
    return org


async def update_org(
    org_id: uuid.UUID, user_id: uuid.UUID, req: OrgUpdateRequest, session: AsyncSession
) -> Organization:
    org, _ = await require_org_role(org_id, user_id, session, MANAGER_ROLES)

    if req.name is not None:
        org.name = req.name
    org.touch()
    session.add(org)
    await session.flush()

    log.info("org.updated", org_id=str(org.id))
    return org


async def delete_org(org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> None:
    """Delete an org with its memberships, add-on grants and collections (owner only)."""
    org, _ = await require_org_role(org_id, user_id, session, {OrgRole.OWNER})

    collection_ids = select(Collection.id).where(Collection.org_id == org.id)
    await session.execute(delete(Listing).where(Listing.collection_id.in_(collection_ids)))
    await session.execute(delete(Collection).where(Collection.org_id == org.id))
    await session.execute(delete(OrganizationAddon).where(OrganizationAddon.organization_id == org.id))
    await session.execute(delete(OrganizationMember).where(OrganizationMember.org_id == org.id))
    await session.delete(org)
    await session.flush()

    log.info("org.deleted", org_id=str(org_id), by=str(user_id))


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def list_members(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> list[dict]:
    await require_org_role(org_id, user_id, session)
    result = await session.execute(
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.org_id == org_id)
        .order_by(OrganizationMember.joined_at)
    )
    return [
        {
            "user_id": user.id,
            "email": user.email,
            "name": user.name,
            "role": member.role,
            "joined_at": member.joined_at,
        }
        for member, user in result.all()
    ]


def _check_can_assign(requester: OrganizationMember, role: OrgRole) -> None:
    if role is OrgRole.OWNER and requester.role != OrgRole.OWNER.value:
        raise ForbiddenError("Only owners can assign the owner role")


async def add_member(
    org_id: uuid.UUID, requester_id: uuid.UUID, req: MemberAddRequest, session: AsyncSession
) -> dict:
    _, requester = await require_org_role(org_id, requester_id, session, MANAGER_ROLES)
    _check_can_assign(requester, req.role)

    result = await session.execute(select(User).where(User.email == req.email))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User")

    if await get_membership(org_id, user.id, session):
        raise ConflictError("User is already a member of this organization")

    member = OrganizationMember(org_id=org_id, user_id=user.id, role=req.role.value)
    session.add(member)
    await session.flush()

    log.info("org.member_added", org_id=str(org_id), user_id=str(user.id), role=req.role.value)
    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "role": member.role,
        "joined_at": member.joined_at,
    }


async def _owner_count(org_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMember)
        .where(
            OrganizationMember.org_id == org_id,
            OrganizationMember.role == OrgRole.OWNER.value,
        )
    )
    return result.scalar_one()


async def update_member_role(
    org_id: uuid.UUID,
    requester_id: uuid.UUID,
    target_user_id: uuid.UUID,
    role: OrgRole,
    session: AsyncSession,
) -> OrganizationMember:
    _, requester = await require_org_role(org_id, requester_id, session, MANAGER_ROLES)
    _check_can_assign(requester, role)

    target = await get_membership(org_id, target_user_id, session)
    if not target:
        raise NotFoundError("Member")

    if target.role == OrgRole.OWNER.value and requester.role != OrgRole.OWNER.value:
        raise ForbiddenError("Only owners can change an owner's role")

    if (
        target.role == OrgRole.OWNER.value
        and role is not OrgRole.OWNER
        and await _owner_count(org_id, session) == 1
    ):
        raise ConflictError("An organization must keep at least one owner")

    target.role = role.value
    session.add(target)
    await session.flush()

    log.info("org.member_role_changed", org_id=str(org_id), user_id=str(target_user_id), role=role.value)
    return target


async def remove_member(
    org_id: uuid.UUID,
    requester_id: uuid.UUID,
    target_user_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    """Managers may remove others; any member may leave."""
    if requester_id == target_user_id:
        _, requester = await require_org_role(org_id, requester_id, session)
    else:
        _, requester = await require_org_role(org_id, requester_id, session, MANAGER_ROLES)

    target = await get_membership(org_id, target_user_id, session)
    if not target:
        raise NotFoundError("Member")

    if target.role == OrgRole.OWNER.value:
        if requester.role != OrgRole.OWNER.value:
            raise ForbiddenError("Only owners can remove an owner")
        if await _owner_count(org_id, session) == 1:
            raise ConflictError("An organization must keep at least one owner")

    await session.delete(target)
    await session.flush()

    log.info("org.member_removed", org_id=str(org_id), user_id=str(target_user_id), by=str(requester_id))
