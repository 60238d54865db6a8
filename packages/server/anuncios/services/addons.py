"""
Add-on entitlement service.

A grant is active when it is enabled and has not expired:

    enabled AND (expires_at IS NULL OR expires_at > now)

The filter runs in SQL; results are enriched from the ``addons`` catalog.
Nothing is cached, so a revoked or disabled grant stops applying on the next
request.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Union

import structlog
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from anuncios.core.errors import NotFoundError
from anuncios.core.subscription import ensure_utc, utcnow
from anuncios.models.addon import Addon, OrganizationAddon, UserAddon
from anuncios_shared.schemas.addons import AddonInfo, EntitlementView

log = structlog.get_logger()

Grant = Union[UserAddon, OrganizationAddon]


def _active(model, now: datetime):
    return (
        model.enabled.is_(True),
        or_(model.expires_at.is_(None), model.expires_at > now),
    )


def _subject_id(grant: Grant) -> uuid.UUID:
    if isinstance(grant, OrganizationAddon):
        return grant.organization_id
    return grant.user_id


def _to_view(grant: Grant, catalog: dict[str, Addon]) -> EntitlementView:
    addon = catalog.get(grant.addon_slug)
    return EntitlementView(
        id=grant.id,
        subject_id=_subject_id(grant),
        addon_slug=grant.addon_slug,
        enabled=grant.enabled,
        granted_at=ensure_utc(grant.granted_at),
        granted_by=grant.granted_by,
        expires_at=ensure_utc(grant.expires_at) if grant.expires_at else None,
        addon=AddonInfo.model_validate(addon, from_attributes=True) if addon else None,
    )


async def _enrich(grants: list[Grant], session: AsyncSession) -> list[EntitlementView]:
    if not grants:
        return []
    slugs = {g.addon_slug for g in grants}
    result = await session.execute(select(Addon).where(Addon.slug.in_(slugs)))
    catalog = {addon.slug: addon for addon in result.scalars().all()}
    return [_to_view(g, catalog) for g in grants]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

async def list_catalog(session: AsyncSession) -> list[Addon]:
    result = await session.execute(select(Addon).order_by(Addon.name))
    return list(result.scalars().all())


async def get_catalog_addon(slug: str, session: AsyncSession) -> Addon:
    result = await session.execute(select(Addon).where(Addon.slug == slug))
    addon = result.scalar_one_or_none()
    if addon is None:
        raise NotFoundError("Addon")
    return addon


# ---------------------------------------------------------------------------
# Active entitlements
# ---------------------------------------------------------------------------

async def active_user_addons(
    user_id: uuid.UUID, session: AsyncSession, now: Optional[datetime] = None
) -> list[EntitlementView]:
    now = now or utcnow()
    result = await session.execute(
        select(UserAddon)
        .where(UserAddon.user_id == user_id, *_active(UserAddon, now))
        .order_by(UserAddon.granted_at)
    )
    return await _enrich(list(result.scalars().all()), session)


async def active_org_addons(
    org_id: uuid.UUID, session: AsyncSession, now: Optional[datetime] = None
) -> list[EntitlementView]:
    now = now or utcnow()
    result = await session.execute(
        select(OrganizationAddon)
        .where(OrganizationAddon.organization_id == org_id, *_active(OrganizationAddon, now))
        .order_by(OrganizationAddon.granted_at)
    )
    return await _enrich(list(result.scalars().all()), session)


async def has_addon_access(
    user_id: uuid.UUID,
    slug: str,
    session: AsyncSession,
    org_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Personal grant first, then the organization's grant when ``org_id`` is given."""
    now = now or utcnow()
    result = await session.execute(
        select(UserAddon.id)
        .where(UserAddon.user_id == user_id, UserAddon.addon_slug == slug, *_active(UserAddon, now))
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        return True

    if org_id is None:
        return False

    result = await session.execute(
        select(OrganizationAddon.id)
        .where(
            OrganizationAddon.organization_id == org_id,
            OrganizationAddon.addon_slug == slug,
            *_active(OrganizationAddon, now),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


# ---------------------------------------------------------------------------
# Admin views (every grant, including disabled and expired)
# ---------------------------------------------------------------------------

async def list_user_grants(user_id: uuid.UUID, session: AsyncSession) -> list[EntitlementView]:
    result = await session.execute(
        select(UserAddon).where(UserAddon.user_id == user_id).order_by(UserAddon.granted_at)
    )
    return await _enrich(list(result.scalars().all()), session)


async def list_org_grants(org_id: uuid.UUID, session: AsyncSession) -> list[EntitlementView]:
    result = await session.execute(
        select(OrganizationAddon)
        .where(OrganizationAddon.organization_id == org_id)
        .order_by(OrganizationAddon.granted_at)
    )
    return await _enrich(list(result.scalars().all()), session)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def _get_user_grant(user_id: uuid.UUID, slug: str, session: AsyncSession) -> Optional[UserAddon]:
    result = await session.execute(
        select(UserAddon).where(UserAddon.user_id == user_id, UserAddon.addon_slug == slug)
    )
    return result.scalar_one_or_none()


async def _get_org_grant(
    org_id: uuid.UUID, slug: str, session: AsyncSession
) -> Optional[OrganizationAddon]:
    result = await session.execute(
        select(OrganizationAddon).where(
            OrganizationAddon.organization_id == org_id,
            OrganizationAddon.addon_slug == slug,
        )
    )
    return result.scalar_one_or_none()


def _apply_grant(
    grant: Grant,
    *,
    enabled: bool,
    expires_at: Optional[datetime],
    granted_by: Optional[uuid.UUID],
) -> None:
    grant.enabled = enabled
    grant.expires_at = ensure_utc(expires_at) if expires_at else None
    grant.granted_by = granted_by
    grant.granted_at = utcnow()


async def grant_user_addon(
    user_id: uuid.UUID,
    slug: str,
    session: AsyncSession,
    *,
    granted_by: Optional[uuid.UUID] = None,
    enabled: bool = True,
    expires_at: Optional[datetime] = None,
) -> EntitlementView:
    """Create or update the (user, slug) grant."""
    addon = await get_catalog_addon(slug, session)

    grant = await _get_user_grant(user_id, slug, session)
    if grant is None:
        grant = UserAddon(user_id=user_id, addon_slug=slug)
    _apply_grant(grant, enabled=enabled, expires_at=expires_at, granted_by=granted_by)
    session.add(grant)
    await session.flush()

    log.info(
        "addon.granted",
        subject="user",
        user_id=str(user_id),
        addon=slug,
        enabled=enabled,
        expires_at=expires_at.isoformat() if expires_at else None,
        by=str(granted_by) if granted_by else None,
    )
    return _to_view(grant, {slug: addon})


async def grant_org_addon(
    org_id: uuid.UUID,
    slug: str,
    session: AsyncSession,
    *,
    granted_by: Optional[uuid.UUID] = None,
    enabled: bool = True,
    expires_at: Optional[datetime] = None,
) -> EntitlementView:
    """Create or update the (organization, slug) grant."""
    addon = await get_catalog_addon(slug, session)

    grant = await _get_org_grant(org_id, slug, session)
    if grant is None:
        grant = OrganizationAddon(organization_id=org_id, addon_slug=slug)
    _apply_grant(grant, enabled=enabled, expires_at=expires_at, granted_by=granted_by)
    session.add(grant)
    await session.flush()

    log.info(
        "addon.granted",
        subject="organization",
        org_id=str(org_id),
        addon=slug,
        enabled=enabled,
        expires_at=expires_at.isoformat() if expires_at else None,
        by=str(granted_by) if granted_by else None,
    )
    return _to_view(grant, {slug: addon})


async def set_user_addon_enabled(
    user_id: uuid.UUID, slug: str, enabled: bool, session: AsyncSession
) -> EntitlementView:
    grant = await _get_user_grant(user_id, slug, session)
    if grant is None:
        raise NotFoundError("Addon grant")
    grant.enabled = enabled
    session.add(grant)
    await session.flush()

    log.info("addon.toggled", subject="user", user_id=str(user_id), addon=slug, enabled=enabled)
    return (await _enrich([grant], session))[0]


async def set_org_addon_enabled(
    org_id: uuid.UUID, slug: str, enabled: bool, session: AsyncSession
) -> EntitlementView:
    grant = await _get_org_grant(org_id, slug, session)
    if grant is None:
        raise NotFoundError("Addon grant")
    grant.enabled = enabled
    session.add(grant)
    await session.flush()

    log.info("addon.toggled", subject="organization", org_id=str(org_id), addon=slug, enabled=enabled)
    return (await _enrich([grant], session))[0]


async def revoke_user_addon(user_id: uuid.UUID, slug: str, session: AsyncSession) -> None:
    grant = await _get_user_grant(user_id, slug, session)
    if grant is None:
        raise NotFoundError("Addon grant")
    await session.delete(grant)
    await session.flush()

    log.info("addon.revoked", subject="user", user_id=str(user_id), addon=slug)


async def revoke_org_addon(org_id: uuid.UUID, slug: str, session: AsyncSession) -> None:
    grant = await _get_org_grant(org_id, slug, session)
    if grant is None:
        raise NotFoundError("Addon grant")
    await session.delete(grant)
    await session.flush()

    log.info("addon.revoked", subject="organization", org_id=str(org_id), addon=slug)
