"""
Collection service: access resolution, CRUD, copying, sharing, public
browsing and listings.

A collection belongs either to a user (personal) or to an organization,
never both. Access rules:

- personal collection: only its owner, who may also edit it
- org collection: any member may read; owner/admin may edit
- everyone else is denied

Denied and missing collections are indistinguishable to callers: both
surface as ``NotFoundError("Collection")``. The distinction is kept in the
logs only.
"""

from __future__ import annotations

import secrets
import string
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from anuncios.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from anuncios.models.collection import Collection
from anuncios.models.listing import Listing
from anuncios.models.user import User
from anuncios.models.organization_member import OrganizationMember
from anuncios.services.organizations import get_membership, require_org_role
from anuncios_shared.schemas.common import MANAGER_ROLES, OrgRole
from anuncios_shared.schemas.collections import (
    CollectionCopyRequest,
    CollectionCreateRequest,
    CollectionUpdateRequest,
)

log = structlog.get_logger()

SHARE_TOKEN_LENGTH = 16
_SHARE_TOKEN_ALPHABET = string.ascii_letters + string.digits


class AccessOutcome(str, Enum):
    GRANTED = "granted"
    NOT_FOUND = "not_found"
    DENIED = "denied"


@dataclass(frozen=True)
class CollectionAccess:
    outcome: AccessOutcome
    collection: Optional[Collection] = None
    is_org_collection: bool = False
    member_role: Optional[OrgRole] = None

    @property
    def found(self) -> bool:
        return self.outcome is AccessOutcome.GRANTED

    @property
    def can_edit(self) -> bool:
        if not self.found:
            return False
        if not self.is_org_collection:
            return True
        return self.member_role in MANAGER_ROLES


_NOT_FOUND = CollectionAccess(AccessOutcome.NOT_FOUND)
_DENIED = CollectionAccess(AccessOutcome.DENIED)


async def resolve_access(
    collection_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> CollectionAccess:
    """Resolve what ``user_id`` may do with a collection. Read-only."""
    collection = await session.get(Collection, collection_id)
    if collection is None:
        return _NOT_FOUND

    if collection.org_id is None:
        if collection.user_id == user_id:
            return CollectionAccess(AccessOutcome.GRANTED, collection)
        return _DENIED

    membership = await get_membership(collection.org_id, user_id, session)
    if membership is None:
        return _DENIED
    return CollectionAccess(
        AccessOutcome.GRANTED,
        collection,
        is_org_collection=True,
        member_role=OrgRole(membership.role),
    )


async def require_collection_access(
    collection_id: uuid.UUID,
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    write: bool = False,
) -> CollectionAccess:
    access = await resolve_access(collection_id, user_id, session)
    if access.outcome is AccessOutcome.NOT_FOUND:
        log.info("collection.not_found", collection_id=str(collection_id), user_id=str(user_id))
        raise NotFoundError("Collection")
    if access.outcome is AccessOutcome.DENIED:
        log.warning("collection.access_denied", collection_id=str(collection_id), user_id=str(user_id))
        raise NotFoundError("Collection")

    if write and not access.can_edit:
        log.warning(
            "collection.edit_denied",
            collection_id=str(collection_id),
            user_id=str(user_id),
            role=access.member_role.value if access.member_role else None,
        )
        raise ForbiddenError("You don't have permission to modify this collection")
    return access


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def generate_share_token() -> str:
    return "".join(secrets.choice(_SHARE_TOKEN_ALPHABET) for _ in range(SHARE_TOKEN_LENGTH))


def share_path(token: str) -> str:
    return f"/anuncios?share={token}"


def _scope_filter(collection: Collection):
    if collection.org_id is not None:
        return Collection.org_id == collection.org_id
    return Collection.user_id == collection.user_id


async def _listings_count(collection_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Listing).where(Listing.collection_id == collection_id)
    )
    return result.scalar_one()


def to_response_dict(
    collection: Collection,
    *,
    listings_count: Optional[int] = None,
    user_role: Optional[OrgRole] = None,
) -> dict:
    return {
        "id": collection.id,
        "name": collection.name,
        "user_id": collection.user_id,
        "org_id": collection.org_id,
        "is_public": collection.is_public,
        "is_default": collection.is_default,
        "share_token": collection.share_token,
        "created_at": collection.created_at,
        "updated_at": collection.updated_at,
        "listings_count": listings_count,
        "user_role": user_role,
    }


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

async def list_collections(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """Personal collections plus those of every org the user belongs to."""
    result = await session.execute(
        select(Collection, OrganizationMember.role)
        .outerjoin(
            OrganizationMember,
            (OrganizationMember.org_id == Collection.org_id)
            & (OrganizationMember.user_id == user_id),
        )
        .where(or_(Collection.user_id == user_id, OrganizationMember.id.is_not(None)))
        .order_by(Collection.created_at)
    )
    return [
        to_response_dict(collection, user_role=OrgRole(role) if role else None)
        for collection, role in result.all()
    ]


async def create_collection(
    req: CollectionCreateRequest, user_id: uuid.UUID, session: AsyncSession
) -> Collection:
    if req.org_id is not None:
        await require_org_role(req.org_id, user_id, session)
        collection = Collection(name=req.name, org_id=req.org_id, is_public=req.is_public)
    else:
        collection = Collection(name=req.name, user_id=user_id, is_public=req.is_public)

    existing_default = await session.execute(
        select(Collection.id).where(_scope_filter(collection), Collection.is_default.is_(True)).limit(1)
    )
    collection.is_default = existing_default.scalar_one_or_none() is None

    session.add(collection)
    await session.flush()

    log.info(
        "collection.created",
        collection_id=str(collection.id),
        user_id=str(user_id),
        org_id=str(req.org_id) if req.org_id else None,
    )
    return collection


async def get_collection(
    collection_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> dict:
    access = await require_collection_access(collection_id, user_id, session)
    count = await _listings_count(collection_id, session)
    return to_response_dict(access.collection, listings_count=count, user_role=access.member_role)


async def update_collection(
    collection_id: uuid.UUID,
    user_id: uuid.UUID,
    req: CollectionUpdateRequest,
    session: AsyncSession,
) -> Collection:
    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationFailedError("No valid fields to update")

    access = await require_collection_access(collection_id, user_id, session, write=True)
    collection = access.collection

    if changes.get("is_default") is False:
        raise ValidationFailedError("Set another collection as default instead")

    if changes.get("is_default"):
        # One default per scope
        await session.execute(
            update(Collection)
            .where(_scope_filter(collection), Collection.id != collection.id)
            .values(is_default=False)
        )

    for field, value in changes.items():
        setattr(collection, field, value)
    collection.touch()
    session.add(collection)
    await session.flush()

    log.info("collection.updated", collection_id=str(collection.id), fields=sorted(changes))
    return collection


async def delete_collection(
    collection_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> None:
    access = await require_collection_access(collection_id, user_id, session, write=True)
    collection = access.collection

    successor: Optional[Collection] = None
    if collection.is_default:
        result = await session.execute(
            select(Collection)
            .where(_scope_filter(collection), Collection.id != collection.id)
            .order_by(Collection.created_at)
            .limit(1)
        )
        successor = result.scalar_one_or_none()
        if successor is None:
            raise ValidationFailedError("Cannot delete the only default collection")

    await session.execute(delete(Listing).where(Listing.collection_id == collection.id))
    await session.delete(collection)

    if successor is not None:
        successor.is_default = True
        session.add(successor)
    await session.flush()

    log.info(
        "collection.deleted",
        collection_id=str(collection_id),
        user_id=str(user_id),
        promoted=str(successor.id) if successor else None,
    )


async def copy_collection(
    collection_id: uuid.UUID,
    user_id: uuid.UUID,
    req: CollectionCopyRequest,
    session: AsyncSession,
) -> tuple[Collection, int]:
    """Copy a readable collection into the caller's personal scope or an org they manage.

    The copy starts private and never becomes the default.
    """
    access = await require_collection_access(collection_id, user_id, session)
    source = access.collection

    name = req.name or f"{source.name} (cópia)"
    if req.target_org_id is not None:
        await require_org_role(req.target_org_id, user_id, session, roles=MANAGER_ROLES)
        target = Collection(name=name, org_id=req.target_org_id)
    else:
        target = Collection(name=name, user_id=user_id)
    session.add(target)
    await session.flush()

    copied = 0
    if req.include_listings:
        result = await session.execute(
            select(Listing).where(Listing.collection_id == source.id).order_by(Listing.created_at)
        )
        for listing in result.scalars().all():
            session.add(Listing(collection_id=target.id, data=dict(listing.data)))
            copied += 1
        await session.flush()

    log.info(
        "collection.copied",
        source_id=str(source.id),
        collection_id=str(target.id),
        target_org_id=str(req.target_org_id) if req.target_org_id else None,
        listings=copied,
    )
    return target, copied


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------

async def share_collection(
    collection_id: uuid.UUID,
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    is_public: bool = True,
) -> Collection:
    """Issue a share token; an existing token is kept."""
    access = await require_collection_access(collection_id, user_id, session, write=True)
    collection = access.collection

    if not collection.share_token:
        collection.share_token = generate_share_token()
    collection.is_public = is_public
    collection.touch()
    session.add(collection)
    await session.flush()

    log.info("collection.shared", collection_id=str(collection.id), is_public=is_public)
    return collection


async def unshare_collection(
    collection_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Collection:
    access = await require_collection_access(collection_id, user_id, session, write=True)
    collection = access.collection

    collection.share_token = None
    collection.is_public = False
    collection.touch()
    session.add(collection)
    await session.flush()

    log.info("collection.unshared", collection_id=str(collection.id))
    return collection


async def get_shared_collection(token: str, session: AsyncSession) -> tuple[Collection, list[Listing]]:
    """Public read by share token. No session required."""
    result = await session.execute(select(Collection).where(Collection.share_token == token))
    collection = result.scalar_one_or_none()
    if collection is None:
        raise NotFoundError("Shared collection")
    if not collection.is_public:
        raise ForbiddenError("This collection is no longer shared")

    listings = await session.execute(
        select(Listing).where(Listing.collection_id == collection.id).order_by(Listing.created_at)
    )
    return collection, list(listings.scalars().all())


async def list_public_collections(session: AsyncSession) -> list[dict]:
    """Every public collection, newest change first, with owner name and listing count."""
    listings_count = (
        select(func.count())
        .select_from(Listing)
        .where(Listing.collection_id == Collection.id)
        .correlate(Collection)
        .scalar_subquery()
    )
    result = await session.execute(
        select(Collection, User.name, listings_count)
        .outerjoin(User, User.id == Collection.user_id)
        .where(Collection.is_public.is_(True))
        .order_by(Collection.updated_at.desc())
    )
    return [
        {**to_response_dict(collection, listings_count=count), "owner_name": owner_name}
        for collection, owner_name, count in result.all()
    ]


async def get_public_collection(
    collection_id: uuid.UUID, session: AsyncSession
) -> tuple[dict, list[Listing]]:
    """Public read by id. Private collections answer 404 like missing ones."""
    result = await session.execute(
        select(Collection, User.name)
        .outerjoin(User, User.id == Collection.user_id)
        .where(Collection.id == collection_id, Collection.is_public.is_(True))
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("Public collection")
    collection, owner_name = row

    listings = await session.execute(
        select(Listing).where(Listing.collection_id == collection.id).order_by(Listing.created_at.desc())
    )
    items = list(listings.scalars().all())
    return (
        {**to_response_dict(collection, listings_count=len(items)), "owner_name": owner_name},
        items,
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

async def list_listings(
    collection_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> list[Listing]:
    await require_collection_access(collection_id, user_id, session)
    result = await session.execute(
        select(Listing).where(Listing.collection_id == collection_id).order_by(Listing.created_at)
    )
    return list(result.scalars().all())


async def add_listing(
    collection_id: uuid.UUID, user_id: uuid.UUID, data: dict, session: AsyncSession
) -> Listing:
    await require_collection_access(collection_id, user_id, session, write=True)
    listing = Listing(collection_id=collection_id, data=data)
    session.add(listing)
    await session.flush()

    log.info("listing.created", listing_id=str(listing.id), collection_id=str(collection_id))
    return listing


async def _get_listing_in(
    collection_id: uuid.UUID, listing_id: uuid.UUID, session: AsyncSession
) -> Listing:
    listing = await session.get(Listing, listing_id)
    if listing is None or listing.collection_id != collection_id:
        raise NotFoundError("Listing")
    return listing


async def get_listing(
    collection_id: uuid.UUID,
    listing_id: uuid.UUID,
    user_id: uuid.UUID,
    session: AsyncSession,
) -> Listing:
    await require_collection_access(collection_id, user_id, session)
    return await _get_listing_in(collection_id, listing_id, session)


async def update_listing(
    collection_id: uuid.UUID,
    listing_id: uuid.UUID,
    user_id: uuid.UUID,
    data: dict,
    session: AsyncSession,
) -> Listing:
    """Merge ``data`` into the listing's payload (top-level keys replace)."""
    if not data:
        raise ValidationFailedError("Update data is required")

    await require_collection_access(collection_id, user_id, session, write=True)
    listing = await _get_listing_in(collection_id, listing_id, session)

    listing.data = {**listing.data, **data}
    listing.touch()
    session.add(listing)
    await session.flush()

    log.info(
        "listing.updated",
        listing_id=str(listing.id),
        collection_id=str(collection_id),
        fields=sorted(data),
    )
    return listing


async def delete_listing(
    collection_id: uuid.UUID,
    listing_id: uuid.UUID,
    user_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    await require_collection_access(collection_id, user_id, session, write=True)
    listing = await _get_listing_in(collection_id, listing_id, session)

    await session.delete(listing)
    await session.flush()

    log.info("listing.deleted", listing_id=str(listing_id), collection_id=str(collection_id))
