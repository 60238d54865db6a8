"""
Collection endpoints.

GET    /api/v1/collections                          — Personal + org collections
POST   /api/v1/collections                          — Create (personal or org)
GET    /api/v1/collections/{id}                     — Read with listing count
PATCH  /api/v1/collections/{id}                     — Rename / visibility / default
DELETE /api/v1/collections/{id}                     — Delete with its listings
POST   /api/v1/collections/{id}/copy                — Copy into a personal or org scope
POST   /api/v1/collections/{id}/share               — Issue share token
DELETE /api/v1/collections/{id}/share               — Revoke share token
GET    /api/v1/collections/{id}/listings            — List listings
POST   /api/v1/collections/{id}/listings            — Add listing
GET    /api/v1/collections/{id}/listings/{lid}      — Read one listing
PATCH  /api/v1/collections/{id}/listings/{lid}      — Merge into a listing payload
DELETE /api/v1/collections/{id}/listings/{lid}      — Remove listing

Collections the caller cannot see answer 404, same as missing ones.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.core.auth import SessionInfo, require_user
from anuncios.core.database import get_session
from anuncios.core.flags import require_flag
from anuncios.services import collections as collection_service
from anuncios_shared.schemas.collections import (
    CollectionCopyRequest,
    CollectionCopyResponse,
    CollectionCreateRequest,
    CollectionListResponse,
    CollectionResponse,
    CollectionUpdateRequest,
    ListingCreateRequest,
    ListingListResponse,
    ListingResponse,
    ListingUpdateRequest,
    ShareRequest,
    ShareResponse,
)
from anuncios_shared.schemas.common import SuccessResponse

router = APIRouter()


@router.get("", response_model=CollectionListResponse)
async def list_collections(
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    items = await collection_service.list_collections(auth.user_id, session)
    return CollectionListResponse(data=items)


@router.post("", response_model=CollectionResponse, status_code=201)
async def create_collection(
    body: CollectionCreateRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    collection = await collection_service.create_collection(body, auth.user_id, session)
    return CollectionResponse(**collection_service.to_response_dict(collection, listings_count=0))


@router.get("/{collection_id}", response_model=CollectionResponse)
async def get_collection(
    collection_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return await collection_service.get_collection(collection_id, auth.user_id, session)


@router.patch("/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: uuid.UUID,
    body: CollectionUpdateRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    collection = await collection_service.update_collection(collection_id, auth.user_id, body, session)
    return CollectionResponse(**collection_service.to_response_dict(collection))


@router.delete("/{collection_id}", response_model=SuccessResponse)
async def delete_collection(
    collection_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await collection_service.delete_collection(collection_id, auth.user_id, session)
    return SuccessResponse()


@router.post("/{collection_id}/copy", response_model=CollectionCopyResponse, status_code=201)
async def copy_collection(
    collection_id: uuid.UUID,
    body: CollectionCopyRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    collection, copied = await collection_service.copy_collection(collection_id, auth.user_id, body, session)
    return CollectionCopyResponse(
        collection=CollectionResponse(**collection_service.to_response_dict(collection, listings_count=copied)),
        copied_listings_count=copied,
    )


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------

@router.post(
    "/{collection_id}/share",
    response_model=ShareResponse,
    dependencies=[Depends(require_flag("public_collections"))],
)
async def share_collection(
    collection_id: uuid.UUID,
    body: Optional[ShareRequest] = None,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    body = body or ShareRequest()
    collection = await collection_service.share_collection(
        collection_id, auth.user_id, session, is_public=body.is_public
    )
    return ShareResponse(
        share_token=collection.share_token,
        share_path=collection_service.share_path(collection.share_token),
        is_public=collection.is_public,
    )


@router.delete("/{collection_id}/share", response_model=CollectionResponse)
async def unshare_collection(
    collection_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    collection = await collection_service.unshare_collection(collection_id, auth.user_id, session)
    return CollectionResponse(**collection_service.to_response_dict(collection))


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

@router.get("/{collection_id}/listings", response_model=ListingListResponse)
async def list_listings(
    collection_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    listings = await collection_service.list_listings(collection_id, auth.user_id, session)
    return ListingListResponse(data=[ListingResponse.model_validate(item, from_attributes=True) for item in listings])


@router.post("/{collection_id}/listings", response_model=ListingResponse, status_code=201)
async def add_listing(
    collection_id: uuid.UUID,
    body: ListingCreateRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    listing = await collection_service.add_listing(collection_id, auth.user_id, body.data, session)
    return ListingResponse.model_validate(listing, from_attributes=True)


@router.get("/{collection_id}/listings/{listing_id}", response_model=ListingResponse)
async def get_listing(
    collection_id: uuid.UUID,
    listing_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    listing = await collection_service.get_listing(collection_id, listing_id, auth.user_id, session)
    return ListingResponse.model_validate(listing, from_attributes=True)


@router.patch("/{collection_id}/listings/{listing_id}", response_model=ListingResponse)
async def update_listing(
    collection_id: uuid.UUID,
    listing_id: uuid.UUID,
    body: ListingUpdateRequest,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    listing = await collection_service.update_listing(
        collection_id, listing_id, auth.user_id, body.data, session
    )
    return ListingResponse.model_validate(listing, from_attributes=True)


@router.delete("/{collection_id}/listings/{listing_id}", response_model=SuccessResponse)
async def delete_listing(
    collection_id: uuid.UUID,
    listing_id: uuid.UUID,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    await collection_service.delete_listing(collection_id, listing_id, auth.user_id, session)
    return SuccessResponse()
