"""
Collections readable without a session.

GET /api/v1/shared/{token}                — Shared collection by share token
GET /api/v1/collections/public            — Public collection catalog
GET /api/v1/collections/public/{id}       — Public collection with its listings

Both routers sit behind the ``public_collections`` flag.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.core.database import get_session
from anuncios.core.flags import require_flag
from anuncios.services import collections as collection_service
from anuncios_shared.schemas.collections import (
    ListingResponse,
    PublicCollectionDetailResponse,
    PublicCollectionListResponse,
    PublicCollectionResponse,
    SharedCollectionResponse,
)

router = APIRouter(dependencies=[Depends(require_flag("public_collections"))])
public_router = APIRouter(dependencies=[Depends(require_flag("public_collections"))])


@router.get("/{token}", response_model=SharedCollectionResponse)
async def get_shared_collection(
    token: str,
    session: AsyncSession = Depends(get_session),
):
    collection, listings = await collection_service.get_shared_collection(token, session)
    return SharedCollectionResponse(
        id=collection.id,
        name=collection.name,
        listings=[ListingResponse.model_validate(item, from_attributes=True) for item in listings],
    )


@public_router.get("", response_model=PublicCollectionListResponse)
async def list_public_collections(session: AsyncSession = Depends(get_session)):
    items = await collection_service.list_public_collections(session)
    return PublicCollectionListResponse(data=items)


@public_router.get("/{collection_id}", response_model=PublicCollectionDetailResponse)
async def get_public_collection(
    collection_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    collection, listings = await collection_service.get_public_collection(collection_id, session)
    return PublicCollectionDetailResponse(
        collection=PublicCollectionResponse(**collection),
        listings=[ListingResponse.model_validate(item, from_attributes=True) for item in listings],
    )
