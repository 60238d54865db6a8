"""
Collection and listing schemas.

Covers: collection CRUD request/response, copying, sharing, listings
inside a collection, the token-based view of a shared collection and the
public collection catalog.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .common import OrgRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class CollectionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    org_id: Optional[uuid.UUID] = Field(
        default=None,
        description="Create the collection inside this organization instead of personally",
    )
    is_public: bool = False

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Collection name cannot be empty")
        return v


class CollectionUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    is_public: Optional[bool] = None
    is_default: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Collection name cannot be empty")
        return v


class ShareRequest(BaseModel):
    is_public: bool = True


class ListingCreateRequest(BaseModel):
    data: dict[str, Any] = Field(..., description="Free-form listing payload (title, address, price...)")


class ListingUpdateRequest(BaseModel):
    data: dict[str, Any] = Field(..., description="Keys to merge into the stored payload")


class CollectionCopyRequest(BaseModel):
    target_org_id: Optional[uuid.UUID] = Field(
        default=None,
        description="Copy into this organization; personal scope when omitted",
    )
    include_listings: bool = True
    name: Optional[str] = Field(default=None, max_length=200)

    @field_validator("name")
    @classmethod
    def _blank_name_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class CollectionResponse(BaseModel):
    id: uuid.UUID
    name: str
    user_id: Optional[uuid.UUID] = None
    org_id: Optional[uuid.UUID] = None
    is_public: bool
    is_default: bool
    share_token: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    listings_count: Optional[int] = None
    user_role: Optional[OrgRole] = None


class CollectionListResponse(BaseModel):
    data: list[CollectionResponse]


class ShareResponse(BaseModel):
    share_token: str
    share_path: str
    is_public: bool


class ListingResponse(BaseModel):
    id: uuid.UUID
    collection_id: uuid.UUID
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class ListingListResponse(BaseModel):
    data: list[ListingResponse]


class SharedCollectionResponse(BaseModel):
    id: uuid.UUID
    name: str
    listings: list[ListingResponse]


class CollectionCopyResponse(BaseModel):
    collection: CollectionResponse
    copied_listings_count: int


class PublicCollectionResponse(CollectionResponse):
    owner_name: Optional[str] = None


class PublicCollectionListResponse(BaseModel):
    data: list[PublicCollectionResponse]


class PublicCollectionDetailResponse(BaseModel):
    collection: PublicCollectionResponse
    listings: list[ListingResponse]
