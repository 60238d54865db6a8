"""Add-on catalog and entitlement schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AddonInfo(BaseModel):
    """Catalog entry for an add-on."""
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None


class EntitlementView(BaseModel):
    """A single add-on grant enriched with its catalog entry.

    ``addon`` is ``None`` when the catalog entry has been removed after the
    grant was made.
    """
    id: uuid.UUID
    subject_id: uuid.UUID
    addon_slug: str
    enabled: bool
    granted_at: datetime
    granted_by: Optional[uuid.UUID] = None
    expires_at: Optional[datetime] = None
    addon: Optional[AddonInfo] = None


class EntitlementListResponse(BaseModel):
    addons: list[EntitlementView]


class AddonCatalogResponse(BaseModel):
    addons: list[AddonInfo]


class AddonGrantRequest(BaseModel):
    addon_slug: str = Field(..., min_length=1, max_length=100)
    enabled: bool = True
    expires_at: Optional[datetime] = None


class AddonToggleRequest(BaseModel):
    enabled: bool
