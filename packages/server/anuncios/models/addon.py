"""Add-on catalog and per-user / per-organization grants."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Addon(UUIDMixin, SQLModel, table=True):
    __tablename__ = "addons"

    name: str = Field(nullable=False)
    slug: str = Field(unique=True, nullable=False, index=True)
    description: Optional[str] = None
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class UserAddon(UUIDMixin, SQLModel, table=True):
    __tablename__ = "user_addons"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "addon_slug", name="user_addons_user_addon_idx"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    addon_slug: str = Field(nullable=False, index=True)
    granted_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    granted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    enabled: bool = Field(default=True, nullable=False)
    expires_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class OrganizationAddon(UUIDMixin, SQLModel, table=True):
    __tablename__ = "organization_addons"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "addon_slug", name="organization_addons_org_addon_idx"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    addon_slug: str = Field(nullable=False, index=True)
    granted_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    granted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    enabled: bool = Field(default=True, nullable=False)
    expires_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
