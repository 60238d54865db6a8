"""Collection model: personal (user_id) or organizational (org_id), never both."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Collection(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "collections"
    __table_args__ = (
        sa.CheckConstraint(
            "(user_id IS NULL) <> (org_id IS NULL)",
            name="collections_single_owner",
        ),
    )

    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id", index=True)
    name: str = Field(nullable=False)
    is_public: bool = Field(default=False, nullable=False)
    share_token: Optional[str] = Field(default=None, unique=True)
    is_default: bool = Field(default=False, nullable=False)
