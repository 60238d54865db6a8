"""Listing model (free-form JSON payload inside a collection)."""

import uuid

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Listing(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "listings"

    collection_id: uuid.UUID = Field(foreign_key="collections.id", nullable=False, index=True)
    data: dict = Field(
        default_factory=dict,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
