"""Plan model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Plan(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "plans"

    name: str = Field(unique=True, nullable=False)
    slug: str = Field(unique=True, nullable=False, index=True)
    description: Optional[str] = None
    price_in_cents: int = Field(default=0, nullable=False)  # BRL cents
    is_active: bool = Field(default=True, nullable=False)
