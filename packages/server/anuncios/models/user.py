"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(nullable=False)
    password_hash: Optional[str] = Field(default=None)  # bcrypt
    is_admin: bool = Field(default=False, nullable=False)
    provider_customer_id: Optional[str] = Field(default=None)  # payment provider customer
