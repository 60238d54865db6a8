"""Subscription model (one active row per user at a time)."""

from datetime import datetime, timezone
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Subscription(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "subscriptions"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    plan_id: uuid.UUID = Field(foreign_key="plans.id", nullable=False)
    status: str = Field(default="active", nullable=False, index=True)  # active | expired | cancelled
    starts_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    granted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    notes: Optional[str] = None

    # Payment provider mirror
    provider_customer_id: Optional[str] = None
    provider_subscription_id: Optional[str] = Field(default=None, index=True)
    provider_status: Optional[str] = None
    cancel_at_period_end: bool = Field(default=False, nullable=False)
    last_payment_failed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
