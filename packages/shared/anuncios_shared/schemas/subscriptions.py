"""Plan, subscription and billing-event schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .common import SubscriptionStatus


class BillingEventType(str, Enum):
    CHECKOUT_COMPLETED = "checkout_completed"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    PAYMENT_FAILED = "payment_failed"


class PlanResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    price_in_cents: int
    is_active: bool


class PlanListResponse(BaseModel):
    data: list[PlanResponse]


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    plan_id: uuid.UUID
    status: SubscriptionStatus
    starts_at: datetime
    expires_at: datetime
    cancel_at_period_end: bool = False
    provider_status: Optional[str] = None


class CurrentSubscriptionResponse(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    plan: Optional[PlanResponse] = None
    is_valid: bool = False


class SubscriptionGrantRequest(BaseModel):
    """Admin-issued subscription (manual grant)."""
    user_id: uuid.UUID
    plan_id: uuid.UUID
    expires_at: datetime
    notes: Optional[str] = Field(default=None, max_length=500)


class BillingEvent(BaseModel):
    """Normalized subscription lifecycle event from the payment provider.

    ``data`` carries the provider object; the keys read per event type are:

    - checkout_completed: ``user_id``, ``plan_id``, ``customer_id``,
      ``subscription_id``, ``mode`` (only ``"subscription"`` is handled)
    - subscription_updated: ``subscription_id``, ``status``,
      ``current_period_end`` (unix seconds), ``cancel_at_period_end``
    - subscription_deleted: ``subscription_id``
    - payment_failed: ``subscription_id``, ``attempt_count``
    """
    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class BillingEventAck(BaseModel):
    received: bool = True
    duplicate: bool = False
