"""
Subscription service — current subscription lookup, admin grants and the
billing-event lifecycle that feeds the subscription cookie.

Billing events are normalized provider payloads (see ``BillingEvent``). Each
event id is applied at most once; the id is recorded in
``processed_webhook_events`` in the same transaction as its effects.
"""

from __future__ import annotations

import hashlib
import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from anuncios.core.config import get_settings
from anuncios.core.errors import NotFoundError
from anuncios.core.subscription import SubscriptionState, ensure_utc, utcnow
from anuncios.models.plan import Plan
from anuncios.models.subscription import Subscription
from anuncios.models.user import User
from anuncios.models.webhook_event import ProcessedWebhookEvent
from anuncios_shared.schemas.common import SubscriptionStatus
from anuncios_shared.schemas.subscriptions import BillingEvent, BillingEventType

log = structlog.get_logger()
settings = get_settings()

_ACTIVE_PROVIDER_STATUSES = {"active", "trialing"}
_CANCELLED_PROVIDER_STATUSES = {"canceled", "unpaid"}


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

async def get_active_subscription(
    user_id: uuid.UUID, session: AsyncSession
) -> Optional[Subscription]:
    """Newest active subscription row for the user, by expiry."""
    result = await session.execute(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .order_by(Subscription.expires_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def subscription_state_for_user(
    user_id: uuid.UUID, session: AsyncSession, now: Optional[datetime] = None
) -> SubscriptionState:
    """State to write into the subscription cookie."""
    sub = await get_active_subscription(user_id, session)
    if sub is None:
        return SubscriptionState(SubscriptionStatus.INACTIVE.value, now or utcnow())
    return SubscriptionState(SubscriptionStatus.ACTIVE.value, ensure_utc(sub.expires_at))


async def list_plans(session: AsyncSession, include_inactive: bool = False) -> list[Plan]:
    stmt = select(Plan).order_by(Plan.price_in_cents)
    if not include_inactive:
        stmt = stmt.where(Plan.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _expire_active(user_id: uuid.UUID, session: AsyncSession) -> None:
    await session.execute(
        update(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .values(status=SubscriptionStatus.EXPIRED.value, updated_at=utcnow())
    )


async def grant_subscription(
    user_id: uuid.UUID,
    plan_id: uuid.UUID,
    expires_at: datetime,
    session: AsyncSession,
    *,
    granted_by: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
) -> Subscription:
    """Manual grant: any active row is expired and replaced."""
    if await session.get(User, user_id) is None:
        raise NotFoundError("User")
    if await session.get(Plan, plan_id) is None:
        raise NotFoundError("Plan")

    await _expire_active(user_id, session)
    sub = Subscription(
        user_id=user_id,
        plan_id=plan_id,
        status=SubscriptionStatus.ACTIVE.value,
        expires_at=ensure_utc(expires_at),
        granted_by=granted_by,
        notes=notes,
    )
    session.add(sub)
    await session.flush()

    log.info(
        "subscription.granted",
        subscription_id=str(sub.id),
        user_id=str(user_id),
        plan_id=str(plan_id),
        by=str(granted_by) if granted_by else None,
    )
    return sub


# ---------------------------------------------------------------------------
# Billing events
# ---------------------------------------------------------------------------

def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """HMAC-SHA256 hex digest of the raw body, compared in constant time."""
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest().encode()
    # Header values arrive latin-1 decoded
    return hmac.compare_digest(expected, signature.strip().lower().encode("latin-1", errors="replace"))


def map_provider_status(provider_status: str) -> SubscriptionStatus:
    if provider_status in _ACTIVE_PROVIDER_STATUSES:
        return SubscriptionStatus.ACTIVE
    if provider_status in _CANCELLED_PROVIDER_STATUSES:
        return SubscriptionStatus.CANCELLED
    return SubscriptionStatus.EXPIRED


async def _by_provider_id(
    provider_subscription_id: Optional[str], session: AsyncSession
) -> Optional[Subscription]:
    if not provider_subscription_id:
        return None
    result = await session.execute(
        select(Subscription).where(Subscription.provider_subscription_id == provider_subscription_id)
    )
    return result.scalar_one_or_none()


def _parse_uuid(value) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _parse_unix_seconds(value) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


async def _checkout_completed(data: dict, session: AsyncSession) -> None:
    if data.get("mode") != "subscription":
        log.info("billing.checkout_ignored", mode=data.get("mode"))
        return

    user_id = _parse_uuid(data.get("user_id"))
    plan_id = _parse_uuid(data.get("plan_id"))
    if user_id is None or plan_id is None:
        log.error("billing.checkout_missing_metadata", customer_id=data.get("customer_id"))
        return

    provider_subscription_id = data.get("subscription_id")
    if await _by_provider_id(provider_subscription_id, session):
        log.info("billing.checkout_already_applied", subscription_id=provider_subscription_id)
        return

    if await session.get(Plan, plan_id) is None:
        log.error("billing.plan_not_found", plan_id=str(plan_id))
        return

    user = await session.get(User, user_id)
    if user is None:
        log.error("billing.user_not_found", user_id=str(user_id))
        return

    await _expire_active(user_id, session)

    # Placeholder until subscription_updated carries the real period end
    now = utcnow()
    expires_at = now + timedelta(days=settings.checkout_placeholder_days)
    customer_id = data.get("customer_id")
    session.add(
        Subscription(
            user_id=user_id,
            plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE.value,
            starts_at=now,
            expires_at=expires_at,
            provider_customer_id=customer_id,
            provider_subscription_id=provider_subscription_id,
            provider_status="active",
        )
    )
    if customer_id:
        user.provider_customer_id = customer_id
        session.add(user)

    log.info("billing.subscription_created", user_id=str(user_id), subscription_id=provider_subscription_id)


async def _subscription_updated(data: dict, session: AsyncSession) -> None:
    sub = await _by_provider_id(data.get("subscription_id"), session)
    if sub is None:
        log.warning("billing.unknown_subscription", subscription_id=data.get("subscription_id"))
        return

    provider_status = str(data.get("status", ""))
    sub.status = map_provider_status(provider_status).value
    sub.provider_status = provider_status
    period_end = data.get("current_period_end")
    if period_end is not None:
        expires_at = _parse_unix_seconds(period_end)
        if expires_at is None:
            log.error("billing.invalid_period_end", subscription_id=str(sub.id), value=repr(period_end))
        else:
            sub.expires_at = expires_at
    sub.cancel_at_period_end = bool(data.get("cancel_at_period_end", False))
    sub.touch()
    session.add(sub)

    log.info("billing.subscription_updated", subscription_id=str(sub.id), status=sub.status, provider_status=provider_status)


async def _subscription_deleted(data: dict, session: AsyncSession) -> None:
    sub = await _by_provider_id(data.get("subscription_id"), session)
    if sub is None:
        log.warning("billing.unknown_subscription", subscription_id=data.get("subscription_id"))
        return

    sub.status = SubscriptionStatus.CANCELLED.value
    sub.provider_status = "canceled"
    sub.cancel_at_period_end = False
    sub.touch()
    session.add(sub)

    log.info("billing.subscription_cancelled", subscription_id=str(sub.id))


async def _payment_failed(data: dict, session: AsyncSession) -> None:
    sub = await _by_provider_id(data.get("subscription_id"), session)
    if sub is None:
        log.info("billing.payment_failed_ignored", subscription_id=data.get("subscription_id"))
        return

    # Access continues until the provider moves the subscription itself
    sub.provider_status = "past_due"
    sub.last_payment_failed_at = utcnow()
    sub.touch()
    session.add(sub)

    log.warning("billing.payment_failed", subscription_id=str(sub.id), attempt_count=data.get("attempt_count"))


_HANDLERS = {
    BillingEventType.CHECKOUT_COMPLETED.value: _checkout_completed,
    BillingEventType.SUBSCRIPTION_UPDATED.value: _subscription_updated,
    BillingEventType.SUBSCRIPTION_DELETED.value: _subscription_deleted,
    BillingEventType.PAYMENT_FAILED.value: _payment_failed,
}


async def apply_billing_event(event: BillingEvent, session: AsyncSession) -> bool:
    """Apply a billing event once. Returns False when the id was already processed."""
    if await session.get(ProcessedWebhookEvent, event.id) is not None:
        log.info("billing.duplicate_event", event_id=event.id, event_type=event.type)
        return False

    handler = _HANDLERS.get(event.type)
    if handler is None:
        log.info("billing.unhandled_event", event_id=event.id, event_type=event.type)
    else:
        await handler(event.data, session)

    session.add(ProcessedWebhookEvent(id=event.id, event_type=event.type))
    await session.flush()

    log.info("billing.event_processed", event_id=event.id, event_type=event.type)
    return True
