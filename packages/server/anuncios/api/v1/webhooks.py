"""
Billing provider webhook.

SECURITY:
- Every request MUST carry ``X-Billing-Signature``: the hex HMAC-SHA256 of the
  raw body keyed with ``billing_webhook_secret``
- No session authentication (the provider is the caller)
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.core.config import get_settings
from anuncios.core.database import get_session
from anuncios.core.errors import AppError, ValidationFailedError
from anuncios.services import subscriptions as subscription_service
from anuncios_shared.schemas.subscriptions import BillingEvent, BillingEventAck

log = structlog.get_logger()
router = APIRouter()

SIGNATURE_HEADER = "X-Billing-Signature"


@router.post("/billing", response_model=BillingEventAck)
async def billing_webhook(
    request: Request,
    signature: Optional[str] = Header(default=None, alias=SIGNATURE_HEADER),
    session: AsyncSession = Depends(get_session),
):
    secret = get_settings().billing_webhook_secret
    if not secret:
        log.error("billing.webhook_not_configured")
        raise AppError("Webhook not configured", code="WEBHOOK_NOT_CONFIGURED")

    if not signature:
        raise ValidationFailedError(f"Missing {SIGNATURE_HEADER} header")

    body = await request.body()
    if not subscription_service.verify_signature(body, signature, secret):
        log.warning("billing.invalid_signature", path=request.url.path)
        raise ValidationFailedError("Invalid signature")

    try:
        event = BillingEvent.model_validate_json(body)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise ValidationFailedError("Invalid event payload", details={"errors": errors}) from exc

    applied = await subscription_service.apply_billing_event(event, session)
    return BillingEventAck(received=True, duplicate=not applied)
