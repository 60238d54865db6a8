"""
Plans and the caller's subscription.

GET /api/v1/plans                      — Active plans
GET /api/v1/subscriptions/current      — Current subscription; refreshes the cookie
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from anuncios.api.v1.auth import set_subscription_cookie
from anuncios.core.auth import SessionInfo, require_user
from anuncios.core.database import get_session
from anuncios.core.subscription import utcnow
from anuncios.models.plan import Plan
from anuncios.services import subscriptions as subscription_service
from anuncios_shared.schemas.subscriptions import (
    CurrentSubscriptionResponse,
    PlanListResponse,
    PlanResponse,
    SubscriptionResponse,
)

plans_router = APIRouter()
router = APIRouter()


@plans_router.get("", response_model=PlanListResponse)
async def list_plans(session: AsyncSession = Depends(get_session)):
    plans = await subscription_service.list_plans(session)
    return PlanListResponse(data=[PlanResponse.model_validate(p, from_attributes=True) for p in plans])


@router.get("/current", response_model=CurrentSubscriptionResponse)
async def current_subscription(
    response: Response,
    auth: SessionInfo = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    now = utcnow()
    state = await subscription_service.subscription_state_for_user(auth.user_id, session, now)
    set_subscription_cookie(response, state)

    sub = await subscription_service.get_active_subscription(auth.user_id, session)
    if sub is None:
        return CurrentSubscriptionResponse(is_valid=False)

    plan = await session.get(Plan, sub.plan_id)
    return CurrentSubscriptionResponse(
        subscription=SubscriptionResponse.model_validate(sub, from_attributes=True),
        plan=PlanResponse.model_validate(plan, from_attributes=True) if plan else None,
        is_valid=state.is_valid(now),
    )
