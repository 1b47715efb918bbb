"""
API endpoints for subscription management.

Endpoints:
- GET /subscriptions/plans - Plan catalog
- GET /subscriptions/current - Caller's most recent subscription
- POST /subscriptions/create - Start a subscription (7-day trial)
- POST /subscriptions/cancel - Cancel at period end
- POST /subscriptions/resume - Undo a scheduled cancellation
- POST /subscriptions/change-plan - Switch plan with proration
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from edustream.api.deps import get_subscription_service, require_payer
from edustream.core.plans import list_plans
from edustream.db.base import get_db
from edustream.schemas import (
    ChangePlanRequest,
    CurrentSubscriptionResponse,
    MessageResponse,
    PlanInfo,
    Principal,
    SubscriptionCreateRequest,
    SubscriptionCreateResponse,
    SubscriptionDetail,
)
from edustream.services.subscription import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/plans", response_model=Dict[str, PlanInfo])
async def get_plans():
    """Get available plans keyed by plan type."""
    return {plan["plan_type"]: PlanInfo(**plan) for plan in list_plans()}


@router.get("/current", response_model=CurrentSubscriptionResponse)
async def get_current_subscription(
    principal: Principal = Depends(require_payer),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    db: Session = Depends(get_db),
):
    subscription = subscriptions.get_current(principal.user_id, db)
    if subscription is None:
        return CurrentSubscriptionResponse(subscription=None)
    return CurrentSubscriptionResponse(subscription=SubscriptionDetail.model_validate(subscription))


@router.post("/create", response_model=SubscriptionCreateResponse)
async def create_subscription(
    payload: SubscriptionCreateRequest,
    principal: Principal = Depends(require_payer),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    db: Session = Depends(get_db),
):
    """
    Create a subscription.

    The returned client_secret lets the frontend confirm the first payment.
    """
    result = subscriptions.create_subscription(principal, payload.plan_type, payload.payment_method_id, db)
    return SubscriptionCreateResponse(**result)


@router.post("/cancel", response_model=MessageResponse)
async def cancel_subscription(
    principal: Principal = Depends(require_payer),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    db: Session = Depends(get_db),
):
    subscriptions.cancel(principal, db)
    return MessageResponse(message="Subscription will be cancelled at the end of current period")


@router.post("/resume", response_model=MessageResponse)
async def resume_subscription(
    principal: Principal = Depends(require_payer),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    db: Session = Depends(get_db),
):
    subscriptions.resume(principal, db)
    return MessageResponse(message="Subscription resumed successfully")


@router.post("/change-plan", response_model=MessageResponse)
async def change_plan(
    payload: ChangePlanRequest,
    principal: Principal = Depends(require_payer),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    db: Session = Depends(get_db),
):
    subscriptions.change_plan(principal, payload.plan_type, db)
    return MessageResponse(message="Plan changed successfully")
