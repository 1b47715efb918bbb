"""
Pydantic schemas for subscription and payment operations.
"""
import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from edustream.schemas.common import Pagination

# Status vocabulary mirrors Stripe's subscription state machine
SubscriptionStatus = Literal[
    "incomplete",
    "incomplete_expired",
    "trialing",
    "active",
    "past_due",
    "canceled",
    "unpaid",
    "paused",
]


class PlanInfo(BaseModel):
    """Entry of the static plan catalog."""
    plan_type: str
    name: str
    price: float
    features: List[str]
    price_id: Optional[str] = None


class SubscriptionDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    stripe_customer_id: str
    stripe_subscription_id: str
    plan_type: str
    status: SubscriptionStatus
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool
    trial_end: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CurrentSubscriptionResponse(BaseModel):
    subscription: Optional[SubscriptionDetail] = None


class SubscriptionCreateRequest(BaseModel):
    plan_type: str = Field(..., description="basic, premium or enterprise")
    payment_method_id: Optional[str] = Field(None, description="Stripe PaymentMethod to attach")


class SubscriptionCreateResponse(BaseModel):
    subscription_id: str = Field(..., description="Stripe subscription ID")
    client_secret: Optional[str] = Field(None, description="PaymentIntent client secret to confirm payment")
    status: SubscriptionStatus


class ChangePlanRequest(BaseModel):
    plan_type: str


class PaymentDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    subscription_id: Optional[uuid.UUID] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_invoice_id: Optional[str] = None
    stripe_charge_id: Optional[str] = None
    amount: int
    currency: str
    status: str
    description: Optional[str] = None
    created_at: datetime


class PaymentHistory(BaseModel):
    payments: List[PaymentDetail]
    pagination: Pagination
