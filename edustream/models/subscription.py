"""
Subscription model mirroring the Stripe subscription state.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.dialects.postgresql import UUID

from edustream.db.base import Base

# Statuses that count as "already subscribed" when creating a new subscription
ACTIVE_LIKE_STATUSES = ("active", "past_due", "incomplete", "trialing")


class Subscription(Base):
    """Local mirror of a Stripe subscription. Never deleted, only transitioned to canceled."""

    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)

    # Stripe integration
    stripe_customer_id = Column(String(255), nullable=False, index=True)
    stripe_subscription_id = Column(String(255), unique=True, nullable=False, index=True)

    # Subscription details
    plan_type = Column(String(50), nullable=False)  # basic, premium, enterprise
    status = Column(String(50), nullable=False)  # incomplete, trialing, active, past_due, canceled, unpaid

    # Billing period
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    trial_end = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self):
        return f"<Subscription(id={self.id}, user_id={self.user_id}, plan={self.plan_type}, status={self.status})>"
