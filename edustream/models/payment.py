"""
Payment model, written only by the Stripe webhook handler.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID

from edustream.db.base import Base


class Payment(Base):
    """One record per succeeded Stripe invoice payment."""

    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey("subscriptions.id"), nullable=True, index=True)

    # Idempotency keys for webhook redelivery
    stripe_payment_intent_id = Column(String(255), unique=True, nullable=True)
    stripe_invoice_id = Column(String(255), unique=True, nullable=True)
    stripe_charge_id = Column(String(255), nullable=True)

    amount = Column(Integer, nullable=False)  # smallest currency unit
    currency = Column(String(10), nullable=False, default="usd")
    status = Column(String(30), nullable=False)  # succeeded, failed, pending, requires_action
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Payment(id={self.id}, amount={self.amount} {self.currency}, status={self.status})>"
