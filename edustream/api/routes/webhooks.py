"""
Webhook endpoints.

Currently supports Stripe subscription and invoice webhooks.
"""
import logging

import stripe
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from edustream.core.config import settings
from edustream.core.errors import Internal, ServiceUnavailable, ValidationFailed
from edustream.core.rate_limit import limiter
from edustream.core.resources import get_event_publisher
from edustream.db.base import get_db
from edustream.services.events import EventPublisher
from edustream.services.subscription import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
@limiter.limit(settings.webhook_rate_limit)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    events: EventPublisher = Depends(get_event_publisher),
):
    """
    Handle Stripe webhooks.

    Processes events:
    - customer.subscription.created / updated: mirror status and period
    - customer.subscription.deleted: mark canceled
    - invoice.payment_succeeded: record the payment once
    - invoice.payment_failed: notify only

    Verification failures return 400. Failures after verification return 500
    so that Stripe redelivers the event.
    """
    if not settings.stripe_webhook_secret:
        raise ServiceUnavailable("Stripe webhook secret not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise ValidationFailed(message="Missing stripe-signature header")

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, settings.stripe_webhook_secret)
    except ValueError as e:
        logger.error(f"Invalid Stripe webhook payload: {e}")
        raise ValidationFailed(message="Invalid payload") from e
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid Stripe webhook signature: {e}")
        raise ValidationFailed(message="Invalid signature") from e

    event_type = event["type"]
    event_data = event["data"]["object"]

    logger.info(f"Received Stripe webhook: {event_type}")

    try:
        SubscriptionService(events=events).handle_event(event_type, event_data, db)
    except Exception as e:  # noqa: BLE001
        db.rollback()
        logger.error(f"Error processing Stripe webhook {event_type}: {str(e)}", exc_info=True)
        raise Internal("Webhook handler failed") from e

    return {"received": True}
