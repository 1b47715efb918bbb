"""
Subscription service for Stripe-backed plans and payments.

Handles:
- Subscription creation with a compensating cancel when the local write fails
- Cancel at period end, resume, plan change
- Webhook event processing (subscription lifecycle, invoice payments)
- Payment history

Stripe objects are read through _get(), which accepts both StripeObject
instances and the plain dicts of a parsed webhook payload.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import stripe
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from edustream.core.config import settings
from edustream.core.errors import Conflict, Internal, NotFound, UpstreamFailure, ValidationFailed
from edustream.core.plans import get_plan
from edustream.models import Payment, Subscription
from edustream.models.subscription import ACTIVE_LIKE_STATUSES
from edustream.schemas import Principal
from edustream.services.events import EventPublisher

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = ("active", "past_due", "trialing")
PLAN_CHANGE_STATUSES = ("active", "trialing")


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


def _id_of(value: Any) -> Optional[str]:
    """Stripe fields hold either an id string or an expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return _get(value, "id")


def _first(collection: Any) -> Any:
    data = _get(collection, "data", [])
    return data[0] if data else None


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def period_bounds(stripe_subscription: Any) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Current billing period of a subscription.

    Newer API versions carry the period on the subscription item; older ones
    on the subscription itself.
    """
    item = _first(_get(stripe_subscription, "items"))
    start = _get(item, "current_period_start") or _get(stripe_subscription, "current_period_start")
    end = _get(item, "current_period_end") or _get(stripe_subscription, "current_period_end")
    return _timestamp(start), _timestamp(end)


def subscription_id_from_invoice(invoice: Any) -> Optional[str]:
    """Resolve the subscription an invoice belongs to across API versions."""
    subscription_id = _id_of(_get(invoice, "subscription"))
    if subscription_id:
        return subscription_id

    details = _get(_get(invoice, "parent"), "subscription_details")
    subscription_id = _id_of(_get(details, "subscription"))
    if subscription_id:
        return subscription_id

    line = _first(_get(invoice, "lines"))
    subscription_id = _id_of(_get(line, "subscription"))
    if subscription_id:
        return subscription_id

    item_details = _get(_get(line, "parent"), "subscription_item_details")
    return _id_of(_get(item_details, "subscription"))


def payment_intent_from_invoice(invoice: Any) -> Optional[str]:
    """Resolve the payment intent of an invoice across API versions."""
    payment_intent_id = _id_of(_get(invoice, "payment_intent"))
    if payment_intent_id:
        return payment_intent_id

    for invoice_payment in _get(_get(invoice, "payments"), "data", []):
        payment_intent_id = _id_of(_get(_get(invoice_payment, "payment"), "payment_intent"))
        if payment_intent_id:
            return payment_intent_id
    return None


class SubscriptionService:
    """Service for subscriptions and payments bound to one request's event publisher."""

    def __init__(self, events: Optional[EventPublisher] = None):
        self.events = events

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        if self.events is not None:
            self.events.publish(event, data)

    @staticmethod
    def _require_plan(plan_type: str) -> Dict[str, Any]:
        plan = get_plan(plan_type)
        if plan is None:
            raise ValidationFailed(message="Invalid plan type")
        if not plan["price_id"]:
            logger.error(f"Stripe price id not configured for plan {plan_type}")
            raise Internal("Plan is not available")
        return plan

    # Reads

    def get_current(self, user_id: str, db: Session) -> Optional[Subscription]:
        return (
            db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .first()
        )

    def _find(self, user_id: str, db: Session, *criteria) -> Optional[Subscription]:
        return (
            db.query(Subscription)
            .filter(Subscription.user_id == user_id, *criteria)
            .order_by(Subscription.created_at.desc())
            .first()
        )

    def list_payments(self, user_id: str, db: Session, page: int = 1, limit: int = 10) -> Tuple[List[Payment], int]:
        query = db.query(Payment).filter(Payment.user_id == user_id)
        total = query.count()
        payments = (
            query.order_by(Payment.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return payments, total

    def get_payment(self, user_id: str, payment_id: str, db: Session) -> Payment:
        try:
            key = uuid.UUID(str(payment_id))
        except ValueError:
            raise NotFound("Payment not found")

        payment = db.query(Payment).filter(Payment.id == key, Payment.user_id == user_id).first()
        if not payment:
            raise NotFound("Payment not found")
        return payment

    # User-initiated flows

    def _get_or_create_customer(self, principal: Principal) -> str:
        try:
            customers = stripe.Customer.list(email=principal.email, limit=1)
            existing = _first(customers)
            if existing is not None:
                return _get(existing, "id")

            customer = stripe.Customer.create(
                email=principal.email,
                metadata={"userId": principal.user_id},
            )
            return _get(customer, "id")
        except stripe.StripeError as e:
            logger.error(f"Customer creation error for user {principal.user_id}: {e}")
            raise UpstreamFailure("Failed to create customer") from e

    def _client_secret(self, stripe_subscription: Any) -> Optional[str]:
        invoice = _get(stripe_subscription, "latest_invoice")
        if invoice is None or isinstance(invoice, str):
            return None

        payment_intent = _get(invoice, "payment_intent")
        if payment_intent is not None and not isinstance(payment_intent, str):
            return _get(payment_intent, "client_secret")

        payment_intent_id = payment_intent_from_invoice(invoice)
        if not payment_intent_id:
            return None
        try:
            return _get(stripe.PaymentIntent.retrieve(payment_intent_id), "client_secret")
        except stripe.StripeError as e:
            logger.warning(f"Could not fetch client secret for {payment_intent_id}: {e}")
            return None

    def create_subscription(
        self,
        principal: Principal,
        plan_type: str,
        payment_method_id: Optional[str],
        db: Session,
    ) -> Dict[str, Any]:
        """
        Create a Stripe subscription and its local record.

        If the local write fails after Stripe accepted the subscription, the
        Stripe subscription is canceled so no orphaned billing remains.

        Returns:
            Dict with subscription_id, client_secret and status

        Raises:
            ValidationFailed: unknown plan
            Conflict: the user already holds an active-like subscription
            UpstreamFailure: Stripe rejected a call
            Internal: the local record could not be written
        """
        plan = self._require_plan(plan_type)

        if self._find(principal.user_id, db, Subscription.status.in_(ACTIVE_LIKE_STATUSES)):
            raise Conflict("User already has an active subscription")

        customer_id = self._get_or_create_customer(principal)

        try:
            if payment_method_id:
                stripe.PaymentMethod.attach(payment_method_id, customer=customer_id)
                stripe.Customer.modify(
                    customer_id,
                    invoice_settings={"default_payment_method": payment_method_id},
                )

            stripe_subscription = stripe.Subscription.create(
                customer=customer_id,
                items=[{"price": plan["price_id"]}],
                payment_behavior="default_incomplete",
                payment_settings={"save_default_payment_method": "on_subscription"},
                expand=["latest_invoice.payment_intent"],
                trial_period_days=settings.trial_period_days,
                metadata={"userId": principal.user_id},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe subscription creation failed for user {principal.user_id}: {e}")
            raise UpstreamFailure("Failed to create subscription") from e

        stripe_subscription_id = _get(stripe_subscription, "id")
        period_start, period_end = period_bounds(stripe_subscription)

        subscription = Subscription(
            user_id=principal.user_id,
            stripe_customer_id=customer_id,
            stripe_subscription_id=stripe_subscription_id,
            plan_type=plan_type,
            status=_get(stripe_subscription, "status", "incomplete"),
            current_period_start=period_start,
            current_period_end=period_end,
            cancel_at_period_end=bool(_get(stripe_subscription, "cancel_at_period_end", False)),
            trial_end=_timestamp(_get(stripe_subscription, "trial_end")),
        )
        db.add(subscription)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Saving subscription {stripe_subscription_id} failed, canceling it in Stripe: {e}")
            try:
                stripe.Subscription.cancel(stripe_subscription_id)
            except stripe.StripeError as cancel_error:
                logger.error(
                    f"Compensating cancel of {stripe_subscription_id} failed, manual cleanup needed: {cancel_error}"
                )
            raise Internal("Failed to save subscription") from e

        db.refresh(subscription)
        logger.info(f"Subscription {stripe_subscription_id} created for user {principal.user_id} ({plan_type})")

        self._emit(
            "subscription.created",
            {
                "userId": principal.user_id,
                "subscriptionId": str(subscription.id),
                "planType": plan_type,
                "status": subscription.status,
            },
        )

        return {
            "subscription_id": stripe_subscription_id,
            "client_secret": self._client_secret(stripe_subscription),
            "status": subscription.status,
        }

    def cancel(self, principal: Principal, db: Session) -> Subscription:
        """Schedule cancellation at the end of the current period."""
        subscription = self._find(principal.user_id, db, Subscription.status.in_(CANCELLABLE_STATUSES))
        if not subscription:
            raise NotFound("No active subscription found")

        try:
            stripe.Subscription.modify(subscription.stripe_subscription_id, cancel_at_period_end=True)
        except stripe.StripeError as e:
            logger.error(f"Cancel of {subscription.stripe_subscription_id} failed: {e}")
            raise UpstreamFailure("Failed to cancel subscription") from e

        subscription.cancel_at_period_end = True
        db.commit()
        db.refresh(subscription)

        self._emit(
            "subscription.cancelled",
            {
                "userId": principal.user_id,
                "subscriptionId": str(subscription.id),
                "cancelDate": subscription.current_period_end,
            },
        )
        return subscription

    def resume(self, principal: Principal, db: Session) -> Subscription:
        subscription = self._find(
            principal.user_id,
            db,
            Subscription.cancel_at_period_end.is_(True),
            Subscription.status != "canceled",
        )
        if not subscription:
            raise NotFound("No cancelled subscription found")

        try:
            stripe.Subscription.modify(subscription.stripe_subscription_id, cancel_at_period_end=False)
        except stripe.StripeError as e:
            logger.error(f"Resume of {subscription.stripe_subscription_id} failed: {e}")
            raise UpstreamFailure("Failed to resume subscription") from e

        subscription.cancel_at_period_end = False
        db.commit()
        db.refresh(subscription)
        return subscription

    def change_plan(self, principal: Principal, plan_type: str, db: Session) -> Subscription:
        """Swap the subscription's price, letting Stripe prorate the difference."""
        plan = self._require_plan(plan_type)

        subscription = self._find(principal.user_id, db, Subscription.status.in_(PLAN_CHANGE_STATUSES))
        if not subscription:
            raise NotFound("No active subscription found")

        try:
            stripe_subscription = stripe.Subscription.retrieve(subscription.stripe_subscription_id)
            item = _first(_get(stripe_subscription, "items"))
            stripe.Subscription.modify(
                subscription.stripe_subscription_id,
                items=[{"id": _get(item, "id"), "price": plan["price_id"]}],
                proration_behavior="create_prorations",
            )
        except stripe.StripeError as e:
            logger.error(f"Plan change of {subscription.stripe_subscription_id} failed: {e}")
            raise UpstreamFailure("Failed to change plan") from e

        subscription.plan_type = plan_type
        db.commit()
        db.refresh(subscription)
        logger.info(f"Subscription {subscription.stripe_subscription_id} moved to {plan_type}")
        return subscription

    # Webhook handlers

    def _by_stripe_id(self, stripe_subscription_id: Optional[str], db: Session) -> Optional[Subscription]:
        if not stripe_subscription_id:
            return None
        return db.query(Subscription).filter(
            Subscription.stripe_subscription_id == stripe_subscription_id
        ).first()

    def handle_subscription_updated(self, subscription_data: Any, db: Session) -> Optional[Subscription]:
        """Overwrite local state with Stripe's. Unknown subscriptions are ignored."""
        stripe_subscription_id = _get(subscription_data, "id")
        subscription = self._by_stripe_id(stripe_subscription_id, db)
        if not subscription:
            logger.warning(f"Subscription not found: {stripe_subscription_id}")
            return None

        period_start, period_end = period_bounds(subscription_data)
        subscription.status = _get(subscription_data, "status", subscription.status)
        if period_start:
            subscription.current_period_start = period_start
        if period_end:
            subscription.current_period_end = period_end
        subscription.cancel_at_period_end = bool(_get(subscription_data, "cancel_at_period_end", False))
        subscription.trial_end = _timestamp(_get(subscription_data, "trial_end"))
        db.commit()

        logger.info(f"Subscription updated: {stripe_subscription_id} - status: {subscription.status}")
        self._emit(
            "subscription.updated",
            {"userId": subscription.user_id, "subscriptionId": str(subscription.id), "status": subscription.status},
        )
        return subscription

    def handle_subscription_deleted(self, subscription_data: Any, db: Session) -> Optional[Subscription]:
        stripe_subscription_id = _get(subscription_data, "id")
        subscription = self._by_stripe_id(stripe_subscription_id, db)
        if not subscription:
            logger.warning(f"Subscription not found for deletion: {stripe_subscription_id}")
            return None

        subscription.status = "canceled"
        db.commit()

        logger.info(f"Subscription deleted: {stripe_subscription_id}")
        self._emit(
            "subscription.deleted",
            {"userId": subscription.user_id, "subscriptionId": str(subscription.id)},
        )
        return subscription

    def handle_payment_succeeded(self, invoice: Any, db: Session) -> Optional[Payment]:
        """
        Record a succeeded invoice payment exactly once.

        Redeliveries are detected by the payment intent id (or the invoice id
        when there is none) before inserting; a concurrent duplicate that
        slips past the check is stopped by the unique constraints.
        """
        subscription = self._by_stripe_id(subscription_id_from_invoice(invoice), db)
        if not subscription:
            logger.info(f"Ignoring invoice {_get(invoice, 'id')} for unknown subscription")
            return None

        invoice_id = _get(invoice, "id")
        payment_intent_id = payment_intent_from_invoice(invoice)

        if payment_intent_id:
            duplicate = Payment.stripe_payment_intent_id == payment_intent_id
        else:
            duplicate = Payment.stripe_invoice_id == invoice_id
        if db.query(Payment).filter(duplicate).first():
            logger.info(f"Payment for invoice {invoice_id} already recorded")
            return None

        charge_id = None
        if payment_intent_id:
            payment_intent = stripe.PaymentIntent.retrieve(payment_intent_id)
            charge_id = _id_of(_get(payment_intent, "latest_charge"))

        payment = Payment(
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            stripe_payment_intent_id=payment_intent_id,
            stripe_invoice_id=invoice_id,
            stripe_charge_id=charge_id,
            amount=_get(invoice, "amount_paid", 0),
            currency=_get(invoice, "currency", "usd"),
            status="succeeded",
            description=f"Payment for {subscription.plan_type} plan",
        )
        db.add(payment)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Payment for invoice {invoice_id} recorded concurrently")
            return None

        db.refresh(payment)
        logger.info(f"Payment {payment.id} recorded for user {subscription.user_id}: {payment.amount} {payment.currency}")
        self._emit(
            "payment.succeeded",
            {"userId": subscription.user_id, "paymentId": str(payment.id), "amount": payment.amount},
        )
        return payment

    def handle_payment_failed(self, invoice: Any, db: Session) -> None:
        subscription = self._by_stripe_id(subscription_id_from_invoice(invoice), db)
        if not subscription:
            return

        logger.warning(f"Payment failed for subscription {subscription.stripe_subscription_id}")
        self._emit(
            "payment.failed",
            {
                "userId": subscription.user_id,
                "subscriptionId": str(subscription.id),
                "amount": _get(invoice, "amount_due", 0),
            },
        )

    def handle_event(self, event_type: str, data: Any, db: Session) -> bool:
        """
        Dispatch a verified webhook event.

        Returns:
            True if the event type is handled, False if it was only logged
        """
        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            self.handle_subscription_updated(data, db)
        elif event_type == "customer.subscription.deleted":
            self.handle_subscription_deleted(data, db)
        elif event_type == "invoice.payment_succeeded":
            self.handle_payment_succeeded(data, db)
        elif event_type == "invoice.payment_failed":
            self.handle_payment_failed(data, db)
        else:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            return False
        return True
