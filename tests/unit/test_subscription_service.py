"""
Unit tests for SubscriptionService and the Stripe payload helpers.

Stripe calls are patched; payloads are plain dicts shaped like Stripe objects.
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import stripe
from sqlalchemy.exc import SQLAlchemyError

from edustream.core.errors import Conflict, Internal, NotFound, UpstreamFailure, ValidationFailed
from edustream.models import Payment, Subscription
from edustream.schemas import Principal
from edustream.services.subscription import (
    SubscriptionService,
    payment_intent_from_invoice,
    period_bounds,
    subscription_id_from_invoice,
)

PERIOD_START = 1_700_000_000
PERIOD_END = 1_702_592_000


def naive_utc(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


def stripe_subscription(sub_id="sub_123", status="trialing"):
    return {
        "id": sub_id,
        "status": status,
        "cancel_at_period_end": False,
        "trial_end": PERIOD_END,
        "items": {
            "data": [
                {"id": "si_1", "current_period_start": PERIOD_START, "current_period_end": PERIOD_END},
            ]
        },
        "latest_invoice": {"id": "in_1", "payment_intent": {"id": "pi_1", "client_secret": "pi_1_secret"}},
    }


@pytest.fixture
def payer():
    return Principal(user_id="user-1", email="payer@edustream.test", role="student")


@pytest.fixture
def service(events):
    return SubscriptionService(events=events)


@pytest.fixture
def active_subscription(db, payer):
    subscription = Subscription(
        user_id=payer.user_id,
        stripe_customer_id="cus_1",
        stripe_subscription_id="sub_123",
        plan_type="basic",
        status="active",
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


class TestPayloadHelpers:
    """Test reading fields across Stripe API versions."""

    def test_period_from_item(self):
        start, end = period_bounds(stripe_subscription())

        assert start == naive_utc(PERIOD_START)
        assert end == naive_utc(PERIOD_END)

    def test_period_from_top_level(self):
        start, end = period_bounds({"current_period_start": PERIOD_START, "current_period_end": PERIOD_END})

        assert start == naive_utc(PERIOD_START)
        assert end == naive_utc(PERIOD_END)

    def test_period_missing(self):
        assert period_bounds({"id": "sub_1"}) == (None, None)

    def test_subscription_id_top_level(self):
        assert subscription_id_from_invoice({"subscription": "sub_a"}) == "sub_a"
        assert subscription_id_from_invoice({"subscription": {"id": "sub_b"}}) == "sub_b"

    def test_subscription_id_from_parent(self):
        invoice = {"parent": {"subscription_details": {"subscription": "sub_c"}}}

        assert subscription_id_from_invoice(invoice) == "sub_c"

    def test_subscription_id_from_line_item(self):
        invoice = {
            "lines": {"data": [{"parent": {"subscription_item_details": {"subscription": "sub_d"}}}]},
        }

        assert subscription_id_from_invoice(invoice) == "sub_d"

    def test_subscription_id_missing(self):
        assert subscription_id_from_invoice({"id": "in_1"}) is None

    def test_payment_intent_from_payments(self):
        invoice = {"payments": {"data": [{"payment": {"payment_intent": "pi_9"}}]}}

        assert payment_intent_from_invoice(invoice) == "pi_9"
        assert payment_intent_from_invoice({"payment_intent": "pi_1"}) == "pi_1"
        assert payment_intent_from_invoice({}) is None


class TestCreateSubscription:
    """Test creation, including the compensating cancel."""

    @patch("stripe.Subscription.create")
    @patch("stripe.Customer.create")
    @patch("stripe.Customer.list")
    def test_create_subscription(self, mock_list, mock_customer, mock_create, service, db, payer, fake_redis):
        mock_list.return_value = {"data": []}
        mock_customer.return_value = {"id": "cus_new"}
        mock_create.return_value = stripe_subscription()

        result = service.create_subscription(payer, "premium", None, db)

        assert result == {"subscription_id": "sub_123", "client_secret": "pi_1_secret", "status": "trialing"}
        kwargs = mock_create.call_args.kwargs
        assert kwargs["customer"] == "cus_new"
        assert kwargs["items"] == [{"price": "price_premium"}]
        assert kwargs["trial_period_days"] == 7
        assert kwargs["metadata"] == {"userId": "user-1"}

        stored = db.query(Subscription).one()
        assert stored.plan_type == "premium"
        assert stored.current_period_end == naive_utc(PERIOD_END)
        assert fake_redis.event_names() == ["subscription.created"]

    @patch("stripe.Subscription.create")
    @patch("stripe.Customer.modify")
    @patch("stripe.PaymentMethod.attach")
    @patch("stripe.Customer.list")
    def test_attaches_payment_method(self, mock_list, mock_attach, mock_modify, mock_create, service, db, payer):
        mock_list.return_value = {"data": [{"id": "cus_existing"}]}
        mock_create.return_value = stripe_subscription()

        service.create_subscription(payer, "basic", "pm_1", db)

        mock_attach.assert_called_once_with("pm_1", customer="cus_existing")
        mock_modify.assert_called_once_with("cus_existing", invoice_settings={"default_payment_method": "pm_1"})

    @patch("stripe.Subscription.cancel")
    @patch("stripe.Subscription.create")
    @patch("stripe.Customer.list")
    def test_cancels_in_stripe_when_save_fails(self, mock_list, mock_create, mock_cancel, service, db, payer, fake_redis):
        mock_list.return_value = {"data": [{"id": "cus_1"}]}
        mock_create.return_value = stripe_subscription()

        with patch.object(db, "commit", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(Internal):
                service.create_subscription(payer, "basic", None, db)

        mock_cancel.assert_called_once_with("sub_123")
        assert db.query(Subscription).count() == 0
        assert fake_redis.published == []

    @patch("stripe.Subscription.cancel")
    @patch("stripe.Subscription.create")
    @patch("stripe.Customer.list")
    def test_failed_compensation_still_reports_error(self, mock_list, mock_create, mock_cancel, service, db, payer):
        mock_list.return_value = {"data": [{"id": "cus_1"}]}
        mock_create.return_value = stripe_subscription()
        mock_cancel.side_effect = stripe.StripeError("network")

        with patch.object(db, "commit", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(Internal):
                service.create_subscription(payer, "basic", None, db)

    def test_existing_subscription_conflicts(self, service, db, payer, active_subscription):
        with pytest.raises(Conflict) as exc_info:
            service.create_subscription(payer, "basic", None, db)

        assert exc_info.value.message == "User already has an active subscription"

    def test_invalid_plan(self, service, db, payer):
        with pytest.raises(ValidationFailed):
            service.create_subscription(payer, "platinum", None, db)

    @patch("stripe.Subscription.create")
    @patch("stripe.Customer.list")
    def test_stripe_rejection(self, mock_list, mock_create, service, db, payer):
        mock_list.return_value = {"data": [{"id": "cus_1"}]}
        mock_create.side_effect = stripe.StripeError("card declined")

        with pytest.raises(UpstreamFailure):
            service.create_subscription(payer, "basic", None, db)
        assert db.query(Subscription).count() == 0


class TestUserActions:
    @patch("stripe.Subscription.modify")
    def test_cancel_then_resume(self, mock_modify, service, db, payer, active_subscription, fake_redis):
        service.cancel(payer, db)
        mock_modify.assert_called_with("sub_123", cancel_at_period_end=True)
        assert active_subscription.cancel_at_period_end is True
        assert fake_redis.event_names() == ["subscription.cancelled"]

        service.resume(payer, db)
        mock_modify.assert_called_with("sub_123", cancel_at_period_end=False)
        assert active_subscription.cancel_at_period_end is False

    def test_cancel_without_subscription(self, service, db, payer):
        with pytest.raises(NotFound):
            service.cancel(payer, db)

    def test_resume_without_scheduled_cancel(self, service, db, payer, active_subscription):
        with pytest.raises(NotFound) as exc_info:
            service.resume(payer, db)

        assert exc_info.value.message == "No cancelled subscription found"

    @patch("stripe.Subscription.modify")
    @patch("stripe.Subscription.retrieve")
    def test_change_plan(self, mock_retrieve, mock_modify, service, db, payer, active_subscription):
        mock_retrieve.return_value = stripe_subscription(status="active")

        service.change_plan(payer, "enterprise", db)

        mock_modify.assert_called_once_with(
            "sub_123",
            items=[{"id": "si_1", "price": "price_enterprise"}],
            proration_behavior="create_prorations",
        )
        assert active_subscription.plan_type == "enterprise"


class TestWebhookHandlers:
    """Test webhook-driven state changes."""

    def test_subscription_updated(self, service, db, active_subscription):
        data = dict(stripe_subscription(status="past_due"), cancel_at_period_end=True)

        service.handle_event("customer.subscription.updated", data, db)

        db.refresh(active_subscription)
        assert active_subscription.status == "past_due"
        assert active_subscription.cancel_at_period_end is True
        assert active_subscription.current_period_start == naive_utc(PERIOD_START)

    def test_subscription_deleted(self, service, db, active_subscription):
        service.handle_event("customer.subscription.deleted", {"id": "sub_123"}, db)

        db.refresh(active_subscription)
        assert active_subscription.status == "canceled"

    def test_unknown_subscription_ignored(self, service, db):
        assert service.handle_subscription_updated({"id": "sub_missing", "status": "active"}, db) is None

    @patch("stripe.PaymentIntent.retrieve")
    def test_duplicate_payment_recorded_once(self, mock_retrieve, service, db, active_subscription, fake_redis):
        mock_retrieve.return_value = {"id": "pi_1", "latest_charge": "ch_1"}
        invoice = {"id": "in_1", "subscription": "sub_123", "payment_intent": "pi_1", "amount_paid": 1, "currency": "usd"}

        first = service.handle_payment_succeeded(invoice, db)
        second = service.handle_payment_succeeded(invoice, db)

        assert first is not None
        assert second is None
        payment = db.query(Payment).one()
        assert payment.stripe_charge_id == "ch_1"
        assert payment.amount == 1
        assert payment.description == "Payment for basic plan"
        assert fake_redis.event_names() == ["payment.succeeded"]

    def test_payment_without_intent_dedupes_on_invoice(self, service, db, active_subscription):
        invoice = {"id": "in_free", "subscription": "sub_123", "amount_paid": 0, "currency": "usd"}

        service.handle_payment_succeeded(invoice, db)
        service.handle_payment_succeeded(invoice, db)

        assert db.query(Payment).count() == 1

    @patch("stripe.PaymentIntent.retrieve")
    def test_concurrent_payment_hits_unique_invoice(self, mock_retrieve, service, db, active_subscription, fake_redis):
        """A row for the same invoice written by another worker wins; the constraint rejects ours."""
        db.add(Payment(
            user_id=active_subscription.user_id,
            subscription_id=active_subscription.id,
            stripe_invoice_id="in_1",
            amount=1,
            currency="usd",
            status="succeeded",
        ))
        db.commit()
        mock_retrieve.return_value = {"id": "pi_9", "latest_charge": "ch_9"}
        invoice = {"id": "in_1", "subscription": "sub_123", "payment_intent": "pi_9", "amount_paid": 1, "currency": "usd"}

        assert service.handle_payment_succeeded(invoice, db) is None
        assert db.query(Payment).count() == 1
        assert db.query(Payment).one().stripe_payment_intent_id is None
        assert fake_redis.event_names() == []

    def test_payment_failed_notifies(self, service, db, active_subscription, fake_redis):
        service.handle_event("invoice.payment_failed", {"id": "in_2", "subscription": "sub_123", "amount_due": 3}, db)

        assert fake_redis.event_names() == ["payment.failed"]
        assert db.query(Payment).count() == 0

    def test_unhandled_event(self, service, db):
        assert service.handle_event("charge.refunded", {}, db) is False
