"""
Tests for webhook event handlers.

Tests cover:
- Handler registration for each event family
- Payment success: subscription activation and recorded charge
- Payment failure: past_due, or a failed one-off payment
- Subscription cancellation by the gateway
- Payload helpers
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from payments.models import PaymentTransaction, Subscription
from payments.state_machines import PaymentStatus, SubscriptionStatus
from payments.tests.factories import SubscriptionFactory
from payments.types import Gateway
from payments.webhooks.handlers import (
    PAYMENT_FAILURE_EVENTS,
    PAYMENT_SUCCESS_EVENTS,
    SUBSCRIPTION_CANCELED_EVENTS,
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    extract_amount,
    extract_payment_refs,
    extract_subscription_ref,
    handle_payment_failed,
    handle_payment_succeeded,
    handle_subscription_canceled,
)


def reload(subscription):
    return Subscription.objects.get(pk=subscription.pk)


# =============================================================================
# Registry and Dispatch
# =============================================================================


class TestRegistry:
    @pytest.mark.parametrize(
        ("events", "handler"),
        [
            (PAYMENT_SUCCESS_EVENTS, handle_payment_succeeded),
            (PAYMENT_FAILURE_EVENTS, handle_payment_failed),
            (SUBSCRIPTION_CANCELED_EVENTS, handle_subscription_canceled),
        ],
    )
    def test_event_family_registered(self, events, handler):
        for event_type in events:
            assert WEBHOOK_HANDLERS[event_type] is handler

    def test_stripe_and_paystack_names_share_handlers(self):
        assert WEBHOOK_HANDLERS["invoice.payment_succeeded"] is WEBHOOK_HANDLERS["charge.success"]
        assert WEBHOOK_HANDLERS["customer.subscription.deleted"] is WEBHOOK_HANDLERS["subscription.disable"]


class TestDispatch:
    def test_unknown_event_is_acknowledged(self, make_event):
        with patch("payments.webhooks.handlers.logger") as logger:
            result = dispatch_webhook(make_event("customer.created", {"id": "cus_1"}))

        assert result.success is True
        assert result.data is None
        assert "No handler registered" in logger.info.call_args.args[0]

    def test_routes_to_registered_handler(self, stripe_subscription, make_event):
        result = dispatch_webhook(
            make_event("customer.subscription.deleted", {"id": "sub_123"})
        )

        assert result.success is True
        assert result.data.pk == stripe_subscription.pk


# =============================================================================
# Payment Succeeded
# =============================================================================


class TestPaymentSucceeded:
    def test_records_subscription_charge(self, stripe_subscription, make_event):
        event = make_event(
            "invoice.payment_succeeded",
            {"id": "in_1", "subscription": "sub_123", "amount_paid": 1999, "currency": "usd"},
        )

        result = handle_payment_succeeded(event)

        assert result.success is True
        payment = PaymentTransaction.objects.get(transaction_id="stripe_evt_1")
        assert payment.user_id == stripe_subscription.user_id
        assert payment.subscription_id == stripe_subscription.pk
        assert payment.amount == Decimal("19.99")
        assert payment.currency == "USD"
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.gateway_transaction_id == "in_1"
        assert payment.processed_at is not None
        assert payment.description == "Subscription payment - Premium Plan"

    def test_redelivery_records_charge_once(self, stripe_subscription, make_event):
        event = make_event(
            "invoice.payment_succeeded", {"subscription": "sub_123", "amount_paid": 1999}
        )

        handle_payment_succeeded(event)
        handle_payment_succeeded(event)

        assert PaymentTransaction.objects.filter(subscription=stripe_subscription).count() == 1

    def test_past_due_recovers(self, user, plan, make_event):
        subscription = SubscriptionFactory(
            user=user, plan=plan, past_due=True, gateway_subscription_id="sub_late"
        )

        handle_payment_succeeded(
            make_event("invoice.payment_succeeded", {"subscription": "sub_late", "amount_paid": 1999})
        )

        assert reload(subscription).status == SubscriptionStatus.ACTIVE

    def test_first_charge_after_trial_ends_trial(self, user, plan, make_event):
        subscription = SubscriptionFactory(
            user=user,
            plan=plan,
            trialing=True,
            trial_end=timezone.now() - timedelta(minutes=5),
            gateway_subscription_id="sub_trial",
        )

        handle_payment_succeeded(
            make_event("invoice.payment_succeeded", {"subscription": "sub_trial", "amount_paid": 1999})
        )

        stored = reload(subscription)
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.is_trial_active is False

    def test_subscription_from_invoice_parent(self, stripe_subscription, make_event):
        event = make_event(
            "invoice.payment_succeeded",
            {
                "id": "in_2",
                "amount_paid": 1999,
                "parent": {"subscription_details": {"subscription": "sub_123"}},
            },
        )

        handle_payment_succeeded(event)

        assert PaymentTransaction.objects.filter(subscription=stripe_subscription).exists()

    def test_paystack_charge_updates_next_billing_date(self, paystack_subscription, make_event):
        event = make_event(
            "charge.success",
            {
                "id": 302961,
                "reference": "T1234",
                "amount": 1000000,
                "currency": "NGN",
                "subscription": {"subscription_code": "SUB_abc"},
                "next_payment_date": "2026-11-18T08:00:00.000Z",
            },
            event_id="charge.success:302961",
            gateway=Gateway.PAYSTACK,
        )

        handle_payment_succeeded(event)

        stored = reload(paystack_subscription)
        assert stored.next_billing_date == datetime(2026, 11, 18, 8, tzinfo=dt_timezone.utc)
        payment = PaymentTransaction.objects.get(transaction_id="paystack_charge.success:302961")
        assert payment.amount == Decimal("10000.00")
        assert payment.currency == "NGN"
        assert payment.gateway_transaction_id == "T1234"

    def test_canceled_subscription_is_left_alone(self, user, plan, make_event):
        SubscriptionFactory(
            user=user, plan=plan, canceled=True, gateway_subscription_id="sub_gone"
        )

        result = handle_payment_succeeded(
            make_event("invoice.payment_succeeded", {"subscription": "sub_gone", "amount_paid": 1999})
        )

        assert result.success is True
        assert result.data.status == SubscriptionStatus.CANCELED
        assert not PaymentTransaction.objects.exists()

    def test_settles_one_off_payment(self, pending_payment, make_event):
        event = make_event(
            "charge.succeeded", {"id": "ch_1", "payment_intent": "pi_456", "amount": 1999}
        )

        result = handle_payment_succeeded(event)

        pending_payment.refresh_from_db()
        assert result.data == pending_payment
        assert pending_payment.status == PaymentStatus.COMPLETED
        assert pending_payment.processed_at is not None

    def test_unmatched_event_is_acknowledged(self, db, make_event):
        with patch("payments.webhooks.handlers.logger") as logger:
            result = handle_payment_succeeded(
                make_event("charge.succeeded", {"id": "ch_unknown"})
            )

        assert result.success is True
        assert result.data is None
        logger.warning.assert_called_once()

    def test_lookup_is_scoped_to_gateway(self, stripe_subscription, make_event):
        event = make_event(
            "charge.success",
            {"subscription": "sub_123", "amount": 1999},
            gateway=Gateway.PAYSTACK,
        )

        result = handle_payment_succeeded(event)

        assert result.data is None
        assert not PaymentTransaction.objects.exists()


# =============================================================================
# Payment Failed
# =============================================================================


class TestPaymentFailed:
    def test_marks_subscription_past_due(self, stripe_subscription, make_event):
        result = handle_payment_failed(
            make_event("invoice.payment_failed", {"id": "in_1", "subscription": "sub_123"})
        )

        assert result.success is True
        stored = reload(stripe_subscription)
        assert stored.status == SubscriptionStatus.PAST_DUE
        assert stored.is_active is True

    def test_already_past_due_is_noop(self, user, plan, make_event):
        subscription = SubscriptionFactory(
            user=user, plan=plan, past_due=True, gateway_subscription_id="sub_late"
        )

        result = handle_payment_failed(
            make_event("invoice.payment_failed", {"subscription": "sub_late"})
        )

        assert result.success is True
        assert reload(subscription).version == subscription.version

    def test_fails_one_off_payment(self, pending_payment, make_event):
        event = make_event(
            "charge.failed",
            {
                "id": "ch_1",
                "payment_intent": "pi_456",
                "failure_message": "Your card has insufficient funds.",
            },
        )

        handle_payment_failed(event)

        pending_payment.refresh_from_db()
        assert pending_payment.status == PaymentStatus.FAILED
        assert pending_payment.failure_reason == "Your card has insufficient funds."

    def test_failure_reason_from_last_payment_error(self, pending_payment, make_event):
        event = make_event(
            "charge.failed",
            {"payment_intent": "pi_456", "last_payment_error": {"message": "Card expired"}},
        )

        handle_payment_failed(event)

        pending_payment.refresh_from_db()
        assert pending_payment.failure_reason == "Card expired"

    def test_default_failure_reason(self, pending_payment, make_event):
        handle_payment_failed(make_event("charge.failed", {"payment_intent": "pi_456"}))

        pending_payment.refresh_from_db()
        assert pending_payment.failure_reason == "Payment failed"


# =============================================================================
# Subscription Canceled
# =============================================================================


class TestSubscriptionCanceled:
    def test_stripe_deletion(self, stripe_subscription, make_event):
        result = handle_subscription_canceled(
            make_event("customer.subscription.deleted", {"id": "sub_123", "status": "canceled"})
        )

        stored = reload(stripe_subscription)
        assert result.success is True
        assert stored.status == SubscriptionStatus.CANCELED
        assert stored.is_active is False
        assert stored.canceled_at is not None
        assert stored.cancellation_reason == "Canceled by gateway"

    def test_keeps_user_reason_from_deferred_cancel(self, stripe_subscription, make_event):
        stripe_subscription.will_cancel_at_period_end = True
        stripe_subscription.cancellation_reason = "Switching tools"
        stripe_subscription.save()

        handle_subscription_canceled(
            make_event("customer.subscription.deleted", {"id": "sub_123"})
        )

        stored = reload(stripe_subscription)
        assert stored.cancellation_reason == "Switching tools"
        assert stored.will_cancel_at_period_end is False

    def test_paystack_disable(self, paystack_subscription, make_event):
        handle_subscription_canceled(
            make_event(
                "subscription.disable",
                {"subscription_code": "SUB_abc", "status": "complete"},
                gateway=Gateway.PAYSTACK,
            )
        )

        assert reload(paystack_subscription).status == SubscriptionStatus.CANCELED

    def test_already_canceled(self, user, plan, make_event):
        subscription = SubscriptionFactory(
            user=user, plan=plan, canceled=True, gateway_subscription_id="sub_gone"
        )

        result = handle_subscription_canceled(
            make_event("customer.subscription.deleted", {"id": "sub_gone"})
        )

        assert result.success is True
        assert reload(subscription).version == subscription.version

    def test_unknown_subscription(self, db, make_event):
        result = handle_subscription_canceled(
            make_event("customer.subscription.deleted", {"id": "sub_missing"})
        )

        assert result.success is True
        assert result.data is None


# =============================================================================
# Payload Helpers
# =============================================================================


class TestExtractSubscriptionRef:
    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            ({"subscription": "sub_1", "id": "in_1"}, "sub_1"),
            ({"subscription": {"subscription_code": "SUB_1"}}, "SUB_1"),
            ({"subscription": {"id": "sub_2"}}, "sub_2"),
            ({"subscription_code": "SUB_3", "id": 99}, "SUB_3"),
            ({"subscription_id": "sub_4"}, "sub_4"),
            ({"parent": {"subscription_details": {"subscription": "sub_5"}}, "id": "in_5"}, "sub_5"),
            ({"id": "sub_6"}, "sub_6"),
            ({"id": 1234}, "1234"),
            ({}, None),
        ],
    )
    def test_lookup_order(self, data, expected):
        assert extract_subscription_ref(data) == expected


def test_extract_payment_refs():
    data = {"reference": "T1", "payment_intent": "pi_1", "id": "ch_1"}

    assert extract_payment_refs(data) == ["T1", "pi_1", "ch_1"]
    assert extract_payment_refs({"id": 42}) == ["42"]


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        ({"amount_paid": 1999, "amount": 5000}, Decimal("19.99")),
        ({"amount": 5000}, Decimal("50.00")),
        ({}, Decimal("0.00")),
    ],
)
def test_extract_amount(data, expected):
    assert extract_amount(data) == expected
