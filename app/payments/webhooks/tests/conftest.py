"""
Pytest fixtures for webhook tests.

Provides subscriptions on each gateway, a pending one-off payment and a
``make_event`` factory for normalized WebhookEvent objects.
"""

import pytest
from django.utils import timezone

from payments.tests.factories import (
    PaymentTransactionFactory,
    SubscriptionFactory,
    SubscriptionPlanFactory,
    UserFactory,
)
from payments.types import Currency, Gateway, WebhookEvent


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def plan(db):
    return SubscriptionPlanFactory(plan_id="premium", name="Premium Plan")


@pytest.fixture
def stripe_subscription(user, plan):
    """Active Stripe subscription sub_123."""
    return SubscriptionFactory(user=user, plan=plan, gateway_subscription_id="sub_123")


@pytest.fixture
def paystack_subscription(db):
    """Active Paystack subscription SUB_abc on an NGN plan, for a second user."""
    plan = SubscriptionPlanFactory(
        plan_id="premium-ngn", name="Premium Plan (NGN)", currency=Currency.NGN
    )
    return SubscriptionFactory(
        plan=plan,
        gateway=Gateway.PAYSTACK,
        gateway_subscription_id="SUB_abc",
        gateway_customer_id="CUS_abc",
    )


@pytest.fixture
def pending_payment(user):
    """One-off Stripe payment awaiting its charge webhook."""
    return PaymentTransactionFactory(
        user=user, transaction_id="pi_456", gateway_transaction_id="pi_456"
    )


@pytest.fixture
def make_event():
    """
    Build a verified WebhookEvent.

    Usage:
        event = make_event("invoice.payment_succeeded", {"subscription": "sub_123"})
    """

    def _make_event(event_type, data, event_id="evt_1", gateway=Gateway.STRIPE):
        return WebhookEvent(
            id=event_id,
            type=event_type,
            data=data,
            timestamp=timezone.now(),
            gateway=gateway,
        )

    return _make_event
