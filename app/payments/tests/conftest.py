"""
Pytest fixtures for payment tests.

This module provides fixtures for creating payment-related test data and
a PaymentService wired to mock gateway adapters. Subscription fixtures
cover every state so transition and access tests can start from any of
them.

Usage:
    def test_cancel_now(service, stripe_adapter, active_subscription):
        service.cancel_subscription(active_subscription.pk, cancel_at_period_end=False)
        stripe_adapter.cancel_subscription.assert_called_once()
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from authentication.tests.factories import UserFactory
from payments.config import GatewayConfig, PaymentConfig
from payments.gateways.paystack_gateway import PaystackGateway
from payments.gateways.stripe_gateway import StripeGateway
from payments.services import PaymentService
from payments.state_machines import PaymentStatus, SubscriptionStatus
from payments.tests.factories import (
    ProcessedWebhookEventFactory,
    SubscriptionFactory,
    SubscriptionPlanFactory,
)
from payments.types import (
    CancelSubscriptionResponse,
    Currency,
    Gateway,
    PaymentResponse,
    PlanType,
    SubscriptionResponse,
    UpdateSubscriptionResponse,
)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user with a billing name."""
    return UserFactory(profile__first_name="Ada", profile__last_name="Obi")


@pytest.fixture
def other_user(db):
    return UserFactory()


# =============================================================================
# Plan Fixtures
# =============================================================================


@pytest.fixture
def plan(db):
    """Premium USD plan: aiReview on, telegramBot off, 100 documents."""
    return SubscriptionPlanFactory(
        plan_id="premium",
        name="Premium Plan",
        monthly_price=Decimal("19.99"),
        quarterly_price=Decimal("53.99"),
        yearly_price=Decimal("199.99"),
    )


@pytest.fixture
def basic_plan(db):
    return SubscriptionPlanFactory(
        plan_id="basic",
        name="Basic Plan",
        plan_type=PlanType.BASIC,
        monthly_price=Decimal("9.99"),
        features={"aiReview": False, "exportFeatures": True, "maxDocuments": 20},
    )


@pytest.fixture
def ngn_plan(db):
    return SubscriptionPlanFactory(
        plan_id="premium-ngn",
        name="Premium Plan (NGN)",
        monthly_price=Decimal("10000"),
        currency=Currency.NGN,
    )


# =============================================================================
# Subscription State Fixtures
# =============================================================================


@pytest.fixture
def active_subscription(db, user, plan):
    """Create an active subscription."""
    return SubscriptionFactory(user=user, plan=plan)


@pytest.fixture
def trialing_subscription(db, user, plan):
    """Create a subscription in a 7-day trial."""
    return SubscriptionFactory(user=user, plan=plan, trialing=True)


@pytest.fixture
def past_due_subscription(db, user, plan):
    """Create a subscription whose last charge failed."""
    return SubscriptionFactory(user=user, plan=plan, past_due=True)


@pytest.fixture
def canceled_subscription(db, user, plan):
    """Create a canceled subscription."""
    return SubscriptionFactory(user=user, plan=plan, canceled=True)


# =============================================================================
# Webhook Event Fixtures
# =============================================================================


@pytest.fixture
def pending_webhook(db):
    """Create a pending webhook event."""
    return ProcessedWebhookEventFactory()


@pytest.fixture
def processed_webhook(db):
    """Create a processed webhook event."""
    webhook = ProcessedWebhookEventFactory()
    webhook.mark_processing()
    webhook.mark_processed()
    webhook.save()
    return webhook


@pytest.fixture
def failed_webhook(db):
    """Create a failed webhook event."""
    webhook = ProcessedWebhookEventFactory()
    webhook.mark_processing()
    webhook.mark_failed("Processing error: test failure")
    webhook.save()
    return webhook


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def payment_config():
    """Both gateways configured, 7-day trials, paywall on."""
    return PaymentConfig(
        gateways={
            Gateway.STRIPE: GatewayConfig(gateway=Gateway.STRIPE, secret_key="sk_test_123"),
            Gateway.PAYSTACK: GatewayConfig(
                gateway=Gateway.PAYSTACK, secret_key="sk_test_paystack"
            ),
        },
        trial_days=7,
    )


def _subscription_response(gateway, subscription_id, customer_id, metadata, trial_days=0):
    now = timezone.now()
    trial_end = now + timedelta(days=trial_days) if trial_days else None
    return SubscriptionResponse(
        success=True,
        subscription_id=subscription_id,
        customer_id=customer_id,
        status=PaymentStatus.COMPLETED,
        subscription_status=(
            SubscriptionStatus.TRIALING if trial_days else SubscriptionStatus.ACTIVE
        ),
        gateway=gateway,
        next_billing_date=trial_end or now + timedelta(days=30),
        current_period_start=now,
        current_period_end=trial_end or now + timedelta(days=30),
        trial_start=now if trial_days else None,
        trial_end=trial_end,
        metadata=metadata,
    )


@pytest.fixture
def stripe_adapter():
    """
    Mock Stripe adapter with happy-path replies.

    ``create_subscription`` honours the requested trial so tests can
    check trial dates flow from the response into the row.
    """
    adapter = MagicMock(spec=StripeGateway)
    adapter.gateway = Gateway.STRIPE
    adapter.create_customer.return_value = "cus_new"
    adapter.create_subscription.side_effect = lambda request: _subscription_response(
        Gateway.STRIPE,
        "sub_new",
        request.customer.id,
        {
            "stripe_subscription_id": "sub_new",
            "stripe_customer_id": request.customer.id,
            "stripe_product_id": "prod_new",
            "stripe_price_id": "price_new",
        },
        trial_days=request.trial_days,
    )
    adapter.cancel_subscription.side_effect = lambda request: CancelSubscriptionResponse(
        success=True,
        subscription_id=request.subscription_id,
        status=(
            PaymentStatus.COMPLETED if request.cancel_at_period_end else PaymentStatus.FAILED
        ),
        subscription_status=(
            SubscriptionStatus.ACTIVE
            if request.cancel_at_period_end
            else SubscriptionStatus.CANCELED
        ),
        gateway=Gateway.STRIPE,
        canceled_at=timezone.now(),
        will_cancel_at_period_end=request.cancel_at_period_end,
    )
    adapter.update_subscription.side_effect = lambda request: UpdateSubscriptionResponse(
        success=True,
        subscription_id=request.subscription_id,
        gateway=Gateway.STRIPE,
        updated_fields=["amount"] if request.amount is not None else ["metadata"],
        metadata={"stripe_price_id": "price_updated"} if request.amount is not None else {},
    )
    adapter.process_payment.side_effect = lambda request: PaymentResponse(
        success=True,
        transaction_id="pi_new",
        status=PaymentStatus.PENDING,
        amount=request.amount,
        currency=request.currency,
        gateway=Gateway.STRIPE,
        gateway_transaction_id="pi_new",
        metadata={"client_secret": "pi_new_secret"},
    )
    return adapter


@pytest.fixture
def paystack_adapter():
    adapter = MagicMock(spec=PaystackGateway)
    adapter.gateway = Gateway.PAYSTACK
    adapter.create_customer.return_value = "CUS_new"
    adapter.create_subscription.side_effect = lambda request: _subscription_response(
        Gateway.PAYSTACK,
        "SUB_new",
        request.customer.id,
        {
            "paystack_subscription_code": "SUB_new",
            "paystack_customer_code": request.customer.id,
            "paystack_plan_code": "PLN_new",
            "paystack_email_token": "tok_new",
        },
        trial_days=request.trial_days,
    )
    adapter.process_payment.side_effect = lambda request: PaymentResponse(
        success=True,
        transaction_id="TXN_ref",
        status=PaymentStatus.PENDING,
        amount=request.amount,
        currency=request.currency,
        gateway=Gateway.PAYSTACK,
        gateway_transaction_id="TXN_ref",
        metadata={"authorization_url": "https://checkout.paystack.com/abc"},
    )
    return adapter


@pytest.fixture
def adapters(stripe_adapter, paystack_adapter):
    return {Gateway.STRIPE: stripe_adapter, Gateway.PAYSTACK: paystack_adapter}


@pytest.fixture
def service(payment_config, adapters):
    """PaymentService whose gateway factory hands out the mock adapters."""
    return PaymentService(payment_config, gateway_factory=adapters.__getitem__)
