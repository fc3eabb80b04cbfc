"""
Fixtures for gateway adapter tests.

Adapters are initialized with hand-built GatewayConfig values; no test
here touches Django settings or the network.
"""

from decimal import Decimal

import pytest

from payments.config import GatewayConfig
from payments.gateways.paystack_gateway import PaystackGateway
from payments.gateways.stripe_gateway import StripeGateway
from payments.types import Address, CustomerInfo, Gateway


@pytest.fixture
def stripe_config():
    return GatewayConfig(
        gateway=Gateway.STRIPE,
        secret_key="sk_test_123",
        api_key="pk_test_123",
        webhook_secret="whsec_test",
    )


@pytest.fixture
def paystack_config():
    return GatewayConfig(
        gateway=Gateway.PAYSTACK,
        secret_key="sk_test_paystack",
        api_key="pk_test_paystack",
        webhook_secret="paystack_whsec",
        base_url="https://api.paystack.test",
        callback_url="https://app.example.com/billing/callback",
    )


@pytest.fixture
def stripe_gateway(stripe_config):
    gateway = StripeGateway()
    gateway.initialize(stripe_config)
    return gateway


@pytest.fixture
def paystack_gateway(paystack_config):
    gateway = PaystackGateway()
    gateway.initialize(paystack_config)
    return gateway


@pytest.fixture
def customer_info():
    return CustomerInfo(
        email="ada@example.com",
        first_name="Ada",
        last_name="Obi",
        phone="+2348000000000",
        address=Address(country="NG", city="Lagos", line1="1 Allen Avenue"),
        metadata={"user_id": "42"},
    )


@pytest.fixture
def plan_amount():
    return Decimal("29.99")
