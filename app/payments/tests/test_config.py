"""
Tests for PaymentConfig.from_settings.
"""

import pytest

from payments.config import ENVIRONMENT_LIVE, GatewayConfig, PaymentConfig
from payments.types import Gateway


@pytest.fixture
def gateway_settings(settings):
    settings.PAYMENT_ENVIRONMENT = "test"
    settings.STRIPE_ENABLED = True
    settings.STRIPE_SECRET_KEY = "sk_test_config"
    settings.STRIPE_PUBLISHABLE_KEY = "pk_test_config"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_config"
    settings.STRIPE_API_TIMEOUT_SECONDS = 15
    settings.PAYSTACK_ENABLED = True
    settings.PAYSTACK_SECRET_KEY = "sk_paystack_config"
    settings.PAYSTACK_PUBLIC_KEY = "pk_paystack_config"
    settings.PAYSTACK_WEBHOOK_SECRET = ""
    settings.PAYSTACK_API_TIMEOUT_SECONDS = 20
    settings.PAYSTACK_BASE_URL = "https://api.paystack.co"
    settings.PAYSTACK_CALLBACK_URL = "https://app.example.com/billing/callback"
    settings.PAYMENTS_ENABLED = True
    settings.PAYMENT_TRIALS_ENABLED = True
    settings.PAYMENT_TRIAL_DAYS = 14
    settings.PAYWALL_ENABLED = False
    return settings


class TestFromSettings:
    def test_both_gateways(self, gateway_settings):
        config = PaymentConfig.from_settings()

        assert set(config.gateways) == {Gateway.STRIPE, Gateway.PAYSTACK}
        stripe = config.gateways[Gateway.STRIPE]
        assert stripe.secret_key == "sk_test_config"
        assert stripe.api_key == "pk_test_config"
        assert stripe.webhook_secret == "whsec_config"
        assert stripe.timeout_seconds == 15
        paystack = config.gateways[Gateway.PAYSTACK]
        assert paystack.base_url == "https://api.paystack.co"
        assert paystack.callback_url == "https://app.example.com/billing/callback"
        assert config.trial_days == 14
        assert config.paywall_enabled is False

    def test_disabled_gateway_is_left_out(self, gateway_settings):
        gateway_settings.PAYSTACK_ENABLED = False

        assert set(PaymentConfig.from_settings().gateways) == {Gateway.STRIPE}

    def test_gateway_without_secret_is_left_out(self, gateway_settings):
        gateway_settings.STRIPE_SECRET_KEY = ""

        assert set(PaymentConfig.from_settings().gateways) == {Gateway.PAYSTACK}

    def test_live_environment(self, gateway_settings):
        gateway_settings.PAYMENT_ENVIRONMENT = ENVIRONMENT_LIVE

        config = PaymentConfig.from_settings()

        assert config.gateways[Gateway.STRIPE].is_live is True

    def test_trials_disabled(self, gateway_settings):
        gateway_settings.PAYMENT_TRIALS_ENABLED = False

        config = PaymentConfig.from_settings()

        assert config.trial_days == 14
        assert config.effective_trial_days == 0


def test_gateway_config_defaults():
    config = GatewayConfig(gateway=Gateway.STRIPE, secret_key="sk")

    assert config.is_live is False
    assert config.timeout_seconds == 10
    assert config.webhook_secret == ""
