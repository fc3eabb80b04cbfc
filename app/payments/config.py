"""
Payment configuration values.

Settings are read once, here, and turned into frozen dataclasses that
are passed explicitly to PaymentService and gateway adapters. Nothing
below this module reads ``django.conf.settings`` for credentials, so
tests can build a PaymentConfig by hand.

Usage:
    from payments.config import PaymentConfig

    config = PaymentConfig.from_settings()
    config.gateways[Gateway.STRIPE].secret_key
"""

from __future__ import annotations

from dataclasses import dataclass, field

from django.conf import settings

from payments.types import Gateway

ENVIRONMENT_TEST = "test"
ENVIRONMENT_LIVE = "live"


@dataclass(frozen=True)
class GatewayConfig:
    """
    Credentials and transport options for one gateway.

    Attributes:
        gateway: Gateway this config belongs to; adapters reject a mismatch
        secret_key: Server-side API key
        api_key: Publishable/public key (handed to clients, never used server-side)
        webhook_secret: Secret used to verify webhook signatures
        environment: "test" or "live"
        timeout_seconds: Timeout applied to outbound HTTP calls
        base_url: API root for REST gateways
        callback_url: Where redirect-based checkouts return the user
    """

    gateway: str
    secret_key: str
    api_key: str = ""
    webhook_secret: str = ""
    environment: str = ENVIRONMENT_TEST
    timeout_seconds: int = 10
    base_url: str = ""
    callback_url: str = ""

    @property
    def is_live(self) -> bool:
        return self.environment == ENVIRONMENT_LIVE


@dataclass(frozen=True)
class PaymentConfig:
    """
    Everything PaymentService needs, resolved at construction time.

    Only gateways that are enabled and have a secret key appear in
    ``gateways``.
    """

    gateways: dict[str, GatewayConfig] = field(default_factory=dict)
    enabled: bool = True
    trials_enabled: bool = True
    trial_days: int = 7
    paywall_enabled: bool = True

    @property
    def effective_trial_days(self) -> int:
        return self.trial_days if self.trials_enabled else 0

    @classmethod
    def from_settings(cls) -> PaymentConfig:
        environment = getattr(settings, "PAYMENT_ENVIRONMENT", ENVIRONMENT_TEST)
        gateways: dict[str, GatewayConfig] = {}

        if settings.STRIPE_ENABLED and settings.STRIPE_SECRET_KEY:
            gateways[Gateway.STRIPE] = GatewayConfig(
                gateway=Gateway.STRIPE,
                secret_key=settings.STRIPE_SECRET_KEY,
                api_key=settings.STRIPE_PUBLISHABLE_KEY,
                webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
                environment=environment,
                timeout_seconds=settings.STRIPE_API_TIMEOUT_SECONDS,
            )

        if settings.PAYSTACK_ENABLED and settings.PAYSTACK_SECRET_KEY:
            gateways[Gateway.PAYSTACK] = GatewayConfig(
                gateway=Gateway.PAYSTACK,
                secret_key=settings.PAYSTACK_SECRET_KEY,
                api_key=settings.PAYSTACK_PUBLIC_KEY,
                webhook_secret=settings.PAYSTACK_WEBHOOK_SECRET,
                environment=environment,
                timeout_seconds=settings.PAYSTACK_API_TIMEOUT_SECONDS,
                base_url=settings.PAYSTACK_BASE_URL,
                callback_url=settings.PAYSTACK_CALLBACK_URL,
            )

        return cls(
            gateways=gateways,
            enabled=settings.PAYMENTS_ENABLED,
            trials_enabled=settings.PAYMENT_TRIALS_ENABLED,
            trial_days=settings.PAYMENT_TRIAL_DAYS,
            paywall_enabled=settings.PAYWALL_ENABLED,
        )
