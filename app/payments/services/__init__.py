"""
Payment services.

This module provides:
- PaymentService: Subscriptions, one-off payments and webhook processing
  across every configured gateway
- get_payment_service: PaymentService built from Django settings

Usage:
    from payments.services import get_payment_service

    service = get_payment_service()
    subscription = service.create_subscription(user_id=user.pk, plan_id="basic")

    # Tests and scripts can inject configuration directly
    from payments.config import GatewayConfig, PaymentConfig
    from payments.services import PaymentService

    service = PaymentService(
        PaymentConfig(gateways={"stripe": GatewayConfig(gateway="stripe", secret_key="sk_test")})
    )
"""

from payments.services.payment_service import (
    PaymentService,
    WebhookResult,
    get_payment_service,
)

__all__ = [
    "PaymentService",
    "WebhookResult",
    "get_payment_service",
]
