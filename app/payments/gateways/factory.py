"""
Gateway construction and currency-based routing.

``create_gateway`` maps a Gateway value to a fresh, uninitialized
adapter. ``get_best_gateway`` picks the gateway for a charge from the
currency preference table, falling back to any implemented gateway that
supports the (currency, payment method) pair.

Usage:
    from payments.gateways.factory import create_gateway, get_best_gateway

    gateway_name = get_best_gateway("NGN", PaymentMethod.CARD)  # "paystack"
    adapter = create_gateway(gateway_name)
    adapter.initialize(config.gateways[gateway_name])
"""

from __future__ import annotations

import logging

from payments.exceptions import PaymentConfigurationError
from payments.gateways.base import BaseGateway
from payments.gateways.paystack_gateway import PaystackGateway
from payments.gateways.stripe_gateway import StripeGateway
from payments.types import Currency, Gateway, PaymentMethod

logger = logging.getLogger(__name__)


GATEWAYS: dict[str, type[BaseGateway]] = {
    Gateway.STRIPE: StripeGateway,
    Gateway.PAYSTACK: PaystackGateway,
}

CURRENCY_GATEWAY_PREFERENCE: dict[str, str] = {
    Currency.NGN: Gateway.PAYSTACK,
    Currency.GHS: Gateway.PAYSTACK,
    Currency.KES: Gateway.PAYSTACK,
    Currency.ZAR: Gateway.PAYSTACK,
    Currency.USD: Gateway.STRIPE,
    Currency.EUR: Gateway.STRIPE,
    Currency.GBP: Gateway.STRIPE,
    Currency.CAD: Gateway.STRIPE,
    Currency.AUD: Gateway.STRIPE,
    Currency.INR: Gateway.RAZORPAY,
}

DEFAULT_GATEWAY = Gateway.STRIPE


def create_gateway(gateway: str) -> BaseGateway:
    """
    Return a new, uninitialized adapter for ``gateway``.

    Raises:
        PaymentConfigurationError: Gateway is known but has no adapter,
            or is not a gateway at all

    Custom adapters are passed to PaymentService as a ``gateway_factory``
    instead.
    """
    match gateway:
        case Gateway.STRIPE:
            return StripeGateway()
        case Gateway.PAYSTACK:
            return PaystackGateway()
        case Gateway.FLUTTERWAVE | Gateway.PAYPAL | Gateway.RAZORPAY:
            raise PaymentConfigurationError(
                f"{gateway} gateway is not implemented yet",
                gateway=str(gateway),
            )
        case Gateway.CUSTOM:
            raise PaymentConfigurationError(
                "Custom gateways must be constructed by the caller",
                gateway=str(gateway),
            )
        case _:
            supported = ", ".join(str(g) for g in GATEWAYS)
            raise PaymentConfigurationError(
                f"Unsupported gateway: {gateway}. Supported: {supported}",
                gateway=str(gateway),
            )


def get_gateways_for(currency: str, payment_method: str = PaymentMethod.CARD) -> list[str]:
    """Implemented gateways supporting the pair, preferred gateway first."""
    currency = str(currency).upper()
    candidates = [
        gateway
        for gateway, gateway_class in GATEWAYS.items()
        if gateway_class.is_supported(currency, payment_method)
    ]
    preferred = CURRENCY_GATEWAY_PREFERENCE.get(currency)
    if preferred in candidates:
        candidates.remove(preferred)
        candidates.insert(0, preferred)
    return candidates


def get_best_gateway(currency: str, payment_method: str = PaymentMethod.CARD) -> str:
    """
    Pick the gateway to charge ``currency`` with ``payment_method``.

    Order of preference:
    1. The currency's preferred gateway, if implemented and supporting the pair
    2. The first implemented gateway supporting the pair
    3. Stripe
    """
    candidates = get_gateways_for(currency, payment_method)
    if candidates:
        return candidates[0]

    logger.warning(
        "No gateway supports currency/payment method; using default",
        extra={
            "currency": str(currency),
            "payment_method": str(payment_method),
            "gateway": DEFAULT_GATEWAY,
        },
    )
    return DEFAULT_GATEWAY
