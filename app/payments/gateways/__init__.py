"""
Payment gateway adapters.

Each provider is wrapped in a BaseGateway subclass so the service layer
works against one contract regardless of who moves the money.

Usage:
    from payments.gateways import create_gateway, get_best_gateway

    adapter = create_gateway(get_best_gateway("USD"))
    adapter.initialize(gateway_config)
"""

from payments.gateways.base import BaseGateway
from payments.gateways.factory import (
    CURRENCY_GATEWAY_PREFERENCE,
    create_gateway,
    get_best_gateway,
    get_gateways_for,
)
from payments.gateways.paystack_gateway import PaystackGateway
from payments.gateways.stripe_gateway import StripeGateway
from payments.gateways.workflow import GatewayWorkflow, WorkflowStep

__all__ = [
    "BaseGateway",
    "CURRENCY_GATEWAY_PREFERENCE",
    "GatewayWorkflow",
    "PaystackGateway",
    "StripeGateway",
    "WorkflowStep",
    "create_gateway",
    "get_best_gateway",
    "get_gateways_for",
]
