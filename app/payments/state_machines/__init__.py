"""
State enums used by payment models and gateway normalization.

Usage:
    from payments.state_machines import SubscriptionStatus, PaymentStatus
"""

from payments.state_machines.states import (
    PaymentStatus,
    SubscriptionStatus,
    WebhookEventStatus,
)

__all__ = [
    "PaymentStatus",
    "SubscriptionStatus",
    "WebhookEventStatus",
]
