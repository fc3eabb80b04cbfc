"""
Payment domain models.

- SubscriptionPlan: Purchasable plan catalog with features and limits
- GatewayCustomer: Cached customer id per (user, gateway)
- Subscription: Recurring subscription mirrored from a gateway
- PaymentTransaction: Individual payments and recorded charges
- ProcessedWebhookEvent: Webhook deduplication and processing audit
"""

from payments.models.customer import GatewayCustomer
from payments.models.plan import SubscriptionPlan
from payments.models.subscription import Subscription
from payments.models.transaction import PaymentTransaction
from payments.models.webhook_event import ProcessedWebhookEvent

__all__ = [
    "GatewayCustomer",
    "PaymentTransaction",
    "ProcessedWebhookEvent",
    "Subscription",
    "SubscriptionPlan",
]
