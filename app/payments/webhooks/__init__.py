"""
Webhook handling for payment gateway events.

Deliveries are verified by the gateway adapter, deduplicated on
(gateway, event_id) and dispatched synchronously to the handler
registered for the event type.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("webhooks/<str:gateway>/", gateway_webhook, name="gateway_webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler

__all__ = [
    "dispatch_webhook",
    "register_handler",
]
