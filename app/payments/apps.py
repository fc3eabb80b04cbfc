"""
Payments app configuration.

This app provides billing through pluggable payment gateways:
- Stripe and Paystack adapters behind one interface
- Subscription lifecycle and one-off payments
- Webhook verification, deduplication and processing
- Plan-based feature access
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
