"""
State enums for payment models.

These are Django TextChoices, so the same values serve as database
choices, admin filters and the normalized vocabulary gateways map into.

State Machines Overview:

Subscription Status:
    trialing → active (first successful charge)
    trialing/active → past_due (charge failed)
    past_due → active (recovered)
    trialing/active/past_due → canceled (terminal)

Payment Status (normalized from every gateway):
    pending → completed | failed
    completed → refunded | disputed

Webhook Event Status:
    pending → processing → processed
    processing → failed → processing (provider redelivery)
"""

from django.db import models


class SubscriptionStatus(models.TextChoices):
    """
    Lifecycle of a subscription. CANCELED is terminal.

    Gateway-specific values (Stripe ``unpaid``, Paystack ``attention``,
    etc.) are folded into these four.
    """

    ACTIVE = "active", "Active"
    TRIALING = "trialing", "Trialing"
    PAST_DUE = "past_due", "Past Due"
    CANCELED = "canceled", "Canceled"


class PaymentStatus(models.TextChoices):
    """
    Outcome of a single charge, shared by all gateways.

    Unknown provider statuses map to PENDING.
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    DISPUTED = "disputed", "Disputed"


class WebhookEventStatus(models.TextChoices):
    """Processing state of a received webhook delivery."""

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
