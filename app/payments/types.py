"""
Gateway-neutral payment vocabulary.

Every gateway adapter accepts and returns these types, so the service
layer never sees a provider-specific payload. Amounts are always
``Decimal`` in major units (19.99 USD); adapters convert to minor units
(cents, kobo) at the wire boundary with ``to_minor_units``.

Usage:
    from payments.types import CustomerInfo, SubscriptionRequest, BillingCycle

    request = SubscriptionRequest(
        customer=CustomerInfo(email="ada@example.com", first_name="Ada", last_name="L"),
        plan_id="pro-monthly",
        amount=Decimal("29.99"),
        currency=Currency.USD,
        billing_cycle=BillingCycle.MONTHLY,
        trial_days=7,
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.db import models

from payments.state_machines import PaymentStatus, SubscriptionStatus

__all__ = [
    "Address",
    "BillingCycle",
    "CancelSubscriptionRequest",
    "CancelSubscriptionResponse",
    "Currency",
    "CustomerInfo",
    "Gateway",
    "PaymentMethod",
    "PaymentRequest",
    "PaymentResponse",
    "PaymentStatus",
    "PlanType",
    "SubscriptionRequest",
    "SubscriptionResponse",
    "SubscriptionStatus",
    "UpdateSubscriptionRequest",
    "UpdateSubscriptionResponse",
    "WebhookEvent",
    "to_major_units",
    "to_minor_units",
]


# =============================================================================
# Enums
# =============================================================================


class Gateway(models.TextChoices):
    STRIPE = "stripe", "Stripe"
    PAYSTACK = "paystack", "Paystack"
    FLUTTERWAVE = "flutterwave", "Flutterwave"
    PAYPAL = "paypal", "PayPal"
    RAZORPAY = "razorpay", "Razorpay"
    CUSTOM = "custom", "Custom"


class PaymentMethod(models.TextChoices):
    CARD = "card", "Card"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    MOBILE_MONEY = "mobile_money", "Mobile Money"
    CRYPTO = "crypto", "Crypto"
    WALLET = "wallet", "Wallet"


class BillingCycle(models.TextChoices):
    MONTHLY = "monthly", "Monthly"
    QUARTERLY = "quarterly", "Quarterly"
    YEARLY = "yearly", "Yearly"
    CUSTOM = "custom", "Custom"


class Currency(models.TextChoices):
    USD = "USD", "US Dollar"
    EUR = "EUR", "Euro"
    GBP = "GBP", "British Pound"
    NGN = "NGN", "Nigerian Naira"
    KES = "KES", "Kenyan Shilling"
    GHS = "GHS", "Ghanaian Cedi"
    ZAR = "ZAR", "South African Rand"
    INR = "INR", "Indian Rupee"
    CAD = "CAD", "Canadian Dollar"
    AUD = "AUD", "Australian Dollar"


class PlanType(models.TextChoices):
    FREE = "free", "Free"
    BASIC = "basic", "Basic"
    PREMIUM = "premium", "Premium"
    ENTERPRISE = "enterprise", "Enterprise"
    CUSTOM = "custom", "Custom"


# =============================================================================
# Amount Conversion
# =============================================================================

_CENT = Decimal("0.01")


def to_minor_units(amount: Decimal | int | str) -> int:
    """
    Convert a major-unit amount to the provider's minor unit.

    Every supported currency is subdivided by 100. Zero-decimal
    currencies (JPY, KRW) would need their own factor.

    Example:
        to_minor_units(Decimal("19.99"))  # 1999
    """
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(minor: int | str | Decimal) -> Decimal:
    """
    Convert a minor-unit amount back to major units.

    Example:
        to_major_units(1999)  # Decimal("19.99")
    """
    return (Decimal(str(minor)) / 100).quantize(_CENT, rounding=ROUND_HALF_UP)


# =============================================================================
# Requests
# =============================================================================


@dataclass
class Address:
    country: str
    state: str = ""
    city: str = ""
    postal_code: str = ""
    line1: str = ""
    line2: str = ""


@dataclass
class CustomerInfo:
    """
    Snapshot of the billable party sent to a gateway.

    Attributes:
        email: Required by every gateway
        first_name / last_name: Billing name
        id: Existing gateway customer id; adapters reuse it instead of
            creating a new customer
        phone: Optional contact phone
        address: Optional billing address
        metadata: Extra key-values stored on the gateway customer
    """

    email: str
    first_name: str = ""
    last_name: str = ""
    id: str | None = None
    phone: str | None = None
    address: Address | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError("email is required")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class SubscriptionRequest:
    customer: CustomerInfo
    plan_id: str
    amount: Decimal
    currency: str
    billing_cycle: str = BillingCycle.MONTHLY
    payment_method: str = PaymentMethod.CARD
    trial_days: int = 0
    plan_name: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.amount = Decimal(str(self.amount))
        if self.amount < 0:
            raise ValueError("amount must not be negative")
        if not self.plan_id:
            raise ValueError("plan_id is required")
        if not self.currency:
            raise ValueError("currency is required")
        if self.trial_days < 0:
            raise ValueError("trial_days must not be negative")


@dataclass
class PaymentRequest:
    customer: CustomerInfo
    amount: Decimal
    currency: str
    description: str = ""
    payment_method: str = PaymentMethod.CARD
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.amount = Decimal(str(self.amount))
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class CancelSubscriptionRequest:
    subscription_id: str
    cancel_at_period_end: bool = True
    reason: str | None = None


@dataclass
class UpdateSubscriptionRequest:
    """
    Partial update; only non-None fields are applied.

    Attributes:
        subscription_id: Gateway subscription id
        amount: New recurring amount in major units
        billing_cycle: New billing cycle
        metadata: Keys merged into the gateway subscription metadata
        currency: Currency of the existing subscription; gateways that
            rebuild a plan need it
    """

    subscription_id: str
    amount: Decimal | None = None
    billing_cycle: str | None = None
    metadata: dict[str, Any] | None = None
    currency: str | None = None
    customer_id: str | None = None

    def __post_init__(self) -> None:
        if self.amount is not None:
            self.amount = Decimal(str(self.amount))
            if self.amount < 0:
                raise ValueError("amount must not be negative")

    @property
    def has_changes(self) -> bool:
        return any(
            value is not None
            for value in (self.amount, self.billing_cycle, self.metadata)
        )


# =============================================================================
# Responses
# =============================================================================


@dataclass
class SubscriptionResponse:
    """
    Normalized result of creating a subscription at a gateway.

    ``status`` is the five-state payment view of the subscription
    (trialing counts as completed); ``subscription_status`` is what the
    local Subscription row stores.
    """

    success: bool
    subscription_id: str
    customer_id: str
    status: str
    subscription_status: str
    gateway: str
    next_billing_date: datetime | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentResponse:
    """
    Normalized result of initiating a one-off charge.

    Redirect or client-confirmation artifacts (``client_secret``,
    ``authorization_url``) travel in ``metadata``.
    """

    success: bool
    transaction_id: str
    status: str
    amount: Decimal
    currency: str
    gateway: str
    gateway_transaction_id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class CancelSubscriptionResponse:
    success: bool
    subscription_id: str
    status: str
    subscription_status: str
    gateway: str
    canceled_at: datetime | None = None
    will_cancel_at_period_end: bool = False


@dataclass
class UpdateSubscriptionResponse:
    success: bool
    subscription_id: str
    gateway: str
    updated_fields: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class WebhookEvent:
    """
    Verified, normalized webhook envelope.

    Transient: consumed once by the dispatcher. Deduplication is tracked
    separately by ProcessedWebhookEvent.

    Attributes:
        id: Provider event id (or a derived id when the provider has none)
        type: Provider event type string
        data: The event's primary object
        timestamp: When the provider created the event
        gateway: Originating gateway
        metadata: Extra envelope fields (raw payload, livemode)
    """

    id: str
    type: str
    data: dict[str, Any]
    timestamp: datetime
    gateway: str
    metadata: dict[str, Any] = field(default_factory=dict)
