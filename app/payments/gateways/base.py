"""
Gateway adapter contract.

Every payment provider is wrapped in a BaseGateway subclass exposing the
same operations over the types in ``payments.types``. Adapters are
stateful: they hold a GatewayConfig set by ``initialize()`` and refuse
to do anything before that.

Capability queries (supported currencies, payment methods, status maps)
are class-level so the factory can route without instantiating or
touching the network.

Usage:
    from payments.gateways import create_gateway

    gateway = create_gateway(Gateway.STRIPE)
    gateway.initialize(config)
    customer_id = gateway.create_customer(customer_info)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, ClassVar

from payments.exceptions import PaymentConfigurationError
from payments.state_machines import PaymentStatus, SubscriptionStatus

if TYPE_CHECKING:
    from payments.config import GatewayConfig
    from payments.gateways.workflow import WorkflowStep
    from payments.types import (
        CancelSubscriptionRequest,
        CancelSubscriptionResponse,
        CustomerInfo,
        PaymentRequest,
        PaymentResponse,
        SubscriptionRequest,
        SubscriptionResponse,
        UpdateSubscriptionRequest,
        UpdateSubscriptionResponse,
        WebhookEvent,
    )


def timestamp_to_datetime(value: Any) -> datetime | None:
    """Convert an epoch-seconds value to an aware UTC datetime."""
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def parse_iso_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) to an aware datetime."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


class BaseGateway(ABC):
    """
    Abstract payment gateway adapter.

    Subclasses set the class attributes and implement the abstract
    operations. Every provider failure must surface as a
    PaymentGatewayError; a bad webhook signature as a
    PaymentValidationError.

    Class Attributes:
        gateway: Gateway discriminant (payments.types.Gateway)
        SUPPORTED_CURRENCIES: ISO codes this provider can charge in
        SUPPORTED_PAYMENT_METHODS: PaymentMethod values it accepts
        PAYMENT_STATUS_MAP: provider status -> PaymentStatus
        SUBSCRIPTION_STATUS_MAP: provider status -> SubscriptionStatus
    """

    gateway: ClassVar[str]
    SUPPORTED_CURRENCIES: ClassVar[tuple[str, ...]] = ()
    SUPPORTED_PAYMENT_METHODS: ClassVar[tuple[str, ...]] = ()
    PAYMENT_STATUS_MAP: ClassVar[dict[str, str]] = {}
    SUBSCRIPTION_STATUS_MAP: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self.config: GatewayConfig | None = None

    def __repr__(self) -> str:
        state = "initialized" if self.is_initialized else "uninitialized"
        return f"<{self.__class__.__name__} {state}>"

    # =========================================================================
    # Configuration
    # =========================================================================

    def initialize(self, config: GatewayConfig) -> None:
        """
        Store credentials after checking they belong to this gateway.

        Raises:
            PaymentConfigurationError: Gateway tag mismatch or missing secret key
        """
        if config.gateway != self.gateway:
            raise PaymentConfigurationError(
                f"Configuration for '{config.gateway}' cannot initialize the "
                f"{self.gateway} gateway",
                gateway=self.gateway,
                metadata={"config_gateway": str(config.gateway)},
            )
        if not config.secret_key:
            raise PaymentConfigurationError(
                f"{self.gateway} secret key is not configured",
                gateway=self.gateway,
            )
        self.config = config
        self._on_initialized()
        self.get_logger().info(
            "Gateway initialized",
            extra={"gateway": self.gateway, "environment": config.environment},
        )

    def _on_initialized(self) -> None:
        """Hook for subclasses that build clients from the config."""

    @property
    def is_initialized(self) -> bool:
        return self.config is not None

    def require_initialized(self) -> GatewayConfig:
        if self.config is None:
            raise PaymentConfigurationError(
                f"{self.gateway} gateway used before initialize()",
                gateway=self.gateway,
            )
        return self.config

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Capabilities
    # =========================================================================

    @classmethod
    def get_supported_currencies(cls) -> list[str]:
        return list(cls.SUPPORTED_CURRENCIES)

    @classmethod
    def get_supported_payment_methods(cls) -> list[str]:
        return list(cls.SUPPORTED_PAYMENT_METHODS)

    @classmethod
    def is_supported(cls, currency: str, payment_method: str) -> bool:
        return (
            str(currency).upper() in cls.SUPPORTED_CURRENCIES
            and payment_method in cls.SUPPORTED_PAYMENT_METHODS
        )

    # =========================================================================
    # Normalization
    # =========================================================================

    @classmethod
    def map_payment_status(cls, provider_status: str | None) -> str:
        """Map a provider status to PaymentStatus; unknown values are PENDING."""
        return cls.PAYMENT_STATUS_MAP.get(
            (provider_status or "").lower(), PaymentStatus.PENDING
        )

    @classmethod
    def map_subscription_status(cls, provider_status: str | None) -> str:
        """Map a provider status to SubscriptionStatus; unknown values are ACTIVE."""
        return cls.SUBSCRIPTION_STATUS_MAP.get(
            (provider_status or "").lower(), SubscriptionStatus.ACTIVE
        )

    # =========================================================================
    # Operations
    # =========================================================================

    @abstractmethod
    def create_customer(self, customer: CustomerInfo) -> str:
        """Create a customer at the provider and return its id."""

    @abstractmethod
    def create_subscription(self, request: SubscriptionRequest) -> SubscriptionResponse:
        """Resolve customer, create plan/price, then bind the subscription."""

    @abstractmethod
    def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        """Initiate a single charge."""

    @abstractmethod
    def cancel_subscription(
        self, request: CancelSubscriptionRequest
    ) -> CancelSubscriptionResponse:
        """Cancel now, or flag the subscription to end at period end."""

    @abstractmethod
    def update_subscription(
        self, request: UpdateSubscriptionRequest
    ) -> UpdateSubscriptionResponse:
        """Change amount, billing cycle and/or metadata."""

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify the signature and parse the payload into a WebhookEvent."""

    @abstractmethod
    def compensate_step(self, step: WorkflowStep) -> bool:
        """
        Undo one completed provider step of a failed workflow.

        Returns:
            False when the provider has no API to undo this kind of
            object; the workflow then reports it as orphaned.
        """
