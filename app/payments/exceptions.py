"""
Payment-specific exceptions.

Every error raised by gateway adapters or the payment service is a
PaymentError, so callers always receive a typed error with a
machine-readable code and, where relevant, the gateway it came from.

Exception Hierarchy:
    PaymentError (base, PAYMENT_ERROR)
    ├── PaymentGatewayError - Provider rejected or failed a call (GATEWAY_ERROR)
    ├── PaymentValidationError - Caller/domain precondition violated (VALIDATION_ERROR)
    │   └── PaymentNotFoundError - User, plan or subscription missing (NOT_FOUND)
    ├── PaymentConfigurationError - Gateway not configured (CONFIGURATION_ERROR)
    │   └── PaymentsDisabledError - Payments switched off (PAYMENTS_DISABLED)
    └── InvalidStateTransitionError - Subscription FSM rejected a move (INVALID_STATE_TRANSITION)

Usage:
    from payments.exceptions import PaymentGatewayError

    raise PaymentGatewayError(
        "Card declined",
        gateway="stripe",
        metadata={"decline_code": "insufficient_funds"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Attributes:
        code: Alias of error_code
        gateway: Gateway the error relates to, if any
        metadata: Diagnostic context (request snapshot, provider codes)

    ``gateway`` and ``metadata`` are also folded into ``details`` so
    ``to_dict()`` exposes them in API responses.
    """

    default_error_code: str = "PAYMENT_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        code: str | None = None,
        gateway: str | None = None,
        metadata: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.gateway = str(gateway) if gateway else None
        self.metadata = metadata or {}
        merged: dict[str, Any] = dict(details or {})
        if self.gateway:
            merged.setdefault("gateway", self.gateway)
        if self.metadata:
            merged.setdefault("metadata", self.metadata)
        super().__init__(message, error_code=code, details=merged)

    @property
    def code(self) -> str:
        return self.error_code


class PaymentGatewayError(PaymentError, ExternalServiceError):
    """
    Raised when a payment provider rejects or fails a call.

    The design does not distinguish retryable from terminal provider
    failures; ``metadata`` keeps the provider's own code for callers
    that want to.
    """

    default_error_code: str = "GATEWAY_ERROR"
    http_status: int = 502


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when a caller or domain precondition is violated.

    Use for:
    - Duplicate active subscription
    - Invalid webhook signature
    - Cancelling an already canceled subscription
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class PaymentNotFoundError(PaymentValidationError, NotFoundError):
    """Raised when a user, plan or subscription lookup fails."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PaymentConfigurationError(PaymentError):
    """
    Raised when a gateway is requested that has no initialized adapter.

    Not retryable without fixing deployment configuration.
    """

    default_error_code: str = "CONFIGURATION_ERROR"
    http_status: int = 503


class PaymentsDisabledError(PaymentConfigurationError):
    """Raised when PAYMENTS_ENABLED is off."""

    default_error_code: str = "PAYMENTS_DISABLED"


class InvalidStateTransitionError(PaymentError, ConflictError):
    """
    Raised when the subscription state machine rejects a transition.

    Example:
        raise InvalidStateTransitionError(
            "Cannot mark canceled subscription past_due",
            details={"current_state": "canceled", "transition": "mark_past_due"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"
    http_status: int = 409
