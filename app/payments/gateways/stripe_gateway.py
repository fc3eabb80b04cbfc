"""
Stripe gateway adapter.

Wraps the official Stripe SDK behind the BaseGateway contract. Every SDK
call passes the adapter's own ``api_key`` so several adapters (or test
doubles) can coexist in one process.

The HTTP timeout is the exception: the SDK reads it from the module-level
``stripe.default_http_client``, so it is process-wide and the adapter
initialized last sets it for every Stripe call.

Features:
- Product/price/subscription workflow with compensation on failure
- Error translation from ``stripe.StripeError`` to PaymentGatewayError
- Structured logging with timing metrics
- SDK-native webhook signature verification

Configuration (GatewayConfig):
- secret_key: Stripe API secret key
- webhook_secret: Webhook endpoint signing secret
- timeout_seconds: HTTP timeout for SDK calls

Usage:
    gateway = StripeGateway()
    gateway.initialize(config)
    response = gateway.create_subscription(request)
    response.metadata["stripe_price_id"]
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import stripe
from django.utils import timezone

from payments.exceptions import (
    PaymentError,
    PaymentGatewayError,
    PaymentValidationError,
)
from payments.gateways.base import BaseGateway, timestamp_to_datetime
from payments.gateways.workflow import (
    STEP_CUSTOMER,
    STEP_PRICE,
    STEP_PRODUCT,
    STEP_SUBSCRIPTION,
    GatewayWorkflow,
)
from payments.state_machines import PaymentStatus, SubscriptionStatus
from payments.types import (
    BillingCycle,
    CancelSubscriptionResponse,
    Currency,
    Gateway,
    PaymentMethod,
    PaymentResponse,
    SubscriptionResponse,
    UpdateSubscriptionResponse,
    WebhookEvent,
    to_minor_units,
)

if TYPE_CHECKING:
    from payments.gateways.workflow import WorkflowStep
    from payments.types import (
        CancelSubscriptionRequest,
        CustomerInfo,
        PaymentRequest,
        SubscriptionRequest,
        UpdateSubscriptionRequest,
    )


# Stripe has native quarterly billing through interval_count.
RECURRING_INTERVALS: dict[str, tuple[str, int]] = {
    BillingCycle.MONTHLY: ("month", 1),
    BillingCycle.QUARTERLY: ("month", 3),
    BillingCycle.YEARLY: ("year", 1),
    BillingCycle.CUSTOM: ("month", 1),
}


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a StripeObject or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


class StripeGateway(BaseGateway):
    """
    Adapter for Stripe.

    Status maps cover both Subscription and PaymentIntent statuses;
    anything unlisted maps to pending (payment) / active (subscription).
    """

    gateway = Gateway.STRIPE
    SUPPORTED_CURRENCIES = (
        Currency.USD,
        Currency.EUR,
        Currency.GBP,
        Currency.CAD,
        Currency.AUD,
    )
    SUPPORTED_PAYMENT_METHODS = (PaymentMethod.CARD, PaymentMethod.BANK_TRANSFER)

    PAYMENT_STATUS_MAP = {
        # Subscription statuses
        "active": PaymentStatus.COMPLETED,
        "trialing": PaymentStatus.COMPLETED,
        "canceled": PaymentStatus.FAILED,
        "past_due": PaymentStatus.PENDING,
        "unpaid": PaymentStatus.PENDING,
        "incomplete": PaymentStatus.FAILED,
        "incomplete_expired": PaymentStatus.FAILED,
        "paused": PaymentStatus.PENDING,
        # PaymentIntent / Charge statuses
        "succeeded": PaymentStatus.COMPLETED,
        "requires_payment_method": PaymentStatus.PENDING,
        "requires_confirmation": PaymentStatus.PENDING,
        "requires_action": PaymentStatus.PENDING,
        "requires_capture": PaymentStatus.PENDING,
        "processing": PaymentStatus.PENDING,
        "failed": PaymentStatus.FAILED,
        "refunded": PaymentStatus.REFUNDED,
        "disputed": PaymentStatus.DISPUTED,
    }

    SUBSCRIPTION_STATUS_MAP = {
        "active": SubscriptionStatus.ACTIVE,
        "trialing": SubscriptionStatus.TRIALING,
        "past_due": SubscriptionStatus.PAST_DUE,
        "unpaid": SubscriptionStatus.PAST_DUE,
        "incomplete": SubscriptionStatus.PAST_DUE,
        "paused": SubscriptionStatus.PAST_DUE,
        "canceled": SubscriptionStatus.CANCELED,
        "incomplete_expired": SubscriptionStatus.CANCELED,
    }

    # =========================================================================
    # Configuration
    # =========================================================================

    def _on_initialized(self) -> None:
        # Process-wide: replaces the client used by every stripe caller.
        stripe.default_http_client = stripe.RequestsClient(
            timeout=self.config.timeout_seconds
        )

    @property
    def _api_key(self) -> str:
        return self.require_initialized().secret_key

    # =========================================================================
    # Customers
    # =========================================================================

    def create_customer(self, customer: CustomerInfo) -> str:
        """
        Create a Stripe Customer.

        Always performs a create call; callers reuse ids by passing
        ``CustomerInfo.id`` to the subscription/payment operations.

        Raises:
            PaymentGatewayError: Stripe rejected the call
        """
        logger = self.get_logger()
        log_context = {"operation": "create_customer", "gateway": self.gateway}
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        params: dict[str, Any] = {
            "email": customer.email,
            "name": customer.full_name or None,
            "phone": customer.phone or None,
            "metadata": {str(k): str(v) for k, v in customer.metadata.items()},
        }
        if customer.address:
            params["address"] = {
                "line1": customer.address.line1,
                "line2": customer.address.line2,
                "city": customer.address.city,
                "state": customer.address.state,
                "postal_code": customer.address.postal_code,
                "country": customer.address.country,
            }

        try:
            created = stripe.Customer.create(api_key=self._api_key, **params)
        except Exception as e:
            self._handle_stripe_error(
                e,
                log_context,
                (time.time() - start_time) * 1000,
                metadata={"customer": {"email": customer.email}},
            )
            raise

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "customer_id": created.id,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return created.id

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def create_subscription(self, request: SubscriptionRequest) -> SubscriptionResponse:
        """
        Create customer (if needed), product, price and subscription.

        If any step fails, steps already completed are compensated
        (customer deleted, product and price deactivated) before the
        PaymentGatewayError propagates.
        """
        logger = self.get_logger()
        log_context = {
            "operation": "create_subscription",
            "gateway": self.gateway,
            "plan_id": request.plan_id,
            "amount": str(request.amount),
            "currency": request.currency,
            "billing_cycle": str(request.billing_cycle),
            "trial_days": request.trial_days,
        }
        workflow = GatewayWorkflow(self.gateway, "create_subscription", log_context)
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            if request.customer.id:
                customer_id = request.customer.id
                workflow.record(STEP_CUSTOMER, customer_id, created=False)
            else:
                customer_id = self.create_customer(request.customer)
                workflow.record(STEP_CUSTOMER, customer_id)

            product = stripe.Product.create(
                api_key=self._api_key,
                name=request.plan_name or f"Subscription - {request.plan_id}",
                metadata={"plan_id": request.plan_id},
            )
            workflow.record(STEP_PRODUCT, product.id)

            interval, interval_count = RECURRING_INTERVALS.get(
                request.billing_cycle, ("month", 1)
            )
            price = stripe.Price.create(
                api_key=self._api_key,
                product=product.id,
                unit_amount=to_minor_units(request.amount),
                currency=request.currency.lower(),
                recurring={"interval": interval, "interval_count": interval_count},
            )
            workflow.record(STEP_PRICE, price.id)

            subscription_params: dict[str, Any] = {
                "customer": customer_id,
                "items": [{"price": price.id}],
                "metadata": {
                    "plan_id": request.plan_id,
                    **{str(k): str(v) for k, v in request.metadata.items()},
                },
            }
            if request.trial_days > 0:
                subscription_params["trial_period_days"] = request.trial_days

            subscription = stripe.Subscription.create(
                api_key=self._api_key, **subscription_params
            )
            workflow.record(STEP_SUBSCRIPTION, subscription.id)

        except Exception as e:
            workflow.compensate(self)
            self._handle_stripe_error(
                e,
                log_context,
                (time.time() - start_time) * 1000,
                metadata={
                    "plan_id": request.plan_id,
                    "completed_steps": workflow.as_metadata(),
                    "orphans": [step.ref for step in workflow.orphans],
                },
            )
            raise

        period_start, period_end = self._period_bounds(subscription)
        response = SubscriptionResponse(
            success=True,
            subscription_id=subscription.id,
            customer_id=customer_id,
            status=self.map_payment_status(subscription.status),
            subscription_status=self.map_subscription_status(subscription.status),
            gateway=self.gateway,
            next_billing_date=period_end,
            current_period_start=period_start,
            current_period_end=period_end,
            trial_start=timestamp_to_datetime(_get(subscription, "trial_start")),
            trial_end=timestamp_to_datetime(_get(subscription, "trial_end")),
            metadata={
                "stripe_subscription_id": subscription.id,
                "stripe_customer_id": customer_id,
                "stripe_product_id": product.id,
                "stripe_price_id": price.id,
            },
        )

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "subscription_id": subscription.id,
                "status": subscription.status,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return response

    def cancel_subscription(
        self, request: CancelSubscriptionRequest
    ) -> CancelSubscriptionResponse:
        """
        Cancel immediately, or flag ``cancel_at_period_end``.

        Deferred cancellation leaves the Stripe subscription active until
        the current period ends.
        """
        logger = self.get_logger()
        log_context = {
            "operation": "cancel_subscription",
            "gateway": self.gateway,
            "subscription_id": request.subscription_id,
            "cancel_at_period_end": request.cancel_at_period_end,
        }
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            stripe.Subscription.retrieve(request.subscription_id, api_key=self._api_key)

            if request.cancel_at_period_end:
                subscription = stripe.Subscription.modify(
                    request.subscription_id,
                    api_key=self._api_key,
                    cancel_at_period_end=True,
                    metadata={"cancellation_reason": request.reason or ""},
                )
            else:
                subscription = stripe.Subscription.cancel(
                    request.subscription_id, api_key=self._api_key
                )
        except Exception as e:
            self._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "status": subscription.status,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return CancelSubscriptionResponse(
            success=True,
            subscription_id=subscription.id,
            status=self.map_payment_status(subscription.status),
            subscription_status=self.map_subscription_status(subscription.status),
            gateway=self.gateway,
            canceled_at=timestamp_to_datetime(_get(subscription, "canceled_at")),
            will_cancel_at_period_end=bool(
                _get(subscription, "cancel_at_period_end", False)
            ),
        )

    def update_subscription(
        self, request: UpdateSubscriptionRequest
    ) -> UpdateSubscriptionResponse:
        """
        Re-price and/or merge metadata.

        Stripe prices are immutable, so an amount or billing cycle change
        creates a new price on the same product and swaps the
        subscription item to it.
        """
        logger = self.get_logger()
        log_context = {
            "operation": "update_subscription",
            "gateway": self.gateway,
            "subscription_id": request.subscription_id,
        }
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        updated_fields: list[str] = []
        metadata: dict[str, Any] = {}
        workflow = GatewayWorkflow(self.gateway, "update_subscription", log_context)

        try:
            modify_params: dict[str, Any] = {}

            if request.amount is not None or request.billing_cycle is not None:
                subscription = stripe.Subscription.retrieve(
                    request.subscription_id, api_key=self._api_key
                )
                item = subscription["items"]["data"][0]
                current_price = item["price"]
                recurring = _get(current_price, "recurring") or {}

                if request.billing_cycle is not None:
                    interval, interval_count = RECURRING_INTERVALS.get(
                        request.billing_cycle, ("month", 1)
                    )
                else:
                    interval = _get(recurring, "interval", "month")
                    interval_count = _get(recurring, "interval_count", 1)

                unit_amount = (
                    to_minor_units(request.amount)
                    if request.amount is not None
                    else _get(current_price, "unit_amount")
                )
                new_price = stripe.Price.create(
                    api_key=self._api_key,
                    product=_get(current_price, "product"),
                    unit_amount=unit_amount,
                    currency=_get(current_price, "currency"),
                    recurring={"interval": interval, "interval_count": interval_count},
                )
                workflow.record(STEP_PRICE, new_price.id)
                modify_params["items"] = [{"id": item["id"], "price": new_price.id}]
                metadata["stripe_price_id"] = new_price.id
                if request.amount is not None:
                    updated_fields.append("amount")
                if request.billing_cycle is not None:
                    updated_fields.append("billing_cycle")

            if request.metadata:
                modify_params["metadata"] = {
                    str(k): str(v) for k, v in request.metadata.items()
                }
                updated_fields.append("metadata")

            if modify_params:
                stripe.Subscription.modify(
                    request.subscription_id, api_key=self._api_key, **modify_params
                )
        except Exception as e:
            workflow.compensate(self)
            self._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "updated_fields": updated_fields,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return UpdateSubscriptionResponse(
            success=True,
            subscription_id=request.subscription_id,
            gateway=self.gateway,
            updated_fields=updated_fields,
            metadata=metadata,
        )

    # =========================================================================
    # Payments
    # =========================================================================

    def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        """
        Create a PaymentIntent.

        The intent usually needs client-side confirmation; its
        ``client_secret`` is returned in metadata for the frontend.
        """
        logger = self.get_logger()
        log_context = {
            "operation": "process_payment",
            "gateway": self.gateway,
            "amount": str(request.amount),
            "currency": request.currency,
        }
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customer_id = request.customer.id or self.create_customer(request.customer)
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=to_minor_units(request.amount),
                currency=request.currency.lower(),
                customer=customer_id,
                description=request.description or None,
                metadata={str(k): str(v) for k, v in request.metadata.items()},
            )
        except Exception as e:
            self._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "payment_intent_id": intent.id,
                "status": intent.status,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return PaymentResponse(
            success=True,
            transaction_id=intent.id,
            status=self.map_payment_status(intent.status),
            amount=request.amount,
            currency=request.currency.upper(),
            gateway=self.gateway,
            gateway_transaction_id=intent.id,
            metadata={
                "client_secret": _get(intent, "client_secret"),
                "stripe_customer_id": customer_id,
                "stripe_status": intent.status,
            },
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify a Stripe-Signature header and parse the event.

        Raises:
            PaymentValidationError: Signature mismatch or malformed payload
        """
        config = self.require_initialized()
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, config.webhook_secret
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            self.get_logger().warning(
                "Stripe webhook signature verification failed",
                extra={"gateway": self.gateway, "error": str(e)},
            )
            raise PaymentValidationError(
                "Invalid webhook signature",
                gateway=self.gateway,
                metadata={"error": str(e)},
            )

        event_data = event.to_dict()
        return WebhookEvent(
            id=event_data["id"],
            type=event_data["type"],
            data=(event_data.get("data") or {}).get("object") or {},
            timestamp=timestamp_to_datetime(event_data.get("created")) or timezone.now(),
            gateway=self.gateway,
            metadata={
                "livemode": event_data.get("livemode", False),
                "api_version": event_data.get("api_version"),
            },
        )

    # =========================================================================
    # Compensation
    # =========================================================================

    def compensate_step(self, step: WorkflowStep) -> bool:
        # Products and prices that were used cannot be deleted, only archived.
        if step.kind == STEP_CUSTOMER:
            stripe.Customer.delete(step.ref, api_key=self._api_key)
        elif step.kind == STEP_PRODUCT:
            stripe.Product.modify(step.ref, api_key=self._api_key, active=False)
        elif step.kind == STEP_PRICE:
            stripe.Price.modify(step.ref, api_key=self._api_key, active=False)
        elif step.kind == STEP_SUBSCRIPTION:
            stripe.Subscription.cancel(step.ref, api_key=self._api_key)
        else:
            return False
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _period_bounds(subscription: Any) -> tuple[Any, Any]:
        """
        Current period boundaries as datetimes.

        Newer Stripe API versions moved the period onto subscription
        items, so fall back to the first item.
        """
        start = _get(subscription, "current_period_start")
        end = _get(subscription, "current_period_end")
        if start is None or end is None:
            items = _get(_get(subscription, "items"), "data") or []
            if items:
                start = start or _get(items[0], "current_period_start")
                end = end or _get(items[0], "current_period_end")
        return timestamp_to_datetime(start), timestamp_to_datetime(end)

    def _handle_stripe_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Translate Stripe SDK errors into PaymentGatewayError.

        PaymentErrors raised by nested adapter calls pass through as-is.

        Raises:
            PaymentError: Always
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, PaymentError):
            raise error

        metadata = dict(metadata or {})

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise PaymentGatewayError(
                str(error.user_message or error),
                gateway=self.gateway,
                metadata={
                    **metadata,
                    "stripe_code": error.code,
                    "decline_code": decline_code,
                },
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key", extra=log_context
            )
            raise PaymentGatewayError(
                "Stripe authentication failed",
                gateway=self.gateway,
                metadata={**metadata, "stripe_code": "authentication_error"},
            ) from error

        if isinstance(error, stripe.StripeError):
            logger.error(
                f"Stripe error: {type(error).__name__}",
                extra={**log_context, "stripe_code": error.code},
            )
            raise PaymentGatewayError(
                str(error.user_message or error),
                gateway=self.gateway,
                metadata={
                    **metadata,
                    "stripe_code": error.code,
                    "stripe_error": type(error).__name__,
                },
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise PaymentGatewayError(
            f"Unexpected Stripe error: {error}",
            gateway=self.gateway,
            metadata={**metadata, "stripe_code": "unknown_error"},
        ) from error
