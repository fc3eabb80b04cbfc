"""
Payment service: the single entry point for billing operations.

PaymentService owns the configured gateway adapters and coordinates them
with local persistence:

- Routes each operation to the right gateway (currency preference for
  new subscriptions and payments, the stored gateway afterwards)
- Caches gateway customer ids per user
- Persists Subscription and PaymentTransaction rows
- Verifies, deduplicates and dispatches webhooks

Every public method re-raises PaymentError subclasses unchanged and
wraps anything else in a PaymentGatewayError.

Usage:
    from payments.services import get_payment_service

    service = get_payment_service()
    subscription = service.create_subscription(user_id=user.pk, plan_id="premium")
    service.cancel_subscription(subscription.pk, cancel_at_period_end=True)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.utils import timezone

from django_fsm import can_proceed

from core.services import BaseService, ServiceResult

from payments.config import PaymentConfig
from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentConfigurationError,
    PaymentError,
    PaymentGatewayError,
    PaymentNotFoundError,
    PaymentsDisabledError,
    PaymentValidationError,
)
from payments.gateways.factory import create_gateway, get_best_gateway
from payments.gateways.workflow import (
    STEP_PLAN,
    STEP_PRICE,
    STEP_PRODUCT,
    STEP_SUBSCRIPTION,
    GatewayWorkflow,
)
from payments.models import (
    GatewayCustomer,
    PaymentTransaction,
    ProcessedWebhookEvent,
    Subscription,
    SubscriptionPlan,
)
from payments.state_machines import (
    PaymentStatus,
    SubscriptionStatus,
)
from payments.types import (
    Address,
    BillingCycle,
    CancelSubscriptionRequest,
    Currency,
    CustomerInfo,
    PaymentMethod,
    PaymentRequest,
    SubscriptionRequest,
    UpdateSubscriptionRequest,
)
from payments.webhooks.handlers import dispatch_webhook

if TYPE_CHECKING:
    from collections.abc import Generator

    from authentication.models import User
    from payments.gateways.base import BaseGateway
    from payments.types import SubscriptionResponse, WebhookEvent


# Provider objects left behind by a subscription create, in creation order.
_COMPENSATION_KEYS = (
    ("stripe_product_id", STEP_PRODUCT),
    ("stripe_price_id", STEP_PRICE),
    ("paystack_plan_code", STEP_PLAN),
)


@dataclass
class WebhookResult:
    """
    Outcome of handling one webhook delivery.

    Attributes:
        event: The verified event
        duplicate: True when the event was already processed; no side effects ran
        result: Handler result for a first-time delivery
    """

    event: WebhookEvent
    duplicate: bool = False
    result: ServiceResult | None = None


class PaymentService(BaseService):
    """
    Gateway-agnostic billing operations.

    One adapter per configured gateway is built and initialized at
    construction and kept in ``self.gateways``. A gateway whose
    credentials are rejected is logged and left out; operations routed
    to it raise PaymentConfigurationError.
    """

    def __init__(
        self,
        config: PaymentConfig,
        gateway_factory: Callable[[str], BaseGateway] = create_gateway,
    ):
        self.config = config
        self.gateways: dict[str, BaseGateway] = {}
        logger = self.get_logger()

        for gateway, gateway_config in config.gateways.items():
            try:
                adapter = gateway_factory(gateway)
                adapter.initialize(gateway_config)
            except PaymentError as e:
                logger.error(
                    f"Failed to initialize {gateway} gateway",
                    extra={"gateway": str(gateway), "error": str(e)},
                )
                continue
            self.gateways[str(gateway)] = adapter

        logger.info(
            "Payment service ready",
            extra={"gateways": sorted(self.gateways), "enabled": config.enabled},
        )

    # =========================================================================
    # Plumbing
    # =========================================================================

    def get_gateway(self, gateway: str) -> BaseGateway:
        adapter = self.gateways.get(str(gateway))
        if adapter is None:
            raise PaymentConfigurationError(
                f"{gateway} gateway is not configured",
                gateway=str(gateway),
            )
        return adapter

    def _require_enabled(self) -> None:
        if not self.config.enabled:
            raise PaymentsDisabledError("Payments are disabled")

    @contextmanager
    def _operation(self, name: str, **context: Any) -> Generator[None, None, None]:
        """Log start/end of a public operation and normalize its errors."""
        logger = self.get_logger()
        log_context = {"operation": name, **context}
        logger.info(f"Starting {name}", extra=log_context)
        start_time = time.time()
        try:
            yield
        except PaymentError as e:
            logger.warning(
                f"{name} failed",
                extra={**log_context, "error_code": e.code, "error": e.message},
            )
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error in {name}: {type(e).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise PaymentGatewayError(
                f"Unexpected error during {name}: {e}",
                gateway="unknown",
            ) from e
        logger.info(
            f"{name} completed",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )

    def _get_user(self, user_id: Any) -> User:
        user = get_user_model().objects.filter(pk=user_id).first()
        if user is None:
            raise PaymentNotFoundError(f"User not found: {user_id}")
        return user

    def _get_subscription(self, subscription_id: Any, user_id: Any = None) -> Subscription:
        queryset = Subscription.objects.filter(pk=subscription_id)
        if user_id is not None:
            queryset = queryset.filter(user_id=user_id)
        subscription = queryset.first()
        if subscription is None:
            raise PaymentNotFoundError(f"Subscription not found: {subscription_id}")
        return subscription

    @staticmethod
    def _customer_info(user: User) -> CustomerInfo:
        profile = getattr(user, "profile", None)
        address = None
        if profile is not None and profile.has_address:
            address = Address(
                country=profile.country,
                state=profile.state,
                city=profile.city,
                postal_code=profile.postal_code,
                line1=profile.address_line1,
                line2=profile.address_line2,
            )
        return CustomerInfo(
            email=user.email,
            first_name=profile.first_name if profile else "",
            last_name=profile.last_name if profile else "",
            phone=(profile.phone or None) if profile else None,
            address=address,
            metadata={"user_id": str(user.pk)},
        )

    def _resolve_customer(self, adapter: BaseGateway, user: User) -> CustomerInfo:
        """
        CustomerInfo carrying the user's gateway customer id.

        Creates the customer at the gateway and caches it on first use.
        """
        info = self._customer_info(user)
        cached = GatewayCustomer.objects.filter(user=user, gateway=adapter.gateway).first()
        if cached is not None:
            info.id = cached.gateway_customer_id
            return info

        info.id = adapter.create_customer(info)
        GatewayCustomer.objects.update_or_create(
            user=user,
            gateway=adapter.gateway,
            defaults={"gateway_customer_id": info.id, "email": user.email},
        )
        self.get_logger().info(
            "Cached gateway customer",
            extra={"user_id": str(user.pk), "gateway": adapter.gateway},
        )
        return info

    def _compensate_subscription(
        self, adapter: BaseGateway, response: SubscriptionResponse, reason: str
    ) -> list:
        """Undo a gateway subscription that could not be stored locally."""
        workflow = GatewayWorkflow(
            adapter.gateway,
            "create_subscription",
            {"reason": reason, "subscription_ref": response.subscription_id},
        )
        for key, kind in _COMPENSATION_KEYS:
            if response.metadata.get(key):
                workflow.record(kind, response.metadata[key])
        workflow.record(
            STEP_SUBSCRIPTION,
            response.subscription_id,
            token=response.metadata.get("paystack_email_token", ""),
        )
        return workflow.compensate(adapter)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def create_subscription(
        self,
        user_id: Any,
        plan_id: str,
        payment_method: str | None = None,
        billing_cycle: str = BillingCycle.MONTHLY,
    ) -> Subscription:
        """
        Subscribe a user to a catalog plan.

        Raises:
            PaymentsDisabledError: Payments switched off
            PaymentNotFoundError: Unknown user or inactive/unknown plan
            PaymentValidationError: User already has an active subscription
            PaymentConfigurationError: Routed gateway is not configured
            PaymentGatewayError: Gateway rejected the subscription
        """
        with self._operation(
            "create_subscription", user_id=str(user_id), plan_id=plan_id
        ):
            self._require_enabled()
            user = self._get_user(user_id)
            plan = SubscriptionPlan.objects.filter(plan_id=plan_id, is_active=True).first()
            if plan is None:
                raise PaymentNotFoundError(f"Plan not found: {plan_id}")

            existing = Subscription.objects.filter(user=user, is_active=True).first()
            if existing is not None:
                if existing.is_past_due:
                    raise PaymentValidationError(
                        "User has a past-due subscription",
                        details={"subscription_id": str(existing.pk)},
                    )
                raise PaymentValidationError(
                    "User already has an active subscription",
                    details={"subscription_id": str(existing.pk)},
                )

            method = payment_method or PaymentMethod.CARD
            adapter = self.get_gateway(get_best_gateway(plan.currency, method))
            customer = self._resolve_customer(adapter, user)
            amount = plan.price_for(billing_cycle)

            response = adapter.create_subscription(
                SubscriptionRequest(
                    customer=customer,
                    plan_id=plan.plan_id,
                    amount=amount,
                    currency=plan.currency,
                    billing_cycle=billing_cycle,
                    payment_method=method,
                    trial_days=self.config.effective_trial_days,
                    plan_name=plan.name,
                    metadata={"user_id": str(user.pk), "plan_type": plan.plan_type},
                )
            )

            now = timezone.now()
            is_trial_active = response.subscription_status == SubscriptionStatus.TRIALING or bool(
                response.trial_end and response.trial_end > now
            )
            try:
                with self.atomic():
                    subscription = Subscription.objects.create(
                        user=user,
                        plan=plan,
                        plan_name=plan.name,
                        plan_type=plan.plan_type,
                        billing_cycle=billing_cycle,
                        amount=amount,
                        currency=plan.currency,
                        status=response.subscription_status,
                        is_active=response.subscription_status != SubscriptionStatus.CANCELED,
                        next_billing_date=response.next_billing_date,
                        current_period_start=response.current_period_start or now,
                        current_period_end=response.current_period_end,
                        gateway=adapter.gateway,
                        gateway_subscription_id=response.subscription_id,
                        gateway_customer_id=response.customer_id or customer.id or "",
                        trial_start=response.trial_start,
                        trial_end=response.trial_end,
                        is_trial_active=is_trial_active,
                        metadata=response.metadata,
                    )
            except IntegrityError as e:
                orphans = self._compensate_subscription(
                    adapter, response, reason="duplicate_active_subscription"
                )
                raise PaymentValidationError(
                    "User already has an active subscription",
                    gateway=adapter.gateway,
                    metadata={
                        "gateway_subscription_id": response.subscription_id,
                        "orphans": [step.ref for step in orphans],
                    },
                ) from e

        return subscription

    def cancel_subscription(
        self,
        subscription_id: Any,
        cancel_at_period_end: bool = True,
        reason: str | None = None,
        user_id: Any = None,
    ) -> Subscription:
        """
        Cancel now or at the end of the paid period.

        A deferred cancellation moves the subscription to active and keeps
        access until the gateway reports the end of the period.

        Raises:
            PaymentNotFoundError: Unknown subscription (or owned by another user)
            PaymentValidationError: Already canceled
            InvalidStateTransitionError: Canceled while the gateway call was in flight
        """
        with self._operation(
            "cancel_subscription",
            subscription_id=str(subscription_id),
            cancel_at_period_end=cancel_at_period_end,
        ):
            subscription = self._get_subscription(subscription_id, user_id)
            if subscription.is_canceled:
                raise PaymentValidationError("Subscription is already canceled")

            adapter = self.get_gateway(subscription.gateway)
            response = adapter.cancel_subscription(
                CancelSubscriptionRequest(
                    subscription_id=subscription.gateway_subscription_id,
                    cancel_at_period_end=cancel_at_period_end,
                    reason=reason,
                )
            )

            with self.atomic():
                subscription = Subscription.objects.select_for_update().get(
                    pk=subscription.pk
                )
                transition = (
                    subscription.schedule_cancellation
                    if cancel_at_period_end
                    else subscription.cancel
                )
                if not can_proceed(transition):
                    raise InvalidStateTransitionError(
                        f"Cannot cancel a {subscription.status} subscription",
                        gateway=subscription.gateway,
                        metadata={
                            "current_state": subscription.status,
                            "transition": transition.__name__,
                        },
                    )
                canceled_at = response.canceled_at or timezone.now()
                if cancel_at_period_end:
                    subscription.schedule_cancellation(reason=reason, canceled_at=canceled_at)
                else:
                    subscription.canceled_at = canceled_at
                    subscription.cancel(reason=reason)
                subscription.save()

        return subscription

    def update_subscription(
        self,
        subscription_id: Any,
        amount: Decimal | None = None,
        billing_cycle: str | None = None,
        metadata: dict[str, Any] | None = None,
        user_id: Any = None,
    ) -> Subscription:
        """
        Change amount, billing cycle and/or metadata.

        Only the fields given are sent to the gateway and stored locally.
        """
        with self._operation("update_subscription", subscription_id=str(subscription_id)):
            request = UpdateSubscriptionRequest(
                subscription_id="",
                amount=amount,
                billing_cycle=billing_cycle,
                metadata=metadata,
            )
            if not request.has_changes:
                raise PaymentValidationError("No subscription changes requested")

            subscription = self._get_subscription(subscription_id, user_id)
            if subscription.is_canceled:
                raise PaymentValidationError("Cannot update a canceled subscription")

            request.subscription_id = subscription.gateway_subscription_id
            request.currency = subscription.currency
            request.customer_id = subscription.gateway_customer_id or None
            if request.billing_cycle is None and request.amount is not None:
                request.billing_cycle = subscription.billing_cycle

            adapter = self.get_gateway(subscription.gateway)
            response = adapter.update_subscription(request)

            with self.atomic():
                subscription = Subscription.objects.select_for_update().get(
                    pk=subscription.pk
                )
                if amount is not None:
                    subscription.amount = request.amount
                if billing_cycle is not None:
                    subscription.billing_cycle = billing_cycle
                if response.subscription_id and (
                    response.subscription_id != subscription.gateway_subscription_id
                ):
                    subscription.gateway_subscription_id = response.subscription_id
                subscription.merge_meta(
                    {**(metadata or {}), **response.metadata}, save=False
                )
                subscription.save()

        return subscription

    # =========================================================================
    # One-off Payments
    # =========================================================================

    def process_payment(
        self,
        user_id: Any,
        amount: Decimal,
        description: str,
        payment_method: str | None = None,
        currency: str = Currency.USD,
    ) -> PaymentTransaction:
        """
        Initiate a one-off charge and record it.

        The transaction usually starts pending; the gateway's charge
        webhook settles it.
        """
        with self._operation(
            "process_payment", user_id=str(user_id), amount=str(amount), currency=currency
        ):
            self._require_enabled()
            user = self._get_user(user_id)
            method = payment_method or PaymentMethod.CARD
            currency = str(currency).upper()

            adapter = self.get_gateway(get_best_gateway(currency, method))
            customer = self._resolve_customer(adapter, user)
            response = adapter.process_payment(
                PaymentRequest(
                    customer=customer,
                    amount=amount,
                    currency=currency,
                    description=description,
                    payment_method=method,
                    metadata={"user_id": str(user.pk)},
                )
            )

            transaction_row = PaymentTransaction.objects.create(
                user=user,
                transaction_id=response.transaction_id,
                amount=response.amount,
                currency=response.currency,
                status=response.status,
                payment_method=method,
                description=description,
                gateway=adapter.gateway,
                gateway_transaction_id=response.gateway_transaction_id,
                gateway_response=response.metadata,
                processed_at=None if response.status == PaymentStatus.PENDING else timezone.now(),
            )

        return transaction_row

    # =========================================================================
    # Webhooks
    # =========================================================================

    def handle_webhook(self, gateway: str, payload: bytes, signature: str) -> WebhookResult:
        """
        Verify, deduplicate and process one webhook delivery.

        The dedup row is claimed with get_or_create on (gateway, event_id)
        and locked while the event is processed, so concurrent deliveries
        of the same event run the handler once. A processing failure marks
        the row failed and re-raises, so the gateway redelivers.

        Raises:
            PaymentConfigurationError: Gateway not configured
            PaymentValidationError: Bad signature or payload
        """
        with self._operation("handle_webhook", gateway=str(gateway)):
            adapter = self.get_gateway(gateway)
            event = adapter.verify_webhook(payload, signature)
            log_context = {"gateway": event.gateway, "event_id": event.id, "event_type": event.type}

            record, created = ProcessedWebhookEvent.objects.get_or_create(
                gateway=event.gateway,
                event_id=event.id,
                defaults={"event_type": event.type, "payload": event.data},
            )
            if not created and record.is_processed:
                self.get_logger().info(
                    "Webhook already processed, skipping", extra=log_context
                )
                return WebhookResult(event=event, duplicate=True)
            if record.is_failed:
                self.get_logger().info(
                    "Retrying failed webhook",
                    extra={**log_context, "attempts": record.attempts},
                )

            try:
                with self.atomic():
                    locked = ProcessedWebhookEvent.objects.select_for_update().get(
                        pk=record.pk
                    )
                    if locked.is_processed:
                        return WebhookResult(event=event, duplicate=True)
                    locked.mark_processing()
                    result = self.process_webhook_event(event)
                    locked.mark_processed()
                    locked.save()
            except Exception as e:
                failed = ProcessedWebhookEvent.objects.get(pk=record.pk)
                failed.mark_processing()
                failed.mark_failed(str(e))
                failed.save()
                self.get_logger().error(
                    "Webhook processing failed", extra={**log_context, "error": str(e)}
                )
                raise

        return WebhookResult(event=event, result=result)

    def process_webhook_event(self, event: WebhookEvent) -> ServiceResult:
        """
        Apply a verified event to local state.

        Raises:
            PaymentError: The handler reported a failure
        """
        with self.atomic():
            result = dispatch_webhook(event)
        if not result:
            raise PaymentError(
                result.error or f"Failed to process {event.type}",
                code=result.error_code,
                gateway=event.gateway,
                metadata={"event_id": event.id, "event_type": event.type},
            )
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def get_active_subscription(self, user_id: Any) -> Subscription | None:
        return Subscription.objects.current_for(user_id)

    def get_payment_history(self, user_id: Any, limit: int = 50) -> list[PaymentTransaction]:
        return list(
            PaymentTransaction.objects.filter(user_id=user_id).order_by("-created_at")[:limit]
        )

    def get_available_plans(self) -> list[SubscriptionPlan]:
        return list(SubscriptionPlan.objects.active())


def get_payment_service() -> PaymentService:
    """PaymentService configured from Django settings."""
    return PaymentService(PaymentConfig.from_settings())
