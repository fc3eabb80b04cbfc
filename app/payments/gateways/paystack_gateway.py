"""
Paystack gateway adapter.

Talks to the Paystack REST API over a ``requests.Session`` authenticated
with a Bearer secret key. Amounts go over the wire in kobo (minor units)
for every currency.

Paystack differences from the generic contract:
- No quarterly interval: quarterly and custom cycles bill monthly
- No native cancel-at-period-end: both cancel modes disable the
  subscription, and deferred cancellation is reported as still active
- Plan amounts are immutable: an amount change builds a new plan and
  moves the customer to a new subscription
- Webhooks are signed with HMAC-SHA512 over the raw body

Configuration (GatewayConfig):
- secret_key: Paystack secret key (also the default webhook secret)
- webhook_secret: Optional separate webhook signing secret
- base_url: API root (default https://api.paystack.co)
- timeout_seconds: HTTP timeout
- callback_url: Redirect target after hosted checkout
"""

from __future__ import annotations

import hashlib
import hmac
import json
import random
import string
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import requests
from django.utils import timezone

from payments.exceptions import (
    PaymentError,
    PaymentGatewayError,
    PaymentValidationError,
)
from payments.gateways.base import BaseGateway, parse_iso_datetime
from payments.gateways.workflow import (
    STEP_CUSTOMER,
    STEP_PLAN,
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


DEFAULT_BASE_URL = "https://api.paystack.co"

PLAN_INTERVALS: dict[str, str] = {
    BillingCycle.MONTHLY: "monthly",
    BillingCycle.QUARTERLY: "monthly",
    BillingCycle.YEARLY: "annually",
    BillingCycle.CUSTOM: "monthly",
}


def generate_reference(prefix: str = "TXN") -> str:
    """Unique transaction reference, e.g. ``TXN_1718000000000_a8Kd02Lm``."""
    suffix = "".join(random.choices(string.ascii_letters + string.digits, k=8))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class PaystackGateway(BaseGateway):
    """Adapter for Paystack."""

    gateway = Gateway.PAYSTACK
    SUPPORTED_CURRENCIES = (
        Currency.NGN,
        Currency.USD,
        Currency.GHS,
        Currency.ZAR,
        Currency.KES,
    )
    SUPPORTED_PAYMENT_METHODS = (
        PaymentMethod.CARD,
        PaymentMethod.BANK_TRANSFER,
        PaymentMethod.MOBILE_MONEY,
    )

    PAYMENT_STATUS_MAP = {
        "active": PaymentStatus.COMPLETED,
        "success": PaymentStatus.COMPLETED,
        "non-renewing": PaymentStatus.COMPLETED,
        "attention": PaymentStatus.PENDING,
        "pending": PaymentStatus.PENDING,
        "ongoing": PaymentStatus.PENDING,
        "processing": PaymentStatus.PENDING,
        "queued": PaymentStatus.PENDING,
        "cancelled": PaymentStatus.FAILED,
        "complete": PaymentStatus.FAILED,
        "expired": PaymentStatus.FAILED,
        "failed": PaymentStatus.FAILED,
        "abandoned": PaymentStatus.FAILED,
        "reversed": PaymentStatus.REFUNDED,
    }

    SUBSCRIPTION_STATUS_MAP = {
        "active": SubscriptionStatus.ACTIVE,
        "non-renewing": SubscriptionStatus.ACTIVE,
        "attention": SubscriptionStatus.PAST_DUE,
        "cancelled": SubscriptionStatus.CANCELED,
        "complete": SubscriptionStatus.CANCELED,
        "expired": SubscriptionStatus.CANCELED,
    }

    def __init__(self) -> None:
        super().__init__()
        self.session: requests.Session | None = None

    def _on_initialized(self) -> None:
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {self.config.secret_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Call the Paystack API and return the ``data`` member.

        Raises:
            PaymentGatewayError: Transport failure, non-2xx status, or
                ``status: false`` in the body
        """
        config = self.require_initialized()
        logger = self.get_logger()
        url = f"{(config.base_url or DEFAULT_BASE_URL).rstrip('/')}/{endpoint.lstrip('/')}"
        context = {**(log_context or {}), "endpoint": endpoint, "method": method}

        try:
            response = self.session.request(
                method,
                url,
                json=data if method != "GET" else None,
                timeout=config.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(
                "Connection error to Paystack",
                extra={**context, "error": str(e)},
            )
            raise PaymentGatewayError(
                f"Could not connect to Paystack: {e}",
                gateway=self.gateway,
                metadata={"endpoint": endpoint},
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok or not body.get("status", False):
            message = body.get("message") or f"Paystack returned HTTP {response.status_code}"
            logger.error(
                "Paystack API error",
                extra={**context, "status_code": response.status_code, "error": message},
            )
            raise PaymentGatewayError(
                message,
                gateway=self.gateway,
                metadata={
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "request": self._redact(data),
                },
            )

        return body.get("data") or {}

    @staticmethod
    def _redact(data: dict[str, Any] | None) -> dict[str, Any]:
        if not data:
            return {}
        return {k: v for k, v in data.items() if k not in {"token", "authorization_code"}}

    def _timed(self, operation: str, **context: Any) -> tuple[dict[str, Any], float]:
        log_context = {"operation": operation, "gateway": self.gateway, **context}
        self.get_logger().info("Starting Paystack operation", extra=log_context)
        return log_context, time.time()

    def _completed(self, log_context: dict[str, Any], start_time: float, **extra: Any) -> None:
        self.get_logger().info(
            "Paystack operation completed",
            extra={
                **log_context,
                **extra,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )

    # =========================================================================
    # Customers
    # =========================================================================

    def create_customer(self, customer: CustomerInfo) -> str:
        log_context, start_time = self._timed("create_customer")
        payload: dict[str, Any] = {
            "email": customer.email,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "metadata": dict(customer.metadata),
        }
        if customer.phone:
            payload["phone"] = customer.phone

        try:
            data = self._request("POST", "/customer", payload, log_context)
        except PaymentGatewayError as e:
            e.metadata.setdefault("customer", {"email": customer.email})
            raise

        customer_code = data["customer_code"]
        self._completed(log_context, start_time, customer_code=customer_code)
        return customer_code

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def create_subscription(self, request: SubscriptionRequest) -> SubscriptionResponse:
        """
        Create customer (if needed), plan and subscription.

        A trial is modelled by starting the subscription ``trial_days``
        in the future; the first charge happens on the start date.
        """
        log_context, start_time = self._timed(
            "create_subscription",
            plan_id=request.plan_id,
            amount=str(request.amount),
            currency=request.currency,
            billing_cycle=str(request.billing_cycle),
            trial_days=request.trial_days,
        )
        workflow = GatewayWorkflow(self.gateway, "create_subscription", log_context)

        try:
            if request.customer.id:
                customer_code = request.customer.id
                workflow.record(STEP_CUSTOMER, customer_code, created=False)
            else:
                customer_code = self.create_customer(request.customer)
                workflow.record(STEP_CUSTOMER, customer_code)

            plan = self._create_plan(
                plan_id=request.plan_id,
                name=request.plan_name or f"Subscription - {request.plan_id}",
                amount_minor=to_minor_units(request.amount),
                currency=request.currency,
                billing_cycle=request.billing_cycle,
                metadata=request.metadata,
                log_context=log_context,
            )
            workflow.record(STEP_PLAN, plan["plan_code"])

            now = timezone.now()
            subscription_payload: dict[str, Any] = {
                "customer": customer_code,
                "plan": plan["plan_code"],
            }
            trial_start = trial_end = None
            if request.trial_days > 0:
                trial_start = now
                trial_end = now + timedelta(days=request.trial_days)
                subscription_payload["start_date"] = trial_end.isoformat()

            subscription = self._request(
                "POST", "/subscription", subscription_payload, log_context
            )
            workflow.record(
                STEP_SUBSCRIPTION,
                subscription["subscription_code"],
                token=subscription.get("email_token", ""),
            )
        except Exception as e:
            workflow.compensate(self)
            if isinstance(e, PaymentError):
                e.metadata.setdefault("completed_steps", workflow.as_metadata())
                raise
            raise PaymentGatewayError(
                f"Unexpected Paystack error: {e}",
                gateway=self.gateway,
                metadata={"completed_steps": workflow.as_metadata()},
            ) from e

        provider_status = subscription.get("status") or "active"
        subscription_status = self.map_subscription_status(provider_status)
        if trial_end is not None and subscription_status == SubscriptionStatus.ACTIVE:
            subscription_status = SubscriptionStatus.TRIALING

        next_payment = parse_iso_datetime(subscription.get("next_payment_date")) or trial_end
        response = SubscriptionResponse(
            success=True,
            subscription_id=subscription["subscription_code"],
            customer_id=customer_code,
            status=self.map_payment_status(provider_status),
            subscription_status=subscription_status,
            gateway=self.gateway,
            next_billing_date=next_payment,
            current_period_start=trial_start or parse_iso_datetime(
                subscription.get("createdAt")
            ) or timezone.now(),
            current_period_end=next_payment,
            trial_start=trial_start,
            trial_end=trial_end,
            metadata={
                "paystack_subscription_code": subscription["subscription_code"],
                "paystack_customer_code": customer_code,
                "paystack_plan_code": plan["plan_code"],
                "paystack_email_token": subscription.get("email_token", ""),
            },
        )
        self._completed(
            log_context,
            start_time,
            subscription_code=response.subscription_id,
            status=provider_status,
        )
        return response

    def _create_plan(
        self,
        plan_id: str,
        name: str,
        amount_minor: int,
        currency: str,
        billing_cycle: str,
        metadata: dict[str, Any] | None,
        log_context: dict[str, Any],
    ) -> dict[str, Any]:
        if billing_cycle in (BillingCycle.QUARTERLY, BillingCycle.CUSTOM):
            self.get_logger().warning(
                "Paystack has no quarterly interval; billing monthly",
                extra={**log_context, "billing_cycle": str(billing_cycle)},
            )
        return self._request(
            "POST",
            "/plan",
            {
                "name": name,
                "description": f"Plan {plan_id}",
                "amount": amount_minor,
                "interval": PLAN_INTERVALS.get(billing_cycle, "monthly"),
                "currency": currency.upper(),
                "metadata": {"plan_id": plan_id, **(metadata or {})},
            },
            log_context,
        )

    def _email_token(self, subscription_code: str, log_context: dict[str, Any]) -> str:
        data = self._request("GET", f"/subscription/{subscription_code}", None, log_context)
        return data.get("email_token", "")

    def cancel_subscription(
        self, request: CancelSubscriptionRequest
    ) -> CancelSubscriptionResponse:
        """
        Disable the subscription.

        Disabling stops future charges, so a deferred cancellation keeps
        access until the period the customer already paid for ends.
        """
        log_context, start_time = self._timed(
            "cancel_subscription",
            subscription_id=request.subscription_id,
            cancel_at_period_end=request.cancel_at_period_end,
        )
        token = self._email_token(request.subscription_id, log_context)
        self._request(
            "POST",
            "/subscription/disable",
            {"code": request.subscription_id, "token": token},
            log_context,
        )

        if request.cancel_at_period_end:
            subscription_status = SubscriptionStatus.ACTIVE
            status = PaymentStatus.COMPLETED
        else:
            subscription_status = SubscriptionStatus.CANCELED
            status = PaymentStatus.FAILED

        self._completed(log_context, start_time)
        return CancelSubscriptionResponse(
            success=True,
            subscription_id=request.subscription_id,
            status=status,
            subscription_status=subscription_status,
            gateway=self.gateway,
            canceled_at=timezone.now(),
            will_cancel_at_period_end=request.cancel_at_period_end,
        )

    def update_subscription(
        self, request: UpdateSubscriptionRequest
    ) -> UpdateSubscriptionResponse:
        """
        Apply an amount or cycle change by moving to a new plan.

        Paystack has no subscription metadata update endpoint; a metadata
        change is reported so the caller stores it locally.

        If the old subscription cannot be disabled once the new one exists,
        the failure is logged with the old code and returned as
        ``paystack_orphaned_subscription_code`` in the metadata.
        """
        log_context, start_time = self._timed(
            "update_subscription", subscription_id=request.subscription_id
        )
        updated_fields: list[str] = []
        metadata: dict[str, Any] = {}

        if request.amount is not None or request.billing_cycle is not None:
            current = self._request(
                "GET", f"/subscription/{request.subscription_id}", None, log_context
            )
            current_plan = current.get("plan") or {}
            customer = current.get("customer") or {}
            customer_code = request.customer_id or customer.get("customer_code")
            currency = request.currency or current_plan.get("currency") or Currency.NGN
            amount_minor = (
                to_minor_units(request.amount)
                if request.amount is not None
                else int(current_plan.get("amount") or current.get("amount") or 0)
            )
            billing_cycle = request.billing_cycle or BillingCycle.MONTHLY

            workflow = GatewayWorkflow(self.gateway, "update_subscription", log_context)
            try:
                plan = self._create_plan(
                    plan_id=(request.metadata or {}).get("plan_id", request.subscription_id),
                    name=current_plan.get("name") or f"Subscription - {request.subscription_id}",
                    amount_minor=amount_minor,
                    currency=currency,
                    billing_cycle=billing_cycle,
                    metadata=request.metadata,
                    log_context=log_context,
                )
                workflow.record(STEP_PLAN, plan["plan_code"])
                new_subscription = self._request(
                    "POST",
                    "/subscription",
                    {"customer": customer_code, "plan": plan["plan_code"]},
                    log_context,
                )
                workflow.record(
                    STEP_SUBSCRIPTION,
                    new_subscription["subscription_code"],
                    token=new_subscription.get("email_token", ""),
                )
            except PaymentError:
                workflow.compensate(self)
                raise

            try:
                self._request(
                    "POST",
                    "/subscription/disable",
                    {
                        "code": request.subscription_id,
                        "token": current.get("email_token", ""),
                    },
                    log_context,
                )
            except PaymentError as e:
                # The new subscription is live; track it and leave the old one for reconciliation.
                self.get_logger().error(
                    f"Orphaned {self.gateway} subscription requires manual reconciliation",
                    extra={
                        **log_context,
                        "step_kind": STEP_SUBSCRIPTION,
                        "provider_ref": request.subscription_id,
                        "replacement_ref": new_subscription["subscription_code"],
                        "error": str(e),
                    },
                )
                metadata["paystack_orphaned_subscription_code"] = request.subscription_id
            metadata.update(
                {
                    "paystack_subscription_code": new_subscription["subscription_code"],
                    "paystack_plan_code": plan["plan_code"],
                    "paystack_email_token": new_subscription.get("email_token", ""),
                }
            )
            if request.amount is not None:
                updated_fields.append("amount")
            if request.billing_cycle is not None:
                updated_fields.append("billing_cycle")

        if request.metadata:
            updated_fields.append("metadata")

        self._completed(log_context, start_time, updated_fields=updated_fields)
        return UpdateSubscriptionResponse(
            success=True,
            subscription_id=metadata.get(
                "paystack_subscription_code", request.subscription_id
            ),
            gateway=self.gateway,
            updated_fields=updated_fields,
            metadata=metadata,
        )

    # =========================================================================
    # Payments
    # =========================================================================

    def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        """
        Initialize a hosted checkout transaction.

        The charge stays pending until the customer completes payment at
        ``authorization_url``; completion arrives as a ``charge.success``
        webhook.
        """
        config = self.require_initialized()
        log_context, start_time = self._timed(
            "process_payment", amount=str(request.amount), currency=request.currency
        )

        reference = generate_reference()
        payload: dict[str, Any] = {
            "email": request.customer.email,
            "amount": to_minor_units(request.amount),
            "currency": request.currency.upper(),
            "reference": reference,
            "metadata": {"description": request.description, **request.metadata},
        }
        if config.callback_url:
            payload["callback_url"] = config.callback_url

        data = self._request("POST", "/transaction/initialize", payload, log_context)

        self._completed(log_context, start_time, reference=data.get("reference", reference))
        return PaymentResponse(
            success=True,
            transaction_id=data.get("reference", reference),
            status=PaymentStatus.PENDING,
            amount=request.amount,
            currency=request.currency.upper(),
            gateway=self.gateway,
            gateway_transaction_id=data.get("reference", reference),
            metadata={
                "access_code": data.get("access_code"),
                "authorization_url": data.get("authorization_url"),
                "reference": data.get("reference", reference),
            },
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify the X-Paystack-Signature header and parse the event.

        Raises:
            PaymentValidationError: Missing or mismatched signature, or a
                body that is not a JSON object
        """
        config = self.require_initialized()
        secret = config.webhook_secret or config.secret_key
        expected = hmac.new(secret.encode(), payload, hashlib.sha512).hexdigest()

        if not signature or not hmac.compare_digest(expected, signature):
            self.get_logger().warning(
                "Paystack webhook signature verification failed",
                extra={"gateway": self.gateway},
            )
            raise PaymentValidationError(
                "Invalid webhook signature", gateway=self.gateway
            )

        try:
            body = json.loads(payload)
        except ValueError as e:
            raise PaymentValidationError(
                "Webhook payload is not valid JSON", gateway=self.gateway
            ) from e
        if not isinstance(body, dict) or "event" not in body:
            raise PaymentValidationError(
                "Webhook payload has no event type", gateway=self.gateway
            )

        # Paystack events carry no id of their own. The object id is shared by
        # every event about that object, so the type is part of the key.
        data = body.get("data") or {}
        object_id = data.get("id") or data.get("reference")
        if object_id is None:
            object_id = hashlib.sha256(payload).hexdigest()
        event_id = f"{body['event']}:{object_id}"

        timestamp = (
            parse_iso_datetime(data.get("paid_at"))
            or parse_iso_datetime(data.get("created_at"))
            or parse_iso_datetime(data.get("createdAt"))
            or timezone.now()
        )
        return WebhookEvent(
            id=str(event_id),
            type=body["event"],
            data=data,
            timestamp=timestamp,
            gateway=self.gateway,
            metadata={"domain": data.get("domain")},
        )

    # =========================================================================
    # Compensation
    # =========================================================================

    def compensate_step(self, step: WorkflowStep) -> bool:
        # Paystack exposes no delete for customers or plans.
        if step.kind == STEP_SUBSCRIPTION and step.extra.get("token"):
            self._request(
                "POST",
                "/subscription/disable",
                {"code": step.ref, "token": step.extra["token"]},
            )
            return True
        return False
