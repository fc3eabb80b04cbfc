"""
Webhook event handlers.

Gateways name the same business event differently (Stripe
``invoice.payment_succeeded``, Paystack ``charge.success``). Handlers are
registered for a family of event types and receive the normalized
WebhookEvent produced by the adapter.

Handlers run inside the caller's transaction and lock the rows they
touch with ``select_for_update()``.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("customer.subscription.updated")
    def handle_subscription_updated(event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from django.utils import timezone
from django_fsm import can_proceed

from core.services import ServiceResult

from payments.gateways.base import parse_iso_datetime
from payments.models import PaymentTransaction, Subscription
from payments.state_machines import PaymentStatus
from payments.types import Currency, to_major_units

if TYPE_CHECKING:
    from payments.types import WebhookEvent


logger = logging.getLogger(__name__)


# =============================================================================
# Event Families
# =============================================================================

PAYMENT_SUCCESS_EVENTS = (
    "invoice.payment_succeeded",
    "charge.succeeded",
    "subscription.payment_successful",
    "charge.success",
    "invoice.payment_success",
)

PAYMENT_FAILURE_EVENTS = (
    "invoice.payment_failed",
    "charge.failed",
    "subscription.payment_failed",
)

SUBSCRIPTION_CANCELED_EVENTS = (
    "customer.subscription.deleted",
    "subscription.cancelled",
    "subscription.disable",
)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a handler for one or more event types.

    Usage:
        @register_handler("invoice.payment_succeeded", "charge.success")
        def handle_payment_succeeded(event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(event: WebhookEvent) -> ServiceResult:
    """
    Dispatch an event to its handler.

    Unknown event types are logged and acknowledged with a successful
    result so the gateway stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(event.type)
    log_context = {"gateway": event.gateway, "event_id": event.id, "event_type": event.type}

    if not handler:
        logger.info(
            f"No handler registered for event type: {event.type}",
            extra=log_context,
        )
        return ServiceResult.ok(None)

    logger.info(f"Dispatching {event.type} to handler", extra=log_context)
    return handler(event)


# =============================================================================
# Payload Helpers
# =============================================================================


def extract_subscription_ref(data: dict[str, Any]) -> str | None:
    """
    Gateway subscription id referenced by an event object.

    Checked in order: ``subscription`` (string or nested object),
    ``subscription_code``, ``subscription_id``, Stripe's
    ``parent.subscription_details.subscription``, then the object's own ``id``.
    """
    nested = data.get("subscription")
    if isinstance(nested, dict):
        nested = nested.get("subscription_code") or nested.get("id")
    if nested:
        return str(nested)

    for key in ("subscription_code", "subscription_id"):
        if data.get(key):
            return str(data[key])

    parent = data.get("parent") or {}
    details = parent.get("subscription_details") if isinstance(parent, dict) else None
    if isinstance(details, dict) and details.get("subscription"):
        return str(details["subscription"])

    if data.get("id") is not None:
        return str(data["id"])
    return None


def extract_payment_refs(data: dict[str, Any]) -> list[str]:
    """Candidate charge references for matching a PaymentTransaction."""
    refs = [data.get("reference"), data.get("payment_intent"), data.get("id")]
    return [str(ref) for ref in refs if ref]


def extract_amount(data: dict[str, Any]):
    """Charged amount in major units; gateways report minor units."""
    minor = data.get("amount_paid")
    if minor is None:
        minor = data.get("amount")
    return to_major_units(minor or 0)


def _find_subscription(event: WebhookEvent) -> Subscription | None:
    ref = extract_subscription_ref(event.data)
    if not ref:
        return None
    return (
        Subscription.objects.select_for_update()
        .filter(gateway=event.gateway, gateway_subscription_id=ref)
        .first()
    )


def _find_transaction(event: WebhookEvent) -> PaymentTransaction | None:
    refs = extract_payment_refs(event.data)
    if not refs:
        return None
    return (
        PaymentTransaction.objects.select_for_update()
        .filter(gateway=event.gateway, gateway_transaction_id__in=refs)
        .first()
    )


def _settle_transaction(event: WebhookEvent, status: str, failure_reason: str = "") -> ServiceResult:
    """Finalize a one-off payment that the event refers to, if we have it."""
    log_context = {"gateway": event.gateway, "event_id": event.id, "event_type": event.type}
    transaction_row = _find_transaction(event)
    if transaction_row is None:
        logger.warning(
            "No subscription or transaction matches webhook event",
            extra=log_context,
        )
        return ServiceResult.ok(None)

    if transaction_row.status == status:
        return ServiceResult.ok(transaction_row)

    transaction_row.status = status
    transaction_row.processed_at = timezone.now()
    transaction_row.failure_reason = failure_reason
    transaction_row.save(
        update_fields=["status", "processed_at", "failure_reason", "updated_at"]
    )
    logger.info(
        f"Transaction marked {status}",
        extra={**log_context, "transaction_id": transaction_row.transaction_id},
    )
    return ServiceResult.ok(transaction_row)


def _failure_reason(data: dict[str, Any]) -> str:
    for key in ("failure_message", "gateway_response", "message"):
        if data.get(key):
            return str(data[key])
    last_error = data.get("last_payment_error")
    if isinstance(last_error, dict) and last_error.get("message"):
        return str(last_error["message"])
    return "Payment failed"


# =============================================================================
# Handlers
# =============================================================================


@register_handler(*PAYMENT_SUCCESS_EVENTS)
def handle_payment_succeeded(event: WebhookEvent) -> ServiceResult:
    """
    Record a successful charge.

    For a subscription charge: activate the subscription (ending an
    expired trial) and insert a completed PaymentTransaction keyed
    ``<gateway>_<event_id>``, so redelivery cannot insert twice. For a
    one-off charge: mark the matching transaction completed.
    """
    log_context = {"gateway": event.gateway, "event_id": event.id, "event_type": event.type}
    subscription = _find_subscription(event)
    if subscription is None:
        return _settle_transaction(event, PaymentStatus.COMPLETED)

    if not can_proceed(subscription.activate):
        logger.warning(
            f"Ignoring payment success for {subscription.status} subscription",
            extra={**log_context, "subscription_id": str(subscription.id)},
        )
        return ServiceResult.ok(subscription)

    subscription.activate()
    next_payment = parse_iso_datetime(event.data.get("next_payment_date"))
    if next_payment:
        subscription.next_billing_date = next_payment
    subscription.save()

    transaction_row, created = PaymentTransaction.objects.get_or_create(
        transaction_id=f"{event.gateway}_{event.id}",
        defaults={
            "user_id": subscription.user_id,
            "subscription": subscription,
            "amount": extract_amount(event.data),
            "currency": str(event.data.get("currency") or Currency.USD).upper(),
            "status": PaymentStatus.COMPLETED,
            "gateway": event.gateway,
            "gateway_transaction_id": str(
                event.data.get("reference") or event.data.get("id") or ""
            ),
            "gateway_response": {"event_type": event.type},
            "description": f"Subscription payment - {subscription.plan_name}",
            "processed_at": timezone.now(),
        },
    )

    logger.info(
        "Subscription payment recorded",
        extra={
            **log_context,
            "subscription_id": str(subscription.id),
            "transaction_id": transaction_row.transaction_id,
            "transaction_created": created,
        },
    )
    return ServiceResult.ok(subscription)


@register_handler(*PAYMENT_FAILURE_EVENTS)
def handle_payment_failed(event: WebhookEvent) -> ServiceResult:
    """Move the subscription to past_due, or fail the matching one-off charge."""
    log_context = {"gateway": event.gateway, "event_id": event.id, "event_type": event.type}
    subscription = _find_subscription(event)
    if subscription is None:
        return _settle_transaction(
            event, PaymentStatus.FAILED, failure_reason=_failure_reason(event.data)
        )

    if not can_proceed(subscription.mark_past_due):
        logger.info(
            f"Subscription already {subscription.status}; not marking past_due",
            extra={**log_context, "subscription_id": str(subscription.id)},
        )
        return ServiceResult.ok(subscription)

    subscription.mark_past_due()
    subscription.save()
    logger.warning(
        "Subscription marked past_due after failed payment",
        extra={**log_context, "subscription_id": str(subscription.id)},
    )
    return ServiceResult.ok(subscription)


@register_handler(*SUBSCRIPTION_CANCELED_EVENTS)
def handle_subscription_canceled(event: WebhookEvent) -> ServiceResult:
    """Cancel the local subscription once the gateway has ended it."""
    log_context = {"gateway": event.gateway, "event_id": event.id, "event_type": event.type}
    subscription = _find_subscription(event)
    if subscription is None:
        logger.warning("Canceled subscription not found locally", extra=log_context)
        return ServiceResult.ok(None)

    if not can_proceed(subscription.cancel):
        return ServiceResult.ok(subscription)

    subscription.cancel(reason=subscription.cancellation_reason or "Canceled by gateway")
    subscription.save()
    logger.info(
        "Subscription canceled by gateway",
        extra={**log_context, "subscription_id": str(subscription.id)},
    )
    return ServiceResult.ok(subscription)
