"""
Webhook endpoint view for payment gateways.

One endpoint serves every gateway: ``/webhooks/<gateway>/``. The view
reads the gateway's signature header and hands the raw body to
PaymentService.handle_webhook, which verifies, deduplicates and
processes the event synchronously.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("webhooks/<str:gateway>/", gateway_webhook, name="gateway_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.exceptions import PaymentConfigurationError, PaymentValidationError
from payments.services import get_payment_service
from payments.types import Gateway

logger = logging.getLogger(__name__)


SIGNATURE_HEADERS: dict[str, str] = {
    Gateway.STRIPE: "Stripe-Signature",
    Gateway.PAYSTACK: "X-Paystack-Signature",
}


@csrf_exempt
@require_POST
def gateway_webhook(request: HttpRequest, gateway: str) -> HttpResponse:
    """
    Receive and process a gateway webhook.

    Security:
    - Signature verification by the gateway adapter prevents spoofed events
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - (gateway, event_id) is unique in ProcessedWebhookEvent
    - Duplicate deliveries return 200 without reprocessing

    Returns:
        HttpResponse with status:
        - 200: Event processed, or duplicate
        - 400: Missing/invalid signature or payload
        - 404: Unknown or unconfigured gateway
        - 500: Processing failed; the gateway will redeliver
    """
    header = SIGNATURE_HEADERS.get(gateway)
    if header is None:
        logger.warning("Webhook received for unknown gateway", extra={"gateway": gateway})
        return HttpResponse("Unknown gateway", status=404)

    signature = request.headers.get(header, "")
    if not signature:
        logger.warning(
            f"Webhook received without {header} header", extra={"gateway": gateway}
        )
        return HttpResponse("Missing signature", status=400)

    try:
        outcome = get_payment_service().handle_webhook(gateway, request.body, signature)
    except PaymentConfigurationError as e:
        logger.warning(
            "Webhook received for unconfigured gateway",
            extra={"gateway": gateway, "error": str(e)},
        )
        return HttpResponse("Gateway not configured", status=404)
    except PaymentValidationError as e:
        logger.warning(
            "Webhook rejected",
            extra={"gateway": gateway, "error": str(e)},
        )
        return HttpResponse("Invalid signature", status=400)
    except Exception as e:
        logger.error(
            f"Webhook processing error: {type(e).__name__}",
            extra={"gateway": gateway},
            exc_info=True,
        )
        return HttpResponse("Processing error", status=500)

    if outcome.duplicate:
        return HttpResponse("Already processed", status=200)
    return HttpResponse("OK", status=200)
