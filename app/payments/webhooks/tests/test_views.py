"""
Tests for the gateway webhook endpoint.

Tests cover:
- Signature header per gateway
- Mapping of service outcomes and errors to HTTP status codes
- Method and CSRF handling
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from django.test import Client
from django.urls import reverse

from payments.exceptions import (
    PaymentConfigurationError,
    PaymentGatewayError,
    PaymentValidationError,
)
from payments.services import WebhookResult


pytestmark = pytest.mark.django_db

PAYLOAD = json.dumps({"id": "evt_1", "type": "invoice.payment_succeeded"}).encode()


@pytest.fixture
def service(mocker):
    service = mocker.MagicMock()
    service.handle_webhook.return_value = WebhookResult(event=mocker.MagicMock())
    mocker.patch("payments.webhooks.views.get_payment_service", return_value=service)
    return service


@pytest.fixture
def client():
    # Real webhooks carry no CSRF token
    return Client(enforce_csrf_checks=True)


def post_webhook(client, gateway, headers=None):
    return client.post(
        reverse("payments:gateway_webhook", kwargs={"gateway": gateway}),
        data=PAYLOAD,
        content_type="application/json",
        headers=headers or {},
    )


class TestSignatureHeaders:
    def test_stripe(self, client, service):
        response = post_webhook(client, "stripe", {"Stripe-Signature": "t=1,v1=abc"})

        assert response.status_code == 200
        assert response.content == b"OK"
        service.handle_webhook.assert_called_once_with("stripe", PAYLOAD, "t=1,v1=abc")

    def test_paystack(self, client, service):
        response = post_webhook(client, "paystack", {"X-Paystack-Signature": "f00d"})

        assert response.status_code == 200
        service.handle_webhook.assert_called_once_with("paystack", PAYLOAD, "f00d")

    def test_missing_signature(self, client, service):
        response = post_webhook(client, "stripe")

        assert response.status_code == 400
        assert response.content == b"Missing signature"
        service.handle_webhook.assert_not_called()

    def test_other_gateways_header_is_not_accepted(self, client, service):
        response = post_webhook(client, "stripe", {"X-Paystack-Signature": "f00d"})

        assert response.status_code == 400

    def test_unknown_gateway(self, client, service):
        response = post_webhook(client, "square", {"Stripe-Signature": "sig"})

        assert response.status_code == 404
        assert response.content == b"Unknown gateway"
        service.handle_webhook.assert_not_called()


class TestOutcomes:
    def test_duplicate(self, client, service):
        service.handle_webhook.return_value = WebhookResult(event=MagicMock(), duplicate=True)

        response = post_webhook(client, "stripe", {"Stripe-Signature": "sig"})

        assert response.status_code == 200
        assert response.content == b"Already processed"

    def test_invalid_signature(self, client, service):
        service.handle_webhook.side_effect = PaymentValidationError(
            "Invalid webhook signature", gateway="stripe"
        )

        response = post_webhook(client, "stripe", {"Stripe-Signature": "bad"})

        assert response.status_code == 400
        assert response.content == b"Invalid signature"

    def test_gateway_not_configured(self, client, service):
        service.handle_webhook.side_effect = PaymentConfigurationError(
            "paystack gateway is not configured", gateway="paystack"
        )

        response = post_webhook(client, "paystack", {"X-Paystack-Signature": "sig"})

        assert response.status_code == 404
        assert response.content == b"Gateway not configured"

    def test_processing_error_asks_for_redelivery(self, client, service):
        service.handle_webhook.side_effect = PaymentGatewayError(
            "Unexpected error during handle_webhook", gateway="unknown"
        )

        with patch("payments.webhooks.views.logger") as logger:
            response = post_webhook(client, "stripe", {"Stripe-Signature": "sig"})

        assert response.status_code == 500
        assert response.content == b"Processing error"
        logger.error.assert_called_once()


class TestMethod:
    def test_get_not_allowed(self, client, service):
        response = client.get(reverse("payments:gateway_webhook", kwargs={"gateway": "stripe"}))

        assert response.status_code == 405
        service.handle_webhook.assert_not_called()
