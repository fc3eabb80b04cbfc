"""
Test doubles for provider SDK objects and HTTP responses.

Usage:
    from payments.gateways.tests.fakes import StripeObjectStub, paystack_response

    subscription = StripeObjectStub(id="sub_123", status="active")
    subscription.id  # "sub_123"

    mock_request.return_value = paystack_response({"customer_code": "CUS_1"})
"""

import hashlib
import hmac
import json
from unittest.mock import MagicMock


class StripeObjectStub(dict):
    """Dict with attribute access, like stripe.StripeObject."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e


def paystack_response(data=None, *, status=True, status_code=200, message="OK"):
    """A requests.Response stand-in carrying a Paystack JSON envelope."""
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.json.return_value = {"status": status, "message": message, "data": data or {}}
    return response


def paystack_signature(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha512).hexdigest()


def paystack_payload(event: str, data: dict) -> bytes:
    return json.dumps({"event": event, "data": data}).encode()
