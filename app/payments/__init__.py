"""
Payments app: a gateway-agnostic billing layer.

This app handles:
- Gateway adapters (Stripe, Paystack) behind BaseGateway
- Subscription lifecycle (create, update, cancel)
- One-off payments and payment history
- Webhook verification and idempotent processing
- Plan catalog and feature paywall

Related apps:
    - authentication: User and Profile for customer details

Usage:
    from payments.services import get_payment_service

    service = get_payment_service()
    subscription = service.create_subscription(user_id=user.pk, plan_id="premium")

    # Webhooks arrive at /api/v1/payments/webhooks/<gateway>/
"""
