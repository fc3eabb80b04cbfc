"""
URL configuration for the payments app.

Routes:
    - subscriptions/ - Current user's subscription (GET, POST, PUT, DELETE)
    - plans/ - Plan catalog (GET, public)
    - payments/ - One-off payments and history (GET, POST)
    - webhooks/<gateway>/ - Gateway webhook endpoint (POST)

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import PaymentView, PlanListView, SubscriptionView
from payments.webhooks.views import gateway_webhook

app_name = "payments"

urlpatterns = [
    path("subscriptions/", SubscriptionView.as_view(), name="subscriptions"),
    path("plans/", PlanListView.as_view(), name="plans"),
    path("payments/", PaymentView.as_view(), name="payments"),
    # Webhook endpoints
    path("webhooks/<str:gateway>/", gateway_webhook, name="gateway_webhook"),
]
