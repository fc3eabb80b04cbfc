"""
API views for payments.

This module provides REST API endpoints for billing:
- SubscriptionView: Create, read, update and cancel the user's subscription
- PlanListView: Public plan catalog
- PaymentView: One-off payments and payment history

URL Structure:
    /api/v1/payments/subscriptions/   GET, POST, PUT, DELETE
    /api/v1/payments/plans/           GET
    /api/v1/payments/payments/        GET, POST
    /api/v1/payments/webhooks/<gateway>/  POST (see webhooks/views.py)

Design Decisions:
    - Views validate input with serializers and delegate to PaymentService
    - PaymentError subclasses map to their http_status with a to_dict() body
    - Subscription ownership is enforced in the service: another user's
      subscription is reported as not found
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.exceptions import PaymentError
from payments.models import SubscriptionPlan
from payments.serializers import (
    CancelSubscriptionSerializer,
    CreateSubscriptionSerializer,
    PaymentTransactionSerializer,
    ProcessPaymentSerializer,
    SubscriptionPlanSerializer,
    SubscriptionSerializer,
    UpdateSubscriptionSerializer,
)
from payments.services import get_payment_service

logger = logging.getLogger(__name__)

PAYMENT_HISTORY_LIMIT = 50


def payment_error_response(error: PaymentError) -> Response:
    """Render a PaymentError as ``{"error", "error_code", "details"}``."""
    return Response(error.to_dict(), status=error.http_status)


class SubscriptionView(APIView):
    """
    Manage the current user's subscription.

    POST   Subscribe to a plan
    GET    Current subscription, or null
    PUT    Change amount, billing cycle or metadata
    DELETE Cancel now or at period end
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_subscription",
        summary="Get current subscription",
        responses={200: SubscriptionSerializer},
        tags=["Payments - Subscriptions"],
    )
    def get(self, request):
        subscription = get_payment_service().get_active_subscription(request.user.pk)
        if subscription is None:
            return Response(None)
        return Response(SubscriptionSerializer(subscription).data)

    @extend_schema(
        operation_id="create_subscription",
        summary="Subscribe to a plan",
        request=CreateSubscriptionSerializer,
        responses={
            201: SubscriptionSerializer,
            400: OpenApiResponse(description="Already subscribed or invalid input"),
            404: OpenApiResponse(description="Unknown plan"),
            502: OpenApiResponse(description="Gateway rejected the subscription"),
        },
        tags=["Payments - Subscriptions"],
    )
    def post(self, request):
        serializer = CreateSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            subscription = get_payment_service().create_subscription(
                user_id=request.user.pk, **serializer.validated_data
            )
        except PaymentError as e:
            return payment_error_response(e)

        return Response(
            SubscriptionSerializer(subscription).data, status=status.HTTP_201_CREATED
        )

    @extend_schema(
        operation_id="update_subscription",
        summary="Update subscription",
        request=UpdateSubscriptionSerializer,
        responses={
            200: SubscriptionSerializer,
            400: OpenApiResponse(description="No changes or subscription canceled"),
            404: OpenApiResponse(description="Subscription not found"),
        },
        tags=["Payments - Subscriptions"],
    )
    def put(self, request):
        serializer = UpdateSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            subscription = get_payment_service().update_subscription(
                data["subscription_id"],
                amount=data.get("amount"),
                billing_cycle=data.get("billing_cycle"),
                metadata=data.get("metadata"),
                user_id=request.user.pk,
            )
        except PaymentError as e:
            return payment_error_response(e)

        return Response(SubscriptionSerializer(subscription).data)

    @extend_schema(
        operation_id="cancel_subscription",
        summary="Cancel subscription",
        request=CancelSubscriptionSerializer,
        responses={
            200: SubscriptionSerializer,
            400: OpenApiResponse(description="Already canceled"),
            404: OpenApiResponse(description="Subscription not found"),
        },
        tags=["Payments - Subscriptions"],
    )
    def delete(self, request):
        serializer = CancelSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            subscription = get_payment_service().cancel_subscription(
                data["subscription_id"],
                cancel_at_period_end=data["cancel_at_period_end"],
                reason=data.get("reason") or None,
                user_id=request.user.pk,
            )
        except PaymentError as e:
            return payment_error_response(e)

        return Response(SubscriptionSerializer(subscription).data)


class PlanListView(APIView):
    """Active plans, cheapest first. Public."""

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="list_plans",
        summary="List subscription plans",
        responses={200: SubscriptionPlanSerializer(many=True)},
        tags=["Payments - Plans"],
    )
    def get(self, request):
        plans = SubscriptionPlan.objects.active()
        return Response(SubscriptionPlanSerializer(plans, many=True).data)


class PaymentView(APIView):
    """
    One-off payments.

    POST  Start a charge; the transaction is usually pending until the
          gateway's webhook settles it
    GET   The user's last 50 transactions, newest first
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_payments",
        summary="Payment history",
        responses={200: PaymentTransactionSerializer(many=True)},
        tags=["Payments - Transactions"],
    )
    def get(self, request):
        transactions = get_payment_service().get_payment_history(
            request.user.pk, limit=PAYMENT_HISTORY_LIMIT
        )
        return Response(PaymentTransactionSerializer(transactions, many=True).data)

    @extend_schema(
        operation_id="process_payment",
        summary="Process a one-off payment",
        request=ProcessPaymentSerializer,
        responses={
            201: PaymentTransactionSerializer,
            400: OpenApiResponse(description="Invalid input"),
            502: OpenApiResponse(description="Gateway rejected the payment"),
        },
        tags=["Payments - Transactions"],
    )
    def post(self, request):
        serializer = ProcessPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            transaction_row = get_payment_service().process_payment(
                user_id=request.user.pk, **serializer.validated_data
            )
        except PaymentError as e:
            return payment_error_response(e)

        return Response(
            PaymentTransactionSerializer(transaction_row).data,
            status=status.HTTP_201_CREATED,
        )
