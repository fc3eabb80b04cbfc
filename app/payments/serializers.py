"""
DRF serializers for the payments API.

Request serializers validate input for PaymentService calls; response
serializers render Subscription, SubscriptionPlan and PaymentTransaction
rows.

Related files:
    - models/: SubscriptionPlan, Subscription, PaymentTransaction
    - views.py: Payment API views

Usage:
    serializer = CreateSubscriptionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    subscription = service.create_subscription(
        user_id=request.user.pk, **serializer.validated_data
    )
    return Response(SubscriptionSerializer(subscription).data, status=201)
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.models import PaymentTransaction, Subscription, SubscriptionPlan
from payments.types import BillingCycle, Currency, PaymentMethod


class SubscriptionPlanSerializer(serializers.ModelSerializer):
    """Public catalog entry."""

    class Meta:
        model = SubscriptionPlan
        fields = [
            "plan_id",
            "name",
            "description",
            "plan_type",
            "monthly_price",
            "quarterly_price",
            "yearly_price",
            "currency",
            "features",
            "limits",
            "is_popular",
        ]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Subscription serializer for API responses.

    Adds computed fields:
        is_in_trial: Trial still running
        trial_days_remaining: Whole days left in the trial
        days_until_renewal: Whole days until the next charge
    """

    plan_id = serializers.CharField(read_only=True)
    is_in_trial = serializers.BooleanField(read_only=True)
    trial_days_remaining = serializers.IntegerField(read_only=True)
    days_until_renewal = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "plan_id",
            "plan_name",
            "plan_type",
            "status",
            "is_active",
            "billing_cycle",
            "amount",
            "currency",
            "gateway",
            "next_billing_date",
            "current_period_start",
            "current_period_end",
            "trial_start",
            "trial_end",
            "is_trial_active",
            "is_in_trial",
            "trial_days_remaining",
            "days_until_renewal",
            "will_cancel_at_period_end",
            "canceled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentTransactionSerializer(serializers.ModelSerializer):
    """Payment history entry."""

    class Meta:
        model = PaymentTransaction
        fields = [
            "id",
            "transaction_id",
            "subscription",
            "amount",
            "currency",
            "status",
            "payment_method",
            "description",
            "gateway",
            "failure_reason",
            "processed_at",
            "created_at",
        ]
        read_only_fields = fields


class CreateSubscriptionSerializer(serializers.Serializer):
    plan_id = serializers.SlugField(max_length=64)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, required=False, allow_null=True
    )
    billing_cycle = serializers.ChoiceField(
        choices=BillingCycle.choices, default=BillingCycle.MONTHLY
    )


class UpdateSubscriptionSerializer(serializers.Serializer):
    """
    Serializer for subscription changes.

    At least one of amount, billing_cycle or metadata is required.
    """

    subscription_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
    )
    billing_cycle = serializers.ChoiceField(choices=BillingCycle.choices, required=False)
    metadata = serializers.DictField(required=False)

    def validate(self, attrs):
        if not any(key in attrs for key in ("amount", "billing_cycle", "metadata")):
            raise serializers.ValidationError(
                "Provide at least one of amount, billing_cycle or metadata."
            )
        return attrs


class CancelSubscriptionSerializer(serializers.Serializer):
    """
    Serializer for subscription cancellation.

    Fields:
        subscription_id: Subscription to cancel
        cancel_at_period_end: If True, cancel at end of period; if False, immediately
        reason: Optional free-text reason, stored on the subscription
    """

    subscription_id = serializers.UUIDField()
    cancel_at_period_end = serializers.BooleanField(default=True)
    reason = serializers.CharField(
        max_length=500, required=False, allow_blank=True, allow_null=True
    )


class ProcessPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    description = serializers.CharField(max_length=500)
    currency = serializers.ChoiceField(choices=Currency.choices, default=Currency.USD)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, required=False, allow_null=True
    )
