"""
Tests for payment models.

Covers:
- SubscriptionPlan: pricing per billing cycle, feature flags, catalog ordering
- Subscription: derived properties, one-active-per-user index, version locking
- PaymentTransaction / ProcessedWebhookEvent / GatewayCustomer: uniqueness
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone
from freezegun import freeze_time

from payments.models import (
    GatewayCustomer,
    PaymentTransaction,
    ProcessedWebhookEvent,
    Subscription,
    SubscriptionPlan,
)
from payments.state_machines import PaymentStatus, WebhookEventStatus
from payments.tests.factories import (
    GatewayCustomerFactory,
    PaymentTransactionFactory,
    ProcessedWebhookEventFactory,
    SubscriptionFactory,
    SubscriptionPlanFactory,
)
from payments.types import BillingCycle, Gateway


# =============================================================================
# SubscriptionPlan
# =============================================================================


class TestSubscriptionPlan:
    def test_price_for_each_cycle(self, plan):
        assert plan.price_for(BillingCycle.MONTHLY) == Decimal("19.99")
        assert plan.price_for(BillingCycle.QUARTERLY) == Decimal("53.99")
        assert plan.price_for(BillingCycle.YEARLY) == Decimal("199.99")

    def test_price_derived_from_monthly_when_unset(self, db):
        plan = SubscriptionPlanFactory(monthly_price=Decimal("10.00"))

        assert plan.price_for(BillingCycle.QUARTERLY) == Decimal("30.00")
        assert plan.price_for(BillingCycle.YEARLY) == Decimal("120.00")
        assert plan.price_for(BillingCycle.CUSTOM) == Decimal("10.00")

    def test_has_feature(self, plan):
        assert plan.has_feature("aiReview") is True
        assert plan.has_feature("telegramBot") is False
        # Missing keys are treated as enabled
        assert plan.has_feature("somethingNew") is True

    def test_zero_limit_disables_feature(self, db):
        plan = SubscriptionPlanFactory(features={"maxDocuments": 0})

        assert plan.has_feature("maxDocuments") is False

    def test_active_lists_cheapest_first(self, plan, basic_plan):
        SubscriptionPlanFactory(plan_id="retired", is_active=False)

        assert list(SubscriptionPlan.objects.active()) == [basic_plan, plan]

    def test_plan_id_is_unique(self, plan):
        with pytest.raises(IntegrityError):
            SubscriptionPlan.objects.create(
                plan_id="premium", name="Duplicate", monthly_price=Decimal("1")
            )

    def test_str(self, plan):
        assert str(plan) == "Premium Plan (premium)"


# =============================================================================
# Subscription
# =============================================================================


class TestSubscriptionProperties:
    def test_plan_is_referenced_by_public_id(self, active_subscription):
        assert active_subscription.plan_id == "premium"

    def test_trial_properties(self, trialing_subscription):
        assert trialing_subscription.is_in_trial is True
        assert trialing_subscription.trial_days_remaining == 7
        assert trialing_subscription.is_expired is False

    def test_trial_days_remaining_rounds_up(self, trialing_subscription):
        trialing_subscription.trial_end = timezone.now() + timedelta(days=2, hours=1)

        assert trialing_subscription.trial_days_remaining == 3

    def test_trial_over_when_trial_end_passed(self, trialing_subscription):
        trialing_subscription.trial_end = timezone.now() - timedelta(minutes=1)

        assert trialing_subscription.is_in_trial is False
        assert trialing_subscription.trial_days_remaining == 0
        assert trialing_subscription.is_expired is True

    def test_active_subscription_expires_at_period_end(self, active_subscription):
        assert active_subscription.is_expired is False

        active_subscription.current_period_end = timezone.now() - timedelta(seconds=1)

        assert active_subscription.is_expired is True

    def test_canceled_is_expired(self, canceled_subscription):
        assert canceled_subscription.is_canceled is True
        assert canceled_subscription.is_expired is True

    def test_days_until_renewal(self, active_subscription):
        active_subscription.next_billing_date = timezone.now() + timedelta(days=10, hours=2)

        assert active_subscription.days_until_renewal == 11

    def test_days_until_renewal_none_when_canceled(self, canceled_subscription):
        assert canceled_subscription.days_until_renewal is None

    def test_can_access_feature_follows_plan(self, active_subscription):
        assert active_subscription.can_access_feature("aiReview") is True
        assert active_subscription.can_access_feature("telegramBot") is False

    def test_past_due_cannot_access_features(self, past_due_subscription):
        assert past_due_subscription.can_access_feature("aiReview") is False

    def test_subscription_without_plan_allows_features(self, db, user):
        subscription = SubscriptionFactory(user=user, plan=None)

        assert subscription.can_access_feature("aiReview") is True


class TestSubscriptionQuerySet:
    def test_active_excludes_past_due_and_canceled(self, db):
        active = SubscriptionFactory()
        trialing = SubscriptionFactory(trialing=True)
        SubscriptionFactory(past_due=True)
        SubscriptionFactory(canceled=True)

        assert set(Subscription.objects.active()) == {active, trialing}

    def test_current_for_includes_past_due(self, past_due_subscription, user):
        assert Subscription.objects.current_for(user) == past_due_subscription

    def test_current_for_ignores_canceled(self, canceled_subscription, user):
        assert Subscription.objects.current_for(user) is None


class TestOneActiveSubscriptionPerUser:
    def test_second_active_row_is_rejected(self, active_subscription, user):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                SubscriptionFactory(user=user)

    def test_canceled_rows_do_not_count(self, canceled_subscription, user):
        SubscriptionFactory(user=user, canceled=True)
        replacement = SubscriptionFactory(user=user)

        assert replacement.is_active is True
        assert Subscription.objects.filter(user=user).count() == 3

    def test_other_users_are_independent(self, active_subscription, other_user):
        assert SubscriptionFactory(user=other_user).is_active is True


class TestSubscriptionVersioning:
    def test_new_subscription_starts_at_version_one(self, active_subscription):
        assert active_subscription.version == 1

    def test_each_save_increments_version(self, active_subscription):
        active_subscription.cancellation_reason = "Testing"
        active_subscription.save()
        assert active_subscription.version == 2

        active_subscription.will_cancel_at_period_end = True
        active_subscription.save()
        assert active_subscription.version == 3

    def test_update_fields_save_still_bumps_version(self, active_subscription):
        active_subscription.merge_meta({"source": "test"})

        stored = Subscription.objects.get(pk=active_subscription.pk)
        assert stored.version == 2
        assert stored.metadata == {"source": "test"}


# =============================================================================
# PaymentTransaction
# =============================================================================


class TestPaymentTransaction:
    def test_transaction_id_is_unique(self, db, user):
        PaymentTransactionFactory(user=user, transaction_id="stripe_evt_1")

        with pytest.raises(IntegrityError):
            PaymentTransactionFactory(user=user, transaction_id="stripe_evt_1")

    def test_is_final(self, db):
        assert PaymentTransactionFactory().is_final is False
        assert PaymentTransactionFactory(status=PaymentStatus.COMPLETED).is_final is True

    def test_history_is_newest_first(self, db, user):
        with freeze_time("2026-01-01"):
            older = PaymentTransactionFactory(user=user)
        with freeze_time("2026-02-01"):
            newer = PaymentTransactionFactory(user=user)

        assert list(PaymentTransaction.objects.filter(user=user)) == [newer, older]


# =============================================================================
# ProcessedWebhookEvent
# =============================================================================


class TestProcessedWebhookEvent:
    def test_event_id_unique_per_gateway(self, pending_webhook):
        with pytest.raises(IntegrityError):
            ProcessedWebhookEventFactory(
                gateway=pending_webhook.gateway, event_id=pending_webhook.event_id
            )

    def test_same_event_id_allowed_on_another_gateway(self, pending_webhook):
        other = ProcessedWebhookEventFactory(
            gateway=Gateway.PAYSTACK, event_id=pending_webhook.event_id
        )

        assert ProcessedWebhookEvent.objects.filter(event_id=other.event_id).count() == 2

    def test_processed_state(self, processed_webhook):
        assert processed_webhook.is_processed is True
        assert processed_webhook.attempts == 1
        assert processed_webhook.processed_at is not None
        assert processed_webhook.error_message is None

    def test_failed_state(self, failed_webhook):
        assert failed_webhook.is_failed is True
        assert failed_webhook.status == WebhookEventStatus.FAILED
        assert failed_webhook.error_message == "Processing error: test failure"

    def test_retry_after_failure_clears_error(self, failed_webhook):
        failed_webhook.mark_processing()
        failed_webhook.mark_processed()
        failed_webhook.save()

        assert failed_webhook.attempts == 2
        assert failed_webhook.error_message is None


# =============================================================================
# GatewayCustomer
# =============================================================================


class TestGatewayCustomer:
    def test_one_customer_per_user_and_gateway(self, db, user):
        GatewayCustomerFactory(user=user)

        with pytest.raises(IntegrityError):
            GatewayCustomerFactory(user=user)

    def test_user_can_have_customer_on_each_gateway(self, db, user):
        GatewayCustomerFactory(user=user, gateway=Gateway.STRIPE)
        GatewayCustomerFactory(user=user, gateway=Gateway.PAYSTACK)

        assert GatewayCustomer.objects.filter(user=user).count() == 2
