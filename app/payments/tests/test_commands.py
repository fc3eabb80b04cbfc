"""
Tests for the seed_subscription_plans management command.
"""

from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command

from payments.management.commands.seed_subscription_plans import (
    PLAN_CATALOG,
    features_for,
)
from payments.models import SubscriptionPlan
from payments.tests.factories import SubscriptionPlanFactory
from payments.types import Currency, PlanType

CATALOG_IDS = [
    "free",
    "basic",
    "premium",
    "enterprise",
    "basic-ngn",
    "premium-ngn",
    "basic-ghs",
    "premium-ghs",
]


def seed(*args):
    out = StringIO()
    call_command("seed_subscription_plans", *args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestSeedSubscriptionPlans:
    def test_creates_catalog(self):
        output = seed()

        assert sorted(SubscriptionPlan.objects.values_list("plan_id", flat=True)) == sorted(
            CATALOG_IDS
        )
        assert "Created plan premium" in output
        assert "Subscription plans seeded: 8 created, 0 updated" in output

    def test_plan_contents(self):
        seed()

        premium = SubscriptionPlan.objects.get(plan_id="premium")
        assert premium.monthly_price == Decimal("19.99")
        assert premium.yearly_price == Decimal("199.99")
        assert premium.currency == Currency.USD
        assert premium.features["aiReview"] is True
        assert premium.features["apiAccess"] is False
        assert premium.limits["apiCallsPerMonth"] == 2000

        naira = SubscriptionPlan.objects.get(plan_id="premium-ngn")
        assert naira.currency == Currency.NGN
        assert naira.monthly_price == Decimal("10000")

    def test_rerun_updates_in_place(self):
        seed()
        SubscriptionPlan.objects.filter(plan_id="basic").update(monthly_price=Decimal("1.00"))

        output = seed()

        assert SubscriptionPlan.objects.count() == len(CATALOG_IDS)
        assert SubscriptionPlan.objects.get(plan_id="basic").monthly_price == Decimal("9.99")
        assert "Updated plan basic" in output
        assert "Subscription plans seeded: 0 created, 8 updated" in output

    def test_reset_deactivates_plans_outside_catalog(self):
        legacy = SubscriptionPlanFactory(plan_id="legacy-gold")

        output = seed("--reset")

        legacy.refresh_from_db()
        assert legacy.is_active is False
        assert "Deactivated 1 plan(s) not in the catalog" in output
        assert SubscriptionPlan.objects.filter(is_active=True).count() == len(CATALOG_IDS)

    def test_without_reset_other_plans_stay_active(self):
        legacy = SubscriptionPlanFactory(plan_id="legacy-gold")

        output = seed()

        legacy.refresh_from_db()
        assert legacy.is_active is True
        assert "Deactivated" not in output


class TestFeaturesFor:
    def test_every_flag_is_explicit(self):
        free = features_for(PlanType.FREE)

        assert free["documentLibrary"] is True
        assert free["aiReview"] is False
        assert free["maxDocuments"] == 5

    def test_higher_tiers_include_lower(self):
        enterprise = features_for(PlanType.ENTERPRISE)

        assert enterprise["documentLibrary"] is True
        assert enterprise["aiReview"] is True
        assert enterprise["apiAccess"] is True
        assert enterprise["maxApplications"] == -1

    def test_catalog_order(self):
        ids = [entry["plan_id"] for entry in PLAN_CATALOG]

        assert ids == CATALOG_IDS
