"""
Seed the subscription plan catalog.

Upserts every plan in PLAN_CATALOG by plan_id, so running it twice is
harmless. With --reset, active plans missing from the catalog are
deactivated (never deleted; subscriptions reference them).

Usage:
    python manage.py seed_subscription_plans
    python manage.py seed_subscription_plans --reset
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.core.management.base import BaseCommand
from django.db import transaction

from payments.models import SubscriptionPlan
from payments.types import Currency, PlanType

UNLIMITED = -1

# Boolean feature flags, in the order the plans unlock them.
_FREE_FEATURES = {
    "documentLibrary": True,
    "emailNotifications": True,
    "careerQuiz": True,
}
_BASIC_FEATURES = {
    "documentTemplates": True,
    "documentSharing": True,
    "documentFeedback": True,
    "documentRating": True,
    "documentCloning": True,
    "aiFeatures": True,
    "aiContentRefinement": True,
    "aiRecommendations": True,
    "bulkOperations": True,
    "exportFeatures": True,
    "messaging": True,
    "applicationTemplates": True,
    "requirementsTemplates": True,
    "taskManagement": True,
    "progressTracking": True,
    "aiAnalysis": True,
    "personalizedInsights": True,
}
_PREMIUM_FEATURES = {
    "aiReview": True,
    "prioritySupport": True,
    "advancedAnalytics": True,
    "telegramBot": True,
    "contentManagement": True,
}
_ENTERPRISE_FEATURES = {
    "customBranding": True,
    "apiAccess": True,
}
ALL_FEATURES = [
    *_FREE_FEATURES,
    *_BASIC_FEATURES,
    *_PREMIUM_FEATURES,
    *_ENTERPRISE_FEATURES,
]

QUOTAS: dict[str, dict[str, int]] = {
    PlanType.FREE: {
        "maxApplications": 3,
        "maxDocuments": 5,
        "maxRecommendations": 2,
        "maxScholarships": 10,
        "maxPrograms": 5,
        "maxSchools": 5,
    },
    PlanType.BASIC: {
        "maxApplications": 10,
        "maxDocuments": 20,
        "maxRecommendations": 5,
        "maxScholarships": 50,
        "maxPrograms": 20,
        "maxSchools": 20,
    },
    PlanType.PREMIUM: {
        "maxApplications": 50,
        "maxDocuments": 100,
        "maxRecommendations": 15,
        "maxScholarships": 200,
        "maxPrograms": 100,
        "maxSchools": 100,
    },
    PlanType.ENTERPRISE: {
        "maxApplications": UNLIMITED,
        "maxDocuments": UNLIMITED,
        "maxRecommendations": UNLIMITED,
        "maxScholarships": UNLIMITED,
        "maxPrograms": UNLIMITED,
        "maxSchools": UNLIMITED,
    },
}

LIMITS: dict[str, dict[str, int]] = {
    PlanType.FREE: {
        "storageGB": 1,
        "apiCallsPerMonth": 100,
        "teamMembers": 1,
        "documentSizeMB": 10,
        "searchQueriesPerMonth": 50,
    },
    PlanType.BASIC: {
        "storageGB": 5,
        "apiCallsPerMonth": 500,
        "teamMembers": 1,
        "documentSizeMB": 25,
        "searchQueriesPerMonth": 200,
    },
    PlanType.PREMIUM: {
        "storageGB": 20,
        "apiCallsPerMonth": 2000,
        "teamMembers": 3,
        "documentSizeMB": 50,
        "searchQueriesPerMonth": 1000,
    },
    PlanType.ENTERPRISE: {
        "storageGB": 100,
        "apiCallsPerMonth": 10000,
        "teamMembers": 10,
        "documentSizeMB": 100,
        "searchQueriesPerMonth": UNLIMITED,
    },
}

_TIER_UNLOCKS = {
    PlanType.FREE: [_FREE_FEATURES],
    PlanType.BASIC: [_FREE_FEATURES, _BASIC_FEATURES],
    PlanType.PREMIUM: [_FREE_FEATURES, _BASIC_FEATURES, _PREMIUM_FEATURES],
    PlanType.ENTERPRISE: [
        _FREE_FEATURES,
        _BASIC_FEATURES,
        _PREMIUM_FEATURES,
        _ENTERPRISE_FEATURES,
    ],
}


def features_for(plan_type: str) -> dict[str, Any]:
    """Full feature map for a tier: quotas plus every flag, explicitly True or False."""
    features: dict[str, Any] = dict(QUOTAS[plan_type])
    features.update({name: False for name in ALL_FEATURES})
    for unlocked in _TIER_UNLOCKS[plan_type]:
        features.update(unlocked)
    return features


def _plan(
    plan_id: str,
    name: str,
    description: str,
    plan_type: str,
    prices: tuple[str, str, str],
    currency: str = Currency.USD,
    is_popular: bool = False,
) -> dict[str, Any]:
    monthly, quarterly, yearly = (Decimal(price) for price in prices)
    return {
        "plan_id": plan_id,
        "name": name,
        "description": description,
        "plan_type": plan_type,
        "monthly_price": monthly,
        "quarterly_price": quarterly,
        "yearly_price": yearly,
        "currency": currency,
        "features": features_for(plan_type),
        "limits": dict(LIMITS[plan_type]),
        "is_active": True,
        "is_popular": is_popular,
    }


# Quarterly prices carry a 10% discount, yearly about 17%.
PLAN_CATALOG: list[dict[str, Any]] = [
    _plan(
        "free",
        "Free Plan",
        "Basic access to the platform with essential features",
        PlanType.FREE,
        ("0", "0", "0"),
    ),
    _plan(
        "basic",
        "Basic Plan",
        "Perfect for individual students and professionals",
        PlanType.BASIC,
        ("9.99", "26.99", "99.99"),
        is_popular=True,
    ),
    _plan(
        "premium",
        "Premium Plan",
        "Advanced features for serious applicants and professionals",
        PlanType.PREMIUM,
        ("19.99", "53.99", "199.99"),
    ),
    _plan(
        "enterprise",
        "Enterprise Plan",
        "Full-featured plan for institutions and large organizations",
        PlanType.ENTERPRISE,
        ("49.99", "134.99", "499.99"),
    ),
    # Regional plans, billed through Paystack
    _plan(
        "basic-ngn",
        "Basic Plan (NGN)",
        "Perfect for students and professionals in Nigeria",
        PlanType.BASIC,
        ("5000", "13500", "50000"),
        currency=Currency.NGN,
        is_popular=True,
    ),
    _plan(
        "premium-ngn",
        "Premium Plan (NGN)",
        "Advanced features for serious applicants",
        PlanType.PREMIUM,
        ("10000", "27000", "100000"),
        currency=Currency.NGN,
    ),
    _plan(
        "basic-ghs",
        "Basic Plan (GHS)",
        "Perfect for students and professionals in Ghana",
        PlanType.BASIC,
        ("120", "324", "1200"),
        currency=Currency.GHS,
        is_popular=True,
    ),
    _plan(
        "premium-ghs",
        "Premium Plan (GHS)",
        "Advanced features for serious applicants",
        PlanType.PREMIUM,
        ("240", "648", "2400"),
        currency=Currency.GHS,
    ),
]


class Command(BaseCommand):
    help = "Create or update the default subscription plans."

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Deactivate active plans that are not in the default catalog.",
        )

    def handle(self, *args, **options):
        created_count = 0
        updated_count = 0

        with transaction.atomic():
            for entry in PLAN_CATALOG:
                data = dict(entry)
                plan_id = data.pop("plan_id")
                _, created = SubscriptionPlan.objects.update_or_create(
                    plan_id=plan_id, defaults=data
                )
                if created:
                    created_count += 1
                    self.stdout.write(f"Created plan {plan_id}")
                else:
                    updated_count += 1
                    self.stdout.write(f"Updated plan {plan_id}")

            if options["reset"]:
                catalog_ids = [entry["plan_id"] for entry in PLAN_CATALOG]
                deactivated = (
                    SubscriptionPlan.objects.filter(is_active=True)
                    .exclude(plan_id__in=catalog_ids)
                    .update(is_active=False)
                )
                self.stdout.write(f"Deactivated {deactivated} plan(s) not in the catalog")

        self.stdout.write(
            self.style.SUCCESS(
                f"Subscription plans seeded: {created_count} created, {updated_count} updated"
            )
        )
