"""
SubscriptionPlan model: the catalog users subscribe to.

A plan carries prices for each billing cycle, a feature map consulted by
the paywall, and usage limits. Plans are seeded by the
``seed_subscription_plans`` management command and never hard-deleted
while subscriptions reference them.

Usage:
    from payments.models import SubscriptionPlan

    plan = SubscriptionPlan.objects.active().get(plan_id="premium")
    plan.price_for(BillingCycle.YEARLY)
    plan.has_feature("aiReview")
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.types import BillingCycle, Currency, PlanType


class SubscriptionPlanQuerySet(models.QuerySet):
    def active(self) -> SubscriptionPlanQuerySet:
        """Plans open for new subscriptions, cheapest first."""
        return self.filter(is_active=True).order_by("monthly_price", "plan_id")


class SubscriptionPlan(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A purchasable subscription plan.

    Fields:
        plan_id: Stable public identifier (e.g. "premium")
        plan_type: Tier used for plan-hierarchy checks
        monthly_price / quarterly_price / yearly_price: Major units in ``currency``
        features: Flag or numeric limit per feature (``maxDocuments: -1`` is unlimited)
        limits: Resource quotas (storage, API calls, ...)
        is_popular: Highlighted in plan listings
    """

    plan_id = models.SlugField(
        max_length=64,
        unique=True,
        help_text="Stable public identifier used by clients",
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    plan_type = models.CharField(
        max_length=20,
        choices=PlanType.choices,
        default=PlanType.BASIC,
        db_index=True,
    )

    # ==========================================================================
    # Pricing
    # ==========================================================================

    monthly_price = models.DecimalField(max_digits=10, decimal_places=2)
    quarterly_price = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    yearly_price = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.USD,
    )

    # ==========================================================================
    # Entitlements
    # ==========================================================================

    features = models.JSONField(default=dict, blank=True)
    limits = models.JSONField(default=dict, blank=True)

    is_active = models.BooleanField(default=True, db_index=True)
    is_popular = models.BooleanField(default=False)

    objects = SubscriptionPlanQuerySet.as_manager()

    class Meta:
        ordering = ["monthly_price", "plan_id"]
        verbose_name = "Subscription Plan"
        verbose_name_plural = "Subscription Plans"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(monthly_price__gte=0),
                name="plan_monthly_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.plan_id})"

    def price_for(self, billing_cycle: str) -> Decimal:
        """Price of one billing period, derived from the monthly price when unset."""
        if billing_cycle == BillingCycle.QUARTERLY:
            if self.quarterly_price is not None:
                return self.quarterly_price
            return self.monthly_price * 3
        if billing_cycle == BillingCycle.YEARLY:
            if self.yearly_price is not None:
                return self.yearly_price
            return self.monthly_price * 12
        return self.monthly_price

    def has_feature(self, feature: str) -> bool:
        """
        Whether ``feature`` is enabled.

        Missing keys count as enabled; only an explicit ``False`` (or a
        zero limit) turns a feature off.
        """
        value = (self.features or {}).get(feature, True)
        return value is not False and value != 0
