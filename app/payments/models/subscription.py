"""
Subscription model for recurring billing.

A Subscription mirrors one subscription at a gateway. Its status is
driven by django-fsm transitions: the service calls them on user actions
and the webhook handlers call them on provider events.

A user has at most one active subscription. This is enforced by the
partial unique index ``unique_active_subscription_per_user`` (rows with
``is_active=True``), so concurrent creates cannot both succeed.

Usage:
    from payments.models import Subscription

    subscription = Subscription.objects.current_for(user)
    if subscription and subscription.can_access_feature("aiReview"):
        ...

    # State transitions using django-fsm
    subscription.mark_past_due()
    subscription.save()
"""

from __future__ import annotations

import math
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import SubscriptionStatus
from payments.types import BillingCycle, Currency, Gateway, PlanType

ONE_DAY = timedelta(days=1)

ACCESS_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


def _days_until(moment) -> int:
    """Whole days until ``moment``, rounded up, never negative."""
    remaining = (moment - timezone.now()) / ONE_DAY
    return max(0, math.ceil(remaining))


class SubscriptionQuerySet(models.QuerySet):
    def active(self) -> SubscriptionQuerySet:
        """Rows currently granting access."""
        return self.filter(is_active=True, status__in=ACCESS_STATUSES)

    def current_for(self, user) -> Subscription | None:
        """The user's active row (including past_due), if any."""
        return self.filter(user=user, is_active=True).select_related("plan").first()


class Subscription(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A user's subscription to a plan at one gateway.

    Uses django-fsm for state management and optimistic locking via the
    version field for concurrency control.

    State Flow:
        (insert) -> ACTIVE | TRIALING, as reported by the gateway
        TRIALING/ACTIVE/PAST_DUE -> ACTIVE (successful charge)
        ACTIVE/TRIALING -> PAST_DUE (failed charge)
        ACTIVE/TRIALING/PAST_DUE -> CANCELED (terminal)

    A deferred cancellation (``schedule_cancellation``) moves the row to
    ACTIVE, keeps ``is_active`` and sets ``will_cancel_at_period_end``;
    the gateway later sends the cancellation event that runs ``cancel()``.

    Fields:
        plan: Catalog entry keyed by plan_id (nullable)
        plan_name / plan_type: Snapshot taken at subscribe time
        status: Current FSM state
        is_active: Row counts as the user's current subscription
        gateway_subscription_id: Subscription id at the gateway
        trial_start / trial_end: Trial window reported by the gateway
        version: Optimistic locking version
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscriptions",
    )
    plan = models.ForeignKey(
        "payments.SubscriptionPlan",
        on_delete=models.PROTECT,
        to_field="plan_id",
        db_column="plan_id",
        null=True,
        blank=True,
        related_name="subscriptions",
        help_text="Catalog plan; plan_id holds its public identifier",
    )

    # ==========================================================================
    # Plan Snapshot
    # ==========================================================================

    plan_name = models.CharField(max_length=100)
    plan_type = models.CharField(
        max_length=20, choices=PlanType.choices, default=PlanType.BASIC
    )
    billing_cycle = models.CharField(
        max_length=20,
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(
        max_length=3, choices=Currency.choices, default=Currency.USD
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SubscriptionStatus.ACTIVE,
        choices=SubscriptionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the subscription (managed by FSM)",
    )
    is_active = models.BooleanField(default=True, db_index=True)

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    next_billing_date = models.DateTimeField(null=True, blank=True)
    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    gateway = models.CharField(max_length=20, choices=Gateway.choices)
    gateway_subscription_id = models.CharField(max_length=255, db_index=True)
    gateway_customer_id = models.CharField(max_length=255, blank=True, default="")

    # ==========================================================================
    # Trial
    # ==========================================================================

    trial_start = models.DateTimeField(null=True, blank=True)
    trial_end = models.DateTimeField(null=True, blank=True)
    is_trial_active = models.BooleanField(default=False)

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    canceled_at = models.DateTimeField(null=True, blank=True)
    will_cancel_at_period_end = models.BooleanField(default=False)
    cancellation_reason = models.TextField(blank=True, default="")

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["user", "status"], name="sub_user_status_idx"),
            models.Index(
                fields=["gateway", "gateway_subscription_id"], name="sub_gateway_ref_idx"
            ),
            models.Index(
                fields=["status", "current_period_end"], name="sub_status_period_end_idx"
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=Q(is_active=True),
                name="unique_active_subscription_per_user",
            ),
            models.CheckConstraint(
                condition=Q(amount__gte=0),
                name="subscription_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Subscription({self.id}, {self.status}, "
            f"{self.amount} {self.currency}/{self.billing_cycle})"
        )

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.
        """
        is_update = self.pk and not self._state.adding and not kwargs.get(
            "force_insert", False
        )
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
        ],
        target=SubscriptionStatus.ACTIVE,
    )
    def activate(self):
        """
        Mark the subscription paid up.

        Transition: TRIALING/ACTIVE/PAST_DUE -> ACTIVE
        """
        self.is_active = True
        if self.trial_end and self.trial_end <= timezone.now():
            self.is_trial_active = False

    @transition(
        field=status,
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING],
        target=SubscriptionStatus.PAST_DUE,
    )
    def mark_past_due(self):
        """
        Mark subscription as past due after a failed charge.

        Transition: ACTIVE/TRIALING -> PAST_DUE

        The row stays active; the gateway keeps retrying the charge.
        """

    @transition(
        field=status,
        source=[
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.PAST_DUE,
        ],
        target=SubscriptionStatus.ACTIVE,
    )
    def schedule_cancellation(self, reason: str | None = None, canceled_at=None):
        """
        Cancel at the end of the current period.

        Transition: ACTIVE/TRIALING/PAST_DUE -> ACTIVE

        Access continues until the gateway reports the end, at which point
        ``cancel`` runs.
        """
        self.is_active = True
        self.will_cancel_at_period_end = True
        self.canceled_at = canceled_at or timezone.now()
        if reason:
            self.cancellation_reason = reason

    @transition(
        field=status,
        source=[
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.PAST_DUE,
        ],
        target=SubscriptionStatus.CANCELED,
    )
    def cancel(self, reason: str | None = None):
        """
        End the subscription now.

        Transition: ACTIVE/TRIALING/PAST_DUE -> CANCELED

        Frees the user's active slot so they can subscribe again.
        """
        now = timezone.now()
        self.is_active = False
        self.is_trial_active = False
        self.will_cancel_at_period_end = False
        self.canceled_at = self.canceled_at or now
        if reason:
            self.cancellation_reason = reason

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_canceled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELED

    @property
    def is_past_due(self) -> bool:
        return self.status == SubscriptionStatus.PAST_DUE

    @property
    def is_expired(self) -> bool:
        """Canceled, or past the end of the trial or paid period."""
        if self.is_canceled:
            return True
        if self.status == SubscriptionStatus.TRIALING and self.trial_end:
            end = self.trial_end
        else:
            end = self.current_period_end
        return end is not None and end <= timezone.now()

    @property
    def is_in_trial(self) -> bool:
        return bool(
            self.is_trial_active
            and self.trial_end
            and self.trial_end > timezone.now()
        )

    @property
    def days_until_renewal(self) -> int | None:
        renews_at = self.next_billing_date or self.current_period_end
        if renews_at is None or self.is_canceled:
            return None
        return _days_until(renews_at)

    @property
    def trial_days_remaining(self) -> int:
        if not self.is_in_trial:
            return 0
        return _days_until(self.trial_end)

    def can_access_feature(self, feature: str) -> bool:
        """
        Whether this subscription unlocks ``feature``.

        Requires an access status (active or trialing) and an unexpired
        period; the plan's feature map has the final say.
        """
        if not self.is_active or self.status not in ACCESS_STATUSES:
            return False
        if self.is_expired:
            return False
        if self.plan is None:
            return True
        return self.plan.has_feature(feature)
