"""
Feature access and usage limits (the paywall).

Plans grant features through ``SubscriptionPlan.features``: a boolean
flag per feature, and ``max<Resource>`` numeric limits where -1 means
unlimited. This module answers "may this user do X?" from the user's
current subscription.

When PAYWALL_ENABLED is off, every check allows access.

Usage:
    from payments.access import HasFeatureAccess, check_feature_access, requires_feature

    result = check_feature_access(request.user, "aiReview")
    if not result.allowed:
        ...

    class ReviewView(APIView):
        permission_classes = [IsAuthenticated, HasFeatureAccess]
        required_feature = "aiReview"

    @requires_feature("exportFeatures")
    def export_view(request):
        ...
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from django.http import JsonResponse
from rest_framework import permissions

from payments.config import PaymentConfig
from payments.models import Subscription
from payments.types import PlanType

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView

logger = logging.getLogger(__name__)


PLAN_HIERARCHY: dict[str, int] = {
    PlanType.FREE: 0,
    PlanType.BASIC: 1,
    PlanType.PREMIUM: 2,
    PlanType.ENTERPRISE: 3,
    PlanType.CUSTOM: 3,
}

UNLIMITED = -1

REASON_PAYWALL_DISABLED = "paywall_disabled"
REASON_NO_SUBSCRIPTION = "no_subscription"
REASON_FEATURE_NOT_IN_PLAN = "feature_not_in_plan"
REASON_SUBSCRIPTION_EXPIRED = "subscription_expired"
REASON_USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"


@dataclass
class AccessResult:
    allowed: bool
    reason: str | None = None
    subscription: Subscription | None = None
    upgrade_required: bool = False
    trial_days_remaining: int = 0


@dataclass
class UsageResult:
    """
    Usage of one metered resource against the plan limit.

    ``limit`` and ``remaining`` are -1 for unlimited resources.
    """

    allowed: bool
    limit: int
    used: int
    remaining: int
    percentage: int
    reason: str | None = None


def _paywall_enabled(config: PaymentConfig | None) -> bool:
    return (config or PaymentConfig.from_settings()).paywall_enabled


def _current_subscription(user) -> Subscription | None:
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return Subscription.objects.active().filter(user=user).select_related("plan").first()


def check_feature_access(
    user, feature: str, config: PaymentConfig | None = None
) -> AccessResult:
    """Whether ``user``'s current subscription unlocks ``feature``."""
    if not _paywall_enabled(config):
        return AccessResult(allowed=True, reason=REASON_PAYWALL_DISABLED)

    subscription = _current_subscription(user)
    if subscription is None:
        return AccessResult(
            allowed=False, reason=REASON_NO_SUBSCRIPTION, upgrade_required=True
        )

    plan = subscription.plan
    if plan is not None and (plan.features or {}).get(feature) is False:
        return AccessResult(
            allowed=False,
            reason=REASON_FEATURE_NOT_IN_PLAN,
            subscription=subscription,
            upgrade_required=True,
        )

    if subscription.is_expired:
        return AccessResult(
            allowed=False,
            reason=REASON_SUBSCRIPTION_EXPIRED,
            subscription=subscription,
        )

    return AccessResult(
        allowed=True,
        subscription=subscription,
        trial_days_remaining=subscription.trial_days_remaining,
    )


def usage_limit_for(subscription: Subscription, usage_type: str) -> int:
    """
    Plan limit for ``usage_type`` (e.g. "documents" -> ``features["maxDocuments"]``).

    Falls back to ``limits[usage_type]``; a missing limit is unlimited.
    """
    plan = subscription.plan
    if plan is None:
        return UNLIMITED
    feature_key = f"max{usage_type[:1].upper()}{usage_type[1:]}"
    limit = (plan.features or {}).get(feature_key)
    if limit is None:
        limit = (plan.limits or {}).get(usage_type)
    if limit is None:
        return UNLIMITED
    return int(limit)


def check_usage_limit(
    user,
    usage_type: str,
    current_usage: int = 0,
    config: PaymentConfig | None = None,
) -> UsageResult:
    """Whether ``user`` may consume one more ``usage_type`` unit."""
    if not _paywall_enabled(config):
        return UsageResult(
            allowed=True,
            limit=UNLIMITED,
            used=current_usage,
            remaining=UNLIMITED,
            percentage=0,
            reason=REASON_PAYWALL_DISABLED,
        )

    subscription = _current_subscription(user)
    if subscription is None:
        return UsageResult(
            allowed=False,
            limit=0,
            used=current_usage,
            remaining=0,
            percentage=0,
            reason=REASON_NO_SUBSCRIPTION,
        )

    limit = usage_limit_for(subscription, usage_type)
    if limit == UNLIMITED:
        return UsageResult(
            allowed=True,
            limit=UNLIMITED,
            used=current_usage,
            remaining=UNLIMITED,
            percentage=0,
        )

    allowed = current_usage < limit
    return UsageResult(
        allowed=allowed,
        limit=limit,
        used=current_usage,
        remaining=max(0, limit - current_usage),
        percentage=round(current_usage / limit * 100) if limit > 0 else 0,
        reason=None if allowed else REASON_USAGE_LIMIT_EXCEEDED,
    )


def has_minimum_plan(user, plan_type: str, config: PaymentConfig | None = None) -> bool:
    """Whether the user's plan tier is at least ``plan_type``."""
    if not _paywall_enabled(config):
        return True
    subscription = _current_subscription(user)
    level = PLAN_HIERARCHY.get(subscription.plan_type, 0) if subscription else 0
    return level >= PLAN_HIERARCHY.get(plan_type, 0)


def trial_days_remaining(subscription: Subscription | None) -> int:
    if subscription is None:
        return 0
    return subscription.trial_days_remaining


def paywall_response(result: AccessResult) -> dict[str, Any]:
    """Body of a 403 paywall response."""
    return {
        "error": "Access to this feature requires an upgraded plan",
        "code": "PAYWALL_RESTRICTED",
        "reason": result.reason,
        "upgrade_required": result.upgrade_required,
    }


# =============================================================================
# View Integration
# =============================================================================


class HasFeatureAccess(permissions.BasePermission):
    """
    Allows access only when the user's plan includes the required feature.

    The feature comes from the view's ``required_feature`` attribute, or
    from this class's ``required_feature`` (see ``for_feature``).
    """

    message = "Your plan does not include this feature."
    required_feature: str | None = None

    @classmethod
    def for_feature(cls, feature: str) -> type[HasFeatureAccess]:
        return type(f"HasFeatureAccess_{feature}", (cls,), {"required_feature": feature})

    def has_permission(self, request: Request, view: APIView) -> bool:
        feature = getattr(view, "required_feature", None) or self.required_feature
        if not feature:
            return True
        if not request.user.is_authenticated:
            return False

        result = check_feature_access(request.user, feature)
        if not result.allowed:
            logger.info(
                "Feature access denied",
                extra={
                    "user_id": str(request.user.pk),
                    "feature": feature,
                    "reason": result.reason,
                },
            )
            self.message = paywall_response(result)
        return result.allowed


def requires_feature(feature: str) -> Callable:
    """
    Require a plan feature to access a function view.

    Example:
        @requires_feature("exportFeatures")
        def export_view(request):
            ...

    Returns 401 for anonymous users and 403 when the plan lacks the feature.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return JsonResponse({"detail": "Authentication required."}, status=401)

            result = check_feature_access(request.user, feature)
            if not result.allowed:
                return JsonResponse(paywall_response(result), status=403)
            return func(request, *args, **kwargs)

        return wrapper

    return decorator
