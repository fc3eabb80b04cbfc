"""
Payment admin configuration.

Registers the plan catalog, subscriptions, customers, transactions and
processed webhook events with the Django admin. Subscription status is
protected by its state machine and is read-only here.
"""

from django.contrib import admin

from payments.models import (
    GatewayCustomer,
    PaymentTransaction,
    ProcessedWebhookEvent,
    Subscription,
    SubscriptionPlan,
)

__all__ = [
    "SubscriptionPlanAdmin",
    "SubscriptionAdmin",
    "GatewayCustomerAdmin",
    "PaymentTransactionAdmin",
    "ProcessedWebhookEventAdmin",
]


@admin.register(SubscriptionPlan)
class SubscriptionPlanAdmin(admin.ModelAdmin):
    """Catalog management. Plans are deactivated rather than deleted."""

    list_display = [
        "plan_id",
        "name",
        "plan_type",
        "monthly_price",
        "currency",
        "is_active",
        "is_popular",
    ]
    list_filter = ["plan_type", "currency", "is_active", "is_popular"]
    search_fields = ["plan_id", "name"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["monthly_price", "plan_id"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "plan_id", "name", "description", "plan_type"),
            },
        ),
        (
            "Pricing",
            {
                "fields": ("monthly_price", "quarterly_price", "yearly_price", "currency"),
            },
        ),
        (
            "Entitlements",
            {
                "fields": ("features", "limits"),
            },
        ),
        (
            "Visibility",
            {
                "fields": ("is_active", "is_popular"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Subscriptions reference plans; deactivate instead."""
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Subscription.

    Provides visibility into subscription state. State changes go
    through PaymentService or gateway webhooks, not admin.
    """

    list_display = [
        "id",
        "user",
        "plan_name",
        "status",
        "is_active",
        "gateway",
        "amount_display",
        "next_billing_date",
        "created_at",
    ]
    list_filter = ["status", "is_active", "gateway", "billing_cycle", "plan_type"]
    search_fields = ["id", "user__email", "gateway_subscription_id", "gateway_customer_id"]
    readonly_fields = [
        "id",
        "status",
        "created_at",
        "updated_at",
        "version",
        "canceled_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    raw_id_fields = ["user"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "user", "plan", "plan_name", "plan_type", "status", "is_active"),
            },
        ),
        (
            "Billing",
            {
                "fields": (
                    "billing_cycle",
                    "amount",
                    "currency",
                    "next_billing_date",
                    "current_period_start",
                    "current_period_end",
                ),
            },
        ),
        (
            "Gateway",
            {
                "fields": ("gateway", "gateway_subscription_id", "gateway_customer_id"),
            },
        ),
        (
            "Trial",
            {
                "fields": ("trial_start", "trial_end", "is_trial_active"),
                "classes": ("collapse",),
            },
        ),
        (
            "Cancellation",
            {
                "fields": ("will_cancel_at_period_end", "canceled_at", "cancellation_reason"),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Subscription) -> str:
        return f"{obj.amount:.2f} {obj.currency}"

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for subscriptions (audit trail)."""
        return False


@admin.register(GatewayCustomer)
class GatewayCustomerAdmin(admin.ModelAdmin):
    list_display = ["user", "gateway", "gateway_customer_id", "email", "created_at"]
    list_filter = ["gateway"]
    search_fields = ["user__email", "gateway_customer_id", "email"]
    readonly_fields = ["id", "created_at", "updated_at"]
    raw_id_fields = ["user"]


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    """Payment history. Transactions are immutable once recorded."""

    list_display = [
        "transaction_id",
        "user",
        "amount",
        "currency",
        "status",
        "gateway",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "gateway", "currency", "payment_method"]
    search_fields = ["transaction_id", "gateway_transaction_id", "user__email"]
    readonly_fields = [
        "id",
        "transaction_id",
        "gateway_transaction_id",
        "gateway_response",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    raw_id_fields = ["user", "subscription"]

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for transactions (audit trail)."""
        return False


@admin.register(ProcessedWebhookEvent)
class ProcessedWebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for ProcessedWebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "gateway",
        "event_id",
        "event_type",
        "status",
        "attempts",
        "processed_at",
        "created_at",
    ]
    list_filter = ["gateway", "status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "gateway",
        "event_id",
        "event_type",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "gateway", "event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "attempts"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False
