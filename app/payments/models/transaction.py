"""
PaymentTransaction model: one charge attempt or settled payment.

Rows are written when a one-off payment is initiated and when a gateway
reports a successful subscription charge. ``transaction_id`` is unique,
so recording the same webhook twice cannot create a second row.

Usage:
    from payments.models import PaymentTransaction

    history = PaymentTransaction.objects.filter(user=user)[:50]
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PaymentStatus
from payments.types import Currency, Gateway, PaymentMethod


class PaymentTransaction(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A single payment, normalized across gateways.

    Fields:
        transaction_id: Our reference (gateway reference for one-off
            payments, "<gateway>_<event_id>" for webhook-recorded charges)
        gateway_transaction_id: Id of the charge object at the gateway
        gateway_response: Gateway artifacts (client_secret, authorization_url)
        processed_at: When the payment reached a final status
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_transactions",
    )
    subscription = models.ForeignKey(
        "payments.Subscription",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )

    transaction_id = models.CharField(max_length=255, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(
        max_length=3, choices=Currency.choices, default=Currency.USD
    )
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CARD,
    )
    description = models.CharField(max_length=500, blank=True, default="")

    gateway = models.CharField(max_length=20, choices=Gateway.choices)
    gateway_transaction_id = models.CharField(
        max_length=255, blank=True, default="", db_index=True
    )
    gateway_response = models.JSONField(default=dict, blank=True)

    failure_reason = models.TextField(blank=True, default="")
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Transaction"
        verbose_name_plural = "Payment Transactions"
        indexes = [
            models.Index(fields=["user", "created_at"], name="txn_user_created_idx"),
            models.Index(fields=["gateway", "status"], name="txn_gateway_status_idx"),
        ]

    def __str__(self) -> str:
        return f"PaymentTransaction({self.transaction_id}, {self.status}, {self.amount} {self.currency})"

    @property
    def is_final(self) -> bool:
        return self.status != PaymentStatus.PENDING
