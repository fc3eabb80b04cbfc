"""
GatewayCustomer model: a user's customer record at one gateway.

Gateways bill customers, not users. The first subscription or payment a
user makes through a gateway creates the customer there; the id is
cached here so later operations reuse it.

Usage:
    from payments.models import GatewayCustomer

    cached = GatewayCustomer.objects.filter(user=user, gateway=Gateway.STRIPE).first()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.types import Gateway


class GatewayCustomer(UUIDPrimaryKeyMixin, BaseModel):
    """Maps (user, gateway) to the gateway's customer id."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="gateway_customers",
    )
    gateway = models.CharField(max_length=20, choices=Gateway.choices)
    gateway_customer_id = models.CharField(
        max_length=255,
        help_text="Customer id at the gateway (cus_xxx, CUS_xxx)",
    )
    email = models.EmailField(
        help_text="Email the customer was created with",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Gateway Customer"
        verbose_name_plural = "Gateway Customers"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "gateway"],
                name="unique_gateway_customer_per_user",
            ),
        ]
        indexes = [
            models.Index(
                fields=["gateway", "gateway_customer_id"], name="gwcust_gateway_ref_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"GatewayCustomer({self.gateway}, {self.gateway_customer_id})"
