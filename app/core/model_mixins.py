"""
Model mixins combined with BaseModel.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key instead of an integer sequence
    MetadataMixin: JSON metadata column with merge helpers

Usage:
    from core.models import BaseModel
    from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

    class Subscription(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a random UUID as primary key.

    Identifiers exposed through the API and stored in gateway metadata
    do not leak row counts or ordering.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Usage:
        subscription.set_meta("stripe_price_id", "price_123")
        subscription.merge_meta({"source": "webhook"}, save=False)
        subscription.get_meta("stripe_price_id")
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary key-value metadata",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        return (self.metadata or {}).get(key, default)

    def set_meta(self, key: str, value: Any, save: bool = True) -> None:
        """Store a single key; value must be JSON-serializable."""
        self.merge_meta({key: value}, save=save)

    def merge_meta(self, values: dict[str, Any], save: bool = True) -> list[str]:
        """
        Shallow-merge values into metadata.

        Returns:
            Keys whose value actually changed
        """
        current = dict(self.metadata or {})
        changed = [key for key, value in values.items() if current.get(key) != value]
        current.update(values)
        self.metadata = current
        if save and changed:
            self.save(update_fields=["metadata", "updated_at"])
        return changed

    def has_meta(self, key: str) -> bool:
        return key in (self.metadata or {})
