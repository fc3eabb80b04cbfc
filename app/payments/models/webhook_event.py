"""
ProcessedWebhookEvent model for webhook deduplication.

Every verified webhook delivery is recorded here before it is handled.
The unique (gateway, event_id) constraint makes concurrent or repeated
deliveries of the same event collapse onto one row, so side effects run
at most once per event.

Usage:
    from payments.models import ProcessedWebhookEvent
    from payments.state_machines import WebhookEventStatus

    record, created = ProcessedWebhookEvent.objects.get_or_create(
        gateway=event.gateway,
        event_id=event.id,
        defaults={"event_type": event.type, "payload": event.data},
    )
    if not created and record.is_processed:
        return  # duplicate delivery
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import WebhookEventStatus
from payments.types import Gateway


class ProcessedWebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks gateway webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, adapter verifies the signature
        2. get_or_create on (gateway, event_id)
        3. If the row exists and is PROCESSED -> duplicate, no side effects
        4. mark_processing(), dispatch to the handler family
        5. mark_processed() or mark_failed(); a failure is re-raised so the
           gateway redelivers, and the next delivery reuses this row

    Fields:
        event_id: Gateway event id (or a derived id)
        event_type: Gateway event type string
        payload: Event data object
        attempts: Number of processing attempts
    """

    gateway = models.CharField(max_length=20, choices=Gateway.choices)
    event_id = models.CharField(max_length=255)
    event_type = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    attempts = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Processed Webhook Event"
        verbose_name_plural = "Processed Webhook Events"
        constraints = [
            models.UniqueConstraint(
                fields=["gateway", "event_id"],
                name="unique_webhook_event_per_gateway",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"ProcessedWebhookEvent({self.gateway}, {self.event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.attempts += 1

    def mark_processed(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
