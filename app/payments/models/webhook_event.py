"""
WebhookEvent model: journal of Stripe notifications.

Every delivery is stored under its Stripe event id before it is applied, so
duplicate deliveries short-circuit and operators can inspect or reprocess
notifications that could not be applied.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_1234567890",
        defaults={
            "event_type": "checkout.session.completed",
            "payload": payload,
        },
    )
    if event.is_processed:
        return HttpResponse(status=200)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Stored Stripe webhook delivery.

    Processing Flow:
        1. Webhook arrives, Stripe signature verified
        2. Get or create WebhookEvent by stripe_event_id
        3. PROCESSED or UNRESOLVED -> acknowledge without reapplying
        4. PROCESSING, dispatch to the registered handler
        5. PROCESSED, UNRESOLVED or FAILED

    FAILED events are reapplied when Stripe redelivers them or when an
    operator uses the admin "reprocess" action.
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'transfer.created')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload from Stripe (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was processed or marked unresolved",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Failure or unresolved reason",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(
                fields=["status", "created_at"],
                name="webhook_status_created_idx",
            ),
            models.Index(
                fields=["event_type", "created_at"],
                name="webhook_type_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_settled(self) -> bool:
        """True once the event needs no further processing."""
        return self.status in [
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.UNRESOLVED,
        ]

    # ==========================================================================
    # Helper Methods (caller saves)
    # ==========================================================================

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_unresolved(self, reason: str) -> None:
        """
        Acknowledge an event that references nothing we can apply it to.

        Args:
            reason: What could not be resolved, for operator inspection
        """
        self.status = WebhookEventStatus.UNRESOLVED
        self.processed_at = timezone.now()
        self.error_message = reason

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object(self) -> dict:
        """Return payload.data.object, or an empty dict when malformed."""
        try:
            obj = self.payload.get("data", {}).get("object", {})
        except AttributeError:
            return {}
        return obj if isinstance(obj, dict) else {}

    def get_object_id(self) -> str | None:
        return self.get_object().get("id")
