"""
PayoutRequest model for withdrawing an event's pool to its organizer.

A PayoutRequest is created in the same transaction that reserves its amount
from the pool. At most one request per event may be pending or in transit;
a partial unique index enforces it at the database level.

Usage:
    from payments.models import PayoutRequest

    payout.mark_in_transit(transfer_reference="tr_123")
    payout.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PayoutStatus


class PayoutRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    An organizer's request to transfer pooled funds out.

    State Flow:
        PENDING -> IN_TRANSIT -> PAID
        PENDING/IN_TRANSIT -> PAID (transfer.paid may arrive first)
        PENDING/IN_TRANSIT -> FAILED (reserved amount credited back)

    Webhook-driven state changes:
        transfer.created: PENDING -> IN_TRANSIT
        transfer.paid: PENDING/IN_TRANSIT -> PAID
        transfer.failed: PENDING/IN_TRANSIT -> FAILED

    Fields:
        event: Payment event whose pool is withdrawn
        organizer: Requesting organizer
        amount: Reserved amount
        status: Current FSM state
        transfer_reference: Stripe Transfer ID (tr_xxx)
        expected_at: When the funds are expected to arrive
        arrived_at: When the transfer was confirmed paid
        failed_at: When the transfer failed
        failure_reason: Reason reported by the processor
        version: Incremented on each save
        metadata: Flexible JSON storage

    Note:
        created_at doubles as the requested timestamp.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    event = models.ForeignKey(
        "payments.PaymentEvent",
        on_delete=models.CASCADE,
        related_name="payout_requests",
        help_text="Payment event whose pool is being withdrawn",
    )

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payout_requests",
        help_text="Organizer receiving the payout",
    )

    # ==========================================================================
    # Amount
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount reserved from the pool",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PayoutStatus.PENDING,
        choices=PayoutStatus.choices,
        db_index=True,
        protected=True,
        max_length=50,
        help_text="Current state of the payout request (managed by FSM)",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    transfer_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Transfer ID (tr_xxx)",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    expected_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the funds are expected to arrive",
    )

    arrived_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the transfer was confirmed paid",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the transfer failed",
    )

    # ==========================================================================
    # Metadata & Error Info
    # ==========================================================================

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Failure reason reported by the processor",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout Request"
        verbose_name_plural = "Payout Requests"
        indexes = [
            models.Index(
                fields=["event", "status"],
                name="payout_event_status_idx",
            ),
            models.Index(
                fields=["organizer", "status"],
                name="payout_organizer_status_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payout_request_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["event"],
                condition=models.Q(
                    status__in=[PayoutStatus.PENDING, PayoutStatus.IN_TRANSIT]
                ),
                name="payout_single_flight_per_event",
            ),
        ]

    def __str__(self) -> str:
        return f"PayoutRequest({self.id}, {self.status}, {self.amount})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.IN_TRANSIT,
    )
    def mark_in_transit(self, transfer_reference: str | None = None, expected_at=None):
        """
        Record that the processor accepted the transfer.

        Transition: PENDING -> IN_TRANSIT
        """
        if transfer_reference and not self.transfer_reference:
            self.transfer_reference = transfer_reference
        if expected_at:
            self.expected_at = expected_at

    @transition(
        field=status,
        source=[PayoutStatus.PENDING, PayoutStatus.IN_TRANSIT],
        target=PayoutStatus.PAID,
    )
    def complete(self):
        """
        Mark the payout as arrived.

        Transition: PENDING/IN_TRANSIT -> PAID
        """
        self.arrived_at = timezone.now()

    @transition(
        field=status,
        source=[PayoutStatus.PENDING, PayoutStatus.IN_TRANSIT],
        target=PayoutStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the payout as failed.

        Transition: PENDING/IN_TRANSIT -> FAILED

        The caller must credit the amount back to the pool in the same
        transaction.
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_in_flight(self) -> bool:
        return self.status in PayoutStatus.in_flight()

    @property
    def is_terminal(self) -> bool:
        return self.status in [PayoutStatus.PAID, PayoutStatus.FAILED]
