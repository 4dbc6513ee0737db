"""
PaymentEvent model: a dues collection owned by a circle.

The pool_balance column is the single authoritative running balance of the
event. It is written only by PoolBalanceService through conditional UPDATE
statements, never through PaymentEvent.save().

Usage:
    from payments.models import PaymentEvent

    event = PaymentEvent.objects.create(
        circle=circle,
        organizer=request.user,
        title="Spring dues",
        amount=Decimal("50.00"),
        due_date=date(2026, 4, 1),
    )
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class PaymentEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A payment event collecting a fixed amount from every circle member.

    Fields:
        circle: Owning circle; deleting it deletes the event
        organizer: User allowed to withdraw the pool
        title: Display title
        amount: Target amount each member is asked to pay
        due_date: Date the dues are expected by
        pool_balance: Settled contributions minus reserved payouts
        version: Incremented on every write

    Invariant:
        pool_balance equals the sum of processor-settled contributions
        minus pending, in-transit and paid payouts, and is never negative.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    circle = models.ForeignKey(
        "circles.Circle",
        on_delete=models.CASCADE,
        related_name="payment_events",
        help_text="Circle this payment event belongs to",
    )

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="organized_payment_events",
        help_text="User who created the event and may request payouts",
    )

    # ==========================================================================
    # Details
    # ==========================================================================

    title = models.CharField(
        max_length=200,
        help_text="Display title of the payment event",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Target amount per member",
    )

    due_date = models.DateField(
        help_text="Date by which members are expected to pay",
    )

    # ==========================================================================
    # Pool
    # ==========================================================================

    pool_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Available pooled balance (mutated only by PoolBalanceService)",
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version incremented on each write, including balance updates",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Event"
        verbose_name_plural = "Payment Events"
        indexes = [
            models.Index(
                fields=["circle", "created_at"],
                name="payevt_circle_created_idx",
            ),
            models.Index(
                fields=["organizer", "created_at"],
                name="payevt_organizer_created_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(pool_balance__gte=0),
                name="payment_event_pool_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_event_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentEvent({self.id}, {self.title!r}, balance={self.pool_balance})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment.

        Updates never write pool_balance, so a stale in-memory balance
        cannot overwrite one changed by a concurrent conditional UPDATE.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            update_fields = kwargs.get("update_fields")
            if update_fields is None:
                update_fields = [
                    f.name
                    for f in self._meta.concrete_fields
                    if not f.primary_key and f.name != "pool_balance"
                ]
            else:
                update_fields = [
                    name for name in update_fields if name != "pool_balance"
                ]
                if "version" not in update_fields:
                    update_fields.append("version")
            kwargs["update_fields"] = update_fields
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version", "pool_balance"])
