"""
Contribution model: one member's share of a payment event.

Exactly one Contribution exists per (event, member). Rows are created lazily
by ContributionService.ensure_contributions() whenever an event is read.

Usage:
    from payments.models import Contribution
    from payments.state_machines import ContributionStatus, SettlementMethod

    contribution.settle(Decimal("50.00"), SettlementMethod.PROCESSOR)
    contribution.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import RETURN_VALUE, FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import ContributionStatus, SettlementMethod


class Contribution(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks what a member has settled towards a payment event.

    State Flow:
        PENDING/FAILED -> PAID (checkout completed or manual override)
        PAID -> PAID (manual override on top of a processor settlement)
        PAID -> PENDING or PAID (undo of a manual override)
        PENDING -> FAILED (checkout session expired)

    Fields:
        event: Payment event the contribution belongs to
        member: Contributing user
        amount_paid: Cumulative settled amount, any method
        processor_amount: Cumulative amount settled through the processor
        manual_amount: Outstanding manual delta, cleared on undo
        method: How the contribution was last settled
        status: Current FSM state
        settlement_reference: Checkout session id (untrusted, indexed)
        paid_at: When the contribution was last settled

    Note:
        Only processor_amount ever reaches the pool. A manual override marks
        the member as paid outside the platform; no money enters the pool.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    event = models.ForeignKey(
        "payments.PaymentEvent",
        on_delete=models.CASCADE,
        related_name="contributions",
        help_text="Payment event this contribution belongs to",
    )

    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="contributions",
        help_text="Member owing this contribution",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount_paid = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Cumulative amount settled by any method",
    )

    processor_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Cumulative amount settled through the payment processor",
    )

    manual_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount added by manual overrides since the last undo (reversible delta)",
    )

    # ==========================================================================
    # Settlement
    # ==========================================================================

    method = models.CharField(
        max_length=20,
        choices=SettlementMethod.choices,
        default=SettlementMethod.PROCESSOR,
        help_text="How the contribution was settled",
    )

    status = FSMField(
        default=ContributionStatus.PENDING,
        choices=ContributionStatus.choices,
        db_index=True,
        protected=True,
        max_length=50,
        help_text="Current state of the contribution (managed by FSM)",
    )

    settlement_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Checkout session id of the latest external settlement",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the contribution was settled",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Contribution"
        verbose_name_plural = "Contributions"
        indexes = [
            models.Index(
                fields=["event", "status"],
                name="contrib_event_status_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "member"],
                name="unique_contribution_per_member",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_paid__gte=0),
                name="contribution_amount_paid_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(processor_amount__gte=0),
                name="contribution_processor_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Contribution({self.id}, {self.status}, {self.amount_paid})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[ContributionStatus.PENDING, ContributionStatus.FAILED],
        target=ContributionStatus.PAID,
    )
    def settle(
        self,
        amount: Decimal,
        method: str,
        reference: str | None = None,
    ):
        """
        Record a settlement.

        Transition: PENDING/FAILED -> PAID

        Args:
            amount: Amount added to amount_paid
            method: SettlementMethod of this settlement
            reference: Checkout session id for processor settlements
        """
        if method == SettlementMethod.MANUAL:
            self._add_manual(amount)
            return
        self.amount_paid += amount
        self.processor_amount += amount
        self.method = method
        self.manual_amount = None
        self.paid_at = timezone.now()
        if reference:
            self.settlement_reference = reference

    @transition(
        field=status,
        source=[
            ContributionStatus.PENDING,
            ContributionStatus.FAILED,
            ContributionStatus.PAID,
        ],
        target=ContributionStatus.PAID,
    )
    def settle_manually(self, amount: Decimal):
        """
        Record money collected outside the platform.

        Transition: PENDING/FAILED/PAID -> PAID

        Stacks on whatever is already settled. processor_amount is left
        alone, so undo_manual() can take the manual part back out.
        """
        self._add_manual(amount)

    def _add_manual(self, amount: Decimal) -> None:
        self.amount_paid += amount
        self.manual_amount = (self.manual_amount or Decimal("0.00")) + amount
        self.method = SettlementMethod.MANUAL
        self.paid_at = timezone.now()

    @transition(
        field=status,
        source=ContributionStatus.PAID,
        target=RETURN_VALUE(ContributionStatus.PENDING, ContributionStatus.PAID),
    )
    def undo_manual(self):
        """
        Reverse the outstanding manual override exactly.

        Transition: PAID -> PENDING, or PAID -> PAID when processor-settled
        money remains

        Subtracts the recorded delta (floored at zero) and clears the marker.
        A contribution the processor already settled stays PAID so a
        redelivered checkout for the same session is still ignored.
        """
        delta = self.manual_amount or Decimal("0.00")
        self.amount_paid = max(self.amount_paid - delta, Decimal("0.00"))
        self.manual_amount = None
        self.method = SettlementMethod.PROCESSOR
        if self.processor_amount > 0:
            return ContributionStatus.PAID
        self.paid_at = None
        return ContributionStatus.PENDING

    @transition(
        field=status,
        source=ContributionStatus.PENDING,
        target=ContributionStatus.FAILED,
    )
    def fail(self):
        """
        Record that the member's checkout did not complete.

        Transition: PENDING -> FAILED
        """

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_paid(self) -> bool:
        return self.status == ContributionStatus.PAID

    @property
    def is_manual(self) -> bool:
        return self.method == SettlementMethod.MANUAL and self.manual_amount is not None
