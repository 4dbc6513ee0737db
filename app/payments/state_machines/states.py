"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.
PayoutStatus drives the django-fsm field on PayoutRequest.

State Machines Overview:

Contribution Status:
    PENDING → PAID (processor settlement or manual override)
    PAID → PENDING (undo of a manual override)

PayoutRequest Status:
    pending → in_transit → paid
    pending/in_transit → failed (reserved amount returned to the pool)
    paid and failed are terminal.

WebhookEvent Status:
    pending → processing → processed | unresolved | failed
"""

from django.db import models


class ContributionStatus(models.TextChoices):
    """
    Lifecycle of a member's contribution to a payment event.

    FAILED is recorded for display only; it never blocks a later checkout.
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


class SettlementMethod(models.TextChoices):
    """How a contribution became PAID."""

    PROCESSOR = "processor", "Payment Processor"
    MANUAL = "manual", "Manual"


class PayoutStatus(models.TextChoices):
    """
    States for the PayoutRequest lifecycle.

    Terminal states: PAID, FAILED

    State Flow:
        PENDING → IN_TRANSIT → PAID
        PENDING/IN_TRANSIT → FAILED
    """

    PENDING = "pending", "Pending"
    IN_TRANSIT = "in_transit", "In Transit"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"

    @classmethod
    def in_flight(cls) -> list[str]:
        """States holding a reservation that has not resolved yet."""
        return [cls.PENDING, cls.IN_TRANSIT]

    @classmethod
    def reserved(cls) -> list[str]:
        """States whose amount is no longer in the pool."""
        return [cls.PENDING, cls.IN_TRANSIT, cls.PAID]


class OnboardingStatus(models.TextChoices):
    """
    Stripe Connect onboarding status for ConnectedAccount.

    Only COMPLETE (with payouts enabled) allows payout requests.
    """

    NOT_STARTED = "not_started", "Not Started"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETE = "complete", "Complete"
    REJECTED = "rejected", "Rejected"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    UNRESOLVED marks notifications that were acknowledged without effect
    because their correlation key was missing or referenced nothing we know.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → UNRESOLVED
        PENDING → PROCESSING → FAILED (reprocessed on redelivery)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    UNRESOLVED = "unresolved", "Unresolved"
    FAILED = "failed", "Failed"


__all__ = [
    "ContributionStatus",
    "OnboardingStatus",
    "PayoutStatus",
    "SettlementMethod",
    "WebhookEventStatus",
]
