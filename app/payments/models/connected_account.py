"""
ConnectedAccount model: an organizer's Stripe Connect payout destination.

Usage:
    from payments.models import ConnectedAccount

    account = ConnectedAccount.objects.create(
        user=request.user,
        stripe_account_id="acct_1234567890",
        onboarding_status=OnboardingStatus.IN_PROGRESS,
    )

    if account.is_ready_for_payouts:
        ...
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import OnboardingStatus


class ConnectedAccount(UUIDPrimaryKeyMixin, BaseModel):
    """
    Stripe Connect express account receiving an organizer's payouts.

    Lifecycle:
        1. Created when the user starts onboarding (IN_PROGRESS)
        2. account.updated webhooks sync payouts_enabled / details_submitted
        3. COMPLETE once Stripe enables payouts
        4. account.application.deauthorized disables it again (REJECTED)

    Fields:
        user: Owning user
        stripe_account_id: Stripe Account ID (acct_xxx)
        onboarding_status: Onboarding progress
        payouts_enabled: Whether Stripe allows payouts
        details_submitted: Whether the user finished the onboarding form
        onboarded_at: When onboarding first completed
        version: Incremented on each save
        metadata: Flexible JSON storage
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="connected_account",
        help_text="User this connected account belongs to",
    )

    stripe_account_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Account ID (acct_xxx)",
    )

    onboarding_status = models.CharField(
        max_length=20,
        choices=OnboardingStatus.choices,
        default=OnboardingStatus.NOT_STARTED,
        db_index=True,
        help_text="Current Stripe Connect onboarding status",
    )

    payouts_enabled = models.BooleanField(
        default=False,
        help_text="Whether Stripe has enabled payouts for this account",
    )

    details_submitted = models.BooleanField(
        default=False,
        help_text="Whether the onboarding form has been submitted",
    )

    onboarded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When onboarding first completed",
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata (e.g., country, requirements)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Connected Account"
        verbose_name_plural = "Connected Accounts"

    def __str__(self) -> str:
        return f"ConnectedAccount({self.stripe_account_id}, {self.onboarding_status})"

    def save(self, *args, **kwargs):
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            # F() leaves an expression on the instance until refreshed
            self.refresh_from_db(fields=["version"])

    @property
    def is_ready_for_payouts(self) -> bool:
        """True when onboarding is complete and Stripe allows payouts."""
        return (
            self.onboarding_status == OnboardingStatus.COMPLETE and self.payouts_enabled
        )
