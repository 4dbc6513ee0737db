"""
Stripe Connect onboarding for payout destinations.

Usage:
    from payments.services import ConnectedAccountService

    link = ConnectedAccountService.start_onboarding(request.user)
    return Response({"onboarding_url": link.url})
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.services import BaseService

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.models import ConnectedAccount
from payments.state_machines import OnboardingStatus

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser


@dataclass
class OnboardingLink:
    account: ConnectedAccount
    url: str


class ConnectedAccountService(BaseService):
    """
    Service managing users' Stripe Connect express accounts.

    A user has a verified payout destination when onboarding is COMPLETE
    and Stripe reports payouts_enabled.
    """

    # Stripe adapter - can be injected for testing
    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        cls._stripe_adapter = adapter

    @classmethod
    def get_account(cls, user: AbstractBaseUser) -> ConnectedAccount | None:
        return ConnectedAccount.objects.filter(user=user).first()

    @classmethod
    def has_verified_payout_destination(cls, user: AbstractBaseUser) -> bool:
        account = cls.get_account(user)
        return account is not None and account.is_ready_for_payouts

    @classmethod
    def start_onboarding(cls, user: AbstractBaseUser) -> OnboardingLink:
        """
        Create the user's express account if missing and return an onboarding link.

        The account id is derived idempotently from the user id, so a retry
        after a lost response reuses the account Stripe already created.
        """
        adapter = cls.get_stripe_adapter()
        account = cls.get_account(user)

        if account is None:
            result = adapter.create_connect_account(
                email=user.email,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "create_connect_account", user.pk
                ),
            )
            with transaction.atomic():
                account, created = ConnectedAccount.objects.get_or_create(
                    user=user,
                    defaults={
                        "stripe_account_id": result.id,
                        "onboarding_status": OnboardingStatus.IN_PROGRESS,
                        "payouts_enabled": result.payouts_enabled,
                        "details_submitted": result.details_submitted,
                    },
                )
            if created:
                cls.get_logger().info(
                    "Connect account created",
                    extra={"user_id": user.pk, "account_id": result.id},
                )

        link = adapter.create_account_link(
            account_id=account.stripe_account_id,
            refresh_url=f"{settings.FRONTEND_URL}/connect/refresh",
            return_url=f"{settings.FRONTEND_URL}/dashboard",
        )
        return OnboardingLink(account=account, url=link.url)

    @classmethod
    def sync_from_stripe(
        cls, stripe_account: dict[str, Any]
    ) -> ConnectedAccount | None:
        """
        Apply an account.updated payload to the local account.

        Returns:
            The updated account, or None if the acct_xxx id is unknown
        """
        account_id = stripe_account.get("id")
        if not account_id:
            return None

        with transaction.atomic():
            account = (
                ConnectedAccount.objects.select_for_update()
                .filter(stripe_account_id=account_id)
                .first()
            )
            if account is None:
                return None

            account.payouts_enabled = bool(stripe_account.get("payouts_enabled"))
            account.details_submitted = bool(stripe_account.get("details_submitted"))
            if account.payouts_enabled and account.details_submitted:
                account.onboarding_status = OnboardingStatus.COMPLETE
                if account.onboarded_at is None:
                    account.onboarded_at = timezone.now()
            elif account.onboarding_status != OnboardingStatus.REJECTED:
                account.onboarding_status = OnboardingStatus.IN_PROGRESS

            requirements = stripe_account.get("requirements") or {}
            account.metadata = {
                **account.metadata,
                "currently_due": requirements.get("currently_due", []),
                "disabled_reason": requirements.get("disabled_reason"),
            }
            account.save()

        cls.get_logger().info(
            "Connect account synced",
            extra={
                "account_id": account_id,
                "payouts_enabled": account.payouts_enabled,
                "onboarding_status": account.onboarding_status,
            },
        )
        return account

    @classmethod
    def deauthorize(cls, account_id: str) -> ConnectedAccount | None:
        """Disable payouts for an account that disconnected from the platform."""
        with transaction.atomic():
            account = (
                ConnectedAccount.objects.select_for_update()
                .filter(stripe_account_id=account_id)
                .first()
            )
            if account is None:
                return None
            account.payouts_enabled = False
            account.onboarding_status = OnboardingStatus.REJECTED
            account.save()
        return account
