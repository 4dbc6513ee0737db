"""
Contribution ledger service.

Handles the lifecycle of each member's contribution to a payment event:
lazy creation, hosted checkout, processor settlement and the admin-only
manual override with its exact undo.

Only processor settlements move money into the pool. A manual override
records that a member paid outside the platform (cash, bank transfer) and
leaves pool_balance untouched.

Usage:
    from payments.services import ContributionService

    contributions = ContributionService.ensure_contributions(event)

    checkout = ContributionService.begin_external_settlement(
        contribution_id, Decimal("50.00"), request.user
    )
    return Response({"url": checkout.url})
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

from circles.services import MembershipService
from core.services import BaseService

from payments.adapters import StripeAdapter, to_cents
from payments.exceptions import (
    AlreadySettledError,
    InvalidAmountError,
    NotGroupAdminError,
    NotManualSettlementError,
    NotOwnerError,
    PaymentNotFoundError,
)
from payments.models import Contribution, PaymentEvent
from payments.services.pool_service import PoolBalanceService
from payments.state_machines import ContributionStatus, SettlementMethod

if TYPE_CHECKING:
    import uuid

    from django.contrib.auth.models import AbstractBaseUser


@dataclass
class CheckoutStart:
    """Returned by begin_external_settlement()."""

    contribution: Contribution
    session_id: str
    url: str


class ContributionService(BaseService):
    """
    Service for the contribution ledger.

    All methods are classmethods and rehydrate state from the database.
    Mutations lock the contribution row with select_for_update() and, for
    processor settlements, credit the pool in the same transaction.
    """

    # Stripe adapter - can be injected for testing
    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        cls._stripe_adapter = adapter

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def ensure_contributions(cls, event: PaymentEvent) -> list[Contribution]:
        """
        Make sure every current circle member has a contribution row.

        Missing rows are created PENDING with a zero amount. Existing rows
        are never touched, and concurrent callers are absorbed by the
        (event, member) unique constraint.

        Returns:
            All contributions of the event, oldest first
        """
        member_ids = MembershipService.list_members(event.circle_id)
        existing = set(
            Contribution.objects.filter(event=event).values_list("member_id", flat=True)
        )
        missing = [uid for uid in member_ids if uid not in existing]

        if missing:
            Contribution.objects.bulk_create(
                [Contribution(event=event, member_id=uid) for uid in missing],
                ignore_conflicts=True,
            )
            cls.get_logger().info(
                "Created contributions for new members",
                extra={"event_id": str(event.id), "count": len(missing)},
            )

        return list(
            Contribution.objects.filter(event=event)
            .select_related("member")
            .order_by("created_at", "id")
        )

    # =========================================================================
    # Processor settlement
    # =========================================================================

    @classmethod
    def begin_external_settlement(
        cls,
        contribution_id: uuid.UUID,
        requested_amount: Decimal | None,
        actor: AbstractBaseUser,
    ) -> CheckoutStart:
        """
        Open a hosted checkout for the contribution's owner.

        The checkout session is created outside any transaction. Its id is
        then stored as the settlement reference under a row lock; the
        contribution stays PENDING until the processor confirms payment.

        Raises:
            PaymentNotFoundError: Unknown contribution
            NotOwnerError: Actor is not the contributing member
            InvalidAmountError: Amount missing or not positive
            AlreadySettledError: Contribution is already PAID
            StripeError: Checkout session could not be created
        """
        contribution = cls._get_contribution(contribution_id)
        event = contribution.event

        if contribution.member_id != actor.pk:
            raise NotOwnerError(
                "You are not allowed to pay for this member's share",
                details={"contribution_id": str(contribution_id)},
            )
        cls._validate_amount(requested_amount)
        if contribution.status == ContributionStatus.PAID:
            raise AlreadySettledError(
                "This contribution has already been paid",
                details={"contribution_id": str(contribution_id)},
            )

        circle = event.circle
        event_url = f"{settings.FRONTEND_URL}/payment-events/{event.id}"
        session = cls.get_stripe_adapter().create_checkout_session(
            amount_cents=to_cents(requested_amount),
            product_name=f"{event.title} - {circle.name}",
            description=f"Circle: {circle.name} | Workspace: {circle.workspace.name}",
            customer_email=actor.email or None,
            metadata={
                "contribution_id": str(contribution.id),
                "event_id": str(event.id),
                "member_id": str(actor.pk),
                "charge_amount": str(requested_amount),
            },
            success_url=f"{event_url}?success=true",
            cancel_url=f"{event_url}?canceled=true",
        )

        with transaction.atomic():
            contribution = Contribution.objects.select_for_update().get(
                pk=contribution.pk
            )
            if contribution.status == ContributionStatus.PAID:
                # Settled by a webhook while the session was being created
                raise AlreadySettledError(
                    "This contribution has already been paid",
                    details={"contribution_id": str(contribution_id)},
                )
            contribution.settlement_reference = session.id
            contribution.save(update_fields=["settlement_reference", "updated_at"])

        cls.get_logger().info(
            "Checkout session started",
            extra={
                "contribution_id": str(contribution.id),
                "event_id": str(event.id),
                "session_id": session.id,
                "amount": str(requested_amount),
            },
        )
        return CheckoutStart(contribution=contribution, session_id=session.id, url=session.url)

    @classmethod
    def apply_external_settlement(
        cls,
        session_reference: str,
        settled_amount: Decimal,
        claimed_contribution_id: str | None = None,
    ) -> tuple[Contribution | None, bool]:
        """
        Apply a completed checkout to its contribution.

        Called by the settlement reconciler only. The contribution is found
        by the stored session id; a session that is unknown (or superseded
        by a newer checkout) matches nothing and changes nothing.

        claimed_contribution_id is the contribution named in the session
        metadata. It is only logged, so a charged but unmatched session can
        be reconciled by hand.

        Returns:
            (contribution, applied). contribution is None when the reference
            is unknown; applied is False when it was already PAID.
        """
        cls._validate_amount(settled_amount)

        with transaction.atomic():
            contribution = (
                Contribution.objects.select_for_update()
                .filter(settlement_reference=session_reference)
                .first()
            )
            if contribution is None:
                cls.get_logger().warning(
                    "No contribution for checkout session",
                    extra={
                        "session_id": session_reference,
                        "contribution_id": claimed_contribution_id,
                        "amount": str(settled_amount),
                    },
                )
                return None, False

            if contribution.status == ContributionStatus.PAID:
                cls.get_logger().info(
                    "Contribution already settled, skipping",
                    extra={
                        "contribution_id": str(contribution.id),
                        "session_id": session_reference,
                    },
                )
                return contribution, False

            contribution.settle(
                settled_amount,
                SettlementMethod.PROCESSOR,
                reference=session_reference,
            )
            contribution.save()
            PoolBalanceService.credit(contribution.event_id, settled_amount)

        cls.get_logger().info(
            "Contribution settled via processor",
            extra={
                "contribution_id": str(contribution.id),
                "event_id": str(contribution.event_id),
                "amount": str(settled_amount),
                "session_id": session_reference,
            },
        )
        return contribution, True

    @classmethod
    def record_failed_settlement(cls, session_reference: str) -> Contribution | None:
        """
        Mark a PENDING contribution FAILED when its checkout expires.

        A later checkout can still settle a FAILED contribution.
        """
        with transaction.atomic():
            contribution = (
                Contribution.objects.select_for_update()
                .filter(settlement_reference=session_reference)
                .first()
            )
            if contribution is None:
                return None
            if contribution.status == ContributionStatus.PENDING:
                contribution.fail()
                contribution.save()
        return contribution

    # =========================================================================
    # Manual override
    # =========================================================================

    @classmethod
    def apply_manual_settlement(
        cls,
        contribution_id: uuid.UUID,
        amount: Decimal | None,
        actor: AbstractBaseUser,
    ) -> Contribution:
        """
        Mark a contribution paid outside the platform (group admin only).

        The amount is added to amount_paid and remembered as the reversible
        delta, whatever the current status. A member who paid part through
        checkout can have the rest recorded here. The pool is not credited.

        Raises:
            NotGroupAdminError: Actor does not administer the circle
            InvalidAmountError: Amount missing or not positive
        """
        contribution = cls._get_contribution(contribution_id)
        cls._require_group_admin(contribution, actor)
        cls._validate_amount(amount)

        with transaction.atomic():
            contribution = Contribution.objects.select_for_update().get(
                pk=contribution.pk
            )
            contribution.settle_manually(amount)
            contribution.save()

        cls.get_logger().info(
            "Contribution marked paid manually",
            extra={
                "contribution_id": str(contribution.id),
                "amount": str(amount),
                "actor_id": actor.pk,
            },
        )
        return contribution

    @classmethod
    def undo_manual_settlement(
        cls,
        contribution_id: uuid.UUID,
        actor: AbstractBaseUser,
    ) -> Contribution:
        """
        Reverse a manual override exactly (group admin only).

        Raises:
            NotGroupAdminError: Actor does not administer the circle
            NotManualSettlementError: Contribution was not marked paid manually
        """
        contribution = cls._get_contribution(contribution_id)
        cls._require_group_admin(contribution, actor)

        with transaction.atomic():
            contribution = Contribution.objects.select_for_update().get(
                pk=contribution.pk
            )
            if not (contribution.is_paid and contribution.is_manual):
                raise NotManualSettlementError(
                    "This payment was not manually marked as paid",
                    details={"contribution_id": str(contribution_id)},
                )
            delta = contribution.manual_amount
            contribution.undo_manual()
            contribution.save()

        cls.get_logger().info(
            "Manual settlement undone",
            extra={
                "contribution_id": str(contribution.id),
                "amount": str(delta),
                "actor_id": actor.pk,
            },
        )
        return contribution

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _get_contribution(cls, contribution_id: uuid.UUID) -> Contribution:
        try:
            return Contribution.objects.select_related(
                "event", "event__circle", "event__circle__workspace"
            ).get(pk=contribution_id)
        except Contribution.DoesNotExist:
            raise PaymentNotFoundError(
                "Contribution not found",
                details={"contribution_id": str(contribution_id)},
            )

    @staticmethod
    def _validate_amount(amount: Decimal | None) -> None:
        if amount is None or amount <= 0:
            raise InvalidAmountError(
                "Amount must be specified and greater than zero",
                details={"amount": None if amount is None else str(amount)},
            )

    @staticmethod
    def _require_group_admin(
        contribution: Contribution, actor: AbstractBaseUser
    ) -> None:
        if not MembershipService.is_group_admin(contribution.event.circle_id, actor):
            raise NotGroupAdminError(
                "You must be a workspace admin to perform this action",
                details={"contribution_id": str(contribution.id)},
            )
