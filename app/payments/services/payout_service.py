"""
Payout service for withdrawing an event's pool to its organizer.

The service follows a reserve-then-transfer pattern:
1. Phase 1: Create the PayoutRequest and reserve its amount, one transaction
2. Phase 2: Call Stripe create_transfer (outside the transaction)
3. Phase 3a: Store the transfer id; webhooks advance the state from there
3b: On a synchronous Stripe failure, a compensating transaction deletes
    the request and credits the amount back

Stripe is never called while the event row is locked, and a transfer is
never created for a reservation that was rolled back.

Usage:
    from payments.services import PayoutService

    result = PayoutService.request_payout(event.id, request.user)
    result.payout.status        # "pending"
    result.remaining_balance    # Decimal("0.00")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from circles.services import MembershipService
from core.services import BaseService

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter, to_cents
from payments.exceptions import (
    InvalidAmountError,
    NotGroupMemberError,
    NotOrganizerError,
    PaymentNotFoundError,
    PayoutDestinationNotVerifiedError,
    PayoutInFlightError,
    StripeError,
    TransferInitiationFailed,
)
from payments.models import ConnectedAccount, PaymentEvent, PayoutRequest
from payments.services.pool_service import PoolBalanceService, sum_amount
from payments.state_machines import PayoutStatus

if TYPE_CHECKING:
    import uuid

    from django.contrib.auth.models import AbstractBaseUser


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PayoutRequestResult:
    """
    Result of a successful payout request.

    Attributes:
        payout: The created PayoutRequest
        remaining_balance: Pool balance left after the reservation
    """

    payout: PayoutRequest
    remaining_balance: Decimal


@dataclass
class EventPayouts:
    event: PaymentEvent
    payouts: list[PayoutRequest]
    total_paid_out: Decimal
    current_balance: Decimal


@dataclass
class OrganizerPayouts:
    """
    An organizer's payouts across all events.

    Attributes:
        total_paid_out: Sum of PAID payouts
        total_pending: Sum of pending and in-transit payouts
        total_payouts: Number of payout requests of any status
    """

    payouts: list[PayoutRequest]
    total_paid_out: Decimal
    total_pending: Decimal
    total_payouts: int


# =============================================================================
# Payout Service
# =============================================================================


class PayoutService(BaseService):
    """
    Service for organizer payouts.

    Safety Guarantees:
        - The event row is locked while the request is created and reserved
        - The partial unique index allows one pending/in-transit request per event
        - The idempotency key is derived from the request id, so a repeated
          transfer call can never pay out twice
        - Stripe failures are compensated before the error reaches the caller
    """

    # Stripe adapter - can be injected for testing
    _stripe_adapter: type | None = None

    @classmethod
    def get_stripe_adapter(cls) -> type:
        """Get the Stripe adapter (allows injection for testing)."""
        return cls._stripe_adapter or StripeAdapter

    @classmethod
    def set_stripe_adapter(cls, adapter: type | None) -> None:
        """Set the Stripe adapter (for testing)."""
        cls._stripe_adapter = adapter

    @classmethod
    def request_payout(
        cls,
        event_id: uuid.UUID,
        organizer: AbstractBaseUser,
        amount: Decimal | None = None,
    ) -> PayoutRequestResult:
        """
        Reserve funds from the pool and transfer them to the organizer.

        Args:
            event_id: Payment event to withdraw from
            organizer: Requesting user, must be the event organizer
            amount: Amount to withdraw; defaults to the whole pool balance

        Returns:
            PayoutRequestResult with the pending request

        Raises:
            PaymentNotFoundError: Unknown event
            NotOrganizerError: Requester is not the organizer
            PayoutDestinationNotVerifiedError: No onboarded payout account
            InvalidAmountError: Amount is not positive
            PayoutInFlightError: A pending/in-transit request exists
            InsufficientBalance: The pool does not cover the amount
            TransferInitiationFailed: Stripe rejected the transfer (compensated)
        """
        logger = cls.get_logger()

        event = PaymentEvent.objects.filter(pk=event_id).first()
        if event is None:
            raise PaymentNotFoundError(
                "Payment event not found",
                details={"event_id": str(event_id)},
            )
        if event.organizer_id != organizer.pk:
            raise NotOrganizerError(
                "Only the event organizer can request payouts",
                details={"event_id": str(event_id)},
            )

        account = ConnectedAccount.objects.filter(user=organizer).first()
        if account is None or not account.is_ready_for_payouts:
            raise PayoutDestinationNotVerifiedError(
                "Complete payout onboarding before requesting payouts",
                details={"event_id": str(event_id)},
            )

        if amount is not None and amount <= 0:
            raise InvalidAmountError(
                "Payout amount must be greater than zero",
                details={"amount": str(amount)},
            )

        # Phase 1: create the request and reserve, all or nothing
        with transaction.atomic():
            event = PaymentEvent.objects.select_for_update().get(pk=event_id)
            requested = amount if amount is not None else event.pool_balance
            if requested <= 0:
                raise InvalidAmountError(
                    "Payout amount must be greater than zero",
                    details={"amount": str(requested)},
                )

            in_flight = (
                PayoutRequest.objects.filter(
                    event=event, status__in=PayoutStatus.in_flight()
                )
                .order_by("-created_at")
                .first()
            )
            if in_flight is not None:
                raise PayoutInFlightError(
                    "A payout is already in progress for this event",
                    details={
                        "payout_id": str(in_flight.id),
                        "amount": str(in_flight.amount),
                        "status": in_flight.status,
                    },
                )

            try:
                with transaction.atomic():
                    payout = PayoutRequest.objects.create(
                        event=event,
                        organizer=organizer,
                        amount=requested,
                    )
            except IntegrityError as e:
                raise PayoutInFlightError(
                    "A payout is already in progress for this event",
                    details={"event_id": str(event_id)},
                ) from e

            PoolBalanceService.reserve(event.id, requested)
            remaining_balance = event.pool_balance - requested

        logger.info(
            "Payout reserved",
            extra={
                "payout_id": str(payout.id),
                "event_id": str(event_id),
                "amount": str(requested),
            },
        )

        # Phase 2: Stripe call, outside any transaction
        try:
            transfer = cls.get_stripe_adapter().create_transfer(
                amount_cents=to_cents(requested),
                destination_account=account.stripe_account_id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "create_transfer", payout.id
                ),
                metadata={
                    "payout_request_id": str(payout.id),
                    "event_id": str(event_id),
                    "organizer_id": str(organizer.pk),
                    "event_title": event.title,
                },
            )
        except StripeError as e:
            if cls._compensate(payout, e):
                raise TransferInitiationFailed(
                    "Failed to process payout through Stripe",
                    details={
                        "event_id": str(event_id),
                        "stripe_error": e.error_code,
                    },
                ) from e
            # A webhook already advanced the request; the transfer exists
            payout = PayoutRequest.objects.get(pk=payout.pk)
            return PayoutRequestResult(payout=payout, remaining_balance=remaining_balance)

        # Phase 3: remember the transfer id unless a webhook beat us to it
        with transaction.atomic():
            payout = PayoutRequest.objects.select_for_update().get(pk=payout.pk)
            if not payout.transfer_reference:
                payout.transfer_reference = transfer.id
                payout.save()

        logger.info(
            "Payout transfer created",
            extra={
                "payout_id": str(payout.id),
                "event_id": str(event_id),
                "transfer_id": transfer.id,
                "amount": str(requested),
            },
        )
        return PayoutRequestResult(payout=payout, remaining_balance=remaining_balance)

    @classmethod
    def _compensate(cls, payout: PayoutRequest, error: StripeError) -> bool:
        """
        Undo phase 1 after a synchronous transfer failure.

        Returns:
            False if the request already left PENDING (a webhook proved the
            transfer exists), True once it was deleted and credited back
        """
        with transaction.atomic():
            locked = PayoutRequest.objects.select_for_update().filter(pk=payout.pk).first()
            if locked is None or locked.status != PayoutStatus.PENDING:
                cls.get_logger().warning(
                    "Payout advanced before compensation, keeping it",
                    extra={
                        "payout_id": str(payout.id),
                        "status": getattr(locked, "status", None),
                    },
                )
                return False

            locked.delete()
            PoolBalanceService.credit(payout.event_id, payout.amount)

        cls.get_logger().error(
            "Payout transfer failed, reservation returned to pool",
            extra={
                "payout_id": str(payout.id),
                "event_id": str(payout.event_id),
                "amount": str(payout.amount),
                "error_code": error.error_code,
                "retryable": error.is_retryable,
            },
        )
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def list_payouts_for_event(
        cls,
        event_id: uuid.UUID,
        actor: AbstractBaseUser,
    ) -> EventPayouts:
        """
        Payout history of one event, visible to any circle member.

        Raises:
            PaymentNotFoundError: Unknown event
            NotGroupMemberError: Actor is not a member of the event's circle
        """
        event = PaymentEvent.objects.filter(pk=event_id).first()
        if event is None:
            raise PaymentNotFoundError(
                "Payment event not found",
                details={"event_id": str(event_id)},
            )
        if not MembershipService.is_member(event.circle_id, actor):
            raise NotGroupMemberError(
                "You must be a circle member to view payouts",
                details={"event_id": str(event_id)},
            )

        payouts = PayoutRequest.objects.filter(event=event).select_related("organizer")
        return EventPayouts(
            event=event,
            payouts=list(payouts.order_by("-created_at")),
            total_paid_out=sum_amount(
                payouts.filter(status__in=PayoutStatus.reserved()), "amount"
            ),
            current_balance=event.pool_balance,
        )

    @classmethod
    def list_payouts_for_organizer(cls, actor: AbstractBaseUser) -> OrganizerPayouts:
        """The actor's own payout requests across every event they organize."""
        payouts = PayoutRequest.objects.filter(organizer=actor)
        return OrganizerPayouts(
            payouts=list(
                payouts.select_related("event", "event__circle").order_by("-created_at")
            ),
            total_paid_out=sum_amount(payouts.filter(status=PayoutStatus.PAID), "amount"),
            total_pending=sum_amount(
                payouts.filter(status__in=PayoutStatus.in_flight()), "amount"
            ),
            total_payouts=payouts.count(),
        )
