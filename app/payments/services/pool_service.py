"""
Pool balance accumulator for payment events.

PaymentEvent.pool_balance is changed only here, and only through single
UPDATE statements evaluated by the database against the current row. Both
primitives refuse to run outside a transaction so the balance change always
commits or rolls back together with the row change that justifies it.

Usage:
    from payments.services import PoolBalanceService

    with transaction.atomic():
        payout = PayoutRequest.objects.create(...)
        PoolBalanceService.reserve(event.id, payout.amount)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db.models import DecimalField, F, Sum, Value
from django.db.models.functions import Coalesce

from core.services import BaseService

from payments.exceptions import (
    InsufficientBalance,
    InvalidAmountError,
    PaymentNotFoundError,
)
from payments.models import Contribution, PaymentEvent, PayoutRequest
from payments.state_machines import ContributionStatus, PayoutStatus

if TYPE_CHECKING:
    import uuid

ZERO = Decimal("0.00")


def sum_amount(queryset, field_name: str) -> Decimal:
    """Sum a decimal column, returning 0.00 for empty querysets."""
    return queryset.aggregate(
        total=Coalesce(
            Sum(field_name),
            Value(ZERO),
            output_field=DecimalField(max_digits=14, decimal_places=2),
        )
    )["total"]


@dataclass
class PoolAudit:
    """
    Comparison of the stored pool balance with the journal rows.

    Attributes:
        event_id: Audited payment event
        balance: Stored pool_balance
        expected_balance: Processor-settled contributions minus reserved payouts
        drift: balance - expected_balance (0.00 when consistent)
    """

    event_id: uuid.UUID
    balance: Decimal
    expected_balance: Decimal
    drift: Decimal

    @property
    def is_consistent(self) -> bool:
        return self.drift == ZERO


class PoolBalanceService(BaseService):
    """
    Atomic increment/decrement of an event's pool balance.

    Both mutations are single conditional UPDATEs; concurrent callers are
    serialized by the row lock the database takes for the UPDATE, so no
    value read earlier in the request is ever trusted.
    """

    @classmethod
    def credit(cls, event_id: uuid.UUID, amount: Decimal) -> None:
        """
        Add amount to the pool.

        Raises:
            RuntimeError: If called outside transaction.atomic()
            InvalidAmountError: If amount is not positive
            PaymentNotFoundError: If the event does not exist
        """
        cls.require_atomic("credit")
        if amount <= 0:
            raise InvalidAmountError(
                "Credit amount must be greater than zero",
                details={"amount": str(amount)},
            )

        updated = PaymentEvent.objects.filter(pk=event_id).update(
            pool_balance=F("pool_balance") + amount,
            version=F("version") + 1,
        )
        if not updated:
            raise PaymentNotFoundError(
                "Payment event not found",
                details={"event_id": str(event_id)},
            )

        cls.get_logger().info(
            "Pool credited",
            extra={"event_id": str(event_id), "amount": str(amount)},
        )

    @classmethod
    def reserve(cls, event_id: uuid.UUID, amount: Decimal) -> None:
        """
        Subtract amount from the pool if the pool covers it.

        The guard is part of the UPDATE's WHERE clause, so it is evaluated
        against the persisted balance at write time.

        Raises:
            RuntimeError: If called outside transaction.atomic()
            InvalidAmountError: If amount is not positive
            InsufficientBalance: If the pool would go negative
            PaymentNotFoundError: If the event does not exist
        """
        cls.require_atomic("reserve")
        if amount <= 0:
            raise InvalidAmountError(
                "Reserve amount must be greater than zero",
                details={"amount": str(amount)},
            )

        updated = PaymentEvent.objects.filter(
            pk=event_id,
            pool_balance__gte=amount,
        ).update(
            pool_balance=F("pool_balance") - amount,
            version=F("version") + 1,
        )
        if updated:
            cls.get_logger().info(
                "Pool reserved",
                extra={"event_id": str(event_id), "amount": str(amount)},
            )
            return

        available = (
            PaymentEvent.objects.filter(pk=event_id)
            .values_list("pool_balance", flat=True)
            .first()
        )
        if available is None:
            raise PaymentNotFoundError(
                "Payment event not found",
                details={"event_id": str(event_id)},
            )

        cls.get_logger().warning(
            "Pool reservation rejected",
            extra={
                "event_id": str(event_id),
                "amount": str(amount),
                "available_balance": str(available),
            },
        )
        raise InsufficientBalance(
            event_id=event_id,
            required=amount,
            available=available,
        )

    # =========================================================================
    # Read side
    # =========================================================================

    @classmethod
    def summary(cls, event: PaymentEvent) -> dict[str, Decimal]:
        """
        Pool totals returned with every exposed operation.

        Returns:
            Dict with balance (fresh from the database), total_settled
            (amount paid on PAID contributions, any method) and
            total_paid_out (pending, in-transit and paid payouts)
        """
        balance = (
            PaymentEvent.objects.filter(pk=event.pk)
            .values_list("pool_balance", flat=True)
            .first()
        )
        return {
            "balance": balance if balance is not None else event.pool_balance,
            "total_settled": sum_amount(
                Contribution.objects.filter(
                    event_id=event.pk, status=ContributionStatus.PAID
                ),
                "amount_paid",
            ),
            "total_paid_out": sum_amount(
                PayoutRequest.objects.filter(
                    event_id=event.pk, status__in=PayoutStatus.reserved()
                ),
                "amount",
            ),
        }

    @classmethod
    def audit(cls, event: PaymentEvent) -> PoolAudit:
        """
        Recompute the pool from its journal rows and report drift.

        Expected balance is everything settled through the processor minus
        every payout still holding (or having spent) its reservation.
        """
        event.refresh_from_db(fields=["pool_balance"])
        settled = sum_amount(
            Contribution.objects.filter(event_id=event.pk), "processor_amount"
        )
        reserved = sum_amount(
            PayoutRequest.objects.filter(
                event_id=event.pk, status__in=PayoutStatus.reserved()
            ),
            "amount",
        )
        expected = settled - reserved
        result = PoolAudit(
            event_id=event.pk,
            balance=event.pool_balance,
            expected_balance=expected,
            drift=event.pool_balance - expected,
        )

        if not result.is_consistent:
            cls.get_logger().error(
                "Pool balance drift detected",
                extra={
                    "event_id": str(event.pk),
                    "balance": str(result.balance),
                    "expected_balance": str(expected),
                    "drift": str(result.drift),
                },
            )
        return result
