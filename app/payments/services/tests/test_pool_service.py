"""
Tests for PoolBalanceService.

The pool may only move through credit() and reserve(), both guarded
UPDATE statements that require the caller's transaction.
"""

import uuid
from decimal import Decimal

import pytest
from django.db import transaction

from payments.exceptions import (
    InsufficientBalance,
    InvalidAmountError,
    PaymentNotFoundError,
)
from payments.models import PaymentEvent
from payments.services import PoolBalanceService
from payments.state_machines import PayoutStatus, SettlementMethod
from payments.tests.factories import (
    ContributionFactory,
    PaymentEventFactory,
    PayoutRequestFactory,
)


def _balance(event) -> Decimal:
    return PaymentEvent.objects.get(pk=event.pk).pool_balance


class TestCredit:
    def test_credit_adds_to_pool(self, db):
        event = PaymentEventFactory()

        with transaction.atomic():
            PoolBalanceService.credit(event.id, Decimal("50.00"))
            PoolBalanceService.credit(event.id, Decimal("25.50"))

        assert _balance(event) == Decimal("75.50")

    def test_credit_bumps_version(self, db):
        event = PaymentEventFactory()

        with transaction.atomic():
            PoolBalanceService.credit(event.id, Decimal("1.00"))

        assert PaymentEvent.objects.get(pk=event.pk).version == 2

    @pytest.mark.parametrize("amount", [Decimal("0.00"), Decimal("-5.00")])
    def test_non_positive_amount_rejected(self, db, amount):
        event = PaymentEventFactory()

        with transaction.atomic(), pytest.raises(InvalidAmountError):
            PoolBalanceService.credit(event.id, amount)

    def test_unknown_event(self, db):
        with transaction.atomic(), pytest.raises(PaymentNotFoundError):
            PoolBalanceService.credit(uuid.uuid4(), Decimal("10.00"))

    def test_requires_transaction(self, transactional_db):
        event = PaymentEventFactory()

        with pytest.raises(RuntimeError, match="credit"):
            PoolBalanceService.credit(event.id, Decimal("10.00"))

        assert _balance(event) == Decimal("0.00")


class TestReserve:
    def test_reserve_subtracts(self, db):
        event = PaymentEventFactory(pool_balance=Decimal("100.00"))

        with transaction.atomic():
            PoolBalanceService.reserve(event.id, Decimal("40.00"))

        assert _balance(event) == Decimal("60.00")

    def test_reserve_entire_balance(self, db):
        event = PaymentEventFactory(pool_balance=Decimal("100.00"))

        with transaction.atomic():
            PoolBalanceService.reserve(event.id, Decimal("100.00"))

        assert _balance(event) == Decimal("0.00")

    def test_insufficient_balance_leaves_pool_untouched(self, db):
        event = PaymentEventFactory(pool_balance=Decimal("30.00"))

        with transaction.atomic(), pytest.raises(InsufficientBalance) as exc_info:
            PoolBalanceService.reserve(event.id, Decimal("30.01"))

        assert exc_info.value.details == {
            "event_id": str(event.id),
            "requested_amount": "30.01",
            "available_balance": "30.00",
        }
        assert exc_info.value.status_code == 409
        assert _balance(event) == Decimal("30.00")

    def test_unknown_event(self, db):
        with transaction.atomic(), pytest.raises(PaymentNotFoundError):
            PoolBalanceService.reserve(uuid.uuid4(), Decimal("10.00"))

    def test_requires_transaction(self, transactional_db):
        event = PaymentEventFactory(pool_balance=Decimal("100.00"))

        with pytest.raises(RuntimeError, match="reserve"):
            PoolBalanceService.reserve(event.id, Decimal("10.00"))


class TestSummary:
    def test_summary_totals(self, db):
        event = PaymentEventFactory(pool_balance=Decimal("20.00"))

        paid = ContributionFactory(event=event)
        paid.settle(Decimal("50.00"), SettlementMethod.PROCESSOR)
        paid.save()
        manual = ContributionFactory(event=event)
        manual.settle(Decimal("30.00"), SettlementMethod.MANUAL)
        manual.save()
        ContributionFactory(event=event)  # pending

        in_transit = PayoutRequestFactory(event=event, amount=Decimal("30.00"))
        in_transit.mark_in_transit()
        in_transit.save()

        summary = PoolBalanceService.summary(event)

        assert summary == {
            "balance": Decimal("20.00"),
            "total_settled": Decimal("80.00"),
            "total_paid_out": Decimal("30.00"),
        }

    def test_failed_payouts_not_counted(self, db):
        event = PaymentEventFactory()
        payout = PayoutRequestFactory(event=event)
        payout.fail()
        payout.save()

        assert PoolBalanceService.summary(event)["total_paid_out"] == Decimal("0.00")

    def test_balance_read_fresh(self, db):
        event = PaymentEventFactory()
        PaymentEvent.objects.filter(pk=event.pk).update(pool_balance=Decimal("12.00"))

        assert PoolBalanceService.summary(event)["balance"] == Decimal("12.00")


class TestAudit:
    def test_consistent_pool(self, db):
        event = PaymentEventFactory(pool_balance=Decimal("50.00"))
        contribution = ContributionFactory(event=event)
        contribution.settle(Decimal("100.00"), SettlementMethod.PROCESSOR)
        contribution.save()
        payout = PayoutRequestFactory(event=event, amount=Decimal("50.00"))
        payout.complete()
        payout.save()

        result = PoolBalanceService.audit(event)

        assert result.is_consistent
        assert result.expected_balance == Decimal("50.00")

    def test_manual_settlements_excluded(self, db):
        """Manual overrides never reach the pool, so they are not expected."""
        event = PaymentEventFactory()
        contribution = ContributionFactory(event=event)
        contribution.settle(Decimal("50.00"), SettlementMethod.MANUAL)
        contribution.save()

        assert PoolBalanceService.audit(event).is_consistent

    def test_drift_reported(self, db, caplog):
        event = PaymentEventFactory(pool_balance=Decimal("10.00"))

        result = PoolBalanceService.audit(event)

        assert not result.is_consistent
        assert result.drift == Decimal("10.00")
        assert "Pool balance drift detected" in caplog.text

    def test_pending_payout_counts_as_reserved(self, db):
        event = PaymentEventFactory()
        contribution = ContributionFactory(event=event)
        contribution.settle(Decimal("40.00"), SettlementMethod.PROCESSOR)
        contribution.save()
        PayoutRequestFactory(event=event, amount=Decimal("40.00"))
        assert PayoutStatus.PENDING in PayoutStatus.reserved()

        assert PoolBalanceService.audit(event).is_consistent
