"""
End-to-end pool lifecycles.

Each scenario drives the public services and feeds Stripe notifications
through process_webhook_event, asserting the pool balance after every
step.
"""

from decimal import Decimal

import pytest

from payments.exceptions import (
    InsufficientBalance,
    NotManualSettlementError,
    PayoutInFlightError,
)
from payments.models import Contribution, PaymentEvent, PayoutRequest, WebhookEvent
from payments.services import ContributionService, PayoutService, PoolBalanceService
from payments.state_machines import ContributionStatus, PayoutStatus
from payments.tasks import process_webhook_event
from payments.tests.factories import WebhookEventFactory, stripe_payload


def _pool(event) -> Decimal:
    return PaymentEvent.objects.get(pk=event.pk).pool_balance


def _deliver(event_type: str, obj: dict, event_id: str | None = None) -> dict:
    """Store a Stripe notification once per event id and process it."""
    payload = stripe_payload(event_type, obj, event_id=event_id)
    webhook_event = WebhookEvent.objects.filter(stripe_event_id=payload["id"]).first()
    if webhook_event is None:
        webhook_event = WebhookEventFactory(
            stripe_event_id=payload["id"],
            event_type=event_type,
            payload=payload,
        )
    return process_webhook_event(webhook_event.id)


def _pay(event, user, amount: Decimal) -> Contribution:
    """Member checks out and Stripe confirms the session."""
    contribution = Contribution.objects.get(event=event, member=user)
    checkout = ContributionService.begin_external_settlement(contribution.id, amount, user)
    _deliver(
        "checkout.session.completed",
        {
            "id": checkout.session_id,
            "payment_status": "paid",
            "amount_total": int(amount * 100),
        },
    )
    return Contribution.objects.get(pk=contribution.pk)


def _transfer(payout: PayoutRequest) -> dict:
    return {
        "id": payout.transfer_reference,
        "metadata": {"payout_request_id": str(payout.id)},
    }


@pytest.fixture
def ledger(event, member, other_member, fake_stripe):
    ContributionService.ensure_contributions(event)
    return event


class TestPoolLifecycle:
    def test_collect_withdraw_fail_and_refund(
        self, ledger, organizer, member, other_member, payout_account
    ):
        event = ledger

        _pay(event, member, Decimal("50.00"))
        assert _pool(event) == Decimal("50.00")
        _pay(event, other_member, Decimal("50.00"))
        assert _pool(event) == Decimal("100.00")

        result = PayoutService.request_payout(event.id, organizer)
        assert result.payout.amount == Decimal("100.00")
        assert _pool(event) == Decimal("0.00")

        _deliver("transfer.created", _transfer(result.payout))
        payout = PayoutRequest.objects.get(pk=result.payout.pk)
        assert payout.status == PayoutStatus.IN_TRANSIT
        assert _pool(event) == Decimal("0.00")

        _deliver(
            "transfer.failed",
            {**_transfer(payout), "failure_code": "account_closed"},
        )
        payout = PayoutRequest.objects.get(pk=payout.pk)
        assert payout.status == PayoutStatus.FAILED
        assert _pool(event) == Decimal("100.00")
        assert PoolBalanceService.audit(event).is_consistent

    def test_collect_withdraw_and_arrive(
        self, ledger, organizer, member, other_member, payout_account
    ):
        event = ledger
        _pay(event, member, Decimal("50.00"))
        _pay(event, other_member, Decimal("50.00"))

        first = PayoutService.request_payout(event.id, organizer, amount=Decimal("60.00"))
        _deliver("transfer.created", _transfer(first.payout))
        _deliver("transfer.paid", _transfer(first.payout))

        second = PayoutService.request_payout(event.id, organizer)
        assert second.payout.amount == Decimal("40.00")
        _deliver("transfer.paid", _transfer(second.payout))

        assert _pool(event) == Decimal("0.00")
        summary = PoolBalanceService.summary(event)
        assert summary["total_settled"] == Decimal("100.00")
        assert summary["total_paid_out"] == Decimal("100.00")
        assert PoolBalanceService.audit(event).is_consistent

        with pytest.raises(InsufficientBalance):
            PayoutService.request_payout(event.id, organizer, amount=Decimal("0.01"))


class TestRedelivery:
    def test_same_checkout_event_twice(self, ledger, member):
        event = ledger
        contribution = Contribution.objects.get(event=event, member=member)
        checkout = ContributionService.begin_external_settlement(
            contribution.id, Decimal("50.00"), member
        )
        session = {"id": checkout.session_id, "payment_status": "paid", "amount_total": 5000}

        first = _deliver("checkout.session.completed", session, event_id="evt_dup")
        second = _deliver("checkout.session.completed", session, event_id="evt_dup")

        assert first["status"] == "processed"
        assert second["status"] == "already_processed"
        assert _pool(event) == Decimal("50.00")

    def test_distinct_events_for_same_session(self, ledger, member):
        """Stripe may resend the same session under a new event id."""
        event = ledger
        contribution = Contribution.objects.get(event=event, member=member)
        checkout = ContributionService.begin_external_settlement(
            contribution.id, Decimal("50.00"), member
        )
        session = {"id": checkout.session_id, "payment_status": "paid", "amount_total": 5000}

        _deliver("checkout.session.completed", session)
        _deliver("checkout.session.completed", session)

        assert _pool(event) == Decimal("50.00")

    def test_transfer_failed_refunds_once(self, ledger, organizer, member, payout_account):
        event = ledger
        _pay(event, member, Decimal("50.00"))
        result = PayoutService.request_payout(event.id, organizer)

        _deliver("transfer.failed", _transfer(result.payout))
        _deliver("transfer.failed", _transfer(result.payout))

        assert _pool(event) == Decimal("50.00")


class TestConcurrencyRules:
    def test_single_payout_in_flight(self, ledger, organizer, member, other_member, payout_account):
        event = ledger
        _pay(event, member, Decimal("50.00"))
        _pay(event, other_member, Decimal("50.00"))

        PayoutService.request_payout(event.id, organizer, amount=Decimal("30.00"))
        with pytest.raises(PayoutInFlightError):
            PayoutService.request_payout(event.id, organizer, amount=Decimal("30.00"))

        assert _pool(event) == Decimal("70.00")
        assert PayoutRequest.objects.filter(
            event=event, status__in=PayoutStatus.in_flight()
        ).count() == 1


class TestManualOverride:
    def test_undo_restores_exactly_and_leaves_pool(self, ledger, member, other_member, group_admin):
        event = ledger
        _pay(event, other_member, Decimal("50.00"))
        contribution = Contribution.objects.get(event=event, member=member)

        ContributionService.apply_manual_settlement(
            contribution.id, Decimal("50.00"), group_admin
        )
        assert _pool(event) == Decimal("50.00")

        ContributionService.undo_manual_settlement(contribution.id, group_admin)
        contribution = Contribution.objects.get(pk=contribution.pk)
        assert contribution.status == ContributionStatus.PENDING
        assert contribution.amount_paid == Decimal("0.00")
        assert _pool(event) == Decimal("50.00")

        with pytest.raises(NotManualSettlementError):
            ContributionService.undo_manual_settlement(contribution.id, group_admin)

    def test_override_on_partial_checkout_reverses_exactly(
        self, ledger, member, other_member, group_admin
    ):
        event = ledger
        contribution = _pay(event, member, Decimal("20.00"))
        _pay(event, other_member, Decimal("50.00"))
        assert _pool(event) == Decimal("70.00")

        ContributionService.apply_manual_settlement(
            contribution.id, Decimal("30.00"), group_admin
        )
        assert Contribution.objects.get(pk=contribution.pk).amount_paid == Decimal("50.00")

        ContributionService.undo_manual_settlement(contribution.id, group_admin)

        contribution = Contribution.objects.get(pk=contribution.pk)
        assert contribution.amount_paid == Decimal("20.00")
        assert contribution.status == ContributionStatus.PAID
        assert _pool(event) == Decimal("70.00")
        assert PoolBalanceService.audit(event).is_consistent

    def test_member_can_pay_after_undo(self, ledger, member, group_admin):
        event = ledger
        contribution = Contribution.objects.get(event=event, member=member)
        ContributionService.apply_manual_settlement(
            contribution.id, Decimal("50.00"), group_admin
        )
        ContributionService.undo_manual_settlement(contribution.id, group_admin)

        contribution = _pay(event, member, Decimal("50.00"))

        assert contribution.status == ContributionStatus.PAID
        assert _pool(event) == Decimal("50.00")
