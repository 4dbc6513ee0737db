"""
Tests for the payments REST API.

Each test authenticates with force_authenticate and asserts on status
codes and response bodies; business rules are covered by service tests.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.throttling import ScopedRateThrottle

from payments.exceptions import StripeAPIUnavailableError
from payments.models import Contribution, PaymentEvent, PayoutRequest
from payments.services import ContributionService
from payments.state_machines import ContributionStatus, OnboardingStatus
from payments.tests.factories import ConnectedAccountFactory, PayoutRequestFactory


def _contribution_for(event, user) -> Contribution:
    ContributionService.ensure_contributions(event)
    return Contribution.objects.get(event=event, member=user)


# =============================================================================
# Events
# =============================================================================


class TestPaymentEventCreateView:
    def _payload(self, circle, **overrides):
        return {
            "circle_id": str(circle.id),
            "title": "Spring dues",
            "amount": "50.00",
            "due_date": "2026-12-01",
            **overrides,
        }

    def test_create_event(self, api_client, circle, organizer, member, other_member):
        api_client.force_authenticate(user=organizer)

        response = api_client.post(
            reverse("payments:event-create"), self._payload(circle), format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["event"]["title"] == "Spring dues"
        assert body["event"]["amount"] == "50.00"
        assert body["event"]["organizer"]["id"] == organizer.pk
        assert len(body["contributions"]) == 3
        assert body["summary"] == {
            "balance": "0.00",
            "total_settled": "0.00",
            "total_paid_out": "0.00",
        }
        assert PaymentEvent.objects.get(pk=body["event"]["id"]).organizer == organizer

    def test_non_member_forbidden(self, api_client, circle, outsider):
        api_client.force_authenticate(user=outsider)

        response = api_client.post(
            reverse("payments:event-create"), self._payload(circle), format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "NOT_GROUP_MEMBER"
        assert not PaymentEvent.objects.exists()

    @pytest.mark.parametrize("amount", ["0.00", "-5.00", "abc"])
    def test_invalid_amount(self, api_client, circle, organizer, amount):
        api_client.force_authenticate(user=organizer)

        response = api_client.post(
            reverse("payments:event-create"),
            self._payload(circle, amount=amount),
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "amount" in response.json()

    def test_requires_authentication(self, api_client, circle):
        response = api_client.post(
            reverse("payments:event-create"), self._payload(circle), format="json"
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestPaymentEventDetailView:
    def test_member_view(self, api_client, event, member):
        api_client.force_authenticate(user=member)

        response = api_client.get(
            reverse("payments:event-detail", kwargs={"event_id": event.id})
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["event"]["id"] == str(event.id)
        assert len(body["contributions"]) == 3
        assert body["is_organizer"] is False
        assert body["is_admin"] is False

    def test_organizer_flag(self, api_client, event, organizer):
        api_client.force_authenticate(user=organizer)

        response = api_client.get(
            reverse("payments:event-detail", kwargs={"event_id": event.id})
        )

        assert response.json()["is_organizer"] is True

    def test_outsider_forbidden(self, api_client, event, outsider):
        api_client.force_authenticate(user=outsider)

        response = api_client.get(
            reverse("payments:event-detail", kwargs={"event_id": event.id})
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_not_found(self, api_client, member):
        api_client.force_authenticate(user=member)

        response = api_client.get(
            reverse(
                "payments:event-detail",
                kwargs={"event_id": "00000000-0000-0000-0000-000000000000"},
            )
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "PAYMENT_NOT_FOUND"


# =============================================================================
# Contributions
# =============================================================================


class TestContributionCheckoutView:
    def test_checkout(self, api_client, event, member, fake_stripe):
        contribution = _contribution_for(event, member)
        api_client.force_authenticate(user=member)

        response = api_client.post(
            reverse(
                "payments:contribution-checkout",
                kwargs={"contribution_id": contribution.id},
            ),
            {"amount": "50.00"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["url"].startswith("https://checkout.stripe.com/")
        assert body["session_id"] == fake_stripe.checkout_sessions[0]["id"]
        assert body["contribution"]["status"] == ContributionStatus.PENDING
        assert body["summary"]["balance"] == "0.00"

    def test_not_owner(self, api_client, event, member, other_member, fake_stripe):
        contribution = _contribution_for(event, member)
        api_client.force_authenticate(user=other_member)

        response = api_client.post(
            reverse(
                "payments:contribution-checkout",
                kwargs={"contribution_id": contribution.id},
            ),
            {"amount": "50.00"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "NOT_OWNER"

    def test_zero_amount(self, api_client, event, member, fake_stripe):
        contribution = _contribution_for(event, member)
        api_client.force_authenticate(user=member)

        response = api_client.post(
            reverse(
                "payments:contribution-checkout",
                kwargs={"contribution_id": contribution.id},
            ),
            {"amount": "0.00"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_AMOUNT"


class TestManualSettlementViews:
    def test_mark_paid_and_undo(self, api_client, event, member, group_admin):
        contribution = _contribution_for(event, member)
        api_client.force_authenticate(user=group_admin)

        response = api_client.post(
            reverse(
                "payments:contribution-mark-paid",
                kwargs={"contribution_id": contribution.id},
            ),
            {"amount": "50.00"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["contribution"]["status"] == ContributionStatus.PAID
        assert body["contribution"]["is_manual"] is True
        assert body["summary"]["balance"] == "0.00"

        response = api_client.post(
            reverse(
                "payments:contribution-undo-manual",
                kwargs={"contribution_id": contribution.id},
            )
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["contribution"]["status"] == ContributionStatus.PENDING
        assert body["contribution"]["amount_paid"] == "0.00"

    def test_member_cannot_mark_paid(self, api_client, event, member):
        contribution = _contribution_for(event, member)
        api_client.force_authenticate(user=member)

        response = api_client.post(
            reverse(
                "payments:contribution-mark-paid",
                kwargs={"contribution_id": contribution.id},
            ),
            {"amount": "50.00"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "NOT_GROUP_ADMIN"

    def test_undo_without_manual_settlement(self, api_client, event, member, group_admin):
        contribution = _contribution_for(event, member)
        api_client.force_authenticate(user=group_admin)

        response = api_client.post(
            reverse(
                "payments:contribution-undo-manual",
                kwargs={"contribution_id": contribution.id},
            )
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error_code"] == "NOT_MANUAL_SETTLEMENT"


# =============================================================================
# Payouts
# =============================================================================


class TestEventPayoutsView:
    def _url(self, event):
        return reverse("payments:event-payouts", kwargs={"event_id": event.id})

    def test_request_full_balance(self, api_client, funded_event, organizer, payout_account, fake_stripe):
        api_client.force_authenticate(user=organizer)

        response = api_client.post(self._url(funded_event), {}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["payout"]["amount"] == "100.00"
        assert body["payout"]["status"] == "pending"
        assert body["remaining_balance"] == "0.00"
        assert body["summary"]["balance"] == "0.00"
        assert body["summary"]["total_paid_out"] == "100.00"

    def test_request_partial(self, api_client, funded_event, organizer, payout_account, fake_stripe):
        api_client.force_authenticate(user=organizer)

        response = api_client.post(
            self._url(funded_event), {"amount": "25.00"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["remaining_balance"] == "75.00"

    def test_insufficient_balance(self, api_client, funded_event, organizer, payout_account, fake_stripe):
        api_client.force_authenticate(user=organizer)

        response = api_client.post(
            self._url(funded_event), {"amount": "150.00"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        body = response.json()
        assert body["error_code"] == "INSUFFICIENT_BALANCE"
        assert body["details"]["available_balance"] == "100.00"

    def test_payout_in_flight(self, api_client, funded_event, organizer, payout_account, fake_stripe):
        PayoutRequestFactory(event=funded_event, amount=Decimal("10.00"))
        api_client.force_authenticate(user=organizer)

        response = api_client.post(
            self._url(funded_event), {"amount": "10.00"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error_code"] == "PAYOUT_IN_FLIGHT"

    def test_not_organizer(self, api_client, funded_event, member, fake_stripe):
        api_client.force_authenticate(user=member)

        response = api_client.post(self._url(funded_event), {}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "NOT_ORGANIZER"

    def test_destination_not_verified(self, api_client, funded_event, organizer, fake_stripe):
        ConnectedAccountFactory(
            user=organizer,
            onboarding_status=OnboardingStatus.IN_PROGRESS,
            payouts_enabled=False,
        )
        api_client.force_authenticate(user=organizer)

        response = api_client.post(self._url(funded_event), {}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "PAYOUT_DESTINATION_NOT_VERIFIED"

    def test_transfer_failure(self, api_client, funded_event, organizer, payout_account, fake_stripe):
        fake_stripe.transfer_error = StripeAPIUnavailableError("Stripe is down")
        api_client.force_authenticate(user=organizer)

        response = api_client.post(self._url(funded_event), {}, format="json")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        body = response.json()
        assert body["error_code"] == "TRANSFER_INITIATION_FAILED"
        assert body["retryable"] is True
        assert PaymentEvent.objects.get(pk=funded_event.pk).pool_balance == Decimal(
            "100.00"
        )
        assert not PayoutRequest.objects.filter(event=funded_event).exists()

    def test_throttled(self, api_client, funded_event, organizer, payout_account, fake_stripe, monkeypatch):
        # Throttle rates are read once when DRF is imported
        monkeypatch.setattr(
            ScopedRateThrottle,
            "THROTTLE_RATES",
            {**ScopedRateThrottle.THROTTLE_RATES, "payout_requests": "1/hour"},
        )
        api_client.force_authenticate(user=organizer)

        first = api_client.post(self._url(funded_event), {"amount": "10.00"}, format="json")
        second = api_client.post(self._url(funded_event), {"amount": "10.00"}, format="json")

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_429_TOO_MANY_REQUESTS

    def test_list(self, api_client, funded_event, member):
        payout = PayoutRequestFactory(event=funded_event, amount=Decimal("40.00"))
        payout.complete()
        payout.save()
        api_client.force_authenticate(user=member)

        response = api_client.get(self._url(funded_event))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert len(body["payouts"]) == 1
        assert body["total_paid_out"] == "40.00"
        assert body["current_balance"] == "100.00"

    def test_list_outsider_forbidden(self, api_client, funded_event, outsider):
        api_client.force_authenticate(user=outsider)

        response = api_client.get(self._url(funded_event))

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestOrganizerPayoutsView:
    def test_lists_own_payouts(self, api_client, funded_event, organizer):
        payout = PayoutRequestFactory(event=funded_event, amount=Decimal("30.00"))
        payout.complete()
        payout.save()
        api_client.force_authenticate(user=organizer)

        response = api_client.get(reverse("payments:organizer-payouts"))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["payouts"][0]["event"] == {
            "id": str(funded_event.id),
            "title": funded_event.title,
        }
        assert body["summary"] == {
            "total_paid_out": "30.00",
            "total_pending": "0.00",
            "total_payouts": 1,
        }


# =============================================================================
# Connect
# =============================================================================


class TestConnectViews:
    def test_status_without_account(self, api_client, organizer):
        api_client.force_authenticate(user=organizer)

        response = api_client.get(reverse("payments:connect-status"))

        assert response.json() == {"account": None, "is_ready_for_payouts": False}

    def test_onboard_then_status(self, api_client, organizer, fake_stripe):
        api_client.force_authenticate(user=organizer)

        response = api_client.post(reverse("payments:connect-onboard"))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["url"].startswith("https://connect.stripe.com/")
        assert body["account"]["onboarding_status"] == OnboardingStatus.IN_PROGRESS

        response = api_client.get(reverse("payments:connect-status"))
        assert response.json()["is_ready_for_payouts"] is False

    def test_status_ready(self, api_client, organizer, payout_account):
        api_client.force_authenticate(user=organizer)

        response = api_client.get(reverse("payments:connect-status"))

        body = response.json()
        assert body["is_ready_for_payouts"] is True
        assert body["account"]["stripe_account_id"] == payout_account.stripe_account_id

