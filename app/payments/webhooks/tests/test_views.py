"""
Tests for the Stripe webhook endpoint.

Signature verification is patched; the payload returned by the patched
verifier is what the view stores and processes.
"""

import json
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.urls import reverse

from payments.exceptions import StripeInvalidRequestError
from payments.models import PaymentEvent, WebhookEvent
from payments.services import PayoutService
from payments.state_machines import WebhookEventStatus
from payments.tests.factories import stripe_payload

VERIFY = "payments.webhooks.views.StripeAdapter.verify_webhook_signature"


@pytest.fixture
def webhook_url():
    return reverse("payments:stripe_webhook")


def _post(client, url, event_data, signature="t=1,v1=abc"):
    headers = {"HTTP_STRIPE_SIGNATURE": signature} if signature else {}
    with patch(VERIFY, return_value=event_data) as verify:
        response = client.post(
            url,
            data=json.dumps(event_data),
            content_type="application/json",
            **headers,
        )
    return response, verify


class TestStripeWebhookView:
    def test_missing_signature(self, client, webhook_url, db):
        response, verify = _post(
            client, webhook_url, stripe_payload("invoice.paid", {}), signature=""
        )

        assert response.status_code == 400
        verify.assert_not_called()
        assert not WebhookEvent.objects.exists()

    def test_invalid_signature(self, client, webhook_url, db):
        with patch(VERIFY, side_effect=StripeInvalidRequestError("Invalid webhook signature")):
            response = client.post(
                webhook_url,
                data="{}",
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="t=1,v1=forged",
            )

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()

    def test_missing_event_fields(self, client, webhook_url, db):
        response, _ = _post(client, webhook_url, {"object": "event"})

        assert response.status_code == 400

    def test_get_not_allowed(self, client, webhook_url, db):
        assert client.get(webhook_url).status_code == 405

    def test_processes_event(self, client, webhook_url, funded_event, organizer, payout_account, fake_stripe):
        payout = PayoutService.request_payout(funded_event.id, organizer).payout
        event_data = stripe_payload(
            "transfer.failed",
            {
                "id": payout.transfer_reference,
                "metadata": {"payout_request_id": str(payout.id)},
            },
        )

        response, _ = _post(client, webhook_url, event_data)

        assert response.status_code == 200
        webhook_event = WebhookEvent.objects.get(stripe_event_id=event_data["id"])
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.event_type == "transfer.failed"
        assert PaymentEvent.objects.get(pk=funded_event.pk).pool_balance == Decimal(
            "100.00"
        )

    def test_duplicate_delivery(self, client, webhook_url, funded_event, organizer, payout_account, fake_stripe):
        payout = PayoutService.request_payout(funded_event.id, organizer).payout
        event_data = stripe_payload(
            "transfer.failed",
            {
                "id": payout.transfer_reference,
                "metadata": {"payout_request_id": str(payout.id)},
            },
        )
        _post(client, webhook_url, event_data)

        response, _ = _post(client, webhook_url, event_data)

        assert response.status_code == 200
        assert response.content == b"Already processed"
        assert WebhookEvent.objects.filter(stripe_event_id=event_data["id"]).count() == 1
        assert PaymentEvent.objects.get(pk=funded_event.pk).pool_balance == Decimal(
            "100.00"
        )

    def test_unresolved_event_acknowledged(self, client, webhook_url, db):
        event_data = stripe_payload("transfer.paid", {"id": "tr_unknown", "metadata": {}})

        response, _ = _post(client, webhook_url, event_data)

        assert response.status_code == 200
        webhook_event = WebhookEvent.objects.get(stripe_event_id=event_data["id"])
        assert webhook_event.status == WebhookEventStatus.UNRESOLVED

    def test_processing_error_returns_500(self, client, webhook_url, db):
        event_data = stripe_payload("transfer.paid", {"id": "tr_1"})

        with patch(
            "payments.webhooks.handlers.dispatch_webhook",
            side_effect=RuntimeError("boom"),
        ):
            response, _ = _post(client, webhook_url, event_data)

        assert response.status_code == 500
        webhook_event = WebhookEvent.objects.get(stripe_event_id=event_data["id"])
        assert webhook_event.status == WebhookEventStatus.FAILED

    def test_failed_event_retried_on_redelivery(self, client, webhook_url, db):
        event_data = stripe_payload("invoice.paid", {"id": "in_1"})
        with patch(
            "payments.webhooks.handlers.dispatch_webhook",
            side_effect=RuntimeError("boom"),
        ):
            _post(client, webhook_url, event_data)

        response, _ = _post(client, webhook_url, event_data)

        assert response.status_code == 200
        webhook_event = WebhookEvent.objects.get(stripe_event_id=event_data["id"])
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.retry_count == 2
