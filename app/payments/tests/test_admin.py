"""Tests for payments admin actions."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from django.contrib.admin.sites import AdminSite
from django.test import RequestFactory

from payments.admin import PaymentEventAdmin, WebhookEventAdmin
from payments.models import PaymentEvent, WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.tests.factories import PaymentEventFactory, WebhookEventFactory


@pytest.fixture
def admin_request():
    return RequestFactory().post("/admin/")


class TestAuditPoolAction:
    def test_reports_drift(self, db, admin_request):
        PaymentEventFactory(title="Consistent")
        PaymentEventFactory(title="Drifted", pool_balance=Decimal("5.00"))
        model_admin = PaymentEventAdmin(PaymentEvent, AdminSite())

        with patch.object(model_admin, "message_user") as message_user:
            model_admin.audit_pool(admin_request, PaymentEvent.objects.all())

        messages = [call.args[1] for call in message_user.call_args_list]
        assert any(m.startswith("Drifted: balance 5.00") for m in messages)
        assert messages[-1] == "Audited 2 events, 1 with drift."


class TestReprocessAction:
    def test_queues_failed_and_unresolved(self, db, admin_request):
        failed = WebhookEventFactory(status=WebhookEventStatus.FAILED)
        unresolved = WebhookEventFactory(status=WebhookEventStatus.UNRESOLVED)
        processed = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)
        model_admin = WebhookEventAdmin(WebhookEvent, AdminSite())

        with (
            patch("payments.admin.process_webhook_event.delay") as delay,
            patch.object(model_admin, "message_user"),
        ):
            model_admin.reprocess(admin_request, WebhookEvent.objects.all())

        queued = {call.args[0] for call in delay.call_args_list}
        assert queued == {str(failed.id), str(unresolved.id)}
        assert (
            WebhookEvent.objects.get(pk=failed.pk).status == WebhookEventStatus.PENDING
        )
        assert (
            WebhookEvent.objects.get(pk=processed.pk).status
            == WebhookEventStatus.PROCESSED
        )

    def test_webhook_events_are_read_only(self, admin_request):
        model_admin = WebhookEventAdmin(WebhookEvent, AdminSite())

        assert not model_admin.has_add_permission(admin_request)
        assert not model_admin.has_delete_permission(admin_request)
