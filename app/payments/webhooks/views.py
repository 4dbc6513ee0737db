"""
Webhook endpoint view for Stripe.

The view:
1. Verifies the webhook signature
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Applies the event inline via process_webhook_event
4. Returns 200 once the event is processed or acknowledged as unresolved

A crash while applying the event returns 500, so Stripe redelivers it and
the (idempotent) handler runs again.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.tasks import process_webhook_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and apply Stripe webhook events.

    Security:
    - Signature verification prevents spoofed webhooks; nothing is stored
      or applied for a bad signature
    - CSRF exemption required for external webhooks

    Idempotency:
    - WebhookEvent.stripe_event_id is unique
    - Events already processed or unresolved return 200 without reprocessing

    Returns:
        HttpResponse with status:
        - 200: Event applied, acknowledged or duplicate
        - 400: Missing/invalid signature or payload
        - 500: Applying the event failed; Stripe will redeliver
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(payload, signature)
    except StripeInvalidRequestError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": str(e)},
        )
        return HttpResponse("Invalid signature", status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={
            "stripe_event_id": stripe_event_id,
            "event_type": event_type,
        },
    )

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_settled:
        logger.info(
            "Duplicate webhook delivery, returning success",
            extra={
                "stripe_event_id": stripe_event_id,
                "status": webhook_event.status,
            },
        )
        return HttpResponse("Already processed", status=200)

    try:
        result = process_webhook_event(webhook_event.id)
    except Exception:
        # Already logged and marked FAILED by the task
        return HttpResponse("Processing failed", status=500)

    if result.get("status") == "handler_failed":
        return HttpResponse("Processing failed", status=500)

    return HttpResponse("OK", status=200)
