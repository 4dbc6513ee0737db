"""
Celery tasks for payment processing.

process_webhook_event applies one stored Stripe notification. The webhook
view runs it inline so a crash surfaces as HTTP 500 and Stripe redelivers;
the admin queues it with .delay() to reprocess FAILED events.

Nothing is retried internally: Stripe's redelivery plus idempotent
handlers give at-least-once processing.

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event(webhook_event.id)        # inline
    process_webhook_event.delay(webhook_event.id)  # queued
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.db import transaction

from payments.exceptions import UnresolvableNotification
from payments.models import WebhookEvent

logger = logging.getLogger(__name__)


@shared_task(acks_late=True)
def process_webhook_event(webhook_event_id: str | UUID) -> dict:
    """
    Process a stored Stripe webhook event.

    This task:
    1. Loads the WebhookEvent by ID
    2. Skips events already PROCESSED or UNRESOLVED
    3. Marks as processing
    4. Dispatches to the registered handler inside a transaction
    5. Marks as processed, unresolved or failed

    Returns:
        Dict with processing result status

    Raises:
        Exception: Unexpected handler errors, after marking the event FAILED
    """
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_settled:
        logger.info(
            "WebhookEvent already handled, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "status": webhook_event.status,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
            "event_type": webhook_event.event_type,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)

    except UnresolvableNotification as e:
        webhook_event.mark_unresolved(e.message)
        webhook_event.save()
        logger.warning(
            f"Webhook could not be resolved: {e.message}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
                "details": e.details,
            },
        )
        return {
            "status": "unresolved",
            "webhook_event_id": str(webhook_event_id),
            "error": e.message,
        }

    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()

        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error": error_msg,
            },
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }
