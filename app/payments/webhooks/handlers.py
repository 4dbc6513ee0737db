"""
Settlement reconciler: handlers for Stripe webhook events.

Each handler is a function of (persisted state, payload). It rehydrates the
entities it needs, locks them, and applies a transition only when the
current status allows it, so redelivered, late or out-of-order
notifications are absorbed without side effects.

Handlers raise UnresolvableNotification when the payload carries no usable
correlation key or references nothing we know; process_webhook_event then
marks the event UNRESOLVED and Stripe still receives a 200.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from django.db import transaction

from core.services import ServiceResult

from payments.adapters import from_cents
from payments.exceptions import UnresolvableNotification
from payments.models import PaymentEvent, PayoutRequest, WebhookEvent
from payments.services import (
    ConnectedAccountService,
    ContributionService,
    PoolBalanceService,
)
from payments.state_machines import PayoutStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("transfer.paid")
        def handle_transfer_paid(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are logged and reported as success so Stripe
    stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )

    return handler(webhook_event)


# =============================================================================
# Checkout Handlers
# =============================================================================


def _checkout_amount(session: dict[str, Any]) -> Decimal | None:
    """
    Amount settled by a checkout session.

    amount_total (cents) is authoritative; the charge_amount metadata
    written at session creation is the fallback.
    """
    amount_total = session.get("amount_total")
    if isinstance(amount_total, int) and amount_total > 0:
        return from_cents(amount_total)

    charge_amount = (session.get("metadata") or {}).get("charge_amount")
    if not charge_amount:
        return None
    try:
        amount = Decimal(str(charge_amount)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None
    return amount if amount > 0 else None


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Settle the contribution paid through a checkout session.

    Sessions whose payment_status is not "paid" change nothing. A session
    already applied (contribution PAID) is a duplicate and changes nothing.
    """
    session = webhook_event.get_object()
    session_id = session.get("id")

    if not session_id:
        raise UnresolvableNotification(
            "checkout.session.completed without a session id",
            details={"stripe_event_id": webhook_event.stripe_event_id},
        )

    if session.get("payment_status") != "paid":
        logger.info(
            "Checkout session not paid, ignoring",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "session_id": session_id,
                "payment_status": session.get("payment_status"),
            },
        )
        return ServiceResult.success(None)

    amount = _checkout_amount(session)
    if amount is None:
        raise UnresolvableNotification(
            f"Could not determine settled amount for session {session_id}",
            details={"session_id": session_id},
        )

    claimed_contribution_id = (session.get("metadata") or {}).get("contribution_id")
    contribution, applied = ContributionService.apply_external_settlement(
        session_id, amount, claimed_contribution_id=claimed_contribution_id
    )
    if contribution is None:
        raise UnresolvableNotification(
            f"No contribution for checkout session {session_id}",
            details={
                "session_id": session_id,
                "contribution_id": claimed_contribution_id,
            },
        )

    if not applied:
        logger.info(
            "Duplicate checkout completion ignored",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "contribution_id": str(contribution.id),
            },
        )
    return ServiceResult.success(contribution)


@register_handler("checkout.session.expired")
def handle_checkout_session_expired(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the contribution FAILED when its checkout session expired unpaid."""
    session_id = webhook_event.get_object_id()
    if not session_id:
        raise UnresolvableNotification(
            "checkout.session.expired without a session id",
            details={"stripe_event_id": webhook_event.stripe_event_id},
        )

    contribution = ContributionService.record_failed_settlement(session_id)
    if contribution is None:
        logger.info(
            "Expired session matches no contribution",
            extra={"session_id": session_id},
        )
    return ServiceResult.success(contribution)


# =============================================================================
# Transfer Handlers
# =============================================================================


def _lock_payout_for_transfer(webhook_event: WebhookEvent) -> PayoutRequest:
    """
    Find and lock the PayoutRequest a transfer event refers to.

    The payout_request_id metadata set at transfer creation is the
    correlation key; the stored transfer id is the fallback.

    Raises:
        UnresolvableNotification: No usable key, or no matching request
    """
    transfer = webhook_event.get_object()
    transfer_id = transfer.get("id")
    raw_payout_id = (transfer.get("metadata") or {}).get("payout_request_id")

    payout = None
    if raw_payout_id:
        try:
            payout_id = uuid.UUID(str(raw_payout_id))
        except ValueError:
            raise UnresolvableNotification(
                f"Malformed payout_request_id {raw_payout_id!r}",
                details={"transfer_id": transfer_id},
            )
        payout = PayoutRequest.objects.select_for_update().filter(pk=payout_id).first()
    elif transfer_id:
        payout = (
            PayoutRequest.objects.select_for_update()
            .filter(transfer_reference=transfer_id)
            .first()
        )
    else:
        raise UnresolvableNotification(
            f"{webhook_event.event_type} without transfer id or payout_request_id",
            details={"stripe_event_id": webhook_event.stripe_event_id},
        )

    if payout is None:
        raise UnresolvableNotification(
            f"No payout request for transfer {transfer_id}",
            details={
                "transfer_id": transfer_id,
                "payout_request_id": raw_payout_id,
            },
        )
    return payout


@register_handler("transfer.created")
def handle_transfer_created(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle transfer creation confirmation from Stripe.

    Transitions the PayoutRequest from PENDING to IN_TRANSIT and stores the
    transfer id. Requests already in transit or terminal are left alone.
    """
    transfer = webhook_event.get_object()

    with transaction.atomic():
        payout = _lock_payout_for_transfer(webhook_event)

        if payout.status == PayoutStatus.PENDING:
            payout.mark_in_transit(transfer_reference=transfer.get("id"))
            payout.save()
            logger.info(
                "Payout marked in transit",
                extra={
                    "payout_id": str(payout.id),
                    "transfer_id": transfer.get("id"),
                },
            )
        else:
            logger.info(
                "Payout already past pending, ignoring transfer.created",
                extra={
                    "payout_id": str(payout.id),
                    "current_status": payout.status,
                },
            )

        return ServiceResult.success(payout)


@register_handler("transfer.paid")
def handle_transfer_paid(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the payout PAID once the funds reached the organizer."""
    with transaction.atomic():
        payout = _lock_payout_for_transfer(webhook_event)

        if payout.status in PayoutStatus.in_flight():
            payout.complete()
            payout.save()
            logger.info(
                "Payout completed",
                extra={"payout_id": str(payout.id), "amount": str(payout.amount)},
            )
        else:
            logger.info(
                "Payout already terminal, ignoring transfer.paid",
                extra={
                    "payout_id": str(payout.id),
                    "current_status": payout.status,
                },
            )

        return ServiceResult.success(payout)


@register_handler("transfer.failed")
def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle transfer failure from Stripe.

    In one transaction: check the status, fail the request and credit the
    reserved amount back to the pool. A request that already failed or was
    paid is never refunded a second time.
    """
    transfer = webhook_event.get_object()
    failure_code = transfer.get("failure_code") or "unknown"
    failure_message = transfer.get("failure_message") or "Transfer failed"
    reason = f"{failure_code}: {failure_message}"

    with transaction.atomic():
        payout = _lock_payout_for_transfer(webhook_event)

        if payout.status not in PayoutStatus.in_flight():
            logger.info(
                "Payout already terminal, ignoring transfer.failed",
                extra={
                    "payout_id": str(payout.id),
                    "current_status": payout.status,
                },
            )
            return ServiceResult.success(payout)

        payout.fail(reason=reason)
        payout.save()
        PoolBalanceService.credit(payout.event_id, payout.amount)

        logger.warning(
            "Payout failed, amount returned to pool",
            extra={
                "payout_id": str(payout.id),
                "event_id": str(payout.event_id),
                "amount": str(payout.amount),
                "reason": reason,
            },
        )
        return ServiceResult.success(payout)


# =============================================================================
# Connect Account Handlers
# =============================================================================


@register_handler("account.updated")
def handle_account_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """Sync onboarding status and payout capability of a Connect account."""
    account = ConnectedAccountService.sync_from_stripe(webhook_event.get_object())
    if account is None:
        raise UnresolvableNotification(
            f"No connected account {webhook_event.get_object_id()}",
            details={"account_id": webhook_event.get_object_id()},
        )
    return ServiceResult.success(account)


@register_handler("account.application.deauthorized")
def handle_account_deauthorized(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Disable payouts for an account that disconnected from the platform.

    Events the owner organizes that still hold money are logged; their
    balance stays in the pool until the organizer onboards again.
    """
    # Connect events carry the account id at the top level of the event
    account_id = webhook_event.payload.get("account") or webhook_event.get_object_id()
    account = ConnectedAccountService.deauthorize(account_id) if account_id else None
    if account is None:
        raise UnresolvableNotification(
            f"No connected account {account_id}",
            details={"account_id": account_id},
        )

    events_with_balance = list(
        PaymentEvent.objects.filter(
            organizer_id=account.user_id, pool_balance__gt=0
        ).values_list("id", flat=True)
    )
    if events_with_balance:
        logger.warning(
            "Organizer disconnected payout account with funded events",
            extra={
                "user_id": account.user_id,
                "account_id": account_id,
                "event_ids": [str(event_id) for event_id in events_with_balance],
            },
        )
    return ServiceResult.success(account)
