"""
Payment domain models.

- PaymentEvent: Dues collection with the authoritative pool balance
- Contribution: One member's settled share of an event
- PayoutRequest: Withdrawal of an event's pool to its organizer
- ConnectedAccount: Stripe Connect payout destination of a user
- WebhookEvent: Journal of Stripe notifications for idempotent processing
"""

from payments.models.connected_account import ConnectedAccount
from payments.models.contribution import Contribution
from payments.models.payment_event import PaymentEvent
from payments.models.payout_request import PayoutRequest
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "ConnectedAccount",
    "Contribution",
    "PaymentEvent",
    "PayoutRequest",
    "WebhookEvent",
]
