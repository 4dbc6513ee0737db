"""
Adapters for external payment services.

All Stripe calls go through StripeAdapter for consistent error handling,
timeouts, idempotency and logging.
"""

from payments.adapters.stripe_adapter import (
    AccountLinkResult,
    CheckoutSessionResult,
    ConnectAccountResult,
    IdempotencyKeyGenerator,
    StripeAdapter,
    TransferResult,
    from_cents,
    to_cents,
)

__all__ = [
    "AccountLinkResult",
    "CheckoutSessionResult",
    "ConnectAccountResult",
    "IdempotencyKeyGenerator",
    "StripeAdapter",
    "TransferResult",
    "from_cents",
    "to_cents",
]
