"""
Payment-specific exceptions for the pool ledger and payouts.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Event, contribution or payout lookup failures
    ├── InvalidAmountError - Amount is zero, negative or malformed
    ├── NotOwnerError - Actor does not own the contribution
    ├── NotOrganizerError - Actor is not the event's organizer
    ├── NotGroupAdminError - Actor is not an admin of the event's circle
    ├── NotGroupMemberError - Actor is not a member of the event's circle
    ├── PayoutDestinationNotVerifiedError - No usable payout account on file
    ├── AlreadySettledError - Contribution is already PAID
    ├── NotManualSettlementError - Undo requested for a non-manual settlement
    ├── InsufficientBalance - Reservation would make the pool negative
    ├── PayoutInFlightError - Event already has a pending/in-transit payout
    ├── UnresolvableNotification - Webhook references nothing we can resolve
    └── PaymentProcessingError - Payment processor call failed
        ├── TransferInitiationFailed - Transfer rejected synchronously
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError (permanent)
            ├── StripeInvalidAccountError (permanent)
            ├── StripeInvalidRequestError (permanent)
            ├── StripeRateLimitError (transient)
            ├── StripeAPIUnavailableError (transient)
            └── StripeTimeoutError (transient)

The status_code declared on each class decides the HTTP status when the
error reaches the API (see core.exception_handler).

Usage:
    from payments.exceptions import InsufficientBalance

    raise InsufficientBalance(
        event_id=event.id,
        required=Decimal("120.00"),
        available=Decimal("100.00"),
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Inherits from BaseApplicationError for consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """Raised when an event, contribution or payout cannot be found."""

    default_error_code: str = "PAYMENT_NOT_FOUND"
    status_code: int = 404


class InvalidAmountError(PaymentError):
    """Raised when an amount is not strictly positive."""

    default_error_code: str = "INVALID_AMOUNT"
    status_code: int = 400


# -----------------------------------------------------------------------------
# Authorization
# -----------------------------------------------------------------------------


class PaymentAuthorizationError(PaymentError):
    """Base for actor checks. Never retried."""

    default_error_code: str = "PAYMENT_FORBIDDEN"
    status_code: int = 403


class NotOwnerError(PaymentAuthorizationError):
    default_error_code: str = "NOT_OWNER"


class NotOrganizerError(PaymentAuthorizationError):
    default_error_code: str = "NOT_ORGANIZER"


class NotGroupAdminError(PaymentAuthorizationError):
    default_error_code: str = "NOT_GROUP_ADMIN"


class NotGroupMemberError(PaymentAuthorizationError):
    default_error_code: str = "NOT_GROUP_MEMBER"


class PayoutDestinationNotVerifiedError(PaymentAuthorizationError):
    """Raised when the organizer has no onboarded, payout-enabled account."""

    default_error_code: str = "PAYOUT_DESTINATION_NOT_VERIFIED"


# -----------------------------------------------------------------------------
# State conflicts
# -----------------------------------------------------------------------------


class AlreadySettledError(PaymentError):
    """Raised when a checkout is requested for a contribution already PAID."""

    default_error_code: str = "ALREADY_SETTLED"
    status_code: int = 409


class NotManualSettlementError(PaymentError):
    """Raised when undoing a settlement that was not a manual override."""

    default_error_code: str = "NOT_MANUAL_SETTLEMENT"
    status_code: int = 409


class InsufficientBalance(PaymentError):
    """
    Raised when a reservation would take an event's pool below zero.

    Raising it inside transaction.atomic() rolls back the payout row that
    was created in the same transaction. The available balance is read
    after the failed conditional update so the caller can adjust.
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"
    status_code: int = 409

    def __init__(
        self,
        event_id: uuid.UUID,
        required: Decimal,
        available: Decimal,
        message: str | None = None,
    ):
        self.event_id = event_id
        self.required = required
        self.available = available
        super().__init__(
            message or "Insufficient pool balance for this payout",
            details={
                "event_id": str(event_id),
                "requested_amount": str(required),
                "available_balance": str(available),
            },
        )


class PayoutInFlightError(PaymentError):
    """Raised when an event already has a pending or in-transit payout."""

    default_error_code: str = "PAYOUT_IN_FLIGHT"
    status_code: int = 409


class UnresolvableNotification(PaymentError):
    """
    Raised by webhook handlers for notifications that cannot be applied.

    The notification is acknowledged to the processor and the WebhookEvent
    is marked UNRESOLVED for operator inspection. Never shown to end users.
    """

    default_error_code: str = "UNRESOLVABLE_NOTIFICATION"


class PaymentProcessingError(PaymentError):
    """Raised when a call to the payment processor fails."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    status_code: int = 502


class TransferInitiationFailed(PaymentProcessingError):
    """
    Raised when the processor rejects a transfer synchronously.

    By the time this reaches the caller the payout request has been deleted
    and its reservation credited back, so the organizer may simply retry.
    """

    default_error_code: str = "TRANSFER_INITIATION_FAILED"
    is_retryable: bool = True

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["retryable"] = self.is_retryable
        return result


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether the same call may succeed if repeated
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


class StripeCardDeclinedError(StripeError):
    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeInvalidAccountError(StripeError):
    """
    Destination Connect account is missing, restricted or not onboarded.

    Requires the organizer to finish onboarding before retrying.
    """

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """Malformed request or failed webhook signature check."""

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """Network failure or Stripe 5xx."""

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe did not answer within STRIPE_API_TIMEOUT_SECONDS.

    The operation may have succeeded on Stripe's side; idempotency keys
    make a repeated call with the same key safe.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


__all__ = [
    "PaymentError",
    "PaymentNotFoundError",
    "InvalidAmountError",
    "PaymentAuthorizationError",
    "NotOwnerError",
    "NotOrganizerError",
    "NotGroupAdminError",
    "NotGroupMemberError",
    "PayoutDestinationNotVerifiedError",
    "AlreadySettledError",
    "NotManualSettlementError",
    "InsufficientBalance",
    "PayoutInFlightError",
    "UnresolvableNotification",
    "PaymentProcessingError",
    "TransferInitiationFailed",
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
]
