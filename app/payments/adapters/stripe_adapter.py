"""
Stripe API adapter for the pool ledger.

Every Stripe call made by the payments app goes through StripeAdapter so
that timeouts, idempotency keys, logging and error translation are applied
the same way everywhere.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries performed by the Stripe client (default: 2)

Usage:
    from payments.adapters import StripeAdapter, IdempotencyKeyGenerator

    session = StripeAdapter.create_checkout_session(
        amount_cents=5000,
        product_name="Spring dues - Tuesday Club",
        customer_email="member@example.com",
        metadata={"contribution_id": str(contribution.id)},
        success_url="https://app.example.com/payment-events/<id>?success=true",
        cancel_url="https://app.example.com/payment-events/<id>?canceled=true",
    )

    transfer = StripeAdapter.create_transfer(
        amount_cents=10000,
        destination_account="acct_xxx",
        idempotency_key=IdempotencyKeyGenerator.generate("create_transfer", payout.id),
        metadata={"payout_request_id": str(payout.id)},
    )
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)

if TYPE_CHECKING:
    import uuid


def to_cents(amount: Decimal) -> int:
    """Convert a decimal amount to the smallest currency unit."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(amount_cents: int) -> Decimal:
    return (Decimal(amount_cents) / 100).quantize(Decimal("0.01"))


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CheckoutSessionResult:
    """
    Result from Stripe Checkout Session creation.

    Attributes:
        id: Checkout Session ID (cs_xxx), stored as the settlement reference
        url: Hosted checkout URL the member is redirected to
        amount_cents: Session total in cents
        metadata: Attached metadata
        raw_response: Full Stripe response dict
    """

    id: str
    url: str
    amount_cents: int
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferResult:
    """
    Result from Stripe Transfer operations.

    Attributes:
        id: Transfer ID (tr_xxx)
        amount_cents: Amount transferred in cents
        currency: Currency code
        destination_account: Destination Stripe account ID
        metadata: Attached metadata
        raw_response: Full Stripe response dict
    """

    id: str
    amount_cents: int
    currency: str
    destination_account: str
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConnectAccountResult:
    id: str
    payouts_enabled: bool = False
    details_submitted: bool = False
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccountLinkResult:
    url: str
    expires_at: int | None = None


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Keys are deterministic, so repeating a call for the same entity and
    attempt can never create a second object at Stripe.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_transfer",
            entity_id=payout_request.id,
        )
        # "create_transfer:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods; no instance state is kept. Services hold
    a reference to the adapter class so tests can swap in a fake.

    Every failure is translated into a payments.exceptions.StripeError
    subclass carrying is_retryable.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key, timeout and retries."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 2)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Checkout
    # =========================================================================

    @classmethod
    def create_checkout_session(
        cls,
        amount_cents: int,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
        description: str | None = None,
        currency: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session for a single contribution payment.

        Args:
            amount_cents: Amount to charge in cents
            product_name: Line item name shown on the checkout page
            success_url: Redirect after payment
            cancel_url: Redirect when the member abandons checkout
            metadata: Correlation data echoed back in checkout webhooks
            customer_email: Prefilled payer email
            description: Optional line item description
            currency: Currency code (default: settings.PAYMENTS_CURRENCY)
            idempotency_key: Optional key for idempotent creation

        Returns:
            CheckoutSessionResult with the session id and redirect URL
        """
        cls._configure_stripe()
        logger = cls.get_logger()
        currency = currency or settings.PAYMENTS_CURRENCY

        log_context = {
            "operation": "create_checkout_session",
            "amount_cents": amount_cents,
            "contribution_id": metadata.get("contribution_id"),
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            product_data: dict[str, Any] = {"name": product_name}
            if description:
                product_data["description"] = description

            session_params: dict[str, Any] = {
                "mode": "payment",
                "payment_method_types": ["card"],
                "line_items": [
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": currency,
                            "unit_amount": amount_cents,
                            "product_data": product_data,
                        },
                    }
                ],
                "metadata": metadata,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
            if customer_email:
                session_params["customer_email"] = customer_email

            request_options: dict[str, Any] = {}
            if idempotency_key:
                request_options["idempotency_key"] = idempotency_key

            session = stripe.checkout.Session.create(
                **session_params, **request_options
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "session_id": session.id,
                    "duration_ms": duration_ms,
                },
            )

            return CheckoutSessionResult(
                id=session.id,
                url=session.url,
                amount_cents=session.amount_total or amount_cents,
                metadata=dict(session.metadata or {}),
                raw_response=session.to_dict(),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Transfers
    # =========================================================================

    @classmethod
    def create_transfer(
        cls,
        amount_cents: int,
        destination_account: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
        currency: str | None = None,
    ) -> TransferResult:
        """
        Create a transfer to a connected Stripe account.

        Args:
            amount_cents: Amount to transfer in cents
            destination_account: Stripe Connect account ID (acct_xxx)
            idempotency_key: Unique key for idempotent transfer
            metadata: Correlation data echoed back in transfer webhooks
            currency: Currency code (default: settings.PAYMENTS_CURRENCY)

        Returns:
            TransferResult with transfer details

        Raises:
            StripeInvalidAccountError: Invalid destination account
            StripeError: Any other Stripe failure
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_transfer",
            "amount_cents": amount_cents,
            "destination_account": destination_account,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            transfer = stripe.Transfer.create(
                idempotency_key=idempotency_key,
                amount=amount_cents,
                currency=currency or settings.PAYMENTS_CURRENCY,
                destination=destination_account,
                metadata=metadata or {},
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "transfer_id": transfer.id,
                    "duration_ms": duration_ms,
                },
            )

            return TransferResult(
                id=transfer.id,
                amount_cents=transfer.amount,
                currency=transfer.currency,
                destination_account=transfer.destination,
                metadata=dict(transfer.metadata or {}),
                raw_response=transfer.to_dict(),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Connect Onboarding
    # =========================================================================

    @classmethod
    def create_connect_account(
        cls,
        email: str,
        idempotency_key: str,
        country: str = "US",
    ) -> ConnectAccountResult:
        """
        Create an express Connect account able to receive transfers.

        Returns:
            ConnectAccountResult with the new acct_xxx id
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_connect_account",
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            account = stripe.Account.create(
                idempotency_key=idempotency_key,
                type="express",
                country=country,
                email=email,
                capabilities={"transfers": {"requested": True}},
                business_type="individual",
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "account_id": account.id,
                    "duration_ms": duration_ms,
                },
            )

            return ConnectAccountResult(
                id=account.id,
                payouts_enabled=bool(account.get("payouts_enabled")),
                details_submitted=bool(account.get("details_submitted")),
                raw_response=account.to_dict(),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def create_account_link(
        cls,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult:
        """Create a single-use onboarding link for a Connect account."""
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_account_link",
            "account_id": account_id,
        }

        start_time = time.time()

        try:
            link = stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

            return AccountLinkResult(url=link.url, expires_at=link.get("expires_at"))

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            StripeInvalidRequestError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
            return event.to_dict()
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            ) from e

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe SDK exceptions to domain exceptions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidAccountError: Invalid Connect account
            StripeInvalidRequestError: Invalid request parameters or API key
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: Network failure, 5xx or anything unknown
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            if "account" in str(error).lower():
                raise StripeInvalidAccountError(
                    str(error),
                    stripe_code=error.code,
                ) from error
            raise StripeInvalidRequestError(
                str(error),
                stripe_code=error.code,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe did not respond in time. Please retry.",
                    stripe_code="timeout",
                ) from error
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            ) from error
