"""
Payments app configuration.

This app provides the shared payment pool of each payment event:
- Contribution ledger
- Pool balance accumulator
- Organizer payouts via Stripe Connect
- Settlement reconciliation of Stripe webhooks
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self) -> None:
        # Populate the webhook handler registry
        from payments.webhooks import handlers  # noqa: F401
