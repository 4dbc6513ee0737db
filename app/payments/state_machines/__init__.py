"""
State enums for payment models.
"""

from payments.state_machines.states import (
    ContributionStatus,
    OnboardingStatus,
    PayoutStatus,
    SettlementMethod,
    WebhookEventStatus,
)

__all__ = [
    "ContributionStatus",
    "OnboardingStatus",
    "PayoutStatus",
    "SettlementMethod",
    "WebhookEventStatus",
]
