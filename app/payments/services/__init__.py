"""
Payment services.

This module provides:
- PoolBalanceService: Atomic credit/reserve of an event's pool balance
- ContributionService: Contribution ledger (checkout, settlement, manual override)
- PayoutService: Organizer payouts with compensation on transfer failure
- ConnectedAccountService: Stripe Connect onboarding of payout destinations

Usage:
    from payments.services import PayoutService

    result = PayoutService.request_payout(event_id, request.user)
"""

from payments.services.connected_account_service import (
    ConnectedAccountService,
    OnboardingLink,
)
from payments.services.contribution_service import CheckoutStart, ContributionService
from payments.services.payout_service import (
    EventPayouts,
    OrganizerPayouts,
    PayoutRequestResult,
    PayoutService,
)
from payments.services.pool_service import PoolAudit, PoolBalanceService, sum_amount

__all__ = [
    "CheckoutStart",
    "ConnectedAccountService",
    "ContributionService",
    "EventPayouts",
    "OnboardingLink",
    "OrganizerPayouts",
    "PayoutRequestResult",
    "PayoutService",
    "PoolAudit",
    "PoolBalanceService",
    "sum_amount",
]
