"""
Payments app: pooled dues and organizer payouts.

This app handles:
- Lazy creation of one contribution per circle member and event
- Hosted checkout and manual settlement of contributions
- The per-event pool balance, mutated only through atomic updates
- Payout requests to the organizer's Stripe Connect account
- Idempotent reconciliation of Stripe webhooks

Related apps:
    - circles: Circle membership and admin checks
    - core: Base models, exceptions and services

Usage:
    from payments.services import ContributionService, PayoutService

    ContributionService.ensure_contributions(event)
    PayoutService.request_payout(event.id, request.user)
"""
