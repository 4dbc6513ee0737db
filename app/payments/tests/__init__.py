"""
Tests for payments app.

This package contains test modules for:
- test_models.py: PaymentEvent, Contribution, PayoutRequest, ConnectedAccount
  and WebhookEvent model tests
- test_views.py: API endpoint tests
- test_admin.py: Admin action tests
- test_scenarios.py: End-to-end pool lifecycles

Service, webhook and adapter tests live next to their packages.

Usage:
    pytest payments/
    pytest payments/tests/test_scenarios.py
"""
