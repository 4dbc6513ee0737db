"""
URL configuration for the payments app.

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    # Events
    path("events/", views.PaymentEventCreateView.as_view(), name="event-create"),
    path(
        "events/<uuid:event_id>/",
        views.PaymentEventDetailView.as_view(),
        name="event-detail",
    ),
    path(
        "events/<uuid:event_id>/payouts/",
        views.EventPayoutsView.as_view(),
        name="event-payouts",
    ),
    # Contributions
    path(
        "contributions/<uuid:contribution_id>/checkout/",
        views.ContributionCheckoutView.as_view(),
        name="contribution-checkout",
    ),
    path(
        "contributions/<uuid:contribution_id>/mark-paid/",
        views.ContributionMarkPaidView.as_view(),
        name="contribution-mark-paid",
    ),
    path(
        "contributions/<uuid:contribution_id>/undo-manual/",
        views.ContributionUndoManualView.as_view(),
        name="contribution-undo-manual",
    ),
    # Payouts
    path("payouts/", views.OrganizerPayoutsView.as_view(), name="organizer-payouts"),
    # Connect
    path("connect/onboard/", views.ConnectOnboardView.as_view(), name="connect-onboard"),
    path("connect/status/", views.ConnectStatusView.as_view(), name="connect-status"),
    # Webhooks
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
