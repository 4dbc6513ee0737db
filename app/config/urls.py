"""
URL configuration for the duespool service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/payments/              - Payment endpoints
        events/                    - Create payment event
        events/{id}/               - Event with contributions and pool summary
        events/{id}/payouts/       - Payout history / request payout
        contributions/{id}/checkout/     - Start hosted checkout
        contributions/{id}/mark-paid/    - Manual settlement (group admins)
        contributions/{id}/undo-manual/  - Undo manual settlement
        payouts/                   - Current user's payouts
        connect/onboard/           - Start Stripe Connect onboarding
        connect/status/            - Connected account status
        webhooks/stripe/           - Stripe webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Duespool Admin"
admin.site.site_title = "Duespool Admin"
admin.site.index_title = "Pools, payouts and webhooks"
