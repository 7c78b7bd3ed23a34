"""
URL configuration for the custody service.

URL Structure:
    /                                   - ReDoc API documentation
    /admin/                             - Django admin interface
    /health/                            - Health check endpoint (for load balancers, Docker)
    /schema/                            - OpenAPI schema (YAML)
    /api/v1/auth/token/                 - Obtain JWT pair (POST)
    /api/v1/auth/token/refresh/         - Refresh access token (POST)
    /api/v1/custody/                    - Escrow and withdrawal endpoints
        escrows/                        - Escrow list (admin) / create (admin)
        escrows/{id}/                   - Escrow detail (parties, admin)
        escrows/by-order/{order_id}/    - Escrow of an order
        escrows/{id}/confirm-delivery/  - Buyer confirms or rejects delivery
        escrows/{id}/admin-action/      - Release, refund or resolve a dispute
        escrows/stats/                  - Escrow statistics (admin)
        withdrawals/                    - Withdrawal list / request
        withdrawals/{id}/               - Withdrawal detail
        withdrawals/{id}/mark-paid/     - Settle a pending request (admin)
        withdrawals/{id}/reject/        - Reject and refund a request (admin)
        withdrawals/batch-mark-paid/    - Settle several requests (admin)
        withdrawals/stats/              - Withdrawal statistics (admin)
        wallet/                         - Current user's wallet balance
    /api/v1/rides/                      - Ride endpoints
        bookings/{id}/confirm-arrival/  - Driver confirms arrival at pickup

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Escrow, withdrawals, wallet
    path("custody/", include("custody.urls")),
    # Rides
    path("rides/", include("rides.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Custody Admin"
admin.site.site_title = "Custody Admin Portal"
admin.site.index_title = "Escrows, withdrawals and ledger"
