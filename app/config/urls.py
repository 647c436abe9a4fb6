"""
URL configuration for the payments service.

URL Structure:
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /webhooks/<provider>/          - Provider webhook receiver (POST, signed)
    /api/v1/payments/              - Payment endpoints (staff only)
        webhooks/<provider>/attempts/ - Webhook attempt diagnostics (GET)

The webhook receiver sits outside /api/ because it is called by the
provider, authenticates by signature and reads the raw request body.

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

from core.views import health_check
from payments.webhooks.views import provider_webhook

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # Provider webhooks
    path("webhooks/<str:provider>/", provider_webhook, name="provider_webhook"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Payments Admin"
admin.site.site_title = "Payments Admin"
admin.site.index_title = "Charges, withdrawals and ledger"
