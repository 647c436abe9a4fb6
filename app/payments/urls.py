"""
URL configuration for the payments app.

Routes:
    - GET webhooks/<provider>/attempts/ - Webhook attempt diagnostics (staff)

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
The provider webhook receiver is mounted at /webhooks/<provider>/ by config/urls.py.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import WebhookAttemptListView

app_name = "payments"

urlpatterns = [
    path(
        "webhooks/<str:provider>/attempts/",
        WebhookAttemptListView.as_view(),
        name="webhook_attempt_list",
    ),
]
