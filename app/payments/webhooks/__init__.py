"""
Webhook handling for transfer-provider events.

Deliveries are authenticated with an HMAC signature, recorded as
WebhookAttempt rows and applied synchronously by handlers registered per
event object type.

Usage:
    # In urls.py
    from payments.webhooks.views import provider_webhook

    urlpatterns = [
        path("webhooks/<str:provider>/", provider_webhook, name="provider_webhook"),
    ]
"""

from payments.webhooks.handlers import WebhookEvent, dispatch_webhook, parse_event, register_handler
from payments.webhooks.views import provider_webhook

__all__ = [
    "WebhookEvent",
    "dispatch_webhook",
    "parse_event",
    "provider_webhook",
    "register_handler",
]
