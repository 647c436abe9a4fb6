"""
DRF views for payments app.

This module provides staff-only diagnostics endpoints. The provider webhook
itself is a plain Django view in payments/webhooks/views.py because it must
read the exact raw body for signature verification.

Related files:
    - webhooks/attempts.py: WebhookAttemptService
    - serializers.py: Query and response serializers
    - urls.py: URL routing

Endpoints:
    GET /api/v1/payments/webhooks/<provider>/attempts/ - Recent webhook attempts

Security:
    - Staff users only (IsAdminUser)
"""

from __future__ import annotations

import logging

from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import WebhookAttemptQuerySerializer, WebhookAttemptSerializer
from .webhooks.attempts import WebhookAttemptService

logger = logging.getLogger(__name__)


class WebhookAttemptListView(APIView):
    """
    List recent webhook attempts for a provider.

    GET /api/v1/payments/webhooks/<provider>/attempts/

    Query params:
        event_id: Full redelivery history of one event
        event_type: Filter by event object type
        status: received / processed / rejected / failed
        since: ISO-8601 lower bound on created_at
        limit: 1-500 (default 50)

    Returns:
        {"count": n, "results": [...]} newest first
    """

    permission_classes = [IsAdminUser]

    def get(self, request, provider: str):
        query = WebhookAttemptQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        attempts = WebhookAttemptService.list_recent(provider.lower(), **query.validated_data)
        logger.debug(
            "Webhook attempts listed",
            extra={"provider": provider, "count": len(attempts), "user_id": request.user.pk},
        )
        return Response(
            {
                "count": len(attempts),
                "results": WebhookAttemptSerializer(attempts, many=True).data,
            }
        )
