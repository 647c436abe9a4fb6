"""
DRF serializers for payments app.

This module provides serializers for:
- Webhook attempt diagnostics (list filters and rows)

Related files:
    - webhooks/attempts.py: WebhookAttemptService
    - views.py: Diagnostics API views

Usage:
    query = WebhookAttemptQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    data = WebhookAttemptSerializer(attempts, many=True).data
"""

from __future__ import annotations

from rest_framework import serializers

from payments.state_machines import WebhookAttemptStatus
from payments.webhooks.attempts import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT


class WebhookAttemptQuerySerializer(serializers.Serializer):
    """
    Query parameters for the attempt list.

    Fields:
        event_id: Only attempts for this provider event id
        event_type: Only attempts for this event object type
        status: Only attempts in this status
        since: Only attempts created at or after this time
        limit: Maximum rows (1-500, default 50)
    """

    event_id = serializers.CharField(required=False, max_length=255)
    event_type = serializers.CharField(required=False, max_length=100)
    status = serializers.ChoiceField(required=False, choices=WebhookAttemptStatus.choices)
    since = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(
        required=False,
        min_value=1,
        max_value=MAX_LIST_LIMIT,
        default=DEFAULT_LIST_LIMIT,
    )


class WebhookAttemptSerializer(serializers.Serializer):
    """
    A recorded webhook delivery.

    The raw payload is included so operators can see exactly what the
    provider sent.
    """

    id = serializers.UUIDField(read_only=True)
    provider = serializers.CharField(read_only=True)
    event_type = serializers.CharField(read_only=True)
    event_id = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    attempt = serializers.IntegerField(read_only=True)
    signature_valid = serializers.BooleanField(read_only=True)
    error_message = serializers.CharField(read_only=True, allow_null=True)
    payload = serializers.JSONField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    processed_at = serializers.DateTimeField(read_only=True, allow_null=True)
