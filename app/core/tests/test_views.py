"""
Tests for the health check endpoint.
"""

from django.db import DatabaseError


class TestHealthCheck:
    def test_healthy(self, client, db):
        response = client.get("/health/")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected", "cache": "connected"}

    def test_database_down_returns_503(self, client, db, mocker):
        mocker.patch("core.views.connection.cursor", side_effect=DatabaseError("down"))

        response = client.get("/health/")

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"
        assert response.json()["status"] == "unhealthy"
