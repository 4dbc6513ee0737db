"""
Tests for the health check endpoint.
"""

from unittest.mock import patch

from django.db import DatabaseError


class TestHealthCheck:
    def test_healthy(self, client, db):
        response = client.get("/health/")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"
        assert response.json()["cache"] == "connected"

    def test_database_down(self, client, db):
        with patch("core.views.connection.cursor", side_effect=DatabaseError("down")):
            response = client.get("/health/")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
