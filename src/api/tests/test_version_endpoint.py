"""Tests for the /version and /healthcheck endpoints."""

import pytest
from django.conf import settings
from django.test.client import Client
from django.urls import reverse

pytestmark = pytest.mark.django_db


class TestVersionEndpoint:
    """Tests for /version."""

    def test_returns_version(self, client: Client) -> None:
        """Test that /version returns the app version."""
        response = client.get(reverse("api:version"))

        assert response.status_code == 200
        assert response.json() == {"version": settings.VERSION}


class TestHealthcheckEndpoint:
    """Tests for /healthcheck."""

    def test_returns_ok(self, client: Client) -> None:
        """Test that /healthcheck reports ok."""
        response = client.get(reverse("api:healthcheck"))

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
