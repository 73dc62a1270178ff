"""Tests for API Authentication."""

from unittest.mock import patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from wamanager.api.auth import (
    _constant_time_compare,
    generate_api_key,
    is_public_path,
    verify_api_key,
)


class TestGenerateApiKey:
    """Tests for API key generation."""

    def test_generate_api_key_length(self):
        """Generated key is 64 characters (32 bytes hex)."""
        key = generate_api_key()
        assert len(key) == 64
        int(key, 16)

    def test_generate_api_key_unique(self):
        keys = [generate_api_key() for _ in range(10)]
        assert len(set(keys)) == 10


class TestConstantTimeCompare:
    """Tests for constant-time comparison."""

    def test_equal_strings(self):
        assert _constant_time_compare("test123", "test123") is True

    def test_unequal_strings(self):
        assert _constant_time_compare("test123", "test456") is False
        assert _constant_time_compare("a", "") is False


class TestPublicPaths:
    """Tests for the public path list."""

    @pytest.mark.parametrize("path", ["/health", "/healthz", "/readyz", "/metrics"])
    def test_public(self, path):
        assert is_public_path(path)

    @pytest.mark.parametrize("path", ["/api/devices", "/api/stats", "/healthz/extra"])
    def test_protected(self, path):
        assert not is_public_path(path)


class TestAuthEndpoint:
    """Tests for authentication endpoint behavior."""

    @pytest.fixture
    def app_with_auth(self):
        """Create test app with an authenticated route and a public probe."""
        app = FastAPI()

        @app.get("/api/devices", dependencies=[Depends(verify_api_key)])
        async def protected():
            return {"status": "ok"}

        @app.get("/healthz", dependencies=[Depends(verify_api_key)])
        async def healthz():
            return {"status": "alive"}

        return app

    @patch("wamanager.api.auth.get_settings")
    def test_public_path_skips_auth(self, mock_settings, app_with_auth):
        """Probes are reachable without a key."""
        mock_settings.return_value.auth_enabled = True
        mock_settings.return_value.environment = "production"
        mock_settings.return_value.api_key = "valid-key"

        client = TestClient(app_with_auth)
        assert client.get("/healthz").status_code == 200

    @patch("wamanager.api.auth.get_settings")
    def test_auth_disabled_allows_access(self, mock_settings, app_with_auth):
        mock_settings.return_value.auth_enabled = False
        mock_settings.return_value.api_key = "test-key"

        client = TestClient(app_with_auth)
        assert client.get("/api/devices").status_code == 200

    @patch("wamanager.api.auth.get_settings")
    def test_development_no_key_allows_access(self, mock_settings, app_with_auth):
        """Development without a configured key is open."""
        mock_settings.return_value.auth_enabled = True
        mock_settings.return_value.environment = "development"
        mock_settings.return_value.api_key = None

        client = TestClient(app_with_auth)
        assert client.get("/api/devices").status_code == 200

    @patch("wamanager.api.auth.get_settings")
    def test_missing_key_returns_401(self, mock_settings, app_with_auth):
        mock_settings.return_value.auth_enabled = True
        mock_settings.return_value.environment = "production"
        mock_settings.return_value.api_key = "valid-key"

        client = TestClient(app_with_auth)
        response = client.get("/api/devices")
        assert response.status_code == 401
        assert "Missing API key" in response.json()["detail"]

    @patch("wamanager.api.auth.get_settings")
    def test_invalid_key_returns_401(self, mock_settings, app_with_auth):
        mock_settings.return_value.auth_enabled = True
        mock_settings.return_value.environment = "production"
        mock_settings.return_value.api_key = "valid-key"

        client = TestClient(app_with_auth)
        response = client.get("/api/devices", headers={"X-API-Key": "wrong-key"})
        assert response.status_code == 401
        assert "Invalid API key" in response.json()["detail"]

    @patch("wamanager.api.auth.get_settings")
    def test_development_with_key_enforced(self, mock_settings, app_with_auth):
        """A configured key is enforced in development too."""
        mock_settings.return_value.auth_enabled = True
        mock_settings.return_value.environment = "development"
        mock_settings.return_value.api_key = "valid-key"

        client = TestClient(app_with_auth)
        assert client.get("/api/devices").status_code == 401
        assert client.get("/api/devices", headers={"X-API-Key": "valid-key"}).status_code == 200
