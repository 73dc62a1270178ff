"""Tests for health endpoints."""

from fastapi.testclient import TestClient

from wamanager.api.routes import health


class TestHealthEndpoints:
    """Test suite for health check endpoints."""

    def test_healthz_always_returns_alive(self, client: TestClient):
        """Liveness probe should always return 200."""
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_readyz_after_startup(self, client: TestClient):
        """All components come up during startup."""
        response = client.get("/readyz")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "ready"
        assert data["components"] == {"store": True, "orchestrator": True, "dispatcher": True}

    def test_health_combined_endpoint(self, client: TestClient):
        """Combined health endpoint should provide full status."""
        response = client.get("/health")
        data = response.json()

        assert data["status"] == "healthy"
        assert data["ready"] is True
        assert data["sessions"] == {"active": 0}

    def test_readyz_503_when_component_down(self, client: TestClient):
        """Readiness should return 503 when a component is down."""
        health.set_component_health("dispatcher", False)
        try:
            response = client.get("/readyz")
            assert response.status_code == 503
            assert response.json()["status"] == "not_ready"
        finally:
            health.set_component_health("dispatcher", True)

    def test_health_degraded_when_not_ready(self, client: TestClient):
        health.set_ready(False)
        try:
            response = client.get("/health")
            assert response.status_code == 503
            assert response.json()["status"] == "degraded"
        finally:
            health.set_ready(True)

    def test_health_does_not_require_auth(self, client: TestClient):
        """Probes stay open even with a key configured."""
        response = client.get("/healthz", headers={"X-API-Key": "anything"})
        assert response.status_code == 200


class TestHealthState:
    """Tests for module-level health tracking."""

    def test_unknown_component_ignored(self):
        health.set_component_health("gpu", True)
        assert "gpu" not in health.get_component_health()

    def test_component_health_is_a_copy(self):
        components = health.get_component_health()
        components["store"] = "changed"
        assert health.get_component_health()["store"] != "changed"


class TestMetricsEndpoint:
    """Tests for the Prometheus scrape endpoint."""

    def test_metrics_exposition(self, client: TestClient):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "wamanager_active_sessions" in response.text

    def test_metrics_disabled(self, client: TestClient, monkeypatch):
        from wamanager.config.settings import get_settings

        monkeypatch.setattr(get_settings(), "metrics_enabled", False)
        assert client.get("/metrics").status_code == 404
