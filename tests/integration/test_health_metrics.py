"""Integration tests for /health, /healthz and /metrics endpoints."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from backend.app.api.routes.health import check_db, check_providers, check_redis
from backend.app.config import Settings
from backend.app.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


class TestHealthEndpoint:
    """Test /health and /healthz endpoints."""

    def test_health_is_always_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @patch("backend.app.api.routes.health.check_db")
    @patch("backend.app.api.routes.health.check_redis")
    def test_healthz_returns_200_when_all_ok(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        """Test /healthz returns 200 when DB and Redis are healthy."""
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["components"]["db"] == "ok"
        assert data["components"]["redis"] == "ok"
        assert "providers" in data["components"]

    @patch("backend.app.api.routes.health.check_db")
    @patch("backend.app.api.routes.health.check_redis")
    def test_healthz_returns_503_when_db_fails(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        """Test /healthz returns 503 when DB check fails."""
        mock_check_db.return_value = (False, "error: OperationalError")
        mock_check_redis.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["db"] == "error: OperationalError"
        assert data["components"]["redis"] == "ok"

    @patch("backend.app.api.routes.health.check_db")
    @patch("backend.app.api.routes.health.check_redis")
    def test_healthz_returns_503_when_redis_fails(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        """Test /healthz returns 503 when Redis check fails."""
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (False, "error: TimeoutError")

        response = client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["redis"] == "error: TimeoutError"


class TestHealthChecks:
    @pytest.mark.asyncio
    async def test_unconfigured_backends_are_not_failures(self) -> None:
        settings = Settings(_env_file=None, database_url=None, redis_url=None)

        assert await check_db(settings) == (True, "not_configured")
        assert await check_redis(settings) == (True, "not_configured")

    def test_check_providers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("OPENAI_API_KEY", "GOOGLE_MAPS_KEY", "UNSPLASH_ACCESS_KEY"):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.delenv("ALLOW_STUB_PROVIDERS", raising=False)
        assert check_providers(Settings(_env_file=None)) == "missing"
        assert check_providers(Settings(_env_file=None, allow_stub_providers=True)) == "stub"
        assert (
            check_providers(
                Settings(_env_file=None, openai_api_key="sk-test", unsplash_access_key="u")
            )
            == "narrative,photos"
        )


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    def test_metrics_returns_prometheus_format(self, client: TestClient) -> None:
        """Test /metrics returns Prometheus text format."""
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "# HELP" in response.text

    def test_metrics_includes_provider_and_pipeline_metrics(self, client: TestClient) -> None:
        """Test /metrics exposes provider and pipeline metrics."""
        from backend.app.utils.metrics import (
            provider_cache_hits_total,
            provider_errors_total,
            provider_latency_ms,
            record_resolution,
            record_stage,
        )

        provider_latency_ms.labels(provider="places", outcome="success").observe(100)
        provider_errors_total.labels(provider="places", reason="timeout").inc()
        provider_cache_hits_total.labels(provider="places").inc()
        record_resolution("catalog")
        record_stage("generate", "resolve", 42.0)

        response = client.get("/metrics")

        assert response.status_code == 200
        text = response.text
        assert "provider_latency_ms" in text
        assert "provider_errors_total" in text
        assert "provider_cache_hits_total" in text
        assert "place_resolutions_total" in text
        assert "pipeline_stage_latency_ms" in text


class TestRootEndpoint:
    """Test root endpoint."""

    def test_root_returns_api_info(self, client: TestClient) -> None:
        """Test root endpoint returns API information."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Day Guide API"
        assert data["version"] == "0.1.0"
