"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "X-Request-ID" in response.headers


def test_readyz_all_ok(sendgrid_api_key):
    response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["cache"]["ok"] is True
    assert data["checks"]["cache"]["backend"] == "MemoryCacheStore"
    assert data["checks"]["configuration"]["ok"] is True


def test_readyz_missing_api_key(no_sendgrid_api_key):
    response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["configuration"]["issues"] == ["SENDGRID_API_KEY not set"]


def test_readyz_cache_down(sendgrid_api_key, memory_store):
    with patch.object(memory_store, "ping", AsyncMock(return_value=False)):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["cache"]["ok"] is False


def test_request_id_is_echoed():
    response = client.get("/healthz", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
