"""Unit tests for the health check endpoint."""

from fastapi.testclient import TestClient

from assessor.health import app


def test_health_ok():
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "reliability-assessment-engine"}
