"""Tests for FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


def test_root_endpoint(client: TestClient) -> None:
    """Test root endpoint returns app info."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Simplidoc"
    assert data["status"] == "operational"


def test_health_check(client: TestClient) -> None:
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_routers_mounted() -> None:
    """Test document and chat routes are registered under /api/v1."""
    paths = {route.path for route in app.routes}
    assert "/api/v1/documents/upload" in paths
    assert "/api/v1/documents/{document_id}" in paths
    assert "/api/v1/chat/{document_id}/messages" in paths
    assert "/api/v1/chat/{document_id}/speak" in paths
