"""
Tests for health endpoint
"""
from app.core.constants import SERVICE_NAME


def test_health_endpoint(client):
    """Test health endpoint returns the envelope with service status"""
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()

    assert body["success"] is True
    assert body["data"]["status"] == "ok"
    assert body["data"]["service"] == SERVICE_NAME
    assert "error" not in body
