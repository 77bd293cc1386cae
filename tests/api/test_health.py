"""
Tests for the health check endpoint.
"""


def test_health_check_returns_200(client):
    """Verify the health endpoint responds with HTTP 200."""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_check_returns_service_name(client):
    """
    Verify the response includes the correct service name.

    Monitoring parses this field, so a rename should fail here
    first.
    """
    response = client.get("/health")
    data = response.json()
    assert data["service"] == "ledger-posting-engine"


def test_health_check_reports_database_status(client):
    response = client.get("/health")
    data = response.json()
    assert "database" in data
    assert data["database"] in ("healthy", "unhealthy")
