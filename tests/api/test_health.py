"""
Tests for the health check endpoint.
"""

from ledger_engine.config import get_settings


def test_health_check_returns_200(client):
    """
    Verify the health endpoint responds with HTTP 200.

    This is the most basic test: can the application
    receive a request and respond? If this fails, nothing
    else will work.
    """
    response = client.get("/health")
    assert response.status_code == 200


def test_health_check_returns_service_name(client):
    """
    Verify the response includes the correct service name.

    This catches accidental changes to the response format
    that could break monitoring systems that parse this field.
    """
    response = client.get("/health")
    data = response.json()
    assert data["service"] == "ledger-engine"


def test_health_check_reports_database_status(client):
    response = client.get("/health")
    data = response.json()
    assert data["database"] == "healthy"


def test_health_check_reports_scheduler_stopped(client):
    """The scheduler only runs when SCHEDULER_ENABLED is set."""
    response = client.get("/health")
    assert response.json()["scheduler"] == "stopped"


def test_health_check_reports_environment(client):
    response = client.get("/health")
    assert response.json()["environment"] == get_settings().ENVIRONMENT
