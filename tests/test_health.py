"""tests for health check, root and metrics endpoints"""

from gmx.core.config import settings


def test_root_endpoint(client):
    """test root endpoint => names the service"""
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "GitHub Maintenance Exporter"


def test_health_check(client):
    """test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["project_name"] == settings.PROJECT_NAME
    assert data["project"] == "mlab-oti"
    assert data["version"] == "1.0.0"
    assert data["jobs"] == []


def test_metrics_endpoint(client):
    """maintenance gauges are exported after a change"""
    client.app.state.maintenance.update_site("vir01", 2, "1")

    response = client.get("/metrics/")
    assert response.status_code == 200
    assert 'gmx_site_maintenance{site="vir01"} 1.0' in response.text
    assert "gmx_machine_maintenance" in response.text
