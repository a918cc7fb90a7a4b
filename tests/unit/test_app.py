def test_root_returns_message(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Employee of the Month API"


def test_health_returns_status(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] in ("healthy", "degraded")
    assert "version" in data
    assert data["version"] == "0.1.0"
    assert "services" in data


def test_employee_routes_need_a_configured_store(client, mock_user_admin):
    from eotm.core.dependencies import get_current_user
    from eotm.main import app

    app.dependency_overrides[get_current_user] = lambda: mock_user_admin
    response = client.get("/api/v1/employees")

    assert response.status_code == 503
    assert response.json()["detail"] == "Employee store not configured"
