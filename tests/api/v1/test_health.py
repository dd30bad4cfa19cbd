from fastapi.testclient import TestClient


def test_health_check(client: TestClient):
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_status"] in ["healthy", "unhealthy"]


def test_health_reports_unreachable_database(client: TestClient, fake_db):
    fake_db.queue(ConnectionRefusedError("db down"))

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["database_status"] == "unhealthy"
