from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_reports_version_and_rate_limit(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["github_rate_limit_remaining"] == 60


def test_liveness(client: TestClient) -> None:
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"alive": True}


def test_request_id_is_echoed_or_generated(client: TestClient) -> None:
    echoed = client.get("/health/live", headers={"X-Request-Id": "req_fixed"})
    assert echoed.headers["X-Request-Id"] == "req_fixed"

    generated = client.get("/health/live")
    assert generated.headers["X-Request-Id"].startswith("req_")
