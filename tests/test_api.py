from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from couponsync.api.main import app, get_service
from couponsync.logic.run_state import SCHEDULED
from couponsync.providers import build_clients
from couponsync.service import SyncService
from couponsync.utils.dates import utcnow


@pytest.fixture()
def service(engine, bare_settings, cache):
    return SyncService(bare_settings, engine, build_clients(bare_settings, cache=cache), cache=cache)


@pytest.fixture()
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_manual_run_starts_in_background(client):
    response = client.post("/runs")
    assert response.status_code == 202
    assert response.json()["run_id"]
    status = client.get("/runs/status").json()
    assert status["status"] == "idle"
    assert status["last_success_date"] is not None


def test_repeated_manual_start_is_rate_limited(client):
    assert client.post("/runs").status_code == 202
    response = client.post("/runs")
    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) >= 1
    assert response.json()["status"] == "rate_limited"


def test_start_while_running_conflicts(client, service):
    service.controller.try_start(SCHEDULED)
    response = client.post("/runs")
    assert response.status_code == 409
    assert response.json()["status"] == "already_running"
    assert client.post("/runs/stop").json() == {"stop_requested": True}


def test_stop_without_run(client):
    assert client.post("/runs/stop").json() == {"stop_requested": False}


def test_maintenance_routes(client, service):
    brand = service.catalog.create_brand("Glow Lab")
    yesterday = utcnow() - timedelta(days=1)
    for source_id in ("1", "2"):
        service.catalog.create_coupon(
            source="awin", source_id=source_id, brand_id=brand.id, title="Offer", code="GLOW20"
        )
    service.catalog.create_coupon(
        source="awin", source_id="3", brand_id=brand.id, title="Old", expires_at=yesterday
    )
    assert client.post("/maintenance/expired").json() == {"deleted": 1}
    dry = client.post("/maintenance/duplicates").json()
    assert dry["stats"]["duplicates"] == 1
    assert dry["stats"]["dry_run"] is True
    live = client.post("/maintenance/duplicates", params={"dry_run": "false"}).json()
    assert live["stats"]["deleted"] == 1


def test_maintenance_conflicts_with_active_run(client, service):
    service.controller.try_start(SCHEDULED)
    assert client.post("/maintenance/expired").status_code == 409


def test_provider_connection_routes(client):
    assert client.get("/providers/unknown/test").status_code == 404
    assert client.get("/providers/awin/test").json() == {"provider": "awin", "ok": False}


def test_brand_batch_route(client, service):
    service.catalog.create_brand("Alpha")
    response = client.post("/brands/batch", json={"offset": 0, "batch_size": 5})
    body = response.json()
    assert body["processed"] == 1
    assert body["total"] == 1
    assert body["completed"] is True
    assert len(service.catalog.find_brand_by_name("Alpha").hashtags) == 6


def test_notification_routes(client, service):
    service.notifications.add("error", {"message": "boom"})
    items = client.get("/notifications").json()
    assert items[0]["kind"] == "error"
    assert client.post("/notifications/read").json() == {"marked": 1}
    assert client.get("/notifications", params={"unread_only": "true"}).json() == []
    client.delete("/notifications")
    assert client.get("/notifications").json() == []


def test_brand_batch_route_accepts_cursor(client, service):
    alpha = service.catalog.create_brand("Alpha")
    service.catalog.create_brand("Beta")
    body = client.post("/brands/batch", json={"after_id": alpha.id, "batch_size": 5}).json()
    assert body["processed"] == 1
    assert body["completed"] is True
    assert body["next_after_id"] == service.catalog.find_brand_by_name("Beta").id
    assert service.catalog.find_brand_by_name("Alpha").hashtags == []
