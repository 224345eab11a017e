from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from servicedesk.dependencies.auth import TokenRegistry
from servicedesk.main import create_app
from servicedesk.requests import AdminPrincipal

ADMIN = {"Authorization": "Bearer admin-token"}
OWNER = {"Authorization": "Bearer owner-token"}
OTHER = {"Authorization": "Bearer other-token"}

SERVICE_REQUEST_BODY = {
    "category": "CCTV",
    "title": "Camera offline",
    "description": "Entrance camera shows no picture",
    "location": {"lat": 1.3, "lng": 103.8},
    "address": "5 Outlet Street",
    "outletName": "Orchard Outlet",
    "cameraType": "Bullet",
    "cameraCount": 2,
}


@pytest.fixture
def client(service, admin, owner, stranger, registry):
    app = create_app()
    app.state.lifecycle_service = service
    app.state.metrics_registry = registry
    app.state.token_registry = TokenRegistry(
        {"admin-token": admin, "owner-token": owner, "other-token": stranger}
    )
    return TestClient(app)


def _create_service_request(client: TestClient) -> dict:
    response = client.post("/service-requests", json=SERVICE_REQUEST_BODY, headers=OWNER)
    assert response.status_code == 201
    return response.json()


def test_ping(client):
    assert client.get("/ping").json() == {"status": "ok"}
    assert client.get("/ping/ready").json()["database"] == "skipped"


def test_missing_or_unknown_token_is_unauthorized(client):
    assert client.get("/tickets").status_code == 401
    assert client.get("/tickets", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_create_service_request_returns_camel_case(client):
    body = _create_service_request(client)

    assert body["humanId"] == "SRV-000001"
    assert body["status"] == "New"
    assert body["outletName"] == "Orchard Outlet"
    assert body["cameraCount"] == 2
    assert body["timeline"] == []


def test_create_ticket_uses_profile(client):
    response = client.post(
        "/tickets",
        json={"category": "Electrical", "title": "Sparks", "description": "Socket sparks when used"},
        headers=OWNER,
    )

    assert response.status_code == 201
    assert response.json()["humanId"] == "TKT-000001"
    assert response.json()["address"] == "10 Orchard Road"


def test_admin_cannot_raise_ticket_without_profile(client):
    response = client.post(
        "/tickets",
        json={"category": "Electrical", "title": "Sparks", "description": "Socket"},
        headers=ADMIN,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "User location is not set. Please update your profile."


def test_list_page_shape(client):
    _create_service_request(client)
    _create_service_request(client)

    response = client.get("/service-requests", params={"page": 1, "limit": 1}, headers=OWNER)

    body = response.json()
    assert set(body) == {"items", "total", "page", "pages", "hasMore"}
    assert body["total"] == 2
    assert body["pages"] == 2
    assert body["hasMore"] is True
    assert body["items"][0]["humanId"] == "SRV-000002"


def test_list_rejects_oversized_limit(client):
    assert client.get("/service-requests", params={"limit": 500}, headers=ADMIN).status_code == 400


def test_status_update_requires_admin(client):
    created = _create_service_request(client)

    denied = client.put(f"/service-requests/{created['id']}", json={"status": "Completed"}, headers=OWNER)
    allowed = client.put(f"/service-requests/{created['id']}", json={"status": "Completed"}, headers=ADMIN)

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["status"] == "Completed"
    assert allowed.json()["completedAt"] is not None


def test_invalid_status_is_bad_request(client):
    created = _create_service_request(client)

    response = client.put(f"/service-requests/{created['id']}", json={"status": "Closed"}, headers=ADMIN)

    assert response.status_code == 400


def test_unknown_request_is_not_found(client):
    assert client.get("/service-requests/missing", headers=ADMIN).status_code == 404


def test_stranger_cannot_read(client):
    created = _create_service_request(client)

    assert client.get(f"/service-requests/{created['id']}", headers=OTHER).status_code == 403


def test_comment_and_seen_flow(client):
    created = _create_service_request(client)

    empty = client.post(f"/service-requests/{created['id']}/comments", json={"note": ""}, headers=ADMIN)
    comment = client.post(
        f"/service-requests/{created['id']}/comments",
        json={"note": "Quote attached", "priceList": '[{"sNo": 1, "description": "Camera", "price": 80}]', "totalPrice": 80},
        headers=ADMIN,
    )
    seen = client.put(f"/service-requests/{created['id']}/replies/0/seen", headers=OWNER)
    missing = client.put(f"/service-requests/{created['id']}/replies/4/seen", headers=OWNER)

    assert empty.status_code == 400
    assert comment.status_code == 201
    entry = comment.json()["timeline"][0]
    assert entry["addedBy"] == "Vendor Admin"
    assert entry["priceList"] == [{"sNo": 1, "description": "Camera", "price": 80.0}]
    assert seen.json()["timeline"][0]["seenBy"] == ["user-1"]
    assert missing.status_code == 404


def test_mark_viewed(client):
    ids = []
    for _ in range(2):
        response = client.post(
            "/tickets",
            json={"category": "Plumbing", "title": "Leak", "description": "Dripping tap"},
            headers=OWNER,
        )
        ids.append(response.json()["id"])

    response = client.post("/tickets/mark-viewed", json={"ticketIds": [*ids, "unknown"]}, headers=ADMIN)
    empty = client.post("/tickets/mark-viewed", json={"ticketIds": []}, headers=ADMIN)
    denied = client.post("/tickets/mark-viewed", json={"ticketIds": ids}, headers=OWNER)

    assert response.json() == {"updated": 2}
    assert empty.status_code == 400
    assert denied.status_code == 403
    assert client.get("/tickets", headers=ADMIN).json()["total"] == 0
    assert client.get("/tickets", params={"showAll": "true"}, headers=ADMIN).json()["total"] == 2


def test_delete(client):
    created = _create_service_request(client)

    assert client.delete(f"/service-requests/{created['id']}", headers=OWNER).status_code == 204
    assert client.get(f"/service-requests/{created['id']}", headers=OWNER).status_code == 404


def test_metrics_endpoint(client):
    _create_service_request(client)

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'requests_created_total{kind="service_request"} 1.0' in response.text


def test_missing_service_returns_unavailable():
    app = create_app()
    app.state.token_registry = TokenRegistry({"admin-token": AdminPrincipal(id="a", display_name="Admin")})
    client = TestClient(app)

    assert client.get("/tickets", headers=ADMIN).status_code == 503
