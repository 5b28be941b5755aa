"""
Unit tests for player join-request API routes.
"""

from fastapi.testclient import TestClient

from academy_backend.api.main import app
from academy_backend.services import auth_service, user_service, player_request_service
from academy_backend.utils.errors import ConflictError, ForbiddenError, NotFoundError


SAMPLE_REQUEST = {
    "id": 3,
    "user_id": 20,
    "academy_id": 1,
    "academy": {"id": 1, "name": "Academy A", "name_ar": None, "phone": None, "logo": None},
    "user_name": "Player One",
    "user_email": "player.one@example.com",
    "academy_name": "Academy A",
    "status": "pending",
    "message": "",
    "age": 14,
    "position": "",
    "responded_at": None,
    "expire_at": None,
    "created_at": "2026-10-18T10:00:00+00:00",
    "updated_at": "2026-10-18T10:00:00+00:00",
}


def make_client_with_auth(monkeypatch, role="user", user_id=20, academy_id=None):
    """Create a test client with mocked authentication."""

    def fake_verify_token(token):
        return {"user_id": user_id, "role": role}

    async def fake_get_user_by_id(session, uid):
        return {
            "id": user_id,
            "name": "Player One",
            "email": "player.one@example.com",
            "phone": None,
            "role": role,
            "academy_id": academy_id,
        }

    monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)

    return TestClient(app), {"Authorization": "Bearer dummy"}


def test_invalid_token_rejected():
    response = TestClient(app).get(
        "/api/playerRequests/my", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid authentication token"}


def test_create_request(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)
    captured = {}

    async def fake_create(session, principal, academy_id, **kwargs):
        captured["academy_id"] = academy_id
        captured.update(kwargs)
        return SAMPLE_REQUEST

    monkeypatch.setattr(player_request_service, "create_request", fake_create, raising=True)

    response = client.post(
        "/api/playerRequests/1",
        json={"message": "", "age": 14, "userName": "P. One"},
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert captured["academy_id"] == 1
    assert captured["user_name"] == "P. One"


def test_duplicate_request_conflict(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch)

    async def fake_create(session, principal, academy_id, **kwargs):
        raise ConflictError("You already have a pending request")

    monkeypatch.setattr(player_request_service, "create_request", fake_create, raising=True)

    response = client.post("/api/playerRequests/1", json={}, headers=headers)
    assert response.status_code == 409
    assert response.json() == {"error": "You already have a pending request"}


def test_academy_cannot_create_request(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="academy", academy_id=1)

    response = client.post("/api/playerRequests/1", json={}, headers=headers)
    assert response.status_code == 403


def test_academy_reject_request(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="academy", user_id=10, academy_id=1)
    seen = {}

    async def fake_update(session, request_id, principal, status, academy_id=None):
        seen.update(request_id=request_id, status=status, academy_id=academy_id)
        return dict(
            SAMPLE_REQUEST,
            status="rejected",
            responded_at="2026-10-18T10:05:00+00:00",
            expire_at="2026-10-18T10:20:00+00:00",
        )

    monkeypatch.setattr(player_request_service, "update_request_status", fake_update, raising=True)

    response = client.patch(
        "/api/playerRequests/academy/1/3", json={"status": "rejected"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["expire_at"] == "2026-10-18T10:20:00+00:00"
    assert seen == {"request_id": 3, "status": "rejected", "academy_id": 1}


def test_update_request_invalid_status_is_400(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="academy", academy_id=1)

    response = client.patch(
        "/api/playerRequests/academy/1/3", json={"status": "pending"}, headers=headers
    )
    assert response.status_code == 400
    assert "error" in response.json()


def test_other_academy_forbidden(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="academy", academy_id=2)

    async def fake_update(session, request_id, principal, status, academy_id=None):
        raise ForbiddenError("Forbidden")

    monkeypatch.setattr(player_request_service, "update_request_status", fake_update, raising=True)

    response = client.patch(
        "/api/playerRequests/academy/1/3", json={"status": "approved"}, headers=headers
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden"}


def test_admin_routes_require_admin(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="academy", academy_id=1)

    assert client.get("/api/playerRequests/admin", headers=headers).status_code == 403
    assert client.delete("/api/playerRequests/admin/3", headers=headers).status_code == 403


def test_admin_delete_missing_request(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="admin")

    async def fake_delete(session, request_id, principal, academy_id=None):
        raise NotFoundError("Request not found")

    monkeypatch.setattr(player_request_service, "delete_request", fake_delete, raising=True)

    response = client.delete("/api/playerRequests/admin/3", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Request not found"}


def test_academy_listing_pagination_params(monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, role="academy", academy_id=1)
    seen = {}

    async def fake_list(session, principal, academy_id, page=1, limit=10):
        seen.update(academy_id=academy_id, page=page, limit=limit)
        return {"items": [SAMPLE_REQUEST], "page": page, "pages": 3, "total": 21}

    monkeypatch.setattr(player_request_service, "list_academy_requests", fake_list, raising=True)

    response = client.get("/api/playerRequests/academy/1?page=2&limit=10", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 21
    assert body["page"] == 2
    assert seen == {"academy_id": 1, "page": 2, "limit": 10}
