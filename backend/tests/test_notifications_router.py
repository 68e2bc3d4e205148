import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import ProgrammingError

from amms.db import GetDb
from amms.modules.auth.deps import RequireAuthenticated, RequireServiceOrUser, UserContext
from amms.modules.auth.models import ROLE_SUPERVISOR, ROLE_VIEWER
from amms.modules.notifications import push_router as push_router_module
from amms.modules.notifications import router as notifications_router_module
from amms.modules.notifications.services import PushDispatchResult, SaveInAppNotifications


@pytest.fixture
def caller():
    return {"user": UserContext(Id="u1", Username="u1", Role=ROLE_SUPERVISOR)}


@pytest.fixture
def client(db, caller):
    app = FastAPI()
    app.include_router(push_router_module.router)
    app.include_router(notifications_router_module.router)
    app.dependency_overrides[GetDb] = lambda: db
    app.dependency_overrides[RequireServiceOrUser] = lambda: caller["user"]
    app.dependency_overrides[RequireAuthenticated] = lambda: caller["user"]
    with TestClient(app) as test_client:
        yield test_client


def test_send_without_title_is_400(client, monkeypatch):
    monkeypatch.setenv("FCM_SERVER_KEY", "k")
    response = client.post("/api/push/send", json={"notification": {"body": "b"}, "broadcast": True})
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "notification.title and notification.body are required.",
    }


def test_send_without_server_key_is_500(client, monkeypatch):
    monkeypatch.delenv("FCM_SERVER_KEY", raising=False)
    response = client.post("/api/push/send", json={"notification": {"title": "t", "body": "b"}, "broadcast": True})
    assert response.status_code == 500
    assert response.json()["success"] is False


def test_send_success_omits_empty_fields(client, monkeypatch):
    monkeypatch.setattr(
        push_router_module,
        "SendPushNotification",
        lambda db, payload: PushDispatchResult(sent=2, failed=1, total=3, errors=["Token 2: NotRegistered"]),
    )
    response = client.post("/api/push/send", json={"notification": {"title": "t", "body": "b"}, "roles": [1]})
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "sent": 2,
        "failed": 1,
        "total": 3,
        "errors": ["Token 2: NotRegistered"],
    }


def test_send_accepts_long_title_and_body(client, monkeypatch):
    seen = {}

    def _send(db, payload):
        seen["payload"] = payload
        return PushDispatchResult(sent=1, failed=0, total=1)

    monkeypatch.setattr(push_router_module, "SendPushNotification", _send)
    notification = {"title": "T" * 161, "body": "B" * 401, "image": "https://cdn/" + "i" * 400}
    response = client.post("/api/push/send", json={"notification": notification, "roles": [1]})
    assert response.status_code == 200
    assert len(seen["payload"].notification.body) == 401


def test_viewer_cannot_send(client, caller):
    caller["user"] = UserContext(Id="v1", Username="v1", Role=ROLE_VIEWER)
    response = client.post("/api/push/send", json={"notification": {"title": "t", "body": "b"}})
    assert response.status_code == 403


def test_completed_for_unknown_record_is_404(client):
    response = client.post("/api/push/completed", json={"maintenance_id": 404})
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Maintenance record not found"}


def test_device_registration_round_trip(client):
    response = client.post("/api/push/devices/register", json={"token": "device-token-abc", "device_type": "ios"})
    assert response.status_code == 200
    assert response.json()["device_type"] == "ios"
    assert response.json()["is_active"] is True

    response = client.post("/api/push/devices/unregister", json={"token": "device-token-abc"})
    assert response.json() == {"updated_count": 1}

    response = client.post("/api/push/devices/register", json={"token": "short"})
    assert response.status_code == 422


def test_settings_defaults_and_validation(client):
    response = client.get("/api/push/settings")
    assert response.json()["emergency"] is True

    response = client.put("/api/push/settings", json={"pm_schedule": False, "quiet_hours_start": "21:30"})
    assert response.status_code == 200
    assert response.json()["pm_schedule"] is False
    assert response.json()["quiet_hours_start"] == "21:30"

    response = client.put("/api/push/settings", json={"quiet_hours_end": "99:99"})
    assert response.status_code == 400


def test_client_config_is_public(client):
    response = client.get("/api/push/client-config")
    assert response.status_code == 200
    assert response.json()["fallback_path"] == "/notifications"


def test_in_app_notifications_routes(client, db):
    SaveInAppNotifications(db, user_ids=["u1"], notification_type="info", title="Hello", message="World")

    response = client.get("/api/notifications")
    body = response.json()
    assert body["unread_count"] == 1
    assert body["notifications"][0]["title"] == "Hello"
    notification_id = body["notifications"][0]["id"]

    assert client.get("/api/notifications/badge-count").json() == {"unread_count": 1}
    assert client.post(f"/api/notifications/{notification_id}/read").json()["is_read"] is True
    assert client.post("/api/notifications/999/read").status_code == 404
    assert client.post("/api/notifications/read-all").json() == {"updated_count": 0}
    assert client.get("/api/notifications", params={"user_id": "someone-else"}).status_code == 403


def test_in_app_storage_missing_is_503(client, monkeypatch):
    def _raise(*args, **kwargs):
        raise ProgrammingError("SELECT 1", {}, Exception("Invalid object name"))

    monkeypatch.setattr(notifications_router_module, "CountUnread", _raise)
    response = client.get("/api/notifications/badge-count")
    assert response.status_code == 503
