import time
from types import SimpleNamespace

import jwt
import pytest
from fastapi import HTTPException

from amms.modules.auth.deps import SERVICE_KEY_HEADER, RequireAuthenticated, RequireServiceOrUser
from amms.modules.auth.models import ROLE_SUPERVISOR

SECRET = "amms-test-signing-secret-0123456789abcdef"


def _request(headers):
    return SimpleNamespace(headers=headers)


def _bearer(payload, secret=SECRET):
    return {"Authorization": f"Bearer {jwt.encode(payload, secret, algorithm='HS256')}"}


@pytest.fixture(autouse=True)
def _jwt_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", SECRET)
    monkeypatch.delenv("JWT_AUDIENCE", raising=False)
    monkeypatch.setenv("SERVICE_ROLE_KEY", "service-key-123")


def test_bearer_token_resolves_active_user(db, make_user):
    make_user("u1", role=ROLE_SUPERVISOR, department="plant")
    user = RequireAuthenticated(_request(_bearer({"sub": "u1"})), db)
    assert (user.Id, user.Role, user.Department, user.IsService) == ("u1", ROLE_SUPERVISOR, "plant", False)


def test_missing_header_is_unauthorized(db):
    with pytest.raises(HTTPException) as exc_info:
        RequireAuthenticated(_request({}), db)
    assert exc_info.value.status_code == 401


def test_expired_and_forged_tokens_are_rejected(db, make_user):
    make_user("u1")
    with pytest.raises(HTTPException) as exc_info:
        RequireAuthenticated(_request(_bearer({"sub": "u1", "exp": int(time.time()) - 60})), db)
    assert exc_info.value.detail == "Token expired"

    with pytest.raises(HTTPException) as exc_info:
        RequireAuthenticated(_request(_bearer({"sub": "u1"}, secret="amms-other-signing-secret-0123456789abcdef")), db)
    assert exc_info.value.detail == "Invalid token"


def test_audience_is_checked_when_configured(db, make_user, monkeypatch):
    make_user("u1")
    monkeypatch.setenv("JWT_AUDIENCE", "authenticated")
    user = RequireAuthenticated(_request(_bearer({"sub": "u1", "aud": "authenticated"})), db)
    assert user.Id == "u1"
    with pytest.raises(HTTPException):
        RequireAuthenticated(_request(_bearer({"sub": "u1", "aud": "someone-else"})), db)


def test_inactive_user_is_forbidden(db, make_user):
    make_user("u1", is_active=False)
    with pytest.raises(HTTPException) as exc_info:
        RequireAuthenticated(_request(_bearer({"sub": "u1"})), db)
    assert exc_info.value.status_code == 403


def test_service_key_yields_service_context(db):
    user = RequireServiceOrUser(_request({SERVICE_KEY_HEADER: "service-key-123"}), db)
    assert user.IsService is True

    with pytest.raises(HTTPException) as exc_info:
        RequireServiceOrUser(_request({SERVICE_KEY_HEADER: "wrong"}), db)
    assert exc_info.value.status_code == 401


def test_service_or_user_falls_back_to_bearer(db, make_user):
    make_user("u1")
    user = RequireServiceOrUser(_request(_bearer({"sub": "u1"})), db)
    assert user.Id == "u1"
    assert user.IsService is False
