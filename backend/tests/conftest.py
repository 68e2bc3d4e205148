import json
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from amms.db import Base
from amms.modules.auth import models as auth_models
from amms.modules.maintenance import models as maintenance_models  # noqa: F401
from amms.modules.notifications import models as notifications_models
from amms.modules.notifications.push_service import FcmConfig

SCHEMA_MAP = {"auth": None, "maintenance": None, "push": None}


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        execution_options={"schema_translate_map": SCHEMA_MAP},
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def fcm_config():
    return FcmConfig(server_key="test-server-key", endpoint="https://fcm.test/send")


class FcmRecorder:
    """MockTransport handler that records requests and answers per token."""

    def __init__(self, errors_by_token=None, status_code=200):
        self.errors_by_token = errors_by_token or {}
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="provider unavailable")
        results = []
        for token in payload["registration_ids"]:
            error = self.errors_by_token.get(token)
            results.append({"error": error} if error else {"message_id": f"m-{token}"})
        success = sum(1 for item in results if "message_id" in item)
        return httpx.Response(
            200,
            json={"success": success, "failure": len(results) - success, "results": results},
        )

    @property
    def sent_tokens(self):
        return [token for payload in self.requests for token in payload["registration_ids"]]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def fcm():
    return FcmRecorder()


@pytest.fixture
def make_user(db):
    def _make(user_id, role=auth_models.ROLE_TECHNICIAN, department=None, is_active=True):
        user = auth_models.User(
            Id=user_id,
            Username=user_id,
            Role=role,
            Department=department,
            IsActive=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_token(db):
    def _make(user_id, token, is_active=True):
        now = datetime.now(tz=timezone.utc)
        record = notifications_models.DeviceToken(
            UserId=user_id,
            Token=token,
            DeviceType="web",
            IsActive=is_active,
            LastUsedAt=now,
            CreatedAt=now,
            UpdatedAt=now,
        )
        db.add(record)
        db.commit()
        return record

    return _make


@pytest.fixture
def make_settings(db):
    def _make(user_id, **flags):
        record = notifications_models.PushSettings(UserId=user_id, **flags)
        db.add(record)
        db.commit()
        return record

    return _make
