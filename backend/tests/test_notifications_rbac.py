import pytest
from fastapi import HTTPException

from amms.modules.auth.deps import UserContext
from amms.modules.auth.models import ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN, ROLE_VIEWER
from amms.modules.notifications.utils.rbac import (
    CanAccessNotification,
    CanSendPush,
    IsAdmin,
    RequirePushSender,
)


def test_notifications_access_owner():
    user = UserContext(Id="u5", Username="tech", Role=ROLE_TECHNICIAN)
    assert CanAccessNotification(user, "u5")


def test_notifications_access_denied_for_non_owner():
    user = UserContext(Id="u5", Username="tech", Role=ROLE_TECHNICIAN)
    assert not CanAccessNotification(user, "u8")


def test_notifications_access_admin_role():
    user = UserContext(Id="u5", Username="admin", Role=ROLE_ADMIN)
    assert IsAdmin(user)
    assert CanAccessNotification(user, "u8")


def test_push_senders_are_roles_one_to_three_or_service():
    for role in (ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN):
        assert CanSendPush(UserContext(Id="u", Username="u", Role=role))
    assert not CanSendPush(UserContext(Id="u", Username="u", Role=ROLE_VIEWER))
    assert CanSendPush(UserContext(Id="service", Username="service", Role=ROLE_VIEWER, IsService=True))


def test_require_push_sender_rejects_viewer():
    checker = RequirePushSender()
    with pytest.raises(HTTPException) as exc_info:
        checker(user=UserContext(Id="u", Username="u", Role=ROLE_VIEWER))
    assert exc_info.value.status_code == 403

    supervisor = UserContext(Id="s", Username="s", Role=ROLE_SUPERVISOR)
    assert checker(user=supervisor) is supervisor
