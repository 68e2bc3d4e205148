from sqlalchemy.exc import OperationalError

from amms.modules.notifications.audience import AudienceSelector
from amms.modules.notifications.dispatch_log import SaveDispatchLog
from amms.modules.notifications.models import DispatchLog
from amms.modules.notifications.push_service import FcmResult
from amms.modules.notifications.utils.serialization import ParseJson


def _save(db, **overrides):
    values = {
        "notification_type": "emergency",
        "title": "Emergency repair",
        "body": "[EQ-7] Leak",
        "data": {"type": "emergency"},
        "selector": AudienceSelector.Build(roles=[1, 2]),
        "result": FcmResult(success=1, failure=1, errors=["Token 1: NotRegistered"]),
    }
    values.update(overrides)
    return SaveDispatchLog(db, **values)


def test_save_dispatch_log_records_targets_and_counts(db):
    record = _save(db)
    assert record is not None
    assert (record.SuccessCount, record.FailureCount) == (1, 1)
    assert ParseJson(record.TargetRolesJson) == [1, 2]
    assert ParseJson(record.ErrorsJson) == ["Token 1: NotRegistered"]


def test_save_dispatch_log_defaults_type_to_info(db):
    record = _save(db, notification_type=None)
    assert record.Type == "info"


def test_save_dispatch_log_storage_failure_is_swallowed(db, monkeypatch):
    def _fail():
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(db, "commit", _fail)
    assert _save(db) is None

    monkeypatch.undo()
    assert db.query(DispatchLog).count() == 0
