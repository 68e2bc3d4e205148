from amms.modules.notifications.categories import DefaultPathFor, ParseNotificationType, NotificationType
from amms.modules.notifications.utils.serialization import ParseJson, StringifyData
from amms.modules.notifications.utils.text import (
    BuildCompletedBody,
    BuildEmergencyBody,
    FormatDaysText,
    FormatRepairDuration,
)


def test_format_days_text():
    assert FormatDaysText(0) == "today"
    assert FormatDaysText(1) == "tomorrow"
    assert FormatDaysText(3) == "in 3 days"


def test_format_repair_duration():
    assert FormatRepairDuration(45) == "45m"
    assert FormatRepairDuration(120) == "2h"
    assert FormatRepairDuration(125) == "2h 5m"


def test_message_bodies():
    assert BuildEmergencyBody("EQ-1", "  Leak ") == "[EQ-1] Leak"
    assert BuildEmergencyBody("EQ-1", None) == "Emergency repair requested for equipment EQ-1."
    assert BuildCompletedBody("EQ-1", None) == "[EQ-1] Repair has been completed."
    assert BuildCompletedBody("EQ-1", 8) == "[EQ-1] Repair has been completed. (rating: 8/10)"


def test_stringify_data_drops_none_and_encodes_json():
    assert StringifyData({"id": 5, "flag": True, "skip": None}) == {"id": "5", "flag": "true"}
    assert StringifyData({"meta": {"a": 1}, "ids": [1, 2], "url": "/pm"}) == {
        "meta": '{"a":1}',
        "ids": "[1,2]",
        "url": "/pm",
    }
    assert StringifyData(None) == {}


def test_parse_json_is_lenient():
    assert ParseJson('{"a": 1}') == {"a": 1}
    assert ParseJson("not json") is None
    assert ParseJson(None) is None


def test_notification_type_parsing():
    assert ParseNotificationType(" Emergency ") is NotificationType.Emergency
    assert ParseNotificationType("unknown") is None
    assert DefaultPathFor("long_repair") == "/maintenance/monitor"
    assert DefaultPathFor("unknown") == "/notifications"
