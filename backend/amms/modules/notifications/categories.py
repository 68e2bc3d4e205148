from __future__ import annotations

from enum import Enum


class NotificationType(str, Enum):
    Emergency = "emergency"
    LongRepair = "long_repair"
    Completed = "completed"
    PmSchedule = "pm_schedule"
    Info = "info"


# Preference column per category; info is gated only by the global flag.
PREFERENCE_FIELDS: dict[NotificationType, str] = {
    NotificationType.Emergency: "Emergency",
    NotificationType.LongRepair: "LongRepair",
    NotificationType.Completed: "Completed",
    NotificationType.PmSchedule: "PmSchedule",
}

DEFAULT_PATHS: dict[NotificationType, str] = {
    NotificationType.Emergency: "/maintenance/monitor",
    NotificationType.LongRepair: "/maintenance/monitor",
    NotificationType.Completed: "/maintenance/history",
    NotificationType.PmSchedule: "/pm",
}
FALLBACK_PATH = "/notifications"


def ParseNotificationType(value: str | NotificationType | None) -> NotificationType | None:
    if value is None:
        return None
    if isinstance(value, NotificationType):
        return value
    normalized = str(value).strip().lower()
    if not normalized:
        return None
    try:
        return NotificationType(normalized)
    except ValueError:
        return None


def DefaultPathFor(value: str | NotificationType | None) -> str:
    notification_type = ParseNotificationType(value)
    if notification_type is None:
        return FALLBACK_PATH
    return DEFAULT_PATHS.get(notification_type, FALLBACK_PATH)
