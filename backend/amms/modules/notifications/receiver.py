"""Push receiver state machine for the browser worker.

The worker itself is a thin shim around ``PushReceiver``: it forwards push,
click and close events and supplies the window/notification primitives.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol
from urllib.parse import urlsplit

from amms.modules.notifications.categories import (
    DEFAULT_PATHS,
    FALLBACK_PATH,
    DefaultPathFor,
    NotificationType,
)
from amms.modules.notifications.push_service import DEFAULT_BADGE_PATH, DEFAULT_ICON_PATH

logger = logging.getLogger("notifications.receiver")

DEFAULT_TITLE = "AMMS Notification"
DEFAULT_BODY = "You have a new notification."
DEFAULT_VIBRATE = [100, 50, 100]
ACTION_VIEW = "view"
ACTION_DISMISS = "dismiss"
CLICK_MESSAGE_TYPE = "NOTIFICATION_CLICK"

FIREBASE_WEB_ENV = {
    "api_key": "FIREBASE_WEB_API_KEY",
    "auth_domain": "FIREBASE_WEB_AUTH_DOMAIN",
    "project_id": "FIREBASE_WEB_PROJECT_ID",
    "messaging_sender_id": "FIREBASE_WEB_MESSAGING_SENDER_ID",
    "app_id": "FIREBASE_WEB_APP_ID",
    "vapid_key": "FIREBASE_WEB_VAPID_KEY",
}


class ReceiverState(str, Enum):
    Idle = "idle"
    Notified = "notified"
    Dispatched = "dispatched"


@dataclass(frozen=True)
class NotificationAction:
    action: str
    title: str


ACTIONS_BY_TYPE: dict[NotificationType, list[NotificationAction]] = {
    NotificationType.Emergency: [
        NotificationAction(ACTION_VIEW, "Acknowledge"),
        NotificationAction(ACTION_DISMISS, "Later"),
    ],
    NotificationType.LongRepair: [NotificationAction(ACTION_VIEW, "Check status")],
    NotificationType.Completed: [NotificationAction(ACTION_VIEW, "View details")],
    NotificationType.PmSchedule: [NotificationAction(ACTION_VIEW, "View schedule")],
}
FALLBACK_ACTIONS = [NotificationAction(ACTION_VIEW, "View")]


@dataclass
class NotificationDescription:
    title: str
    body: str
    icon: str = DEFAULT_ICON_PATH
    badge: str = DEFAULT_BADGE_PATH
    tag: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    actions: list[NotificationAction] = field(default_factory=list)
    require_interaction: bool = False
    vibrate: list[int] = field(default_factory=lambda: list(DEFAULT_VIBRATE))


@dataclass
class ClickOutcome:
    navigated: bool
    url: str | None = None
    focused_existing: bool = False


class WindowClient(Protocol):
    url: str

    def post_message(self, message: dict) -> None: ...

    def focus(self) -> Any: ...


class WindowClients(Protocol):
    def match_all(self) -> list[WindowClient]: ...

    def open_window(self, url: str) -> Any: ...


def ActionsFor(notification_type: str | None) -> list[NotificationAction]:
    try:
        category = NotificationType(notification_type) if notification_type else None
    except ValueError:
        category = None
    return list(ACTIONS_BY_TYPE.get(category, FALLBACK_ACTIONS))


def ResolveClickPath(data: dict | None) -> str:
    data = data or {}
    for key in ("url", "click_action"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return DefaultPathFor(data.get("type"))


def IsSameOrigin(url: str | None, origin: str) -> bool:
    if not url:
        return False
    candidate = urlsplit(url)
    expected = urlsplit(origin)
    return (candidate.scheme, candidate.netloc) == (expected.scheme, expected.netloc)


def JoinOriginPath(origin: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return f"{origin.rstrip('/')}/{path.lstrip('/')}"


def _Text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def ParsePushPayload(raw: str | bytes | None) -> dict[str, Any]:
    """Normalize a push body into ``title``, ``body``, ``icon``, ``badge`` and ``data``.

    Accepts the provider shape ``{notification: {...}, data: {...}}`` and the flat
    ``{title, body, data}`` shape. Anything unparseable becomes the body text.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    parsed: dict[str, Any] = {}
    if raw:
        try:
            loaded = json.loads(raw)
        except ValueError:
            loaded = None
        if isinstance(loaded, dict):
            parsed = loaded
        else:
            parsed = {"body": raw}

    notification = parsed.get("notification")
    source = notification if isinstance(notification, dict) else parsed
    data = parsed.get("data")
    return {
        "title": _Text(source.get("title")) or DEFAULT_TITLE,
        "body": _Text(source.get("body")) or DEFAULT_BODY,
        "icon": _Text(source.get("icon")) or DEFAULT_ICON_PATH,
        "badge": _Text(source.get("badge")) or DEFAULT_BADGE_PATH,
        "data": data if isinstance(data, dict) else {},
    }


class PushReceiver:
    def __init__(
        self,
        origin: str,
        clients: WindowClients,
        show_notification: Callable[[NotificationDescription], Any],
        clock: Callable[[], float] = time.time,
    ):
        self.origin = origin.rstrip("/")
        self.clients = clients
        self.show_notification = show_notification
        self.clock = clock
        self.state = ReceiverState.Idle

    def OnPush(self, raw: str | bytes | None) -> NotificationDescription:
        payload = ParsePushPayload(raw)
        data = payload["data"]
        notification_type = data.get("type")
        tag = _Text(data.get("tag")) or f"notification-{int(self.clock() * 1000)}"
        description = NotificationDescription(
            title=payload["title"],
            body=payload["body"],
            icon=payload["icon"],
            badge=payload["badge"],
            tag=tag,
            data=data,
            actions=ActionsFor(notification_type),
            require_interaction=notification_type == NotificationType.Emergency.value,
        )
        logger.info("push received type=%s tag=%s", notification_type, tag)
        self.show_notification(description)
        self.state = ReceiverState.Notified
        return description

    def OnNotificationClick(self, data: dict | None, action: str | None = None) -> ClickOutcome:
        if action == ACTION_DISMISS:
            logger.info("notification dismissed")
            self.state = ReceiverState.Idle
            return ClickOutcome(navigated=False)

        path = ResolveClickPath(data)
        url = JoinOriginPath(self.origin, path)
        self.state = ReceiverState.Dispatched

        try:
            for client in self.clients.match_all():
                if not IsSameOrigin(client.url, self.origin):
                    continue
                client.post_message({"type": CLICK_MESSAGE_TYPE, "url": path})
                client.focus()
                logger.info("notification click focused existing window url=%s", path)
                return ClickOutcome(navigated=True, url=url, focused_existing=True)
        except Exception:
            logger.exception("notification click handling failed; opening new window")

        self.clients.open_window(url)
        logger.info("notification click opened window url=%s", url)
        return ClickOutcome(navigated=True, url=url)

    def OnNotificationClose(self, data: dict | None = None) -> None:
        logger.info("notification closed type=%s", (data or {}).get("type"))


def BuildClientConfig() -> dict[str, Any]:
    firebase = {key: os.getenv(env_name, "").strip() or None for key, env_name in FIREBASE_WEB_ENV.items()}
    return {
        "default_title": DEFAULT_TITLE,
        "default_body": DEFAULT_BODY,
        "icon": os.getenv("PUSH_ICON_PATH", "").strip() or DEFAULT_ICON_PATH,
        "badge": os.getenv("PUSH_BADGE_PATH", "").strip() or DEFAULT_BADGE_PATH,
        "actions": {
            category.value: [asdict(action) for action in actions]
            for category, actions in ACTIONS_BY_TYPE.items()
        },
        "fallback_actions": [asdict(action) for action in FALLBACK_ACTIONS],
        "paths": {category.value: path for category, path in DEFAULT_PATHS.items()},
        "fallback_path": FALLBACK_PATH,
        "firebase": firebase,
    }
