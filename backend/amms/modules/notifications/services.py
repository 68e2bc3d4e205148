import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

import httpx
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from amms.modules.auth.deps import NowUtc
from amms.modules.notifications.audience import AudienceSelector, ResolveAudienceTokens
from amms.modules.notifications.dispatch_log import SaveDispatchLog
from amms.modules.notifications.models import PushSettings, UserNotification
from amms.modules.notifications.push_service import (
    FcmConfig,
    FcmMessage,
    LoadFcmConfig,
    SendFcm,
)
from amms.modules.notifications.schemas import PushDispatchRequest, PushNotificationContent
from amms.modules.notifications.token_cleanup import DeactivateInvalidTokens
from amms.modules.notifications.utils.serialization import ParseJson, SerializeJson, StringifyData

logger = logging.getLogger("notifications")

SETTINGS_FLAG_FIELDS = {
    "enabled": "Enabled",
    "emergency": "Emergency",
    "long_repair": "LongRepair",
    "completed": "Completed",
    "pm_schedule": "PmSchedule",
}
SETTINGS_TIME_FIELDS = {
    "quiet_hours_start": "QuietHoursStart",
    "quiet_hours_end": "QuietHoursEnd",
}


class PushValidationError(ValueError):
    pass


@dataclass
class PushDispatchResult:
    sent: int = 0
    failed: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)
    deactivated: int = 0
    message: str | None = None


def ValidateNotificationContent(title: str | None, body: str | None) -> tuple[str, str]:
    cleaned_title = (title or "").strip()
    cleaned_body = (body or "").strip()
    if not cleaned_title or not cleaned_body:
        raise PushValidationError("notification.title and notification.body are required.")
    return cleaned_title, cleaned_body


def DispatchToAudience(
    db: Session,
    *,
    selector: AudienceSelector,
    message: FcmMessage,
    notification_type: str | None = None,
    config: FcmConfig | None = None,
    client: httpx.Client | None = None,
) -> PushDispatchResult:
    config = config or LoadFcmConfig()
    tokens = ResolveAudienceTokens(db, selector, notification_type)
    if not tokens:
        return PushDispatchResult(message="No tokens to send to.")

    logger.info("push dispatch start tokens=%s type=%s", len(tokens), notification_type)
    result = SendFcm(tokens, message, config, client=client)

    SaveDispatchLog(
        db,
        notification_type=notification_type,
        title=message.title,
        body=message.body,
        data=message.data,
        selector=selector,
        result=result,
    )

    deactivated = 0
    if result.errors:
        deactivated = DeactivateInvalidTokens(db, tokens, result.errors)

    return PushDispatchResult(
        sent=result.success,
        failed=result.failure,
        total=len(tokens),
        errors=list(result.errors),
        deactivated=deactivated,
    )


def SendPushNotification(
    db: Session,
    request: PushDispatchRequest,
    *,
    config: FcmConfig | None = None,
    client: httpx.Client | None = None,
) -> PushDispatchResult:
    content = request.notification or PushNotificationContent()
    title, body = ValidateNotificationContent(content.title, content.body)
    config = config or LoadFcmConfig()

    selector = AudienceSelector.Build(
        token=request.token,
        tokens=request.tokens,
        user_ids=request.user_ids,
        roles=request.roles,
        departments=request.departments,
        broadcast=request.broadcast,
    )
    data = StringifyData(request.data)
    options = request.options
    message = FcmMessage(
        title=title,
        body=body,
        image=content.image,
        data=data,
        priority=options.priority.value if options and options.priority else "high",
        ttl=options.ttl if options else None,
        collapse_key=options.collapse_key if options else None,
    )
    return DispatchToAudience(
        db,
        selector=selector,
        message=message,
        notification_type=data.get("type"),
        config=config,
        client=client,
    )


def SaveInAppNotifications(
    db: Session,
    *,
    user_ids: list[str],
    notification_type: str,
    title: str,
    message: str | None,
    data: dict | None = None,
    source_id: str | None = None,
) -> list[UserNotification]:
    unique_ids = list(dict.fromkeys(user_id for user_id in user_ids if user_id))
    if not unique_ids:
        return []

    now = NowUtc()
    data_json = SerializeJson(data or {})
    records = [
        UserNotification(
            UserId=user_id,
            Type=notification_type,
            Title=title,
            Message=message,
            DataJson=data_json,
            SourceId=source_id,
            IsRead=False,
            CreatedAt=now,
        )
        for user_id in unique_ids
    ]
    try:
        db.add_all(records)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to save in-app notifications type=%s users=%s", notification_type, len(unique_ids))
        return []
    return records


def HasRecentNotification(
    db: Session,
    *,
    notification_type: str,
    source_id: str,
    since: datetime,
) -> bool:
    return (
        db.query(UserNotification.Id)
        .filter(
            UserNotification.Type == notification_type,
            UserNotification.SourceId == source_id,
            UserNotification.CreatedAt > since,
        )
        .first()
        is not None
    )


def ListUserNotifications(
    db: Session,
    *,
    user_id: str,
    include_read: bool,
    limit: int,
    offset: int = 0,
) -> list[UserNotification]:
    query = db.query(UserNotification).filter(UserNotification.UserId == user_id)
    if not include_read:
        query = query.filter(UserNotification.IsRead == False)  # noqa: E712
    return (
        query.order_by(UserNotification.CreatedAt.desc(), UserNotification.Id.desc())
        .offset(max(0, offset))
        .limit(max(1, min(limit, 200)))
        .all()
    )


def CountUnread(db: Session, *, user_id: str) -> int:
    value = (
        db.query(func.count(UserNotification.Id))
        .filter(
            UserNotification.UserId == user_id,
            UserNotification.IsRead == False,  # noqa: E712
        )
        .scalar()
    )
    return int(value or 0)


def MarkNotificationRead(db: Session, *, user_id: str, notification_id: int) -> UserNotification | None:
    record = (
        db.query(UserNotification)
        .filter(UserNotification.Id == notification_id, UserNotification.UserId == user_id)
        .first()
    )
    if record is None:
        return None
    if record.IsRead:
        return record
    record.IsRead = True
    record.ReadAt = NowUtc()
    db.commit()
    db.refresh(record)
    return record


def MarkAllRead(db: Session, *, user_id: str) -> int:
    updated = (
        db.query(UserNotification)
        .filter(
            UserNotification.UserId == user_id,
            UserNotification.IsRead == False,  # noqa: E712
        )
        .update(
            {
                UserNotification.IsRead: True,
                UserNotification.ReadAt: NowUtc(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return int(updated or 0)


def BuildNotificationPayload(record: UserNotification) -> dict:
    return {
        "id": record.Id,
        "user_id": record.UserId,
        "type": record.Type,
        "title": record.Title,
        "message": record.Message,
        "data": ParseJson(record.DataJson),
        "is_read": bool(record.IsRead),
        "read_at": record.ReadAt,
        "created_at": record.CreatedAt,
    }


def _NormalizeTime(value: str | None) -> str | None:
    if value is None:
        return None
    if not re.fullmatch(r"\d{2}:\d{2}", value):
        raise ValueError("Quiet hours must be in HH:MM format.")
    try:
        return datetime.strptime(value, "%H:%M").strftime("%H:%M")
    except ValueError as exc:
        raise ValueError("Quiet hours must be in HH:MM format.") from exc


def GetPushSettings(db: Session, *, user_id: str) -> PushSettings | None:
    return db.query(PushSettings).filter(PushSettings.UserId == user_id).first()


def BuildPushSettingsPayload(record: PushSettings | None) -> dict:
    if record is None:
        payload = {key: True for key in SETTINGS_FLAG_FIELDS}
        payload.update({key: None for key in SETTINGS_TIME_FIELDS})
        return payload
    payload = {key: bool(getattr(record, column)) for key, column in SETTINGS_FLAG_FIELDS.items()}
    payload.update({key: getattr(record, column) for key, column in SETTINGS_TIME_FIELDS.items()})
    return payload


def UpdatePushSettings(db: Session, *, user_id: str, payload: dict) -> PushSettings:
    now = NowUtc()
    record = GetPushSettings(db, user_id=user_id)
    if record is None:
        record = PushSettings(
            UserId=user_id,
            Enabled=True,
            Emergency=True,
            LongRepair=True,
            Completed=True,
            PmSchedule=True,
            CreatedAt=now,
        )

    for key, column in SETTINGS_FLAG_FIELDS.items():
        if payload.get(key) is not None:
            setattr(record, column, bool(payload[key]))

    for key, column in SETTINGS_TIME_FIELDS.items():
        if key not in payload:
            continue
        raw = payload.get(key)
        # An empty string clears the quiet-hours bound.
        setattr(record, column, _NormalizeTime(raw.strip()) if raw and raw.strip() else None)

    record.UpdatedAt = now
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
