import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from amms.db import GetDb
from amms.modules.auth.deps import RequireAuthenticated, UserContext
from amms.modules.notifications.schemas import (
    NotificationBadgeCountResponse,
    NotificationBulkUpdateResponse,
    NotificationListResponse,
    NotificationOut,
)
from amms.modules.notifications.services import (
    BuildNotificationPayload,
    CountUnread,
    ListUserNotifications,
    MarkAllRead,
    MarkNotificationRead,
)
from amms.modules.notifications.utils.rbac import CanAccessNotification

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
logger = logging.getLogger("notifications")


def _handle_db_error(exc: Exception) -> None:
    logger.exception("notifications database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Notifications storage not initialized. Run alembic upgrade head.",
    ) from exc


@router.get("", response_model=NotificationListResponse)
def ListNotificationItems(
    include_read: bool = True,
    limit: int = 20,
    offset: int = 0,
    user_id: str | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationListResponse:
    target_user_id = user_id or user.Id
    if not CanAccessNotification(user, target_user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    try:
        records = ListUserNotifications(
            db,
            user_id=target_user_id,
            include_read=include_read,
            limit=limit,
            offset=offset,
        )
        notifications = [NotificationOut(**BuildNotificationPayload(record)) for record in records]
        unread_count = CountUnread(db, user_id=target_user_id)
        return NotificationListResponse(notifications=notifications, unread_count=unread_count)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/badge-count", response_model=NotificationBadgeCountResponse)
def GetBadgeCount(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationBadgeCountResponse:
    try:
        return NotificationBadgeCountResponse(unread_count=CountUnread(db, user_id=user.Id))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/read-all", response_model=NotificationBulkUpdateResponse)
def MarkAllReadRoute(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationBulkUpdateResponse:
    try:
        updated = MarkAllRead(db, user_id=user.Id)
        return NotificationBulkUpdateResponse(updated_count=updated)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def MarkNotificationReadRoute(
    notification_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> NotificationOut:
    try:
        record = MarkNotificationRead(db, user_id=user.Id, notification_id=notification_id)
        if not record:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
        return NotificationOut(**BuildNotificationPayload(record))
    except ProgrammingError as exc:
        _handle_db_error(exc)
