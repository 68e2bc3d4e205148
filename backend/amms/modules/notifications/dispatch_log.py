import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from amms.modules.auth.deps import NowUtc
from amms.modules.notifications.audience import AudienceSelector
from amms.modules.notifications.models import DispatchLog
from amms.modules.notifications.push_service import FcmResult
from amms.modules.notifications.utils.serialization import SerializeJson

logger = logging.getLogger("notifications.log")


def SaveDispatchLog(
    db: Session,
    *,
    notification_type: str | None,
    title: str,
    body: str | None,
    data: dict | None,
    selector: AudienceSelector,
    result: FcmResult,
) -> DispatchLog | None:
    record = DispatchLog(
        Type=notification_type or "info",
        Title=title,
        Body=body,
        DataJson=SerializeJson(data or {}),
        TargetUsersJson=SerializeJson(selector.user_ids),
        TargetRolesJson=SerializeJson(selector.roles),
        TargetDepartmentsJson=SerializeJson(selector.departments),
        IsBroadcast=selector.broadcast,
        SuccessCount=result.success,
        FailureCount=result.failure,
        ErrorsJson=SerializeJson(result.errors),
        SentAt=NowUtc(),
    )
    try:
        db.add(record)
        db.commit()
        db.refresh(record)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to save dispatch log type=%s title=%s", record.Type, title)
        return None
    return record
