from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import httpx
from sqlalchemy.orm import Session

from amms.modules.auth.deps import NowUtc
from amms.modules.auth.models import ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN, User
from amms.modules.maintenance.models import (
    MAINTENANCE_STATUS_COMPLETED,
    MAINTENANCE_STATUS_IN_PROGRESS,
    PM_STATUS_SCHEDULED,
    Equipment,
    MaintenanceRecord,
    PmSchedule,
    PmTemplate,
)
from amms.modules.notifications.audience import AudienceSelector, ResolveActiveUserIds
from amms.modules.notifications.categories import DefaultPathFor, NotificationType
from amms.modules.notifications.push_service import FcmConfig, FcmMessage, LoadFcmConfig
from amms.modules.notifications.schemas import EmergencyNotifyRequest, PmScheduleNotifyRequest
from amms.modules.notifications.services import (
    DispatchToAudience,
    HasRecentNotification,
    PushDispatchResult,
    PushValidationError,
    SaveInAppNotifications,
)
from amms.modules.notifications.utils.serialization import StringifyData
from amms.modules.notifications.utils.text import (
    BuildCompletedBody,
    BuildEmergencyBody,
    FormatDaysText,
    FormatRepairDuration,
)

logger = logging.getLogger("notifications.jobs")

EMERGENCY_DEFAULT_ROLES = [ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN]
PM_FALLBACK_ROLES = [ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_TECHNICIAN]
LONG_REPAIR_ROLES = [ROLE_ADMIN, ROLE_SUPERVISOR]
COMPLETED_ROLES = [ROLE_ADMIN, ROLE_SUPERVISOR]
LONG_REPAIR_REPEAT_WINDOW = timedelta(hours=1)
DEFAULT_LONG_REPAIR_THRESHOLD_MINUTES = 120


@dataclass
class NotificationJobResult:
    sent: int = 0
    failed: int = 0
    notified: int = 0
    processed: int = 0
    message: str | None = None

    def Add(self, dispatch: PushDispatchResult) -> None:
        self.sent += dispatch.sent
        self.failed += dispatch.failed


def _AsUtc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _EpochMillis(value: datetime) -> int:
    return int(_AsUtc(value).timestamp() * 1000)


def _EquipmentCode(equipment: Equipment | None, fallback_id: int) -> str:
    if equipment is None:
        return str(fallback_id)
    return equipment.EquipmentCode


def _LoadEquipment(db: Session, equipment_id: int) -> Equipment | None:
    return db.query(Equipment).filter(Equipment.Id == equipment_id).first()


def _IsActiveUser(db: Session, user_id: str | None) -> bool:
    if not user_id:
        return False
    return (
        db.query(User.Id)
        .filter(User.Id == user_id, User.IsActive == True)  # noqa: E712
        .first()
        is not None
    )


def NotifyEmergency(
    db: Session,
    request: EmergencyNotifyRequest,
    *,
    config: FcmConfig | None = None,
    client: httpx.Client | None = None,
    now: datetime | None = None,
) -> NotificationJobResult:
    equipment_code = (request.equipment_code or "").strip()
    if not equipment_code:
        raise PushValidationError("equipment_code is required.")
    config = config or LoadFcmConfig()
    now = now or NowUtc()

    roles = request.target_roles or EMERGENCY_DEFAULT_ROLES
    logger.info("emergency notification equipment=%s roles=%s", equipment_code, roles)

    title = "Emergency repair"
    body = BuildEmergencyBody(equipment_code, request.symptom)
    message = FcmMessage(
        title=title,
        body=body,
        data=StringifyData(
            {
                "type": NotificationType.Emergency.value,
                "equipment_code": equipment_code,
                "equipment_name": request.equipment_name or "",
                "maintenance_id": request.maintenance_id or "",
                "building": request.building or "",
                "url": DefaultPathFor(NotificationType.Emergency),
                "tag": f"emergency-{equipment_code}-{_EpochMillis(now)}",
            }
        ),
        priority="high",
        collapse_key=f"emergency-{equipment_code}",
    )
    dispatch = DispatchToAudience(
        db,
        selector=AudienceSelector.Build(roles=roles, departments=request.target_departments),
        message=message,
        notification_type=NotificationType.Emergency.value,
        config=config,
        client=client,
    )

    saved = SaveInAppNotifications(
        db,
        user_ids=ResolveActiveUserIds(db, roles=roles, departments=request.target_departments),
        notification_type=NotificationType.Emergency.value,
        title=title,
        message=body,
        data={"equipment_code": equipment_code, "maintenance_id": request.maintenance_id},
        source_id=f"maintenance:{request.maintenance_id}" if request.maintenance_id else None,
    )

    result = NotificationJobResult(notified=len(saved), processed=1)
    result.Add(dispatch)
    result.message = f"Emergency notification sent: {equipment_code}"
    return result


def _NotifiedFlagFor(days_before: int) -> str:
    if days_before == 3:
        return "Notified3Days"
    if days_before == 1:
        return "Notified1Day"
    return "NotifiedToday"


def NotifyPmSchedules(
    db: Session,
    request: PmScheduleNotifyRequest,
    *,
    today: date | None = None,
    config: FcmConfig | None = None,
    client: httpx.Client | None = None,
) -> NotificationJobResult:
    config = config or LoadFcmConfig()
    today = today or NowUtc().date()
    days_before = request.days_before
    result = NotificationJobResult()

    query = db.query(PmSchedule).filter(PmSchedule.Status == PM_STATUS_SCHEDULED)
    if request.schedule_id is not None:
        query = query.filter(PmSchedule.Id == request.schedule_id)
    else:
        query = query.filter(PmSchedule.ScheduledDate == today + timedelta(days=days_before))
    schedules = query.order_by(PmSchedule.Id).all()

    if not schedules:
        result.message = "No PM schedules to notify."
        return result

    logger.info("pm schedule notifications schedules=%s days_before=%s", len(schedules), days_before)
    equipment_map = {
        row.Id: row
        for row in db.query(Equipment).filter(Equipment.Id.in_({s.EquipmentId for s in schedules})).all()
    }
    template_map = {
        row.Id: row
        for row in db.query(PmTemplate).filter(PmTemplate.Id.in_({s.TemplateId for s in schedules})).all()
    }
    days_text = FormatDaysText(days_before)
    notified_flag = _NotifiedFlagFor(days_before)

    for schedule in schedules:
        equipment = equipment_map.get(schedule.EquipmentId)
        template = template_map.get(schedule.TemplateId)
        if equipment is None or template is None:
            logger.warning("pm schedule missing equipment or template schedule_id=%s", schedule.Id)
            continue

        if request.notify_assigned_only and schedule.AssignedTechnicianId:
            target_user_ids = [schedule.AssignedTechnicianId]
        else:
            target_user_ids = ResolveActiveUserIds(db, roles=PM_FALLBACK_ROLES)
        if not target_user_ids:
            continue

        title = f"PM schedule ({days_text})"
        body = f"[{equipment.EquipmentCode}] {template.Name} preventive maintenance due"
        scheduled_date = schedule.ScheduledDate.isoformat()
        message = FcmMessage(
            title=title,
            body=body,
            data=StringifyData(
                {
                    "type": NotificationType.PmSchedule.value,
                    "equipment_code": equipment.EquipmentCode,
                    "equipment_name": equipment.EquipmentName,
                    "schedule_id": schedule.Id,
                    "scheduled_date": scheduled_date,
                    "priority": schedule.Priority,
                    "url": f"/pm/schedules/{schedule.Id}",
                    "tag": f"pm-{schedule.Id}",
                }
            ),
            priority="high" if schedule.Priority == "high" else "normal",
            collapse_key=f"pm-{schedule.Id}",
        )
        dispatch = DispatchToAudience(
            db,
            selector=AudienceSelector.Build(user_ids=target_user_ids),
            message=message,
            notification_type=NotificationType.PmSchedule.value,
            config=config,
            client=client,
        )
        result.Add(dispatch)

        saved = SaveInAppNotifications(
            db,
            user_ids=target_user_ids,
            notification_type=NotificationType.PmSchedule.value,
            title=title,
            message=body,
            data={
                "equipment_code": equipment.EquipmentCode,
                "schedule_id": schedule.Id,
                "scheduled_date": scheduled_date,
            },
            source_id=f"pm_schedule:{schedule.Id}",
        )
        result.notified += len(saved)

        setattr(schedule, notified_flag, True)
        db.add(schedule)
        db.commit()
        result.processed += 1

    result.message = "PM schedule notifications sent."
    return result


def CheckLongRepairs(
    db: Session,
    *,
    threshold_minutes: int = DEFAULT_LONG_REPAIR_THRESHOLD_MINUTES,
    now: datetime | None = None,
    config: FcmConfig | None = None,
    client: httpx.Client | None = None,
) -> NotificationJobResult:
    if threshold_minutes <= 0:
        raise PushValidationError("threshold_minutes must be positive.")
    config = config or LoadFcmConfig()
    now = _AsUtc(now or NowUtc())
    result = NotificationJobResult()

    records = (
        db.query(MaintenanceRecord)
        .filter(MaintenanceRecord.Status == MAINTENANCE_STATUS_IN_PROGRESS)
        .order_by(MaintenanceRecord.Id)
        .all()
    )
    for record in records:
        elapsed = now - _AsUtc(record.StartTime)
        if elapsed <= timedelta(minutes=threshold_minutes):
            continue

        source_id = f"maintenance:{record.Id}"
        if HasRecentNotification(
            db,
            notification_type=NotificationType.LongRepair.value,
            source_id=source_id,
            since=now - LONG_REPAIR_REPEAT_WINDOW,
        ):
            continue

        duration_minutes = int(elapsed.total_seconds() // 60)
        equipment_code = _EquipmentCode(_LoadEquipment(db, record.EquipmentId), record.EquipmentId)
        target_user_ids = ResolveActiveUserIds(db, roles=LONG_REPAIR_ROLES)
        if _IsActiveUser(db, record.TechnicianId) and record.TechnicianId not in target_user_ids:
            target_user_ids.append(record.TechnicianId)
        if not target_user_ids:
            continue

        title = "Long repair warning"
        body = f"[{equipment_code}] Repair has exceeded {FormatRepairDuration(duration_minutes)}."
        message = FcmMessage(
            title=title,
            body=body,
            data=StringifyData(
                {
                    "type": NotificationType.LongRepair.value,
                    "equipment_code": equipment_code,
                    "maintenance_id": record.Id,
                    "duration_minutes": duration_minutes,
                    "url": DefaultPathFor(NotificationType.LongRepair),
                    "tag": f"long-repair-{record.Id}",
                }
            ),
            priority="high",
            collapse_key=f"long-repair-{record.Id}",
        )
        dispatch = DispatchToAudience(
            db,
            selector=AudienceSelector.Build(user_ids=target_user_ids),
            message=message,
            notification_type=NotificationType.LongRepair.value,
            config=config,
            client=client,
        )
        result.Add(dispatch)

        saved = SaveInAppNotifications(
            db,
            user_ids=target_user_ids,
            notification_type=NotificationType.LongRepair.value,
            title=title,
            message=body,
            data={
                "equipment_code": equipment_code,
                "maintenance_id": record.Id,
                "duration_minutes": duration_minutes,
            },
            source_id=source_id,
        )
        result.notified += len(saved)
        result.processed += 1

    logger.info("long repair check processed=%s threshold=%s", result.processed, threshold_minutes)
    result.message = f"{result.processed} long repairs notified."
    return result


def NotifyRepairCompleted(
    db: Session,
    *,
    maintenance_id: int,
    config: FcmConfig | None = None,
    client: httpx.Client | None = None,
) -> NotificationJobResult:
    record = db.query(MaintenanceRecord).filter(MaintenanceRecord.Id == maintenance_id).first()
    if record is None:
        raise ValueError("Maintenance record not found")
    if record.Status != MAINTENANCE_STATUS_COMPLETED:
        raise PushValidationError("Maintenance record is not completed.")
    config = config or LoadFcmConfig()

    equipment_code = _EquipmentCode(_LoadEquipment(db, record.EquipmentId), record.EquipmentId)
    excluded = {record.TechnicianId} if record.TechnicianId else None
    target_user_ids = ResolveActiveUserIds(db, roles=COMPLETED_ROLES, exclude_user_ids=excluded)
    result = NotificationJobResult()
    if not target_user_ids:
        result.message = "No recipients for completed repair."
        return result

    title = "Repair completed"
    body = BuildCompletedBody(equipment_code, record.Rating)
    message = FcmMessage(
        title=title,
        body=body,
        data=StringifyData(
            {
                "type": NotificationType.Completed.value,
                "equipment_code": equipment_code,
                "maintenance_id": record.Id,
                "rating": record.Rating,
                "url": DefaultPathFor(NotificationType.Completed),
                "tag": f"completed-{record.Id}",
            }
        ),
        priority="normal",
        collapse_key=f"completed-{record.Id}",
    )
    dispatch = DispatchToAudience(
        db,
        selector=AudienceSelector.Build(user_ids=target_user_ids),
        message=message,
        notification_type=NotificationType.Completed.value,
        config=config,
        client=client,
    )
    result.Add(dispatch)

    saved = SaveInAppNotifications(
        db,
        user_ids=target_user_ids,
        notification_type=NotificationType.Completed.value,
        title=title,
        message=body,
        data={"equipment_code": equipment_code, "maintenance_id": record.Id, "rating": record.Rating},
        source_id=f"maintenance:{record.Id}",
    )
    result.notified = len(saved)
    result.processed = 1
    result.message = f"Completion notification sent: {equipment_code}"
    return result
