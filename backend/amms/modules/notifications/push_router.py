import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import ProgrammingError, SQLAlchemyError
from sqlalchemy.orm import Session

from amms.db import GetDb
from amms.modules.auth.deps import RequireAuthenticated, UserContext
from amms.modules.notifications.jobs import (
    CheckLongRepairs,
    NotificationJobResult,
    NotifyEmergency,
    NotifyPmSchedules,
    NotifyRepairCompleted,
)
from amms.modules.notifications.push_service import (
    PushConfigurationError,
    RegisterDeviceToken,
    UnregisterDeviceToken,
)
from amms.modules.notifications.receiver import BuildClientConfig
from amms.modules.notifications.schemas import (
    DeviceRegisterRequest,
    DeviceTokenOut,
    DeviceUnregisterRequest,
    DeviceUnregisterResponse,
    EmergencyNotifyRequest,
    LongRepairCheckRequest,
    NotificationJobResponse,
    PmScheduleNotifyRequest,
    PushDispatchRequest,
    PushDispatchResponse,
    PushErrorResponse,
    PushSettingsOut,
    PushSettingsUpdate,
    RepairCompletedNotifyRequest,
)
from amms.modules.notifications.services import (
    BuildPushSettingsPayload,
    GetPushSettings,
    SendPushNotification,
    UpdatePushSettings,
)
from amms.modules.notifications.utils.rbac import RequirePushSender

router = APIRouter(prefix="/api/push", tags=["push"])
DISPATCH_ERROR_RESPONSES = {
    400: {"model": PushErrorResponse},
    404: {"model": PushErrorResponse},
    500: {"model": PushErrorResponse},
}
logger = logging.getLogger("notifications")


def _ErrorResponse(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _RunDispatch(label: str, action: Callable[[], object]):
    """Run a dispatch action and map failures to ``{success: false, error}`` bodies."""
    try:
        return action()
    except PushConfigurationError as exc:
        logger.error("%s failed: %s", label, exc)
        return _ErrorResponse(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except ValueError as exc:
        detail = str(exc)
        status_code = status.HTTP_404_NOT_FOUND if "not found" in detail.lower() else status.HTTP_400_BAD_REQUEST
        return _ErrorResponse(status_code, detail)
    except SQLAlchemyError as exc:
        logger.exception("%s database error", label)
        return _ErrorResponse(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Push storage error: {exc.__class__.__name__}")


def _JobResponse(result) -> object:
    if not isinstance(result, NotificationJobResult):
        return result
    return NotificationJobResponse(
        success=True,
        sent=result.sent,
        failed=result.failed,
        notified=result.notified,
        processed=result.processed,
        message=result.message,
    )


def _handle_db_error(exc: Exception) -> None:
    logger.exception("push settings database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Push storage not initialized. Run alembic upgrade head.",
    ) from exc


@router.post(
    "/send",
    response_model=PushDispatchResponse,
    response_model_exclude_none=True,
    responses=DISPATCH_ERROR_RESPONSES,
)
def SendPush(
    payload: PushDispatchRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequirePushSender()),
):
    logger.info("push send requested by=%s", user.Id)
    result = _RunDispatch("push send", lambda: SendPushNotification(db, payload))
    if isinstance(result, JSONResponse):
        return result
    return PushDispatchResponse(
        success=True,
        sent=result.sent,
        failed=result.failed,
        total=result.total,
        errors=result.errors or None,
        message=result.message,
    )


@router.post(
    "/emergency",
    response_model=NotificationJobResponse,
    response_model_exclude_none=True,
    responses=DISPATCH_ERROR_RESPONSES,
)
def SendEmergency(
    payload: EmergencyNotifyRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequirePushSender()),
):
    return _JobResponse(_RunDispatch("emergency notify", lambda: NotifyEmergency(db, payload)))


@router.post(
    "/pm-schedule",
    response_model=NotificationJobResponse,
    response_model_exclude_none=True,
    responses=DISPATCH_ERROR_RESPONSES,
)
def SendPmSchedule(
    payload: PmScheduleNotifyRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequirePushSender()),
):
    return _JobResponse(_RunDispatch("pm schedule notify", lambda: NotifyPmSchedules(db, payload)))


@router.post(
    "/long-repairs/check",
    response_model=NotificationJobResponse,
    response_model_exclude_none=True,
    responses=DISPATCH_ERROR_RESPONSES,
)
def CheckLongRepairItems(
    payload: LongRepairCheckRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequirePushSender()),
):
    return _JobResponse(
        _RunDispatch(
            "long repair check",
            lambda: CheckLongRepairs(db, threshold_minutes=payload.threshold_minutes),
        )
    )


@router.post(
    "/completed",
    response_model=NotificationJobResponse,
    response_model_exclude_none=True,
    responses=DISPATCH_ERROR_RESPONSES,
)
def SendRepairCompleted(
    payload: RepairCompletedNotifyRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequirePushSender()),
):
    return _JobResponse(
        _RunDispatch(
            "completed notify",
            lambda: NotifyRepairCompleted(db, maintenance_id=payload.maintenance_id),
        )
    )


@router.post("/devices/register", response_model=DeviceTokenOut)
def RegisterDevice(
    payload: DeviceRegisterRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> DeviceTokenOut:
    try:
        record = RegisterDeviceToken(
            db,
            user_id=user.Id,
            token=payload.token,
            device_type=payload.device_type.value,
            device_info=payload.device_info,
        )
        return DeviceTokenOut(
            id=record.Id,
            device_type=record.DeviceType,
            is_active=record.IsActive,
            last_used_at=record.LastUsedAt,
            updated_at=record.UpdatedAt,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/devices/unregister", response_model=DeviceUnregisterResponse)
def UnregisterDevice(
    payload: DeviceUnregisterRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> DeviceUnregisterResponse:
    try:
        updated = UnregisterDeviceToken(db, user_id=user.Id, token=payload.token)
        return DeviceUnregisterResponse(updated_count=updated)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/settings", response_model=PushSettingsOut)
def GetSettings(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> PushSettingsOut:
    try:
        record = GetPushSettings(db, user_id=user.Id)
        return PushSettingsOut(**BuildPushSettingsPayload(record))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/settings", response_model=PushSettingsOut)
def UpdateSettings(
    payload: PushSettingsUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> PushSettingsOut:
    try:
        record = UpdatePushSettings(db, user_id=user.Id, payload=payload.model_dump(exclude_unset=True))
        return PushSettingsOut(**BuildPushSettingsPayload(record))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/client-config")
def GetClientConfig() -> dict:
    return BuildClientConfig()
