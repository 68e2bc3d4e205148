from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from amms.modules.notifications.categories import NotificationType


class PushPriority(str, Enum):
    High = "high"
    Normal = "normal"


class DeviceType(str, Enum):
    Web = "web"
    Android = "android"
    Ios = "ios"


class PushNotificationContent(BaseModel):
    # Presence of title/body is checked by the service so a missing field maps to 400.
    title: str | None = None
    body: str | None = None
    image: str | None = None


class PushOptions(BaseModel):
    priority: PushPriority | None = None
    ttl: int | None = Field(default=None, ge=0)
    collapse_key: str | None = Field(default=None, max_length=120)


class PushDispatchRequest(BaseModel):
    token: str | None = None
    tokens: list[str] | None = None
    user_ids: list[str] | None = None
    roles: list[int] | None = None
    departments: list[str] | None = None
    broadcast: bool = False
    notification: PushNotificationContent | None = None
    data: dict[str, Any] | None = None
    options: PushOptions | None = None


class PushDispatchResponse(BaseModel):
    success: bool
    sent: int = 0
    failed: int = 0
    total: int = 0
    errors: list[str] | None = None
    message: str | None = None


class PushErrorResponse(BaseModel):
    success: bool = False
    error: str


class EmergencyNotifyRequest(BaseModel):
    equipment_code: str | None = Field(default=None, max_length=40)
    equipment_name: str | None = Field(default=None, max_length=160)
    maintenance_id: str | None = Field(default=None, max_length=64)
    symptom: str | None = Field(default=None, max_length=300)
    building: str | None = Field(default=None, max_length=80)
    target_roles: list[int] | None = None
    target_departments: list[str] | None = None


class PmScheduleNotifyRequest(BaseModel):
    schedule_id: int | None = None
    days_before: int = Field(default=0, ge=0, le=30)
    notify_assigned_only: bool = True


class LongRepairCheckRequest(BaseModel):
    threshold_minutes: int = Field(default=120, ge=1, le=24 * 60)


class RepairCompletedNotifyRequest(BaseModel):
    maintenance_id: int


class NotificationJobResponse(BaseModel):
    success: bool
    sent: int = 0
    failed: int = 0
    notified: int = 0
    processed: int = 0
    message: str | None = None


class DeviceRegisterRequest(BaseModel):
    token: str = Field(min_length=10, max_length=512)
    device_type: DeviceType = DeviceType.Web
    device_info: dict[str, Any] | None = None


class DeviceTokenOut(BaseModel):
    id: int
    device_type: DeviceType
    is_active: bool
    last_used_at: datetime
    updated_at: datetime


class DeviceUnregisterRequest(BaseModel):
    token: str = Field(min_length=1, max_length=512)


class DeviceUnregisterResponse(BaseModel):
    updated_count: int


class PushSettingsOut(BaseModel):
    enabled: bool = True
    emergency: bool = True
    long_repair: bool = True
    completed: bool = True
    pm_schedule: bool = True
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None


class PushSettingsUpdate(BaseModel):
    enabled: bool | None = None
    emergency: bool | None = None
    long_repair: bool | None = None
    completed: bool | None = None
    pm_schedule: bool | None = None
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None


class NotificationOut(BaseModel):
    id: int
    user_id: str
    type: NotificationType | str
    title: str
    message: str | None = None
    data: dict | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationOut]
    unread_count: int


class NotificationBulkUpdateResponse(BaseModel):
    updated_count: int


class NotificationBadgeCountResponse(BaseModel):
    unread_count: int
