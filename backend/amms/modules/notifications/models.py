from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UnicodeText,
    UniqueConstraint,
)

from amms.db import Base


class DeviceToken(Base):
    __tablename__ = "device_tokens"
    __table_args__ = (
        UniqueConstraint("UserId", "Token", name="uq_push_device_tokens_user_token"),
        Index("ix_push_device_tokens_user_active", "UserId", "IsActive"),
        Index("ix_push_device_tokens_token", "Token"),
        {"schema": "push"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    UserId = Column(String(36), ForeignKey("auth.users.Id"), nullable=False)
    Token = Column(String(512), nullable=False)
    DeviceType = Column(String(20), nullable=False, default="web")
    DeviceInfoJson = Column(Text)
    IsActive = Column(Boolean, nullable=False, default=True)
    LastError = Column(String(255))
    LastUsedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class PushSettings(Base):
    __tablename__ = "push_settings"
    __table_args__ = {"schema": "push"}

    Id = Column(Integer, primary_key=True, index=True)
    UserId = Column(String(36), ForeignKey("auth.users.Id"), nullable=False, unique=True)
    Enabled = Column(Boolean, nullable=False, default=True)
    Emergency = Column(Boolean, nullable=False, default=True)
    LongRepair = Column(Boolean, nullable=False, default=True)
    Completed = Column(Boolean, nullable=False, default=True)
    PmSchedule = Column(Boolean, nullable=False, default=True)
    QuietHoursStart = Column(String(5))
    QuietHoursEnd = Column(String(5))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class DispatchLog(Base):
    __tablename__ = "dispatch_logs"
    __table_args__ = (
        Index("ix_push_dispatch_logs_type", "Type"),
        Index("ix_push_dispatch_logs_sent_at", "SentAt"),
        {"schema": "push"},
    )

    Id = Column(Integer, primary_key=True)
    Type = Column(String(30), nullable=False, default="info")
    Title = Column(UnicodeText, nullable=False)
    Body = Column(UnicodeText)
    DataJson = Column(Text)
    TargetUsersJson = Column(Text)
    TargetRolesJson = Column(Text)
    TargetDepartmentsJson = Column(Text)
    IsBroadcast = Column(Boolean, nullable=False, default=False)
    SuccessCount = Column(Integer, nullable=False, default=0)
    FailureCount = Column(Integer, nullable=False, default=0)
    ErrorsJson = Column(Text)
    SentAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class UserNotification(Base):
    __tablename__ = "user_notifications"
    __table_args__ = (
        Index("ix_push_user_notifications_user_read", "UserId", "IsRead", "CreatedAt"),
        Index("ix_push_user_notifications_source", "Type", "SourceId", "CreatedAt"),
        {"schema": "push"},
    )

    Id = Column(Integer, primary_key=True)
    UserId = Column(String(36), ForeignKey("auth.users.Id"), nullable=False)
    Type = Column(String(30), nullable=False, default="info")
    Title = Column(UnicodeText, nullable=False)
    Message = Column(UnicodeText)
    DataJson = Column(Text)
    SourceId = Column(String(120))
    IsRead = Column(Boolean, nullable=False, default=False)
    ReadAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
