from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Unicode

from amms.db import Base

MAINTENANCE_STATUS_IN_PROGRESS = "in_progress"
MAINTENANCE_STATUS_COMPLETED = "completed"
PM_STATUS_SCHEDULED = "scheduled"


class Equipment(Base):
    __tablename__ = "equipments"
    __table_args__ = {"schema": "maintenance"}

    Id = Column(Integer, primary_key=True, index=True)
    EquipmentCode = Column(String(40), nullable=False, unique=True, index=True)
    EquipmentName = Column(Unicode(160), nullable=False)
    EquipmentNameKo = Column(Unicode(160))
    Building = Column(Unicode(80))
    IsActive = Column(Boolean, nullable=False, default=True)


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"
    __table_args__ = (
        Index("ix_maintenance_records_status_start", "Status", "StartTime"),
        {"schema": "maintenance"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    EquipmentId = Column(Integer, ForeignKey("maintenance.equipments.Id"), nullable=False, index=True)
    TechnicianId = Column(String(36), ForeignKey("auth.users.Id"), index=True)
    RepairTypeCode = Column(String(10))
    Status = Column(String(20), nullable=False, default=MAINTENANCE_STATUS_IN_PROGRESS)
    Symptom = Column(Unicode(400))
    StartTime = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    EndTime = Column(DateTime(timezone=True))
    Rating = Column(Integer)


class PmTemplate(Base):
    __tablename__ = "pm_templates"
    __table_args__ = {"schema": "maintenance"}

    Id = Column(Integer, primary_key=True, index=True)
    Name = Column(Unicode(160), nullable=False)
    NameKo = Column(Unicode(160))
    NameVi = Column(Unicode(160))


class PmSchedule(Base):
    __tablename__ = "pm_schedules"
    __table_args__ = (
        Index("ix_pm_schedules_status_date", "Status", "ScheduledDate"),
        {"schema": "maintenance"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    EquipmentId = Column(Integer, ForeignKey("maintenance.equipments.Id"), nullable=False, index=True)
    TemplateId = Column(Integer, ForeignKey("maintenance.pm_templates.Id"), nullable=False)
    ScheduledDate = Column(Date, nullable=False)
    AssignedTechnicianId = Column(String(36), ForeignKey("auth.users.Id"))
    Priority = Column(String(20), nullable=False, default="normal")
    Status = Column(String(20), nullable=False, default=PM_STATUS_SCHEDULED)
    NotifiedToday = Column(Boolean, nullable=False, default=False)
    Notified1Day = Column(Boolean, nullable=False, default=False)
    Notified3Days = Column(Boolean, nullable=False, default=False)
