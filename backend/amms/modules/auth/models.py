import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Unicode

from amms.db import Base

ROLE_ADMIN = 1
ROLE_SUPERVISOR = 2
ROLE_TECHNICIAN = 3
ROLE_VIEWER = 4


def _NewId() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"schema": "auth"}

    Id = Column(String(36), primary_key=True, default=_NewId)
    Username = Column(String(120), nullable=False, unique=True, index=True)
    Email = Column(String(254))
    FullName = Column(Unicode(120))
    Role = Column(Integer, nullable=False, default=ROLE_VIEWER, index=True)
    Department = Column(Unicode(80), index=True)
    IsActive = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
