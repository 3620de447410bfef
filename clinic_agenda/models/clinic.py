"""Clinic model definitions."""

import uuid

from sqlalchemy import Column, Integer, String
from clinic_agenda.core import config
from clinic_agenda.database import Base


class Clinic(Base):
    """Clinic-level scheduling configuration."""
    __tablename__ = "clinics"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=config.DEFAULT_SLOT_DURATION_MINUTES)
    timezone = Column(String, nullable=False, default=config.DEFAULT_CLINIC_TIMEZONE)
