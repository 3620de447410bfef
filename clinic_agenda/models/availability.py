"""Weekly availability model definitions."""

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, SmallInteger, String, Time, func
from clinic_agenda.database import Base


class AvailabilitySlot(Base):
    """A recurring weekly window during which a professional accepts bookings."""
    __tablename__ = "availability_slots"
    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_availability_slots_weekday"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    clinic_id = Column(String(36), index=True)
    professional_id = Column(String(36), nullable=False, index=True)
    weekday = Column(SmallInteger, nullable=False)  # 0=Sun 6=Sat
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
