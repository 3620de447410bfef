"""Appointment model definitions."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, String, Text, func, text
from clinic_agenda.database import Base

STATUS_SCHEDULED = "scheduled"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no_show"

APPOINTMENT_STATUSES = (
    STATUS_SCHEDULED,
    STATUS_CONFIRMED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)

# Statuses that no longer occupy the professional's time.
RELEASED_STATUSES = (STATUS_CANCELLED,)

APPOINTMENT_STATUS_TRANSITIONS = {
    STATUS_SCHEDULED: {STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_NO_SHOW},
    STATUS_CONFIRMED: {STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
    STATUS_NO_SHOW: set(),
}

_OCCUPYING_PREDICATE = text("status <> 'cancelled'")
_KNOWN_STATUS_PREDICATE = "status IN (" + ", ".join(f"'{status}'" for status in APPOINTMENT_STATUSES) + ")"


def can_transition(current: str, target: str) -> bool:
    return target in APPOINTMENT_STATUS_TRANSITIONS.get(current, set())


class Appointment(Base):
    """Represents a booked appointment with a professional."""
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(_KNOWN_STATUS_PREDICATE, name="ck_appointments_status"),
        Index(
            "uq_appointments_professional_start",
            "professional_id",
            "starts_at",
            unique=True,
            sqlite_where=_OCCUPYING_PREDICATE,
            postgresql_where=_OCCUPYING_PREDICATE,
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    clinic_id = Column(String(36), index=True)
    patient_id = Column(String(36), nullable=False)
    professional_id = Column(String(36), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, default=STATUS_SCHEDULED)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
