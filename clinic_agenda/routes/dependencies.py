from datetime import date, datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_agenda.core.errors import MSG_DATABASE_UNAVAILABLE
from clinic_agenda.database import SessionLocal, ensure_appointment_schema, ensure_availability_schema
from clinic_agenda.models.clinic import Clinic
from clinic_agenda.scheduling.conflicts import resolve_timezone
from clinic_agenda.scheduling.resolver import AvailabilityResolver
from clinic_agenda.scheduling.stores import AppointmentStore, WeeklyAvailabilityStore


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=MSG_DATABASE_UNAVAILABLE,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def build_resolver(db: Session) -> AvailabilityResolver:
    return AvailabilityResolver(WeeklyAvailabilityStore(db), AppointmentStore(db))


def get_clinic(clinic_id: str, db: Session) -> Clinic:
    try:
        clinic = db.query(Clinic).filter(Clinic.id == clinic_id).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=MSG_DATABASE_UNAVAILABLE,
        ) from exc

    if clinic is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Clinic not found.')

    return clinic


def clinic_today(clinic: Clinic, now: datetime | None = None) -> date:
    clinic_timezone = resolve_timezone(clinic.timezone)
    current = now or datetime.now(clinic_timezone)
    return current.astimezone(clinic_timezone).date()
