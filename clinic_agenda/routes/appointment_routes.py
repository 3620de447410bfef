from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from clinic_agenda.auth.dependencies import Caller, ensure_can_book_for, ensure_clinic_member, get_current_user
from clinic_agenda.core.errors import SchedulingError, scheduling_error_to_http
from clinic_agenda.models.appointment import APPOINTMENT_STATUSES, STATUS_CANCELLED
from clinic_agenda.routes.dependencies import (
    build_resolver,
    clinic_today,
    ensure_database_ready,
    get_clinic,
    get_db,
)
from clinic_agenda.scheduling.resolver import ensure_within_booking_window
from clinic_agenda.scheduling.schemas import AppointmentRecord

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600


class CreateAppointmentRequest(BaseModel):
    professional_id: str
    patient_id: str | None = None
    date: date
    start_time: str
    notes: str | None = None

    @field_validator('professional_id')
    @classmethod
    def validate_professional_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Professional is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateAppointmentStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError('Invalid appointment status.')
        return normalized


class AppointmentResponse(BaseModel):
    id: str
    clinic_id: str | None = None
    patient_id: str
    professional_id: str
    starts_at: datetime
    ends_at: datetime
    status: str
    notes: str | None = None

    class Config:
        from_attributes = True


def to_response(appointment: AppointmentRecord) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment.model_dump())


@router.post(
    '/clinics/{clinic_id}/appointments',
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_appointment(
    clinic_id: str,
    data: CreateAppointmentRequest,
    caller: Caller = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_clinic_member(caller, clinic_id)

    patient_id = data.patient_id or caller.patient_id
    if not patient_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Patient is required.')
    ensure_can_book_for(caller, patient_id)

    ensure_database_ready()
    clinic = get_clinic(clinic_id, db)

    try:
        if not caller.is_staff:
            ensure_within_booking_window(data.date, clinic_today(clinic))

        appointment = build_resolver(db).create_booking(
            data.professional_id,
            patient_id,
            data.date,
            data.start_time,
            clinic.slot_duration_minutes,
            clinic.timezone,
            clinic_id=clinic_id,
            notes=data.notes,
        )
    except SchedulingError as exc:
        raise scheduling_error_to_http(exc) from exc

    return to_response(appointment)


@router.patch(
    '/clinics/{clinic_id}/appointments/{appointment_id}/status',
    response_model=AppointmentResponse,
)
def update_appointment_status(
    clinic_id: str,
    appointment_id: str,
    data: UpdateAppointmentStatusRequest,
    caller: Caller = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_clinic_member(caller, clinic_id)
    ensure_database_ready()
    resolver = build_resolver(db)

    try:
        appointment = resolver.appointment_store.get(appointment_id)
        if appointment is None or appointment.clinic_id != clinic_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found.')

        if not caller.is_staff:
            ensure_can_book_for(caller, appointment.patient_id)
            if data.status != STATUS_CANCELLED:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Patients can only cancel their appointments.',
                )

        updated = resolver.update_booking_status(appointment_id, data.status)
    except SchedulingError as exc:
        raise scheduling_error_to_http(exc) from exc

    return to_response(updated)

