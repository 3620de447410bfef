from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinic_agenda.auth.dependencies import Caller, ensure_can_edit_schedule, ensure_clinic_member, get_current_user
from clinic_agenda.core.errors import SchedulingError, scheduling_error_to_http
from clinic_agenda.routes.dependencies import build_resolver, ensure_database_ready, get_clinic, get_db
from clinic_agenda.scheduling.conflicts import local_instant

router = APIRouter(tags=['availability'])

MAX_WEEKLY_WINDOWS = 100


class WeeklySlotRequest(BaseModel):
    weekday: int
    start_time: str
    end_time: str
    active: bool = True


class ReplaceWeeklyAvailabilityRequest(BaseModel):
    slots: list[WeeklySlotRequest]


class WeeklySlotResponse(BaseModel):
    professional_id: str | None = None
    weekday: int
    start_time: str
    end_time: str
    active: bool

    class Config:
        from_attributes = True


class CandidateSlotResponse(BaseModel):
    start_time: str
    starts_at: datetime
    ends_at: datetime
    booked: bool


class DaySlotsResponse(BaseModel):
    professional_id: str
    date: date
    slot_duration_minutes: int
    timezone: str
    slots: list[CandidateSlotResponse]


@router.get(
    '/clinics/{clinic_id}/professionals/{professional_id}/weekly-availability',
    response_model=list[WeeklySlotResponse],
)
def get_weekly_availability(
    clinic_id: str,
    professional_id: str,
    caller: Caller = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_clinic_member(caller, clinic_id)
    ensure_database_ready()

    try:
        return build_resolver(db).get_weekly_availability(professional_id, clinic_id=clinic_id)
    except SchedulingError as exc:
        raise scheduling_error_to_http(exc) from exc


@router.put(
    '/clinics/{clinic_id}/professionals/{professional_id}/weekly-availability',
    response_model=list[WeeklySlotResponse],
)
def replace_weekly_availability(
    clinic_id: str,
    professional_id: str,
    data: ReplaceWeeklyAvailabilityRequest,
    caller: Caller = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_clinic_member(caller, clinic_id)
    ensure_can_edit_schedule(caller, professional_id)

    if len(data.slots) > MAX_WEEKLY_WINDOWS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'A weekly schedule can have at most {MAX_WEEKLY_WINDOWS} windows.',
        )

    ensure_database_ready()
    resolver = build_resolver(db)

    try:
        resolver.replace_weekly_availability(
            professional_id,
            [slot.model_dump() for slot in data.slots],
            clinic_id=clinic_id,
        )
        return resolver.get_weekly_availability(professional_id, clinic_id=clinic_id)
    except SchedulingError as exc:
        raise scheduling_error_to_http(exc) from exc


@router.get(
    '/clinics/{clinic_id}/professionals/{professional_id}/slots',
    response_model=DaySlotsResponse,
)
def list_day_slots(
    clinic_id: str,
    professional_id: str,
    slot_date: date = Query(..., alias='date'),
    caller: Caller = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_clinic_member(caller, clinic_id)
    ensure_database_ready()

    clinic = get_clinic(clinic_id, db)
    duration = timedelta(minutes=clinic.slot_duration_minutes)

    try:
        candidates = build_resolver(db).list_available_slots(
            professional_id,
            slot_date,
            clinic.slot_duration_minutes,
            clinic.timezone,
            clinic_id=clinic_id,
        )
        slots = []
        for candidate in candidates:
            starts_at = local_instant(slot_date, candidate.start_time, clinic.timezone)
            slots.append(
                CandidateSlotResponse(
                    start_time=candidate.start_time,
                    starts_at=starts_at,
                    ends_at=starts_at + duration,
                    booked=candidate.booked,
                )
            )
    except SchedulingError as exc:
        raise scheduling_error_to_http(exc) from exc

    return DaySlotsResponse(
        professional_id=professional_id,
        date=slot_date,
        slot_duration_minutes=clinic.slot_duration_minutes,
        timezone=clinic.timezone,
        slots=slots,
    )
