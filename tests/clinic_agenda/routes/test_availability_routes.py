from datetime import date, datetime, timezone

import pytest
from fastapi import HTTPException

from clinic_agenda.auth.dependencies import Caller
from clinic_agenda.routes.availability_routes import (
    ReplaceWeeklyAvailabilityRequest,
    WeeklySlotRequest,
    get_weekly_availability,
    list_day_slots,
    replace_weekly_availability,
)

ADMIN = Caller(user_id='user-admin', role='admin', clinic_id='clinic-1')
PROFESSIONAL = Caller(user_id='user-prof', role='professional', clinic_id='clinic-1', professional_id='prof-1')
PATIENT = Caller(user_id='user-patient', role='patient', clinic_id='clinic-1', patient_id='patient-1')

TUESDAY = date(2026, 1, 6)


@pytest.fixture(autouse=True)
def skip_schema_bootstrap(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_agenda.routes.availability_routes.ensure_database_ready', lambda: None)


def _schedule_request(*slots: tuple[int, str, str]) -> ReplaceWeeklyAvailabilityRequest:
    return ReplaceWeeklyAvailabilityRequest(
        slots=[WeeklySlotRequest(weekday=weekday, start_time=start, end_time=end) for weekday, start, end in slots]
    )


def test_professional_replaces_own_schedule(db_session) -> None:
    saved = replace_weekly_availability(
        clinic_id='clinic-1',
        professional_id='prof-1',
        data=_schedule_request((2, '08:00', '12:00'), (4, '14:00', '18:00')),
        caller=PROFESSIONAL,
        db=db_session,
    )

    assert [(slot.weekday, slot.start_time, slot.end_time) for slot in saved] == [
        (2, '08:00', '12:00'),
        (4, '14:00', '18:00'),
    ]


def test_professional_cannot_replace_someone_elses_schedule(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        replace_weekly_availability(
            clinic_id='clinic-1',
            professional_id='prof-2',
            data=_schedule_request((2, '08:00', '12:00')),
            caller=PROFESSIONAL,
            db=db_session,
        )

    assert exception_info.value.status_code == 403


def test_patient_cannot_replace_schedule(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        replace_weekly_availability(
            clinic_id='clinic-1',
            professional_id='prof-1',
            data=_schedule_request((2, '08:00', '12:00')),
            caller=PATIENT,
            db=db_session,
        )

    assert exception_info.value.status_code == 403


def test_caller_from_other_clinic_is_rejected(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_weekly_availability(clinic_id='clinic-2', professional_id='prof-1', caller=ADMIN, db=db_session)

    assert exception_info.value.status_code == 403


def test_admin_of_other_clinic_cannot_read_or_erase_schedule(db_session) -> None:
    other_admin = Caller(user_id='user-admin-b', role='admin', clinic_id='clinic-b')
    replace_weekly_availability(
        clinic_id='clinic-b',
        professional_id='prof-b',
        data=_schedule_request((2, '08:00', '12:00')),
        caller=other_admin,
        db=db_session,
    )

    leaked = get_weekly_availability(clinic_id='clinic-1', professional_id='prof-b', caller=ADMIN, db=db_session)
    assert leaked == []

    with pytest.raises(HTTPException) as exception_info:
        replace_weekly_availability(
            clinic_id='clinic-1',
            professional_id='prof-b',
            data=_schedule_request(),
            caller=ADMIN,
            db=db_session,
        )
    assert exception_info.value.status_code == 404

    kept = get_weekly_availability(clinic_id='clinic-b', professional_id='prof-b', caller=other_admin, db=db_session)
    assert [(slot.weekday, slot.start_time, slot.end_time) for slot in kept] == [(2, '08:00', '12:00')]


def test_replace_schedule_rejects_inverted_window(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        replace_weekly_availability(
            clinic_id='clinic-1',
            professional_id='prof-1',
            data=_schedule_request((2, '12:00', '08:00')),
            caller=ADMIN,
            db=db_session,
        )

    assert exception_info.value.status_code == 400


def test_get_weekly_availability_returns_saved_schedule(db_session) -> None:
    replace_weekly_availability(
        clinic_id='clinic-1',
        professional_id='prof-1',
        data=_schedule_request((1, '09:00', '10:00')),
        caller=ADMIN,
        db=db_session,
    )

    slots = get_weekly_availability(clinic_id='clinic-1', professional_id='prof-1', caller=PATIENT, db=db_session)

    assert [(slot.weekday, slot.start_time) for slot in slots] == [(1, '09:00')]


def test_list_day_slots_uses_clinic_configuration(db_session, clinic) -> None:
    replace_weekly_availability(
        clinic_id='clinic-1',
        professional_id='prof-1',
        data=_schedule_request((2, '08:00', '12:00')),
        caller=ADMIN,
        db=db_session,
    )

    response = list_day_slots(
        clinic_id='clinic-1',
        professional_id='prof-1',
        slot_date=TUESDAY,
        caller=PATIENT,
        db=db_session,
    )

    assert response.slot_duration_minutes == 30
    assert response.timezone == 'America/Sao_Paulo'
    assert len(response.slots) == 8
    assert response.slots[0].starts_at == datetime(2026, 1, 6, 11, 0, tzinfo=timezone.utc)
    assert response.slots[0].ends_at == datetime(2026, 1, 6, 11, 30, tzinfo=timezone.utc)


def test_list_day_slots_returns_empty_list_for_day_off(db_session, clinic) -> None:
    response = list_day_slots(
        clinic_id='clinic-1',
        professional_id='prof-1',
        slot_date=TUESDAY,
        caller=PATIENT,
        db=db_session,
    )

    assert response.slots == []


def test_list_day_slots_requires_existing_clinic(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_day_slots(
            clinic_id='clinic-1',
            professional_id='prof-1',
            slot_date=TUESDAY,
            caller=PATIENT,
            db=db_session,
        )

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Clinic not found.'
