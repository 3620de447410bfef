from datetime import datetime, time, timezone
from types import SimpleNamespace

import pytest

from clinic_agenda.core.errors import ValidationError
from clinic_agenda.scheduling.schemas import (
    AppointmentRecord,
    BookedRange,
    WeeklyAvailabilitySlot,
    decode,
    format_minutes,
    to_minutes,
)


@pytest.mark.parametrize(
    ('value', 'expected'),
    [('00:00', 0), ('08:30', 510), ('23:59', 1439), ('9:05', 545), ('08:30:00', 510)],
)
def test_to_minutes_parses_wall_clock_times(value: str, expected: int) -> None:
    assert to_minutes(value) == expected


@pytest.mark.parametrize('value', ['24:00', '12:60', '0830', '', 'noon', None])
def test_to_minutes_rejects_malformed_times(value) -> None:
    with pytest.raises(ValidationError):
        to_minutes(value)


def test_format_minutes_pads_hours_and_minutes() -> None:
    assert format_minutes(545) == '09:05'


def test_weekly_slot_normalizes_database_times() -> None:
    row = SimpleNamespace(professional_id='prof-1', weekday=1, start_time=time(8, 0), end_time='12:00:00', active=True)

    slot = decode(WeeklyAvailabilitySlot, row)

    assert slot.start_time == '08:00'
    assert slot.end_time == '12:00'


@pytest.mark.parametrize(
    'payload',
    [
        {'weekday': 1, 'start_time': '10:00', 'end_time': '10:00'},
        {'weekday': 1, 'start_time': '11:00', 'end_time': '10:00'},
        {'weekday': 7, 'start_time': '08:00', 'end_time': '10:00'},
        {'weekday': None, 'start_time': '08:00', 'end_time': '10:00'},
        {'weekday': 1, 'start_time': None, 'end_time': '10:00'},
        {'weekday': 1, 'start_time': '8h', 'end_time': '10:00'},
    ],
)
def test_decode_rejects_malformed_weekly_slots(payload: dict) -> None:
    with pytest.raises(ValidationError):
        decode(WeeklyAvailabilitySlot, payload)


def test_booked_range_treats_naive_values_as_utc() -> None:
    booked = BookedRange(starts_at=datetime(2026, 1, 6, 12, 0), ends_at=datetime(2026, 1, 6, 12, 30))

    assert booked.starts_at == datetime(2026, 1, 6, 12, 0, tzinfo=timezone.utc)


def test_booked_range_rejects_inverted_range() -> None:
    with pytest.raises(ValidationError):
        decode(BookedRange, {'starts_at': datetime(2026, 1, 6, 13, 0), 'ends_at': datetime(2026, 1, 6, 12, 0)})


def test_decode_rejects_appointment_row_missing_fields() -> None:
    row = SimpleNamespace(
        id='appt-1',
        clinic_id='clinic-1',
        patient_id=None,
        professional_id='prof-1',
        starts_at=datetime(2026, 1, 6, 12, 0),
        ends_at=datetime(2026, 1, 6, 12, 30),
        status='scheduled',
        notes=None,
    )

    with pytest.raises(ValidationError):
        decode(AppointmentRecord, row)
