"""Marking candidate start times that collide with existing bookings."""
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from clinic_agenda.core.errors import ValidationError
from clinic_agenda.scheduling.schemas import BookedRange, CandidateSlot, to_minutes
from clinic_agenda.scheduling.slots import validate_slot_duration


def resolve_timezone(value: str | tzinfo) -> tzinfo:
    if isinstance(value, tzinfo):
        return value
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise ValidationError(f'Unknown timezone {value!r}.') from exc


def local_instant(target_date: date, start_time: str, clinic_timezone: str | tzinfo) -> datetime:
    """The UTC instant of a local ``HH:MM`` wall-clock time on ``target_date``."""
    minutes = to_minutes(start_time)
    local = datetime.combine(target_date, time(minutes // 60, minutes % 60), tzinfo=resolve_timezone(clinic_timezone))
    return local.astimezone(timezone.utc)


def local_day_bounds(target_date: date, clinic_timezone: str | tzinfo) -> tuple[datetime, datetime]:
    tz = resolve_timezone(clinic_timezone)
    day_start = datetime.combine(target_date, time.min, tzinfo=tz)
    day_end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=tz)
    return day_start.astimezone(timezone.utc), day_end.astimezone(timezone.utc)


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and end > other_start


def is_booked(slot_start: datetime, slot_end: datetime, booked_ranges: Iterable[BookedRange]) -> bool:
    return any(overlaps(slot_start, slot_end, booked.starts_at, booked.ends_at) for booked in booked_ranges)


def mark_booked(
    candidates: Iterable[str],
    booked_ranges: Iterable[BookedRange],
    target_date: date,
    slot_duration_minutes: int,
    clinic_timezone: str | tzinfo,
) -> list[CandidateSlot]:
    """Annotate each candidate with whether its full interval hits a booking.

    The caller is responsible for leaving cancelled appointments out of
    ``booked_ranges``.
    """
    validate_slot_duration(slot_duration_minutes)
    tz = resolve_timezone(clinic_timezone)
    ranges = list(booked_ranges)
    duration = timedelta(minutes=slot_duration_minutes)

    marked: list[CandidateSlot] = []
    for start_time in candidates:
        slot_start = local_instant(target_date, start_time, tz)
        marked.append(
            CandidateSlot(start_time=start_time, booked=is_booked(slot_start, slot_start + duration, ranges))
        )

    return marked
