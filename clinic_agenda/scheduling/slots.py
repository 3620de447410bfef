"""
Slot generation.

Turns a professional's weekly availability into the bookable start times of one
calendar date. Times are handled as minutes since midnight; only the public
input and output use ``HH:MM`` strings.
"""
from collections.abc import Iterable
from datetime import date

from clinic_agenda.core.errors import ValidationError
from clinic_agenda.scheduling.schemas import WeeklyAvailabilitySlot, format_minutes


def sunday_based_weekday(target_date: date) -> int:
    """0 = Sunday ... 6 = Saturday, the convention of the weekly store."""
    return (target_date.weekday() + 1) % 7


def validate_slot_duration(slot_duration_minutes: int) -> int:
    if isinstance(slot_duration_minutes, bool) or not isinstance(slot_duration_minutes, int):
        raise ValidationError('Slot duration must be a whole number of minutes.')
    if slot_duration_minutes <= 0:
        raise ValidationError('Slot duration must be positive.')
    return slot_duration_minutes


def iterate_window_starts(start_minutes: int, end_minutes: int, slot_duration_minutes: int) -> list[int]:
    starts: list[int] = []
    current = start_minutes

    # A slot that would run past the window's end is dropped, not truncated.
    while current + slot_duration_minutes <= end_minutes:
        starts.append(current)
        current += slot_duration_minutes

    return starts


def generate(
    weekly_slots: Iterable[WeeklyAvailabilitySlot],
    target_date: date,
    slot_duration_minutes: int,
) -> list[str]:
    validate_slot_duration(slot_duration_minutes)
    if not isinstance(target_date, date):
        raise ValidationError(f'Invalid date {target_date!r}.')

    weekday = sunday_based_weekday(target_date)
    day_slots = [slot for slot in weekly_slots if slot.weekday == weekday and slot.active]

    # Windows are merged, not concatenated: overlapping ones would otherwise offer
    # the same minute twice. Each start is kept once, in ascending order.
    starts: set[int] = set()
    for slot in day_slots:
        starts.update(iterate_window_starts(slot.start_minutes, slot.end_minutes, slot_duration_minutes))

    return [format_minutes(start) for start in sorted(starts)]
