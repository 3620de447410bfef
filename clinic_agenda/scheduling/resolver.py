"""
Availability Resolver

Answers "which times can a patient book with professional P on date D" and
arbitrates booking creation.

The pre-insert check against current bookings only improves the user
experience: two concurrent requests can both pass it. The unique/exclusion
constraint on ``appointments`` is what actually prevents double booking, and a
violation comes back from the appointment store as ``SlotConflict``.
"""
import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Protocol

from clinic_agenda.core import config
from clinic_agenda.core.errors import SlotConflict, ValidationError
from clinic_agenda.models.appointment import APPOINTMENT_STATUSES, RELEASED_STATUSES, STATUS_CANCELLED
from clinic_agenda.scheduling.conflicts import is_booked, local_day_bounds, local_instant, mark_booked, resolve_timezone
from clinic_agenda.scheduling.schemas import (
    AppointmentRecord,
    BookedRange,
    CandidateSlot,
    WeeklyAvailabilitySlot,
    format_minutes,
    to_minutes,
)
from clinic_agenda.scheduling.slots import generate, validate_slot_duration

logger = logging.getLogger(__name__)


class WeeklyAvailabilityCollaborator(Protocol):
    def get(self, professional_id: str, clinic_id: str | None = None) -> list[WeeklyAvailabilitySlot]: ...

    def replace_all(self, professional_id: str, new_slots: Iterable[Any], clinic_id: str | None = None) -> None: ...


class AppointmentCollaborator(Protocol):
    """Reads committed appointments and inserts new ones under a uniqueness constraint."""

    def list_by_professional_and_date_range(
        self,
        professional_id: str,
        range_start: datetime,
        range_end: datetime,
        exclude_statuses: Iterable[str] = ...,
    ) -> list[AppointmentRecord]: ...

    def insert(
        self,
        professional_id: str,
        patient_id: str,
        starts_at: datetime,
        ends_at: datetime,
        clinic_id: str | None = None,
        notes: str | None = None,
    ) -> AppointmentRecord: ...

    def update_status(self, appointment_id: str, status: str) -> AppointmentRecord: ...


def ensure_within_booking_window(
    target_date: date,
    today: date,
    min_days_ahead: int = config.BOOKING_MIN_DAYS_AHEAD,
    max_days_ahead: int = config.BOOKING_MAX_DAYS_AHEAD,
) -> None:
    earliest = today + timedelta(days=min_days_ahead)
    latest = today + timedelta(days=max_days_ahead)
    if target_date < earliest or target_date > latest:
        raise ValidationError(
            f'Appointments can only be booked between {earliest.isoformat()} and {latest.isoformat()}.'
        )


class AvailabilityResolver:
    def __init__(self, availability_store: WeeklyAvailabilityCollaborator, appointment_store: AppointmentCollaborator):
        self.availability_store = availability_store
        self.appointment_store = appointment_store

    def get_weekly_availability(self, professional_id: str, clinic_id: str | None = None) -> list[WeeklyAvailabilitySlot]:
        return self.availability_store.get(professional_id, clinic_id=clinic_id)

    def replace_weekly_availability(
        self,
        professional_id: str,
        slots: Iterable[WeeklyAvailabilitySlot | dict[str, Any]],
        clinic_id: str | None = None,
    ) -> None:
        slots = list(slots)
        self.availability_store.replace_all(professional_id, slots, clinic_id=clinic_id)
        logger.info('Replaced weekly availability for professional %s (%d windows)', professional_id, len(slots))

    def booked_ranges(self, professional_id: str, target_date: date, clinic_timezone: str | tzinfo) -> list[BookedRange]:
        day_start, day_end = local_day_bounds(target_date, clinic_timezone)
        appointments = self.appointment_store.list_by_professional_and_date_range(
            professional_id,
            day_start,
            day_end,
            exclude_statuses=RELEASED_STATUSES,
        )
        return [appointment.as_booked_range() for appointment in appointments]

    def list_available_slots(
        self,
        professional_id: str,
        target_date: date,
        slot_duration_minutes: int,
        clinic_timezone: str | tzinfo,
        clinic_id: str | None = None,
    ) -> list[CandidateSlot]:
        """Every candidate for the day, booked ones included and flagged.

        With ``clinic_id`` set, only windows the professional keeps in that clinic count.
        """
        clinic_timezone = resolve_timezone(clinic_timezone)
        weekly_slots = self.availability_store.get(professional_id, clinic_id=clinic_id)
        candidates = generate(weekly_slots, target_date, slot_duration_minutes)
        if not candidates:
            return []

        booked = self.booked_ranges(professional_id, target_date, clinic_timezone)
        return mark_booked(candidates, booked, target_date, slot_duration_minutes, clinic_timezone)

    def create_booking(
        self,
        professional_id: str,
        patient_id: str,
        target_date: date,
        start_time: str,
        slot_duration_minutes: int,
        clinic_timezone: str | tzinfo,
        clinic_id: str | None = None,
        notes: str | None = None,
    ) -> AppointmentRecord:
        validate_slot_duration(slot_duration_minutes)
        clinic_timezone = resolve_timezone(clinic_timezone)
        if not professional_id or not patient_id:
            raise ValidationError('Professional and patient are required.')
        start_time = format_minutes(to_minutes(start_time))

        weekly_slots = self.availability_store.get(professional_id, clinic_id=clinic_id)
        if start_time not in generate(weekly_slots, target_date, slot_duration_minutes):
            raise ValidationError(f'{start_time} is not an available time for this professional on {target_date.isoformat()}.')

        starts_at = local_instant(target_date, start_time, clinic_timezone)
        ends_at = starts_at + timedelta(minutes=slot_duration_minutes)

        if is_booked(starts_at, ends_at, self.booked_ranges(professional_id, target_date, clinic_timezone)):
            logger.warning('Slot %s %s already taken for professional %s', target_date, start_time, professional_id)
            raise SlotConflict(professional_id)

        try:
            appointment = self.appointment_store.insert(
                professional_id,
                patient_id,
                starts_at,
                ends_at,
                clinic_id=clinic_id,
                notes=notes,
            )
        except SlotConflict:
            logger.warning(
                'Slot %s %s for professional %s was booked concurrently',
                target_date,
                start_time,
                professional_id,
            )
            raise

        logger.info('Booked appointment %s with professional %s at %s', appointment.id, professional_id, starts_at.isoformat())
        return appointment

    def update_booking_status(self, appointment_id: str, status: str) -> AppointmentRecord:
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(f'Unknown appointment status {status!r}.')
        return self.appointment_store.update_status(appointment_id, status)

    def cancel_booking(self, appointment_id: str) -> AppointmentRecord:
        return self.update_booking_status(appointment_id, STATUS_CANCELLED)
