"""
SQLAlchemy-backed collaborators of the availability resolver.

Both stores own a request-scoped ``Session``. Driver and connection failures are
rolled back and re-raised as ``PersistenceError``; uniqueness and exclusion
violations on appointment inserts become ``SlotConflict``.
"""
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_agenda.core.errors import NotFoundError, PersistenceError, SlotConflict, ValidationError
from clinic_agenda.models.appointment import (
    RELEASED_STATUSES,
    STATUS_SCHEDULED,
    Appointment,
    can_transition,
)
from clinic_agenda.models.availability import AvailabilitySlot
from clinic_agenda.scheduling.schemas import AppointmentRecord, WeeklyAvailabilitySlot, as_utc, decode

logger = logging.getLogger(__name__)

# unique_violation, exclusion_violation
CONFLICT_SQLSTATES = {'23505', '23P01'}


def is_slot_conflict(exc: IntegrityError) -> bool:
    driver_error = exc.orig
    sqlstate = getattr(driver_error, 'pgcode', None) or getattr(driver_error, 'sqlstate', None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    return 'UNIQUE constraint failed' in str(driver_error)


class WeeklyAvailabilityStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, professional_id: str, clinic_id: str | None = None) -> list[WeeklyAvailabilitySlot]:
        try:
            query = self.db.query(AvailabilitySlot).filter(
                AvailabilitySlot.professional_id == professional_id,
            )
            if clinic_id is not None:
                query = query.filter(AvailabilitySlot.clinic_id == clinic_id)
            rows = query.order_by(
                AvailabilitySlot.weekday.asc(),
                AvailabilitySlot.start_time.asc(),
            ).all()
        except SQLAlchemyError as exc:
            raise PersistenceError('Could not load weekly availability.') from exc

        return [decode(WeeklyAvailabilitySlot, row) for row in rows]

    def replace_all(
        self,
        professional_id: str,
        new_slots: Iterable[WeeklyAvailabilitySlot | dict[str, Any]],
        clinic_id: str | None = None,
    ) -> None:
        """Swap the whole weekly set in one transaction.

        Readers see either the old set or the new one, never an empty or doubled
        schedule in between. With ``clinic_id`` set, only that clinic's rows are
        touched, and a professional whose schedule belongs to another clinic is
        reported as not found.
        """
        validated = [decode(WeeklyAvailabilitySlot, slot) for slot in new_slots]

        if clinic_id is not None and self._belongs_to_other_clinic(professional_id, clinic_id):
            raise NotFoundError('Professional not found in this clinic.')

        rows = []
        for slot in validated:
            start_time, end_time = slot.as_time_bounds()
            rows.append(
                AvailabilitySlot(
                    clinic_id=clinic_id,
                    professional_id=professional_id,
                    weekday=slot.weekday,
                    start_time=start_time,
                    end_time=end_time,
                    active=slot.active,
                )
            )

        try:
            stale = self.db.query(AvailabilitySlot).filter(
                AvailabilitySlot.professional_id == professional_id,
            )
            if clinic_id is not None:
                stale = stale.filter(AvailabilitySlot.clinic_id == clinic_id)
            stale.delete(synchronize_session=False)
            self.db.add_all(rows)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError('Could not save weekly availability.') from exc

    def _belongs_to_other_clinic(self, professional_id: str, clinic_id: str) -> bool:
        try:
            foreign = self.db.query(AvailabilitySlot.id).filter(
                AvailabilitySlot.professional_id == professional_id,
                AvailabilitySlot.clinic_id.is_not(None),
                AvailabilitySlot.clinic_id != clinic_id,
            ).first()
        except SQLAlchemyError as exc:
            raise PersistenceError('Could not load weekly availability.') from exc

        return foreign is not None


class AppointmentStore:
    def __init__(self, db: Session):
        self.db = db

    def list_by_professional_and_date_range(
        self,
        professional_id: str,
        range_start: datetime,
        range_end: datetime,
        exclude_statuses: Iterable[str] = RELEASED_STATUSES,
    ) -> list[AppointmentRecord]:
        """Appointments of one professional overlapping ``[range_start, range_end)``."""
        try:
            query = self.db.query(Appointment).filter(
                Appointment.professional_id == professional_id,
                Appointment.starts_at < as_utc(range_end),
                Appointment.ends_at > as_utc(range_start),
            )
            excluded = list(exclude_statuses)
            if excluded:
                query = query.filter(Appointment.status.not_in(excluded))
            rows = query.order_by(Appointment.starts_at.asc()).all()
        except SQLAlchemyError as exc:
            raise PersistenceError('Could not load appointments.') from exc

        return [decode(AppointmentRecord, row) for row in rows]

    def get(self, appointment_id: str) -> AppointmentRecord | None:
        try:
            row = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        except SQLAlchemyError as exc:
            raise PersistenceError('Could not load appointment.') from exc

        return decode(AppointmentRecord, row) if row is not None else None

    def insert(
        self,
        professional_id: str,
        patient_id: str,
        starts_at: datetime,
        ends_at: datetime,
        clinic_id: str | None = None,
        notes: str | None = None,
        status: str = STATUS_SCHEDULED,
    ) -> AppointmentRecord:
        appointment = Appointment(
            clinic_id=clinic_id,
            patient_id=patient_id,
            professional_id=professional_id,
            starts_at=as_utc(starts_at),
            ends_at=as_utc(ends_at),
            status=status,
            notes=notes,
        )

        try:
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
        except IntegrityError as exc:
            self.db.rollback()
            if is_slot_conflict(exc):
                raise SlotConflict(professional_id) from exc
            raise PersistenceError('Could not save appointment.') from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError('Could not save appointment.') from exc

        return decode(AppointmentRecord, appointment)

    def update_status(self, appointment_id: str, status: str) -> AppointmentRecord:
        try:
            appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        except SQLAlchemyError as exc:
            raise PersistenceError('Could not load appointment.') from exc

        if appointment is None:
            raise NotFoundError('Appointment not found.')

        if not can_transition(appointment.status, status):
            raise ValidationError(f'Cannot move an appointment from {appointment.status} to {status}.')

        try:
            appointment.status = status
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError('Could not update appointment.') from exc

        logger.info('Appointment %s moved to %s', appointment_id, status)
        return decode(AppointmentRecord, appointment)
