"""
Typed records shared by the scheduling core.

Rows coming from the database pass through ``decode`` so a malformed row fails
at the boundary with ``ValidationError`` instead of surfacing later as ``None``.
"""
import re
from datetime import datetime, time, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from clinic_agenda.core.errors import ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$')

ModelT = TypeVar('ModelT', bound=BaseModel)


def to_minutes(value: str) -> int:
    """Parse ``HH:MM`` (or Postgres ``HH:MM:SS``) into minutes since midnight."""
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValidationError(f'Invalid time {value!r}; expected HH:MM.')

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f'Invalid time {value!r}; expected HH:MM.')

    return hours * 60 + minutes


def format_minutes(total_minutes: int) -> str:
    return f'{total_minutes // 60:02d}:{total_minutes % 60:02d}'


def as_utc(value: datetime) -> datetime:
    # Naive values only come back from SQLite, which stores UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def decode(model: type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        first_error = exc.errors()[0]
        location = '.'.join(str(part) for part in first_error.get('loc', ())) or model.__name__
        raise ValidationError(f'Malformed {model.__name__} ({location}): {first_error["msg"]}') from exc


class WeeklyAvailabilitySlot(BaseModel):
    professional_id: str | None = None
    weekday: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    active: bool = True

    class Config:
        from_attributes = True

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def normalize_time(cls, value: Any) -> str:
        if isinstance(value, time):
            return format_minutes(value.hour * 60 + value.minute)
        if isinstance(value, str):
            return format_minutes(to_minutes(value))
        raise ValueError('Time must be an HH:MM string.')

    @model_validator(mode='after')
    def check_window(self) -> 'WeeklyAvailabilitySlot':
        if self.start_minutes >= self.end_minutes:
            raise ValueError(f'Start time {self.start_time} must be before end time {self.end_time}.')
        return self

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end_time)

    def as_time_bounds(self) -> tuple[time, time]:
        start, end = self.start_minutes, self.end_minutes
        return time(start // 60, start % 60), time(end // 60, end % 60)


class BookedRange(BaseModel):
    starts_at: datetime
    ends_at: datetime
    professional_id: str | None = None

    class Config:
        from_attributes = True

    @field_validator('starts_at', 'ends_at')
    @classmethod
    def normalize_instant(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode='after')
    def check_range(self) -> 'BookedRange':
        if self.ends_at <= self.starts_at:
            raise ValueError('Booked range must end after it starts.')
        return self


class CandidateSlot(BaseModel):
    start_time: str
    booked: bool = False


class AppointmentRecord(BaseModel):
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

    @field_validator('starts_at', 'ends_at')
    @classmethod
    def normalize_instant(cls, value: datetime) -> datetime:
        return as_utc(value)

    def as_booked_range(self) -> BookedRange:
        return BookedRange(starts_at=self.starts_at, ends_at=self.ends_at, professional_id=self.professional_id)
