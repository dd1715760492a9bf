"""Pydantic models for the scheduling engine."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_BUFFER_MINUTES = 120


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_midnight(value: datetime) -> datetime:
    """UTC midnight of the calendar day containing *value*."""
    value = ensure_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED})


class RejectCode(str, Enum):
    """Reasons the booking guard can refuse a proposed time."""

    NO_AVAILABILITY = "NO_AVAILABILITY"
    OUTSIDE_WINDOW = "OUTSIDE_WINDOW"
    OVERLAP = "OVERLAP"


class TimeInterval(BaseModel):
    """Half-open UTC interval ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeInterval":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class RecurringRule(BaseModel):
    """Weekly window in minutes after UTC midnight.

    ``day_of_week`` counts from Sunday: 0=Sun, 1=Mon .. 6=Sat.
    """

    day_of_week: int = Field(ge=0, le=6)
    start_minute: int = Field(ge=0, le=1440)
    end_minute: int = Field(ge=0, le=1440)

    @model_validator(mode="after")
    def _check_order(self) -> "RecurringRule":
        if self.end_minute <= self.start_minute:
            raise ValueError("end_minute must be after start_minute")
        return self


class AvailabilityProfile(BaseModel):
    """A doctor's availability: weekly rules, one-off windows and blackouts."""

    doctor_id: str
    weekly: list[RecurringRule] = []
    date_windows: list[TimeInterval] = []
    blackout_windows: list[TimeInterval] = []
    slot_size_minutes: int = Field(default=30, ge=5, le=240)
    buffer_minutes: int = Field(default=0, ge=0, le=MAX_BUFFER_MINUTES)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def buffer(self) -> timedelta:
        minutes = min(max(self.buffer_minutes, 0), MAX_BUFFER_MINUTES)
        return timedelta(minutes=minutes)

    @property
    def slot_size(self) -> timedelta:
        return timedelta(minutes=self.slot_size_minutes)


class AvailabilityIn(BaseModel):
    """Full replacement payload for a doctor's availability."""

    weekly: list[RecurringRule] = []
    date_windows: list[TimeInterval] = []
    blackout_windows: list[TimeInterval] = []
    slot_size_minutes: int = Field(default=30, ge=5, le=240)
    buffer_minutes: int = Field(default=0, ge=0, le=MAX_BUFFER_MINUTES)


class AvailabilityPatch(BaseModel):
    """Partial update; only fields that are set are applied."""

    weekly: Optional[list[RecurringRule]] = None
    date_windows: Optional[list[TimeInterval]] = None
    blackout_windows: Optional[list[TimeInterval]] = None
    slot_size_minutes: Optional[int] = Field(default=None, ge=5, le=240)
    buffer_minutes: Optional[int] = Field(default=None, ge=0, le=MAX_BUFFER_MINUTES)

    def updates(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class Appointment(BaseModel):
    """A booked appointment."""

    id: str
    patient_id: str
    doctor_id: str
    date: datetime
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    notes: Optional[str] = None
    confirmation_code: str
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("date", "start_time", "end_time")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start_time, end=self.end_time)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class AppointmentCreate(BaseModel):
    """Request to book a single appointment."""

    patient_id: str = Field(min_length=1)
    doctor_id: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("status")
    @classmethod
    def _active_only(cls, v: AppointmentStatus) -> AppointmentStatus:
        if v not in ACTIVE_STATUSES:
            raise ValueError("new appointments must be pending or confirmed")
        return v

    @model_validator(mode="after")
    def _check_order(self) -> "AppointmentCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AppointmentFilters(BaseModel):
    """Filters for listing appointments."""

    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None


class BookingDecision(BaseModel):
    """Outcome of the booking guard: accepted, or rejected with a code."""

    accepted: bool
    code: Optional[RejectCode] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls) -> "BookingDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, code: RejectCode, message: str) -> "BookingDecision":
        return cls(accepted=False, code=code, message=message)


class SlotResult(BaseModel):
    """Free slots for a doctor over a window."""

    slot_size_minutes: Optional[int] = None
    slots: list[TimeInterval] = []


class AppointmentPage(BaseModel):
    total: int
    page: int
    pages: int
    items: list[Appointment] = []


class AvailabilityPage(BaseModel):
    total: int
    page: int
    pages: int
    items: list[AvailabilityProfile] = []
