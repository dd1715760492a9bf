"""Availability and booking engine for MediBook."""

from medibook.scheduling.errors import (
    AppointmentNotFoundError,
    AvailabilityNotFoundError,
    BookingRejectedError,
    InvalidInputError,
    InvalidTransitionError,
    SchedulingError,
    SlotConflictError,
)
from medibook.scheduling.guard import BookingGuard
from medibook.scheduling.models import (
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    AvailabilityProfile,
    BookingDecision,
    RecurringRule,
    RejectCode,
    SlotResult,
    TimeInterval,
)
from medibook.scheduling.service import SchedulingService

__all__ = [
    "Appointment",
    "AppointmentCreate",
    "AppointmentNotFoundError",
    "AppointmentStatus",
    "AvailabilityNotFoundError",
    "AvailabilityProfile",
    "BookingDecision",
    "BookingGuard",
    "BookingRejectedError",
    "InvalidInputError",
    "InvalidTransitionError",
    "RecurringRule",
    "RejectCode",
    "SchedulingError",
    "SchedulingService",
    "SlotConflictError",
    "SlotResult",
    "TimeInterval",
]
