"""Exceptions raised by the scheduling engine and its entry points."""

from typing import Optional

from medibook.scheduling.models import AppointmentStatus, RejectCode

MSG_OVERLAP = "Time slot already booked"


class SchedulingError(Exception):
    """Base class for expected, user-facing scheduling failures."""

    code: str = "SCHEDULING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidInputError(SchedulingError):
    """A field was malformed or out of range."""

    code = "INVALID_INPUT"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "field": self.field, "message": self.message}


class BookingRejectedError(SchedulingError):
    """The booking guard refused the proposed time."""

    def __init__(self, code: RejectCode, message: str):
        super().__init__(message)
        self.reject_code = code
        self.code = code.value


class SlotConflictError(BookingRejectedError):
    """The store refused a write that would double-book an active slot."""

    def __init__(self, message: str = MSG_OVERLAP):
        super().__init__(RejectCode.OVERLAP, message)


class InvalidTransitionError(SchedulingError):
    """Status change attempted out of a terminal state."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: AppointmentStatus, action: str, message: Optional[str] = None):
        super().__init__(message or f"Cannot {action} an appointment that is {current.value}")
        self.current = current
        self.action = action


class AppointmentNotFoundError(SchedulingError):
    code = "NOT_FOUND"

    def __init__(self, appointment_id: str):
        super().__init__(f"Appointment not found: {appointment_id}")
        self.appointment_id = appointment_id


class AvailabilityNotFoundError(SchedulingError):
    code = "NOT_FOUND"

    def __init__(self, doctor_id: str):
        super().__init__(f"Availability not found for doctor: {doctor_id}")
        self.doctor_id = doctor_id
