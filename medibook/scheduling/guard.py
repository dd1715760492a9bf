"""Booking guard: the authoritative accept/reject decision for a proposed time."""

import logging
from datetime import datetime
from typing import Optional

from medibook.scheduling.busy import BusySetAssembler
from medibook.scheduling.errors import MSG_OVERLAP
from medibook.scheduling.intervals import contains, expand_by_buffer, overlaps, subtract
from medibook.scheduling.models import (
    BookingDecision,
    RejectCode,
    TimeInterval,
    utc_midnight,
)
from medibook.scheduling.ports import AppointmentStore, AvailabilityStore
from medibook.scheduling.windows import ONE_DAY, build_day_windows

logger = logging.getLogger(__name__)

MSG_NO_AVAILABILITY = "No availability configured for this doctor"
MSG_OUTSIDE_WINDOW = "Requested time is outside the doctor's available windows"


class BookingGuard:
    """Checks a proposed appointment against bookings and availability.

    Run it on every create and every reschedule. It does not lock anything:
    the store's uniqueness constraint on active ``(doctor_id, start_time)``
    is what finally serializes concurrent bookings.
    """

    def __init__(self, appointments: AppointmentStore, availability: AvailabilityStore):
        self.appointments = appointments
        self.availability = availability
        self.busy = BusySetAssembler(appointments)

    async def check(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> BookingDecision:
        """Return ``accept`` or a ``reject`` carrying a :class:`RejectCode`.

        *exclude_id* names an appointment to ignore, used when moving an
        existing booking so it does not collide with itself.
        """
        proposed = TimeInterval(start=start, end=end)

        booked = await self.appointments.list_active_overlapping(
            doctor_id, proposed.start, proposed.end, exclude_id=exclude_id
        )
        clashes = [a for a in booked if overlaps(a.interval, proposed)]
        if clashes:
            logger.info(
                "Booking rejected (overlap): doctor=%s start=%s clashes=%d",
                doctor_id, proposed.start.isoformat(), len(clashes),
            )
            return BookingDecision.reject(RejectCode.OVERLAP, MSG_OVERLAP)

        profile = await self.availability.get(doctor_id)
        if profile is None:
            logger.info("Booking rejected (no availability): doctor=%s", doctor_id)
            return BookingDecision.reject(RejectCode.NO_AVAILABILITY, MSG_NO_AVAILABILITY)

        day_start = utc_midnight(proposed.start)
        day_end = day_start + ONE_DAY
        buffer = profile.buffer

        candidates = build_day_windows(profile, day_start)
        busy = await self.busy.assemble(
            profile, day_start, day_end, buffer=buffer, exclude_id=exclude_id
        )
        free = subtract(candidates, busy)
        padded = expand_by_buffer(proposed, buffer)

        if not any(contains(window, padded) for window in free):
            logger.info(
                "Booking rejected (outside window): doctor=%s start=%s end=%s buffer=%s",
                doctor_id, proposed.start.isoformat(), proposed.end.isoformat(), buffer,
            )
            return BookingDecision.reject(RejectCode.OUTSIDE_WINDOW, MSG_OUTSIDE_WINDOW)

        return BookingDecision.accept()
