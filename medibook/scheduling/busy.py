"""Assemble the busy set: blackouts plus buffered active appointments."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from medibook.scheduling.intervals import clamp, expand_by_buffer
from medibook.scheduling.models import Appointment, AvailabilityProfile, TimeInterval
from medibook.scheduling.ports import AppointmentStore

logger = logging.getLogger(__name__)


def build_busy_set(
    blackout_windows: Iterable[TimeInterval],
    appointments: Iterable[Appointment],
    range_start: datetime,
    range_end: datetime,
    buffer: timedelta,
) -> list[TimeInterval]:
    """Combine blackouts and appointments into one unordered busy list.

    Blackouts are clamped to the range and never buffered. Active
    appointments are widened by *buffer*; inactive ones are ignored.
    """
    busy: list[TimeInterval] = []
    for window in blackout_windows:
        clipped = clamp(window, range_start, range_end)
        if clipped:
            busy.append(clipped)

    for appt in appointments:
        if not appt.is_active:
            continue
        busy.append(expand_by_buffer(appt.interval, buffer))
    return busy


class BusySetAssembler:
    """Reads active appointments from the store and builds the busy set."""

    def __init__(self, appointments: AppointmentStore):
        self.appointments = appointments

    async def assemble(
        self,
        profile: AvailabilityProfile,
        range_start: datetime,
        range_end: datetime,
        buffer: Optional[timedelta] = None,
        exclude_id: Optional[str] = None,
    ) -> list[TimeInterval]:
        if buffer is None:
            buffer = profile.buffer
        booked = await self.appointments.list_active_overlapping(
            profile.doctor_id, range_start, range_end, exclude_id=exclude_id
        )
        busy = build_busy_set(
            profile.blackout_windows, booked, range_start, range_end, buffer
        )
        logger.debug(
            "Busy set for doctor=%s: %d blackout/appointment windows (%d bookings)",
            profile.doctor_id,
            len(busy),
            len(booked),
        )
        return busy
