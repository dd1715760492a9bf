"""Store interfaces the scheduling engine depends on.

The engine never talks to a database directly; callers inject objects
satisfying these protocols. :mod:`medibook.core.repository` provides the
SQLAlchemy implementations.
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from medibook.scheduling.models import (
    Appointment,
    AppointmentFilters,
    AvailabilityProfile,
)


@runtime_checkable
class AppointmentStore(Protocol):
    """Appointment persistence.

    ``add`` and ``save`` must raise
    :class:`~medibook.scheduling.errors.SlotConflictError` when the write
    would leave two active appointments for one doctor at the same start
    time.
    """

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        ...

    async def list_active_overlapping(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> list[Appointment]:
        """Active appointments with ``start_time < end AND end_time > start``."""
        ...

    async def list(
        self,
        filters: AppointmentFilters,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Appointment], int]:
        ...

    async def add(self, appointment: Appointment) -> Appointment:
        ...

    async def save(self, appointment: Appointment) -> Appointment:
        ...


@runtime_checkable
class AvailabilityStore(Protocol):
    """One availability profile per doctor."""

    async def get(self, doctor_id: str) -> Optional[AvailabilityProfile]:
        ...

    async def upsert(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        ...

    async def delete(self, doctor_id: str) -> bool:
        ...

    async def list(
        self,
        doctor_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> tuple[list[AvailabilityProfile], int]:
        ...
