"""Scheduling service: the entry points request handlers call."""

import logging
import math
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from medibook.config import Settings, get_settings
from medibook.scheduling.busy import BusySetAssembler
from medibook.scheduling.errors import (
    AppointmentNotFoundError,
    AvailabilityNotFoundError,
    BookingRejectedError,
    InvalidInputError,
    InvalidTransitionError,
    SlotConflictError,
)
from medibook.scheduling.guard import BookingGuard
from medibook.scheduling.intervals import subtract
from medibook.scheduling.models import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentPage,
    AppointmentStatus,
    AvailabilityIn,
    AvailabilityPage,
    AvailabilityPatch,
    AvailabilityProfile,
    BookingDecision,
    SlotResult,
    TERMINAL_STATUSES,
    ensure_utc,
    utc_midnight,
)
from medibook.scheduling.ports import AppointmentStore, AvailabilityStore
from medibook.scheduling.slots import generate_slots
from medibook.scheduling.windows import build_candidate_windows

logger = logging.getLogger(__name__)

MIN_SLOT_MINUTES = 5
MAX_SLOT_MINUTES = 240


def new_confirmation_code() -> str:
    """Eight uppercase hex characters, e.g. ``9F1C3B7A``."""
    return secrets.token_hex(4).upper()


def _validate_range(start: datetime, end: datetime, start_field: str, end_field: str) -> tuple[datetime, datetime]:
    start = ensure_utc(start)
    end = ensure_utc(end)
    if end <= start:
        raise InvalidInputError(end_field, f"{end_field} must be after {start_field}")
    return start, end


class SchedulingService:
    """Availability queries, the booking guard and appointment state changes.

    Stores are injected; the service holds no global state.
    """

    def __init__(
        self,
        appointments: AppointmentStore,
        availability: AvailabilityStore,
        settings: Optional[Settings] = None,
    ) -> None:
        self.appointments = appointments
        self.availability = availability
        self.settings = settings or get_settings()
        self.guard = BookingGuard(appointments, availability)
        self.busy = BusySetAssembler(appointments)

    # ------------------------------------------------------------------
    # Slots and booking checks
    # ------------------------------------------------------------------

    async def compute_slots(
        self,
        doctor_id: str,
        range_start: datetime,
        range_end: datetime,
        slot_size_override: Optional[int] = None,
    ) -> SlotResult:
        """Free slots for *doctor_id* in ``[range_start, range_end)``.

        A doctor without a profile has no slots; that is not an error.
        """
        range_start, range_end = _validate_range(range_start, range_end, "from", "to")
        if slot_size_override is not None and not (
            MIN_SLOT_MINUTES <= slot_size_override <= MAX_SLOT_MINUTES
        ):
            raise InvalidInputError(
                "slot_size_minutes",
                f"slot_size_minutes must be an integer {MIN_SLOT_MINUTES}-{MAX_SLOT_MINUTES}",
            )

        profile = await self.availability.get(doctor_id)
        if profile is None:
            return SlotResult(slot_size_minutes=None, slots=[])

        if slot_size_override is not None:
            slot_minutes, slot_size = slot_size_override, timedelta(minutes=slot_size_override)
        else:
            slot_minutes, slot_size = profile.slot_size_minutes, profile.slot_size
        candidates = build_candidate_windows(profile, range_start, range_end)
        busy = await self.busy.assemble(profile, range_start, range_end)
        free = subtract(candidates, busy)
        slots = generate_slots(free, slot_size)

        logger.debug(
            "Computed %d slots for doctor=%s (%d candidate, %d busy, %d free windows)",
            len(slots), doctor_id, len(candidates), len(busy), len(free),
        )
        return SlotResult(slot_size_minutes=slot_minutes, slots=slots)

    async def evaluate_booking(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
    ) -> BookingDecision:
        start, end = _validate_range(start, end, "start_time", "end_time")
        return await self.guard.check(doctor_id, start, end)

    async def _require_accepted(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> None:
        decision = await self.guard.check(doctor_id, start, end, exclude_id=exclude_id)
        if not decision.accepted:
            raise BookingRejectedError(decision.code, decision.message)

    # ------------------------------------------------------------------
    # Appointment lifecycle
    # ------------------------------------------------------------------

    async def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """Book an appointment after it passes the guard."""
        await self._require_accepted(data.doctor_id, data.start_time, data.end_time)

        appt = Appointment(
            id=str(uuid.uuid4()),
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            date=utc_midnight(data.start_time),
            start_time=data.start_time,
            end_time=data.end_time,
            status=data.status,
            notes=data.notes,
            confirmation_code=new_confirmation_code(),
        )
        try:
            saved = await self.appointments.add(appt)
        except SlotConflictError:
            logger.warning(
                "Write conflict booking doctor=%s start=%s",
                data.doctor_id, data.start_time.isoformat(),
            )
            raise

        logger.info(
            "Appointment %s booked: doctor=%s patient=%s start=%s",
            saved.id, saved.doctor_id, saved.patient_id, saved.start_time.isoformat(),
        )
        return saved

    async def get_appointment(self, appointment_id: str) -> Appointment:
        appt = await self.appointments.get(appointment_id)
        if appt is None:
            raise AppointmentNotFoundError(appointment_id)
        return appt

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        page: int = 1,
        limit: int = 20,
    ) -> AppointmentPage:
        page, limit = self._paginate(page, limit)
        items, total = await self.appointments.list(
            filters, offset=(page - 1) * limit, limit=limit
        )
        return AppointmentPage(
            total=total, page=page, pages=math.ceil(total / limit), items=items
        )

    async def reschedule_appointment(
        self,
        appointment_id: str,
        start: datetime,
        end: datetime,
    ) -> Appointment:
        """Move an active appointment; the guard runs again for the new time."""
        appt = await self.get_appointment(appointment_id)
        if appt.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(appt.status, "reschedule")

        start, end = _validate_range(start, end, "start_time", "end_time")
        await self._require_accepted(appt.doctor_id, start, end, exclude_id=appt.id)

        moved = appt.model_copy(
            update={"start_time": start, "end_time": end, "date": utc_midnight(start)}
        )
        try:
            saved = await self.appointments.save(moved)
        except SlotConflictError:
            logger.warning(
                "Write conflict rescheduling %s to %s", appointment_id, start.isoformat()
            )
            raise
        logger.info("Appointment %s rescheduled to %s", appointment_id, start.isoformat())
        return saved

    async def update_notes(self, appointment_id: str, notes: Optional[str]) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        return await self.appointments.save(appt.model_copy(update={"notes": notes}))

    async def confirm_appointment(self, appointment_id: str) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        if appt.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(appt.status, "confirm")
        if appt.status == AppointmentStatus.CONFIRMED:
            return appt

        saved = await self.appointments.save(
            appt.model_copy(update={"status": AppointmentStatus.CONFIRMED})
        )
        logger.info("Appointment %s confirmed", appointment_id)
        return saved

    async def cancel_appointment(
        self,
        appointment_id: str,
        reason: Optional[str] = None,
    ) -> Appointment:
        """Cancel an appointment. Cancelling twice returns it unchanged."""
        appt = await self.get_appointment(appointment_id)
        if appt.status == AppointmentStatus.CANCELLED:
            return appt
        if appt.status == AppointmentStatus.COMPLETED:
            raise InvalidTransitionError(
                appt.status, "cancel", "Completed appointments cannot be cancelled"
            )

        saved = await self.appointments.save(
            appt.model_copy(
                update={
                    "status": AppointmentStatus.CANCELLED,
                    "cancellation_reason": reason or self.settings.default_cancellation_reason,
                }
            )
        )
        logger.info("Appointment %s cancelled", appointment_id)
        return saved

    async def complete_appointment(self, appointment_id: str) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        if appt.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(appt.status, "complete")

        saved = await self.appointments.save(
            appt.model_copy(update={"status": AppointmentStatus.COMPLETED})
        )
        logger.info("Appointment %s completed", appointment_id)
        return saved

    # ------------------------------------------------------------------
    # Availability profiles
    # ------------------------------------------------------------------

    async def get_availability(self, doctor_id: str) -> Optional[AvailabilityProfile]:
        return await self.availability.get(doctor_id)

    async def upsert_availability(
        self,
        doctor_id: str,
        data: AvailabilityIn,
    ) -> AvailabilityProfile:
        """Create or wholly replace the doctor's profile."""
        payload = data.model_dump()
        if "slot_size_minutes" not in data.model_fields_set:
            payload["slot_size_minutes"] = self.settings.default_slot_minutes
        profile = AvailabilityProfile(doctor_id=doctor_id, **payload)
        saved = await self.availability.upsert(profile)
        logger.info(
            "Availability replaced for doctor=%s (%d weekly, %d date, %d blackout)",
            doctor_id, len(saved.weekly), len(saved.date_windows), len(saved.blackout_windows),
        )
        return saved

    async def patch_availability(
        self,
        doctor_id: str,
        patch: AvailabilityPatch,
    ) -> AvailabilityProfile:
        existing = await self.availability.get(doctor_id)
        if existing is None:
            raise AvailabilityNotFoundError(doctor_id)

        merged = AvailabilityProfile.model_validate(
            {**existing.model_dump(), **patch.updates()}
        )
        saved = await self.availability.upsert(merged)
        logger.info("Availability patched for doctor=%s fields=%s", doctor_id, sorted(patch.updates()))
        return saved

    async def delete_availability(self, doctor_id: str) -> bool:
        deleted = await self.availability.delete(doctor_id)
        if deleted:
            logger.info("Availability deleted for doctor=%s", doctor_id)
        return deleted

    async def list_availability(
        self,
        doctor_id: Optional[str] = None,
        page: int = 1,
        limit: int = 25,
    ) -> AvailabilityPage:
        page, limit = self._paginate(page, limit)
        items, total = await self.availability.list(
            doctor_id, offset=(page - 1) * limit, limit=limit
        )
        return AvailabilityPage(
            total=total, page=page, pages=math.ceil(total / limit), items=items
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _paginate(self, page: int, limit: int) -> tuple[int, int]:
        page = max(page, 1)
        limit = min(max(limit, 1), self.settings.page_size_limit)
        return page, limit
