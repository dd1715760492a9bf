"""Appointment endpoints: booking, rescheduling and status changes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.api.audit import log_change
from medibook.api.dependencies import get_current_principal, get_scheduling_service
from medibook.core.database import get_db
from medibook.scheduling.models import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentPage,
    AppointmentStatus,
)
from medibook.scheduling.service import SchedulingService

router = APIRouter(prefix="/appointments")


class AppointmentUpdate(BaseModel):
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str | None = None


class CancelRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Book / list / get / update
# ---------------------------------------------------------------------------

@router.post("", response_model=Appointment, status_code=201)
async def create_appointment(
    body: AppointmentCreate,
    request: Request,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> Appointment:
    """Book an appointment. 409 when the guard or the store rejects the time."""
    appt = await service.create_appointment(body)
    await log_change(
        db, request, principal, "create", "appointment", appt.id,
        details={"doctor_id": appt.doctor_id, "start_time": appt.start_time.isoformat()},
    )
    return appt


@router.get("", response_model=AppointmentPage)
async def list_appointments(
    doctor_id: Optional[str] = Query(None),
    patient_id: Optional[str] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    start_from: Optional[datetime] = Query(None, alias="from"),
    start_to: Optional[datetime] = Query(None, alias="to"),
    page: int = Query(1),
    limit: int = Query(20),
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
) -> AppointmentPage:
    """List appointments ordered by start time."""
    filters = AppointmentFilters(
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status,
        start_from=start_from,
        start_to=start_to,
    )
    return await service.list_appointments(filters, page=page, limit=limit)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(
    appointment_id: str,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
) -> Appointment:
    return await service.get_appointment(appointment_id)


@router.put("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: str,
    body: AppointmentUpdate,
    request: Request,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> Appointment:
    """Reschedule and/or edit notes. Time changes go through the booking guard."""
    appt = await service.get_appointment(appointment_id)

    if body.start_time or body.end_time:
        appt = await service.reschedule_appointment(
            appointment_id,
            body.start_time or appt.start_time,
            body.end_time or appt.end_time,
        )
        await log_change(
            db, request, principal, "reschedule", "appointment", appointment_id,
            details={"start_time": appt.start_time.isoformat(), "end_time": appt.end_time.isoformat()},
        )

    if "notes" in body.model_fields_set:
        appt = await service.update_notes(appointment_id, body.notes)
        await log_change(db, request, principal, "update_notes", "appointment", appointment_id)

    return appt


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

@router.post("/{appointment_id}/confirm", response_model=Appointment)
async def confirm_appointment(
    appointment_id: str,
    request: Request,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> Appointment:
    appt = await service.confirm_appointment(appointment_id)
    await log_change(db, request, principal, "confirm", "appointment", appointment_id)
    return appt


@router.post("/{appointment_id}/cancel", response_model=Appointment)
async def cancel_appointment(
    appointment_id: str,
    request: Request,
    body: CancelRequest | None = None,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> Appointment:
    """Cancel (soft delete). Cancelling an already-cancelled appointment is a no-op."""
    appt = await service.cancel_appointment(appointment_id, body.reason if body else None)
    await log_change(
        db, request, principal, "cancel", "appointment", appointment_id,
        details={"reason": appt.cancellation_reason},
    )
    return appt


@router.post("/{appointment_id}/complete", response_model=Appointment)
async def complete_appointment(
    appointment_id: str,
    request: Request,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> Appointment:
    appt = await service.complete_appointment(appointment_id)
    await log_change(db, request, principal, "complete", "appointment", appointment_id)
    return appt
