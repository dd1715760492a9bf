"""Availability endpoints: profile CRUD, free slots and booking checks."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.api.audit import log_change
from medibook.api.dependencies import get_current_principal, get_scheduling_service
from medibook.core.database import get_db
from medibook.scheduling.models import (
    AvailabilityIn,
    AvailabilityPage,
    AvailabilityPatch,
    AvailabilityProfile,
    BookingDecision,
    SlotResult,
)
from medibook.scheduling.service import SchedulingService

router = APIRouter(prefix="/availability")


class BookingCheckRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class DeleteResponse(BaseModel):
    deleted: bool


# ---------------------------------------------------------------------------
# Profile CRUD
# ---------------------------------------------------------------------------

@router.get("", response_model=AvailabilityPage)
async def list_availability(
    doctor_id: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(25),
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
) -> AvailabilityPage:
    """List availability profiles, most recently updated first."""
    return await service.list_availability(doctor_id, page=page, limit=limit)


@router.get("/{doctor_id}", response_model=Optional[AvailabilityProfile])
async def get_availability(
    doctor_id: str,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
) -> Optional[AvailabilityProfile]:
    """Return the doctor's profile, or null when none is configured."""
    return await service.get_availability(doctor_id)


@router.put("/{doctor_id}", response_model=AvailabilityProfile)
async def upsert_availability(
    doctor_id: str,
    body: AvailabilityIn,
    request: Request,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> AvailabilityProfile:
    """Create or replace the doctor's availability."""
    profile = await service.upsert_availability(doctor_id, body)
    await log_change(db, request, principal, "upsert", "availability", doctor_id)
    return profile


@router.patch("/{doctor_id}", response_model=AvailabilityProfile)
async def patch_availability(
    doctor_id: str,
    body: AvailabilityPatch,
    request: Request,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> AvailabilityProfile:
    """Update only the supplied fields; 404 when the doctor has no profile."""
    profile = await service.patch_availability(doctor_id, body)
    await log_change(
        db, request, principal, "patch", "availability", doctor_id,
        details={"fields": sorted(body.updates())},
    )
    return profile


@router.delete("/{doctor_id}", response_model=DeleteResponse)
async def delete_availability(
    doctor_id: str,
    request: Request,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    """Delete the doctor's profile. Deleting a missing profile still succeeds."""
    deleted = await service.delete_availability(doctor_id)
    if deleted:
        await log_change(db, request, principal, "delete", "availability", doctor_id)
    return DeleteResponse(deleted=deleted)


# ---------------------------------------------------------------------------
# Slots and booking checks
# ---------------------------------------------------------------------------

@router.get("/{doctor_id}/slots", response_model=SlotResult)
async def get_available_slots(
    doctor_id: str,
    range_from: datetime = Query(..., alias="from"),
    range_to: datetime = Query(..., alias="to"),
    slot_size_minutes: Optional[int] = Query(None),
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
) -> SlotResult:
    """Free slots in ``[from, to)``."""
    return await service.compute_slots(
        doctor_id, range_from, range_to, slot_size_override=slot_size_minutes
    )


@router.post("/{doctor_id}/check", response_model=BookingDecision)
async def check_booking(
    doctor_id: str,
    body: BookingCheckRequest,
    principal: str = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
) -> BookingDecision:
    """Dry-run the booking guard without writing anything."""
    return await service.evaluate_booking(doctor_id, body.start_time, body.end_time)
