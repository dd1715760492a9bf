"""FastAPI dependencies: request principal and scheduling service wiring."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.database import get_db
from medibook.core.repository import AppointmentRepository, AvailabilityRepository
from medibook.scheduling.service import SchedulingService

PRINCIPAL_HEADER = "X-Principal-Id"


async def get_current_principal(request: Request) -> str:
    """Resolve the requesting doctor or patient id.

    Authentication happens upstream; the id arrives as a trusted, opaque
    header value.
    """
    principal = request.headers.get(PRINCIPAL_HEADER, "").strip()
    if not principal:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return principal


async def get_scheduling_service(
    db: AsyncSession = Depends(get_db),
) -> SchedulingService:
    """Build a request-scoped service over the request's session."""
    return SchedulingService(
        appointments=AppointmentRepository(db),
        availability=AvailabilityRepository(db),
    )
