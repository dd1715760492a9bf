"""Repositories backing the scheduling store ports with SQLAlchemy."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.models import AppointmentDB, AuditLog, AvailabilityDB
from medibook.scheduling.errors import SlotConflictError
from medibook.scheduling.models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentFilters,
    AppointmentStatus,
    AvailabilityProfile,
    ensure_utc,
)

logger = logging.getLogger(__name__)

_ACTIVE = [s.value for s in ACTIVE_STATUSES]


def _appointment_from_row(row: AppointmentDB) -> Appointment:
    return Appointment(
        id=row.id,
        patient_id=row.patient_id,
        doctor_id=row.doctor_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=AppointmentStatus(row.status),
        notes=row.notes,
        confirmation_code=row.confirmation_code,
        cancellation_reason=row.cancellation_reason,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
        updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
    )


def _profile_from_row(row: AvailabilityDB) -> AvailabilityProfile:
    return AvailabilityProfile(
        doctor_id=row.doctor_id,
        weekly=row.weekly or [],
        date_windows=row.date_windows or [],
        blackout_windows=row.blackout_windows or [],
        slot_size_minutes=row.slot_size_minutes,
        buffer_minutes=row.buffer_minutes,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
        updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
    )


class AppointmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise SlotConflictError() from exc

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        row = await self.session.get(AppointmentDB, appointment_id)
        return _appointment_from_row(row) if row else None

    async def list_active_overlapping(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> list[Appointment]:
        stmt = select(AppointmentDB).where(
            AppointmentDB.doctor_id == doctor_id,
            AppointmentDB.start_time < ensure_utc(end),
            AppointmentDB.end_time > ensure_utc(start),
            AppointmentDB.status.in_(_ACTIVE),
        )
        if exclude_id:
            stmt = stmt.where(AppointmentDB.id != exclude_id)
        result = await self.session.execute(stmt.order_by(AppointmentDB.start_time))
        return [_appointment_from_row(r) for r in result.scalars().all()]

    async def list(
        self,
        filters: AppointmentFilters,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Appointment], int]:
        conditions = []
        if filters.doctor_id:
            conditions.append(AppointmentDB.doctor_id == filters.doctor_id)
        if filters.patient_id:
            conditions.append(AppointmentDB.patient_id == filters.patient_id)
        if filters.status:
            conditions.append(AppointmentDB.status == filters.status.value)
        if filters.start_from:
            conditions.append(AppointmentDB.start_time >= ensure_utc(filters.start_from))
        if filters.start_to:
            conditions.append(AppointmentDB.start_time <= ensure_utc(filters.start_to))

        total = await self.session.scalar(
            select(func.count()).select_from(AppointmentDB).where(*conditions)
        )
        stmt = (
            select(AppointmentDB)
            .where(*conditions)
            .order_by(AppointmentDB.start_time)
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_appointment_from_row(r) for r in result.scalars().all()], total or 0

    async def add(self, appointment: Appointment) -> Appointment:
        row = AppointmentDB(
            id=appointment.id,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            date=appointment.date,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            status=appointment.status.value,
            notes=appointment.notes,
            confirmation_code=appointment.confirmation_code,
            cancellation_reason=appointment.cancellation_reason,
        )
        self.session.add(row)
        await self._flush()
        return _appointment_from_row(row)

    async def save(self, appointment: Appointment) -> Appointment:
        row = await self.session.get(AppointmentDB, appointment.id)
        if row is None:
            return await self.add(appointment)
        row.date = appointment.date
        row.start_time = appointment.start_time
        row.end_time = appointment.end_time
        row.status = appointment.status.value
        row.notes = appointment.notes
        row.cancellation_reason = appointment.cancellation_reason
        row.updated_at = datetime.now(timezone.utc)
        await self._flush()
        return _appointment_from_row(row)


class AvailabilityRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_row(self, doctor_id: str) -> Optional[AvailabilityDB]:
        result = await self.session.execute(
            select(AvailabilityDB).where(AvailabilityDB.doctor_id == doctor_id)
        )
        return result.scalar_one_or_none()

    async def get(self, doctor_id: str) -> Optional[AvailabilityProfile]:
        row = await self._get_row(doctor_id)
        return _profile_from_row(row) if row else None

    async def upsert(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        data = profile.model_dump(
            mode="json",
            include={"weekly", "date_windows", "blackout_windows", "slot_size_minutes", "buffer_minutes"},
        )
        row = await self._get_row(profile.doctor_id)
        if row is None:
            row = AvailabilityDB(doctor_id=profile.doctor_id, **data)
            self.session.add(row)
            try:
                await self.session.flush()
                return _profile_from_row(row)
            except IntegrityError:
                # Another request created this doctor's profile first.
                await self.session.rollback()
                logger.info("Concurrent availability insert for doctor=%s; updating", profile.doctor_id)
                row = await self._get_row(profile.doctor_id)
                if row is None:
                    raise

        for k, v in data.items():
            setattr(row, k, v)
        row.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return _profile_from_row(row)

    async def delete(self, doctor_id: str) -> bool:
        row = await self._get_row(doctor_id)
        if row is None:
            return False
        await self.session.delete(row)
        await self.session.flush()
        return True

    async def list(
        self,
        doctor_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> tuple[list[AvailabilityProfile], int]:
        conditions = []
        if doctor_id:
            conditions.append(AvailabilityDB.doctor_id == doctor_id)

        total = await self.session.scalar(
            select(func.count()).select_from(AvailabilityDB).where(*conditions)
        )
        stmt = (
            select(AvailabilityDB)
            .where(*conditions)
            .order_by(AvailabilityDB.updated_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_profile_from_row(r) for r in result.scalars().all()], total or 0


class AuditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=details,
            ip_address=ip_address,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry
