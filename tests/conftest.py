"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from medibook.config import Settings
from medibook.scheduling.errors import SlotConflictError
from medibook.scheduling.models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentFilters,
    AppointmentStatus,
    AvailabilityProfile,
    RecurringRule,
    utc_midnight,
)
from medibook.scheduling.service import SchedulingService

DOCTOR_ID = "doc-1"
PATIENT_ID = "pat-1"
PRINCIPAL_ID = "principal-1"

# 2026-03-02 is a Monday; weekly rules count from Sunday, so Monday == 1.
MONDAY = 1


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def monday(hour: int, minute: int = 0) -> datetime:
    return utc(2026, 3, 2, hour, minute)


def make_appointment(
    start: datetime,
    end: datetime,
    doctor_id: str = DOCTOR_ID,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    appointment_id: str = "appt-1",
) -> Appointment:
    return Appointment(
        id=appointment_id,
        patient_id=PATIENT_ID,
        doctor_id=doctor_id,
        date=utc_midnight(start),
        start_time=start,
        end_time=end,
        status=status,
        confirmation_code="ABCDEF12",
    )


def weekday_profile(buffer_minutes: int = 0, slot_size_minutes: int = 30) -> AvailabilityProfile:
    """Monday 09:00-17:00."""
    return AvailabilityProfile(
        doctor_id=DOCTOR_ID,
        weekly=[RecurringRule(day_of_week=MONDAY, start_minute=540, end_minute=1020)],
        slot_size_minutes=slot_size_minutes,
        buffer_minutes=buffer_minutes,
    )


# ---------------------------------------------------------------------------
# In-memory store fakes satisfying the scheduling ports
# ---------------------------------------------------------------------------

class InMemoryAppointmentStore:
    def __init__(self):
        self.items: dict[str, Appointment] = {}

    def _check_unique(self, appt: Appointment) -> None:
        if appt.status not in ACTIVE_STATUSES:
            return
        for other in self.items.values():
            if (
                other.id != appt.id
                and other.doctor_id == appt.doctor_id
                and other.start_time == appt.start_time
                and other.status in ACTIVE_STATUSES
            ):
                raise SlotConflictError()

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        return self.items.get(appointment_id)

    async def list_active_overlapping(self, doctor_id, start, end, exclude_id=None):
        return [
            a for a in self.items.values()
            if a.doctor_id == doctor_id
            and a.status in ACTIVE_STATUSES
            and a.start_time < end
            and a.end_time > start
            and a.id != exclude_id
        ]

    async def list(self, filters: AppointmentFilters, offset: int = 0, limit: int = 20):
        items = sorted(self.items.values(), key=lambda a: a.start_time)
        if filters.doctor_id:
            items = [a for a in items if a.doctor_id == filters.doctor_id]
        if filters.patient_id:
            items = [a for a in items if a.patient_id == filters.patient_id]
        if filters.status:
            items = [a for a in items if a.status == filters.status]
        return items[offset:offset + limit], len(items)

    async def add(self, appointment: Appointment) -> Appointment:
        self._check_unique(appointment)
        self.items[appointment.id] = appointment
        return appointment

    async def save(self, appointment: Appointment) -> Appointment:
        self._check_unique(appointment)
        self.items[appointment.id] = appointment
        return appointment


class InMemoryAvailabilityStore:
    def __init__(self):
        self.items: dict[str, AvailabilityProfile] = {}

    async def get(self, doctor_id: str) -> Optional[AvailabilityProfile]:
        return self.items.get(doctor_id)

    async def upsert(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        self.items[profile.doctor_id] = profile
        return profile

    async def delete(self, doctor_id: str) -> bool:
        return self.items.pop(doctor_id, None) is not None

    async def list(self, doctor_id=None, offset: int = 0, limit: int = 25):
        items = [p for p in self.items.values() if not doctor_id or p.doctor_id == doctor_id]
        return items[offset:offset + limit], len(items)


@pytest.fixture
def appointment_store():
    return InMemoryAppointmentStore()


@pytest.fixture
def availability_store():
    return InMemoryAvailabilityStore()


@pytest.fixture
def service(appointment_store, availability_store):
    return SchedulingService(
        appointments=appointment_store,
        availability=availability_store,
        settings=Settings(_env_file=None),
    )


# ---------------------------------------------------------------------------
# Principal override for API tests
# ---------------------------------------------------------------------------

def _fake_principal() -> str:
    return PRINCIPAL_ID


def apply_principal_override(app):
    """Bypass the X-Principal-Id requirement on a FastAPI test app."""
    from medibook.api.dependencies import get_current_principal
    app.dependency_overrides[get_current_principal] = _fake_principal
    return app


# ---------------------------------------------------------------------------
# API app over a throwaway SQLite database
# ---------------------------------------------------------------------------

@pytest.fixture
async def api_app(tmp_path):
    """Scheduling routers over a file-backed SQLite database."""
    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from medibook.api.errors import install_error_handlers
    from medibook.api.routes import appointments, availability
    from medibook.core.database import get_db
    from medibook.core.models import Base

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _test_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_app = FastAPI()
    test_app.include_router(availability.router, prefix="/api/v1")
    test_app.include_router(appointments.router, prefix="/api/v1")
    install_error_handlers(test_app)
    test_app.dependency_overrides[get_db] = _test_db
    test_app.state.session_factory = factory

    yield test_app

    await engine.dispose()


@pytest.fixture
async def client(api_app):
    from httpx import ASGITransport, AsyncClient

    async with AsyncClient(
        transport=ASGITransport(app=api_app),
        base_url="http://test",
        headers={"X-Principal-Id": PRINCIPAL_ID},
    ) as ac:
        yield ac
