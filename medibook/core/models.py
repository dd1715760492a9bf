"""SQLAlchemy 2.0 async models for appointments and availability."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON

# Matches medibook.scheduling.models.ACTIVE_STATUSES
ACTIVE_STATUS_CLAUSE = "status IN ('pending', 'confirmed')"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class AppointmentDB(Base):
    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    doctor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)  # UTC midnight of start_time
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="confirmed")
    notes: Mapped[str | None] = mapped_column(Text)
    confirmation_code: Mapped[str] = mapped_column(String(16), nullable=False)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_appointments_patient_id", "patient_id"),
        Index("ix_appointments_status", "status"),
        Index("ix_appointments_confirmation_code", "confirmation_code"),
        Index("ix_appointments_doctor_start", "doctor_id", "start_time"),
        Index("ix_appointments_doctor_date", "doctor_id", "date"),
        # One active booking per doctor per start time; the last line of
        # defence when two requests pass the booking guard concurrently.
        Index(
            "uq_appointments_doctor_start_active",
            "doctor_id",
            "start_time",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_CLAUSE),
            postgresql_where=text(ACTIVE_STATUS_CLAUSE),
        ),
    )


class AvailabilityDB(Base):
    __tablename__ = "availability"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    doctor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    weekly: Mapped[list] = mapped_column(JSON, default=list)  # [{day_of_week, start_minute, end_minute}]
    date_windows: Mapped[list] = mapped_column(JSON, default=list)  # [{start, end}] ISO-8601 UTC
    blackout_windows: Mapped[list] = mapped_column(JSON, default=list)
    slot_size_minutes: Mapped[int] = mapped_column(Integer, default=30)
    buffer_minutes: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("uq_availability_doctor_id", "doctor_id", unique=True),
    )


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str | None] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    ip_address: Mapped[str | None] = mapped_column(String(45))

    __table_args__ = (
        Index("ix_audit_resource", "resource_type", "resource_id"),
        Index("ix_audit_timestamp", "timestamp"),
    )
