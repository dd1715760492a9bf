"""Tests for the appointment endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from medibook.core.models import AuditLog
from medibook.scheduling.models import BookingDecision
from tests.conftest import DOCTOR_ID, MONDAY, PRINCIPAL_ID, apply_principal_override

APPTS = "/api/v1/appointments"


def payload(start="10:00", end="10:30", **extra) -> dict:
    data = {
        "patient_id": "pat-1",
        "doctor_id": DOCTOR_ID,
        "start_time": f"2026-03-02T{start}:00Z",
        "end_time": f"2026-03-02T{end}:00Z",
    }
    data.update(extra)
    return data


@pytest.fixture
async def open_monday(client):
    r = await client.put(
        f"/api/v1/availability/{DOCTOR_ID}",
        json={"weekly": [{"day_of_week": MONDAY, "start_minute": 540, "end_minute": 1020}]},
    )
    assert r.status_code == 200


@pytest.fixture
async def booked(client, open_monday):
    r = await client.post(APPTS, json=payload())
    assert r.status_code == 201
    return r.json()


class TestBooking:
    async def test_create(self, booked):
        assert booked["status"] == "confirmed"
        assert booked["date"].startswith("2026-03-02T00:00:00")
        assert len(booked["confirmation_code"]) == 8

    async def test_overlap_is_409(self, client, booked):
        r = await client.post(APPTS, json=payload("10:00", "10:15"))
        assert r.status_code == 409
        assert r.json()["detail"] == {"code": "OVERLAP", "message": "Time slot already booked"}

    async def test_write_conflict_matches_guard_overlap(self, client, booked):
        early = await client.post(APPTS, json=payload("10:00", "10:15"))

        accept = AsyncMock(return_value=BookingDecision.accept())
        with patch("medibook.scheduling.guard.BookingGuard.check", accept):
            late = await client.post(APPTS, json=payload("10:00", "10:15"))

        assert accept.await_count == 1
        assert early.status_code == late.status_code == 409
        assert early.json() == late.json()

    async def test_outside_window_is_409(self, client, open_monday):
        r = await client.post(APPTS, json=payload("18:00", "18:30"))
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "OUTSIDE_WINDOW"

    async def test_no_availability_is_409(self, client):
        r = await client.post(APPTS, json=payload(doctor_id="doc-unknown"))
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "NO_AVAILABILITY"

    async def test_buffer_rejects_adjacent(self, client, booked):
        await client.patch(f"/api/v1/availability/{DOCTOR_ID}", json={"buffer_minutes": 15})

        r = await client.post(APPTS, json=payload("10:30", "11:00"))

        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "OUTSIDE_WINDOW"

    async def test_invalid_body_is_422(self, client, open_monday):
        r = await client.post(APPTS, json=payload("10:30", "10:00"))
        assert r.status_code == 422

    async def test_rejected_booking_writes_nothing(self, client, booked):
        await client.post(APPTS, json=payload("10:00", "10:15"))

        r = await client.get(APPTS, params={"doctor_id": DOCTOR_ID})
        assert r.json()["total"] == 1


class TestLookup:
    async def test_get(self, client, booked):
        r = await client.get(f"{APPTS}/{booked['id']}")
        assert r.status_code == 200
        assert r.json()["id"] == booked["id"]

    async def test_get_missing_is_404(self, client):
        r = await client.get(f"{APPTS}/missing")
        assert r.status_code == 404
        assert r.json()["detail"]["code"] == "NOT_FOUND"

    async def test_list_filters(self, client, booked):
        await client.post(APPTS, json=payload("11:00", "11:30", patient_id="pat-2"))

        r = await client.get(APPTS, params={"patient_id": "pat-2"})
        body = r.json()
        assert body["total"] == 1
        assert body["items"][0]["patient_id"] == "pat-2"

        r = await client.get(APPTS, params={"from": "2026-03-02T10:30:00Z"})
        assert r.json()["total"] == 1

        r = await client.get(APPTS, params={"status": "cancelled"})
        assert r.json()["total"] == 0


class TestUpdate:
    async def test_reschedule(self, client, booked):
        r = await client.put(f"{APPTS}/{booked['id']}", json={
            "start_time": "2026-03-02T14:00:00Z",
            "end_time": "2026-03-02T14:30:00Z",
        })
        assert r.status_code == 200
        body = r.json()
        assert body["start_time"].startswith("2026-03-02T14:00:00")
        assert body["confirmation_code"] == booked["confirmation_code"]

    async def test_reschedule_into_booking_is_409(self, client, booked):
        await client.post(APPTS, json=payload("14:00", "14:30"))

        r = await client.put(f"{APPTS}/{booked['id']}", json={
            "start_time": "2026-03-02T14:00:00Z",
            "end_time": "2026-03-02T14:30:00Z",
        })

        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "OVERLAP"

    async def test_notes_only(self, client, booked):
        r = await client.put(f"{APPTS}/{booked['id']}", json={"notes": "Bring referral"})
        assert r.status_code == 200
        assert r.json()["notes"] == "Bring referral"
        assert r.json()["start_time"] == booked["start_time"]


class TestTransitions:
    async def test_cancel_twice_is_idempotent(self, client, booked):
        first = await client.post(f"{APPTS}/{booked['id']}/cancel", json={"reason": "Travel"})
        second = await client.post(f"{APPTS}/{booked['id']}/cancel")

        assert first.status_code == second.status_code == 200
        assert second.json()["status"] == "cancelled"
        assert second.json()["cancellation_reason"] == "Travel"

    async def test_cancel_without_body_uses_default_reason(self, client, booked):
        r = await client.post(f"{APPTS}/{booked['id']}/cancel")
        assert r.json()["cancellation_reason"] == "Cancelled by requester"

    async def test_cancelled_cannot_be_rescheduled(self, client, booked):
        await client.post(f"{APPTS}/{booked['id']}/cancel")

        r = await client.put(f"{APPTS}/{booked['id']}", json={
            "start_time": "2026-03-02T14:00:00Z",
            "end_time": "2026-03-02T14:30:00Z",
        })

        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "INVALID_TRANSITION"

    async def test_confirm_pending(self, client, open_monday):
        r = await client.post(APPTS, json=payload(status="pending"))
        appt_id = r.json()["id"]

        r = await client.post(f"{APPTS}/{appt_id}/confirm")
        assert r.json()["status"] == "confirmed"

    async def test_complete_then_cancel_is_409(self, client, booked):
        r = await client.post(f"{APPTS}/{booked['id']}/complete")
        assert r.json()["status"] == "completed"

        r = await client.post(f"{APPTS}/{booked['id']}/cancel")
        assert r.status_code == 409

    async def test_cancelled_slot_is_free_again(self, client, booked):
        await client.post(f"{APPTS}/{booked['id']}/cancel")
        r = await client.post(APPTS, json=payload())
        assert r.status_code == 201


class TestAudit:
    async def test_mutations_are_audited(self, api_app, client, booked):
        await client.post(f"{APPTS}/{booked['id']}/cancel")

        async with api_app.state.session_factory() as session:
            result = await session.execute(
                select(AuditLog).where(AuditLog.resource_id == booked["id"])
            )
            entries = result.scalars().all()

        assert {e.action for e in entries} == {"create", "cancel"}
        assert all(e.user_id == PRINCIPAL_ID for e in entries)

    async def test_principal_override(self, api_app, booked):
        apply_principal_override(api_app)
        async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as anon:
            r = await anon.get(f"{APPTS}/{booked['id']}")
        assert r.status_code == 200
