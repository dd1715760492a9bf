"""Tests for CLI commands."""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from medibook.cli.commands import app
from medibook.scheduling.errors import InvalidInputError
from medibook.scheduling.models import BookingDecision, RejectCode, SlotResult, TimeInterval
from tests.conftest import monday

runner = CliRunner()


@pytest.fixture
def slot_result():
    return SlotResult(
        slot_size_minutes=30,
        slots=[
            TimeInterval(start=monday(9), end=monday(9, 30)),
            TimeInterval(start=monday(10, 30), end=monday(11)),
        ],
    )


class TestVersionCommand:
    """Tests for version command."""

    def test_version_command(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "MediBook" in result.stdout
        assert "0.1.0" in result.stdout


class TestSlotsCommand:
    """Tests for slots command."""

    def test_slots_table(self, slot_result):
        with patch("medibook.cli.commands._run_service", return_value=slot_result) as run:
            result = runner.invoke(app, [
                "slots", "doc-1",
                "--from", "2026-03-02T09:00:00+00:00",
                "--to", "2026-03-02T11:00:00+00:00",
            ])

        assert result.exit_code == 0
        assert "2 slot(s)" in result.stdout
        method, doctor_id, start, end = run.call_args.args
        assert (method, doctor_id) == ("compute_slots", "doc-1")
        assert start == monday(9)
        assert run.call_args.kwargs == {"slot_size_override": None}

    def test_slots_json(self, slot_result):
        with patch("medibook.cli.commands._run_service", return_value=slot_result):
            result = runner.invoke(app, [
                "slots", "doc-1",
                "--from", "2026-03-02T09:00:00+00:00",
                "--to", "2026-03-02T11:00:00+00:00",
                "--json",
            ])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["slot_size_minutes"] == 30
        assert len(data["slots"]) == 2

    def test_slot_size_option(self, slot_result):
        with patch("medibook.cli.commands._run_service", return_value=slot_result) as run:
            runner.invoke(app, [
                "slots", "doc-1",
                "--from", "2026-03-02T09:00:00+00:00",
                "--to", "2026-03-02T11:00:00+00:00",
                "-s", "15",
            ])

        assert run.call_args.kwargs == {"slot_size_override": 15}

    def test_no_profile(self):
        with patch("medibook.cli.commands._run_service", return_value=SlotResult()):
            result = runner.invoke(app, [
                "slots", "doc-1",
                "--from", "2026-03-02T09:00:00+00:00",
                "--to", "2026-03-02T11:00:00+00:00",
            ])

        assert result.exit_code == 0
        assert "No availability configured" in result.stdout

    def test_invalid_instant(self):
        result = runner.invoke(app, ["slots", "doc-1", "--from", "monday", "--to", "tuesday"])

        assert result.exit_code == 1
        assert "Invalid --from" in result.stdout

    def test_scheduling_error(self):
        error = InvalidInputError("to", "to must be after from")
        with patch("medibook.cli.commands._run_service", side_effect=error):
            result = runner.invoke(app, [
                "slots", "doc-1",
                "--from", "2026-03-02T11:00:00+00:00",
                "--to", "2026-03-02T09:00:00+00:00",
            ])

        assert result.exit_code == 1
        assert "to must be after from" in result.stdout


class TestCheckCommand:
    """Tests for check command."""

    def test_accept(self):
        with patch("medibook.cli.commands._run_service", return_value=BookingDecision.accept()):
            result = runner.invoke(app, [
                "check", "doc-1",
                "--start", "2026-03-02T09:00:00+00:00",
                "--end", "2026-03-02T09:30:00+00:00",
            ])

        assert result.exit_code == 0
        assert "ACCEPT" in result.stdout

    def test_reject_exits_2(self):
        decision = BookingDecision.reject(RejectCode.OVERLAP, "Time slot already booked")
        with patch("medibook.cli.commands._run_service", return_value=decision):
            result = runner.invoke(app, [
                "check", "doc-1",
                "--start", "2026-03-02T10:00:00+00:00",
                "--end", "2026-03-02T10:15:00+00:00",
            ])

        assert result.exit_code == 2
        assert "REJECT OVERLAP" in result.stdout


class TestServeCommand:
    """Tests for serve command."""

    def test_serve_runs_uvicorn_factory(self):
        with patch("uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        assert run.call_args.args == ("medibook.api.app:create_app",)
        assert run.call_args.kwargs["port"] == 9000
        assert run.call_args.kwargs["factory"] is True
