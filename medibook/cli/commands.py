"""CLI commands for MediBook."""

import asyncio
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from medibook.config import get_settings

app = typer.Typer(
    name="medibook",
    help="Appointment booking backend with doctor availability and slot search",
    add_completion=False,
)
console = Console()


def _parse_instant(value: str, option: str) -> datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Invalid {option}: {value!r} (expected ISO-8601)[/red]")
        raise typer.Exit(1)


def _run_service(method: str, *args: Any, **kwargs: Any) -> Any:
    """Call one SchedulingService method inside a committed session."""
    from medibook.core.database import session_scope
    from medibook.core.repository import AppointmentRepository, AvailabilityRepository
    from medibook.scheduling.service import SchedulingService

    async def _call():
        async with session_scope() as session:
            service = SchedulingService(
                appointments=AppointmentRepository(session),
                availability=AvailabilityRepository(session),
            )
            return await getattr(service, method)(*args, **kwargs)

    return asyncio.run(_call())


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting MediBook API server on {host}:{port}")
    uvicorn.run(
        "medibook.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def init_db():
    """Create database tables."""
    from medibook.core.database import init_db as _init_db

    asyncio.run(_init_db())
    console.print(f"[green]Database initialized: {get_settings().database_url}[/green]")


@app.command()
def slots(
    doctor_id: str = typer.Argument(..., help="Doctor identifier"),
    range_from: str = typer.Option(..., "--from", "-f", help="Window start (ISO-8601, UTC)"),
    range_to: str = typer.Option(..., "--to", "-t", help="Window end (ISO-8601, UTC)"),
    slot_size: Optional[int] = typer.Option(None, "--slot-size", "-s", help="Slot size override (5-240 min)"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List a doctor's free slots in a window."""
    from medibook.scheduling.errors import SchedulingError

    start = _parse_instant(range_from, "--from")
    end = _parse_instant(range_to, "--to")

    try:
        result = _run_service("compute_slots", doctor_id, start, end, slot_size_override=slot_size)
    except SchedulingError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    if output_json:
        console.print(result.model_dump_json(indent=2))
        return

    if result.slot_size_minutes is None:
        console.print(f"[yellow]No availability configured for {doctor_id}[/yellow]")
        return

    table = Table(title=f"Free slots for {doctor_id} ({result.slot_size_minutes} min)")
    table.add_column("Start (UTC)")
    table.add_column("End (UTC)")
    for slot in result.slots:
        table.add_row(slot.start.isoformat(), slot.end.isoformat())
    console.print(table)
    console.print(f"{len(result.slots)} slot(s)")


@app.command()
def check(
    doctor_id: str = typer.Argument(..., help="Doctor identifier"),
    start: str = typer.Option(..., "--start", help="Proposed start (ISO-8601, UTC)"),
    end: str = typer.Option(..., "--end", help="Proposed end (ISO-8601, UTC)"),
):
    """Dry-run the booking guard for a proposed time."""
    from medibook.scheduling.errors import SchedulingError

    start_dt = _parse_instant(start, "--start")
    end_dt = _parse_instant(end, "--end")

    try:
        decision = _run_service("evaluate_booking", doctor_id, start_dt, end_dt)
    except SchedulingError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    if decision.accepted:
        console.print("[green]ACCEPT[/green]")
    else:
        console.print(f"[red]REJECT {decision.code.value}[/red]: {decision.message}")
        raise typer.Exit(2)


@app.command()
def version():
    """Show version information."""
    from medibook import __version__

    console.print(f"MediBook v{__version__}")
