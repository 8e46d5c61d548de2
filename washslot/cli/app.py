"""
Main CLI application using Typer.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Iterator, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..adapters.json_store import JsonFileStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError, SlotConflictError
from ..domain.models import Appointment, TimeSlot
from ..domain.timeformat import format_date, format_time_of_day, parse_date, parse_time_of_day
from ..services.booking import BookingRequest, BookingService
from ..services.catalog import CatalogService
from ..services.schedule import ScheduleService

app = typer.Typer(
    name="washslot",
    help="Car-wash appointment availability and booking",
    add_completion=False
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

STATUS_STYLES = {
    "pending": "yellow",
    "confirmed": "cyan",
    "in_progress": "blue",
    "completed": "green",
    "cancelled": "dim",
}


@dataclass
class CliState:
    config_file: Optional[Path]
    data_file: Optional[Path]
    verbose: bool = False


@dataclass
class Runtime:
    config: AppConfig
    booking: BookingService
    catalog: CatalogService
    schedule: ScheduleService


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./washslot.yaml")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", help="Path to the JSON data file (overrides the config)")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """
    Appointment availability and booking for a car-wash.
    """
    ctx.obj = CliState(config_file=config_file, data_file=data_file, verbose=verbose)


def _load_config(state: CliState) -> AppConfig:
    if state.config_file is not None:
        return AppConfig.load_from_yaml(state.config_file)

    config_path = get_default_config_path()
    if config_path.exists():
        return AppConfig.load_from_yaml(config_path)
    return AppConfig()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _runtime(ctx: typer.Context) -> Runtime:
    """Build the services for one command invocation."""
    state: CliState = ctx.obj
    config = _load_config(state)
    _configure_logging("DEBUG" if state.verbose else config.log_level)

    data_path = state.data_file or config.data_file
    logger.debug("Using data file %s (timezone %s)", data_path, config.timezone)

    store = JsonFileStore(
        path=data_path,
        timezone=config.timezone,
        default_business_hours=config.business_hours_rules(),
    )
    booking = BookingService(
        store=store,
        catalog=store,
        schedule=store,
        calculator=config.build_calculator(),
        default_duration_minutes=config.scheduling.default_duration_minutes,
        allow_past_dates=config.scheduling.allow_past_dates,
    )
    return Runtime(
        config=config,
        booking=booking,
        catalog=CatalogService(store),
        schedule=ScheduleService(store),
    )


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


def _slot_table(day: str, slots: List[TimeSlot], show_availability: bool) -> Table:
    table = Table(title=f"Slots for {day}", show_header=True, header_style="bold cyan")
    table.add_column("Time", style="bold yellow")
    table.add_column("Ends", style="dim")
    if show_availability:
        table.add_column("Available")

    for slot in slots:
        row = [slot.display, slot.end.format("HH:mm")]
        if show_availability:
            row.append("[green]yes[/green]" if slot.available else "[red]taken[/red]")
        table.add_row(*row)

    return table


def _appointment_table(title: str, appointments: List[Appointment], runtime: Runtime) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Date")
    table.add_column("Time", style="bold yellow")
    table.add_column("Service")
    table.add_column("Customer")
    table.add_column("Vehicle")
    table.add_column("Status")

    tz = runtime.config.timezone
    names = {item.id: item.name for item in runtime.catalog.list_services()}
    for appointment in appointments:
        start = appointment.start_time.in_timezone(tz)
        end = appointment.end_time.in_timezone(tz)
        style = STATUS_STYLES.get(appointment.status.value, "white")
        table.add_row(
            appointment.id,
            start.format("YYYY-MM-DD"),
            f"{start.format('HH:mm')} - {end.format('HH:mm')}",
            escape(names.get(appointment.service_id, appointment.service_id)),
            escape(f"{appointment.customer_name} ({appointment.customer_phone})"),
            escape(appointment.vehicle_type),
            f"[{style}]{appointment.status.value}[/{style}]",
        )

    return table


@app.command()
def slots(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Service duration in minutes")] = None,
    service: Annotated[Optional[str], typer.Option("--service", "-s", help="Service ID (uses its duration)")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also list taken slots")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON instead of a table")] = False,
):
    """
    Show bookable slots for a date.
    
    Examples:
    
        washslot slots 2025-03-14
        washslot slots 2025-03-14 --duration 60
        washslot slots 2025-03-14 --service <id> --all
    """
    with _cli_errors():
        runtime = _runtime(ctx)
        lookup = runtime.booking.get_slot_board if show_all else runtime.booking.get_availability
        found = lookup(date, service_duration_minutes=duration, service_id=service)
        day = format_date(parse_date(date))

        if as_json:
            console.print_json(
                data={"date": day, "slots": [slot.to_dict() for slot in found], "total": len(found)}
            )
            return

        if not found:
            console.print(f"[yellow]⚠ No available slots on {day}.[/yellow]")
            return

        console.print()
        console.print(_slot_table(day, found, show_availability=show_all))
        console.print()


@app.command()
def book(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service ID")],
    name: Annotated[str, typer.Option("--name", help="Customer name")],
    phone: Annotated[str, typer.Option("--phone", help="Customer phone")],
    vehicle: Annotated[str, typer.Option("--vehicle", help="Vehicle type")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Optional notes")] = None,
):
    """
    Book an appointment at one of the available slots.
    """
    with _cli_errors():
        runtime = _runtime(ctx)
        start = f"{format_date(parse_date(date))}T{format_time_of_day(parse_time_of_day(time))}:00"
        try:
            appointment = runtime.booking.create_appointment(
                BookingRequest(
                    customer_name=name,
                    customer_phone=phone,
                    vehicle_type=vehicle,
                    service_id=service,
                    start_time=start,
                    notes=notes,
                )
            )
        except SlotConflictError:
            remaining = runtime.booking.get_availability(date, service_id=service)
            labels = ", ".join(slot.display for slot in remaining) or "none"
            console.print(f"[bold red]Error:[/bold red] {SlotConflictError.user_message}")
            console.print(f"Still available on {date}: {labels}")
            raise typer.Exit(1)

        console.print(f"[green]✓ Appointment booked:[/green] {appointment.id}")
        console.print(
            f"   {appointment.start_time.format('YYYY-MM-DD HH:mm')} - "
            f"{appointment.end_time.format('HH:mm')} ({appointment.status.value})"
        )


@app.command()
def appointments(
    ctx: typer.Context,
    date: Annotated[Optional[str], typer.Option("--date", help="Only this date (YYYY-MM-DD)")] = None,
    status: Annotated[Optional[str], typer.Option("--status", help="Only this status")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="From date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Until date, inclusive (YYYY-MM-DD)")] = None,
):
    """
    List appointments.
    """
    with _cli_errors():
        runtime = _runtime(ctx)
        found = runtime.booking.list_appointments(
            date=date, status=status, start_date=start, end_date=end
        )

        if not found:
            console.print("[yellow]No appointments found.[/yellow]")
            return

        console.print()
        console.print(_appointment_table("Appointments", found, runtime))
        console.print()


@app.command()
def status(
    ctx: typer.Context,
    appointment_id: Annotated[str, typer.Argument(help="Appointment ID")],
    new_status: Annotated[str, typer.Argument(help="pending, confirmed, in_progress, completed or cancelled")],
):
    """
    Change the status of an appointment.
    """
    with _cli_errors():
        appointment = _runtime(ctx).booking.update_status(appointment_id, new_status)
        console.print(f"[green]✓ Status updated:[/green] {appointment.id} is now {appointment.status.value}")


@app.command()
def cancel(
    ctx: typer.Context,
    appointment_id: Annotated[str, typer.Argument(help="Appointment ID")],
):
    """
    Cancel an appointment and free its time.
    """
    with _cli_errors():
        appointment = _runtime(ctx).booking.cancel_appointment(appointment_id)
        console.print(f"[green]✓ Appointment cancelled:[/green] {appointment.id}")


@app.command()
def dashboard(ctx: typer.Context):
    """
    Show today's appointments by status and the next bookings.
    """
    with _cli_errors():
        runtime = _runtime(ctx)
        summary = runtime.booking.get_dashboard()

        counts = Table(title=f"Today ({format_date(summary.date)})", show_header=True, header_style="bold cyan")
        counts.add_column("Status")
        counts.add_column("Count", justify="right")
        for name, count in summary.status_counts.items():
            counts.add_row(name, str(count))
        counts.add_row("[bold]total[/bold]", f"[bold]{summary.total}[/bold]")

        console.print()
        console.print(counts)
        if summary.upcoming:
            console.print(_appointment_table("Upcoming", summary.upcoming, runtime))
        else:
            console.print("[yellow]No upcoming appointments.[/yellow]")
        console.print()


@app.command()
def services(
    ctx: typer.Context,
    active_only: Annotated[bool, typer.Option("--active", help="Only active services")] = False,
):
    """
    List the service catalog.
    """
    with _cli_errors():
        found = _runtime(ctx).catalog.list_services(only_active=active_only)

        if not found:
            console.print("[yellow]No services configured.[/yellow]")
            return

        table = Table(title="Services", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim", overflow="fold")
        table.add_column("Name", style="bold yellow")
        table.add_column("Duration", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Active")

        for item in found:
            table.add_row(
                item.id,
                escape(item.name),
                f"{item.duration_minutes} min",
                f"{item.price:.2f}",
                "[green]yes[/green]" if item.active else "[red]no[/red]",
            )

        console.print()
        console.print(table)
        console.print()


@app.command()
def add_service(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Service name")],
    price: Annotated[float, typer.Option("--price", help="Price")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Duration in minutes")] = 90,
    description: Annotated[Optional[str], typer.Option("--description", help="Description")] = None,
):
    """
    Add a service to the catalog.
    """
    with _cli_errors():
        service = _runtime(ctx).catalog.create_service(
            name=name, price=price, duration_minutes=duration, description=description
        )
        console.print(f"[green]✓ Service created:[/green] {service.id} ({service.name}, {service.duration_minutes} min)")


@app.command()
def deactivate_service(
    ctx: typer.Context,
    service_id: Annotated[str, typer.Argument(help="Service ID")],
):
    """
    Deactivate a service. Services are never removed.
    """
    with _cli_errors():
        service = _runtime(ctx).catalog.delete_service(service_id)
        console.print(f"[green]✓ Service deactivated:[/green] {service.name}")


@app.command()
def hours(ctx: typer.Context):
    """
    Show weekly business hours and upcoming date overrides.
    """
    with _cli_errors():
        runtime = _runtime(ctx)

        table = Table(title="Business hours", show_header=True, header_style="bold cyan")
        table.add_column("Day", style="bold yellow")
        table.add_column("Hours")
        for rule in runtime.schedule.get_business_hours():
            opening = (
                f"{format_time_of_day(rule.open_time)} - {format_time_of_day(rule.close_time)}"
                if rule.is_open
                else "[red]closed[/red]"
            )
            table.add_row(WEEKDAY_NAMES[rule.day_of_week], opening)

        console.print()
        console.print(table)

        today = pendulum.today(runtime.config.timezone).date()
        overrides = runtime.schedule.list_date_overrides(start_date=today)
        if overrides:
            blocked = Table(title="Date overrides", show_header=True, header_style="bold cyan")
            blocked.add_column("Date", style="bold yellow")
            blocked.add_column("Hours")
            blocked.add_column("Reason", style="dim")
            for override in overrides:
                if override.is_fully_blocked:
                    opening = "[red]blocked[/red]"
                elif override.open_time is None and override.close_time is None:
                    opening = "default"
                else:
                    opening = (
                        f"{format_time_of_day(override.open_time) if override.open_time else '--:--'} - "
                        f"{format_time_of_day(override.close_time) if override.close_time else '--:--'}"
                    )
                blocked.add_row(format_date(override.date), opening, escape(override.reason or ""))
            console.print(blocked)
        console.print()


@app.command()
def set_hours(
    ctx: typer.Context,
    day: Annotated[int, typer.Argument(help="Weekday (0=Sunday .. 6=Saturday)")],
    open_time: Annotated[str, typer.Option("--open", help="Opening time (HH:MM)")] = "08:00",
    close_time: Annotated[str, typer.Option("--close", help="Closing time (HH:MM)")] = "18:00",
    closed: Annotated[bool, typer.Option("--closed", help="Mark the day as closed")] = False,
):
    """
    Set the default opening hours of a weekday.
    """
    with _cli_errors():
        rule = _runtime(ctx).schedule.set_business_hours(
            day_of_week=day, is_open=not closed, open_time=open_time, close_time=close_time
        )
        state = (
            "closed"
            if not rule.is_open
            else f"{format_time_of_day(rule.open_time)} - {format_time_of_day(rule.close_time)}"
        )
        console.print(f"[green]✓ {WEEKDAY_NAMES[rule.day_of_week]}:[/green] {state}")


@app.command()
def block(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Why the date is blocked")] = None,
):
    """
    Block a whole date (holiday, maintenance).
    """
    with _cli_errors():
        override = _runtime(ctx).schedule.upsert_date_override(date, is_fully_blocked=True, reason=reason)
        console.print(f"[green]✓ {format_date(override.date)} blocked.[/green]")


@app.command()
def special_hours(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    open_time: Annotated[Optional[str], typer.Option("--open", help="Opening time (HH:MM)")] = None,
    close_time: Annotated[Optional[str], typer.Option("--close", help="Closing time (HH:MM)")] = None,
    reason: Annotated[Optional[str], typer.Option("--reason", help="Note shown with the date")] = None,
):
    """
    Give a date special opening hours. Without times only the note is stored.
    """
    with _cli_errors():
        override = _runtime(ctx).schedule.upsert_date_override(
            date,
            is_fully_blocked=False,
            open_time=open_time,
            close_time=close_time,
            reason=reason,
        )
        console.print(f"[green]✓ Special hours saved for {format_date(override.date)}.[/green]")


@app.command()
def unblock(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
):
    """
    Remove the override of a date.
    """
    with _cli_errors():
        _runtime(ctx).schedule.delete_date_override(date)
        console.print(f"[green]✓ Override for {date} removed.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]washslot[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
