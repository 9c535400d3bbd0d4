"""
Operator command line for the carpool core.

Usage:
    carpool init-db
    carpool seed-demo --seats 3
    carpool show-ride 1
    carpool book 1 --passenger 2 --seats 2
    carpool simulate 1 --scenario sold_out_race
    carpool reconcile 1
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .daos.vehicle_dao import VehicleDAO
from .database.models import User
from .errors import CarpoolError
from .models.ride import RideCreateModel, RideModel
from .services.registry import CarpoolServices, build_services
from .utils.config import load_config, validate_required_settings
from .utils.logging_setup import configure_logging

app = typer.Typer(help="Carpool seat inventory and booking lifecycle tools")
console = Console()

_state = {"config": None, "services": None}


@app.callback()
def main(
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        "-d",
        help="SQLAlchemy database URL (overrides DATABASE_URL)"
    ),
    env_file: Optional[str] = typer.Option(
        None,
        "--env-file",
        help="Path to a .env file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Debug logging, including SQL statements"
    ),
):
    """Carpool operator commands."""
    config = load_config(env_file)
    if database_url:
        config = config.model_copy(update={"database_url": database_url})
    validate_required_settings(config)

    configure_logging(config.carpool_log_level, debug=verbose or config.carpool_debug)
    _state["config"] = config


def _services() -> CarpoolServices:
    if _state["services"] is None:
        _state["services"] = build_services(_state["config"])
    return _state["services"]


def _fail(error: CarpoolError) -> None:
    console.print(f"[red]✗ {error.message}[/red] [dim]({error.code}, {error.status_code})[/dim]")
    raise typer.Exit(code=1)


def _ride_table(rides: List[RideModel], title: str) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Route")
    table.add_column("Departure")
    table.add_column("Seats", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Status")
    for ride in rides:
        table.add_row(
            str(ride.ride_id),
            f"{ride.origin} → {ride.destination}",
            ride.departure_at.strftime("%Y-%m-%d %H:%M"),
            f"{ride.available_seats}/{ride.seat_capacity}",
            f"{ride.price:.2f}",
            ride.status.value,
        )
    return table


@app.command("init-db")
def init_db(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables first"),
):
    """Create the carpool tables."""
    services = _services()
    if drop:
        services.db_config.drop_tables()
    services.db_config.create_tables()
    info = services.db_config.get_connection_info()
    console.print(f"[green]✓[/green] Tables ready on [cyan]{info['database_url']}[/cyan]")


@app.command("seed-demo")
def seed_demo(
    seats: int = typer.Option(3, "--seats", "-s", help="Seats offered on the demo ride"),
    passengers: int = typer.Option(5, "--passengers", "-p", help="Demo passengers to create"),
    hours_ahead: int = typer.Option(24, "--hours-ahead", help="Departure offset from now"),
):
    """Create a driver with a vehicle, some passengers and one ride."""
    services = _services()
    stamp = datetime.now().strftime("%Y%m%d%H%M%S")

    with services.db_config.get_session_context() as session:
        driver = User(email=f"driver.{stamp}@demo.carpool.local", first_name="Demo", last_name="Driver")
        session.add(driver)
        session.flush()
        VehicleDAO(session).add_vehicle(driver.user_id, model="Demo Hatchback", plate=f"DM-{stamp[-6:]}", energy="electric")

        demo_passengers = [
            User(email=f"passenger.{stamp}.{i}@demo.carpool.local", first_name="Demo", last_name=f"Passenger {i}")
            for i in range(passengers)
        ]
        session.add_all(demo_passengers)
        session.flush()
        driver_id = driver.user_id
        passenger_ids = [p.user_id for p in demo_passengers]

    try:
        ride = services.rides.create(
            driver_id,
            RideCreateModel(
                origin="Paris",
                destination="Lyon",
                departure_at=datetime.now().replace(second=0, microsecond=0) + timedelta(hours=hours_ahead),
                seat_capacity=seats,
                price=Decimal("25.50"),
                description="Demo ride",
            ),
        )
    except CarpoolError as e:
        _fail(e)

    console.print(Panel.fit(
        f"Driver: [cyan]{driver_id}[/cyan]\n"
        f"Passengers: [cyan]{', '.join(str(p) for p in passenger_ids)}[/cyan]\n"
        f"Ride: [cyan]{ride.ride_id}[/cyan] with {ride.seat_capacity} seat(s)",
        title="[bold]Demo data[/bold]",
        border_style="green",
    ))


@app.command("show-ride")
def show_ride(ride_id: int = typer.Argument(..., help="Ride id")):
    """Show a ride with its derived status."""
    try:
        summary = _services().rides.get_summary(ride_id)
    except CarpoolError as e:
        _fail(e)

    console.print(_ride_table([summary], f"Ride {ride_id}"))
    console.print(
        f"Active: {'yes' if summary.is_active else 'no'}  "
        f"Bookable: {'yes' if summary.can_be_booked else 'no'}  "
        f"Remaining: {summary.remaining_seats}  "
        f"Booked seats: {summary.booked_seats_view}"
    )

    cache = _services().cache
    if cache is not None:
        stats = cache.get_stats()
        console.print(
            f"Cache: {'healthy' if stats['healthy'] else 'unreachable'}  "
            f"hits {stats['hits']}  misses {stats['misses']}  failures {stats['failures']}"
        )


@app.command("search")
def search(
    origin: Optional[str] = typer.Option(None, "--from", help="Departure place (partial match)"),
    destination: Optional[str] = typer.Option(None, "--to", help="Arrival place (partial match)"),
    day: Optional[datetime] = typer.Option(None, "--date", formats=["%Y-%m-%d"], help="Departure day"),
    passengers: Optional[int] = typer.Option(None, "--passengers", "-p", help="Seats needed"),
):
    """Search bookable rides."""
    try:
        rides = _services().rides.search(origin, destination, day.date() if day else None, passengers)
    except CarpoolError as e:
        _fail(e)

    console.print(_ride_table(rides, f"{len(rides)} ride(s) found"))


@app.command("book")
def book(
    ride_id: int = typer.Argument(..., help="Ride id"),
    passenger: int = typer.Option(..., "--passenger", "-p", help="Passenger user id"),
    seats: int = typer.Option(1, "--seats", "-s", help="Seats to book (1-8)"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Note to the driver"),
    pending: bool = typer.Option(False, "--pending", help="Create a pending booking without reserving seats"),
):
    """Book seats on a ride."""
    try:
        result = _services().bookings.book(passenger, ride_id, seats, message, auto_confirm=not pending)
    except CarpoolError as e:
        _fail(e)

    booking = result.booking
    console.print(
        f"[green]✓[/green] Booking [cyan]{booking.booking_id}[/cyan] {booking.status.value}: "
        f"{booking.seat_count} seat(s), total {booking.total_price:.2f}"
    )
    if result.remaining_seats is not None:
        console.print(f"  {result.remaining_seats} seat(s) left on ride {ride_id}")


@app.command("confirm-booking")
def confirm_booking(booking_id: int = typer.Argument(..., help="Booking id")):
    """Confirm a pending booking."""
    try:
        result = _services().bookings.confirm(booking_id)
    except CarpoolError as e:
        _fail(e)

    console.print(
        f"[green]✓[/green] Booking [cyan]{booking_id}[/cyan] confirmed, "
        f"{result.remaining_seats} seat(s) left"
    )


@app.command("cancel-booking")
def cancel_booking(booking_id: int = typer.Argument(..., help="Booking id")):
    """Cancel a pending or confirmed booking."""
    try:
        booking = _services().bookings.cancel(booking_id)
    except CarpoolError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Booking [cyan]{booking.booking_id}[/cyan] cancelled")


@app.command("start-ride")
def start_ride(ride_id: int = typer.Argument(..., help="Ride id")):
    """Start a ride (marks it completed)."""
    try:
        ride = _services().rides.start(ride_id)
    except CarpoolError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Ride [cyan]{ride.ride_id}[/cyan] is now {ride.status.value}")


@app.command("cancel-ride")
def cancel_ride(ride_id: int = typer.Argument(..., help="Ride id")):
    """Cancel an active ride."""
    try:
        ride = _services().rides.cancel(ride_id)
    except CarpoolError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Ride [cyan]{ride.ride_id}[/cyan] is now {ride.status.value}")


@app.command("simulate")
def simulate(
    ride_id: int = typer.Argument(..., help="Ride id"),
    scenario: str = typer.Option("sold_out_race", "--scenario", help="Predefined scenario name"),
    show_attempts: bool = typer.Option(False, "--attempts", "-a", help="List every passenger attempt"),
):
    """Race simulated passengers for the seats of one ride."""
    simulator = _services().simulator
    if scenario not in simulator.scenarios:
        console.print(f"[red]Unknown scenario '{scenario}'. Choose from: {', '.join(simulator.scenarios)}[/red]")
        raise typer.Exit(code=2)

    try:
        result = simulator.run(ride_id, scenario_name=scenario)
    except CarpoolError as e:
        _fail(e)

    table = Table(title=f"{result.scenario_name}", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Passengers", str(result.concurrent_passengers))
    table.add_row("Seats per booking", str(result.seats_per_booking))
    table.add_row("Seats before", str(result.initial_available_seats))
    table.add_row("Successful bookings", str(result.successful_bookings))
    table.add_row("Sold-out rejections", str(result.sold_out_rejections))
    table.add_row("Other rejections", str(result.other_rejections))
    table.add_row("Errors", str(result.errors))
    table.add_row("Seats after", str(result.final_available_seats))
    table.add_row("Avg response", f"{result.average_response_time_ms:.1f} ms")
    table.add_row("Duration", f"{result.simulation_duration_ms} ms")
    table.add_row("Oversold", "[red]YES[/red]" if result.oversold else "[green]no[/green]")
    console.print(table)

    if show_attempts:
        attempts = Table(box=box.SIMPLE)
        attempts.add_column("Passenger", justify="right")
        attempts.add_column("Result")
        attempts.add_column("Left", justify="right")
        attempts.add_column("ms", justify="right")
        for attempt in result.attempts:
            attempts.add_row(
                str(attempt.passenger_id),
                "[green]booked[/green]" if attempt.success else f"[yellow]{attempt.error_code}[/yellow]",
                "" if attempt.remaining_seats is None else str(attempt.remaining_seats),
                f"{attempt.response_time_ms:.1f}",
            )
        console.print(attempts)


@app.command("reconcile")
def reconcile(ride_id: int = typer.Argument(..., help="Ride id")):
    """Compare a ride's seat counter with its bookings."""
    try:
        report = _services().guard.reconcile(ride_id)
    except CarpoolError as e:
        _fail(e)

    style = "green" if report.is_consistent else "yellow"
    console.print(Panel.fit(
        f"Capacity: {report.seat_capacity}\n"
        f"Booked seats: {report.booked_seats}\n"
        f"Stored counter: {report.available_seats}\n"
        f"Expected counter: {report.expected_available_seats}\n"
        f"Drift: [{style}]{report.drift:+d}[/{style}]",
        title=f"[bold]Ride {ride_id} seat reconciliation[/bold]",
        border_style=style,
    ))


if __name__ == "__main__":
    app()
