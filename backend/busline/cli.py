"""
Operator CLI for the booking engine stores.

Commands:
- status: recover an interrupted commit, verify the stores, list trips
- seats TRIP_ID: seat map of one trip, four seats per row
- history USERNAME: a user's active tickets
"""

from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from busline.exceptions import BookingError
from busline.storage.records import format_money
from busline.storage.synchronizer import PersistenceSynchronizer
from busline.utils.config import configure_logging, load_config

app = typer.Typer(help="Busline booking engine operator tools")
console = Console()

SEATS_PER_ROW = 4


def open_stores(data_dir: Optional[Path]) -> PersistenceSynchronizer:
    config = load_config()
    configure_logging(config.log_level)
    return PersistenceSynchronizer(data_dir or config.data_path)


@app.command()
def status(
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory (defaults to BUSLINE_DATA_DIR)"),
):
    """Recover the stores and report whether they agree."""
    stores = open_stores(data_dir)
    try:
        if stores.recover():
            console.print("[yellow]⚠[/yellow]  Rolled forward an interrupted commit")
        trips = stores.load_trips()
        problems = stores.verify()
        active = stores.load_active_ledger()
        cancelled = stores.load_cancellation_ledger()
    except BookingError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Trips", box=box.ROUNDED)
    table.add_column("Trip", style="cyan bold", justify="right")
    table.add_column("Bus", style="white")
    table.add_column("Date", style="white")
    table.add_column("Route", style="white")
    table.add_column("Free", style="green", justify="right")
    table.add_column("Fare", style="magenta", justify="right")

    for trip in trips.values():
        table.add_row(
            str(trip.trip_id),
            trip.plate,
            trip.travel_date.isoformat(),
            f"{trip.source} → {trip.destination}",
            f"{trip.available_seats}/{trip.total_seats}",
            format_money(trip.fare),
        )

    console.print()
    console.print(table)
    console.print(f"Active tickets: {len(active)}   Cancelled tickets: {len(cancelled)}")

    if problems:
        for problem in problems:
            console.print(f"[red]✗ {problem}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Stores are consistent")


@app.command()
def seats(
    trip_id: int = typer.Argument(..., help="Trip to show"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory (defaults to BUSLINE_DATA_DIR)"),
):
    """Show the seat map of a trip."""
    stores = open_stores(data_dir)
    try:
        trip = stores.load_trips().get(trip_id)
    except BookingError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    if trip is None:
        console.print(f"[red]Error: trip {trip_id} does not exist[/red]")
        raise typer.Exit(1)

    occupied = set(trip.reserved_seats)
    rows = []
    for start in range(1, trip.total_seats + 1, SEATS_PER_ROW):
        cells = []
        for seat in range(start, min(start + SEATS_PER_ROW, trip.total_seats + 1)):
            cells.append(f"[red]{seat:>2} X[/red]" if seat in occupied else f"[green]{seat:>2} _[/green]")
        rows.append("  ".join(cells))

    console.print(Panel(
        "\n".join(rows),
        title=f"Trip {trip.trip_id}: {trip.source} → {trip.destination} ({trip.travel_date})",
        subtitle=f"{trip.available_seats} of {trip.total_seats} free",
        box=box.ROUNDED,
    ))


@app.command()
def history(
    username: str = typer.Argument(..., help="User whose tickets to list"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Store directory (defaults to BUSLINE_DATA_DIR)"),
):
    """List a user's active tickets."""
    stores = open_stores(data_dir)
    try:
        entries = stores.entries_for(username)
    except BookingError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    if not entries:
        console.print(f"[yellow]No active tickets for {username}[/yellow]")
        return

    table = Table(title=f"Tickets of {username}", box=box.ROUNDED)
    table.add_column("Ticket", style="cyan bold")
    table.add_column("Trip", justify="right")
    table.add_column("Bus")
    table.add_column("Booked")
    table.add_column("Seats")
    table.add_column("Amount", style="magenta", justify="right")

    for entry in entries:
        table.add_row(
            str(entry.ticket_id),
            str(entry.trip_id),
            entry.plate,
            entry.booking_date.isoformat(),
            " ".join(str(s) for s in entry.seats),
            format_money(entry.amount),
        )
    console.print(table)


if __name__ == "__main__":
    app()
