"""Command-line interface for charging cost reconciliation."""

from datetime import datetime, timezone
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.table import Table

from . import db
from .config import load_settings
from .errors import ChargeCostError
from .importer import import_from_csv
from .log import setup_logging
from .ratelimit import RateLimiter
from .reconcile import Reconciler, build_price_source
from .store import SqliteSessionStore
from .tariffs import load_tariff_config

console = Console()


def _parse_datetime(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, db_path, verbose):
    """Charging cost reconciliation - price finished EV charging sessions."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None
    setup_logging(verbose)


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    processes = stats["charging_processes"]
    table.add_row("Geofences", str(stats["geofences"]["count"]), "")
    table.add_row(
        "Charging processes",
        str(processes["count"]),
        f"{processes['earliest'] or 'N/A'} → {processes['latest'] or 'N/A'}",
    )
    table.add_row("  └ awaiting cost", str(processes["pending"]), "")
    table.add_row("Charges", str(stats["charges"]["count"]), "")

    console.print(table)


@cli.group()
def geofence():
    """Geofence commands."""
    pass


@geofence.command("add")
@click.option("--name", required=True, help="Geofence name")
@click.option("--cost-per-unit", type=float, help="Flat cost per kWh (leave unset to reconcile)")
@click.pass_context
def geofence_add(ctx, name, cost_per_unit):
    """Add a geofence."""
    store = SqliteSessionStore(ctx.obj["db_path"])
    geofence_id = store.add_geofence(name, cost_per_unit)
    console.print(f"[green]Added geofence '{name}' with id {geofence_id}[/green]")


# Import commands
@cli.group("import")
def import_cmd():
    """Import charging data."""
    pass


@import_cmd.command("charges")
@click.option("--csv", "csv_path", type=click.Path(exists=True), required=True, help="Path to charges CSV export")
@click.option("--geofence-id", type=int, required=True, help="Geofence new charging processes belong to")
@click.pass_context
def import_charges(ctx, csv_path, geofence_id):
    """Import charge samples from CSV."""
    result = import_from_csv(Path(csv_path), geofence_id, ctx.obj["db_path"])
    console.print(f"[green]Imported {result['imported']} charges[/green]")
    if result["skipped"]:
        console.print(f"[yellow]Skipped {result['skipped']} duplicates[/yellow]")


@cli.group("sessions")
def sessions_cmd():
    """Charging session commands."""
    pass


@sessions_cmd.command("pending")
@click.option("--geofence-id", type=int, required=True, help="Geofence to list")
@click.option("--lookback-days", type=int, help="Only sessions started within this many days")
@click.pass_context
def sessions_pending(ctx, geofence_id, lookback_days):
    """List finished sessions that have no cost yet."""
    store = SqliteSessionStore(ctx.obj["db_path"])
    pending = store.list_pending_sessions(geofence_id, lookback_days)

    if not pending:
        console.print("[yellow]No sessions awaiting a cost[/yellow]")
        return

    table = Table(title="Sessions awaiting a cost")
    table.add_column("Id", style="cyan", justify="right")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Charges", justify="right")
    table.add_column("Recorded kWh", justify="right")

    for s in pending:
        table.add_row(
            str(s.id),
            s.start_date.strftime("%Y-%m-%d %H:%M"),
            s.end_date.strftime("%Y-%m-%d %H:%M"),
            str(len(s.samples)),
            f"{s.charge_energy_used:.2f}" if s.charge_energy_used is not None else "-",
        )

    console.print(table)


@cli.command()
@click.pass_context
def reconcile(ctx):
    """Calculate costs for finished sessions that don't have them.

    Configured through environment variables (or .env): GEOFENCE_ID,
    PROVIDER and the provider's credentials.
    """
    try:
        settings = load_settings()
        limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_period_seconds)
        source = build_price_source(settings, limiter)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    store = SqliteSessionStore(ctx.obj["db_path"])
    result = Reconciler(store, source, limiter, settings).run()

    console.print(f"[green]Updated {result['updated']} charging process(es)[/green]")
    if result["failed"]:
        console.print(f"[yellow]Failed to price {result['failed']} charging process(es)[/yellow]")
    if result["stopped_early"]:
        console.print("[yellow]Stopped early, rate limit reached[/yellow]")


# Tariff commands
@cli.group()
def tariff():
    """Tariff commands."""
    pass


@tariff.command("tempo-schedule")
@click.option("--from", "from_", required=True, help="Start (ISO 8601, UTC if no offset)")
@click.option("--to", "to", required=True, help="End (ISO 8601, UTC if no offset)")
@click.option("--config", type=click.Path(exists=True), help="Path to tariffs.yaml")
def tariff_tempo_schedule(from_, to, config):
    """Show the Tempo price intervals for a time range."""
    from .providers.tempo import TempoProvider

    try:
        tariffs = load_tariff_config(Path(config) if config else None)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)
    provider = TempoProvider(RateLimiter(), tariffs.tempo_prices, timezone_name=tariffs.tempo_timezone)

    try:
        intervals = provider.fetch_prices(_parse_datetime(from_), _parse_datetime(to))
    except httpx.HTTPError as e:
        console.print(f"[red]Failed to fetch Tempo calendar: {e}[/red]")
        return
    except (ChargeCostError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    table = Table(title="Tempo price intervals (UTC)")
    table.add_column("From", style="cyan")
    table.add_column("To")
    table.add_column("Price/kWh", justify="right")
    for interval in intervals:
        table.add_row(
            interval.valid_from.isoformat(),
            interval.valid_to.isoformat(),
            f"{interval.value:.4f}",
        )

    console.print(table)


if __name__ == "__main__":
    cli()
