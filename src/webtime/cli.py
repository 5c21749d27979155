"""Command-line interface for the browsing time tracker."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .config import TrackerSettings
from .events import EventPayload
from .models import Category
from .paths import get_db_path
from .service import TrackingService

logger = logging.getLogger(__name__)

app = typer.Typer(help="Local-first browsing time tracker.")

DB_OPTION_HELP = "Location of the tracking SQLite database."


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the service."),
    port: int = typer.Option(8765, "--port", min=1, max=65535, help="TCP port for the service."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=DB_OPTION_HELP),
    tick_seconds: float = typer.Option(
        30.0,
        "--tick-interval",
        min=1.0,
        help="Seconds between periodic flushes of the open segment.",
    ),
    timeout_seconds: float = typer.Option(
        15.0,
        "--classify-timeout",
        min=1.0,
        help="Seconds to wait for the classification service.",
    ),
) -> None:
    """Run the event ingestion service with the periodic tick loop."""
    from .server_runner import run_server

    settings = TrackerSettings.from_intervals(
        tick_seconds=tick_seconds, timeout_seconds=timeout_seconds
    )
    run_server(host=host, port=port, db_path=db_path or get_db_path(), settings=settings)


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="UTC date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=DB_OPTION_HELP),
) -> None:
    """Print totals, goal progress, streak and top domains for a day."""
    from .reporting import SummaryPrinter

    target = _parse_day(date)
    service = TrackingService(db_path or get_db_path())
    try:
        printer = SummaryPrinter(service.analytics, service.settings.daily_goal_seconds)
        printer.print_daily_summary(target)
    finally:
        service.close()


@app.command("set-category")
def set_category(
    domain: str = typer.Argument(..., help="Domain as recorded, e.g. github.com."),
    category: str = typer.Argument(..., help="Work, Social, Entertainment or Other."),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=DB_OPTION_HELP),
) -> None:
    """Manually override the category of a domain."""
    try:
        parsed = Category.parse(category)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="CATEGORY") from exc
    service = TrackingService(db_path or get_db_path())
    try:
        service.categorizer.set_category(domain, parsed)
    finally:
        service.close()
    typer.echo(f"{domain}: {parsed.value}")


@app.command()
def resolve(
    date: Optional[str] = typer.Option(
        None, "--date", help="UTC date (YYYY-MM-DD) whose domains to classify."
    ),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=DB_OPTION_HELP),
) -> None:
    """Classify every uncategorized domain recorded on a day."""
    service = TrackingService(db_path or get_db_path())
    try:
        day_key = _parse_day(date).isoformat()
        domains = [usage.domain for usage in service.analytics.rollup(day_key).domains]
        resolved = service.categorizer.resolve_batch(domains).result()
    finally:
        service.close()
    if not resolved:
        typer.echo("All domains already categorized.")
        return
    for domain, category in sorted(resolved.items()):
        typer.echo(f"{domain}: {category.value}")


@app.command()
def replay(
    events_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON-lines file of browser events."
    ),
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=DB_OPTION_HELP),
) -> None:
    """Feed a recorded event log through the tracker."""
    service = TrackingService(db_path or get_db_path())
    handled = committed = 0
    try:
        with events_file.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, 1):
                if not line.strip():
                    continue
                try:
                    event = EventPayload.model_validate_json(line).to_event()
                except (ValidationError, ValueError) as exc:
                    logger.warning("Skipping line %d: %s", line_number, exc)
                    continue
                handled += 1
                if service.tracker.handle(event) is not None:
                    committed += 1
    finally:
        service.close()
    typer.echo(f"Replayed {handled} events; {committed} segments committed.")


@app.command()
def days(
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=DB_OPTION_HELP),
) -> None:
    """List every tracked day with its total and focus time."""
    from .reporting import format_duration

    service = TrackingService(db_path or get_db_path())
    try:
        rollups = [service.analytics.rollup(day_key) for day_key in service.ledger.days()]
    finally:
        service.close()
    if not rollups:
        typer.echo("No tracked days.")
        return
    for result in rollups:
        typer.echo(
            f"{result.day_key}  {format_duration(result.total_time)}  "
            f"focus {format_duration(result.focus_time)} ({result.focus_rate}%)"
        )


@app.command()
def export(
    db_path: Optional[Path] = typer.Option(None, "--db", path_type=Path, help=DB_OPTION_HELP),
) -> None:
    """Print tracking data and categories as JSON."""
    service = TrackingService(db_path or get_db_path())
    try:
        payload = {
            "trackingData": service.ledger.snapshot(),
            "domainCategories": {
                domain: category.value
                for domain, category in sorted(service.categorizer.categories().items())
            },
        }
    finally:
        service.close()
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _parse_day(value: Optional[str]) -> date:
    if not value:
        return datetime.now(timezone.utc).date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise typer.BadParameter("Expected YYYY-MM-DD", param_hint="--date") from exc
