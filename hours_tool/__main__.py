"""CLI entry point.

Usage:
    python -m hours_tool calendar --month 2026-02 \
        [--data data.json] [--worker W1]
    python -m hours_tool summary [--data data.json] --worker W1 --month 2026-02
    python -m hours_tool export [--data data.json] \
        --start 2026-02-01 --end 2026-02-28 --out-dir .

The JSON data file holds:
    {"workers": [...], "companies": {"<id>": "<name>"},
     "records": {"<workerId>": [raw records]}, "assignments": [...]}

Without --data, workers, companies and records are read from the remote API
at HOURS_API_URL, and every worker contract becomes an export assignment.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer

from hours_tool.config import Settings
from hours_tool.logging_config import setup_logging
from hours_tool.models import DataSourceError, StrictValidationError

app = typer.Typer(help="Worker hours calendar, summaries and spreadsheet export.")


def _parse_month(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        typer.echo(f"ERROR: month must be YYYY-MM, got {value!r}", err=True)
        raise typer.Exit(1)


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        typer.echo(f"ERROR: date must be YYYY-MM-DD, got {value!r}", err=True)
        raise typer.Exit(1)


def _load_data(path: str) -> dict:
    data_path = Path(path)
    if not data_path.exists():
        typer.echo(f"ERROR: data file not found: {data_path}", err=True)
        raise typer.Exit(1)
    try:
        return json.loads(data_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        typer.echo(f"ERROR: invalid JSON in {data_path}: {e}", err=True)
        raise typer.Exit(1)


def load_source(data: Optional[dict], settings: Settings):
    """In-memory source over the CLI's JSON document, else the remote API."""
    from hours_tool.datasource import HttpDataSource, InMemoryDataSource, parse_workers

    if data is not None:
        return InMemoryDataSource(
            workers=parse_workers(data.get("workers", [])),
            records=data.get("records", {}),
            company_lookup=data.get("companies", {}),
        )
    return HttpDataSource(settings.api_url, settings.api_token, settings.api_timeout)


def _open_source(data_path: Optional[str], settings: Settings):
    payload = _load_data(data_path) if data_path else None
    try:
        return payload, load_source(payload, settings)
    except DataSourceError as e:
        typer.echo(f"ERROR: {e} (pass --data or set HOURS_API_URL)", err=True)
        raise typer.Exit(1)


async def _month_summary(source, worker_id: str, reference: date):
    from hours_tool.engine import fetch_worker_hours_summary

    company_lookup = await source.fetch_company_lookup()
    return await fetch_worker_hours_summary(source, worker_id, reference, company_lookup)


async def _export_inputs(source, payload: Optional[dict], start: date, end: date):
    """Workers, company names, assignments and per-day summaries for an export."""
    from hours_tool.datasource import assignments_from_contracts, parse_assignments
    from hours_tool.engine import collect_range_summaries

    workers = await source.fetch_workers()
    company_lookup = await source.fetch_company_lookup()
    workers_by_id = {w.id: w for w in workers}
    if payload is not None:
        assignments = parse_assignments(payload.get("assignments", []), workers_by_id)
    else:
        assignments = assignments_from_contracts(workers, company_lookup)

    worker_ids = sorted({a.worker_id for a in assignments})
    worker_days = await collect_range_summaries(source, worker_ids, start, end, company_lookup)
    return workers_by_id, company_lookup, assignments, worker_days


def _setup(settings: Settings, verbose: bool) -> None:
    setup_logging("hours-tool", "DEBUG" if verbose else settings.log_level, settings.log_dir)


@app.command()
def calendar(
    month: str = typer.Option(..., "--month", help="Month to show (YYYY-MM)"),
    data: Optional[str] = typer.Option(None, "--data", help="JSON data file (default: remote API)"),
    worker: Optional[str] = typer.Option(None, "--worker", help="Worker id whose hours to overlay"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Print the 6x7 month grid, optionally with a worker's daily hours."""
    from hours_tool.engine import build_month_grid
    from hours_tool.engine.calendar_grid import WEEKDAY_SHORT_LABELS, grid_weeks
    from hours_tool.engine.registration import format_hours

    settings = Settings.from_env()
    _setup(settings, verbose)
    reference = _parse_month(month)

    hours_by_date = {}
    if worker:
        _, source = _open_source(data, settings)
        try:
            hours_by_date = asyncio.run(_month_summary(source, worker, reference)).hours_by_date
        except DataSourceError as e:
            typer.echo(f"\nFATAL ERROR: {e}", err=True)
            raise typer.Exit(1)

    typer.echo(reference.strftime("%m/%Y").center(7 * 9))
    typer.echo("".join(label.center(9) for label in WEEKDAY_SHORT_LABELS))
    for week in grid_weeks(build_month_grid(reference)):
        cells = []
        for day in week:
            text = f"{day.day_of_month:2d}" if day.is_current_month else "  "
            summary = hours_by_date.get(day.date_key) if day.is_current_month else None
            if summary and summary.total_hours > 0:
                text += f" {format_hours(summary.total_hours)}h"
            if day.is_today:
                text += "*"
            cells.append(text.center(9))
        typer.echo("".join(cells))


@app.command()
def summary(
    worker: str = typer.Option(..., "--worker", help="Worker id"),
    month: str = typer.Option(..., "--month", help="Month (YYYY-MM)"),
    data: Optional[str] = typer.Option(None, "--data", help="JSON data file (default: remote API)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Print a worker's per-day totals, notes and per-company hours."""
    from hours_tool.engine.registration import format_hours

    settings = Settings.from_env()
    _setup(settings, verbose)
    reference = _parse_month(month)
    _, source = _open_source(data, settings)

    try:
        result = asyncio.run(_month_summary(source, worker, reference))
    except DataSourceError as e:
        typer.echo(f"\nFATAL ERROR: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Worker {worker} - {reference.strftime('%m/%Y')}")
    for date_key in sorted(result.hours_by_date):
        day = result.hours_by_date[date_key]
        typer.echo(f"  {date_key}: {format_hours(day.total_hours)}h")
        for company in day.companies:
            typer.echo(f"    {company.name}: {format_hours(company.hours)}h")
        for note in day.notes:
            typer.echo(f"    NOTE: {note}")

    typer.echo(f"\n  Days with hours: {result.tracked_days}")
    for company in result.company_totals:
        typer.echo(f"  {company.name}: {format_hours(company.hours)}h")
    typer.echo(f"  TOTAL: {format_hours(result.total_hours)}h")


@app.command()
def export(
    start: str = typer.Option(..., "--start", help="First day (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", help="Last day (YYYY-MM-DD)"),
    data: Optional[str] = typer.Option(None, "--data", help="JSON data file (default: remote API)"),
    out_dir: str = typer.Option(".", "--out-dir", help="Directory for the .xlsx file"),
    epsilon: Optional[str] = typer.Option(None, "--epsilon", help="Minimum hours for a row"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Write the control-horario workbook for a date range."""
    from hours_tool.engine import build_range_days
    from hours_tool.excel import export_report

    settings = Settings.from_env()
    _setup(settings, verbose)
    start_day, end_day = _parse_day(start), _parse_day(end)
    if end_day < start_day:
        typer.echo("ERROR: --end is before --start", err=True)
        raise typer.Exit(1)

    payload, source = _open_source(data, settings)
    visible_days = build_range_days(start_day, end_day)

    try:
        workers_by_id, company_lookup, assignments, worker_days = asyncio.run(
            _export_inputs(source, payload, start_day, end_day)
        )
        report, path = export_report(
            assignments, worker_days, start_day, end_day, visible_days,
            output_dir=out_dir,
            workers=workers_by_id,
            company_lookup=company_lookup,
            epsilon=Decimal(epsilon) if epsilon else settings.epsilon,
        )
    except StrictValidationError as e:
        typer.echo("\nEXPORT FAILED:", err=True)
        for error in e.errors:
            typer.echo(f"  ERROR: {error}", err=True)
        raise typer.Exit(1)
    except DataSourceError as e:
        typer.echo(f"\nFATAL ERROR: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Range: {report.range_label}")
    for block in report.blocks:
        rate = f", {block.weighted_rate} EUR/h" if block.weighted_rate is not None else ""
        typer.echo(f"  {block.worker_name}: {len(block.rows)} row(s), {block.total_hours}h{rate}")
    typer.echo(f"\nSUCCESS: report saved to {path}")


if __name__ == "__main__":
    app()
