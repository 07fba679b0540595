"""Layer 3 — Day Summary Aggregator.

Turns a sparse list of time records into one ``DayHoursSummary`` per
calendar day. Day totals are derived from the per-company breakdown, so the
two can never disagree.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from hours_tool.companies import collation_key, resolve_company_key
from hours_tool.engine.calendar_grid import month_start
from hours_tool.models import (
    UNASSIGNED_COMPANY_ID,
    UNASSIGNED_COMPANY_LABEL,
    CompanyHours,
    DayHoursSummary,
    MonthHoursSummary,
    TimeRecord,
)
from hours_tool.parsers.records import (
    HOURS_KIND,
    NOTE_KIND,
    format_minutes,
    normalize_records,
    parse_time_to_minutes,
)

if TYPE_CHECKING:
    from hours_tool.datasource import DataSource

logger = logging.getLogger(__name__)


def _company_name(record: TimeRecord, company_lookup: Mapping[str, str]) -> str:
    if record.company_id and company_lookup.get(record.company_id):
        return company_lookup[record.company_id]
    if record.company_name:
        return record.company_name
    if record.company_id and record.company_id.lower() != UNASSIGNED_COMPANY_ID:
        return record.company_id
    return UNASSIGNED_COMPANY_LABEL


def _widen(current: Optional[str], candidate: Optional[str], earliest: bool) -> Optional[str]:
    minutes = parse_time_to_minutes(candidate)
    if minutes is None:
        return current
    existing = parse_time_to_minutes(current)
    if existing is None:
        return format_minutes(minutes)
    chosen = min(existing, minutes) if earliest else max(existing, minutes)
    return format_minutes(chosen)


def aggregate_day_summaries(
    records: Iterable[TimeRecord],
    company_lookup: Optional[Mapping[str, str]] = None,
) -> dict[str, DayHoursSummary]:
    """Group records by day and company identity.

    Records with no positive hours only contribute their notes, and only
    when flagged as note carriers; otherwise they are skipped.
    """
    lookup = company_lookup or {}
    days: dict[str, DayHoursSummary] = {}
    companies_by_day: dict[str, dict[str, CompanyHours]] = {}

    for record in records:
        has_hours = record.hours > 0
        if not has_hours and not record.is_note:
            continue

        summary = days.setdefault(record.date_key, DayHoursSummary())
        summary.notes.extend(n.strip() for n in record.notes if n and n.strip())

        if not has_hours:
            continue

        key = resolve_company_key(record.company_id, record.company_name)
        day_companies = companies_by_day.setdefault(record.date_key, {})
        if key not in day_companies:
            day_companies[key] = CompanyHours(
                key=key,
                name=_company_name(record, lookup),
                company_id=record.company_id if key.startswith("id:") else None,
            )
        day_companies[key].hours += record.hours

        summary.first_start = _widen(summary.first_start, record.start_time, earliest=True)
        summary.last_end = _widen(summary.last_end, record.end_time, earliest=False)

    for date_key, summary in days.items():
        companies = companies_by_day.get(date_key, {}).values()
        summary.companies = sorted(companies, key=lambda c: collation_key(c.name))

    return {k: v for k, v in days.items() if v.companies or v.notes}


async def fetch_worker_hours_summary(
    source: "DataSource",
    worker_id: str,
    month: date,
    company_lookup: Optional[Mapping[str, str]] = None,
) -> MonthHoursSummary:
    """Fetch one worker's month from the data source and aggregate it.

    Errors raised by the data source propagate unchanged.
    """
    month = month_start(month)
    raw = await source.fetch_time_records(worker_id, month)
    records = normalize_records(raw.get(HOURS_KIND, []), HOURS_KIND)
    records += normalize_records(raw.get(NOTE_KIND, []), NOTE_KIND)

    hours_by_date = {
        key: summary
        for key, summary in aggregate_day_summaries(records, company_lookup).items()
        if summary_in_month(key, month)
    }
    result = MonthHoursSummary(worker_id=worker_id, month=month, hours_by_date=hours_by_date)
    logger.info(
        "Aggregated %d record(s) for worker %s %s: %d day(s), %s h",
        len(records), worker_id, month.strftime("%Y-%m"),
        len(hours_by_date), result.total_hours,
    )
    return result


def summary_in_month(date_key: str, month: date) -> bool:
    return date_key[:7] == month.strftime("%Y-%m")


def months_in_range(start: date, end: date) -> list[date]:
    months = []
    cursor = month_start(start)
    while cursor <= end:
        months.append(cursor)
        cursor = date(cursor.year + 1, 1, 1) if cursor.month == 12 else date(cursor.year, cursor.month + 1, 1)
    return months


async def collect_range_summaries(
    source: "DataSource",
    worker_ids: Iterable[str],
    start: date,
    end: date,
    company_lookup: Optional[Mapping[str, str]] = None,
) -> dict[str, dict[str, DayHoursSummary]]:
    """Day summaries of several workers across every month the range touches."""
    worker_days: dict[str, dict[str, DayHoursSummary]] = {}
    for worker_id in worker_ids:
        days = worker_days.setdefault(worker_id, {})
        for month in months_in_range(start, end):
            summary = await fetch_worker_hours_summary(source, worker_id, month, company_lookup)
            days.update(summary.hours_by_date)
    return worker_days
