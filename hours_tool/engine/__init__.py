"""Calendar, aggregation and registration engines."""
from hours_tool.engine.calendar_grid import build_month_grid, build_range_days
from hours_tool.engine.aggregator import (
    aggregate_day_summaries,
    collect_range_summaries,
    fetch_worker_hours_summary,
)
from hours_tool.engine.registration import RegistrationManager, compute_entry_hours
from hours_tool.engine.assignments import assignment_total, resolve_hourly_rate
from hours_tool.engine.session import HoursSummarySession

__all__ = [
    "build_month_grid",
    "build_range_days",
    "aggregate_day_summaries",
    "fetch_worker_hours_summary",
    "collect_range_summaries",
    "RegistrationManager",
    "compute_entry_hours",
    "assignment_total",
    "resolve_hourly_rate",
    "HoursSummarySession",
]
