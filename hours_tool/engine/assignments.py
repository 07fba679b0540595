"""Assignment totals and hourly-rate resolution for the export.

An assignment's hours on a day come from, in order:
  1. the manual value typed into ``assignment.hours[date_key]``;
  2. the tracked hours of the worker's ``DayHoursSummary`` for the
     assignment's company (matched by id, then by normalized name);
  3. zero.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping, Optional

from hours_tool.companies import (
    normalize_company_id,
    normalize_company_label,
    resolve_company_key,
)
from hours_tool.models import (
    Assignment,
    DayDescriptor,
    DayHoursSummary,
    Worker,
)
from hours_tool.parsers.records import parse_decimal

# worker_id -> date_key -> summary
WorkerDays = Mapping[str, Mapping[str, DayHoursSummary]]


def manual_hours(assignment: Assignment, date_key: str) -> Optional[Decimal]:
    raw = assignment.hours.get(date_key)
    if not isinstance(raw, str) or not raw.strip():
        return None
    return parse_decimal(raw) or Decimal("0")


def tracked_hours(assignment: Assignment, day: Optional[DayHoursSummary]) -> Optional[Decimal]:
    if day is None:
        return None
    candidate_keys = []
    if normalize_company_id(assignment.company_id):
        candidate_keys.append(resolve_company_key(assignment.company_id))
    candidate_keys.append(resolve_company_key(None, assignment.company_name))

    for key in candidate_keys:
        hours = day.hours_for(key)
        if hours is not None:
            return hours
    return None


def assignment_day_hours(
    assignment: Assignment,
    date_key: str,
    worker_days: WorkerDays,
) -> Decimal:
    manual = manual_hours(assignment, date_key)
    if manual is not None:
        return manual
    day = worker_days.get(assignment.worker_id, {}).get(date_key)
    tracked = tracked_hours(assignment, day)
    return tracked if tracked is not None else Decimal("0")


def assignment_total(
    assignment: Assignment,
    worker_days: WorkerDays,
    visible_days: Iterable[DayDescriptor],
) -> Decimal:
    """Sum of the assignment's hours across the visible days."""
    return sum(
        (assignment_day_hours(assignment, day.date_key, worker_days) for day in visible_days),
        Decimal("0"),
    )


def _contract_matches(contract, assignment: Assignment, company_lookup: Mapping[str, str]) -> bool:
    assignment_id = normalize_company_id(assignment.company_id)
    contract_id = normalize_company_id(contract.company_id)
    if assignment_id and contract_id and assignment_id == contract_id:
        return True

    assignment_name = normalize_company_label(assignment.company_name)
    if not assignment_name:
        return False
    candidates = [contract.company_name]
    if contract_id:
        candidates.append(company_lookup.get(contract_id))
    return any(normalize_company_label(c) == assignment_name for c in candidates if c)


def resolve_hourly_rate(
    worker: Optional[Worker],
    assignment: Assignment,
    company_lookup: Optional[Mapping[str, str]] = None,
) -> Optional[Decimal]:
    """Rate of the first matching contract, else the worker's general rate."""
    if worker is None:
        return None
    lookup = company_lookup or {}
    for contract in worker.contracts:
        if contract.hourly_rate is not None and _contract_matches(contract, assignment, lookup):
            return contract.hourly_rate
    return worker.hourly_rate
