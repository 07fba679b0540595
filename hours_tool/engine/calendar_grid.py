"""Month grid for the hours calendar.

Always 6 rows of Monday-first weeks (42 cells), padded with the trailing
days of the previous month and the leading days of the next one, so the
grid height never changes between months.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Callable

from hours_tool.models import DayDescriptor

GRID_CELLS = 42

WEEKDAY_LABELS = ["LUNES", "MARTES", "MIÉRCOLES", "JUEVES", "VIERNES", "SÁBADO", "DOMINGO"]
WEEKDAY_SHORT_LABELS = ["L", "M", "X", "J", "V", "S", "D"]

Clock = Callable[[], date]


def month_start(reference: date) -> date:
    return reference.replace(day=1)


def month_end(reference: date) -> date:
    return reference.replace(day=calendar.monthrange(reference.year, reference.month)[1])


def describe_day(day: date, is_current_month: bool, today: date) -> DayDescriptor:
    weekday = day.weekday()  # Monday=0, Sunday=6
    return DayDescriptor(
        date=day,
        date_key=day.isoformat(),
        is_current_month=is_current_month,
        is_today=day == today,
        is_weekend=weekday >= 5,
        label=WEEKDAY_LABELS[weekday],
    )


def build_month_grid(reference: date, clock: Clock = date.today) -> list[DayDescriptor]:
    """Return the 42 day descriptors of the month containing ``reference``."""
    today = clock()
    first = month_start(reference)
    offset = first.weekday()  # (JS getDay() + 6) % 7 == Python weekday()

    cells: list[DayDescriptor] = []
    for i in range(offset, 0, -1):
        cells.append(describe_day(first - timedelta(days=i), False, today))

    days_in_month = calendar.monthrange(first.year, first.month)[1]
    for i in range(days_in_month):
        cells.append(describe_day(first + timedelta(days=i), True, today))

    while len(cells) < GRID_CELLS:
        cells.append(describe_day(cells[-1].date + timedelta(days=1), False, today))

    return cells


def build_range_days(start: date, end: date, clock: Clock = date.today) -> list[DayDescriptor]:
    """Descriptors for every day of an export range (inclusive)."""
    if end < start:
        raise ValueError(f"Range end {end} is before start {start}")
    today = clock()
    return [
        describe_day(start + timedelta(days=i), True, today)
        for i in range((end - start).days + 1)
    ]


def grid_weeks(cells: list[DayDescriptor]) -> list[list[DayDescriptor]]:
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]
