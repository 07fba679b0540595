"""Layer 2 — Raw time record normalization.

The data source hands back loosely shaped mappings: the same field may
arrive as ``companyId``, ``company_id`` or ``company.id``, hours as a number
or as ``"7,5 h"``, dates as ISO strings or ``dd/mm/YYYY``. Everything is
mapped here onto ``TimeRecord`` so the aggregator works on one strict type.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from hours_tool.models import TimeRecord

logger = logging.getLogger(__name__)

HOURS_KIND = "hours"
NOTE_KIND = "note"

DATE_FIELDS = ("dateTime", "start", "date", "day", "createdAt")
COMPANY_ID_FIELDS = ("companyId", "company_id", "companyID", "companyIdContract")
COMPANY_NAME_FIELDS = ("companyName", "company_name")
HOURS_FIELDS = ("value", "hours", "workedHours")
NOTE_FIELDS = (
    "notes", "note", "comment", "comments",
    "observation", "observations", "description",
)
ID_FIELDS = ("id", "controlScheduleId", "scheduleId", "registerId", "recordId")

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_NON_NUMERIC = re.compile(r"[^0-9,.\-]")


def _parse_date_flexible(value: Any) -> Optional[date]:
    """Parse dates in the formats the data source is known to emit."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    formats = [
        "%Y-%m-%d",      # 2026-01-10
        "%d/%m/%Y",      # 10/01/2026
        "%d-%m-%Y",      # 10-01-2026
        "%d.%m.%Y",      # 10.01.2026
    ]
    for fmt in formats:
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a numeric value, accepting comma or dot decimal separators."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
        return result if result.is_finite() else None
    if not isinstance(value, str):
        return None

    cleaned = _NON_NUMERIC.sub("", value).replace(",", ".")
    if not cleaned or cleaned in {".", "-", "-."}:
        return None
    try:
        result = Decimal(cleaned)
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def parse_time_to_minutes(value: Any) -> Optional[int]:
    """``"HH:MM"`` (optionally ``:SS``) to minutes since midnight."""
    if not isinstance(value, str):
        return None
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    minutes = max(0, minutes)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _pick(raw: Mapping, fields: Iterable[str]) -> Any:
    for name in fields:
        value = raw.get(name)
        if value is not None and value != "":
            return value
    return None


def _pick_string(raw: Mapping, fields: Iterable[str]) -> Optional[str]:
    for name in fields:
        value = raw.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _company_fields(raw: Mapping) -> tuple[Optional[str], Optional[str]]:
    company_id = _pick_string(raw, COMPANY_ID_FIELDS)
    company_name = _pick_string(raw, COMPANY_NAME_FIELDS)

    nested = raw.get("company")
    if isinstance(nested, Mapping):
        company_id = company_id or _pick_string(nested, ("id",))
        company_name = company_name or _pick_string(nested, ("name",))
    elif isinstance(nested, str) and nested.strip():
        company_name = company_name or nested.strip()

    return company_id, company_name


def _collect_note_strings(value: Any, out: list[str]) -> None:
    if value is None or isinstance(value, bool):
        return
    if isinstance(value, str):
        trimmed = value.strip()
        if trimmed:
            out.append(trimmed)
    elif isinstance(value, (int, float)):
        out.append(str(value))
    elif isinstance(value, Mapping):
        for item in value.values():
            _collect_note_strings(item, out)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_note_strings(item, out)


def _collect_notes(raw: Mapping, kind: str) -> list[str]:
    fields = NOTE_FIELDS + ("value",) if kind == NOTE_KIND else NOTE_FIELDS
    notes: list[str] = []
    for name in fields:
        _collect_note_strings(raw.get(name), notes)
    return notes


def _shift_hours(shifts: Any) -> tuple[Decimal, Optional[int], Optional[int]]:
    """Total hours of a ``workShifts`` list plus earliest start / latest end."""
    total = Decimal("0")
    earliest: Optional[int] = None
    latest: Optional[int] = None
    if not isinstance(shifts, (list, tuple)):
        return total, earliest, latest

    for shift in shifts:
        if not isinstance(shift, Mapping):
            continue
        start = parse_time_to_minutes(shift.get("workStart") or shift.get("startTime"))
        end = parse_time_to_minutes(shift.get("workEnd") or shift.get("endTime"))
        if start is not None:
            earliest = start if earliest is None else min(earliest, start)
        if end is not None:
            latest = end if latest is None else max(latest, end)

        explicit = parse_decimal(_pick(shift, HOURS_FIELDS))
        if explicit is not None and explicit > 0:
            total += explicit
        elif start is not None and end is not None and end > start:
            total += Decimal(end - start) / Decimal(60)

    return total, earliest, latest


def normalize_record(raw: Mapping, kind: str = HOURS_KIND) -> Optional[TimeRecord]:
    """Map one raw mapping onto ``TimeRecord``; ``None`` when it has no usable date."""
    record_date = _parse_date_flexible(_pick(raw, DATE_FIELDS))
    if record_date is None:
        logger.debug("Dropping record without a parseable date: %r", raw)
        return None

    company_id, company_name = _company_fields(raw)
    notes = _collect_notes(raw, kind)

    hours = Decimal("0")
    shift_total, earliest, latest = _shift_hours(raw.get("workShifts"))
    if kind != NOTE_KIND:
        hours = parse_decimal(_pick(raw, HOURS_FIELDS)) or Decimal("0")
        if hours == 0 and shift_total > 0:
            hours = shift_total
        if hours < 0:
            hours = Decimal("0")

    return TimeRecord(
        date=record_date,
        hours=hours,
        company_id=company_id,
        company_name=company_name,
        notes=notes,
        is_note=kind == NOTE_KIND,
        start_time=format_minutes(earliest) if earliest is not None else None,
        end_time=format_minutes(latest) if latest is not None else None,
        record_id=_pick_string(raw, ID_FIELDS),
    )


def normalize_records(raws: Iterable[Mapping], kind: str = HOURS_KIND) -> list[TimeRecord]:
    """Normalize a batch, dropping records that cannot be dated."""
    records: list[TimeRecord] = []
    dropped = 0
    for raw in raws:
        if not isinstance(raw, Mapping):
            dropped += 1
            continue
        record = normalize_record(raw, kind)
        if record is None:
            dropped += 1
            continue
        records.append(record)
    if dropped:
        logger.info("Dropped %d malformed %s record(s)", dropped, kind)
    return records
