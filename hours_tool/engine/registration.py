"""Layer 3 — Registration Entry Manager.

Holds the editable drafts of the selected day, keyed by company name:

    {date_key: {company: [RegistrationEntry, ...]}}

Empty lists and empty days are deleted as soon as they become empty, so a
company key always has at least one draft behind it.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping, Optional

from hours_tool.models import (
    UNASSIGNED_COMPANY_LABEL,
    DayHoursSummary,
    EntryValidationError,
    RegistrationEntry,
    round_hours,
)
from hours_tool.parsers.records import parse_time_to_minutes

logger = logging.getLogger(__name__)

TIME_FIELDS = ("start_time", "end_time")
PATCH_FIELDS = {"company", "start_time", "end_time", "hours", "description"}


def normalize_company(value: Optional[str]) -> str:
    trimmed = (value or "").strip()
    return trimmed if trimmed else UNASSIGNED_COMPANY_LABEL


def format_hours(value: Decimal) -> str:
    """``Decimal("7.50")`` -> ``"7.5"``; ``Decimal("8")`` -> ``"8"``."""
    text = f"{round_hours(value):.2f}"
    return text.rstrip("0").rstrip(".")


def parse_hours_text(value: str) -> Optional[Decimal]:
    """Strictly parse a typed hours value; comma or dot decimals."""
    text = (value or "").strip().replace(",", ".")
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def time_range_hours(start_time: str, end_time: str) -> Optional[Decimal]:
    """Positive duration of ``start``→``end`` in hours, or None."""
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)
    if start is None or end is None or end <= start:
        return None
    return round_hours(Decimal(end - start) / Decimal(60))


def compute_entry_hours(entry: RegistrationEntry) -> Decimal:
    """Hours a draft stands for: typed hours, else time range, else 0."""
    typed = parse_hours_text(entry.hours)
    if typed is not None:
        return typed
    derived = time_range_hours(entry.start_time, entry.end_time)
    if derived is not None:
        return derived
    return Decimal("0")


def _new_id() -> str:
    return uuid.uuid4().hex


class RegistrationManager:
    """Draft entries of one worker's selected day."""

    def __init__(
        self,
        companies: Optional[Iterable[str]] = None,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self.companies = [normalize_company(c) for c in (companies or []) if (c or "").strip()]
        self.store: dict[str, dict[str, list[RegistrationEntry]]] = {}
        self.selected_day: Optional[str] = None
        self._id_factory = id_factory

    # --- selection -------------------------------------------------------

    def select_worker(self, companies: Iterable[str]) -> None:
        """Switch worker: every unsaved draft is abandoned."""
        if self.store:
            logger.debug("Abandoning drafts for %d day(s) on worker change", len(self.store))
        self.store.clear()
        self.selected_day = None
        self.companies = [normalize_company(c) for c in companies if (c or "").strip()]

    def select_day(self, date_key: str, summary: Optional[DayHoursSummary] = None) -> None:
        """Switch day, abandoning the previous day's drafts.

        When the new day has no drafts yet, it is seeded with one draft per
        company found in ``summary``.
        """
        if self.selected_day is not None and self.selected_day != date_key:
            if self.store.pop(self.selected_day, None):
                logger.debug("Abandoned unsaved drafts for %s", self.selected_day)
        self.selected_day = date_key

        if date_key in self.store or summary is None:
            return
        for company in summary.companies:
            if company.hours <= 0:
                continue
            self._append(company.name, RegistrationEntry(
                id=self._id_factory(),
                company=normalize_company(company.name),
                hours=format_hours(company.hours),
            ))

    def load_day(self, date_key: str, entries: Iterable[RegistrationEntry]) -> None:
        """Select ``date_key`` and replace its drafts with ``entries``."""
        self.select_day(date_key)
        self.store.pop(date_key, None)
        for entry in entries:
            entry.company = normalize_company(entry.company)
            self._append(entry.company, entry)

    @property
    def entries(self) -> dict[str, list[RegistrationEntry]]:
        """Drafts of the selected day (empty when none)."""
        if self.selected_day is None:
            return {}
        return self.store.get(self.selected_day, {})

    # --- CRUD ------------------------------------------------------------

    def add_entry(self, company: Optional[str] = None) -> RegistrationEntry:
        """Append a blank draft; defaults to the worker's first company."""
        self._require_day()
        if company is None or not company.strip():
            company = self.companies[0] if self.companies else UNASSIGNED_COMPANY_LABEL
        entry = RegistrationEntry(id=self._id_factory(), company=normalize_company(company))
        self._append(entry.company, entry)
        return entry

    def update_entry(
        self,
        company: str,
        entry_id: str,
        patch: Mapping[str, Any],
    ) -> RegistrationEntry:
        """Apply a partial update to one draft.

        ``hours`` in the patch clears the time range. Touching either end of
        the range recomputes ``hours`` from it, or clears it when the range
        is incomplete or not forward-ordered. A new ``company`` moves the
        draft to that company's list.
        """
        unknown = set(patch) - PATCH_FIELDS
        if unknown:
            raise ValueError(f"Unknown entry field(s): {sorted(unknown)}")

        entry = self._find(company, entry_id)

        if "description" in patch:
            entry.description = str(patch["description"] or "")

        if "hours" in patch:
            entry.hours = str(patch["hours"] or "").strip()
            entry.start_time = ""
            entry.end_time = ""
        elif any(name in patch for name in TIME_FIELDS):
            for name in TIME_FIELDS:
                if name in patch:
                    setattr(entry, name, str(patch[name] or "").strip())
            derived = time_range_hours(entry.start_time, entry.end_time)
            entry.hours = format_hours(derived) if derived is not None else ""

        if "company" in patch:
            destination = normalize_company(patch["company"])
            source = normalize_company(company)
            if destination != source:
                self._detach(source, entry)
                entry.company = destination
                self._append(destination, entry)

        return entry

    def remove_entry(self, company: str, entry_id: str) -> None:
        entry = self._find(company, entry_id)
        self._detach(normalize_company(company), entry)

    # --- totals and validation ------------------------------------------

    def company_totals(self) -> dict[str, Decimal]:
        return {
            company: sum((compute_entry_hours(e) for e in drafts), Decimal("0"))
            for company, drafts in self.entries.items()
        }

    def day_total(self) -> Decimal:
        return sum(self.company_totals().values(), Decimal("0"))

    def validate_day(self) -> None:
        """Raise ``EntryValidationError`` listing every draft without positive hours."""
        errors: list[str] = []
        for company, drafts in self.entries.items():
            for index, entry in enumerate(drafts, start=1):
                hours = compute_entry_hours(entry)
                if hours > 0:
                    continue
                if entry.start_time or entry.end_time:
                    reason = f"invalid time range {entry.start_time or '--:--'}-{entry.end_time or '--:--'}"
                elif entry.hours:
                    reason = f"hours must be greater than 0 (got {entry.hours!r})"
                else:
                    reason = "no hours or time range entered"
                errors.append(f"{company} #{index}: {reason}")
        if errors:
            raise EntryValidationError(errors)

    def build_commit_payload(self) -> list[dict[str, str]]:
        """Validated drafts of the selected day as plain payload dicts."""
        self.validate_day()
        payload = []
        for company, drafts in self.entries.items():
            for entry in drafts:
                payload.append({
                    "id": entry.id,
                    "company": company,
                    "hours": format_hours(compute_entry_hours(entry)),
                    "startTime": entry.start_time,
                    "endTime": entry.end_time,
                    "description": entry.description.strip(),
                })
        return payload

    # --- internals -------------------------------------------------------

    def _require_day(self) -> str:
        if self.selected_day is None:
            raise ValueError("No day selected")
        return self.selected_day

    def _append(self, company: str, entry: RegistrationEntry) -> None:
        day = self.store.setdefault(self._require_day(), {})
        day.setdefault(normalize_company(company), []).append(entry)

    def _find(self, company: str, entry_id: str) -> RegistrationEntry:
        drafts = self.entries.get(normalize_company(company), [])
        for entry in drafts:
            if entry.id == entry_id:
                return entry
        raise KeyError(f"No draft {entry_id!r} for company {company!r}")

    def _detach(self, company: str, entry: RegistrationEntry) -> None:
        day_key = self._require_day()
        day = self.store[day_key]
        remaining = [e for e in day[company] if e is not entry]
        if remaining:
            day[company] = remaining
        else:
            del day[company]
        if not day:
            del self.store[day_key]
