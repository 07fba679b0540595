"""Layer 1 — Canonical Data Model for the hours registry engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

UNASSIGNED_COMPANY_ID = "sin-empresa"
UNASSIGNED_COMPANY_LABEL = "Sin empresa"

TWO_PLACES = Decimal("0.01")


def round_hours(value: Decimal) -> Decimal:
    """Round to 2 decimals, half-up, never returning -0.00."""
    rounded = value.quantize(TWO_PLACES, ROUND_HALF_UP)
    return rounded if rounded != 0 else Decimal("0.00")


@dataclass(frozen=True)
class DayDescriptor:
    """One cell of the month grid."""
    date: date
    date_key: str
    is_current_month: bool
    is_today: bool
    is_weekend: bool
    label: str = ""

    @property
    def day_of_month(self) -> int:
        return self.date.day


@dataclass
class TimeRecord:
    """Single raw time record after boundary normalization (canonical form)."""
    date: date
    hours: Decimal
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    notes: list[str] = field(default_factory=list)
    is_note: bool = False
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    record_id: Optional[str] = None

    @property
    def date_key(self) -> str:
        return self.date.isoformat()


@dataclass
class CompanyHours:
    """Hours booked against one company identity on one day."""
    key: str
    name: str
    hours: Decimal = Decimal("0")
    company_id: Optional[str] = None


@dataclass
class DayHoursSummary:
    """Aggregated view of one worker's day."""
    notes: list[str] = field(default_factory=list)
    companies: list[CompanyHours] = field(default_factory=list)
    first_start: Optional[str] = None
    last_end: Optional[str] = None

    @property
    def total_hours(self) -> Decimal:
        return sum((c.hours for c in self.companies), Decimal("0"))

    def hours_for(self, company_key: str) -> Optional[Decimal]:
        for company in self.companies:
            if company.key == company_key:
                return company.hours
        return None


@dataclass
class MonthHoursSummary:
    """All day summaries of one worker for one month."""
    worker_id: str
    month: date
    hours_by_date: dict[str, DayHoursSummary] = field(default_factory=dict)

    @property
    def total_hours(self) -> Decimal:
        return sum((d.total_hours for d in self.hours_by_date.values()), Decimal("0"))

    @property
    def tracked_days(self) -> int:
        return sum(1 for d in self.hours_by_date.values() if d.total_hours > 0)

    @property
    def company_totals(self) -> list[CompanyHours]:
        from hours_tool.companies import collation_key

        totals: dict[str, CompanyHours] = {}
        for day in self.hours_by_date.values():
            for company in day.companies:
                total = totals.setdefault(
                    company.key,
                    CompanyHours(key=company.key, name=company.name, company_id=company.company_id),
                )
                total.hours += company.hours
        return sorted(totals.values(), key=lambda c: collation_key(c.name))


@dataclass
class RegistrationEntry:
    """Editable draft of one shift for one company on the selected day.

    Either the time range or ``hours`` is authoritative. All fields hold the
    raw text of the form inputs; an empty string means "not set".
    """
    id: str
    company: str
    start_time: str = ""
    end_time: str = ""
    hours: str = ""
    description: str = ""


@dataclass(frozen=True)
class CompanyContract:
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    hourly_rate: Optional[Decimal] = None


@dataclass
class Worker:
    id: str
    name: str
    hourly_rate: Optional[Decimal] = None
    contracts: list[CompanyContract] = field(default_factory=list)

    @property
    def company_names(self) -> list[str]:
        names: list[str] = []
        for contract in self.contracts:
            name = (contract.company_name or "").strip()
            if name and name not in names:
                names.append(name)
        return names


@dataclass
class Assignment:
    """A worker's presence at one company across the exported range."""
    worker_id: str
    worker_name: str
    company_id: Optional[str]
    company_name: str
    hours: dict[str, str] = field(default_factory=dict)


@dataclass
class ExportRow:
    """One (worker, company) line of the report, before layout."""
    worker_id: str
    worker_name: str
    company_name: str
    hours: Decimal
    hourly_rate: Optional[Decimal] = None
    # 1-based row of its company in the summary table; 0 when not listed
    company_slot: int = 0

    @property
    def amount(self) -> Optional[Decimal]:
        if self.hourly_rate is None:
            return None
        return self.hours * self.hourly_rate


@dataclass
class WorkerBlock:
    """Rows of one worker plus the sheet positions they were written to."""
    worker_id: str
    worker_name: str
    rows: list[ExportRow] = field(default_factory=list)
    data_start_row: int = 0
    data_end_row: int = 0
    total_row: int = 0
    separator_row: int = 0
    daily_sheet: Optional[str] = None

    @property
    def total_hours(self) -> Decimal:
        return sum((r.hours for r in self.rows), Decimal("0"))

    @property
    def hours_with_rate(self) -> Decimal:
        return sum((r.hours for r in self.rows if r.hourly_rate is not None), Decimal("0"))

    @property
    def total_amount(self) -> Decimal:
        return sum((r.amount for r in self.rows if r.amount is not None), Decimal("0"))

    @property
    def weighted_rate(self) -> Optional[Decimal]:
        if self.hours_with_rate == 0:
            return None
        return round_hours(self.total_amount / self.hours_with_rate)


@dataclass
class ExportReport:
    """Write-once result of one export invocation."""
    filename: str
    range_label: str
    blocks: list[WorkerBlock]
    summary_companies: list[str]
    table_header_row: int
    table_last_row: int
    sheet_names: list[str] = field(default_factory=list)

    @property
    def grand_total_hours(self) -> Decimal:
        return sum((b.total_hours for b in self.blocks), Decimal("0"))

    @property
    def grand_total_amount(self) -> Decimal:
        return sum((b.total_amount for b in self.blocks), Decimal("0"))


class HoursToolError(Exception):
    """Base error of the hours registry engine."""


class DataSourceError(HoursToolError):
    """Raised when the remote data source cannot be read."""


class StrictValidationError(HoursToolError):
    """Raised when strict validation fails."""
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Validation failed with {len(errors)} error(s):\n" +
                         "\n".join(f"  - {e}" for e in errors))


class EntryValidationError(StrictValidationError):
    """A day's registration drafts cannot be committed."""


class NothingToExportError(StrictValidationError):
    """The selected range has no rows worth exporting."""
    def __init__(self, message: str = "Nothing to export for the selected range"):
        super().__init__([message])
