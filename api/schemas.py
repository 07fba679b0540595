"""Pydantic request/response models for the Hours API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DayDescriptorOut(BaseModel):
    date: str
    date_key: str
    label: str
    day_of_month: int
    is_current_month: bool
    is_today: bool
    is_weekend: bool


class CalendarResponse(BaseModel):
    month: str
    days: list[DayDescriptorOut]


class SummaryRequest(BaseModel):
    worker_id: str
    month: str = Field(..., description="YYYY-MM")
    records: list[dict] = Field(default_factory=list, description="Raw hour records")
    notes: list[dict] = Field(default_factory=list, description="Raw note records")
    companies: dict[str, str] = Field(default_factory=dict, description="Company id -> name")


class CompanyHoursOut(BaseModel):
    key: str
    name: str
    hours: float


class DaySummaryOut(BaseModel):
    total_hours: float
    notes: list[str]
    companies: list[CompanyHoursOut]
    first_start: str | None = None
    last_end: str | None = None


class SummaryResponse(BaseModel):
    success: bool
    worker_id: str | None = None
    month: str | None = None
    total_hours: float | None = None
    tracked_days: int | None = None
    days: dict[str, DaySummaryOut] | None = None
    company_totals: list[CompanyHoursOut] | None = None
    error_type: str | None = None
    errors: list[str] | None = None


class EntryIn(BaseModel):
    id: str
    company: str = ""
    start_time: str = ""
    end_time: str = ""
    hours: str = ""
    description: str = ""


class RegistrationRequest(BaseModel):
    date_key: str
    entries: list[EntryIn]


class RegistrationResponse(BaseModel):
    success: bool
    total_hours: float | None = None
    payload: list[dict] | None = None
    error_type: str | None = None
    errors: list[str] | None = None


class ExportRequest(BaseModel):
    start: str = Field(..., description="YYYY-MM-DD")
    end: str = Field(..., description="YYYY-MM-DD")
    workers: list[dict] = Field(default_factory=list)
    records: dict[str, list[dict] | dict[str, list[dict]]] = Field(default_factory=dict)
    assignments: list[dict] = Field(default_factory=list)
    companies: dict[str, str] = Field(default_factory=dict)
    epsilon: float | None = None


class ExportRowOut(BaseModel):
    worker_id: str
    worker_name: str
    company_name: str
    hours: float
    hourly_rate: float | None = None
    amount: float | None = None


class WorkerTotalOut(BaseModel):
    worker_id: str
    worker_name: str
    hours: float
    weighted_rate: float | None = None
    amount: float
    daily_sheet: str | None = None


class ExportResponse(BaseModel):
    success: bool
    filename: str | None = None
    range_label: str | None = None
    excel_base64: str | None = None
    rows: list[ExportRowOut] | None = None
    workers: list[WorkerTotalOut] | None = None
    grand_total_hours: float | None = None
    grand_total_amount: float | None = None
    error_type: str | None = None
    errors: list[str] | None = None
