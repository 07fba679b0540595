"""API routes for the Hours Registry engine."""

from __future__ import annotations

import base64
import logging
from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Query, Request

from hours_tool.datasource import InMemoryDataSource, parse_assignments, parse_workers
from hours_tool.engine import (
    RegistrationManager,
    build_month_grid,
    build_range_days,
    collect_range_summaries,
    fetch_worker_hours_summary,
)
from hours_tool.excel import export_report_bytes
from hours_tool.excel.generator import HOURS_EPSILON
from hours_tool.models import HoursToolError, RegistrationEntry, StrictValidationError
from hours_tool.parsers.records import HOURS_KIND, NOTE_KIND

from api.schemas import (
    CalendarResponse,
    CompanyHoursOut,
    DayDescriptorOut,
    DaySummaryOut,
    ExportRequest,
    ExportResponse,
    ExportRowOut,
    RegistrationRequest,
    RegistrationResponse,
    SummaryRequest,
    SummaryResponse,
    WorkerTotalOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def _parse_month(value: str) -> date:
    return datetime.strptime(value, "%Y-%m").date()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/calendar", response_model=CalendarResponse)
async def calendar(month: str = Query(..., description="YYYY-MM", pattern=r"^\d{4}-\d{2}$")):
    """The 42 cells of the month grid, Monday first."""
    reference = _parse_month(month)
    days = [
        DayDescriptorOut(
            date=d.date.isoformat(),
            date_key=d.date_key,
            label=d.label,
            day_of_month=d.day_of_month,
            is_current_month=d.is_current_month,
            is_today=d.is_today,
            is_weekend=d.is_weekend,
        )
        for d in build_month_grid(reference)
    ]
    return CalendarResponse(month=month, days=days)


@router.post("/summary", response_model=SummaryResponse)
async def summary(request: SummaryRequest):
    """Aggregate raw hour and note records into day summaries."""
    try:
        month = _parse_month(request.month)
    except ValueError:
        return SummaryResponse(
            success=False,
            error_type="request_error",
            errors=[f"Invalid month: {request.month!r}"],
        )

    source = InMemoryDataSource(records={
        request.worker_id: {HOURS_KIND: request.records, NOTE_KIND: request.notes},
    })
    try:
        result = await fetch_worker_hours_summary(
            source, request.worker_id, month, request.companies,
        )
    except HoursToolError as e:
        logger.exception("Summary failed for worker %s", request.worker_id)
        return SummaryResponse(success=False, error_type="processing_error", errors=[str(e)])

    days = {
        key: DaySummaryOut(
            total_hours=float(day.total_hours),
            notes=day.notes,
            companies=[
                CompanyHoursOut(key=c.key, name=c.name, hours=float(c.hours))
                for c in day.companies
            ],
            first_start=day.first_start,
            last_end=day.last_end,
        )
        for key, day in sorted(result.hours_by_date.items())
    }
    return SummaryResponse(
        success=True,
        worker_id=result.worker_id,
        month=result.month.strftime("%Y-%m"),
        total_hours=float(result.total_hours),
        tracked_days=result.tracked_days,
        days=days,
        company_totals=[
            CompanyHoursOut(key=c.key, name=c.name, hours=float(c.hours))
            for c in result.company_totals
        ],
    )


@router.post("/registration/validate", response_model=RegistrationResponse)
async def validate_registration(request: RegistrationRequest):
    """Validate one day's drafts and return the commit payload."""
    manager = RegistrationManager()
    manager.load_day(
        request.date_key,
        [RegistrationEntry(**item.model_dump()) for item in request.entries],
    )

    try:
        payload = manager.build_commit_payload()
    except StrictValidationError as e:
        return RegistrationResponse(
            success=False,
            total_hours=float(manager.day_total()),
            error_type="validation_error",
            errors=e.errors,
        )
    return RegistrationResponse(
        success=True,
        total_hours=float(manager.day_total()),
        payload=payload,
    )


@router.post("/export", response_model=ExportResponse)
async def export(request: ExportRequest, http_request: Request):
    """Compile the control-horario workbook for a date range.

    Returns the file base64-encoded together with the compiled rows.
    """
    try:
        start = date.fromisoformat(request.start)
        end = date.fromisoformat(request.end)
        visible_days = build_range_days(start, end)
    except ValueError as e:
        return ExportResponse(success=False, error_type="request_error", errors=[str(e)])

    workers = parse_workers(request.workers)
    workers_by_id = {w.id: w for w in workers}
    assignments = parse_assignments(request.assignments, workers_by_id)
    source = InMemoryDataSource(workers, request.records, request.companies)
    settings = getattr(http_request.app.state, "settings", None)
    if request.epsilon is not None:
        epsilon = Decimal(str(request.epsilon))
    else:
        epsilon = settings.epsilon if settings else HOURS_EPSILON

    try:
        worker_days = await collect_range_summaries(
            source, sorted({a.worker_id for a in assignments}), start, end, request.companies,
        )
        report, content = export_report_bytes(
            assignments, worker_days, start, end, visible_days,
            workers=workers_by_id,
            company_lookup=request.companies,
            epsilon=epsilon,
        )
    except StrictValidationError as e:
        return ExportResponse(success=False, error_type="validation_error", errors=e.errors)
    except Exception as e:
        logger.exception("Export failed")
        return ExportResponse(success=False, error_type="processing_error", errors=[str(e)])

    rows = [
        ExportRowOut(
            worker_id=row.worker_id,
            worker_name=row.worker_name,
            company_name=row.company_name,
            hours=float(row.hours),
            hourly_rate=float(row.hourly_rate) if row.hourly_rate is not None else None,
            amount=float(row.amount) if row.amount is not None else None,
        )
        for block in report.blocks
        for row in block.rows
    ]
    worker_totals = [
        WorkerTotalOut(
            worker_id=block.worker_id,
            worker_name=block.worker_name,
            hours=float(block.total_hours),
            weighted_rate=float(block.weighted_rate) if block.weighted_rate is not None else None,
            amount=float(block.total_amount),
            daily_sheet=block.daily_sheet,
        )
        for block in report.blocks
    ]
    return ExportResponse(
        success=True,
        filename=report.filename,
        range_label=report.range_label,
        excel_base64=base64.b64encode(content).decode("ascii"),
        rows=rows,
        workers=worker_totals,
        grand_total_hours=float(report.grand_total_hours),
        grand_total_amount=float(report.grand_total_amount),
    )
