"""Layer 4 — Spreadsheet Export Compiler.

Builds the "control horario" workbook:

  * sheet "Resumen": one row per (worker, company) with hours, rate and a
    per-row amount formula, a TOTAL row per worker whose cells are formulas
    over that worker's rows, and a per-company table (H:I) aggregating the
    whole block with SUMIFS;
  * one daily sheet per worker with tracked hours or notes.

Totals are written as formulas rather than numbers so the file stays
auditable: editing an hours or rate cell by hand recomputes every total.
"""

from __future__ import annotations

import io
import logging
import re
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Mapping, Optional

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.workbook import Workbook

from hours_tool.companies import collation_key, resolve_company_key
from hours_tool.engine.assignments import WorkerDays, assignment_total, resolve_hourly_rate
from hours_tool.excel import formulas
from hours_tool.models import (
    Assignment,
    DayDescriptor,
    ExportReport,
    ExportRow,
    NothingToExportError,
    Worker,
    WorkerBlock,
    round_hours,
)

logger = logging.getLogger(__name__)

HOURS_EPSILON = Decimal("0.01")

# Summary sheet layout
SUMMARY_SHEET_NAME = "Resumen"
TITLE_ROW = 1
SUBTITLE_ROW = 2
TABLE_HEADER_ROW = 4
DATA_START_ROW = 5
TABLE_COLUMNS = ["A", "B", "C", "D", "E"]
TABLE_HEADERS = ["EMPLEADO", "UBICACIÓN", "HORAS", "€/HORA", "IMPORTE €"]
COMPANY_KEY_COL = 6  # F, hidden

COMPANY_TITLE_ROW = 4
COMPANY_HEADER_ROW = COMPANY_TITLE_ROW + 1
COMPANY_DATA_START_ROW = COMPANY_HEADER_ROW + 1
COMPANY_NAME_COL = 8   # H
COMPANY_AMOUNT_COL = 9  # I

# Daily sheet layout
DAILY_HEADER_ROW = 4
DAILY_HEADERS = ["DÍA", "FECHA", "HORA ENTRADA", "HORA SALIDA", "HORAS", "NOTAS"]
DAILY_HOURS_COL = "E"

# Formatting constants
TITLE_FONT = Font(name='Calibri', size=24, bold=True)
SUBTITLE_FONT = Font(name='Calibri', size=18)
DAILY_TITLE_FONT = Font(name='Calibri', size=20, bold=True)
DAILY_SUBTITLE_FONT = Font(name='Calibri', size=14)
HEADER_FONT = Font(name='Calibri', size=11, bold=True, color='FFFFFFFF')
BOLD_FONT = Font(name='Calibri', size=11, bold=True)
DATA_FONT = Font(name='Calibri', size=11)
COMPANY_TITLE_FONT = Font(name='Calibri', size=16, bold=True, color='FFFFFFFF')
DAILY_TOTAL_FONT = Font(name='Calibri', size=11, bold=True, color='FF1F497D')

HEADER_FILL = PatternFill(fill_type='solid', fgColor='FF4F81BD', bgColor='FF4F81BD')
TOTAL_FILL = PatternFill(fill_type='solid', fgColor='FFE3ECF8', bgColor='FFE3ECF8')
SEPARATOR_FILL = PatternFill(fill_type='solid', fgColor='FFD9D9D9', bgColor='FFD9D9D9')
COMPANY_TITLE_FILL = PatternFill(fill_type='solid', fgColor='FFB85450', bgColor='FFB85450')
COMPANY_HEADER_FILL = PatternFill(fill_type='solid', fgColor='FFC0504D', bgColor='FFC0504D')
COMPANY_ROW_FILL = PatternFill(fill_type='solid', fgColor='FFF2DCDB', bgColor='FFF2DCDB')

CENTER_ALIGN = Alignment(horizontal='center', vertical='center')
LEFT_ALIGN = Alignment(horizontal='left', vertical='center')
WRAP_LEFT_ALIGN = Alignment(horizontal='left', vertical='center', wrap_text=True)
CURRENCY_FORMAT = '#,##0.00 "€"'
NUMBER_FORMAT = '0.00'

SUMMARY_COLUMN_WIDTHS = [28, 22, 12, 12, 16, 2, 2, 28, 16]
DAILY_COLUMN_WIDTHS = [16, 14, 14, 14, 12, 48]

_RESTRICTED_SHEET_CHARS = re.compile(r"[\\/?*\[\]:]")
MAX_SHEET_NAME = 31


def export_filename(start: date, end: date) -> str:
    return f"control-horario-{start.isoformat()}-al-{end.isoformat()}.xlsx"


def range_label(start: date, end: date) -> str:
    return f"{start.strftime('%d/%m/%Y')} al {end.strftime('%d/%m/%Y')}"


def sanitize_sheet_name(value: str) -> str:
    return _RESTRICTED_SHEET_CHARS.sub(" ", value).strip()[:MAX_SHEET_NAME]


def unique_sheet_name(base: str, used: set[str], fallback: str = "Trabajador") -> str:
    """Excel-safe sheet name not yet in ``used`` (adds `` (n)`` suffixes)."""
    name = sanitize_sheet_name(base) or fallback
    candidate = name[:MAX_SHEET_NAME]
    suffix = 1
    while candidate.lower() in {u.lower() for u in used}:
        label = f" ({suffix})"
        candidate = f"{name[:MAX_SHEET_NAME - len(label)]}{label}"
        suffix += 1
    used.add(candidate)
    return candidate


# ---------------------------------------------------------------------------
# Row compilation (no openpyxl)
# ---------------------------------------------------------------------------

def compile_worker_blocks(
    assignments: Iterable[Assignment],
    worker_days: WorkerDays,
    visible_days: list[DayDescriptor],
    workers: Optional[Mapping[str, Worker]] = None,
    company_lookup: Optional[Mapping[str, str]] = None,
    rates: Optional[Mapping[tuple[str, str], Decimal]] = None,
    epsilon: Decimal = HOURS_EPSILON,
) -> list[WorkerBlock]:
    """Total every assignment over the range, attach rates, group and sort.

    ``rates`` maps ``(worker_id, company_key)`` to an hourly rate and takes
    precedence over the rates found on the worker's contracts.
    """
    workers = workers or {}
    rates = rates or {}
    blocks: dict[str, WorkerBlock] = {}

    for assignment in assignments:
        hours = assignment_total(assignment, worker_days, visible_days)
        worker = workers.get(assignment.worker_id)
        company_key = resolve_company_key(assignment.company_id, assignment.company_name)
        rate = rates.get((assignment.worker_id, company_key))
        if rate is None:
            rate = resolve_hourly_rate(worker, assignment, company_lookup)

        worker_name = worker.name if worker else assignment.worker_name
        block = blocks.setdefault(
            assignment.worker_id,
            WorkerBlock(worker_id=assignment.worker_id, worker_name=worker_name),
        )
        block.rows.append(ExportRow(
            worker_id=assignment.worker_id,
            worker_name=worker_name,
            company_name=assignment.company_name,
            hours=hours,
            hourly_rate=rate,
        ))

    result = []
    for block in sorted(blocks.values(), key=lambda b: collation_key(b.worker_name)):
        block.rows = sorted(
            (r for r in block.rows if abs(r.hours) >= epsilon),
            key=lambda r: collation_key(r.company_name),
        )
        if block.rows:
            result.append(block)
    return result


def summary_companies(blocks: list[WorkerBlock], epsilon: Decimal = HOURS_EPSILON) -> list[str]:
    """Distinct company names of the emitted rows, once each, collated."""
    totals: OrderedDict[str, tuple[str, Decimal]] = OrderedDict()
    for block in blocks:
        for row in block.rows:
            key = row.company_name.strip().casefold()
            name, hours = totals.get(key, (row.company_name, Decimal("0")))
            totals[key] = (name, hours + row.hours)
    names = [name for name, hours in totals.values() if abs(hours) >= epsilon]
    return sorted(names, key=collation_key)


def build_report(
    assignments: Iterable[Assignment],
    worker_days: WorkerDays,
    visible_days: list[DayDescriptor],
    start: date,
    end: date,
    workers: Optional[Mapping[str, Worker]] = None,
    company_lookup: Optional[Mapping[str, str]] = None,
    rates: Optional[Mapping[tuple[str, str], Decimal]] = None,
    epsilon: Decimal = HOURS_EPSILON,
) -> ExportReport:
    """Compile rows and assign them sheet positions, table slots and sheet names.

    Raises ``NothingToExportError`` when no row survives the epsilon filter.
    """
    blocks = compile_worker_blocks(
        assignments, worker_days, visible_days, workers, company_lookup, rates, epsilon,
    )
    if not blocks:
        raise NothingToExportError()

    companies = summary_companies(blocks, epsilon)
    slots = {name.strip().casefold(): slot for slot, name in enumerate(companies, start=1)}

    used_names: set[str] = set()
    sheet_names = [unique_sheet_name(SUMMARY_SHEET_NAME, used_names)]

    row = DATA_START_ROW
    for block in blocks:
        block.data_start_row = row
        block.data_end_row = row + len(block.rows) - 1
        block.total_row = block.data_end_row + 1
        block.separator_row = block.total_row + 1
        row = block.separator_row + 1
        for export_row in block.rows:
            export_row.company_slot = slots.get(export_row.company_name.strip().casefold(), 0)
        if has_daily_activity(daily_rows(block.worker_id, worker_days, visible_days), epsilon):
            block.daily_sheet = unique_sheet_name(block.worker_name, used_names)
            sheet_names.append(block.daily_sheet)

    return ExportReport(
        filename=export_filename(start, end),
        range_label=range_label(start, end),
        blocks=blocks,
        summary_companies=companies,
        table_header_row=TABLE_HEADER_ROW,
        table_last_row=blocks[-1].total_row,
        sheet_names=sheet_names,
    )


# ---------------------------------------------------------------------------
# Workbook rendering
# ---------------------------------------------------------------------------

def _style(cell, font=None, fill=None, alignment=None, number_format=None):
    if font is not None:
        cell.font = font
    if fill is not None:
        cell.fill = fill
    if alignment is not None:
        cell.alignment = alignment
    if number_format is not None:
        cell.number_format = number_format


def _write_title(ws, row: int, text: str, last_col: int, font: Font, height: float) -> None:
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=last_col)
    cell = ws.cell(row=row, column=1)
    cell.value = text
    _style(cell, font=font, alignment=CENTER_ALIGN)
    ws.row_dimensions[row].height = height


def _write_worker_block(ws, block: WorkerBlock) -> None:
    for offset, row in enumerate(block.rows):
        r = block.data_start_row + offset
        ws.cell(row=r, column=1).value = block.worker_name if offset == 0 else None
        ws.cell(row=r, column=2).value = row.company_name
        # Full precision; NUMBER_FORMAT only changes the display
        ws.cell(row=r, column=3).value = float(row.hours)
        ws.cell(row=r, column=4).value = (
            float(row.hourly_rate) if row.hourly_rate is not None else None
        )
        ws.cell(row=r, column=5).value = formulas.row_amount(r)
        ws.cell(row=r, column=COMPANY_KEY_COL).value = row.company_slot

        _style(ws.cell(row=r, column=3), alignment=CENTER_ALIGN, number_format=NUMBER_FORMAT)
        _style(ws.cell(row=r, column=4), alignment=CENTER_ALIGN, number_format=NUMBER_FORMAT)
        _style(ws.cell(row=r, column=5), number_format=CURRENCY_FORMAT)

    start, end, total = block.data_start_row, block.data_end_row, block.total_row
    ws.cell(row=total, column=2).value = formulas.TOTAL_LABEL
    ws.cell(row=total, column=3).value = formulas.worker_total_hours(start, end)
    ws.cell(row=total, column=4).value = formulas.worker_weighted_rate(start, end)
    ws.cell(row=total, column=5).value = formulas.worker_total_amount(start, end)

    for col in range(1, 6):
        _style(ws.cell(row=total, column=col), fill=TOTAL_FILL)
    _style(ws.cell(row=total, column=2), font=BOLD_FONT)
    _style(ws.cell(row=total, column=3), alignment=CENTER_ALIGN, number_format=NUMBER_FORMAT)
    _style(ws.cell(row=total, column=4), alignment=CENTER_ALIGN, number_format=NUMBER_FORMAT)
    _style(ws.cell(row=total, column=5), number_format=CURRENCY_FORMAT)

    # Worker name spans its data rows and TOTAL row
    ws.merge_cells(start_row=start, start_column=1, end_row=total, end_column=1)
    _style(ws.cell(row=start, column=1), font=BOLD_FONT, fill=TOTAL_FILL, alignment=LEFT_ALIGN)


def _write_company_table(ws, report: ExportReport) -> None:
    first_data = DATA_START_ROW
    last_data = report.table_last_row

    ws.merge_cells(
        start_row=COMPANY_TITLE_ROW, start_column=COMPANY_NAME_COL,
        end_row=COMPANY_TITLE_ROW, end_column=COMPANY_AMOUNT_COL,
    )
    title = ws.cell(row=COMPANY_TITLE_ROW, column=COMPANY_NAME_COL)
    title.value = 'TOTAL POR EMPRESAS'
    _style(title, font=COMPANY_TITLE_FONT, fill=COMPANY_TITLE_FILL, alignment=CENTER_ALIGN)

    for col, label in [(COMPANY_NAME_COL, 'EMPRESAS'), (COMPANY_AMOUNT_COL, 'IMPORTES')]:
        cell = ws.cell(row=COMPANY_HEADER_ROW, column=col)
        cell.value = label
        _style(cell, font=HEADER_FONT, fill=COMPANY_HEADER_FILL, alignment=CENTER_ALIGN)

    row = COMPANY_DATA_START_ROW
    for slot, company in enumerate(report.summary_companies, start=1):
        name_cell = ws.cell(row=row, column=COMPANY_NAME_COL)
        name_cell.value = company
        _style(name_cell, fill=COMPANY_ROW_FILL, alignment=LEFT_ALIGN)
        amount_cell = ws.cell(row=row, column=COMPANY_AMOUNT_COL)
        amount_cell.value = formulas.company_amount(slot, first_data, last_data)
        _style(amount_cell, fill=COMPANY_ROW_FILL, number_format=CURRENCY_FORMAT)
        row += 1

    label = ws.cell(row=row, column=COMPANY_NAME_COL)
    label.value = formulas.TOTAL_LABEL
    _style(label, font=BOLD_FONT, fill=COMPANY_ROW_FILL)
    total = ws.cell(row=row, column=COMPANY_AMOUNT_COL)
    total.value = formulas.grand_total_amount(first_data, last_data)
    _style(total, font=BOLD_FONT, fill=COMPANY_ROW_FILL, number_format=CURRENCY_FORMAT)


def _write_summary_sheet(ws, report: ExportReport) -> None:
    _write_title(ws, TITLE_ROW, 'CONTROL HORARIO POR EMPRESA', len(TABLE_COLUMNS), TITLE_FONT, 36)
    _write_title(ws, SUBTITLE_ROW, f'Del {report.range_label}', len(TABLE_COLUMNS), SUBTITLE_FONT, 28)

    for col, label in enumerate(TABLE_HEADERS, start=1):
        cell = ws.cell(row=TABLE_HEADER_ROW, column=col)
        cell.value = label
        _style(cell, font=HEADER_FONT, fill=HEADER_FILL,
               alignment=LEFT_ALIGN if col in (3, 4) else CENTER_ALIGN)

    for index, block in enumerate(report.blocks):
        _write_worker_block(ws, block)
        if index < len(report.blocks) - 1:
            for col in range(1, 6):
                _style(ws.cell(row=block.separator_row, column=col), fill=SEPARATOR_FILL)

    _write_company_table(ws, report)

    ws.auto_filter.ref = f"A{report.table_header_row}:E{report.table_last_row}"
    for col, width in enumerate(SUMMARY_COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.column_dimensions[formulas.COMPANY_KEY_COL].hidden = True


def _daily_notes(notes: list[str]) -> Optional[str]:
    unique: list[str] = []
    for note in notes:
        text = note.strip()
        if text and text not in unique:
            unique.append(text)
    return " | ".join(unique).upper() if unique else None


def daily_rows(
    worker_id: str,
    worker_days: WorkerDays,
    visible_days: list[DayDescriptor],
) -> list[list]:
    """Values of a worker's daily sheet, one list per visible day."""
    days = worker_days.get(worker_id, {})
    rows = []
    for day in visible_days:
        summary = days.get(day.date_key)
        total = float(round_hours(summary.total_hours)) if summary and summary.companies else None
        rows.append([
            day.label,
            day.date.strftime('%d/%m/%Y'),
            summary.first_start if summary else None,
            summary.last_end if summary else None,
            total,
            _daily_notes(summary.notes) if summary else None,
        ])
    return rows


def has_daily_activity(rows: list[list], epsilon: Decimal = HOURS_EPSILON) -> bool:
    return any(
        (row[4] is not None and abs(Decimal(str(row[4]))) >= epsilon) or row[5]
        for row in rows
    )


def _write_daily_sheet(ws, worker_name: str, label: str, rows: list[list]) -> None:
    last_col = len(DAILY_HEADERS)
    _write_title(ws, 1, f'REGISTRO DIARIO - {worker_name.upper()}', last_col, DAILY_TITLE_FONT, 30)
    _write_title(ws, 2, f'DEL {label.upper()}', last_col, DAILY_SUBTITLE_FONT, 22)

    for col, header in enumerate(DAILY_HEADERS, start=1):
        cell = ws.cell(row=DAILY_HEADER_ROW, column=col)
        cell.value = header
        _style(cell, font=HEADER_FONT, fill=HEADER_FILL, alignment=CENTER_ALIGN)

    first = DAILY_HEADER_ROW + 1
    for offset, values in enumerate(rows):
        r = first + offset
        for col, value in enumerate(values, start=1):
            ws.cell(row=r, column=col).value = value
        _style(ws.cell(row=r, column=1), alignment=WRAP_LEFT_ALIGN)
        for col in (2, 3, 4):
            _style(ws.cell(row=r, column=col), alignment=CENTER_ALIGN)
        _style(ws.cell(row=r, column=5), alignment=CENTER_ALIGN, number_format=NUMBER_FORMAT)
        _style(ws.cell(row=r, column=6), alignment=WRAP_LEFT_ALIGN)

    last = first + len(rows) - 1
    total_row = last + 1
    ws.cell(row=total_row, column=1).value = formulas.TOTAL_LABEL
    ws.cell(row=total_row, column=5).value = formulas.column_sum(DAILY_HOURS_COL, first, last)
    for col in range(1, last_col + 1):
        _style(ws.cell(row=total_row, column=col), font=DAILY_TOTAL_FONT, fill=TOTAL_FILL)
    _style(ws.cell(row=total_row, column=5), alignment=CENTER_ALIGN, number_format=NUMBER_FORMAT)

    ws.auto_filter.ref = f"A{DAILY_HEADER_ROW}:F{max(DAILY_HEADER_ROW, last)}"
    for col, width in enumerate(DAILY_COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(col)].width = width


def build_workbook(
    report: ExportReport,
    worker_days: WorkerDays,
    visible_days: list[DayDescriptor],
) -> Workbook:
    """Render a compiled report into a fresh openpyxl workbook.

    Sheet names come from the report; the report itself is left untouched.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = report.sheet_names[0]
    _write_summary_sheet(ws, report)

    for block in report.blocks:
        if block.daily_sheet is None:
            continue
        sheet = wb.create_sheet(block.daily_sheet)
        rows = daily_rows(block.worker_id, worker_days, visible_days)
        _write_daily_sheet(sheet, block.worker_name, report.range_label, rows)

    return wb


def export_report(
    assignments: Iterable[Assignment],
    worker_days: WorkerDays,
    start: date,
    end: date,
    visible_days: list[DayDescriptor],
    output_dir: str | Path = ".",
    workers: Optional[Mapping[str, Worker]] = None,
    company_lookup: Optional[Mapping[str, str]] = None,
    rates: Optional[Mapping[tuple[str, str], Decimal]] = None,
    epsilon: Decimal = HOURS_EPSILON,
) -> tuple[ExportReport, Path]:
    """Compile, render and save the report; returns it with the written path."""
    report = build_report(
        assignments, worker_days, visible_days, start, end,
        workers, company_lookup, rates, epsilon,
    )
    wb = build_workbook(report, worker_days, visible_days)

    output_path = Path(output_dir) / report.filename
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(str(output_path))
    logger.info(
        "Exported %d worker(s), %d row(s) to %s",
        len(report.blocks), sum(len(b.rows) for b in report.blocks), output_path,
    )
    return report, output_path


def export_report_bytes(
    assignments: Iterable[Assignment],
    worker_days: WorkerDays,
    start: date,
    end: date,
    visible_days: list[DayDescriptor],
    workers: Optional[Mapping[str, Worker]] = None,
    company_lookup: Optional[Mapping[str, str]] = None,
    rates: Optional[Mapping[tuple[str, str], Decimal]] = None,
    epsilon: Decimal = HOURS_EPSILON,
) -> tuple[ExportReport, bytes]:
    """Same as ``export_report`` but returns the file content in memory."""
    report = build_report(
        assignments, worker_days, visible_days, start, end,
        workers, company_lookup, rates, epsilon,
    )
    wb = build_workbook(report, worker_days, visible_days)
    buffer = io.BytesIO()
    wb.save(buffer)
    return report, buffer.getvalue()
