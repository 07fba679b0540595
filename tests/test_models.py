"""Tests for canonical data models."""

import pytest
from decimal import Decimal
from datetime import date

from hours_tool.models import (
    CompanyContract,
    CompanyHours,
    DayHoursSummary,
    EntryValidationError,
    ExportRow,
    MonthHoursSummary,
    NothingToExportError,
    StrictValidationError,
    Worker,
    WorkerBlock,
    round_hours,
)


def _make_day(*companies, notes=None) -> DayHoursSummary:
    return DayHoursSummary(
        notes=list(notes or []),
        companies=[CompanyHours(key=f"name:{n.lower()}", name=n, hours=Decimal(h)) for n, h in companies],
    )


class TestRoundHours:
    def test_half_up(self):
        assert round_hours(Decimal("2.345")) == Decimal("2.35")
        assert round_hours(Decimal("2.344")) == Decimal("2.34")

    def test_never_negative_zero(self):
        result = round_hours(Decimal("-0.001"))
        assert result == Decimal("0.00")
        assert not result.is_signed()


class TestDayHoursSummary:
    def test_total_is_sum_of_companies(self):
        day = _make_day(("Acme", "4.5"), ("Beta", "3.25"))
        assert day.total_hours == Decimal("7.75")

    def test_total_follows_company_changes(self):
        day = _make_day(("Acme", "4"))
        day.companies[0].hours += Decimal("1")
        assert day.total_hours == Decimal("5")

    def test_hours_for(self):
        day = _make_day(("Acme", "4"))
        assert day.hours_for("name:acme") == Decimal("4")
        assert day.hours_for("name:other") is None

    def test_empty_day(self):
        assert DayHoursSummary().total_hours == Decimal("0")


class TestMonthHoursSummary:
    def test_totals(self):
        summary = MonthHoursSummary(
            worker_id="W1",
            month=date(2026, 2, 1),
            hours_by_date={
                "2026-02-02": _make_day(("Beta", "3"), ("Acme", "2")),
                "2026-02-03": _make_day(("Acme", "1.5")),
                "2026-02-04": _make_day(notes=["Baja médica"]),
            },
        )
        assert summary.total_hours == Decimal("6.5")
        assert summary.tracked_days == 2
        totals = summary.company_totals
        assert [c.name for c in totals] == ["Acme", "Beta"]
        assert totals[0].hours == Decimal("3.5")


class TestWorker:
    def test_company_names_unique_in_order(self):
        worker = Worker(id="W1", name="Ana", contracts=[
            CompanyContract(company_name="Beta"),
            CompanyContract(company_name=" Acme "),
            CompanyContract(company_name="Beta"),
            CompanyContract(company_id="c9"),
        ])
        assert worker.company_names == ["Beta", "Acme"]


class TestWorkerBlock:
    def test_weighted_rate_ignores_rows_without_rate(self):
        block = WorkerBlock(worker_id="W1", worker_name="Ana", rows=[
            ExportRow("W1", "Ana", "Acme", Decimal("4.5"), Decimal("12")),
            ExportRow("W1", "Ana", "Beta", Decimal("3.25"), Decimal("15")),
            ExportRow("W1", "Ana", "Gamma", Decimal("2"), None),
        ])
        assert block.total_hours == Decimal("9.75")
        assert block.hours_with_rate == Decimal("7.75")
        assert block.total_amount == Decimal("102.75")
        assert block.weighted_rate == Decimal("13.26")

    def test_weighted_rate_absent_without_rates(self):
        block = WorkerBlock(worker_id="W1", worker_name="Ana", rows=[
            ExportRow("W1", "Ana", "Acme", Decimal("4"), None),
        ])
        assert block.weighted_rate is None
        assert block.total_amount == Decimal("0")


class TestErrors:
    def test_strict_validation_message(self):
        err = StrictValidationError(["first", "second"])
        assert err.errors == ["first", "second"]
        assert "Validation failed with 2 error(s)" in str(err)
        assert "  - second" in str(err)

    def test_entry_validation_is_strict(self):
        with pytest.raises(StrictValidationError):
            raise EntryValidationError(["Acme #1: no hours or time range entered"])

    def test_nothing_to_export_default_message(self):
        err = NothingToExportError()
        assert err.errors == ["Nothing to export for the selected range"]
