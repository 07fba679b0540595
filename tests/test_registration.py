"""Tests for the registration entry manager."""

import itertools
import pytest
from decimal import Decimal

from hours_tool.engine.registration import (
    RegistrationManager,
    compute_entry_hours,
    format_hours,
    time_range_hours,
)
from hours_tool.models import (
    CompanyHours,
    DayHoursSummary,
    EntryValidationError,
    RegistrationEntry,
)

DAY = "2026-02-03"


def _make_manager(*companies) -> RegistrationManager:
    counter = itertools.count(1)
    manager = RegistrationManager(companies or ["Acme", "Beta"], id_factory=lambda: f"e{next(counter)}")
    manager.select_day(DAY)
    return manager


class TestHelpers:
    def test_format_hours(self):
        assert format_hours(Decimal("7.50")) == "7.5"
        assert format_hours(Decimal("8")) == "8"
        assert format_hours(Decimal("2.333")) == "2.33"

    def test_time_range_hours(self):
        assert time_range_hours("09:00", "17:30") == Decimal("8.50")
        assert time_range_hours("09:00", "09:20") == Decimal("0.33")
        assert time_range_hours("09:00", "08:00") is None
        assert time_range_hours("09:00", "09:00") is None
        assert time_range_hours("09:00", "") is None

    def test_compute_entry_hours_precedence(self):
        entry = RegistrationEntry(id="x", company="Acme", start_time="09:00", end_time="10:00", hours="3")
        assert compute_entry_hours(entry) == Decimal("3")
        entry.hours = ""
        assert compute_entry_hours(entry) == Decimal("1.00")
        entry.end_time = "08:00"
        assert compute_entry_hours(entry) == Decimal("0")

    def test_compute_entry_hours_comma(self):
        assert compute_entry_hours(RegistrationEntry(id="x", company="A", hours="7,5")) == Decimal("7.5")


class TestSelection:
    def test_seed_from_summary(self):
        manager = RegistrationManager(["Acme"], id_factory=lambda: "seed")
        summary = DayHoursSummary(companies=[
            CompanyHours(key="id:c1", name="Acme", hours=Decimal("7.50")),
            CompanyHours(key="id:c2", name="Beta", hours=Decimal("0")),
        ])
        manager.select_day(DAY, summary)
        assert list(manager.entries) == ["Acme"]
        assert manager.entries["Acme"][0].hours == "7.5"

    def test_switching_day_abandons_drafts(self):
        manager = _make_manager()
        manager.add_entry("Acme")
        manager.select_day("2026-02-04")
        assert DAY not in manager.store
        assert manager.entries == {}

    def test_reselecting_same_day_keeps_drafts(self):
        manager = _make_manager()
        manager.add_entry("Acme")
        manager.select_day(DAY, DayHoursSummary(companies=[CompanyHours(key="k", name="Beta", hours=Decimal("2"))]))
        assert list(manager.entries) == ["Acme"]

    def test_select_worker_clears_everything(self):
        manager = _make_manager()
        manager.add_entry()
        manager.select_worker(["Gamma"])
        assert manager.store == {}
        assert manager.selected_day is None
        assert manager.companies == ["Gamma"]

    def test_load_day(self):
        manager = RegistrationManager()
        manager.load_day(DAY, [
            RegistrationEntry(id="a", company="  ", hours="2"),
            RegistrationEntry(id="b", company="Acme", hours="1"),
        ])
        assert set(manager.entries) == {"Sin empresa", "Acme"}
        assert manager.entries["Sin empresa"][0].company == "Sin empresa"


class TestCrud:
    def test_add_defaults_to_first_company(self):
        manager = _make_manager()
        entry = manager.add_entry()
        assert entry.company == "Acme"
        assert entry.id == "e1"
        assert manager.entries == {"Acme": [entry]}

    def test_add_without_companies_uses_sentinel(self):
        manager = RegistrationManager(id_factory=lambda: "x")
        manager.select_day(DAY)
        assert manager.add_entry().company == "Sin empresa"

    def test_add_requires_day(self):
        with pytest.raises(ValueError, match="No day selected"):
            RegistrationManager().add_entry()

    def test_hours_clears_times(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {"start_time": "08:00", "end_time": "12:00"})
        updated = manager.update_entry("Acme", entry.id, {"hours": "5"})
        assert (updated.start_time, updated.end_time, updated.hours) == ("", "", "5")

    def test_times_recompute_hours(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {"start_time": "09:00"})
        assert entry.hours == ""
        manager.update_entry("Acme", entry.id, {"end_time": "17:30"})
        assert entry.hours == "8.5"

    def test_backwards_range_clears_hours(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {"hours": "4"})
        manager.update_entry("Acme", entry.id, {"start_time": "09:00", "end_time": "08:00"})
        assert entry.hours == ""
        assert (entry.start_time, entry.end_time) == ("09:00", "08:00")

    def test_invalid_time_clears_hours(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {"start_time": "25:00", "end_time": "26:00"})
        assert entry.hours == ""

    def test_description_only(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {"hours": "2"})
        manager.update_entry("Acme", entry.id, {"description": "Montaje"})
        assert entry.hours == "2"
        assert entry.description == "Montaje"

    def test_company_change_moves_entry(self):
        manager = _make_manager()
        first = manager.add_entry("Acme")
        second = manager.add_entry("Acme")
        manager.update_entry("Acme", first.id, {"company": "Beta"})
        assert manager.entries["Acme"] == [second]
        assert manager.entries["Beta"] == [first]
        assert first.company == "Beta"

    def test_moving_last_entry_deletes_company_key(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {"company": "Beta"})
        assert "Acme" not in manager.entries

    def test_moving_to_blank_company_uses_sentinel(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {"company": "   "})
        assert list(manager.entries) == ["Sin empresa"]

    def test_remove_last_entry_deletes_day(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.remove_entry("Acme", entry.id)
        assert DAY not in manager.store
        assert manager.entries == {}

    def test_remove_keeps_siblings(self):
        manager = _make_manager()
        first = manager.add_entry("Acme")
        second = manager.add_entry("Acme")
        manager.remove_entry("Acme", first.id)
        assert manager.entries["Acme"] == [second]

    def test_unknown_entry(self):
        manager = _make_manager()
        with pytest.raises(KeyError):
            manager.update_entry("Acme", "missing", {"hours": "1"})

    def test_unknown_field(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        with pytest.raises(ValueError, match="Unknown entry field"):
            manager.update_entry("Acme", entry.id, {"rate": "12"})

    def test_same_patch_twice_is_idempotent(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        patch = {"start_time": "08:15", "end_time": "12:45", "company": "Beta"}
        manager.update_entry("Acme", entry.id, patch)
        snapshot = {k: [vars(e).copy() for e in v] for k, v in manager.entries.items()}
        manager.update_entry("Beta", entry.id, patch)
        assert {k: [vars(e) for e in v] for k, v in manager.entries.items()} == snapshot


class TestTotalsAndValidation:
    def test_totals(self):
        manager = _make_manager()
        a = manager.add_entry("Acme")
        b = manager.add_entry("Beta")
        c = manager.add_entry("Beta")
        manager.update_entry("Acme", a.id, {"hours": "4,5"})
        manager.update_entry("Beta", b.id, {"start_time": "14:00", "end_time": "17:15"})
        manager.update_entry("Beta", c.id, {"hours": "1"})
        assert manager.company_totals() == {"Acme": Decimal("4.5"), "Beta": Decimal("4.25")}
        assert manager.day_total() == Decimal("8.75")

    def test_validation_lists_every_bad_entry(self):
        manager = _make_manager()
        good = manager.add_entry("Acme")
        manager.update_entry("Acme", good.id, {"hours": "2"})
        manager.add_entry("Acme")
        bad_range = manager.add_entry("Beta")
        manager.update_entry("Beta", bad_range.id, {"start_time": "10:00", "end_time": "09:00"})
        zero = manager.add_entry("Beta")
        manager.update_entry("Beta", zero.id, {"hours": "0"})

        with pytest.raises(EntryValidationError) as exc:
            manager.validate_day()
        assert exc.value.errors == [
            "Acme #2: no hours or time range entered",
            "Beta #1: invalid time range 10:00-09:00",
            "Beta #2: hours must be greater than 0 (got '0')",
        ]

    def test_commit_payload(self):
        manager = _make_manager()
        entry = manager.add_entry("Acme")
        manager.update_entry("Acme", entry.id, {
            "start_time": "08:00", "end_time": "12:30", "description": " Montaje ",
        })
        assert manager.build_commit_payload() == [{
            "id": entry.id,
            "company": "Acme",
            "hours": "4.5",
            "startTime": "08:00",
            "endTime": "12:30",
            "description": "Montaje",
        }]

    def test_commit_payload_never_partial(self):
        manager = _make_manager()
        good = manager.add_entry("Acme")
        manager.update_entry("Acme", good.id, {"hours": "2"})
        manager.add_entry("Beta")
        with pytest.raises(EntryValidationError):
            manager.build_commit_payload()
