"""Tests for data-source parsing and the HTTP client."""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

import requests

from hours_tool.datasource import (
    HttpDataSource,
    InMemoryDataSource,
    assignments_from_contracts,
    month_bounds,
    parse_assignments,
    parse_company_lookup,
    parse_worker,
    parse_workers,
)
from hours_tool.models import DataSourceError


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK"):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class _FakeSession:
    """Returns queued responses and records each request."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _make_source(*responses) -> HttpDataSource:
    return HttpDataSource("https://api.example.test/", token="tok", session=_FakeSession(responses))


class TestParsing:
    def test_parse_worker(self):
        worker = parse_worker({
            "parameterId": 42,
            "fullName": "Ana Ruiz",
            "hourlyRate": "11,5",
            "companyContracts": {
                "Acme": [{"companyId": "c1", "hourlyRate": 12}],
            },
            "companyNames": ["Acme", "Beta"],
        })
        assert worker.id == "42"
        assert worker.name == "Ana Ruiz"
        assert worker.hourly_rate == Decimal("11.5")
        assert [(c.company_id, c.company_name, c.hourly_rate) for c in worker.contracts] == [
            ("c1", "Acme", Decimal("12")),
            (None, "Beta", None),
        ]

    def test_unnamed_worker(self):
        worker = parse_worker({"id": "W1"})
        assert worker.name == "Trabajador sin nombre"
        assert worker.hourly_rate is None

    def test_parse_workers_wrapped(self):
        assert [w.id for w in parse_workers({"data": [{"id": "a"}, {"id": "b"}]})] == ["a", "b"]
        assert parse_workers(None) == []

    def test_company_lookup(self):
        payload = [{"id": "c1", "name": "Acme"}, {"parameterId": "c2", "description": "Beta"}, {"id": "c3"}]
        assert parse_company_lookup(payload) == {"c1": "Acme", "c2": "Beta"}

    def test_parse_assignments(self):
        workers = {"W1": parse_worker({"id": "W1", "name": "Ana"})}
        assignments = parse_assignments([
            {"workerId": "W1", "companyId": " c1 ", "companyName": "Acme", "hours": {"2026-02-02": 4, "2026-02-03": None}},
        ], workers)
        assert assignments[0].worker_name == "Ana"
        assert assignments[0].company_id == "c1"
        assert assignments[0].hours == {"2026-02-02": "4"}

    def test_assignments_from_contracts(self):
        workers = [
            parse_worker({"id": "W1", "name": "Ana", "companyContracts": [
                {"companyId": "c1", "hourlyRate": 12},
                {"companyName": "Beta"},
                {"hourlyRate": 9},
            ]}),
            parse_worker({"id": "W2", "name": "Bruno"}),
        ]
        assignments = assignments_from_contracts(workers, {"c1": "Acme"})
        assert [(a.worker_id, a.company_id, a.company_name, a.hours) for a in assignments] == [
            ("W1", "c1", "Acme", {}),
            ("W1", None, "Beta", {}),
        ]

    def test_month_bounds(self):
        assert month_bounds(date(2026, 2, 17)) == ("2026-02-01T00:00:00.000Z", "2026-02-28T23:59:59.999Z")


class TestHttpDataSource:
    def test_time_records(self):
        source = _make_source(
            _FakeResponse(payload=[{"date": "2026-02-02", "value": 4}]),
            _FakeResponse(payload={"entries": [{"date": "2026-02-03", "value": "Lluvia"}]}),
        )
        result = asyncio.run(source.fetch_time_records("W1", date(2026, 2, 1)))
        assert result == {
            "hours": [{"date": "2026-02-02", "value": 4}],
            "note": [{"date": "2026-02-03", "value": "Lluvia"}],
        }

        method, url, kwargs = source.session.calls[0]
        assert (method, url) == ("POST", "https://api.example.test/ControlSchedule/List")
        assert kwargs["json"]["types"] == [1]
        assert kwargs["json"]["parametersId"] == ["W1"]
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert source.session.calls[1][2]["json"]["types"] == [7]

    def test_empty_statuses(self):
        source = _make_source(_FakeResponse(204), _FakeResponse(404))
        assert asyncio.run(source.fetch_time_records("W1", date(2026, 2, 1))) == {"hours": [], "note": []}

    def test_notes_failure_tolerated(self):
        source = _make_source(
            _FakeResponse(payload=[{"date": "2026-02-02", "value": 4}]),
            _FakeResponse(500, reason="Server Error"),
        )
        result = asyncio.run(source.fetch_time_records("W1", date(2026, 2, 1)))
        assert len(result["hours"]) == 1
        assert result["note"] == []

    def test_hours_failure_propagates(self):
        source = _make_source(_FakeResponse(500, reason="Server Error"))
        with pytest.raises(DataSourceError, match="500"):
            asyncio.run(source.fetch_time_records("W1", date(2026, 2, 1)))

    def test_network_error_wrapped(self):
        source = _make_source(requests.exceptions.ConnectionError("refused"))
        with pytest.raises(DataSourceError, match="refused"):
            asyncio.run(source.fetch_workers())

    def test_fetch_workers(self):
        source = _make_source(_FakeResponse(payload=[{"id": "W1", "name": "Ana"}]))
        workers = asyncio.run(source.fetch_workers())
        assert [w.name for w in workers] == ["Ana"]
        assert source.session.calls[0][1].endswith("parameter/list?types[0]=5&types[1]=4&situation=0")

    def test_company_lookup_failure_is_empty(self):
        source = _make_source(_FakeResponse(401, reason="Unauthorized"))
        assert asyncio.run(source.fetch_company_lookup()) == {}

    def test_requires_url(self):
        with pytest.raises(DataSourceError):
            HttpDataSource("")


class TestInMemoryDataSource:
    def test_plain_list_is_hours(self):
        source = InMemoryDataSource(records={"W1": [{"date": "2026-02-02"}]})
        result = asyncio.run(source.fetch_time_records("W1", date(2026, 2, 1)))
        assert result == {"hours": [{"date": "2026-02-02"}], "note": []}
