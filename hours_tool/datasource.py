"""Layer 5 — Data sources for workers and time records.

The engine talks to an async ``DataSource``. ``HttpDataSource`` reads the
remote control-schedule API with ``requests`` (blocking calls pushed to a
worker thread); ``InMemoryDataSource`` serves records already loaded, for
the CLI's JSON input and for tests.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Mapping, Optional, Protocol

import requests

from hours_tool.companies import trim_to_none
from hours_tool.engine.calendar_grid import month_end, month_start
from hours_tool.models import Assignment, CompanyContract, DataSourceError, Worker
from hours_tool.parsers.records import HOURS_KIND, NOTE_KIND, parse_decimal

logger = logging.getLogger(__name__)

HOURS_RECORD_TYPES = [1]
NOTE_RECORD_TYPES = [7]
EMPTY_STATUSES = (204, 404)

UNNAMED_WORKER = "Trabajador sin nombre"

RawRecords = dict[str, list[dict]]


class DataSource(Protocol):
    async def fetch_workers(self) -> list[Worker]:
        ...

    async def fetch_company_lookup(self) -> dict[str, str]:
        ...

    async def fetch_time_records(self, worker_id: str, month: date) -> RawRecords:
        """Raw hour and note records of one worker's month.

        Returns ``{"hours": [...], "note": [...]}``.
        """
        ...


# ---------------------------------------------------------------------------
# Raw payload parsing
# ---------------------------------------------------------------------------

def _first_string(raw: Mapping, *fields: str) -> Optional[str]:
    for name in fields:
        value = trim_to_none(raw.get(name))
        if value is not None:
            return value
    return None


def _unwrap_list(payload: Any, *keys: str) -> list:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in keys:
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


def parse_contract(raw: Mapping, company_name: Optional[str] = None) -> CompanyContract:
    return CompanyContract(
        company_id=_first_string(raw, "companyId", "company_id"),
        company_name=_first_string(raw, "companyName", "company_name") or trim_to_none(company_name),
        hourly_rate=parse_decimal(raw.get("hourlyRate", raw.get("rate"))),
    )


def parse_contracts(value: Any) -> list[CompanyContract]:
    """Contracts as a list, or keyed by company name."""
    contracts: list[CompanyContract] = []
    if isinstance(value, Mapping):
        for company_name, items in value.items():
            for item in items or []:
                if isinstance(item, Mapping):
                    contracts.append(parse_contract(item, company_name))
    elif isinstance(value, list):
        contracts.extend(parse_contract(item) for item in value if isinstance(item, Mapping))
    return contracts


def parse_worker(raw: Mapping) -> Worker:
    worker_id = (
        _first_string(raw, "id", "parameterId", "workerId", "worker_id")
        or uuid.uuid4().hex
    )
    name = _first_string(
        raw, "name", "fullName", "label", "description", "workerName", "firstName",
    ) or UNNAMED_WORKER
    contracts = parse_contracts(raw.get("companyContracts", raw.get("contracts")))

    # Plain company names with no contract still make the worker known there
    known = {c.company_name for c in contracts if c.company_name}
    for company in raw.get("companyNames") or []:
        label = trim_to_none(company)
        if label and label not in known:
            contracts.append(CompanyContract(company_name=label))
            known.add(label)

    return Worker(
        id=worker_id,
        name=name,
        hourly_rate=parse_decimal(raw.get("hourlyRate", raw.get("rate"))),
        contracts=contracts,
    )


def parse_workers(payload: Any) -> list[Worker]:
    return [parse_worker(item) for item in _unwrap_list(payload, "data", "items") if isinstance(item, Mapping)]


def parse_company_lookup(payload: Any) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for item in _unwrap_list(payload, "data", "items"):
        if not isinstance(item, Mapping):
            continue
        company_id = _first_string(item, "id", "parameterId")
        name = _first_string(item, "name", "description", "label")
        if company_id and name:
            lookup[company_id] = name
    return lookup


def month_bounds(month: date) -> tuple[str, str]:
    """UTC ISO instants covering the whole month, inclusive."""
    start = datetime.combine(month_start(month), time.min, tzinfo=timezone.utc)
    end = datetime.combine(month_end(month), time(23, 59, 59, 999000), tzinfo=timezone.utc)
    return (
        start.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        end.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    )


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------

class HttpDataSource:
    """Remote control-schedule API."""

    def __init__(self, api_url: str, token: str = "", timeout: float = 30,
                 session: Optional[requests.Session] = None) -> None:
        if not api_url:
            raise DataSourceError("API URL is not configured")
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Optional[Any]:
        url = f"{self.api_url}/{path}"
        try:
            resp = self.session.request(
                method, url, headers=self.headers, timeout=self.timeout, **kwargs,
            )
        except requests.exceptions.RequestException as e:
            raise DataSourceError(f"{method} {url} failed: {e}") from e

        if resp.status_code in EMPTY_STATUSES:
            return None
        if not resp.ok:
            raise DataSourceError(f"{method} {url} returned {resp.status_code} - {resp.reason}")
        try:
            return resp.json()
        except ValueError as e:
            raise DataSourceError(f"{method} {url} returned invalid JSON") from e

    def _schedule_entries(self, worker_id: str, month: date, types: list[int]) -> list[dict]:
        start, end = month_bounds(month)
        payload = self._request("POST", "ControlSchedule/List", json={
            "from": start,
            "to": end,
            "parametersId": [worker_id],
            "companiesId": [],
            "types": types,
        })
        return [e for e in _unwrap_list(payload, "entries") if isinstance(e, Mapping)]

    def _time_records(self, worker_id: str, month: date) -> RawRecords:
        hours = self._schedule_entries(worker_id, month, HOURS_RECORD_TYPES)
        try:
            notes = self._schedule_entries(worker_id, month, NOTE_RECORD_TYPES)
        except DataSourceError as e:
            logger.warning("Notes unavailable for worker %s: %s", worker_id, e)
            notes = []
        logger.debug(
            "Fetched %d hour record(s) and %d note(s) for worker %s",
            len(hours), len(notes), worker_id,
        )
        return {HOURS_KIND: hours, NOTE_KIND: notes}

    async def fetch_time_records(self, worker_id: str, month: date) -> RawRecords:
        return await asyncio.to_thread(self._time_records, worker_id, month)

    async def fetch_workers(self) -> list[Worker]:
        payload = await asyncio.to_thread(
            self._request, "GET", "parameter/list?types[0]=5&types[1]=4&situation=0",
        )
        workers = parse_workers(payload)
        logger.info("Fetched %d worker(s)", len(workers))
        return workers

    async def fetch_company_lookup(self) -> dict[str, str]:
        try:
            payload = await asyncio.to_thread(self._request, "GET", "parameter/list?types=1")
        except DataSourceError as e:
            logger.warning("Company names unavailable: %s", e)
            return {}
        return parse_company_lookup(payload)


class InMemoryDataSource:
    """Serves workers and raw records already held in memory.

    ``records`` maps a worker id to its raw hour records, or to a
    ``{"hours": [...], "note": [...]}`` mapping.
    """

    def __init__(
        self,
        workers: Iterable[Worker] = (),
        records: Optional[Mapping[str, Any]] = None,
        company_lookup: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.workers = list(workers)
        self.records = dict(records or {})
        self.company_lookup = dict(company_lookup or {})

    async def fetch_workers(self) -> list[Worker]:
        return list(self.workers)

    async def fetch_company_lookup(self) -> dict[str, str]:
        return dict(self.company_lookup)

    async def fetch_time_records(self, worker_id: str, month: date) -> RawRecords:
        raw = self.records.get(worker_id, [])
        if isinstance(raw, Mapping):
            return {
                HOURS_KIND: list(raw.get(HOURS_KIND, [])),
                NOTE_KIND: list(raw.get(NOTE_KIND, [])),
            }
        return {HOURS_KIND: list(raw), NOTE_KIND: []}


def parse_assignments(items: Iterable[Mapping], workers_by_id: Mapping[str, Worker]) -> list[Assignment]:
    """Assignments from plain dicts; manual hours are kept as typed text."""
    assignments = []
    for item in items:
        worker_id = str(item.get("workerId") or item.get("worker_id") or "")
        worker = workers_by_id.get(worker_id)
        assignments.append(Assignment(
            worker_id=worker_id,
            worker_name=item.get("workerName") or (worker.name if worker else worker_id),
            company_id=trim_to_none(item.get("companyId") or item.get("company_id")),
            company_name=item.get("companyName") or item.get("company_name") or "",
            hours={k: str(v) for k, v in (item.get("hours") or {}).items() if v is not None},
        ))
    return assignments


def assignments_from_contracts(
    workers: Iterable[Worker],
    company_lookup: Optional[Mapping[str, str]] = None,
) -> list[Assignment]:
    """One assignment per worker and contracted company, with no manual hours.

    Used when exporting straight from the remote API, which has no
    assignment list of its own. Contracts without any company are skipped.
    """
    company_lookup = company_lookup or {}
    assignments = []
    for worker in workers:
        for contract in worker.contracts:
            name = contract.company_name or company_lookup.get(contract.company_id or "")
            if not name and not contract.company_id:
                continue
            assignments.append(Assignment(
                worker_id=worker.id,
                worker_name=worker.name,
                company_id=contract.company_id,
                company_name=name or contract.company_id,
            ))
    return assignments
