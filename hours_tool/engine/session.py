"""Summary loading for the currently selected worker and month.

Each load is tagged with the (worker, month) it was issued for. A response
whose tag no longer matches the selection is dropped, so a slow answer for
an old selection can never overwrite the summaries of the current one.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Mapping, Optional

from hours_tool.engine.aggregator import fetch_worker_hours_summary
from hours_tool.engine.calendar_grid import month_start
from hours_tool.models import DayHoursSummary, MonthHoursSummary

if TYPE_CHECKING:
    from hours_tool.datasource import DataSource

logger = logging.getLogger(__name__)

SelectionTag = tuple[str, date]


class HoursSummarySession:
    def __init__(
        self,
        source: "DataSource",
        company_lookup: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.source = source
        self.company_lookup = dict(company_lookup or {})
        self.selection: Optional[SelectionTag] = None
        self.summary: Optional[MonthHoursSummary] = None

    @property
    def hours_by_date(self) -> dict[str, DayHoursSummary]:
        return self.summary.hours_by_date if self.summary else {}

    def select(self, worker_id: str, month: date) -> SelectionTag:
        """Make (worker, month) current; summaries of another pair are discarded."""
        tag = (worker_id, month_start(month))
        if tag != self.selection:
            self.summary = None
        self.selection = tag
        return tag

    async def load(self, worker_id: str, month: date) -> Optional[MonthHoursSummary]:
        """Select and fetch. Returns None when the result arrived stale.

        On a data-source failure the summaries reset to empty and the error
        propagates to the caller.
        """
        tag = self.select(worker_id, month)
        try:
            summary = await fetch_worker_hours_summary(
                self.source, worker_id, tag[1], self.company_lookup,
            )
        except Exception:
            if self.selection == tag:
                self.summary = None
            raise

        if self.selection != tag:
            logger.info(
                "Discarding stale summary for worker %s %s",
                worker_id, tag[1].strftime("%Y-%m"),
            )
            return None

        self.summary = summary
        return summary
