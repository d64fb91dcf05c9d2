from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, List, Optional

from .phishnet.client import OperationCancelledError

if TYPE_CHECKING:
    from .models import ShowDetails
    from .phishnet.client import PhishNetClient

LOGGER = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7


@dataclass(slots=True)
class RunInfo:
    """Where a show sits inside a multi-night run at one venue."""

    is_part_of_run: bool = False
    position: int = 1
    total_nights: int = 1
    dates: List[dt.date] = field(default_factory=list)

    @property
    def night_indicator(self) -> str:
        return f"N{self.position}" if self.is_part_of_run else ""

    @classmethod
    def single(cls, date: Optional[dt.date] = None) -> "RunInfo":
        return cls(dates=[date] if date else [])


def find_consecutive_runs(dates: Iterable[dt.date]) -> List[List[dt.date]]:
    """Partition dates into maximal runs of consecutive calendar days.

    Dates are sorted and de-duplicated first; any gap other than exactly one
    day starts a new run.
    """
    ordered = sorted(set(dates))
    runs: List[List[dt.date]] = []
    for current in ordered:
        if runs and (current - runs[-1][-1]).days == 1:
            runs[-1].append(current)
        else:
            runs.append([current])
    return runs


class RunDetector:
    """Best-effort detection of multi-night runs from the catalog.

    Every failure except cancellation degrades to :meth:`RunInfo.single`.
    """

    def __init__(self, client: PhishNetClient, window_days: int = DEFAULT_WINDOW_DAYS) -> None:
        self.client = client
        self.window_days = window_days

    def detect_run(
        self,
        show: ShowDetails,
        date: dt.date,
        *,
        cancel_event: threading.Event | None = None,
    ) -> RunInfo:
        if not show.venue_id:
            LOGGER.debug("Show on %s has no venue id; skipping run detection", date.isoformat())
            return RunInfo.single(date)

        window = dt.timedelta(days=self.window_days)
        try:
            nearby = self.client.get_shows_in_range(date - window, date + window, cancel_event=cancel_event)
        except OperationCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - run detection is optional enrichment
            LOGGER.warning("Failed to detect run info for %s: %s", date.isoformat(), exc)
            return RunInfo.single(date)

        venue_dates = [
            record.show_date for record in nearby if record.venue_id == show.venue_id and record.show_date is not None
        ]
        info = self._locate(date, venue_dates)
        LOGGER.debug(
            "Run detection for %s: %s, night %d of %d",
            date.isoformat(),
            info.is_part_of_run,
            info.position,
            info.total_nights,
        )
        return info

    @staticmethod
    def _locate(date: dt.date, venue_dates: List[dt.date]) -> RunInfo:
        for run in find_consecutive_runs(venue_dates):
            if date in run:
                return RunInfo(
                    is_part_of_run=len(run) > 1,
                    position=run.index(date) + 1,
                    total_nights=len(run),
                    dates=run,
                )
        return RunInfo.single(date)
