"""Deferred collection membership driven by library item events.

Metadata is usually produced before the host library has assigned the item
an identity, so collection membership computed at that time cannot be
written. The metadata step therefore stores run hints on the item's
provider ids; when the library later reports the item as added or updated,
:class:`CollectionEventConsumer` re-attempts membership from those hints
without re-parsing or re-querying anything.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass, field
from queue import Empty, Queue
from typing import TYPE_CHECKING, Dict, List, Literal, Optional

from .config import ArtistConfig
from .utils import coerce_date

if TYPE_CHECKING:
    from .collection_manager import CollectionManager
    from .models import Collection, LibraryItem

LOGGER = logging.getLogger(__name__)

PROVIDER_CITY = "ShowbookCollectionCity"
PROVIDER_YEAR = "ShowbookCollectionYear"
PROVIDER_DAY_NUMBER = "ShowbookCollectionDayNumber"
PROVIDER_DATE = "ShowbookCollectionDate"
PROVIDER_RUN_DATES = "ShowbookRunDates"
PROVIDER_RUN_TOTAL = "ShowbookRunTotal"

DEFAULT_RUN_TOTAL = 2

EventKind = Literal["added", "updated"]


@dataclass(slots=True)
class RunHints:
    """Run placement stored on an item so membership can be retried later."""

    city: str
    year: int
    day_number: int
    show_date: dt.date
    total_nights: int = DEFAULT_RUN_TOTAL
    run_dates: List[dt.date] = field(default_factory=list)

    def to_provider_ids(self) -> Dict[str, str]:
        return {
            PROVIDER_CITY: self.city,
            PROVIDER_YEAR: str(self.year),
            PROVIDER_DAY_NUMBER: str(self.day_number),
            PROVIDER_DATE: self.show_date.isoformat(),
            PROVIDER_RUN_TOTAL: str(self.total_nights),
            PROVIDER_RUN_DATES: ",".join(value.isoformat() for value in self.run_dates),
        }

    @classmethod
    def from_provider_ids(cls, provider_ids: Dict[str, str]) -> Optional["RunHints"]:
        """Read hints back; None when they are absent or unusable.

        Missing run dates are rebuilt around the show date from the day
        number and the run total.
        """
        city = (provider_ids.get(PROVIDER_CITY) or "").strip()
        year_raw = provider_ids.get(PROVIDER_YEAR)
        day_raw = provider_ids.get(PROVIDER_DAY_NUMBER)
        if not city or not year_raw or not day_raw:
            return None

        try:
            year = int(year_raw)
            day_number = int(day_raw)
            total = int(provider_ids.get(PROVIDER_RUN_TOTAL) or DEFAULT_RUN_TOTAL)
        except ValueError:
            LOGGER.warning("Invalid collection hints: year=%r day=%r", year_raw, day_raw)
            return None
        show_date = coerce_date(provider_ids.get(PROVIDER_DATE))
        if show_date is None or day_number < 1:
            LOGGER.warning("Invalid collection hints: date=%r day=%r", provider_ids.get(PROVIDER_DATE), day_raw)
            return None

        run_dates = [
            parsed
            for parsed in (coerce_date(part) for part in (provider_ids.get(PROVIDER_RUN_DATES) or "").split(","))
            if parsed is not None
        ]
        total = max(total, day_number)
        if not run_dates:
            first_night = show_date - dt.timedelta(days=day_number - 1)
            run_dates = [first_night + dt.timedelta(days=offset) for offset in range(total)]

        return cls(
            city=city,
            year=year,
            day_number=day_number,
            show_date=show_date,
            total_nights=total,
            run_dates=run_dates,
        )


@dataclass(slots=True)
class ItemEvent:
    kind: EventKind
    item: LibraryItem

    def __post_init__(self) -> None:
        if self.kind not in ("added", "updated"):
            raise ValueError(f"Unknown item event kind: {self.kind}")


def looks_like_artist_item(item: LibraryItem, artist: ArtistConfig) -> bool:
    name = (item.name or "").lower()
    path = (item.path or "").lower()
    artist_name = artist.name.lower()
    return (
        artist_name in name
        or artist_name in path
        or name.startswith(artist.filename_prefix.lower())
        or "Concert" in (item.genres or [])
    )


class CollectionEventConsumer:
    """Consumes item events from a queue and retries run collection membership."""

    def __init__(self, manager: CollectionManager, artist: ArtistConfig | None = None) -> None:
        self.manager = manager
        self.artist = artist or ArtistConfig()
        self._queue: Queue[ItemEvent] = Queue()
        self._stop = threading.Event()
        self._worker: threading.Thread | None = None

    def submit(self, event: ItemEvent) -> None:
        self._queue.put(event)

    def handle(self, event: ItemEvent) -> Optional[Collection]:
        item = event.item
        if not item.has_identity:
            LOGGER.debug("Skipping collection processing for %s; no identity yet", item.name)
            return None
        if event.kind == "updated" and not looks_like_artist_item(item, self.artist):
            return None

        hints = RunHints.from_provider_ids(item.provider_ids)
        if hints is None:
            LOGGER.debug("Item %s has no collection hints; skipping", item.name)
            return None

        LOGGER.info(
            "Processing collection for %s (ID: %s): %s %d night %d",
            item.name,
            item.item_id,
            hints.city,
            hints.year,
            hints.day_number,
        )
        return self.manager.process_run(item, hints.city, hints.year, hints.run_dates)

    def _handle_guarded(self, event: ItemEvent) -> None:
        try:
            self.handle(event)
        except Exception:  # noqa: BLE001 - one bad event must not stop the consumer
            LOGGER.exception("Error processing %s event for %s", event.kind, event.item.name)

    def drain(self) -> int:
        """Process every queued event on the calling thread; returns how many ran."""
        processed = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except Empty:
                break
            self._handle_guarded(event)
            self._queue.task_done()
            processed += 1
        return processed

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._run, name="showbook-collection-events", daemon=True)
        self._worker.start()
        LOGGER.debug("Collection event consumer started")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None
        LOGGER.debug("Collection event consumer stopped")

    def join(self) -> None:
        """Block until every submitted event has been processed."""
        self._queue.join()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self._queue.get(timeout=0.5)
            except Empty:
                continue
            self._handle_guarded(event)
            self._queue.task_done()
