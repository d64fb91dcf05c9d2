from __future__ import annotations

import datetime as dt
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Dict, List, Optional

from .collection_manager import CollectionManager
from .config import AppConfig, ArtistConfig
from .library import open_library_backend
from .logging_utils import render_fields_block
from .parsers.setlist import parse_setlist
from .parsers.show_filename import ShowFilenameParser, ShowIdentification
from .phishnet import PhishNetAdapter, PhishNetClient, PhishNetTransportError
from .run_detection import RunDetector
from .show_metadata import (
    PROVIDER_SHOW,
    ShowMetadata,
    build_basic_metadata,
    build_catalog_metadata,
    build_placeholder_metadata,
)

if TYPE_CHECKING:
    import httpx

    from .models import LibraryItem, ShowDetails

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchResult:
    name: str
    premiere_date: dt.date
    year: int
    provider_ids: Dict[str, str] = field(default_factory=dict)


def _context_directory(path: Optional[str]) -> Optional[str]:
    if not path or not path.strip():
        return None
    return str(PurePosixPath(path.replace("\\", "/")).parent)


class ShowMetadataProvider:
    """Turns a media label into show metadata.

    Resolution degrades step by step: a label below the confidence threshold
    gets an actionable placeholder; without a catalog client, a date, a
    matching show, or a reachable service, the filename alone produces basic
    metadata. Only cancellation escapes :meth:`get_metadata`.
    """

    def __init__(
        self,
        artist: ArtistConfig | None = None,
        parser: ShowFilenameParser | None = None,
        client: PhishNetClient | None = None,
        run_detector: RunDetector | None = None,
        collection_manager: CollectionManager | None = None,
        *,
        confidence_threshold: float = 0.3,
        include_reviews: bool = True,
        max_reviews: int = 50,
        max_workers: int = 2,
    ) -> None:
        self.artist = artist or ArtistConfig()
        self.parser = parser or ShowFilenameParser(self.artist)
        self.client = client
        self.run_detector = run_detector
        self.collection_manager = collection_manager
        self.confidence_threshold = confidence_threshold
        self.include_reviews = include_reviews
        self.max_reviews = max_reviews if max_reviews > 0 else 50
        self.adapter = PhishNetAdapter()
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="showbook-collections")
            if collection_manager is not None
            else None
        )
        self._pending: List[Future] = []
        self._pending_lock = threading.Lock()

    def identify(self, label: Optional[str], path: Optional[str] = None) -> ShowIdentification:
        identification = self.parser.parse(label, _context_directory(path))
        LOGGER.debug(render_fields_block("Show Identification", identification.summary_fields(), pad_top=True))
        return identification

    def get_metadata(
        self,
        label: Optional[str],
        path: Optional[str] = None,
        item: Optional[LibraryItem] = None,
        cancel_event: threading.Event | None = None,
    ) -> ShowMetadata:
        """Build metadata for ``label``.

        When ``item`` is given it receives the metadata, and a show that is
        part of a multi-night run schedules collection processing for it in
        the background.

        Raises:
            OperationCancelledError: If ``cancel_event`` is set during a catalog call.
        """
        identification = self.identify(label, path)
        if identification.confidence < self.confidence_threshold:
            LOGGER.info("Low confidence parse result for %s, using placeholder", label)
            metadata = build_placeholder_metadata(identification, self.artist, label, self.confidence_threshold)
            return self._finish(metadata, item)

        if self.client is None or identification.date is None:
            if self.client is None:
                LOGGER.info("API client not available, using basic metadata for %s", label)
            return self._finish(build_basic_metadata(identification, self.artist, label), item)

        try:
            return self._catalog_metadata(identification, label, item, cancel_event)
        except PhishNetTransportError as exc:
            LOGGER.warning("Catalog unreachable for %s, using basic metadata: %s", label, exc)
            return self._finish(build_basic_metadata(identification, self.artist, label), item)

    def _catalog_metadata(
        self,
        identification: ShowIdentification,
        label: Optional[str],
        item: Optional[LibraryItem],
        cancel_event: threading.Event | None,
    ) -> ShowMetadata:
        client = self.client
        date = identification.date
        if client is None or date is None:
            return self._finish(build_basic_metadata(identification, self.artist, label), item)
        shows = client.get_shows(date, cancel_event=cancel_event)
        if not shows:
            LOGGER.info("No show data found for %s", date.isoformat())
            return self._finish(build_basic_metadata(identification, self.artist, label), item)
        show = self.adapter.to_show(shows[0], fallback_date=date)

        setlist_record = client.get_setlist(show.date, cancel_event=cancel_event)
        setlist = parse_setlist(setlist_record.setlist_data if setlist_record else show.setlist_data)

        venue = None
        if show.venue_id:
            venue_record = client.get_venue(show.venue_id, cancel_event=cancel_event)
            venue = self.adapter.to_venue(venue_record) if venue_record else None

        average_rating = None
        if self.include_reviews:
            try:
                reviews = client.get_reviews(show.date, self.max_reviews, cancel_event=cancel_event)
            except PhishNetTransportError as exc:
                LOGGER.error("Failed to fetch reviews for %s: %s", show.date.isoformat(), exc)
                reviews = []
            average_rating = self.adapter.average_rating(reviews)
            LOGGER.debug("Fetched %d review(s) for %s", len(reviews), show.date.isoformat())

        run = self.run_detector.detect_run(show, show.date, cancel_event=cancel_event) if self.run_detector else None

        metadata = build_catalog_metadata(
            identification,
            show,
            self.artist,
            setlist=setlist,
            venue=venue,
            run=run,
            average_rating=average_rating,
        )
        LOGGER.info(
            render_fields_block(
                "Resolved Show",
                {
                    "Label": label,
                    "Title": metadata.name,
                    "Venue": venue.name if venue else show.venue,
                    "Songs": setlist.total_songs,
                    "Run": f"night {run.position} of {run.total_nights}" if run and run.is_part_of_run else None,
                },
                pad_top=True,
                skip_empty=True,
            )
        )
        self._finish(metadata, item)

        if run is not None and run.is_part_of_run and item is not None:
            city = (venue.city if venue and venue.city else None) or show.city
            if city:
                self._schedule_collection(item, city, show, run.dates)
        return metadata

    def _finish(self, metadata: ShowMetadata, item: Optional[LibraryItem]) -> ShowMetadata:
        if item is not None:
            metadata.apply_to(item)
        return metadata

    def _schedule_collection(self, item: LibraryItem, city: str, show: ShowDetails, run_dates: List[dt.date]) -> None:
        if self._executor is None or self.collection_manager is None:
            return
        future = self._executor.submit(self._process_collection, item, city, show.date.year, list(run_dates))
        with self._pending_lock:
            self._pending = [pending for pending in self._pending if not pending.done()]
            self._pending.append(future)

    def _process_collection(self, item: LibraryItem, city: str, year: int, run_dates: List[dt.date]) -> None:
        if self.collection_manager is None:
            return
        try:
            self.collection_manager.process_run(item, city, year, run_dates)
        except Exception:  # noqa: BLE001 - background work must not die silently
            LOGGER.exception("Collection processing failed for %s", item.name)

    def wait_for_background(self, timeout: float | None = None) -> None:
        """Block until scheduled collection work has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def search(
        self,
        label: Optional[str],
        path: Optional[str] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[SearchResult]:
        identification = self.identify(label, path)
        if identification.confidence < self.confidence_threshold or identification.date is None:
            return []
        if self.client is None:
            return []
        try:
            shows = self.client.get_shows(identification.date, cancel_event=cancel_event)
        except PhishNetTransportError as exc:
            LOGGER.error("Error searching for shows with query %s: %s", label, exc)
            return []

        results: List[SearchResult] = []
        for record in shows:
            show_date = record.show_date or identification.date
            name = f"{self.artist.name} - {show_date.isoformat()}"
            if record.city:
                name += f" - {record.city}"
                if record.state:
                    name += f", {record.state}"
            results.append(
                SearchResult(
                    name=name,
                    premiere_date=show_date,
                    year=show_date.year,
                    provider_ids={PROVIDER_SHOW: show_date.isoformat()},
                )
            )
        return results

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        if self.client is not None:
            self.client.close()

    def __enter__(self) -> ShowMetadataProvider:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def build_provider(
    config: AppConfig,
    *,
    verify_connection: bool = True,
    http_client: httpx.Client | None = None,
) -> ShowMetadataProvider:
    """Wire a provider from configuration.

    A missing API key or a failed connection test leaves the provider in
    filename-only mode rather than failing.
    """
    settings = config.settings
    artist = settings.artist

    client: PhishNetClient | None = None
    if settings.phishnet.api_key:
        client = PhishNetClient(
            settings.phishnet.api_key,
            base_url=settings.phishnet.base_url,
            artist_slug=artist.slug,
            artist_name=artist.name,
            founding_year=artist.founding_year,
            timeout=settings.phishnet.timeout,
            min_interval=settings.phishnet.min_interval,
            http_client=http_client,
        )
        if verify_connection and not client.test_connection():
            LOGGER.warning("Failed to connect to Phish.net API; using filename metadata only")
            client.close()
            client = None
    else:
        LOGGER.warning("Phish.net API key not configured; using filename metadata only")

    run_detector = RunDetector(client, settings.metadata.run_window_days) if client is not None else None

    collection_manager = None
    if settings.collections.enabled:
        collection_manager = CollectionManager(open_library_backend(settings.library), artist)

    return ShowMetadataProvider(
        artist,
        ShowFilenameParser(artist),
        client,
        run_detector,
        collection_manager,
        confidence_threshold=settings.parser.confidence_threshold,
        include_reviews=settings.metadata.include_reviews,
        max_reviews=settings.metadata.max_reviews,
        max_workers=settings.collections.max_workers,
    )
