from __future__ import annotations

import datetime as dt
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .config import ArtistConfig
from .library import CollectionExistsError, LibraryBackend, LibraryStoreError
from .models import Collection, LibraryItem
from .utils import contains_casefold

LOGGER = logging.getLogger(__name__)

RUN_TAG = "Multi-Night Run"


class CollectionManager:
    """Groups the items of a multi-night run into one named collection.

    Collections are named deterministically from the run's location and year,
    so repeated or concurrent calls converge on the same collection. Within a
    process, find-or-create is serialized per ``(location, year)``. Across
    processes the library's unique name constraint rejects the second create
    and the loser re-resolves the winner's collection.
    """

    def __init__(self, backend: LibraryBackend, artist: ArtistConfig | None = None) -> None:
        self.backend = backend
        self.artist = artist or ArtistConfig()
        # key -> (lock, number of callers holding or waiting on it)
        self._locks: Dict[Tuple[str, int], Tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    def collection_name(self, location: str, year: int) -> str:
        return f"{self.artist.name} {location.strip()} {year}"

    @staticmethod
    def run_key(location: str, year: int) -> Tuple[str, int]:
        """Identity of a run collection; locations differing only in case share one."""
        return location.strip().casefold(), int(year)

    @contextmanager
    def _run_lock(self, location: str, year: int) -> Iterator[None]:
        key = self.run_key(location, year)
        with self._locks_guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                _, users = self._locks[key]
                if users == 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def find_existing(self, location: str, year: int) -> Optional[Collection]:
        name = self.collection_name(location, year)
        LOGGER.debug("Looking for existing collection: %s", name)
        try:
            collection = self.backend.get_collection_by_name(name)
        except LibraryStoreError as exc:
            LOGGER.error("Failed to look up collection %s: %s", name, exc)
            return None
        if collection is not None:
            LOGGER.info("Found existing collection: %s (ID: %s)", collection.name, collection.collection_id)
        return collection

    def create(self, location: str, year: int) -> Collection:
        """Create the run collection; callers check :meth:`find_existing` first.

        Raises:
            CollectionExistsError: If another writer created it in the meantime.
            LibraryStoreError: On any other store failure.
        """
        name = self.collection_name(location, year)
        LOGGER.info("Creating new collection: %s", name)
        collection = self.backend.create_collection(
            name,
            overview=f"Multi-night {self.artist.name} run in {location.strip()} during {year}",
            tags=[self.artist.name, RUN_TAG, location.strip(), str(year)],
        )
        LOGGER.info("Successfully created collection: %s (ID: %s)", collection.name, collection.collection_id)
        return collection

    def add_member(self, collection: Collection, item: LibraryItem) -> bool:
        """Add ``item`` to ``collection``.

        Returns False without touching the store when the item has not been
        persisted yet, and False when it is already a member.
        """
        if not item.has_identity:
            LOGGER.debug("Item %s has no identity yet; deferring collection membership", item.name)
            return False
        try:
            if self.backend.is_member(collection.collection_id, item.item_id):
                LOGGER.debug("Item %s already in collection %s", item.name, collection.name)
                return False
            added = self.backend.add_member(collection.collection_id, item.item_id)
        except LibraryStoreError as exc:
            LOGGER.error("Failed to add %s to collection %s: %s", item.name, collection.name, exc)
            return False
        if added:
            LOGGER.info("Added %s to collection %s", item.name, collection.name)
        return added

    def find_run_siblings(self, item: LibraryItem, location: str, run_dates: Iterable[dt.date]) -> List[LibraryItem]:
        """Other library items dated inside the run whose name or overview mentions the location."""
        dates = list(run_dates)
        LOGGER.debug("Looking for other items from the %s run with %d dates", location, len(dates))
        siblings = []
        for candidate in self.backend.find_items_by_dates(dates):
            if item.has_identity and candidate.item_id == item.item_id:
                continue
            if contains_casefold(candidate.name, location) or contains_casefold(candidate.overview, location):
                LOGGER.debug("Found matching item: %s (%s)", candidate.name, candidate.premiere_date)
                siblings.append(candidate)
        return siblings

    def _create_or_resolve(self, location: str, year: int) -> Collection:
        try:
            return self.create(location, year)
        except CollectionExistsError:
            name = self.collection_name(location, year)
            LOGGER.info("Collection %s was created concurrently; reusing it", name)
            collection = self.backend.get_collection_by_name(name)
            if collection is None:
                raise LibraryStoreError(f"Collection {name} reported as existing but could not be loaded") from None
            return collection

    def process_run(
        self,
        item: LibraryItem,
        location: str,
        year: int,
        run_dates: Iterable[dt.date],
    ) -> Optional[Collection]:
        """Place ``item`` into its run collection, creating it once a second show is present.

        Returns the collection the item now belongs to, or None when no
        collection exists yet or the store failed (the event path retries).
        """
        if not location or not location.strip():
            raise ValueError("Run location must not be blank")

        LOGGER.info("Processing collection for %s in %s %s run", item.name, location, year)
        try:
            with self._run_lock(location, year):
                existing = self.find_existing(location, year)
                if existing is not None:
                    self.add_member(existing, item)
                    return existing

                siblings = self.find_run_siblings(item, location, run_dates)
                if not siblings:
                    LOGGER.debug("Only one item found for %s %s run; no collection needed yet", location, year)
                    return None

                LOGGER.info("Creating collection for %s %s with %d items", location, year, len(siblings) + 1)
                collection = self._create_or_resolve(location, year)
                self.add_member(collection, item)
                for sibling in siblings:
                    self.add_member(collection, sibling)
                return collection
        except LibraryStoreError as exc:
            LOGGER.error("Error processing multi-night run collection for %s: %s", item.name, exc)
            return None
