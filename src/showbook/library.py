"""Host library abstraction used by collection management.

The collection manager only needs a handful of operations from the media
library that owns items and collections. They are described by the
:class:`LibraryBackend` protocol; :func:`open_library_backend` selects the
concrete adapter once, from configuration.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .config import LibrarySettings
    from .models import Collection, LibraryItem

LOGGER = logging.getLogger(__name__)


class LibraryStoreError(Exception):
    """The library backend failed to read or write."""


class CollectionExistsError(LibraryStoreError):
    """A collection with the requested name already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Collection already exists: {name}")
        self.name = name


@runtime_checkable
class LibraryBackend(Protocol):
    """Host library operations used for run collections.

    Collection names are matched and kept unique without regard to case.
    """

    def get_collection_by_name(self, name: str) -> Optional[Collection]: ...

    def create_collection(self, name: str, overview: Optional[str] = None, tags: Iterable[str] = ()) -> Collection: ...

    def add_member(self, collection_id: str, item_id: str) -> bool: ...

    def is_member(self, collection_id: str, item_id: str) -> bool: ...

    def list_members(self, collection_id: str) -> List[str]: ...

    def find_items_by_dates(self, dates: Iterable[dt.date]) -> List[LibraryItem]: ...

    def save_item(self, item: LibraryItem) -> LibraryItem: ...

    def get_item(self, item_id: str) -> Optional[LibraryItem]: ...


def open_library_backend(settings: LibrarySettings) -> LibraryBackend:
    """Create the configured library backend.

    Raises:
        ValueError: If the configured backend name is unknown.
    """
    backend = settings.backend.lower()
    if backend == "sqlite":
        from .persistence.library_store import SqliteLibraryStore

        LOGGER.debug("Opening SQLite library store at %s", settings.path)
        return SqliteLibraryStore(settings.path)
    raise ValueError(f"Unknown library backend: {settings.backend}")
