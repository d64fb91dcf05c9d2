"""Persistence layer for the host media library.

Public API:
- SqliteLibraryStore: SQLite-backed store for items, collections and membership

Example:
    from showbook.persistence import SqliteLibraryStore

    store = SqliteLibraryStore(Path("/data/showbook/library.db"))
    collection = store.get_collection_by_name("Phish Commerce City 2024")
"""

from .library_store import SqliteLibraryStore

__all__ = [
    "SqliteLibraryStore",
]
