"""SQLite-backed library store for items and collections.

This module provides a concrete host library for collection management: items
with an identity assigned on save, uniquely named collections, and
collection membership.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from ..library import CollectionExistsError, LibraryStoreError
from ..models import Collection, LibraryItem

if TYPE_CHECKING:
    from collections.abc import Iterator


def _adapt_datetime(value: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return value.isoformat()


def _convert_datetime(data: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return datetime.fromisoformat(data.decode("utf-8"))


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("TIMESTAMP", _convert_datetime)


def _casefold_collation(left: str, right: str) -> int:
    """Order strings ignoring case, including non-ASCII letters."""
    left, right = left.casefold(), right.casefold()
    return (left > right) - (left < right)


class SqliteLibraryStore:
    """SQLite-backed store for library items and their collections.

    Collection names are unique regardless of case, so two writers racing to
    create the same collection see :class:`CollectionExistsError` instead of a
    duplicate.
    Membership is keyed on ``(collection_id, item_id)`` and adding an
    existing member is a no-op.

    The database uses WAL mode and one connection per thread.

    Example:
        store = SqliteLibraryStore(Path("/data/showbook/library.db"))
        item = store.save_item(LibraryItem(item_id=None, name="Phish Commerce City 8-30-2024"))
        collection = store.create_collection("Phish Commerce City 2024")
        store.add_member(collection.collection_id, item.item_id)
    """

    SCHEMA_VERSION = 2

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._local = threading.local()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection for the current thread."""
        if not hasattr(self._local, "connection") or self._local.connection is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._local.connection = sqlite3.connect(
                self._db_path,
                detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            )
            self._local.connection.create_collation("CASEFOLD", _casefold_collation)
            self._local.connection.execute("PRAGMA journal_mode=WAL")
            self._local.connection.execute("PRAGMA foreign_keys=ON")
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise LibraryStoreError(f"Failed to {action}: {exc}") from exc

    def _init_db(self) -> None:
        with self._translate_errors("initialize library database"):
            conn = self._get_connection()
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            current_version = row["version"] if row else 0
            if current_version < self.SCHEMA_VERSION:
                self._migrate_schema(current_version)

    def _migrate_schema(self, from_version: int) -> None:
        conn = self._get_connection()

        if from_version < 1:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    item_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    path TEXT,
                    premiere_date TEXT,
                    overview TEXT,
                    genres TEXT NOT NULL DEFAULT '[]',
                    tags TEXT NOT NULL DEFAULT '[]',
                    provider_ids TEXT NOT NULL DEFAULT '{}',
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_items_premiere_date
                ON items(premiere_date)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS collections (
                    collection_id TEXT PRIMARY KEY,
                    name TEXT UNIQUE NOT NULL,
                    overview TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS collection_members (
                    collection_id TEXT NOT NULL REFERENCES collections(collection_id) ON DELETE CASCADE,
                    item_id TEXT NOT NULL,
                    added_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (collection_id, item_id)
                )
            """)

        if from_version < 2:
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_collections_name_casefold
                ON collections(name COLLATE CASEFOLD)
            """)

        conn.execute("DELETE FROM schema_version")
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,))
        conn.commit()

    def close(self) -> None:
        """Close the database connection for the current thread."""
        if hasattr(self._local, "connection") and self._local.connection is not None:
            self._local.connection.close()
            self._local.connection = None

    # ------------------------------------------------------------------ items

    def _row_to_item(self, row: sqlite3.Row) -> LibraryItem:
        premiere = row["premiere_date"]
        return LibraryItem(
            item_id=row["item_id"],
            name=row["name"],
            path=row["path"],
            premiere_date=date.fromisoformat(premiere) if premiere else None,
            overview=row["overview"],
            genres=json.loads(row["genres"]),
            tags=json.loads(row["tags"]),
            provider_ids=json.loads(row["provider_ids"]),
        )

    def save_item(self, item: LibraryItem) -> LibraryItem:
        """Insert or update an item, assigning an identity when it has none."""
        if not item.has_identity:
            item.item_id = uuid.uuid4().hex
        with self._translate_errors(f"save item {item.item_id}"):
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO items (
                    item_id, name, path, premiere_date, overview,
                    genres, tags, provider_ids, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(item_id) DO UPDATE SET
                    name = excluded.name,
                    path = excluded.path,
                    premiere_date = excluded.premiere_date,
                    overview = excluded.overview,
                    genres = excluded.genres,
                    tags = excluded.tags,
                    provider_ids = excluded.provider_ids,
                    updated_at = excluded.updated_at
                """,
                (
                    item.item_id,
                    item.name,
                    item.path,
                    item.premiere_date.isoformat() if item.premiere_date else None,
                    item.overview,
                    json.dumps(list(item.genres)),
                    json.dumps(list(item.tags)),
                    json.dumps(dict(item.provider_ids)),
                    datetime.now(),
                ),
            )
            conn.commit()
        return item

    def get_item(self, item_id: str) -> LibraryItem | None:
        with self._translate_errors(f"load item {item_id}"):
            row = self._get_connection().execute("SELECT * FROM items WHERE item_id = ?", (item_id,)).fetchone()
        return self._row_to_item(row) if row else None

    def find_items_by_dates(self, dates: Iterable[date]) -> list[LibraryItem]:
        """Return items whose premiere date is one of ``dates``, oldest first."""
        keys = sorted({value.isoformat() for value in dates})
        if not keys:
            return []
        placeholders = ", ".join("?" for _ in keys)
        with self._translate_errors("search items by date"):
            cursor = self._get_connection().execute(
                f"SELECT * FROM items WHERE premiere_date IN ({placeholders}) ORDER BY premiere_date, name",
                keys,
            )
            return [self._row_to_item(row) for row in cursor]

    # ------------------------------------------------------------ collections

    def _row_to_collection(self, row: sqlite3.Row) -> Collection:
        return Collection(
            collection_id=row["collection_id"],
            name=row["name"],
            overview=row["overview"],
            tags=json.loads(row["tags"]),
            created_at=row["created_at"],
        )

    def get_collection_by_name(self, name: str) -> Collection | None:
        with self._translate_errors(f"look up collection {name!r}"):
            row = (
                self._get_connection()
                .execute("SELECT * FROM collections WHERE name = ? COLLATE CASEFOLD", (name,))
                .fetchone()
            )
        return self._row_to_collection(row) if row else None

    def create_collection(self, name: str, overview: str | None = None, tags: Iterable[str] = ()) -> Collection:
        """Create a collection.

        Raises:
            CollectionExistsError: If a collection with ``name`` already exists.
            LibraryStoreError: On any other database failure.
        """
        collection = Collection(
            collection_id=uuid.uuid4().hex,
            name=name,
            overview=overview,
            tags=list(tags),
            created_at=datetime.now(),
        )
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO collections (collection_id, name, overview, tags, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    collection.collection_id,
                    collection.name,
                    collection.overview,
                    json.dumps(collection.tags),
                    collection.created_at,
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise CollectionExistsError(name) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise LibraryStoreError(f"Failed to create collection {name!r}: {exc}") from exc
        return collection

    def list_collections(self) -> list[Collection]:
        with self._translate_errors("list collections"):
            cursor = self._get_connection().execute("SELECT * FROM collections ORDER BY name")
            return [self._row_to_collection(row) for row in cursor]

    # ------------------------------------------------------------- membership

    def add_member(self, collection_id: str, item_id: str) -> bool:
        """Add an item to a collection; returns False when it was already a member."""
        with self._translate_errors(f"add {item_id} to collection {collection_id}"):
            conn = self._get_connection()
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO collection_members (collection_id, item_id, added_at)
                VALUES (?, ?, ?)
                """,
                (collection_id, item_id, datetime.now()),
            )
            conn.commit()
            return cursor.rowcount == 1

    def is_member(self, collection_id: str, item_id: str) -> bool:
        with self._translate_errors(f"check membership of {item_id}"):
            row = (
                self._get_connection()
                .execute(
                    "SELECT 1 FROM collection_members WHERE collection_id = ? AND item_id = ?",
                    (collection_id, item_id),
                )
                .fetchone()
            )
        return row is not None

    def list_members(self, collection_id: str) -> list[str]:
        with self._translate_errors(f"list members of {collection_id}"):
            cursor = self._get_connection().execute(
                "SELECT item_id FROM collection_members WHERE collection_id = ? ORDER BY added_at, item_id",
                (collection_id,),
            )
            return [row["item_id"] for row in cursor]
