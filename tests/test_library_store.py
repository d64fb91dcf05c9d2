"""Tests for the SQLite library store."""

from __future__ import annotations

import datetime as dt
import sqlite3

import pytest

from showbook.config import LibrarySettings
from showbook.library import CollectionExistsError, LibraryBackend, open_library_backend
from showbook.models import LibraryItem
from showbook.persistence import SqliteLibraryStore


@pytest.fixture
def store(tmp_path) -> SqliteLibraryStore:
    store = SqliteLibraryStore(tmp_path / "library.db")
    yield store
    store.close()


def make_item(name: str, date: dt.date | None = None, item_id: str | None = None) -> LibraryItem:
    return LibraryItem(item_id=item_id, name=name, premiere_date=date)


class TestSchema:
    def test_creates_database_and_tables(self, tmp_path) -> None:
        db_path = tmp_path / "nested" / "library.db"
        store = SqliteLibraryStore(db_path)
        store.close()

        conn = sqlite3.connect(db_path)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
            version = conn.execute("SELECT version FROM schema_version").fetchone()[0]
        finally:
            conn.close()

        assert {"items", "collections", "collection_members", "schema_version"} <= tables
        assert version == SqliteLibraryStore.SCHEMA_VERSION

    def test_upgrade_adds_case_insensitive_name_index(self, tmp_path) -> None:
        db_path = tmp_path / "library.db"
        SqliteLibraryStore(db_path).close()
        conn = sqlite3.connect(db_path)
        try:
            conn.execute("DROP INDEX idx_collections_name_casefold")
            conn.execute("UPDATE schema_version SET version = 1")
            conn.commit()
        finally:
            conn.close()

        store = SqliteLibraryStore(db_path)
        try:
            store.create_collection("Phish Commerce City 2024")
            with pytest.raises(CollectionExistsError):
                store.create_collection("phish commerce city 2024")
        finally:
            store.close()

    def test_reopening_keeps_data(self, tmp_path) -> None:
        db_path = tmp_path / "library.db"
        first = SqliteLibraryStore(db_path)
        first.create_collection("Phish Commerce City 2024")
        first.close()

        second = SqliteLibraryStore(db_path)
        try:
            assert second.get_collection_by_name("Phish Commerce City 2024") is not None
        finally:
            second.close()


class TestItems:
    def test_save_assigns_identity(self, store) -> None:
        item = make_item("Phish Commerce City 8-30-2024", dt.date(2024, 8, 30))
        assert item.has_identity is False

        saved = store.save_item(item)

        assert saved.has_identity is True
        assert saved is item

    def test_round_trip(self, store) -> None:
        item = make_item("Phish Commerce City 8-30-2024", dt.date(2024, 8, 30), item_id="abc")
        item.tags = ["Phish", "Concert"]
        item.provider_ids = {"PhishNet": "2024-08-30"}
        store.save_item(item)

        loaded = store.get_item("abc")

        assert loaded == item

    def test_save_updates_existing_item(self, store) -> None:
        item = store.save_item(make_item("ph2024-08-30.mkv"))
        item.name = "Phish Commerce City 8-30-2024"
        store.save_item(item)

        assert store.get_item(item.item_id).name == "Phish Commerce City 8-30-2024"

    def test_missing_item(self, store) -> None:
        assert store.get_item("missing") is None

    def test_find_items_by_dates(self, store) -> None:
        store.save_item(make_item("Night 2", dt.date(2024, 8, 31)))
        store.save_item(make_item("Night 1", dt.date(2024, 8, 30)))
        store.save_item(make_item("Other show", dt.date(2024, 7, 4)))
        store.save_item(make_item("Undated"))

        found = store.find_items_by_dates([dt.date(2024, 8, 30), dt.date(2024, 8, 31), dt.date(2024, 9, 1)])

        assert [item.name for item in found] == ["Night 1", "Night 2"]
        assert store.find_items_by_dates([]) == []


class TestCollections:
    def test_create_and_look_up(self, store) -> None:
        created = store.create_collection("Phish Commerce City 2024", overview="Run", tags=["Phish", "2024"])

        loaded = store.get_collection_by_name("Phish Commerce City 2024")

        assert loaded is not None
        assert loaded.collection_id == created.collection_id
        assert loaded.overview == "Run"
        assert loaded.tags == ["Phish", "2024"]
        assert isinstance(loaded.created_at, dt.datetime)

    def test_duplicate_name_rejected(self, store) -> None:
        store.create_collection("Phish Commerce City 2024")

        with pytest.raises(CollectionExistsError) as excinfo:
            store.create_collection("Phish Commerce City 2024")

        assert excinfo.value.name == "Phish Commerce City 2024"
        assert len(store.list_collections()) == 1

    def test_look_up_ignores_case(self, store) -> None:
        created = store.create_collection("Phish Montréal 2024")

        loaded = store.get_collection_by_name("PHISH MONTRÉAL 2024")

        assert loaded is not None
        assert loaded.collection_id == created.collection_id
        assert loaded.name == "Phish Montréal 2024"

    def test_name_differing_only_in_case_rejected(self, store) -> None:
        store.create_collection("Phish Commerce City 2024")

        with pytest.raises(CollectionExistsError):
            store.create_collection("Phish COMMERCE CITY 2024")

        assert [collection.name for collection in store.list_collections()] == ["Phish Commerce City 2024"]

    def test_unknown_name(self, store) -> None:
        assert store.get_collection_by_name("Phish Nowhere 1999") is None


class TestMembership:
    def test_add_is_idempotent(self, store) -> None:
        collection = store.create_collection("Phish Commerce City 2024")

        assert store.add_member(collection.collection_id, "item-1") is True
        assert store.add_member(collection.collection_id, "item-1") is False
        assert store.is_member(collection.collection_id, "item-1") is True
        assert store.list_members(collection.collection_id) == ["item-1"]

    def test_non_member(self, store) -> None:
        collection = store.create_collection("Phish Commerce City 2024")

        assert store.is_member(collection.collection_id, "item-2") is False
        assert store.list_members(collection.collection_id) == []


class TestBackendSelection:
    def test_sqlite_backend(self, tmp_path) -> None:
        backend = open_library_backend(LibrarySettings(backend="sqlite", path=tmp_path / "library.db"))

        assert isinstance(backend, SqliteLibraryStore)
        assert isinstance(backend, LibraryBackend)
        backend.close()

    def test_unknown_backend(self, tmp_path) -> None:
        with pytest.raises(ValueError):
            open_library_backend(LibrarySettings(backend="jellyfin", path=tmp_path / "library.db"))
