"""Tests for multi-night run collection management."""

from __future__ import annotations

import datetime as dt
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from showbook.collection_manager import RUN_TAG, CollectionManager
from showbook.library import CollectionExistsError, LibraryStoreError
from showbook.models import Collection, LibraryItem
from showbook.persistence import SqliteLibraryStore

RUN_DATES = [dt.date(2024, 8, 30), dt.date(2024, 8, 31), dt.date(2024, 9, 1)]


@pytest.fixture
def store(tmp_path) -> SqliteLibraryStore:
    store = SqliteLibraryStore(tmp_path / "library.db")
    yield store
    store.close()


@pytest.fixture
def manager(store) -> CollectionManager:
    return CollectionManager(store)


def night(store: SqliteLibraryStore, date: dt.date, city: str = "Commerce City") -> LibraryItem:
    item = LibraryItem(item_id=None, name=f"Phish {city} {date.month}-{date.day}-{date.year}", premiere_date=date)
    return store.save_item(item)


class TestNaming:
    def test_collection_name(self, manager) -> None:
        assert manager.collection_name("Commerce City", 2024) == "Phish Commerce City 2024"
        assert manager.collection_name("  New York ", 2023) == "Phish New York 2023"

    def test_run_key_ignores_case_and_whitespace(self) -> None:
        assert CollectionManager.run_key(" Commerce City ", 2024) == CollectionManager.run_key("COMMERCE CITY", 2024)

    def test_created_collection_metadata(self, manager, store) -> None:
        collection = manager.create("Commerce City", 2024)

        assert collection.name == "Phish Commerce City 2024"
        assert collection.overview == "Multi-night Phish run in Commerce City during 2024"
        assert collection.tags == ["Phish", RUN_TAG, "Commerce City", "2024"]
        assert store.get_collection_by_name("Phish Commerce City 2024") is not None


class TestProcessRun:
    def test_single_night_creates_nothing(self, manager, store) -> None:
        first = night(store, RUN_DATES[0])

        assert manager.process_run(first, "Commerce City", 2024, RUN_DATES) is None
        assert store.list_collections() == []

    def test_second_night_creates_collection_with_both(self, manager, store) -> None:
        first = night(store, RUN_DATES[0])
        assert manager.process_run(first, "Commerce City", 2024, RUN_DATES) is None

        second = night(store, RUN_DATES[1])
        collection = manager.process_run(second, "Commerce City", 2024, RUN_DATES)

        assert collection is not None
        assert collection.name == "Phish Commerce City 2024"
        assert sorted(store.list_members(collection.collection_id)) == sorted([first.item_id, second.item_id])

    def test_third_night_joins_existing_collection(self, manager, store) -> None:
        first = night(store, RUN_DATES[0])
        second = night(store, RUN_DATES[1])
        created = manager.process_run(second, "Commerce City", 2024, RUN_DATES)

        third = night(store, RUN_DATES[2])
        joined = manager.process_run(third, "Commerce City", 2024, RUN_DATES)

        assert joined.collection_id == created.collection_id
        assert set(store.list_members(created.collection_id)) == {first.item_id, second.item_id, third.item_id}
        assert len(store.list_collections()) == 1

    def test_repeated_processing_is_idempotent(self, manager, store) -> None:
        night(store, RUN_DATES[0])
        second = night(store, RUN_DATES[1])

        first_result = manager.process_run(second, "Commerce City", 2024, RUN_DATES)
        second_result = manager.process_run(second, "Commerce City", 2024, RUN_DATES)

        assert first_result.collection_id == second_result.collection_id
        assert len(store.list_members(first_result.collection_id)) == 2
        assert len(store.list_collections()) == 1

    def test_items_from_other_locations_are_not_siblings(self, manager, store) -> None:
        night(store, RUN_DATES[0], city="New York")
        second = night(store, RUN_DATES[1])

        assert manager.process_run(second, "Commerce City", 2024, RUN_DATES) is None

    def test_location_match_is_case_insensitive(self, manager, store) -> None:
        night(store, RUN_DATES[0])
        second = night(store, RUN_DATES[1])

        assert manager.process_run(second, "commerce city", 2024, RUN_DATES) is not None

    def test_location_case_variants_share_one_collection(self, manager, store) -> None:
        first = night(store, RUN_DATES[0])
        second = night(store, RUN_DATES[1])

        created = manager.process_run(second, "Commerce City", 2024, RUN_DATES)
        joined = manager.process_run(first, "COMMERCE CITY", 2024, RUN_DATES)

        assert joined.collection_id == created.collection_id
        assert [collection.name for collection in store.list_collections()] == ["Phish Commerce City 2024"]
        assert set(store.list_members(created.collection_id)) == {first.item_id, second.item_id}

    def test_run_locks_are_released(self, manager, store) -> None:
        night(store, RUN_DATES[0])
        second = night(store, RUN_DATES[1])

        manager.process_run(second, "Commerce City", 2024, RUN_DATES)
        manager.process_run(second, "New York", 2023, RUN_DATES)

        assert manager._locks == {}

    def test_unsaved_item_is_not_added(self, manager, store) -> None:
        night(store, RUN_DATES[0])
        night(store, RUN_DATES[1])
        unsaved = LibraryItem(item_id=None, name="Phish Commerce City 9-1-2024", premiere_date=RUN_DATES[2])

        collection = manager.process_run(unsaved, "Commerce City", 2024, RUN_DATES)

        assert collection is not None
        assert len(store.list_members(collection.collection_id)) == 2

    @pytest.mark.parametrize("location", ["", "   "])
    def test_blank_location_rejected(self, manager, store, location) -> None:
        item = night(store, RUN_DATES[0])

        with pytest.raises(ValueError):
            manager.process_run(item, location, 2024, RUN_DATES)

    def test_concurrent_processing_creates_one_collection(self, manager, store) -> None:
        items = [night(store, date) for date in RUN_DATES]

        with ThreadPoolExecutor(max_workers=3) as executor:
            results = list(
                executor.map(lambda item: manager.process_run(item, "Commerce City", 2024, RUN_DATES), items)
            )

        collections = store.list_collections()
        assert len(collections) == 1
        assert {result.collection_id for result in results} == {collections[0].collection_id}
        assert set(store.list_members(collections[0].collection_id)) == {item.item_id for item in items}
        assert manager._locks == {}


class TestConcurrentWriters:
    def test_lost_create_race_reuses_winner(self) -> None:
        winner = Collection(collection_id="c1", name="Phish Commerce City 2024")
        item = LibraryItem(item_id="i2", name="Phish Commerce City 8-31-2024", premiere_date=RUN_DATES[1])
        sibling = LibraryItem(item_id="i1", name="Phish Commerce City 8-30-2024", premiere_date=RUN_DATES[0])
        backend = MagicMock()
        backend.get_collection_by_name.side_effect = [None, winner]
        backend.find_items_by_dates.return_value = [sibling, item]
        backend.create_collection.side_effect = CollectionExistsError("Phish Commerce City 2024")
        backend.is_member.return_value = False
        backend.add_member.return_value = True

        result = CollectionManager(backend).process_run(item, "Commerce City", 2024, RUN_DATES)

        assert result is winner
        added = {call.args for call in backend.add_member.call_args_list}
        assert added == {("c1", "i2"), ("c1", "i1")}

    def test_store_failure_returns_none(self) -> None:
        item = LibraryItem(item_id="i2", name="Phish Commerce City 8-31-2024")
        backend = MagicMock()
        backend.get_collection_by_name.return_value = None
        backend.find_items_by_dates.side_effect = LibraryStoreError("disk I/O error")

        assert CollectionManager(backend).process_run(item, "Commerce City", 2024, RUN_DATES) is None


class TestAddMember:
    def test_existing_member_is_skipped(self) -> None:
        backend = MagicMock()
        backend.is_member.return_value = True
        collection = Collection(collection_id="c1", name="Phish Commerce City 2024")
        item = LibraryItem(item_id="i1", name="Phish Commerce City 8-30-2024")

        assert CollectionManager(backend).add_member(collection, item) is False
        backend.add_member.assert_not_called()

    def test_item_without_identity_is_deferred(self) -> None:
        backend = MagicMock()
        collection = Collection(collection_id="c1", name="Phish Commerce City 2024")
        item = LibraryItem(item_id=None, name="Phish Commerce City 8-30-2024")

        assert CollectionManager(backend).add_member(collection, item) is False
        backend.is_member.assert_not_called()

    def test_store_error_is_logged_not_raised(self) -> None:
        backend = MagicMock()
        backend.is_member.side_effect = LibraryStoreError("locked")
        collection = Collection(collection_id="c1", name="Phish Commerce City 2024")
        item = LibraryItem(item_id="i1", name="Phish Commerce City 8-30-2024")

        assert CollectionManager(backend).add_member(collection, item) is False
