"""Tests for state persistence and the local catalog lanes."""

from __future__ import annotations

import json

import pytest

from nightfall.local_catalog import default_local_catalog, load_local_catalog
from nightfall.merge import identity_key
from nightfall.models import CatalogEntry
from nightfall.state import DEFAULT_SECTION, STORAGE_KEYS, StateRepository
from nightfall.storage import MemoryKeyValueStore, StorageError


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class ReadOnlyStore(MemoryKeyValueStore):
    async def set(self, key: str, value: str) -> None:
        raise StorageError("read only")


@pytest.mark.anyio("asyncio")
async def test_load_defaults_for_empty_or_invalid_storage() -> None:
    store = MemoryKeyValueStore()
    await store.set(STORAGE_KEYS["section"], "somewhere-else")
    await store.set(STORAGE_KEYS["detail"], "true")
    await store.set(STORAGE_KEYS["user_added"], "{broken")

    state = await StateRepository(store).load()

    assert state.current_section == DEFAULT_SECTION
    assert state.is_detail_view is False
    assert state.user_added == []
    assert state.pending_selected_title is None


@pytest.mark.anyio("asyncio")
async def test_saves_round_trip_through_storage() -> None:
    store = MemoryKeyValueStore()
    repository = StateRepository(store)
    entry = CatalogEntry(title="Heat", external_id="949")

    await repository.save_section("new")
    await repository.save_selected(entry)
    await repository.save_detail_view(True)
    await repository.save_user_added([entry])

    state = await repository.load()

    assert state.current_section == "new"
    assert state.pending_selected_title == "Heat"
    assert state.is_detail_view is True
    assert [item.external_id for item in state.user_added] == ["949"]
    assert json.loads(await store.get(STORAGE_KEYS["user_added"]))[0]["title"] == "Heat"


@pytest.mark.anyio("asyncio")
async def test_storage_write_failures_are_ignored() -> None:
    repository = StateRepository(ReadOnlyStore())

    await repository.save_section("movies")
    await repository.save_user_added([CatalogEntry(title="Heat")])

    assert (await repository.load()).current_section == DEFAULT_SECTION


def test_default_local_catalog_lanes() -> None:
    catalog = default_local_catalog()

    assert [entry.title for entry in catalog.mylist] == [
        "Interstellar",
        "Breaking Bad",
        "Spirited Away",
    ]
    keys = [identity_key(entry) for entry in catalog.all]
    assert len(keys) == len(set(keys)) == 10
    breaking_bad = next(entry for entry in catalog.all if entry.title == "Breaking Bad")
    assert breaking_bad.seasons == 5
    assert breaking_bad.episode_count == 62


def test_load_local_catalog_from_file(tmp_path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            {
                "movies": [{"title": "Heat", "tmdbId": 949, "type": "movie"}],
                "mylist": [{"title": "Heat", "tmdbId": 949, "type": "movie"}, "skip me"],
            }
        ),
        encoding="utf-8",
    )

    catalog = load_local_catalog(path)

    assert [entry.external_id for entry in catalog.movies] == ["949"]
    assert len(catalog.mylist) == 1
    assert catalog.trending == ()
    assert len(catalog.all) == 1


def test_load_local_catalog_rejects_non_object(tmp_path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_local_catalog(path)
